"""Background tasks for Modshield (retention and tracker cleanup)."""
