"""py-cord integration for Modshield."""
