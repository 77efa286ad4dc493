"""
Rule-based automod for Modshield.

- **engine.py**: ``AutomodEngine``, the per-message pipeline from exemption
  checks to progressive punishment.
- **detectors.py**: Independent rule evaluators and ``run_detectors``.
- **spam_score.py**: Weighted multi-signal spam score used by the spam rule.
- **message_tracker.py**: Bounded per-user sliding window of recent messages.
- **config.py**: Typed per-guild automod config with camelCase serialization.
- **punishment.py**: Punishment tiers and tier resolution.
"""
