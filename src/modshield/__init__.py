"""
Modshield - Rule-based Discord Automod Bot

Modshield inspects every guild message against a configurable set of
detectors and escalates punishments as a user's recent severity score grows.

Core Components:

- **Detectors**: Independent rule evaluators for spam (frequency, duplicates and
  a weighted composite score), blacklisted words, invites, links, mentions,
  caps, repeated characters, zalgo text, phishing, mass emoji, newline spam,
  unicode abuse and suspicious attachments
- **Message Tracker**: Bounded per-user sliding window of recent messages
- **Automod Engine**: Exemptions, detection, violation persistence and
  progressive punishment (warn, timeout, kick, ban)
- **Guild Settings**: Per-server automod configuration merged onto defaults and
  persisted to SQLite
- **Violation Store**: Violation, moderation action and hashed message history

Usage:
    from modshield.main import main
    main()
"""
