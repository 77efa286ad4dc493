"""
Violation types and the in-memory violation produced by a detector.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

DEFAULT_RULE_ACTION = "delete_warn"


class ViolationType(Enum):
    """Tags of every violation a detector can emit."""

    ADVANCED_SPAM = "advanced_spam"
    SPAM_FREQUENCY = "spam_frequency"
    SPAM_DUPLICATE = "spam_duplicate"
    BLACKLISTED_WORDS = "blacklisted_words"
    INVITE_LINKS = "invite_links"
    BLACKLISTED_LINK = "blacklisted_link"
    NON_WHITELISTED_LINK = "non_whitelisted_link"
    EXCESSIVE_MENTIONS = "excessive_mentions"
    EXCESSIVE_ROLE_MENTIONS = "excessive_role_mentions"
    EXCESSIVE_CAPS = "excessive_caps"
    REPEATED_CHARS = "repeated_chars"
    ZALGO_TEXT = "zalgo_text"
    PHISHING_LINK = "phishing_link"
    MASS_EMOJI = "mass_emoji"
    NEWLINE_SPAM = "newline_spam"
    UNICODE_ABUSE = "unicode_abuse"
    SUSPICIOUS_ATTACHMENT = "suspicious_attachment"

    def __str__(self) -> str:
        return self.value


@dataclass(slots=True)
class Violation:
    """A single rule match for one message.

    Attributes:
        type: Which rule matched
        severity: Weight counted toward progressive punishment, at least 1
        reason: Human readable explanation shown to the user and moderators
        action: Action string of the rule; contains ``delete`` when the
            message must be removed
        details: Optional structured breakdown (e.g. spam score signals)
    """
    type: ViolationType
    severity: int
    reason: str
    action: str = DEFAULT_RULE_ACTION
    details: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.severity = max(1, int(self.severity))

    @property
    def requires_delete(self) -> bool:
        return "delete" in self.action
