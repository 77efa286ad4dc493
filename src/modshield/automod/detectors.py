"""
Rule detectors for automod.

Every detector has the same signature::

    detector(snapshot, config, recent) -> Violation | None

``snapshot`` is the message being checked, ``config`` the guild's
:class:`GuildAutomodConfig` and ``recent`` the author's tracked messages inside
the spam window (oldest first, current message last). Detectors are pure: they
read their inputs and never mutate them, so running the set twice on the same
inputs yields the same violations.

:data:`DETECTORS` lists the detectors in detection order together with the
rule that enables each one.
"""

from __future__ import annotations

import math
import re
from typing import Callable, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

import emoji

from modshield.automod.config import GuildAutomodConfig
from modshield.automod.message_tracker import MessageRecord
from modshield.automod.similarity import similarity
from modshield.automod.snapshot import MessageSnapshot
from modshield.automod.spam_score import calculate_spam_score
from modshield.automod.violations import DEFAULT_RULE_ACTION, Violation, ViolationType
from modshield.util.logger import get_logger

logger = get_logger("automod_detectors")

Detector = Callable[[MessageSnapshot, GuildAutomodConfig, Sequence[MessageRecord]], Optional[Violation]]

# Known phishing hosts, matched as substrings of a link's hostname
PHISHING_DOMAINS: Tuple[str, ...] = (
    "discordnitro.info",
    "discordgift.info",
    "discord-nitro.com",
    "discordsteam.com",
)

URL_PATTERN = re.compile(
    r"https?://(?:www\.)?[-a-zA-Z0-9@:%._+~#=]{1,256}\.[a-zA-Z0-9()]{1,6}\b[-a-zA-Z0-9()@:%_+.~#?&/=]*",
    re.IGNORECASE,
)
INVITE_PATTERN = re.compile(
    r"(?:discord\.gg/|discordapp\.com/invite/|discord\.com/invite/)([a-zA-Z0-9]+)",
    re.IGNORECASE,
)
CUSTOM_EMOJI_PATTERN = re.compile(r"<a?:[a-zA-Z0-9_]+:[0-9]+>")
REPEATED_CHAR_PATTERN = re.compile(r"(.)\1{9,}")
COMBINING_MARK_PATTERN = re.compile(r"[\u0300-\u036F\u1AB0-\u1AFF\u1DC0-\u1DFF\u20D0-\u20FF]")
INVISIBLE_CHAR_PATTERN = re.compile(r"[\u200B-\u200D\uFEFF\u00AD\u061C\u180E\u2060-\u2069]")
BIDI_OVERRIDE_PATTERN = re.compile(r"[\u202A-\u202E]")
HOMOGRAPH_PATTERN = re.compile(r"[\u0430-\u044F\u0410-\u042F]")
DISGUISED_EXECUTABLE_PATTERN = re.compile(r"\.(?:txt|jpg|png)\.exe$")
EXTENSION_PATTERN = re.compile(r"\.[a-z0-9]+")


def extract_hostnames(content: str) -> List[str]:
    """Return the lowercased hostname of every well-formed URL in ``content``.

    Malformed URLs are skipped rather than flagged.
    """
    hostnames = []
    for match in URL_PATTERN.finditer(content):
        try:
            hostname = urlparse(match.group(0)).hostname
        except ValueError:
            continue
        if hostname:
            hostnames.append(hostname.lower())
    return hostnames


def _domain_matches(hostname: str, domains: Sequence[str]) -> bool:
    """True when ``hostname`` is one of ``domains`` or a subdomain of one."""
    for domain in domains:
        domain = domain.lower().strip()
        if domain and (hostname == domain or hostname.endswith("." + domain)):
            return True
    return False


# ---------------------------------------------------------------------------
# Spam
# ---------------------------------------------------------------------------

def detect_spam(snapshot: MessageSnapshot, config: GuildAutomodConfig, recent: Sequence[MessageRecord]) -> Optional[Violation]:
    """Advanced score first, then message frequency, then duplicate content.

    At most one spam violation is emitted per message.
    """
    rule = config.spam_detection

    score = calculate_spam_score(snapshot, recent, rule.max_messages)
    if score.is_spam:
        return Violation(
            type=ViolationType.ADVANCED_SPAM,
            severity=min(5, score.total // 2),
            reason=f"Advanced spam detected (score: {score.total}): {', '.join(score.reasons)}",
            action=DEFAULT_RULE_ACTION,
            details={"score": score.total, "reasons": list(score.reasons), "breakdown": dict(score.breakdown)},
        )

    if len(recent) >= rule.max_messages:
        return Violation(
            type=ViolationType.SPAM_FREQUENCY,
            severity=3,
            reason=f"Sent {len(recent)} messages in {rule.time_window / 1000:g} seconds",
            action=DEFAULT_RULE_ACTION,
        )

    current = snapshot.content.lower()
    duplicates = sum(
        1 for entry in recent
        if similarity(current, entry.content.lower()) >= rule.duplicate_threshold
    )
    if duplicates >= rule.max_duplicates:
        return Violation(
            type=ViolationType.SPAM_DUPLICATE,
            severity=2,
            reason=f"Repeated similar messages {duplicates} times",
            action=DEFAULT_RULE_ACTION,
        )

    return None


# ---------------------------------------------------------------------------
# Content rules
# ---------------------------------------------------------------------------

def detect_blacklisted_words(snapshot: MessageSnapshot, config: GuildAutomodConfig, recent: Sequence[MessageRecord]) -> Optional[Violation]:
    rule = config.blacklisted_words
    content = snapshot.content.lower()
    found = [word for word in rule.words if word.strip() and word.lower() in content]
    if not found:
        return None
    return Violation(
        type=ViolationType.BLACKLISTED_WORDS,
        severity=2,
        reason=f"Contains blacklisted words: {', '.join(found)}",
        action=rule.action,
    )


def detect_invite_links(snapshot: MessageSnapshot, config: GuildAutomodConfig, recent: Sequence[MessageRecord]) -> Optional[Violation]:
    """Flag invites to other servers.

    Codes listed in ``whitelistedServers`` are allowed. With
    ``allowOwnServer`` the guild's own invite codes are allowed too.
    """
    rule = config.invite_links
    allowed = {code.lower() for code in rule.whitelisted_servers}
    if rule.allow_own_server:
        allowed |= snapshot.own_invite_codes

    flagged = [
        match.group(0) for match in INVITE_PATTERN.finditer(snapshot.content)
        if match.group(1).lower() not in allowed
    ]
    if not flagged:
        return None
    return Violation(
        type=ViolationType.INVITE_LINKS,
        severity=1,
        reason=f"Contains invite links: {', '.join(flagged)}",
        action=rule.action,
    )


def detect_filtered_links(snapshot: MessageSnapshot, config: GuildAutomodConfig, recent: Sequence[MessageRecord]) -> Optional[Violation]:
    """Check every link against the domain blacklist and, when set, the allow-list."""
    rule = config.link_filter
    for hostname in extract_hostnames(snapshot.content):
        if _domain_matches(hostname, rule.blacklist):
            return Violation(
                type=ViolationType.BLACKLISTED_LINK,
                severity=2,
                reason=f"Contains blacklisted domain: {hostname}",
                action=rule.action,
            )
        if rule.whitelist and not _domain_matches(hostname, rule.whitelist):
            return Violation(
                type=ViolationType.NON_WHITELISTED_LINK,
                severity=1,
                reason=f"Contains non-whitelisted domain: {hostname}",
                action=rule.action,
            )
    return None


def detect_mentions(snapshot: MessageSnapshot, config: GuildAutomodConfig, recent: Sequence[MessageRecord]) -> Optional[Violation]:
    """User and role mentions are checked independently.

    When both limits are exceeded the role violation, which is more severe, is
    returned and its details record both counts.
    """
    rule = config.mentions
    users = len(snapshot.user_mention_ids)
    roles = len(snapshot.role_mention_ids)
    details = {"user_mentions": users, "role_mentions": roles}

    if roles > rule.max_roles:
        return Violation(
            type=ViolationType.EXCESSIVE_ROLE_MENTIONS,
            severity=3,
            reason=f"Too many role mentions: {roles}/{rule.max_roles}",
            action=rule.action,
            details=details,
        )
    if users > rule.max_users:
        return Violation(
            type=ViolationType.EXCESSIVE_MENTIONS,
            severity=2,
            reason=f"Too many user mentions: {users}/{rule.max_users}",
            action=rule.action,
            details=details,
        )
    return None


def detect_caps(snapshot: MessageSnapshot, config: GuildAutomodConfig, recent: Sequence[MessageRecord]) -> Optional[Violation]:
    rule = config.caps
    content = snapshot.content
    if not content or len(content) < rule.min_length:
        return None

    ratio = sum(1 for char in content if char.isupper()) / len(content)
    if ratio <= rule.max_ratio:
        return None
    return Violation(
        type=ViolationType.EXCESSIVE_CAPS,
        severity=1,
        reason=f"Excessive capitalization: {round(ratio * 100)}%",
        action=rule.action,
    )


def detect_repeated_chars(snapshot: MessageSnapshot, config: GuildAutomodConfig, recent: Sequence[MessageRecord]) -> Optional[Violation]:
    rule = config.repeated_chars
    runs = [match.group(0) for match in REPEATED_CHAR_PATTERN.finditer(snapshot.content)]
    if not runs:
        return None

    longest = max(len(run) for run in runs)
    if longest < rule.max_repeated:
        return None
    return Violation(
        type=ViolationType.REPEATED_CHARS,
        severity=1,
        reason=f"Excessive repeated characters: {longest} in a row",
        action=rule.action,
    )


def detect_zalgo_text(snapshot: MessageSnapshot, config: GuildAutomodConfig, recent: Sequence[MessageRecord]) -> Optional[Violation]:
    rule = config.zalgo_text
    content = snapshot.content
    marks = len(COMBINING_MARK_PATTERN.findall(content))
    if not marks:
        return None

    ratio = marks / len(content)
    if ratio <= rule.threshold:
        return None
    return Violation(
        type=ViolationType.ZALGO_TEXT,
        severity=2,
        reason=f"Zalgo/corrupted text detected ({round(ratio * 100)}% combining chars)",
        action=rule.action,
    )


def detect_phishing(snapshot: MessageSnapshot, config: GuildAutomodConfig, recent: Sequence[MessageRecord]) -> Optional[Violation]:
    for hostname in extract_hostnames(snapshot.content):
        if any(domain in hostname for domain in PHISHING_DOMAINS):
            return Violation(
                type=ViolationType.PHISHING_LINK,
                severity=4,
                reason=f"Suspected phishing domain: {hostname}",
                action=config.phishing.action,
            )
    return None


def count_emojis(content: str) -> int:
    """Unicode emoji plus Discord custom emoji tokens (``<:name:id>``, ``<a:name:id>``)."""
    return emoji.emoji_count(content) + len(CUSTOM_EMOJI_PATTERN.findall(content))


def detect_mass_emoji(snapshot: MessageSnapshot, config: GuildAutomodConfig, recent: Sequence[MessageRecord]) -> Optional[Violation]:
    rule = config.mass_emoji
    total = count_emojis(snapshot.content)
    if total <= rule.max_emojis:
        return None
    return Violation(
        type=ViolationType.MASS_EMOJI,
        severity=min(3, total // 5),
        reason=f"Excessive emoji usage: {total}/{rule.max_emojis}",
        action=rule.action,
    )


def detect_newline_spam(snapshot: MessageSnapshot, config: GuildAutomodConfig, recent: Sequence[MessageRecord]) -> Optional[Violation]:
    rule = config.newline_spam
    newlines = snapshot.content.count("\n")
    if newlines <= rule.max_newlines:
        return None
    return Violation(
        type=ViolationType.NEWLINE_SPAM,
        severity=min(3, newlines // 10),
        reason=f"Excessive newlines: {newlines}/{rule.max_newlines}",
        action=rule.action,
    )


def detect_unicode_abuse(snapshot: MessageSnapshot, config: GuildAutomodConfig, recent: Sequence[MessageRecord]) -> Optional[Violation]:
    """Invisible characters, direction overrides and Cyrillic look-alikes.

    Invisible characters weigh 1 each and direction overrides 2 each. When
    Cyrillic look-alike letters make up at least 30% of the message, half of
    them are added as well.
    """
    rule = config.unicode_abuse
    content = snapshot.content
    if not content:
        return None

    suspicious = 0
    reasons = []

    invisible = len(INVISIBLE_CHAR_PATTERN.findall(content))
    if invisible:
        suspicious += invisible
        reasons.append(f"{invisible} invisible chars")

    overrides = len(BIDI_OVERRIDE_PATTERN.findall(content))
    if overrides:
        suspicious += overrides * 2
        reasons.append(f"{overrides} directional override chars")

    homographs = len(HOMOGRAPH_PATTERN.findall(content))
    if homographs >= len(content) * 0.3:
        suspicious += homographs // 2
        reasons.append("potential homograph attack")

    ratio = suspicious / len(content)
    if suspicious <= 0 or ratio <= rule.threshold:
        return None
    return Violation(
        type=ViolationType.UNICODE_ABUSE,
        severity=min(4, math.floor(ratio * 10)),
        reason=f"Unicode abuse detected: {', '.join(reasons)}",
        action=rule.action,
    )


def detect_suspicious_attachments(snapshot: MessageSnapshot, config: GuildAutomodConfig, recent: Sequence[MessageRecord]) -> Optional[Violation]:
    """Blocked extensions, disguised executables and double extensions."""
    rule = config.suspicious_attachment
    blocked = tuple(ext.lower() for ext in rule.blocked_extensions if ext)

    flagged: List[str] = []
    for name in snapshot.attachment_names:
        filename = name.lower()
        extensions = EXTENSION_PATTERN.findall(filename)

        if (
            filename.endswith(blocked)
            or ".exe." in filename
            or ".scr." in filename
            or DISGUISED_EXECUTABLE_PATTERN.search(filename)
            or (len(extensions) > 1 and extensions[-1] in blocked)
        ):
            if name not in flagged:
                flagged.append(name)

    if not flagged:
        return None
    return Violation(
        type=ViolationType.SUSPICIOUS_ATTACHMENT,
        severity=4,
        reason=f"Suspicious attachments: {', '.join(flagged)}",
        action=rule.action,
    )


# Detection order, paired with the rule that enables each detector
DETECTORS: Tuple[Tuple[str, Detector], ...] = (
    ("spam_detection", detect_spam),
    ("blacklisted_words", detect_blacklisted_words),
    ("invite_links", detect_invite_links),
    ("link_filter", detect_filtered_links),
    ("mentions", detect_mentions),
    ("caps", detect_caps),
    ("repeated_chars", detect_repeated_chars),
    ("zalgo_text", detect_zalgo_text),
    ("phishing", detect_phishing),
    ("mass_emoji", detect_mass_emoji),
    ("newline_spam", detect_newline_spam),
    ("unicode_abuse", detect_unicode_abuse),
    ("suspicious_attachment", detect_suspicious_attachments),
)


def run_detectors(
    snapshot: MessageSnapshot,
    config: GuildAutomodConfig,
    recent: Sequence[MessageRecord],
    detectors: Sequence[Tuple[str, Detector]] = DETECTORS,
) -> List[Violation]:
    """Run every enabled detector and collect violations in detection order.

    A detector that raises is logged and skipped; the others still run.
    """
    violations: List[Violation] = []
    for rule_name, detector in detectors:
        if not getattr(config, rule_name).enabled:
            continue
        try:
            violation = detector(snapshot, config, recent)
        except Exception as exc:
            logger.error(
                "[DETECTORS] %s failed on message %s: %s",
                detector.__name__, snapshot.message_id, exc,
            )
            continue
        if violation is not None:
            violations.append(violation)
    return violations
