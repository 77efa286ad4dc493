"""
Typed per-guild automod configuration.

Every rule has its own frozen dataclass with explicit defaults. Stored
configuration documents use the camelCase keys of the bot's JSON format
(``spamDetection``, ``maxMessages``, ``severityLevels``...) and are merged onto
the defaults field by field:

- a rule or field missing from the document keeps its default
- unknown keys are ignored
- a value of the wrong type is logged and the default is kept
- ``severityLevels`` replaces the whole tier table when present

Config objects are immutable; updates build a new object with
:func:`dataclasses.replace` and go through the guild settings store.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass, replace
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional, Tuple

from modshield.automod.punishment import PunishmentTier
from modshield.automod.violations import DEFAULT_RULE_ACTION
from modshield.datatypes.action_datatypes import ActionType
from modshield.util.logger import get_logger

logger = get_logger("automod_config")


def _key(name: str, **extra: Any) -> Dict[str, Any]:
    """Field metadata naming the camelCase key used in stored documents."""
    return {"key": name, **extra}


@dataclass(frozen=True, slots=True)
class SpamDetectionConfig:
    enabled: bool = field(default=True, metadata=_key("enabled"))
    max_messages: int = field(default=5, metadata=_key("maxMessages"))
    time_window: int = field(default=10_000, metadata=_key("timeWindow"))  # ms
    duplicate_threshold: float = field(default=0.85, metadata=_key("duplicateThreshold"))
    max_duplicates: int = field(default=3, metadata=_key("maxDuplicates"))


@dataclass(frozen=True, slots=True)
class BlacklistedWordsConfig:
    enabled: bool = field(default=True, metadata=_key("enabled"))
    words: Tuple[str, ...] = field(default=(), metadata=_key("words"))
    action: str = field(default=DEFAULT_RULE_ACTION, metadata=_key("action"))


@dataclass(frozen=True, slots=True)
class InviteLinksConfig:
    enabled: bool = field(default=True, metadata=_key("enabled"))
    allow_own_server: bool = field(default=True, metadata=_key("allowOwnServer"))
    whitelisted_servers: Tuple[str, ...] = field(default=(), metadata=_key("whitelistedServers"))
    action: str = field(default=DEFAULT_RULE_ACTION, metadata=_key("action"))


@dataclass(frozen=True, slots=True)
class LinkFilterConfig:
    enabled: bool = field(default=False, metadata=_key("enabled"))
    whitelist: Tuple[str, ...] = field(default=(), metadata=_key("whitelist"))
    blacklist: Tuple[str, ...] = field(default=(), metadata=_key("blacklist"))
    action: str = field(default=DEFAULT_RULE_ACTION, metadata=_key("action"))


@dataclass(frozen=True, slots=True)
class MentionsConfig:
    enabled: bool = field(default=True, metadata=_key("enabled"))
    max_users: int = field(default=5, metadata=_key("maxUsers"))
    max_roles: int = field(default=3, metadata=_key("maxRoles"))
    action: str = field(default=DEFAULT_RULE_ACTION, metadata=_key("action"))


@dataclass(frozen=True, slots=True)
class CapsConfig:
    enabled: bool = field(default=True, metadata=_key("enabled"))
    max_ratio: float = field(default=0.7, metadata=_key("maxRatio"))
    min_length: int = field(default=10, metadata=_key("minLength"))
    action: str = field(default=DEFAULT_RULE_ACTION, metadata=_key("action"))


@dataclass(frozen=True, slots=True)
class RepeatedCharsConfig:
    enabled: bool = field(default=True, metadata=_key("enabled"))
    max_repeated: int = field(default=10, metadata=_key("maxRepeated"))
    action: str = field(default=DEFAULT_RULE_ACTION, metadata=_key("action"))


@dataclass(frozen=True, slots=True)
class ZalgoTextConfig:
    enabled: bool = field(default=True, metadata=_key("enabled"))
    threshold: float = field(default=0.5, metadata=_key("threshold"))
    action: str = field(default=DEFAULT_RULE_ACTION, metadata=_key("action"))


@dataclass(frozen=True, slots=True)
class PhishingConfig:
    enabled: bool = field(default=True, metadata=_key("enabled"))
    action: str = field(default=DEFAULT_RULE_ACTION, metadata=_key("action"))


@dataclass(frozen=True, slots=True)
class MassEmojiConfig:
    enabled: bool = field(default=True, metadata=_key("enabled"))
    max_emojis: int = field(default=10, metadata=_key("maxEmojis"))
    action: str = field(default=DEFAULT_RULE_ACTION, metadata=_key("action"))


@dataclass(frozen=True, slots=True)
class NewlineSpamConfig:
    enabled: bool = field(default=True, metadata=_key("enabled"))
    max_newlines: int = field(default=15, metadata=_key("maxNewlines"))
    action: str = field(default=DEFAULT_RULE_ACTION, metadata=_key("action"))


@dataclass(frozen=True, slots=True)
class UnicodeAbuseConfig:
    enabled: bool = field(default=True, metadata=_key("enabled"))
    threshold: float = field(default=0.3, metadata=_key("threshold"))
    action: str = field(default=DEFAULT_RULE_ACTION, metadata=_key("action"))


@dataclass(frozen=True, slots=True)
class SuspiciousAttachmentConfig:
    enabled: bool = field(default=True, metadata=_key("enabled"))
    blocked_extensions: Tuple[str, ...] = field(
        default=(".exe", ".bat", ".com", ".cmd", ".pif", ".scr", ".vbs", ".js"),
        metadata=_key("blockedExtensions"),
    )
    action: str = field(default=DEFAULT_RULE_ACTION, metadata=_key("action"))


@dataclass(frozen=True, slots=True)
class SlowmodeConfig:
    enabled: bool = field(default=False, metadata=_key("enabled"))
    triggers: Tuple[str, ...] = field(default=("spam_frequency", "advanced_spam"), metadata=_key("triggers"))
    duration: int = field(default=30, metadata=_key("duration"))  # seconds


# ---------------------------------------------------------------------------
# Punishment table
# ---------------------------------------------------------------------------

DEFAULT_SEVERITY_LEVELS: Tuple[PunishmentTier, ...] = (
    PunishmentTier(1, ActionType.WARN, 0),
    PunishmentTier(5, ActionType.TIMEOUT, 5 * 60 * 1000),
    PunishmentTier(10, ActionType.TIMEOUT, 30 * 60 * 1000),
    PunishmentTier(15, ActionType.TIMEOUT, 60 * 60 * 1000),
    PunishmentTier(25, ActionType.KICK, 0),
    PunishmentTier(35, ActionType.BAN, 0),
)


def _parse_severity_levels(value: Any) -> Tuple[PunishmentTier, ...]:
    """Parse a ``{threshold: {action, durationMs}}`` mapping into sorted tiers.

    Entries that cannot be parsed are skipped with a warning. The duration is
    read from ``durationMs`` or, for documents written by older versions of
    the bot, ``duration``.

    Raises:
        TypeError: If ``value`` is not a mapping.
        ValueError: If a non-empty mapping holds no valid entry.
    """
    if not isinstance(value, Mapping):
        raise TypeError(f"severityLevels must be a mapping, got {type(value).__name__}")

    tiers = []
    for raw_threshold, entry in value.items():
        try:
            threshold = int(raw_threshold)
            action = ActionType(str(entry["action"]).lower())
            duration = entry.get("durationMs", entry.get("duration", 0)) or 0
            tiers.append(PunishmentTier(threshold, action, int(duration)))
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.warning("[AUTOMOD CONFIG] Skipping invalid severity level %r: %s", raw_threshold, exc)

    if value and not tiers:
        raise ValueError("no valid severity levels")
    return tuple(sorted(tiers, key=lambda tier: tier.threshold))


def _dump_severity_levels(tiers: Tuple[PunishmentTier, ...]) -> Dict[str, Dict[str, Any]]:
    return {
        str(tier.threshold): {"action": tier.action.value, "durationMs": tier.duration_ms}
        for tier in tiers
    }


@dataclass(frozen=True, slots=True)
class PunishmentSettings:
    progressive: bool = field(default=True, metadata=_key("progressive"))
    severity_levels: Tuple[PunishmentTier, ...] = field(
        default=DEFAULT_SEVERITY_LEVELS,
        metadata=_key("severityLevels", parse=_parse_severity_levels, dump=_dump_severity_levels),
    )


# ---------------------------------------------------------------------------
# Guild config
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class GuildAutomodConfig:
    """Complete automod configuration of one guild."""

    enabled: bool = field(default=True, metadata=_key("enabled"))
    spam_detection: SpamDetectionConfig = field(default_factory=SpamDetectionConfig, metadata=_key("spamDetection"))
    blacklisted_words: BlacklistedWordsConfig = field(default_factory=BlacklistedWordsConfig, metadata=_key("blacklistedWords"))
    invite_links: InviteLinksConfig = field(default_factory=InviteLinksConfig, metadata=_key("inviteLinks"))
    link_filter: LinkFilterConfig = field(default_factory=LinkFilterConfig, metadata=_key("linkFilter"))
    mentions: MentionsConfig = field(default_factory=MentionsConfig, metadata=_key("mentions"))
    caps: CapsConfig = field(default_factory=CapsConfig, metadata=_key("caps"))
    repeated_chars: RepeatedCharsConfig = field(default_factory=RepeatedCharsConfig, metadata=_key("repeatedChars"))
    zalgo_text: ZalgoTextConfig = field(default_factory=ZalgoTextConfig, metadata=_key("zalgoText"))
    phishing: PhishingConfig = field(default_factory=PhishingConfig, metadata=_key("phishing"))
    mass_emoji: MassEmojiConfig = field(default_factory=MassEmojiConfig, metadata=_key("massEmoji"))
    newline_spam: NewlineSpamConfig = field(default_factory=NewlineSpamConfig, metadata=_key("newlineSpam"))
    unicode_abuse: UnicodeAbuseConfig = field(default_factory=UnicodeAbuseConfig, metadata=_key("unicodeAbuse"))
    suspicious_attachment: SuspiciousAttachmentConfig = field(
        default_factory=SuspiciousAttachmentConfig, metadata=_key("suspiciousAttachment")
    )
    slowmode: SlowmodeConfig = field(default_factory=SlowmodeConfig, metadata=_key("slowmode"))
    punishments: PunishmentSettings = field(default_factory=PunishmentSettings, metadata=_key("punishments"))
    exempt_roles: FrozenSet[int] = field(default=frozenset(), metadata=_key("exemptRoles"))
    exempt_channels: FrozenSet[int] = field(default=frozenset(), metadata=_key("exemptChannels"))
    exempt_users: FrozenSet[int] = field(default=frozenset(), metadata=_key("exemptUsers"))

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]], base: Optional["GuildAutomodConfig"] = None) -> "GuildAutomodConfig":
        """Merge a stored camelCase document onto ``base`` (defaults when omitted)."""
        base = base if base is not None else cls()
        if not data:
            return base
        return _merge(base, data, path="")

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the camelCase document format used for storage."""
        return _dump(self)

    def rule(self, name: str):
        """Return the config of a rule by snake_case or camelCase name."""
        return getattr(self, resolve_rule_name(name))


# Names of the fields holding a rule config, in detection order
RULE_NAMES: Tuple[str, ...] = (
    "spam_detection",
    "blacklisted_words",
    "invite_links",
    "link_filter",
    "mentions",
    "caps",
    "repeated_chars",
    "zalgo_text",
    "phishing",
    "mass_emoji",
    "newline_spam",
    "unicode_abuse",
    "suspicious_attachment",
    "slowmode",
)

_RULE_KEYS: Dict[str, str] = {f.metadata["key"]: f.name for f in fields(GuildAutomodConfig) if f.name in RULE_NAMES}


def resolve_rule_name(name: str) -> str:
    """Map a rule name given as ``spam_detection`` or ``spamDetection`` to its field name.

    Raises:
        KeyError: If no rule has that name.
    """
    if name in RULE_NAMES:
        return name
    if name in _RULE_KEYS:
        return _RULE_KEYS[name]
    raise KeyError(f"Unknown automod rule: {name}")


# ---------------------------------------------------------------------------
# Merge / dump helpers
# ---------------------------------------------------------------------------

def _coerce(current: Any, value: Any) -> Any:
    """Coerce ``value`` to the type of ``current``.

    Raises:
        TypeError, ValueError: If the value cannot represent that type.
    """
    if isinstance(current, bool):
        if isinstance(value, bool):
            return value
        raise TypeError(f"expected bool, got {type(value).__name__}")

    if isinstance(current, int):
        if isinstance(value, bool):
            raise TypeError("expected int, got bool")
        if isinstance(value, float):
            if not value.is_integer():
                raise ValueError(f"expected int, got {value}")
            return int(value)
        return int(value)

    if isinstance(current, float):
        if isinstance(value, bool):
            raise TypeError("expected number, got bool")
        return float(value)

    if isinstance(current, str):
        if isinstance(value, str):
            return value
        raise TypeError(f"expected string, got {type(value).__name__}")

    if isinstance(current, frozenset):
        if isinstance(value, (list, tuple, set, frozenset)):
            return frozenset(int(item) for item in value)
        raise TypeError(f"expected list of IDs, got {type(value).__name__}")

    if isinstance(current, tuple):
        if isinstance(value, (list, tuple)):
            return tuple(str(item) for item in value)
        raise TypeError(f"expected list, got {type(value).__name__}")

    raise TypeError(f"unsupported field type {type(current).__name__}")


def _merge(base: Any, data: Mapping[str, Any], path: str) -> Any:
    changes: Dict[str, Any] = {}
    for f in fields(base):
        key = f.metadata.get("key", f.name)
        if key not in data:
            continue

        current = getattr(base, f.name)
        value = data[key]
        location = f"{path}.{key}" if path else key
        try:
            if "parse" in f.metadata:
                changes[f.name] = f.metadata["parse"](value)
            elif is_dataclass(current):
                if not isinstance(value, Mapping):
                    raise TypeError(f"expected mapping, got {type(value).__name__}")
                changes[f.name] = _merge(current, value, location)
            else:
                changes[f.name] = _coerce(current, value)
        except (TypeError, ValueError) as exc:
            logger.warning("[AUTOMOD CONFIG] Ignoring invalid value for %s: %s", location, exc)

    return replace(base, **changes) if changes else base


def _dump(obj: Any) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for f in fields(obj):
        key = f.metadata.get("key", f.name)
        value = getattr(obj, f.name)
        dump: Optional[Callable[[Any], Any]] = f.metadata.get("dump")
        if dump is not None:
            result[key] = dump(value)
        elif is_dataclass(value):
            result[key] = _dump(value)
        elif isinstance(value, frozenset):
            result[key] = sorted(str(item) for item in value)
        elif isinstance(value, tuple):
            result[key] = list(value)
        else:
            result[key] = value
    return result
