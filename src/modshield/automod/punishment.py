"""
Progressive punishment tiers and their resolution.

A guild configures a table of severity thresholds. The punishment applied for
a violation is the tier with the greatest threshold that does not exceed the
user's cumulative severity, regardless of the order the tiers were stored in.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from modshield.datatypes.action_datatypes import ActionType


@dataclass(frozen=True, slots=True)
class PunishmentTier:
    """One row of the severity table.

    Attributes:
        threshold: Minimum cumulative severity for this tier to apply
        action: Punishment to apply
        duration_ms: Timeout length in milliseconds (0 for other actions)
    """
    threshold: int
    action: ActionType
    duration_ms: int = 0


def resolve_punishment(total_severity: int, tiers: Iterable[PunishmentTier]) -> Optional[PunishmentTier]:
    """Select the tier with the greatest threshold not exceeding ``total_severity``.

    Args:
        total_severity: Cumulative severity including the current violation.
        tiers: Configured tiers in any order.

    Returns:
        The qualifying tier with the largest threshold, or None when no tier
        qualifies.
    """
    selected: Optional[PunishmentTier] = None
    for tier in tiers:
        if tier.threshold > total_severity:
            continue
        if selected is None or tier.threshold > selected.threshold:
            selected = tier
    return selected


def format_duration(duration_ms: int) -> str:
    """Format a millisecond duration as ``"Xd Yh"``, ``"Xh Ym"`` or ``"Xm"``."""
    minutes = int(duration_ms) // 60000
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return f"{days}d {hours % 24}h"
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    return f"{minutes}m"
