"""
Composite spam score built from independent behavioural signals.

Each analyzer looks at the current message and the user's recent history and
returns a small bounded number of points. The detector emits an
``advanced_spam`` violation once the points add up to
:data:`ADVANCED_SPAM_THRESHOLD`.

Signals:
    frequency       messages in the window compared to ``maxMessages``
    similarity      clusters of near-identical messages
    patterns        character runs, shouting, punctuation runs, spam phrases
    cross_channel   the same burst spread over several channels
    rapid_elements  emoji, mentions and very short messages
    temporal        suspiciously regular posting intervals
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

import emoji

from modshield.automod.message_tracker import MessageRecord
from modshield.automod.similarity import similarity
from modshield.automod.snapshot import MessageSnapshot

ADVANCED_SPAM_THRESHOLD = 10
CLUSTER_SIMILARITY = 0.8

SPAM_PHRASES = ("free", "money", "winner", "click here", "urgent", "limited time")

_CHAR_RUN = re.compile(r"(.)\1{4,}")
_PUNCTUATION_RUN = re.compile(r"[!?.,]{3,}")


@dataclass(slots=True)
class SpamScore:
    """Result of :func:`calculate_spam_score`."""
    total: int = 0
    reasons: List[str] = field(default_factory=list)
    breakdown: Dict[str, int] = field(default_factory=dict)

    def add(self, signal: str, points: int, reason: str) -> None:
        self.breakdown[signal] = points
        if points > 0:
            self.total += points
            self.reasons.append(reason)

    @property
    def is_spam(self) -> bool:
        return self.total >= ADVANCED_SPAM_THRESHOLD


# ---------------------------------------------------------------------------
# Individual signals
# ---------------------------------------------------------------------------

def frequency_points(message_count: int, max_messages: int) -> int:
    if message_count <= max_messages * 0.7:
        return 0
    return max(0, min(5, message_count - max_messages))


def largest_similarity_cluster(contents: Sequence[str], threshold: float = CLUSTER_SIMILARITY) -> int:
    """Greedy grouping: each text joins the first group holding a similar text."""
    groups: List[List[str]] = []
    for text in contents:
        text = text.lower()
        for group in groups:
            if any(similarity(text, member) >= threshold for member in group):
                group.append(text)
                break
        else:
            groups.append([text])
    return max((len(group) for group in groups), default=0)


def similarity_points(cluster_size: int) -> int:
    if cluster_size < 3:
        return 0
    return min(4, cluster_size - 2)


def pattern_points(content: str) -> int:
    lowered = content.lower()
    points = 0

    runs = _CHAR_RUN.findall(lowered)
    if runs:
        points += min(3, len(runs))

    if len(content) > 20 and content == content.upper() and content != content.lower():
        points += 2

    punctuation = _PUNCTUATION_RUN.findall(lowered)
    if punctuation:
        points += min(2, len(punctuation))

    points += sum(1 for phrase in SPAM_PHRASES if phrase in lowered)
    return points


def cross_channel_points(recent: Sequence[MessageRecord], channel_id: int) -> int:
    channels = {entry.channel_id for entry in recent}
    channels.add(channel_id)
    if len(channels) < 3:
        return 0
    return min(4, len(channels) - 2)


def rapid_element_points(snapshot: MessageSnapshot, recent_count: int) -> int:
    points = 0

    emoji_count = emoji.emoji_count(snapshot.content)
    if emoji_count > 5:
        points += min(3, emoji_count // 3)

    if snapshot.mention_count > 3:
        points += min(3, snapshot.mention_count - 3)

    if len(snapshot.content) < 5 and recent_count > 3:
        points += 2

    return points


def temporal_points(recent: Sequence[MessageRecord]) -> int:
    """Flag scripted posting: three or more messages at near-constant short intervals."""
    if len(recent) < 3:
        return 0

    intervals = [later.timestamp_ms - earlier.timestamp_ms for earlier, later in zip(recent, recent[1:])]
    mean = sum(intervals) / len(intervals)
    variance = sum((interval - mean) ** 2 for interval in intervals) / len(intervals)

    if math.sqrt(variance) < 500 and mean < 2000:
        return 3
    return 0


# ---------------------------------------------------------------------------
# Composite
# ---------------------------------------------------------------------------

def calculate_spam_score(snapshot: MessageSnapshot, recent: Sequence[MessageRecord], max_messages: int) -> SpamScore:
    """Score a message against the user's recent history.

    Args:
        snapshot: The message being checked.
        recent: The user's records inside the spam window, oldest first. The
            current message is expected to be the last entry.
        max_messages: ``spamDetection.maxMessages`` of the guild.

    Returns:
        SpamScore: Total points, the reasons that contributed, and the
        per-signal breakdown.
    """
    score = SpamScore()
    count = len(recent)

    score.add("frequency", frequency_points(count, max_messages), f"high frequency ({count} msgs)")

    cluster = largest_similarity_cluster([entry.content for entry in recent] + [snapshot.content])
    score.add("similarity", similarity_points(cluster), f"repeated content ({cluster} similar)")

    score.add("patterns", pattern_points(snapshot.content), "suspicious patterns")
    score.add("cross_channel", cross_channel_points(recent, snapshot.channel_id), "cross-channel spam")
    score.add("rapid_elements", rapid_element_points(snapshot, count), "rapid spam elements")
    score.add("temporal", temporal_points(recent), "bot-like timing")

    return score
