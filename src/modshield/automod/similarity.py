"""Dice coefficient string similarity over character bigrams."""

from __future__ import annotations

import re
from collections import Counter

_WHITESPACE = re.compile(r"\s+")


def _bigrams(text: str) -> Counter:
    return Counter(text[i:i + 2] for i in range(len(text) - 1))


def similarity(first: str, second: str) -> float:
    """Return the Dice similarity of two strings in ``[0.0, 1.0]``.

    Whitespace is removed before comparing and case is kept as given, so
    callers lowercase both sides for a case-insensitive comparison.

    Two strings that are equal after whitespace removal (including two empty
    strings) score 1.0. Otherwise a string shorter than two characters has no
    bigrams and scores 0.0.

    Args:
        first: First string.
        second: Second string.

    Returns:
        float: ``2 * |shared bigrams| / (|bigrams(first)| + |bigrams(second)|)``
    """
    first = _WHITESPACE.sub("", first)
    second = _WHITESPACE.sub("", second)

    if first == second:
        return 1.0
    if len(first) < 2 or len(second) < 2:
        return 0.0

    first_bigrams = _bigrams(first)
    second_bigrams = _bigrams(second)
    shared = sum((first_bigrams & second_bigrams).values())

    return (2.0 * shared) / (len(first) + len(second) - 2)
