"""
Type-safe wrapper classes for Discord identifiers.

Discord snowflakes are 64-bit integers that are often stored or transmitted as
strings. The wrappers below normalize both forms so IDs compare and hash the
same regardless of where they came from (Discord objects, SQLite rows, YAML).
"""

from __future__ import annotations

from typing import Union


class Snowflake:
    """
    Base wrapper for a Discord snowflake ID.

    The value is stored as a canonical decimal string. Instances compare equal
    to other instances of the same class, to ints and to numeric strings.

    Example:
        >>> gid = GuildID(123456789012345678)
        >>> gid.to_int()
        123456789012345678
        >>> GuildID("123456789012345678") == 123456789012345678
        True
    """

    __slots__ = ("_value",)

    def __init__(self, value: Union[str, int, "Snowflake"]) -> None:
        """
        Initialize from a string, int, or another snowflake wrapper.

        Raises:
            ValueError: If the value cannot be converted to a valid snowflake.
        """
        if isinstance(value, Snowflake):
            self._value = value._value
        elif isinstance(value, bool):
            raise ValueError(f"Cannot create {type(self).__name__} from bool: {value}")
        elif isinstance(value, int):
            self._value = str(value)
        elif isinstance(value, str):
            self._value = str(int(value.strip()))
        else:
            raise ValueError(f"Cannot create {type(self).__name__} from {type(value).__name__}: {value}")

    @classmethod
    def from_int(cls, value: int):
        """Create a wrapper from an integer snowflake."""
        return cls(value)

    @classmethod
    def from_object(cls, obj):
        """Create a wrapper from any Discord object exposing an ``id`` attribute."""
        return cls(obj.id)

    def to_int(self) -> int:
        """Convert to an integer for Discord API calls and SQLite columns."""
        return int(self._value)

    def __int__(self) -> int:
        return int(self._value)

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Snowflake):
            return type(self) is type(other) and self._value == other._value
        if isinstance(other, str):
            return self._value == other
        if isinstance(other, int) and not isinstance(other, bool):
            return self._value == str(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)


class GuildID(Snowflake):
    """Snowflake of a Discord guild."""

    __slots__ = ()


class UserID(Snowflake):
    """Snowflake of a Discord user or member."""

    __slots__ = ()


class ChannelID(Snowflake):
    """Snowflake of a Discord text channel or thread."""

    __slots__ = ()


class MessageID(Snowflake):
    """Snowflake of a Discord message."""

    __slots__ = ()


class RoleID(Snowflake):
    """Snowflake of a Discord role."""

    __slots__ = ()
