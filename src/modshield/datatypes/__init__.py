"""
Shared data types for Modshield.

- **discord_datatypes.py**: Snowflake wrappers (GuildID, UserID, ChannelID,
  MessageID, RoleID) that normalize int and string IDs.

- **action_datatypes.py**: The ActionType enum for punishments plus the
  ViolationRecord, ModerationActionRecord and UserViolationStats records
  returned by the violation store and the engine.
"""
