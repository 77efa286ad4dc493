"""
Database package for Modshield.

SQLite persistence for automod through a single aiosqlite connection in WAL
mode, with query timing.

Public API:
    - Database: coordinator for schema, stores and maintenance
    - get_db: the global Database instance
"""
