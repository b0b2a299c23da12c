"""
Database schema initialization for Radio Tracker

Creates the schema on a fresh database and records its version. A database
written by a newer release is left alone and reported.
"""

import logging

from .schema import create_tables

logger = logging.getLogger(__name__)


def _initialize_schema(cursor, conn, SCHEMA_VERSION):
    """Initialize schema (create new or verify existing)

    Args:
        cursor: SQLite cursor object
        conn: SQLite connection object
        SCHEMA_VERSION: Current schema version (from database module)
    """
    cursor.execute("""
        SELECT name FROM sqlite_master
        WHERE type='table' AND name='schema_version'
    """)

    if not cursor.fetchone():
        _create_new_schema(cursor, conn, SCHEMA_VERSION)
        return

    cursor.execute("SELECT version FROM schema_version ORDER BY version DESC LIMIT 1")
    result = cursor.fetchone()
    current_version = result[0] if result else 0

    if current_version > SCHEMA_VERSION:
        logger.warning(
            f"Database schema version {current_version} is newer than this release "
            f"supports ({SCHEMA_VERSION})"
        )
    elif current_version < SCHEMA_VERSION:
        # CREATE TABLE IF NOT EXISTS fills in anything missing
        create_tables(cursor)
        _record_version(cursor, SCHEMA_VERSION, 'Schema upgrade')
        conn.commit()
        logger.info(f"Database schema upgraded from v{current_version} to v{SCHEMA_VERSION}")


def _create_new_schema(cursor, conn, SCHEMA_VERSION):
    """Create new schema (stations, songs, plays, schema_version)"""
    create_tables(cursor)
    _record_version(cursor, SCHEMA_VERSION, 'Initial schema')
    conn.commit()
    logger.info(f"Created new database schema (v{SCHEMA_VERSION})")


def _record_version(cursor, version, description):
    cursor.execute("""
        INSERT OR REPLACE INTO schema_version (version, description)
        VALUES (?, ?)
    """, (version, description))
