"""
Database schema definitions for Radio Tracker

This module contains all CREATE TABLE statements and indexes for the
4-table SQLite schema.

Tables:
- stations: Radio stations and how to read their now-playing metadata
- songs: Canonical (title, artist) identities, unique by normalized key
- plays: One row per detected song change on a station (append-only)
- schema_version: Schema version tracking

Schema Version: 1
"""

import logging

logger = logging.getLogger(__name__)

METADATA_TYPES = ('icy', 'page-scrape', 'json-api')

NON_SONG_TYPES = ('show', 'commercial', 'station-id', 'weather', 'news', 'other')

PLAY_SOURCES = ('live', 'legacy')


def create_tables(cursor):
    """Create all tables and indexes

    Args:
        cursor: SQLite cursor object
    """
    # 1. stations table
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS stations (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            slug TEXT NOT NULL UNIQUE,
            name TEXT NOT NULL,
            stream_url TEXT NOT NULL,
            metadata_type TEXT NOT NULL DEFAULT 'icy'
                CHECK (metadata_type IN ('icy', 'page-scrape', 'json-api')),
            metadata_config TEXT NOT NULL DEFAULT '{}',
            scrape_interval INTEGER NOT NULL DEFAULT 60,
            is_active BOOLEAN NOT NULL DEFAULT 1,
            last_scraped_at TIMESTAMP,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)

    cursor.execute("CREATE INDEX IF NOT EXISTS idx_stations_active ON stations(is_active)")

    # 2. songs table
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS songs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT NOT NULL,
            artist TEXT NOT NULL,
            normalized_title TEXT NOT NULL,
            normalized_artist TEXT NOT NULL,
            is_non_song BOOLEAN NOT NULL DEFAULT 0,
            non_song_type TEXT
                CHECK (non_song_type IS NULL OR non_song_type IN
                       ('show', 'commercial', 'station-id', 'weather', 'news', 'other')),
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(normalized_title, normalized_artist)
        )
    """)

    cursor.execute("CREATE INDEX IF NOT EXISTS idx_songs_artist ON songs(normalized_artist)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_songs_non_song ON songs(is_non_song)")

    # 3. plays table
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS plays (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            station_id INTEGER NOT NULL,
            song_id INTEGER NOT NULL,
            played_at TIMESTAMP NOT NULL,
            raw_metadata TEXT,
            confidence_score REAL NOT NULL DEFAULT 1.0,
            source TEXT NOT NULL DEFAULT 'live',
            FOREIGN KEY (station_id) REFERENCES stations(id),
            FOREIGN KEY (song_id) REFERENCES songs(id)
        )
    """)

    cursor.execute("CREATE INDEX IF NOT EXISTS idx_plays_station_time ON plays(station_id, played_at DESC)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_plays_station_song_time ON plays(station_id, song_id, played_at)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_plays_song ON plays(song_id)")

    # 4. schema_version table
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS schema_version (
            version INTEGER PRIMARY KEY,
            applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            description TEXT
        )
    """)

    logger.debug("All tables and indexes created")
