"""
Database CRUD operations for Radio Tracker

This module contains all INSERT/UPDATE operations. Functions take a cursor
and never commit: the caller owns the transaction (see
TrackerDatabase.transaction).

CRUD Categories:
- Station CRUD: add_station, touch_station_last_scraped
- Song CRUD: insert_song_if_absent, mark_songs_as_non_song
- Play CRUD: insert_play (plays are append-only: no update/delete here)
"""

import json
import logging

from .queries import format_timestamp
from .schema import METADATA_TYPES, NON_SONG_TYPES, PLAY_SOURCES

logger = logging.getLogger(__name__)


# ==================== STATION CRUD ====================

def add_station(cursor, slug, name, stream_url, metadata_type='icy',
                metadata_config=None, scrape_interval=60, is_active=True):
    """Add a new station

    Args:
        cursor: SQLite cursor object
        slug: Unique URL-safe identifier (e.g. 'the-rock')
        name: Display name (e.g. 'The Rock')
        stream_url: Audio stream URL
        metadata_type: 'icy', 'page-scrape' or 'json-api' (default: 'icy')
        metadata_config: Source-specific settings, e.g. {'page_slug': 'the-rock'}
                         or {'feed_id': 6190}
        scrape_interval: Seconds between polls (default: 60)
        is_active: Whether the station is polled (default: True)

    Returns:
        int: New station ID

    Raises:
        ValueError: If metadata_type or scrape_interval is invalid
        sqlite3.IntegrityError: If the slug already exists
    """
    if metadata_type not in METADATA_TYPES:
        raise ValueError(
            f"Unsupported metadata_type: '{metadata_type}'. "
            f"Supported types: {', '.join(METADATA_TYPES)}"
        )

    if int(scrape_interval) <= 0:
        raise ValueError(f"scrape_interval must be positive, got {scrape_interval}")

    cursor.execute("""
        INSERT INTO stations (slug, name, stream_url, metadata_type, metadata_config,
                              scrape_interval, is_active)
        VALUES (?, ?, ?, ?, ?, ?, ?)
    """, (slug, name, stream_url, metadata_type, json.dumps(metadata_config or {}),
          int(scrape_interval), 1 if is_active else 0))

    logger.info(f"Added station {slug} ({metadata_type}, every {scrape_interval}s)")
    return cursor.lastrowid


def touch_station_last_scraped(cursor, station_id, when):
    """Set a station's last_scraped_at

    Args:
        cursor: SQLite cursor object
        station_id: Station ID
        when: datetime of the successful extraction
    """
    cursor.execute("""
        UPDATE stations
        SET last_scraped_at = ?
        WHERE id = ?
    """, (format_timestamp(when), station_id))


# ==================== SONG CRUD ====================

def insert_song_if_absent(cursor, title, artist, normalized_title, normalized_artist,
                          is_non_song=False, non_song_type=None, created_at=None):
    """Insert a song unless its normalized key already exists

    This is an atomic upsert on the UNIQUE(normalized_title, normalized_artist)
    index: when two writers race on the same new song, exactly one row is
    created and the other insert is a no-op.

    Returns:
        bool: True if this call created the row
    """
    if non_song_type is not None and non_song_type not in NON_SONG_TYPES:
        raise ValueError(f"Unsupported non_song_type: '{non_song_type}'")

    if created_at is None:
        cursor.execute("""
            INSERT INTO songs (title, artist, normalized_title, normalized_artist,
                               is_non_song, non_song_type)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(normalized_title, normalized_artist) DO NOTHING
        """, (title, artist, normalized_title, normalized_artist,
              1 if is_non_song else 0, non_song_type))
    else:
        cursor.execute("""
            INSERT INTO songs (title, artist, normalized_title, normalized_artist,
                               is_non_song, non_song_type, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(normalized_title, normalized_artist) DO NOTHING
        """, (title, artist, normalized_title, normalized_artist,
              1 if is_non_song else 0, non_song_type, format_timestamp(created_at)))

    return cursor.rowcount > 0


def mark_songs_as_non_song(cursor, song_ids, non_song_type='show'):
    """Flag songs as non-song content

    Returns:
        int: Number of rows updated
    """
    if not song_ids:
        return 0

    if non_song_type not in NON_SONG_TYPES:
        raise ValueError(f"Unsupported non_song_type: '{non_song_type}'")

    placeholders = ', '.join('?' for _ in song_ids)
    cursor.execute(f"""
        UPDATE songs
        SET is_non_song = 1, non_song_type = ?
        WHERE id IN ({placeholders})
    """, [non_song_type, *song_ids])
    return cursor.rowcount


# ==================== PLAY CRUD ====================

def insert_play(cursor, station_id, song_id, played_at, raw_metadata=None,
                confidence_score=1.0, source='live'):
    """Append a play

    Args:
        cursor: SQLite cursor object
        station_id: Station ID
        song_id: Song ID
        played_at: datetime the play was detected (worker clock)
        raw_metadata: Upstream payload (dict), stored as JSON for audit
        confidence_score: 0..1 (default: 1.0)
        source: 'live' for scraped plays, 'legacy' for imported ones

    Returns:
        int: New play ID
    """
    if source not in PLAY_SOURCES:
        raise ValueError(f"Unsupported play source: '{source}'")

    if not 0 <= confidence_score <= 1:
        raise ValueError(f"confidence_score must be within 0..1, got {confidence_score}")

    cursor.execute("""
        INSERT INTO plays (station_id, song_id, played_at, raw_metadata, confidence_score, source)
        VALUES (?, ?, ?, ?, ?, ?)
    """, (station_id, song_id, format_timestamp(played_at),
          json.dumps(raw_metadata) if raw_metadata is not None else None,
          confidence_score, source))

    return cursor.lastrowid
