"""
Database package for Radio Tracker

This package provides a modular database interface with:
- schema.py: Database table definitions
- migrations.py: Schema creation/version tracking
- queries.py: SELECT query functions
- crud.py: INSERT/UPDATE operations

The main TrackerDatabase class (below) owns the connection and provides a
unified interface to all database operations.

Schema Version: 1
"""

import sqlite3
import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

from .migrations import _initialize_schema
from . import queries
from . import crud


class TrackerDatabase:
    """SQLite database with 4-table schema

    Tables:
    - stations: Radio station metadata and polling config
    - songs: Canonical songs, unique by normalized (title, artist)
    - plays: Append-only play history
    - schema_version: Schema version tracking

    One connection is shared by all scheduler worker threads. Every operation
    runs inside transaction(), which serializes access to the connection.
    """

    # Current schema version
    SCHEMA_VERSION = 1

    def __init__(self, db_path):
        self.db_path = db_path
        self.conn = None
        self._lock = threading.RLock()

    def connect(self):
        """Connect to database and create schema if needed"""
        # Scheduler worker threads share this connection (guarded by self._lock)
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False, timeout=30)

        cursor = self.conn.cursor()
        try:
            cursor.execute("PRAGMA foreign_keys = ON")
            _initialize_schema(cursor, self.conn, self.SCHEMA_VERSION)
        finally:
            cursor.close()

        logger.info(f"Connected to database {self.db_path}")

    def close(self):
        """Close the connection"""
        with self._lock:
            if self.conn is not None:
                self.conn.close()
                self.conn = None

    def get_cursor(self):
        """Get a new cursor (caller must close it)"""
        return self.conn.cursor()

    @contextmanager
    def transaction(self, immediate=False):
        """Run a block of statements as one transaction

        Commits on success, rolls back and re-raises on any error.

        Args:
            immediate: Take the SQLite write lock up front (BEGIN IMMEDIATE),
                       so a read-then-write block cannot interleave with
                       another writer process

        Yields:
            SQLite cursor
        """
        with self._lock:
            cursor = self.conn.cursor()
            try:
                if immediate and not self.conn.in_transaction:
                    cursor.execute("BEGIN IMMEDIATE")
                yield cursor
                self.conn.commit()
            except Exception:
                self.conn.rollback()
                raise
            finally:
                cursor.close()

    # ==================== STATION METHODS ====================

    def get_station(self, station_id):
        """Get station by ID"""
        with self.transaction() as cursor:
            return queries.get_station_by_id(cursor, station_id)

    def get_station_by_slug(self, slug):
        """Get station by slug"""
        with self.transaction() as cursor:
            return queries.get_station_by_slug(cursor, slug)

    def get_active_stations(self):
        """Get all active stations"""
        with self.transaction() as cursor:
            return queries.get_active_stations(cursor)

    def get_all_stations(self):
        """Get all stations"""
        with self.transaction() as cursor:
            return queries.get_all_stations(cursor)

    def add_station(self, slug, name, stream_url, metadata_type='icy',
                    metadata_config=None, scrape_interval=60, is_active=True):
        """Add a new station, returns the new station dict"""
        with self.transaction() as cursor:
            station_id = crud.add_station(cursor, slug, name, stream_url, metadata_type,
                                          metadata_config, scrape_interval, is_active)
            return queries.get_station_by_id(cursor, station_id)

    def touch_last_scraped(self, station_id, when=None):
        """Set a station's last_scraped_at (default: now)"""
        with self.transaction() as cursor:
            crud.touch_station_last_scraped(cursor, station_id, when or datetime.now(timezone.utc))

    # ==================== SONG METHODS ====================

    def get_song(self, song_id):
        """Get song by ID"""
        with self.transaction() as cursor:
            return queries.get_song_by_id(cursor, song_id)

    def find_song(self, normalized_title, normalized_artist):
        """Get song by normalized key"""
        with self.transaction() as cursor:
            return queries.get_song_by_normalized_key(cursor, normalized_title, normalized_artist)

    def create_song_if_absent(self, title, artist, normalized_title, normalized_artist,
                              is_non_song=False, non_song_type=None):
        """Insert a song unless its normalized key exists, then return the stored row

        Returns:
            tuple: (song dict, created bool)
        """
        with self.transaction(immediate=True) as cursor:
            created = crud.insert_song_if_absent(
                cursor, title, artist, normalized_title, normalized_artist,
                is_non_song, non_song_type
            )
            song = queries.get_song_by_normalized_key(cursor, normalized_title, normalized_artist)
            return song, created

    def mark_songs_as_non_song(self, song_ids, non_song_type='show'):
        """Flag songs as non-song content, returns number updated"""
        with self.transaction() as cursor:
            return crud.mark_songs_as_non_song(cursor, song_ids, non_song_type)

    # ==================== PLAY METHODS ====================

    def get_latest_play(self, station_id):
        """Get the most recent play for a station"""
        with self.transaction() as cursor:
            return queries.get_latest_play(cursor, station_id)

    def record_play_if_changed(self, station_id, song_id, played_at, raw_metadata=None,
                               confidence_score=1.0, source='live'):
        """Insert a play unless the station's latest play is already this song

        The latest-play read, the insert and the last_scraped_at update run
        in one write transaction.

        Returns:
            tuple: (play dict, created bool); play is the existing latest play
                   when created is False
        """
        with self.transaction(immediate=True) as cursor:
            latest = queries.get_latest_play(cursor, station_id)
            if latest is not None and latest['song_id'] == song_id:
                return latest, False

            play_id = crud.insert_play(cursor, station_id, song_id, played_at,
                                       raw_metadata, confidence_score, source)
            crud.touch_station_last_scraped(cursor, station_id, played_at)
            return queries.get_play_by_id(cursor, play_id), True

    def get_plays_between(self, station_id, start, end, song_id=None):
        """Get plays for a station in a time window"""
        with self.transaction() as cursor:
            return queries.get_plays_between(cursor, station_id, start, end, song_id)

    def count_plays_between(self, station_id, song_id, start, end):
        """Count plays of one song on one station in a time window"""
        with self.transaction() as cursor:
            return queries.count_plays_between(cursor, station_id, song_id, start, end)

    def get_now_playing(self):
        """Get the latest play of every active station"""
        with self.transaction() as cursor:
            return queries.get_now_playing(cursor)

    def get_recent_plays(self, limit=50, station_id=None):
        """Get the most recent plays"""
        with self.transaction() as cursor:
            return queries.get_recent_plays(cursor, limit, station_id)

    def get_song_station_pairs(self):
        """Get every played (song, station) combination, music only"""
        with self.transaction() as cursor:
            return queries.get_song_station_pairs(cursor)


__all__ = ['TrackerDatabase', 'queries', 'crud']
