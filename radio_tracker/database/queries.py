"""
Database query functions for Radio Tracker

This module contains all SELECT queries. Every function takes a cursor and
returns plain dicts (or lists of dicts), never sqlite rows.

Query Categories:
- Station queries: get_station_by_id, get_station_by_slug, get_active_stations
- Song queries: get_song_by_id, get_song_by_normalized_key
- Play queries: get_play_by_id, get_latest_play, get_plays_between, count_plays_between
- Read helpers: get_now_playing, get_recent_plays, get_song_station_pairs
"""

import json
import logging
from datetime import timezone

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S.%f'

STATION_COLUMNS = [
    'id', 'slug', 'name', 'stream_url', 'metadata_type', 'metadata_config',
    'scrape_interval', 'is_active', 'last_scraped_at', 'created_at'
]

SONG_COLUMNS = [
    'id', 'title', 'artist', 'normalized_title', 'normalized_artist',
    'is_non_song', 'non_song_type', 'created_at'
]

PLAY_COLUMNS = [
    'id', 'station_id', 'song_id', 'played_at', 'raw_metadata',
    'confidence_score', 'source'
]


def format_timestamp(dt):
    """Format a datetime for storage (UTC, fixed width so text order == time order)

    Naive datetimes are taken to be UTC already.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def _station_from_row(row):
    station = dict(zip(STATION_COLUMNS, row))
    station['metadata_config'] = json.loads(station['metadata_config'] or '{}')
    station['is_active'] = bool(station['is_active'])
    return station


def _song_from_row(row):
    song = dict(zip(SONG_COLUMNS, row))
    song['is_non_song'] = bool(song['is_non_song'])
    return song


def _play_from_row(row):
    play = dict(zip(PLAY_COLUMNS, row))
    if play['raw_metadata']:
        play['raw_metadata'] = json.loads(play['raw_metadata'])
    return play


# ==================== STATION QUERIES ====================

def get_station_by_id(cursor, station_id):
    """Get station by ID

    Args:
        cursor: SQLite cursor object
        station_id: Station ID (integer)

    Returns:
        Station dict or None if not found
    """
    cursor.execute(f"""
        SELECT {', '.join(STATION_COLUMNS)}
        FROM stations
        WHERE id = ?
    """, (station_id,))

    row = cursor.fetchone()
    return _station_from_row(row) if row else None


def get_station_by_slug(cursor, slug):
    """Get station by slug (e.g. 'the-rock')

    Returns:
        Station dict or None if not found
    """
    cursor.execute(f"""
        SELECT {', '.join(STATION_COLUMNS)}
        FROM stations
        WHERE slug = ?
    """, (slug,))

    row = cursor.fetchone()
    return _station_from_row(row) if row else None


def get_active_stations(cursor):
    """Get all active stations, ordered by name

    Returns:
        List of station dicts
    """
    cursor.execute(f"""
        SELECT {', '.join(STATION_COLUMNS)}
        FROM stations
        WHERE is_active = 1
        ORDER BY name
    """)
    return [_station_from_row(row) for row in cursor.fetchall()]


def get_all_stations(cursor):
    """Get all stations (active and inactive), ordered by name"""
    cursor.execute(f"""
        SELECT {', '.join(STATION_COLUMNS)}
        FROM stations
        ORDER BY name
    """)
    return [_station_from_row(row) for row in cursor.fetchall()]


# ==================== SONG QUERIES ====================

def get_song_by_id(cursor, song_id):
    """Get song by ID

    Returns:
        Song dict or None if not found
    """
    cursor.execute(f"""
        SELECT {', '.join(SONG_COLUMNS)}
        FROM songs
        WHERE id = ?
    """, (song_id,))

    row = cursor.fetchone()
    return _song_from_row(row) if row else None


def get_song_by_normalized_key(cursor, normalized_title, normalized_artist):
    """Get song by its unique (normalized_title, normalized_artist) key

    Args:
        cursor: SQLite cursor object
        normalized_title: Output of normalize_text(title)
        normalized_artist: Output of normalize_text(artist)

    Returns:
        Song dict or None if not found
    """
    cursor.execute(f"""
        SELECT {', '.join(SONG_COLUMNS)}
        FROM songs
        WHERE normalized_title = ? AND normalized_artist = ?
    """, (normalized_title, normalized_artist))

    row = cursor.fetchone()
    return _song_from_row(row) if row else None


# ==================== PLAY QUERIES ====================

def get_play_by_id(cursor, play_id):
    """Get play by ID

    Returns:
        Play dict or None if not found
    """
    cursor.execute(f"""
        SELECT {', '.join(PLAY_COLUMNS)}
        FROM plays
        WHERE id = ?
    """, (play_id,))

    row = cursor.fetchone()
    return _play_from_row(row) if row else None


def get_latest_play(cursor, station_id):
    """Get the most recent play for a station

    Ties on played_at are broken by id so the last inserted row wins.

    Returns:
        Play dict or None if the station has no plays yet
    """
    cursor.execute(f"""
        SELECT {', '.join(PLAY_COLUMNS)}
        FROM plays
        WHERE station_id = ?
        ORDER BY played_at DESC, id DESC
        LIMIT 1
    """, (station_id,))

    row = cursor.fetchone()
    return _play_from_row(row) if row else None


def get_plays_between(cursor, station_id, start, end, song_id=None):
    """Get plays for a station within [start, end], oldest first

    Args:
        cursor: SQLite cursor object
        station_id: Station ID
        start: Window start (datetime)
        end: Window end (datetime)
        song_id: Only plays of this song (optional)

    Returns:
        List of play dicts
    """
    sql = f"""
        SELECT {', '.join(PLAY_COLUMNS)}
        FROM plays
        WHERE station_id = ? AND played_at >= ? AND played_at <= ?
    """
    params = [station_id, format_timestamp(start), format_timestamp(end)]

    if song_id is not None:
        sql += " AND song_id = ?"
        params.append(song_id)

    sql += " ORDER BY played_at ASC, id ASC"

    cursor.execute(sql, params)
    return [_play_from_row(row) for row in cursor.fetchall()]


def count_plays_between(cursor, station_id, song_id, start, end):
    """Count plays of one song on one station within [start, end]

    Returns:
        int: Number of plays
    """
    cursor.execute("""
        SELECT COUNT(*)
        FROM plays
        WHERE station_id = ? AND song_id = ?
        AND played_at >= ? AND played_at <= ?
    """, (station_id, song_id, format_timestamp(start), format_timestamp(end)))
    return cursor.fetchone()[0]


# ==================== READ HELPERS ====================

def get_now_playing(cursor):
    """Get the latest play of every active station

    Returns:
        List of dicts: station_id, slug, name, title, artist, is_non_song, played_at
        (title/artist/played_at are None for stations without plays)
    """
    cursor.execute("""
        SELECT st.id, st.slug, st.name, s.title, s.artist, s.is_non_song, p.played_at
        FROM stations st
        LEFT JOIN plays p ON p.id = (
            SELECT p2.id FROM plays p2
            WHERE p2.station_id = st.id
            ORDER BY p2.played_at DESC, p2.id DESC
            LIMIT 1
        )
        LEFT JOIN songs s ON s.id = p.song_id
        WHERE st.is_active = 1
        ORDER BY st.name
    """)

    columns = ['station_id', 'slug', 'name', 'title', 'artist', 'is_non_song', 'played_at']
    results = []
    for row in cursor.fetchall():
        entry = dict(zip(columns, row))
        entry['is_non_song'] = bool(entry['is_non_song'])
        results.append(entry)
    return results


def get_recent_plays(cursor, limit=50, station_id=None):
    """Get the most recent plays with song and station names

    Args:
        cursor: SQLite cursor object
        limit: Maximum rows (default: 50)
        station_id: Only this station (optional)

    Returns:
        List of dicts, newest first
    """
    sql = """
        SELECT p.id, p.played_at, st.slug, st.name, s.title, s.artist, s.is_non_song, p.source
        FROM plays p
        JOIN stations st ON st.id = p.station_id
        JOIN songs s ON s.id = p.song_id
    """
    params = []
    if station_id is not None:
        sql += " WHERE p.station_id = ?"
        params.append(station_id)
    sql += " ORDER BY p.played_at DESC, p.id DESC LIMIT ?"
    params.append(limit)

    cursor.execute(sql, params)
    columns = ['id', 'played_at', 'slug', 'station_name', 'title', 'artist', 'is_non_song', 'source']
    return [dict(zip(columns, row)) for row in cursor.fetchall()]


def get_song_station_pairs(cursor):
    """Get every (song, station) combination that has been played, music only

    Used to re-run show detection over existing data.

    Returns:
        List of dicts: song_id, title, artist, station_id, station_name, play_count
    """
    cursor.execute("""
        SELECT s.id, s.title, s.artist, st.id, st.name, COUNT(p.id)
        FROM songs s
        JOIN plays p ON s.id = p.song_id
        JOIN stations st ON p.station_id = st.id
        WHERE s.is_non_song = 0
        GROUP BY s.id, st.id
        ORDER BY s.artist, s.title
    """)

    columns = ['song_id', 'title', 'artist', 'station_id', 'station_name', 'play_count']
    return [dict(zip(columns, row)) for row in cursor.fetchall()]
