"""
Song resolution for Radio Tracker

A Song is identified by its normalized (title, artist) key. The first time
a key is seen, the entry is classified (song vs. radio show) using the
station it was heard on; the result is stored with the song and never
re-evaluated on later sightings. mark_existing_shows() is the explicit way
to re-run classification over stored songs.
"""

import sqlite3
import logging

from radio_tracker.normalization import normalize_text, clean_display_text
from radio_tracker.show_detection import classify

logger = logging.getLogger(__name__)


def find_or_create_song(db, artist, title, station_name=None):
    """Return the canonical song for an (artist, title) pair, creating it if needed

    Args:
        db: TrackerDatabase instance
        artist: Artist as extracted
        title: Title as extracted
        station_name: Name of the station the entry was heard on; used only
                      to classify a newly created song

    Returns:
        Song dict (id, title, artist, normalized_title, normalized_artist,
        is_non_song, non_song_type, created_at)
    """
    normalized_title = normalize_text(title)
    normalized_artist = normalize_text(artist)

    song = db.find_song(normalized_title, normalized_artist)
    if song:
        return song

    classification = {'is_show': False}
    if station_name:
        classification = classify(artist, title, station_name)

    try:
        song, created = db.create_song_if_absent(
            clean_display_text(title),
            clean_display_text(artist),
            normalized_title,
            normalized_artist,
            is_non_song=classification['is_show'],
            non_song_type='show' if classification['is_show'] else None,
        )
    except sqlite3.IntegrityError as e:
        # Another writer created the same key first
        logger.debug(f"Song insert conflict for {artist} - {title}: {e}")
        song, created = db.find_song(normalized_title, normalized_artist), False
        if song is None:
            raise

    if created:
        if classification['is_show']:
            logger.info(
                f"Auto-detected show: {artist} - {title} "
                f"(confidence: {classification['confidence']}, {classification['reason']})"
            )
        else:
            logger.debug(f"New song: {artist} - {title}")

    return song


def mark_existing_shows(db, apply=False):
    """Re-run show detection over songs already in the database

    Every music song is checked against each station it has been played on.

    Args:
        db: TrackerDatabase instance
        apply: Mark detected shows in the database (default: dry run)

    Returns:
        List of dicts: song_id, title, artist, station_name, play_count,
        confidence, reason (one per detected song)
    """
    detected = {}

    for pair in db.get_song_station_pairs():
        if pair['song_id'] in detected:
            continue

        classification = classify(pair['artist'], pair['title'], pair['station_name'])
        if classification['is_show']:
            detected[pair['song_id']] = {
                'song_id': pair['song_id'],
                'title': pair['title'],
                'artist': pair['artist'],
                'station_name': pair['station_name'],
                'play_count': pair['play_count'],
                'confidence': classification['confidence'],
                'reason': classification['reason'],
            }

    shows = list(detected.values())
    logger.info(f"Found {len(shows)} existing songs that look like shows")

    if apply and shows:
        updated = db.mark_songs_as_non_song([s['song_id'] for s in shows], 'show')
        logger.info(f"Marked {updated} songs as shows")

    return shows
