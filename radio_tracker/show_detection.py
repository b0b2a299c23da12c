"""
Radio show detection for Radio Tracker

Stations often put their own programming into the now-playing feed:
- The artist field holds the station name (e.g. "The Rock", "Mai", "George FM")
- The title holds the show name (e.g. "The Rock Weekends", "Hit Music Now")

A station-name match on the artist is REQUIRED to classify an entry as a
show. A show-like title only raises the confidence; on its own it never
triggers classification (plenty of real songs are called "Party" or "Mix").

Classification runs once, when a Song is first created. See songs.py.
"""

import re
import logging

from radio_tracker.normalization import normalize_text

logger = logging.getLogger(__name__)

# Station name -> names the station uses for itself in the artist field
STATION_NAME_MAPPINGS = {
    'mai fm': ['mai', 'mai fm'],
    'the rock': ['the rock', 'rock'],
    'the edge': ['the edge', 'edge'],
    'the breeze': ['the breeze', 'breeze'],
    'more fm': ['more fm', 'more'],
    'george fm': ['george fm', 'george'],
    'coast': ['coast'],
    'zm': ['zm'],
    'newstalk zb': ['newstalk zb', 'newstalk', 'zb'],
    'radio hauraki': ['radio hauraki', 'hauraki'],
}

# Patterns that commonly indicate show/program names in titles
SHOW_TITLE_PATTERNS = [
    re.compile(r'\b(monday|tuesday|wednesday|thursday|friday|saturday|sunday)s?\b', re.IGNORECASE),
    re.compile(r'weekend', re.IGNORECASE),
    re.compile(r'morning', re.IGNORECASE),
    re.compile(r'afternoon', re.IGNORECASE),
    re.compile(r'evening', re.IGNORECASE),
    re.compile(r'night', re.IGNORECASE),
    re.compile(r'breakfast', re.IGNORECASE),
    re.compile(r'drive', re.IGNORECASE),
    re.compile(r'show$', re.IGNORECASE),
    re.compile(r'hits?(\s+now)?$', re.IGNORECASE),
    re.compile(r'music\s+now', re.IGNORECASE),
    re.compile(r'top\s+\d+', re.IGNORECASE),
    re.compile(r'countdown', re.IGNORECASE),
    re.compile(r'hot(test)?\s+', re.IGNORECASE),
    re.compile(r'best\s+of', re.IGNORECASE),
    re.compile(r'favou?rites?', re.IGNORECASE),
    re.compile(r'non[\s-]?stop', re.IGNORECASE),
    re.compile(r'mix', re.IGNORECASE),
    re.compile(r'chill', re.IGNORECASE),
    re.compile(r'beats', re.IGNORECASE),
    re.compile(r'working', re.IGNORECASE),  # e.g. "Beats Working"
    re.compile(r'party', re.IGNORECASE),
]


def is_artist_station_match(artist, station_name):
    """Check if an artist name matches or is part of a station name

    Args:
        artist: Artist field from metadata
        station_name: Display name of the station

    Returns:
        bool: True if the artist is the station itself
    """
    normalized_artist = normalize_text(artist)
    normalized_station = normalize_text(station_name)

    if not normalized_artist or not normalized_station:
        return False

    if normalized_artist == normalized_station:
        return True

    # Short tokens ("a", "z") would match almost any station name
    if len(normalized_artist) >= 2 and normalized_artist in normalized_station:
        return True

    for station_key, variations in STATION_NAME_MAPPINGS.items():
        normalized_key = normalize_text(station_key)
        if normalized_station == normalized_key or normalized_key in normalized_station:
            if any(normalize_text(v) == normalized_artist for v in variations):
                return True

    return False


def is_show_like_title(title):
    """Check if a title looks like a show/program name"""
    return any(pattern.search(title or '') for pattern in SHOW_TITLE_PATTERNS)


def classify(artist, title, station_name):
    """Decide whether a track entry is a radio show rather than a song

    Args:
        artist: Artist field from metadata
        title: Title field from metadata
        station_name: Name of the station that played it

    Returns:
        dict: {'is_show': bool, 'confidence': float, 'reason': str or None}

    Examples:
        >>> classify("The Rock", "The Rock Weekends", "The Rock")['confidence']
        1.0
        >>> classify("Ed Sheeran", "Shape of You", "The Rock")
        {'is_show': False, 'confidence': 0, 'reason': None}
    """
    if not is_artist_station_match(artist, station_name):
        return {'is_show': False, 'confidence': 0, 'reason': None}

    if is_show_like_title(title):
        return {
            'is_show': True,
            'confidence': 1.0,
            'reason': f'Artist "{artist}" matches station and title "{title}" has show-like pattern',
        }

    return {
        'is_show': True,
        'confidence': 0.9,
        'reason': f'Artist "{artist}" matches station name "{station_name}"',
    }
