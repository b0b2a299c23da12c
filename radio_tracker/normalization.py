"""
Text Normalization Module for Radio Tracker

This module provides:
- Match keys for song identity (normalize_text)
- Parsing of combined "Artist - Title" strings (parse_raw_metadata)
- Conservative cleanup of display text (clean_display_text)

Critical Design Decision:
- Match keys are used ONLY for equality matching, never for display
- Display text is stored as scraped, with whitespace/apostrophes tidied
- The parser never fails: downstream song resolution relies on it
"""

import re
import logging

logger = logging.getLogger(__name__)

UNKNOWN_ARTIST = 'Unknown Artist'

# Tried in this order; the first one present in the string wins
METADATA_SEPARATORS = [' - ', ' – ', ' — ', ': ']

ARTICLES = {'the', 'a', 'an'}

PUNCTUATION = re.compile(r'[^\w\s]')
APOSTROPHES = re.compile(r"[‘’‛′´`]")


def normalize_text(text):
    """Normalize text into a match key

    Rules:
    1. Lowercase
    2. Strip punctuation
    3. Collapse whitespace
    4. Drop leading articles ("the", "a", "an") as whole words

    If the text consists only of articles (e.g. "The The") the words are kept,
    so the key is never emptied by article stripping.

    Args:
        text: Text to normalize

    Returns:
        Normalized key (idempotent: normalize_text(normalize_text(x)) == normalize_text(x))

    Examples:
        >>> normalize_text("The Beatles")
        'beatles'
        >>> normalize_text("beatles")
        'beatles'
        >>> normalize_text("  AC/DC!  ")
        'acdc'
    """
    if not text:
        return ""

    text = PUNCTUATION.sub('', text.lower())
    words = text.split()

    index = 0
    while index < len(words) and words[index] in ARTICLES:
        index += 1

    if index < len(words):
        words = words[index:]

    return ' '.join(words)


def parse_raw_metadata(raw):
    """Split a combined metadata string into artist and title

    The first separator (in METADATA_SEPARATORS order) found in the string is
    used. The first field is the artist; everything after it, rejoined with
    the same separator, is the title.

    Args:
        raw: Combined string, e.g. "Lorde - Royals"

    Returns:
        dict: {'artist': str, 'title': str}. Falls back to
              {'artist': 'Unknown Artist', 'title': raw.strip()} when no
              separator is present.

    Examples:
        >>> parse_raw_metadata("Lorde - Royals")
        {'artist': 'Lorde', 'title': 'Royals'}
        >>> parse_raw_metadata("Six60 - Don't Forget Your Roots - Live")
        {'artist': 'Six60', 'title': "Don't Forget Your Roots - Live"}
        >>> parse_raw_metadata("Station Ident")
        {'artist': 'Unknown Artist', 'title': 'Station Ident'}
    """
    raw = raw or ''

    for separator in METADATA_SEPARATORS:
        if separator in raw:
            parts = raw.split(separator)
            return {
                'artist': parts[0].strip(),
                'title': separator.join(parts[1:]).strip(),
            }

    return {
        'artist': UNKNOWN_ARTIST,
        'title': raw.strip(),
    }


def clean_display_text(text):
    """Tidy scraped text for storage and display

    Only fixes obvious issues:
    1. Trim leading/trailing whitespace
    2. Unify apostrophe variants to a plain apostrophe (')
    3. Collapse internal whitespace

    Args:
        text: Text to clean

    Returns:
        Cleaned text

    Examples:
        >>> clean_display_text("  Don’t   Stop  ")
        "Don't Stop"
    """
    if not text:
        return ""

    text = APOSTROPHES.sub("'", text)
    return ' '.join(text.split())
