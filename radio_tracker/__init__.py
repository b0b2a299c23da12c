"""
Radio Tracker - Package Architecture

This package tracks "now playing" metadata for a set of internet radio
stations, keeps a per-station history of plays, and flags entries that are
station programming rather than music.

Package Structure:
------------------
radio_tracker/
├── __init__.py           # Package initialization (this file)
├── settings.py           # JSON settings file + defaults
├── logging_setup.py      # Console + rotating file logging
├── exceptions.py         # Extraction error taxonomy
├── normalization.py      # Match keys + "Artist - Title" parsing
├── show_detection.py     # Show/non-song classifier
├── scrapers/             # ICY, headless page scrape, JSON API extractors
├── database/             # SQLite schema, migrations, queries, CRUD
├── songs.py              # Song find-or-create
├── plays.py              # Play recorder (dedup state machine)
├── notifications.py      # Real-time event handlers
├── scheduler.py          # APScheduler wrapper, one job per station
├── worker.py             # Scrape job handler
└── cli.py                # Command-line interface

Data Flow:
---------
  Scheduler tick (per station interval)
      -> Extractor (icy | page-scrape | json-api)
      -> Parser / Normalizer
      -> Song resolution (classifier runs on first sighting)
      -> Play recorder (dedup against last play, write if new)
      -> Notification handlers (newSong / globalNewSong / duplicateAlert)

Architecture Principles:
-----------------------
1. Extraction failures are expected: log them, wait for the next tick
2. Plays are append-only; one row per detected song change per station
3. Songs are unique per (normalized title, normalized artist) system-wide
4. Scheduling is a full resync: clear all recurring jobs, re-add active stations

Usage:
------
# Start the scheduler
python -m radio_tracker.cli --run

# Poll every active station once
python -m radio_tracker.cli --scrape-once

Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "Radio Tracker Team"


def get_version():
    """Get the package version

    Returns:
        str: The version number
    """
    return __version__


# Import key classes for convenient access
from .database import TrackerDatabase

__all__ = [
    "TrackerDatabase",
    "__version__",
]
