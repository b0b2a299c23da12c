"""
Settings for Radio Tracker

Settings live in radio_tracker_settings.json in the working directory.
Missing keys fall back to DEFAULT_SETTINGS, so an absent or partial file
still yields a complete settings dict.
"""

import copy
import json
import logging
import os

logger = logging.getLogger(__name__)

SETTINGS_FILE = 'radio_tracker_settings.json'

DEFAULT_SETTINGS = {
    'database': {
        'file': 'radio_tracker.db',
    },
    'scraping': {
        'timeout_seconds': 10,
        'icy_timeout_seconds': 10,
        'page_load_timeout_seconds': 10,
        'user_agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36',
        'page_base_url': 'https://www.rova.nz/radio/',
        'json_api_base_url': 'https://us.api.iheart.com/api/v3/live-meta/stream/',
        'browser_executable': None,
    },
    'scheduler': {
        'max_workers': 10,
    },
    'duplicate_alert': {
        'enabled': True,
        'start_hour': 9,
        'end_hour': 17,
        'timezone': None,
    },
    'notifications': {
        'handlers': [
            {'type': 'log'},
        ],
    },
    'logging': {
        'file': 'radio_tracker.log',
        'max_bytes': 10485760,
        'backup_count': 5,
        'console_level': 'INFO',
        'file_level': 'ERROR',
    },
}


def _merge(defaults, overrides):
    """Recursively merge overrides into a copy of defaults"""
    merged = copy.deepcopy(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_settings(settings_file=SETTINGS_FILE):
    """Load settings from the JSON settings file

    Args:
        settings_file: Path to settings file (default: radio_tracker_settings.json)

    Returns:
        Settings dict with defaults filled in
    """
    if not os.path.exists(settings_file):
        logger.debug(f"No settings file at {settings_file}, using defaults")
        return copy.deepcopy(DEFAULT_SETTINGS)

    try:
        with open(settings_file, 'r') as f:
            user_settings = json.load(f)
    except (OSError, ValueError) as e:
        logger.error(f"Error loading settings from {settings_file}: {e}")
        return copy.deepcopy(DEFAULT_SETTINGS)

    return _merge(DEFAULT_SETTINGS, user_settings)
