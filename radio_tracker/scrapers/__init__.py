"""
Now-playing extractors for Radio Tracker

Supported metadata types:
- icy: Shoutcast/Icecast in-stream metadata (icy.py)
- page-scrape: Headless-browser scrape of a station web page (page_scrape.py)
- json-api: JSON live-metadata endpoint (json_api.py)

Usage:
    extractor = get_extractor(job, settings['scraping'], browser=browser)
    metadata = extractor.extract()
"""

import logging

from radio_tracker.scrapers.base import MetadataExtractor, empty_result
from radio_tracker.scrapers.icy import IcyExtractor, supports_icy_metadata
from radio_tracker.scrapers.page_scrape import BrowserManager, PageScrapeExtractor
from radio_tracker.scrapers.json_api import JsonApiExtractor

logger = logging.getLogger(__name__)

EXTRACTORS = {
    'icy': IcyExtractor,
    'page-scrape': PageScrapeExtractor,
    'json-api': JsonApiExtractor,
}

# Older station records name the provider instead of the mechanism
TYPE_ALIASES = {
    'rova': 'page-scrape',
    'iheart': 'json-api',
}


def resolve_metadata_type(metadata_type):
    """Map a metadata type (or legacy alias) to a supported type

    Raises:
        ValueError: If the type is unknown
    """
    resolved = TYPE_ALIASES.get(metadata_type, metadata_type)
    if resolved not in EXTRACTORS:
        raise ValueError(
            f"Unsupported metadata_type: '{metadata_type}'. "
            f"Supported types: {', '.join(EXTRACTORS)}"
        )
    return resolved


def get_extractor(job, scraping_settings=None, browser=None):
    """Build the extractor for a scrape job

    Args:
        job: Job payload dict with slug, stream_url, metadata_type and
             page_slug/feed_id where relevant
        scraping_settings: 'scraping' settings section (default: built-in defaults)
        browser: Shared BrowserManager, required for page-scrape stations

    Returns:
        MetadataExtractor subclass instance

    Raises:
        ValueError: Unknown type or incomplete station configuration
    """
    metadata_type = resolve_metadata_type(job.get('metadata_type'))
    extractor_class = EXTRACTORS[metadata_type]
    return extractor_class.from_job(job, scraping_settings or {}, browser=browser)


__all__ = [
    'MetadataExtractor',
    'IcyExtractor',
    'PageScrapeExtractor',
    'JsonApiExtractor',
    'BrowserManager',
    'EXTRACTORS',
    'TYPE_ALIASES',
    'empty_result',
    'get_extractor',
    'resolve_metadata_type',
    'supports_icy_metadata',
]
