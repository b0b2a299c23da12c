"""
Common extractor contract

Every extractor is built for one station and returns the same shape:

    {'artist': str, 'title': str, 'raw': str, ...optional extras}

or raises an ExtractionError subclass. An empty artist/title is only ever
returned by the ICY extractor for an empty metadata block ("no info").
"""

import logging

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10
DEFAULT_USER_AGENT = 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36'


def empty_result():
    """The successful "no track information" result"""
    return {'artist': '', 'title': '', 'raw': ''}


class MetadataExtractor:
    """Base class for now-playing extractors

    Attributes:
        metadata_type: Source type handled by the subclass
        station: Station slug, used for log context only
    """

    metadata_type = None

    def __init__(self, station=None, timeout=DEFAULT_TIMEOUT):
        self.station = station
        self.timeout = timeout

    @classmethod
    def from_job(cls, job, scraping_settings, browser=None):
        """Build an extractor from a scheduler job payload

        Args:
            job: Job payload dict (see scheduler.build_job_payload)
            scraping_settings: 'scraping' section of the settings
            browser: Shared BrowserManager (page-scrape only)
        """
        raise NotImplementedError("Subclasses must implement from_job()")

    def extract(self):
        """Fetch the station's current track

        Returns:
            dict: {'artist', 'title', 'raw'}

        Raises:
            ExtractionError: On any failure
        """
        raise NotImplementedError("Subclasses must implement extract()")

    def __repr__(self):
        return f"<{self.__class__.__name__} station={self.station!r}>"
