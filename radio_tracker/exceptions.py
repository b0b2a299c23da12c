"""
Extraction error taxonomy for Radio Tracker

Every extractor failure is one of these. They are expected and frequent:
the worker logs them and waits for the station's next scheduled tick.
"""


class ExtractionError(Exception):
    """Base class for all metadata extraction failures"""

    def __init__(self, message, station=None):
        super().__init__(message)
        self.station = station


class UnsupportedProtocol(ExtractionError):
    """Stream does not advertise ICY metadata (no icy-metaint header)"""


class Timeout(ExtractionError):
    """No complete metadata block arrived before the deadline"""


class NoMatch(ExtractionError):
    """Page loaded but the "Now playing" pattern was not found"""


class PageLoadTimeout(ExtractionError):
    """Headless browser did not finish loading the page in time"""


class InvalidResponse(ExtractionError):
    """Upstream API answered without the required fields"""
