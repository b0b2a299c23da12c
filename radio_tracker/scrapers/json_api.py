"""
JSON now-playing API extractor

Queries a live-metadata endpoint per feed:

    GET {base_url}{feed_id}/currentTrackMeta

    {"artist": "...", "title": "...", "album": "...", "imagePath": "...",
     "duration": 215, "status": "match"}
"""

import logging

import requests

from radio_tracker.exceptions import ExtractionError, InvalidResponse, Timeout
from radio_tracker.scrapers.base import MetadataExtractor, DEFAULT_TIMEOUT, DEFAULT_USER_AGENT

logger = logging.getLogger(__name__)

DEFAULT_JSON_API_BASE_URL = 'https://us.api.iheart.com/api/v3/live-meta/stream/'

# Optional response fields passed through to the result
PASSTHROUGH_FIELDS = {
    'album': 'album',
    'imagePath': 'image_path',
    'trackDuration': 'duration',
}


class JsonApiExtractor(MetadataExtractor):
    """Reads the current track from a JSON live-metadata endpoint"""

    metadata_type = 'json-api'

    def __init__(self, feed_id, station=None, timeout=DEFAULT_TIMEOUT,
                 base_url=DEFAULT_JSON_API_BASE_URL, user_agent=DEFAULT_USER_AGENT):
        super().__init__(station=station, timeout=timeout)
        self.feed_id = feed_id
        self.base_url = base_url
        self.user_agent = user_agent

    @property
    def url(self):
        return f"{self.base_url.rstrip('/')}/{self.feed_id}/currentTrackMeta"

    @classmethod
    def from_job(cls, job, scraping_settings, browser=None):
        if job.get('feed_id') in (None, ''):
            raise ValueError(f"json-api station {job.get('slug')} has no feed_id")

        return cls(
            job['feed_id'],
            station=job.get('slug'),
            timeout=scraping_settings.get('timeout_seconds', DEFAULT_TIMEOUT),
            base_url=scraping_settings.get('json_api_base_url', DEFAULT_JSON_API_BASE_URL),
            user_agent=scraping_settings.get('user_agent', DEFAULT_USER_AGENT),
        )

    def _text_field(self, data, key):
        """Return a stripped string field; numbers are accepted (e.g. the band 311)"""
        value = data.get(key)
        if value is None:
            return ''
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        if not isinstance(value, str):
            raise InvalidResponse(
                f"Field '{key}' for feed {self.feed_id} is {type(value).__name__}, not text",
                station=self.station,
            )
        return value.strip()

    def extract(self):
        """Fetch and validate the current track

        Raises:
            Timeout: Request timed out
            InvalidResponse: Non-2xx status, non-JSON body or missing artist/title
            ExtractionError: Connection failure
        """
        try:
            response = requests.get(
                self.url,
                headers={'User-Agent': self.user_agent, 'Accept': 'application/json'},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.Timeout as e:
            raise Timeout(f"Timeout fetching {self.url}", station=self.station) from e
        except requests.exceptions.HTTPError as e:
            raise InvalidResponse(f"HTTP error from {self.url}: {e}", station=self.station) from e
        except requests.exceptions.RequestException as e:
            raise ExtractionError(f"Request to {self.url} failed: {e}", station=self.station) from e

        try:
            data = response.json()
        except ValueError as e:
            raise InvalidResponse(f"Non-JSON response from {self.url}", station=self.station) from e

        if not isinstance(data, dict):
            raise InvalidResponse(f"Unexpected response shape from {self.url}", station=self.station)

        artist = self._text_field(data, 'artist')
        title = self._text_field(data, 'title')
        if not artist or not title:
            raise InvalidResponse(
                f"Missing artist or title for feed {self.feed_id}",
                station=self.station,
            )

        status = data.get('status')
        if status is not None and status != 'match':
            logger.warning(f"Feed {self.feed_id} returned status '{status}' for {artist} - {title}")

        result = {
            'artist': artist,
            'title': title,
            'raw': f"{artist} - {title}",
        }
        for source_key, result_key in PASSTHROUGH_FIELDS.items():
            if data.get(source_key) is not None:
                result[result_key] = data[source_key]

        return result
