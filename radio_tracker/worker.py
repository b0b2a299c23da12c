"""
Scrape worker for Radio Tracker

Handles one fired station job:
1. Re-read the station (it may have been renamed or deactivated)
2. Extract now-playing metadata with the station's extractor
3. Hand non-empty metadata to the PlayRecorder

Extraction failures are expected (streams drop, pages change, APIs time
out): they are logged with the station slug and the cycle ends without any
state change. The next scheduled tick simply tries again.
"""

import logging

from radio_tracker.exceptions import ExtractionError
from radio_tracker.scrapers import BrowserManager, get_extractor
from radio_tracker.scheduler import build_job_payload
from radio_tracker.settings import DEFAULT_SETTINGS

logger = logging.getLogger(__name__)


class ScrapeWorker:
    """Runs scrape jobs

    Attributes:
        db: TrackerDatabase instance
        recorder: PlayRecorder instance
        browser: Shared BrowserManager for page-scrape stations
    """

    def __init__(self, db, recorder, settings=None, browser=None):
        self.db = db
        self.recorder = recorder
        self.scraping_settings = (settings or DEFAULT_SETTINGS).get('scraping', {})

        if browser is None:
            browser = BrowserManager(
                executable_path=self.scraping_settings.get('browser_executable'),
                user_agent=self.scraping_settings.get('user_agent', DEFAULT_SETTINGS['scraping']['user_agent']),
            )
        self.browser = browser

    def handle(self, payload):
        """Process one scrape job payload

        Args:
            payload: Job payload (station_id, slug, stream_url, metadata_type,
                     page_slug, feed_id)

        Returns:
            dict: {'success': bool, 'slug': str, ...} plus 'error' on failure,
                  'skipped' when nothing was playing, or the recorder's result

        Raises:
            sqlite3.Error: Database failures are not swallowed
        """
        slug = payload.get('slug')

        station = self.db.get_station(payload['station_id'])
        if station is None or not station['is_active']:
            logger.info(f"Skipping {slug}: station missing or inactive")
            return {'success': False, 'slug': slug, 'error': 'station not active'}

        try:
            extractor = get_extractor(payload, self.scraping_settings, browser=self.browser)
        except ValueError as e:
            logger.error(f"{slug}: invalid station configuration: {e}")
            return {'success': False, 'slug': slug, 'error': str(e)}

        try:
            metadata = extractor.extract()
        except ExtractionError as e:
            logger.warning(f"{slug}: {e.__class__.__name__}: {e}")
            return {'success': False, 'slug': slug, 'error': str(e)}

        if not metadata.get('artist') or not metadata.get('title'):
            logger.info(f"{slug}: no track information")
            return {'success': True, 'slug': slug, 'skipped': True}

        result = self.recorder.record(station, metadata)
        result['slug'] = slug
        return result

    def scrape_all_once(self, slug=None):
        """Scrape every active station (or one station) once, sequentially

        Args:
            slug: Only this station (optional)

        Returns:
            List of handle() results

        Raises:
            ValueError: If slug does not name a station
        """
        if slug:
            station = self.db.get_station_by_slug(slug)
            if station is None:
                raise ValueError(f"Unknown station: {slug}")
            stations = [station]
        else:
            stations = self.db.get_active_stations()

        results = []
        for station in stations:
            try:
                results.append(self.handle(build_job_payload(station)))
            except Exception as e:
                logger.error(f"Failed to scrape {station['slug']}: {e}")
                results.append({'success': False, 'slug': station['slug'], 'error': str(e)})
        return results

    def shutdown(self):
        """Release the shared browser"""
        self.browser.shutdown()
