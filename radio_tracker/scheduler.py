"""
APScheduler wrapper for Radio Tracker

Each active station gets one recurring job, id "station-<id>", that fires
every scrape_interval seconds with the station's job payload:

    {station_id, slug, stream_url, metadata_type, page_slug, feed_id}

Jobs of different stations run concurrently on the scheduler's thread pool.
A station's job never overlaps with itself (max_instances=1) and missed
runs are collapsed into one (coalesce=True).

Job queue interface:
- add_recurring(job_id, payload, interval_ms)
- list_recurring()
- remove_recurring(job_id)
- process(handler): handler(payload) is called for every fired job
"""

import logging
from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.jobstores.base import JobLookupError

logger = logging.getLogger(__name__)

STATION_JOB_PREFIX = 'station-'


def station_job_id(station_id):
    """Job id for a station's recurring scrape"""
    return f"{STATION_JOB_PREFIX}{station_id}"


def build_job_payload(station):
    """Build the scrape job payload for a station dict"""
    config = station.get('metadata_config') or {}
    return {
        'station_id': station['id'],
        'slug': station['slug'],
        'stream_url': station.get('stream_url'),
        'metadata_type': station['metadata_type'],
        'page_slug': config.get('page_slug') or station['slug'],
        'feed_id': config.get('feed_id'),
    }


class ScrapeScheduler:
    """Wrapper for APScheduler to manage per-station scrape jobs

    Attributes:
        db: TrackerDatabase instance (station source for schedule_station_scrapes)
        scheduler: BackgroundScheduler instance
    """

    def __init__(self, db, max_workers=10):
        """Initialize scheduler (not started)

        Args:
            db: TrackerDatabase instance
            max_workers: Thread pool size for concurrent station jobs (default: 10)
        """
        self.db = db
        self._handler = None
        self.scheduler = BackgroundScheduler(
            executors={'default': ThreadPoolExecutor(max_workers)},
            job_defaults={'max_instances': 1, 'coalesce': True},
            timezone=timezone.utc,
        )
        logger.info(f"Scheduler initialized (max workers: {max_workers})")

    # ==================== LIFECYCLE ====================

    def start(self, paused=False):
        """Start the scheduler

        Args:
            paused: Start without firing jobs until resume() (default: False)
        """
        self.scheduler.start(paused=paused)
        logger.info("Scheduler started" + (" (paused)" if paused else ""))

    def resume(self):
        self.scheduler.resume()

    @property
    def running(self):
        return self.scheduler.running

    def shutdown(self, wait=True):
        """Shutdown scheduler (graceful shutdown)

        Args:
            wait: Wait for running jobs to complete (default: True)
        """
        if not self.scheduler.running:
            return

        logger.info("Shutting down scheduler...")
        self.scheduler.shutdown(wait=wait)
        logger.info("Scheduler shut down")

    # ==================== JOB QUEUE ====================

    def process(self, handler):
        """Register the function that handles fired job payloads"""
        self._handler = handler

    def _run_job(self, job_id, payload):
        """Run the handler for one fired job

        Handler errors are logged so one bad tick never stops the schedule.
        """
        if self._handler is None:
            logger.warning(f"Job {job_id} fired with no handler registered")
            return

        try:
            self._handler(payload)
        except Exception as e:
            logger.error(f"Error running job {job_id}: {e}", exc_info=True)

    def add_recurring(self, job_id, payload, interval_ms, run_now=False):
        """Add (or replace) a recurring job

        Args:
            job_id: Unique job id
            payload: Dict passed to the handler on every run
            interval_ms: Milliseconds between runs
            run_now: Fire once immediately instead of after the first interval
        """
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")

        kwargs = {}
        if run_now:
            kwargs['next_run_time'] = datetime.now(timezone.utc)

        self.scheduler.add_job(
            self._run_job,
            trigger=IntervalTrigger(seconds=interval_ms / 1000),
            args=[job_id, payload],
            id=job_id,
            name=f"Scrape {payload.get('slug', job_id)}",
            replace_existing=True,
            **kwargs
        )
        logger.debug(f"Scheduled {job_id} every {interval_ms}ms")

    def list_recurring(self):
        """List scheduled jobs

        Returns:
            List of dicts: id, payload, interval_ms, next_run_time
        """
        jobs = []
        for job in self.scheduler.get_jobs():
            jobs.append({
                'id': job.id,
                'payload': job.args[1],
                'interval_ms': int(job.trigger.interval.total_seconds() * 1000),
                # Unset until the scheduler has started
                'next_run_time': getattr(job, 'next_run_time', None),
            })
        return jobs

    def remove_recurring(self, job_id):
        """Remove a recurring job

        Returns:
            True if removed, False if no such job
        """
        try:
            self.scheduler.remove_job(job_id)
            logger.debug(f"Removed job {job_id}")
            return True
        except JobLookupError:
            return False

    # ==================== STATION JOBS ====================

    def schedule_station_scrapes(self, run_now=False):
        """Replace all recurring jobs with one job per active station

        Safe to call repeatedly: the result is always exactly one job per
        active station with its current interval.

        Returns:
            int: Number of stations scheduled
        """
        for job in self.list_recurring():
            self.remove_recurring(job['id'])

        stations = self.db.get_active_stations()
        for station in stations:
            self.add_recurring(
                station_job_id(station['id']),
                build_job_payload(station),
                station['scrape_interval'] * 1000,
                run_now=run_now,
            )

        logger.info(f"Scheduled {len(stations)} station scrape jobs")
        return len(stations)

    def add_station_job(self, station_id, run_now=False):
        """Schedule (or reschedule) one station

        Raises:
            ValueError: If the station does not exist or is inactive
        """
        station = self.db.get_station(station_id)
        if station is None:
            raise ValueError(f"Station {station_id} not found")
        if not station['is_active']:
            raise ValueError(f"Station {station['slug']} is not active")

        self.add_recurring(
            station_job_id(station_id),
            build_job_payload(station),
            station['scrape_interval'] * 1000,
            run_now=run_now,
        )
        logger.info(f"Scheduled {station['slug']} every {station['scrape_interval']}s")

    def remove_station_job(self, station_id):
        """Stop polling one station

        Returns:
            True if a job was removed
        """
        return self.remove_recurring(station_job_id(station_id))
