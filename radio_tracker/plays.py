"""
Play recording for Radio Tracker

A play is recorded when a station's current track differs from its latest
recorded play. Repeated polls of the same track are not plays.

After each new play:
- newSong is emitted on the station channel
- globalNewSong is emitted on the global channel
- During work hours (Monday to Friday, 09:00-17:00 local by default) a
  song played more than once today on the same station triggers a
  duplicateAlert on the global channel
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from radio_tracker.songs import find_or_create_song
from radio_tracker.notifications import (
    GLOBAL_CHANNEL, EVENT_NEW_SONG, EVENT_GLOBAL_NEW_SONG, EVENT_DUPLICATE_ALERT,
    station_channel,
)

logger = logging.getLogger(__name__)

DEFAULT_DUPLICATE_ALERT = {
    'enabled': True,
    'start_hour': 9,
    'end_hour': 17,
    'timezone': None,
}


def utc_now():
    return datetime.now(timezone.utc)


def _station_summary(station):
    return {
        'id': station['id'],
        'slug': station.get('slug'),
        'name': station.get('name'),
    }


class PlayRecorder:
    """Records plays for extracted metadata and emits play events

    Attributes:
        db: TrackerDatabase instance
        notifier: Object with emit(channel, event, payload)
        duplicate_alert: Duplicate alert settings (enabled, start_hour,
                         end_hour, timezone)
        clock: Callable returning the current aware UTC datetime
    """

    def __init__(self, db, notifier, settings=None, clock=None):
        self.db = db
        self.notifier = notifier
        self.clock = clock or utc_now

        self.duplicate_alert = dict(DEFAULT_DUPLICATE_ALERT)
        if settings:
            self.duplicate_alert.update(settings.get('duplicate_alert', {}))

        self._tz = self._load_timezone(self.duplicate_alert.get('timezone'))

        self._locks = {}
        self._locks_guard = threading.Lock()

    @staticmethod
    def _load_timezone(name):
        if not name:
            return None
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError) as e:
            logger.error(f"Unknown duplicate alert timezone '{name}', using local time: {e}")
            return None

    def _station_lock(self, station_id):
        with self._locks_guard:
            if station_id not in self._locks:
                self._locks[station_id] = threading.Lock()
            return self._locks[station_id]

    def record(self, station, metadata):
        """Record a play if the station's track has changed

        Args:
            station: Station dict (id, slug, name)
            metadata: Extraction result with non-empty 'artist' and 'title';
                      the whole dict is stored as the play's raw metadata

        Returns:
            dict: {'success': True, 'duplicate': bool, 'song': dict, 'play': dict or None}

        Raises:
            sqlite3.Error: Database failures propagate to the caller
        """
        song = find_or_create_song(self.db, metadata['artist'], metadata['title'], station.get('name'))

        with self._station_lock(station['id']):
            play, created = self.db.record_play_if_changed(
                station['id'],
                song['id'],
                self.clock(),
                raw_metadata=metadata,
            )

        if not created:
            logger.debug(f"{station.get('slug')}: still playing {song['artist']} - {song['title']}")
            return {'success': True, 'duplicate': True, 'song': song, 'play': None}

        logger.info(f"{station.get('slug')}: new play {song['artist']} - {song['title']}")

        payload = {
            'station': _station_summary(station),
            'song': song,
            'play': play,
            'played_at': play['played_at'],
        }
        self.notifier.emit(station_channel(station['id']), EVENT_NEW_SONG, payload)
        self.notifier.emit(GLOBAL_CHANNEL, EVENT_GLOBAL_NEW_SONG, payload)

        try:
            self.check_duplicate(station, song)
        except Exception as e:
            logger.error(f"Duplicate check failed for {station.get('slug')}: {e}", exc_info=True)

        return {'success': True, 'duplicate': False, 'song': song, 'play': play}

    def work_day_window(self, now=None):
        """Return today's [start of work hours, now] window if now is within work hours

        Args:
            now: Aware UTC datetime (default: clock())

        Returns:
            tuple: (start, end) as aware datetimes, or None outside work hours
        """
        now = now or self.clock()
        local_now = now.astimezone(self._tz) if self._tz else now.astimezone()

        if local_now.weekday() >= 5:
            return None

        start_hour = self.duplicate_alert.get('start_hour', 9)
        end_hour = self.duplicate_alert.get('end_hour', 17)
        if not start_hour <= local_now.hour < end_hour:
            return None

        start_of_work = local_now.replace(hour=start_hour, minute=0, second=0, microsecond=0)
        return start_of_work, local_now + timedelta(microseconds=1)

    def check_duplicate(self, station, song):
        """Emit duplicateAlert if this song was played more than once in today's work hours

        Returns:
            int: Play count since the start of work hours, or 0 if the check did not run
        """
        if not self.duplicate_alert.get('enabled', True):
            return 0

        window = self.work_day_window()
        if window is None:
            return 0

        start, end = window
        count = self.db.count_plays_between(station['id'], song['id'], start, end)
        if count <= 1:
            return count

        plays = self.db.get_plays_between(station['id'], start, end, song_id=song['id'])
        logger.info(
            f"{station.get('slug')}: {song['artist']} - {song['title']} played {count} times during work hours"
        )

        self.notifier.emit(GLOBAL_CHANNEL, EVENT_DUPLICATE_ALERT, {
            'station': _station_summary(station),
            'song': song,
            'count': count,
            'plays': plays,
        })
        return count
