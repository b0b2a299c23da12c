"""
Event notifications for Radio Tracker

Events are pushed to subscribers as (channel, event, payload):

Channels:
- station:<id>: Events for one station
- global: Events for every station

Events:
- newSong (station channel): A new play was recorded
- globalNewSong (global channel): Same, for subscribers of all stations
- duplicateAlert (global channel): A song was played more than once today
  during work hours

Handlers:
- log: Writes events to the application log
- webhook: POSTs events as JSON to a URL
- callback: In-process subscribers (used by embedding code and tests)

Delivery is best effort: a failing handler is logged and never affects the
recorded data or the other handlers.
"""

import json
import logging
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

GLOBAL_CHANNEL = 'global'

EVENT_NEW_SONG = 'newSong'
EVENT_GLOBAL_NEW_SONG = 'globalNewSong'
EVENT_DUPLICATE_ALERT = 'duplicateAlert'


def station_channel(station_id: int) -> str:
    """Channel name for one station's events"""
    return f"station:{station_id}"


class NotificationHandler:
    """Base class for notification handlers"""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """Initialize handler with configuration

        Args:
            config: Handler-specific configuration
        """
        self.config = config or {}
        self.enabled = self.config.get('enabled', True)

    def emit(self, channel: str, event: str, payload: Dict[str, Any]) -> bool:
        """Deliver one event

        Args:
            channel: 'global' or 'station:<id>'
            event: Event name (newSong, globalNewSong, duplicateAlert)
            payload: JSON-serializable event data

        Returns:
            bool: True if delivered
        """
        raise NotImplementedError("Subclasses must implement emit()")


class LogHandler(NotificationHandler):
    """Writes events to the log"""

    def emit(self, channel, event, payload):
        song = payload.get('song') or {}
        station = payload.get('station') or {}

        if event == EVENT_DUPLICATE_ALERT:
            logger.warning(
                f"[{channel}] {event}: {song.get('artist')} - {song.get('title')} "
                f"played {payload.get('count')} times today on {station.get('name')}"
            )
        else:
            logger.info(
                f"[{channel}] {event}: {song.get('artist')} - {song.get('title')} "
                f"on {station.get('name')}"
            )
        return True


class WebhookHandler(NotificationHandler):
    """POSTs events as JSON to a configured URL

    Config:
        url: Webhook endpoint (required)
        timeout: Request timeout in seconds (default: 10)
        events: Only send these event names (optional)
    """

    def emit(self, channel, event, payload):
        url = self.config.get('url')
        if not url:
            logger.error("Webhook URL not configured")
            return False

        events = self.config.get('events')
        if events and event not in events:
            return False

        body = json.dumps({'channel': channel, 'event': event, 'payload': payload}, default=str)

        try:
            response = requests.post(
                url,
                data=body,
                headers={'Content-Type': 'application/json'},
                timeout=self.config.get('timeout', 10),
            )
            response.raise_for_status()
            logger.debug(f"Webhook {event} sent to {url}")
            return True

        except requests.exceptions.RequestException as e:
            logger.error(f"Failed to send webhook {event} to {url}: {e}")
            return False


class CallbackHandler(NotificationHandler):
    """Dispatches events to in-process subscriber functions"""

    def __init__(self, config=None):
        super().__init__(config)
        self._subscribers = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, channel: str, callback: Callable[[str, Dict[str, Any]], None]):
        """Register callback(event, payload) for a channel"""
        with self._lock:
            self._subscribers[channel].append(callback)

    def unsubscribe(self, channel: str, callback):
        """Remove a callback from a channel (no-op if not registered)"""
        with self._lock:
            if callback in self._subscribers.get(channel, []):
                self._subscribers[channel].remove(callback)

    def emit(self, channel, event, payload):
        with self._lock:
            callbacks = list(self._subscribers.get(channel, []))

        for callback in callbacks:
            callback(event, payload)
        return True


class Notifier:
    """Fans each event out to every enabled handler"""

    def __init__(self, handlers: Optional[List[NotificationHandler]] = None):
        self.handlers = list(handlers or [])

    def add_handler(self, handler: NotificationHandler):
        self.handlers.append(handler)

    def emit(self, channel: str, event: str, payload: Dict[str, Any]) -> int:
        """Send an event to all handlers

        Returns:
            int: Number of handlers that delivered it
        """
        delivered = 0
        for handler in self.handlers:
            if not handler.enabled:
                continue
            try:
                if handler.emit(channel, event, payload):
                    delivered += 1
            except Exception as e:
                logger.error(
                    f"Notification handler {handler.__class__.__name__} failed on {event}: {e}",
                    exc_info=True
                )
        return delivered


HANDLER_TYPES = {
    'log': LogHandler,
    'webhook': WebhookHandler,
    'callback': CallbackHandler,
}


def get_handler(handler_type: str, config: Dict[str, Any]) -> Optional[NotificationHandler]:
    """Factory function to get notification handler

    Args:
        handler_type: 'log', 'webhook' or 'callback'
        config: Handler configuration

    Returns:
        NotificationHandler instance or None if type is unknown
    """
    handler_class = HANDLER_TYPES.get(handler_type)
    if not handler_class:
        logger.error(f"Unknown notification type: {handler_type}")
        return None

    return handler_class(config)


def build_notifier(settings: Optional[Dict[str, Any]] = None) -> Notifier:
    """Build a Notifier from the 'notifications' settings section

    Args:
        settings: Full settings dict (default: log handler only)
    """
    if settings is None:
        handler_configs = [{'type': 'log'}]
    else:
        handler_configs = settings.get('notifications', {}).get('handlers', [])

    notifier = Notifier()
    for config in handler_configs:
        handler = get_handler(config.get('type'), config)
        if handler is not None:
            notifier.add_handler(handler)

    logger.debug(f"Notifier configured with {len(notifier.handlers)} handler(s)")
    return notifier
