"""
ICY stream metadata extractor

Shoutcast/Icecast streams interleave metadata with audio when the client
sends "Icy-MetaData: 1". The server answers with an icy-metaint header N:
after every N audio bytes comes one length byte L, then L*16 bytes of
metadata text such as:

    StreamTitle='Lorde - Royals';StreamUrl='';

The extractor is single-shot: it reads up to the first metadata block and
closes the connection, so each poll costs at most one block interval of
audio.
"""

import re
import socket
import time
import logging

import requests
import urllib3

from radio_tracker.exceptions import ExtractionError, Timeout, UnsupportedProtocol
from radio_tracker.normalization import parse_raw_metadata
from radio_tracker.scrapers.base import MetadataExtractor, empty_result, DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

# Public radio stream hosts frequently serve broken certificate chains;
# certificate checks are disabled for stream connections only (verify=False)
urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

ICY_USER_AGENT = 'RadioTracker/1.0'
READ_CHUNK_SIZE = 8192

STREAM_TITLE_PATTERN = re.compile(r"StreamTitle='(.*?)';", re.DOTALL)
STREAM_TITLE_FALLBACK_PATTERN = re.compile(r"StreamTitle='([^']*)'")


def _limit_read_timeout(stream, seconds):
    """Cap the underlying socket's read timeout (urllib3 responses only)"""
    connection = getattr(stream, 'connection', None)
    sock = getattr(connection, 'sock', None)
    if sock is not None:
        sock.settimeout(seconds)


def _read_exactly(stream, size, deadline=None):
    """Read exactly size bytes from a file-like stream

    Each read may block for at most the time left before the deadline.

    Raises:
        Timeout: If the deadline passes or the stream ends first
    """
    chunks = []
    remaining = size
    while remaining > 0:
        if deadline is not None:
            time_left = deadline - time.monotonic()
            if time_left <= 0:
                raise Timeout("No metadata boundary reached before the deadline")
            _limit_read_timeout(stream, time_left)

        chunk = stream.read(min(remaining, READ_CHUNK_SIZE))
        if not chunk:
            raise Timeout("Stream ended before metadata could be extracted")

        chunks.append(chunk)
        remaining -= len(chunk)

    return b''.join(chunks)


def read_icy_metadata_block(stream, metaint, deadline=None):
    """Skip metaint audio bytes and return the metadata block that follows

    Args:
        stream: File-like object positioned at the start of the audio body
        metaint: Bytes of audio between metadata blocks (icy-metaint)
        deadline: time.monotonic() value after which to give up (optional)

    Returns:
        bytes: Metadata block with NUL padding stripped (b'' for an empty block)

    Raises:
        Timeout: If the block cannot be read completely
    """
    _read_exactly(stream, metaint, deadline)

    length = _read_exactly(stream, 1, deadline)[0] * 16
    if length == 0:
        return b''

    return _read_exactly(stream, length, deadline).rstrip(b'\x00')


def parse_stream_title(block):
    """Extract the StreamTitle value from a metadata block

    Args:
        block: Raw metadata bytes

    Returns:
        str: StreamTitle contents, '' if absent or empty
    """
    if not block:
        return ''

    try:
        text = block.decode('utf-8')
    except UnicodeDecodeError:
        text = block.decode('latin-1')

    text = text.replace('\x00', '').strip()

    # Non-greedy up to "';" keeps apostrophes inside titles ("Don't Stop")
    match = STREAM_TITLE_PATTERN.search(text) or STREAM_TITLE_FALLBACK_PATTERN.search(text)
    return match.group(1).strip() if match else ''


class IcyExtractor(MetadataExtractor):
    """Reads one ICY metadata block from a station's audio stream"""

    metadata_type = 'icy'

    def __init__(self, stream_url, station=None, timeout=DEFAULT_TIMEOUT,
                 user_agent=ICY_USER_AGENT):
        super().__init__(station=station, timeout=timeout)
        self.stream_url = stream_url
        self.user_agent = user_agent

    @classmethod
    def from_job(cls, job, scraping_settings, browser=None):
        if not job.get('stream_url'):
            raise ValueError(f"Station {job.get('slug')} has no stream_url")

        return cls(
            job['stream_url'],
            station=job.get('slug'),
            timeout=scraping_settings.get('icy_timeout_seconds', DEFAULT_TIMEOUT),
        )

    def extract(self):
        """Read the current StreamTitle

        Returns:
            dict: {'artist', 'title', 'raw'}; all empty when the station sends
                  an empty metadata block

        Raises:
            UnsupportedProtocol: No (or zero) icy-metaint header
            Timeout: No complete metadata block before the deadline
            ExtractionError: Connection or HTTP failure
        """
        deadline = time.monotonic() + self.timeout
        headers = {
            'Icy-MetaData': '1',
            'User-Agent': self.user_agent,
            'Accept': '*/*',
        }

        try:
            response = requests.get(
                self.stream_url,
                headers=headers,
                stream=True,
                timeout=(self.timeout, self.timeout),
                verify=False,
            )
        except requests.exceptions.Timeout as e:
            raise Timeout(f"Stream timeout: {e}", station=self.station) from e
        except requests.exceptions.RequestException as e:
            raise ExtractionError(f"Stream request failed: {e}", station=self.station) from e

        try:
            response.raise_for_status()

            try:
                metaint = int(response.headers.get('icy-metaint') or 0)
            except ValueError:
                metaint = 0

            if metaint <= 0:
                logger.debug(f"No icy-metaint header for {self.stream_url}. Headers: {dict(response.headers)}")
                raise UnsupportedProtocol("Stream does not support ICY metadata", station=self.station)

            logger.debug(f"ICY metaint for {self.stream_url}: {metaint}")
            block = read_icy_metadata_block(response.raw, metaint, deadline)

        except Timeout as e:
            e.station = self.station
            raise
        except requests.exceptions.HTTPError as e:
            raise ExtractionError(f"Stream returned HTTP error: {e}", station=self.station) from e
        except (urllib3.exceptions.ReadTimeoutError, socket.timeout) as e:
            raise Timeout(f"Stream read timeout: {e}", station=self.station) from e
        except (urllib3.exceptions.HTTPError, requests.exceptions.RequestException, OSError) as e:
            raise ExtractionError(f"Stream read failed: {e}", station=self.station) from e
        finally:
            response.close()

        raw = parse_stream_title(block)
        if not raw:
            return empty_result()

        parsed = parse_raw_metadata(raw)
        return {
            'artist': parsed['artist'],
            'title': parsed['title'],
            'raw': raw,
        }


def supports_icy_metadata(stream_url, timeout=5):
    """Test if a stream URL supports ICY metadata

    Returns:
        bool: True if one metadata block could be read
    """
    try:
        IcyExtractor(stream_url, timeout=timeout).extract()
        return True
    except ExtractionError as e:
        logger.debug(f"Stream {stream_url} does not support ICY metadata: {e}")
        return False
