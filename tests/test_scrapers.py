"""
Metadata extractor tests

ICY streams are simulated with in-memory byte streams, HTTP with mocked
requests.get and the browser with a stub; nothing touches the network.
"""

import io
import time
import asyncio
import logging

import pytest
import requests
from unittest.mock import Mock, patch

from radio_tracker.exceptions import (
    ExtractionError, Timeout, UnsupportedProtocol, NoMatch, PageLoadTimeout, InvalidResponse,
)
from radio_tracker.scrapers import (
    IcyExtractor, PageScrapeExtractor, JsonApiExtractor, BrowserManager,
    get_extractor, resolve_metadata_type, supports_icy_metadata,
)
from radio_tracker.scrapers.icy import read_icy_metadata_block, parse_stream_title
from radio_tracker.scrapers.page_scrape import extract_now_playing, page_text
from tests.conftest import TEST_SETTINGS

SCRAPING = TEST_SETTINGS['scraping']

ROCK_HTML = """
<html><body>
  <div class="player">
    <span>Now playing</span><span>Hash Pipe</span> • <span>Weezer</span>
    <span>Hash Pipe</span> • <span>Weezer</span>
  </div>
</body></html>
"""


def icy_body(stream_title, metaint=16, audio=b'\xff'):
    """Build an ICY response body: metaint audio bytes, length byte, metadata block"""
    if stream_title is None:
        return audio * metaint + bytes([0]) + audio * metaint

    meta = f"StreamTitle='{stream_title}';StreamUrl='';".encode('utf-8')
    blocks = -(-len(meta) // 16)
    meta = meta.ljust(blocks * 16, b'\x00')
    return audio * metaint + bytes([blocks]) + meta + audio * metaint


def icy_response(body, metaint='16'):
    response = Mock()
    response.headers = {'icy-metaint': metaint} if metaint is not None else {}
    response.raw = io.BytesIO(body)
    return response


@pytest.mark.unit
class TestIcyReader:
    """Test the ICY block reader and StreamTitle parser"""

    def test_reads_first_block(self):
        stream = io.BytesIO(icy_body('Lorde - Royals'))
        block = read_icy_metadata_block(stream, 16)
        assert parse_stream_title(block) == 'Lorde - Royals'

    def test_empty_block(self):
        stream = io.BytesIO(icy_body(None))
        assert read_icy_metadata_block(stream, 16) == b''

    def test_stream_ends_early(self):
        with pytest.raises(Timeout):
            read_icy_metadata_block(io.BytesIO(b'\xff' * 10), 16)

    def test_incomplete_block(self):
        body = icy_body('Lorde - Royals')[:20]
        with pytest.raises(Timeout):
            read_icy_metadata_block(io.BytesIO(body), 16)

    def test_deadline(self):
        stream = io.BytesIO(icy_body('Lorde - Royals'))
        with pytest.raises(Timeout):
            read_icy_metadata_block(stream, 16, deadline=time.monotonic() - 1)

    def test_read_timeout_limited_to_deadline(self):
        class SocketStream(io.BytesIO):
            connection = Mock()

        stream = SocketStream(icy_body('Lorde - Royals'))
        read_icy_metadata_block(stream, 16, deadline=time.monotonic() + 2)

        timeouts = [c.args[0] for c in stream.connection.sock.settimeout.call_args_list]
        assert timeouts
        assert all(0 < t <= 2 for t in timeouts)

    def test_apostrophe_in_title(self):
        block = b"StreamTitle='Fleetwood Mac - Don't Stop';StreamUrl='';\x00\x00"
        assert parse_stream_title(block) == "Fleetwood Mac - Don't Stop"

    def test_latin1_fallback(self):
        block = "StreamTitle='Beyoncé - Halo';".encode('latin-1')
        assert parse_stream_title(block) == 'Beyoncé - Halo'

    def test_no_stream_title(self):
        assert parse_stream_title(b"StreamUrl='http://x';") == ''


@pytest.mark.unit
class TestIcyExtractor:
    """Test IcyExtractor with mocked HTTP"""

    def test_extract(self):
        response = icy_response(icy_body('Lorde - Royals'))
        with patch('radio_tracker.scrapers.icy.requests.get', return_value=response) as mock_get:
            result = IcyExtractor('http://stream.test/zm', station='zm').extract()

        assert result == {'artist': 'Lorde', 'title': 'Royals', 'raw': 'Lorde - Royals'}
        assert mock_get.call_args.kwargs['headers']['Icy-MetaData'] == '1'
        assert mock_get.call_args.kwargs['stream'] is True
        response.close.assert_called_once()

    def test_title_without_separator(self):
        response = icy_response(icy_body('ZM Breakfast'))
        with patch('radio_tracker.scrapers.icy.requests.get', return_value=response):
            result = IcyExtractor('http://stream.test/zm').extract()

        assert result['artist'] == 'Unknown Artist'
        assert result['title'] == 'ZM Breakfast'

    def test_empty_metadata(self):
        response = icy_response(icy_body(None))
        with patch('radio_tracker.scrapers.icy.requests.get', return_value=response):
            result = IcyExtractor('http://stream.test/zm').extract()

        assert result == {'artist': '', 'title': '', 'raw': ''}

    def test_no_metaint_header(self):
        response = icy_response(b'\xff' * 64, metaint=None)
        with patch('radio_tracker.scrapers.icy.requests.get', return_value=response):
            with pytest.raises(UnsupportedProtocol) as exc_info:
                IcyExtractor('http://stream.test/zm', station='zm').extract()

        assert exc_info.value.station == 'zm'
        response.close.assert_called_once()

    def test_zero_metaint(self):
        response = icy_response(b'\xff' * 64, metaint='0')
        with patch('radio_tracker.scrapers.icy.requests.get', return_value=response):
            with pytest.raises(UnsupportedProtocol):
                IcyExtractor('http://stream.test/zm').extract()

    def test_truncated_stream(self):
        response = icy_response(b'\xff' * 8)
        with patch('radio_tracker.scrapers.icy.requests.get', return_value=response):
            with pytest.raises(Timeout) as exc_info:
                IcyExtractor('http://stream.test/zm', station='zm').extract()

        assert exc_info.value.station == 'zm'
        response.close.assert_called_once()

    def test_connect_timeout(self):
        with patch('radio_tracker.scrapers.icy.requests.get',
                   side_effect=requests.exceptions.ConnectTimeout('slow')):
            with pytest.raises(Timeout):
                IcyExtractor('http://stream.test/zm').extract()

    def test_connection_error(self):
        with patch('radio_tracker.scrapers.icy.requests.get',
                   side_effect=requests.exceptions.ConnectionError('refused')):
            with pytest.raises(ExtractionError):
                IcyExtractor('http://stream.test/zm').extract()

    def test_supports_icy_metadata(self):
        with patch('radio_tracker.scrapers.icy.requests.get',
                   return_value=icy_response(icy_body('Lorde - Royals'))):
            assert supports_icy_metadata('http://stream.test/zm') is True

        with patch('radio_tracker.scrapers.icy.requests.get',
                   return_value=icy_response(b'', metaint=None)):
            assert supports_icy_metadata('http://stream.test/zm') is False


@pytest.mark.unit
class TestPageParsing:
    """Test now-playing text extraction"""

    def test_rendered_page(self):
        result = extract_now_playing(page_text(ROCK_HTML))
        assert result == {'artist': 'Weezer', 'title': 'Hash Pipe'}

    def test_flat_text(self):
        result = extract_now_playing("Now playingHash Pipe • WeezerHash Pipe • Weezer")
        assert result == {'artist': 'Weezer', 'title': 'Hash Pipe'}

    def test_case_insensitive(self):
        result = extract_now_playing("NOW PLAYING Thunderstruck • AC/DC")
        assert result == {'artist': 'AC/DC', 'title': 'Thunderstruck'}

    def test_no_match(self):
        assert extract_now_playing("Listen live to The Rock") is None

    def test_too_short(self):
        assert extract_now_playing("Now playing X • Weezer") is None


class StubBrowser:
    """Stands in for BrowserManager: returns canned HTML without a browser"""

    def __init__(self, html=None, error=None):
        self.html = html
        self.error = error
        self.calls = 0

    def run(self, coroutine_factory, timeout):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.html


@pytest.mark.unit
class TestPageScrapeExtractor:
    """Test PageScrapeExtractor with a stub browser"""

    def test_extract(self):
        extractor = PageScrapeExtractor('the-rock', StubBrowser(ROCK_HTML), station='the-rock',
                                        base_url='https://radio.test/radio/')
        assert extractor.url == 'https://radio.test/radio/the-rock'
        assert extractor.extract() == {
            'artist': 'Weezer', 'title': 'Hash Pipe', 'raw': 'Weezer - Hash Pipe',
        }

    def test_no_match(self):
        extractor = PageScrapeExtractor('the-rock', StubBrowser('<p>Off air</p>'), station='the-rock')
        with pytest.raises(NoMatch) as exc_info:
            extractor.extract()
        assert exc_info.value.station == 'the-rock'

    def test_page_load_timeout(self):
        browser = StubBrowser(error=PageLoadTimeout('too slow'))
        extractor = PageScrapeExtractor('the-rock', browser, station='the-rock')
        with pytest.raises(PageLoadTimeout) as exc_info:
            extractor.extract()
        assert exc_info.value.station == 'the-rock'

    def test_page_slug_falls_back_to_station_slug(self):
        job = {'slug': 'the-rock', 'metadata_type': 'page-scrape', 'page_slug': None}
        extractor = PageScrapeExtractor.from_job(job, SCRAPING, browser=StubBrowser())
        assert extractor.url == 'https://radio.test/radio/the-rock'

    def test_requires_browser(self):
        with pytest.raises(ValueError):
            PageScrapeExtractor.from_job({'slug': 'the-rock'}, SCRAPING)


@pytest.mark.unit
class TestBrowserManager:
    """Test the browser loop thread without launching a browser"""

    def test_run_on_loop_thread(self):
        manager = BrowserManager()
        try:
            assert manager.run(lambda: asyncio.sleep(0, result=42), timeout=5) == 42
        finally:
            manager.shutdown()

    def test_run_timeout(self):
        manager = BrowserManager()
        try:
            with pytest.raises(PageLoadTimeout):
                manager.run(lambda: asyncio.sleep(5), timeout=0.1)
        finally:
            manager.shutdown()

    def test_shutdown_without_use(self):
        BrowserManager().shutdown()


def json_response(data):
    response = Mock()
    response.json.return_value = data
    return response


@pytest.mark.unit
class TestJsonApiExtractor:
    """Test JsonApiExtractor with mocked HTTP"""

    def extractor(self):
        return JsonApiExtractor(6191, station='radio-hauraki',
                                base_url='https://api.test/live-meta/stream/')

    def test_extract(self):
        data = {'artist': 'Foo Fighters', 'title': 'Everlong', 'album': 'The Colour and the Shape',
                'imagePath': 'https://img.test/everlong.jpg', 'trackDuration': 250, 'status': 'match'}

        with patch('radio_tracker.scrapers.json_api.requests.get',
                   return_value=json_response(data)) as mock_get:
            result = self.extractor().extract()

        assert mock_get.call_args.args[0] == 'https://api.test/live-meta/stream/6191/currentTrackMeta'
        assert result == {
            'artist': 'Foo Fighters',
            'title': 'Everlong',
            'raw': 'Foo Fighters - Everlong',
            'album': 'The Colour and the Shape',
            'image_path': 'https://img.test/everlong.jpg',
            'duration': 250,
        }

    def test_missing_title(self):
        with patch('radio_tracker.scrapers.json_api.requests.get',
                   return_value=json_response({'artist': 'Foo Fighters'})):
            with pytest.raises(InvalidResponse):
                self.extractor().extract()

    def test_numeric_artist(self):
        data = {'artist': 311, 'title': 'Amber', 'status': 'match'}
        with patch('radio_tracker.scrapers.json_api.requests.get', return_value=json_response(data)):
            result = self.extractor().extract()

        assert result['artist'] == '311'
        assert result['raw'] == '311 - Amber'

    def test_non_text_field(self):
        data = {'artist': {'name': 'Foo Fighters'}, 'title': 'Everlong'}
        with patch('radio_tracker.scrapers.json_api.requests.get', return_value=json_response(data)):
            with pytest.raises(InvalidResponse):
                self.extractor().extract()

    def test_non_match_status_warns(self, caplog):
        data = {'artist': 'Radio Hauraki', 'title': 'Hauraki Breakfast', 'status': 'nomatch'}
        with patch('radio_tracker.scrapers.json_api.requests.get', return_value=json_response(data)):
            with caplog.at_level(logging.WARNING):
                result = self.extractor().extract()

        assert result['title'] == 'Hauraki Breakfast'
        assert 'nomatch' in caplog.text

    def test_http_error(self):
        response = json_response({})
        response.raise_for_status.side_effect = requests.exceptions.HTTPError('500 Server Error')
        with patch('radio_tracker.scrapers.json_api.requests.get', return_value=response):
            with pytest.raises(InvalidResponse):
                self.extractor().extract()

    def test_not_json(self):
        response = Mock()
        response.json.side_effect = ValueError('not json')
        with patch('radio_tracker.scrapers.json_api.requests.get', return_value=response):
            with pytest.raises(InvalidResponse):
                self.extractor().extract()

    def test_timeout(self):
        with patch('radio_tracker.scrapers.json_api.requests.get',
                   side_effect=requests.exceptions.ReadTimeout('slow')):
            with pytest.raises(Timeout):
                self.extractor().extract()


@pytest.mark.unit
class TestGetExtractor:
    """Test extractor selection from job payloads"""

    def test_icy(self):
        job = {'slug': 'zm', 'metadata_type': 'icy', 'stream_url': 'http://stream.test/zm'}
        extractor = get_extractor(job, SCRAPING)
        assert isinstance(extractor, IcyExtractor)
        assert extractor.timeout == 2

    def test_page_scrape(self):
        job = {'slug': 'the-rock', 'metadata_type': 'page-scrape', 'page_slug': 'the-rock'}
        assert isinstance(get_extractor(job, SCRAPING, browser=StubBrowser()), PageScrapeExtractor)

    def test_json_api(self):
        job = {'slug': 'radio-hauraki', 'metadata_type': 'json-api', 'feed_id': 6191}
        extractor = get_extractor(job, SCRAPING)
        assert isinstance(extractor, JsonApiExtractor)
        assert extractor.url == 'https://api.test/live-meta/stream/6191/currentTrackMeta'

    def test_legacy_aliases(self):
        assert resolve_metadata_type('rova') == 'page-scrape'
        assert resolve_metadata_type('iheart') == 'json-api'

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            get_extractor({'slug': 'x', 'metadata_type': 'rss'}, SCRAPING)

    def test_json_api_without_feed(self):
        with pytest.raises(ValueError):
            get_extractor({'slug': 'x', 'metadata_type': 'json-api'}, SCRAPING)

    def test_icy_without_stream_url(self):
        with pytest.raises(ValueError):
            get_extractor({'slug': 'x', 'metadata_type': 'icy'}, SCRAPING)
