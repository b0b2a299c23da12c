"""
Headless-browser page scraper

Some stations only publish now-playing text on a JavaScript-rendered web
page, e.g. https://www.rova.nz/radio/the-rock. The rendered text contains:

    Now playing<track> • <artist><track> • <artist>...

One Chromium instance is shared by every page-scrape station. Playwright
objects belong to the event loop that created them, so BrowserManager runs
the async API on its own loop thread; scheduler worker threads submit work to
it and wait for the result. Each scrape gets a fresh browser context (page)
that is closed afterwards.
"""

import re
import asyncio
import logging
import threading
import concurrent.futures
from contextlib import asynccontextmanager

from bs4 import BeautifulSoup
from playwright.async_api import async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from radio_tracker.exceptions import ExtractionError, NoMatch, PageLoadTimeout
from radio_tracker.scrapers.base import MetadataExtractor, DEFAULT_TIMEOUT, DEFAULT_USER_AGENT

logger = logging.getLogger(__name__)

DEFAULT_PAGE_BASE_URL = 'https://www.rova.nz/radio/'

NOW_PLAYING_PATTERN = re.compile(r'Now playing([^•]+)•([^@]{1,150})', re.IGNORECASE)

BROWSER_ARGS = [
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-dev-shm-usage',
    '--disable-gpu',
]

# Extra time allowed on top of the page load timeout for browser startup
BROWSER_STARTUP_GRACE_SECONDS = 20


def page_text(html):
    """Flatten rendered HTML into its text content"""
    soup = BeautifulSoup(html, 'html.parser')
    return soup.get_text()


def extract_now_playing(text):
    """Find the current track in flattened page text

    The page repeats the track/artist pair, so the artist capture usually
    runs on into the repeated track name and is cut back at it.

    Args:
        text: Page text content

    Returns:
        dict: {'artist', 'title'} or None if no usable match

    Examples:
        >>> extract_now_playing("Now playingHash Pipe • WeezerHash Pipe • Weezer")
        {'artist': 'Weezer', 'title': 'Hash Pipe'}
    """
    match = NOW_PLAYING_PATTERN.search(text or '')
    if not match:
        return None

    track = match.group(1).strip()
    artist = match.group(2).strip()

    if track and artist.endswith(track):
        artist = artist[:-len(track)].strip()

    if track and track in artist:
        artist = artist.split(track)[0].strip()

    # Text after the artist on the same rendered line
    artist = artist.split('\n')[0].strip()

    if len(track) > 1 and len(artist) > 1:
        return {'artist': artist, 'title': track}

    return None


class BrowserManager:
    """Owns the shared headless Chromium instance

    The browser is launched lazily on first use and relaunched if it has
    disconnected. Call shutdown() when the process exits.
    """

    def __init__(self, executable_path=None, headless=True, user_agent=DEFAULT_USER_AGENT):
        self.executable_path = executable_path
        self.headless = headless
        self.user_agent = user_agent

        self._loop = None
        self._thread = None
        self._start_lock = threading.Lock()
        self._launch_lock = None
        self._playwright = None
        self._browser = None

    def _ensure_loop(self):
        with self._start_lock:
            if self._loop is None:
                self._loop = asyncio.new_event_loop()
                self._thread = threading.Thread(
                    target=self._loop.run_forever,
                    name='browser-loop',
                    daemon=True,
                )
                self._thread.start()
                logger.debug("Browser event loop started")
            return self._loop

    async def _get_browser(self):
        # Only ever runs on the browser loop thread
        if self._launch_lock is None:
            self._launch_lock = asyncio.Lock()

        async with self._launch_lock:
            if self._browser is None or not self._browser.is_connected():
                if self._playwright is None:
                    self._playwright = await async_playwright().start()

                logger.info("Launching headless browser")
                self._browser = await self._playwright.chromium.launch(
                    headless=self.headless,
                    executable_path=self.executable_path,
                    args=BROWSER_ARGS,
                )

        return self._browser

    @asynccontextmanager
    async def page(self):
        """Open a fresh page in the shared browser, closed on exit"""
        browser = await self._get_browser()
        context = await browser.new_context(user_agent=self.user_agent, ignore_https_errors=True)
        try:
            yield await context.new_page()
        finally:
            await context.close()

    def run(self, coroutine_factory, timeout):
        """Run a coroutine on the browser loop and wait for its result

        Args:
            coroutine_factory: Zero-argument callable returning a coroutine
            timeout: Seconds to wait

        Raises:
            PageLoadTimeout: If the result is not ready in time
        """
        loop = self._ensure_loop()
        future = asyncio.run_coroutine_threadsafe(coroutine_factory(), loop)
        try:
            return future.result(timeout)
        except concurrent.futures.TimeoutError as e:
            future.cancel()
            raise PageLoadTimeout(f"Browser did not respond within {timeout}s") from e

    async def _close(self):
        if self._browser is not None:
            try:
                await self._browser.close()
            except PlaywrightError as e:
                logger.warning(f"Error closing browser: {e}")
            self._browser = None

        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    def shutdown(self):
        """Close the browser and stop the loop thread"""
        with self._start_lock:
            loop, thread = self._loop, self._thread
            self._loop = None
            self._thread = None

        if loop is None:
            return

        try:
            asyncio.run_coroutine_threadsafe(self._close(), loop).result(timeout=15)
        except concurrent.futures.TimeoutError:
            logger.warning("Timed out closing headless browser")
        finally:
            loop.call_soon_threadsafe(loop.stop)
            thread.join(timeout=5)
            loop.close()
            self._launch_lock = None

        logger.info("Headless browser shut down")


class PageScrapeExtractor(MetadataExtractor):
    """Renders a station web page and pattern-matches the now-playing text"""

    metadata_type = 'page-scrape'

    def __init__(self, page_slug, browser, station=None, timeout=DEFAULT_TIMEOUT,
                 base_url=DEFAULT_PAGE_BASE_URL):
        super().__init__(station=station, timeout=timeout)
        self.page_slug = page_slug
        self.browser = browser
        self.base_url = base_url

    @property
    def url(self):
        return f"{self.base_url.rstrip('/')}/{self.page_slug}"

    @classmethod
    def from_job(cls, job, scraping_settings, browser=None):
        if browser is None:
            raise ValueError("page-scrape extraction needs a BrowserManager")

        # Station slug doubles as the page slug unless configured otherwise
        page_slug = job.get('page_slug') or job.get('slug')
        if not page_slug:
            raise ValueError("page-scrape station has no page_slug")

        return cls(
            page_slug,
            browser,
            station=job.get('slug'),
            timeout=scraping_settings.get('page_load_timeout_seconds', DEFAULT_TIMEOUT),
            base_url=scraping_settings.get('page_base_url', DEFAULT_PAGE_BASE_URL),
        )

    async def _render(self):
        async with self.browser.page() as page:
            try:
                await page.goto(self.url, wait_until='networkidle', timeout=self.timeout * 1000)
            except PlaywrightTimeoutError as e:
                raise PageLoadTimeout(f"Timed out loading {self.url}", station=self.station) from e
            return await page.content()

    def extract(self):
        """Load the station page and read the current track

        Raises:
            PageLoadTimeout: Page did not load in time
            NoMatch: Page loaded without a usable "Now playing" entry
            ExtractionError: Any other browser failure
        """
        logger.debug(f"Scraping {self.url}")

        try:
            html = self.browser.run(self._render, timeout=self.timeout + BROWSER_STARTUP_GRACE_SECONDS)
        except PageLoadTimeout as e:
            e.station = self.station
            raise
        except PlaywrightError as e:
            raise ExtractionError(f"Browser error loading {self.url}: {e}", station=self.station) from e

        found = extract_now_playing(page_text(html))
        if found is None:
            raise NoMatch(f"No now-playing entry on {self.url}", station=self.station)

        return {
            'artist': found['artist'],
            'title': found['title'],
            'raw': f"{found['artist']} - {found['title']}",
        }
