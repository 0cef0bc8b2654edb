"""
Fetch Backends for Web Search

This module defines the backend interface for retrieving raw HTML. Search
and extraction tools never talk to the network directly; they hand a URL to
a Fetcher and parse whatever HTML comes back.

Architecture:
-------------
The Fetcher abstract class defines two operations:
1. fetch() - Retrieve the HTML of a URL
2. aclose() - Release any resources held by the backend

Concrete implementations:
- CurlFetcher: Runs the `curl` binary as a subprocess, one per request
- BrowserFetcher: Drives headless Chromium through Playwright, which also
  renders JavaScript-heavy result pages

Error Handling:
---------------
Every failure is raised as a FetchError subclass:
- FetchTimeout: the request exceeded its time budget
- FetchStatusError: the server answered with an HTTP error status
- FetchNavigationError: the browser could not navigate to the page
- FetchLaunchError: curl or the browser could not be started
- EmptyResponseError: the request succeeded but returned no content

Tools report these to the caller as error results; nothing here retries.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import re
from abc import ABC, abstractmethod

from playwright.async_api import (
    Browser,
    Error as PlaywrightError,
    Playwright,
    Route,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)
DEFAULT_TIMEOUT = 30.0
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_SELECTOR_TIMEOUT = 10.0
DEFAULT_MAX_CONCURRENT = 10

REQUEST_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}

BLOCKED_RESOURCE_TYPES = frozenset({"image", "stylesheet", "font", "media"})

BROWSER_ARGS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
)

# curl exit codes
CURL_HTTP_ERROR = 22
CURL_OPERATION_TIMEOUT = 28

_CURL_STATUS_RE = re.compile(r"error:\s*(\d{3})")


class FetchError(Exception):
    """Raised when a page cannot be retrieved."""


class FetchTimeout(FetchError):
    pass


class FetchStatusError(FetchError):
    def __init__(self, url: str, status: int | None):
        self.url = url
        self.status = status
        detail = f"HTTP {status}" if status is not None else "HTTP error"
        super().__init__(f"{detail} while fetching {url}")


class FetchNavigationError(FetchError):
    pass


class FetchLaunchError(FetchError):
    pass


class EmptyResponseError(FetchError):
    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Empty response from {url}")


def maybe_truncate(text: str, num_chars: int = 1024) -> str:
    """
    Truncate text to a maximum length, adding ellipsis if truncated.

    Used to limit error message lengths when reporting back to the caller.
    """
    if len(text) > num_chars:
        text = text[: (num_chars - 3)] + "..."
    return text


class Fetcher(ABC):
    """
    Abstract base class for HTML fetch backends.

    Attributes:
        name: Short identifier of the backend, used in logs and server names
    """

    name: str = "fetcher"

    @abstractmethod
    async def fetch(self, url: str, *, wait_for: str | None = None) -> str:
        """
        Retrieve the HTML of `url`.

        Args:
            url: Absolute http(s) URL
            wait_for: CSS selector that signals the page has rendered. Only
                meaningful for backends that execute JavaScript.

        Returns:
            The page HTML, never empty

        Raises:
            FetchError: If the page cannot be retrieved
        """
        pass

    async def aclose(self) -> None:
        """Release backend resources. Safe to call more than once."""


class CurlFetcher(Fetcher):
    """
    Fetch pages by running `curl` as a subprocess.

    Redirects are followed, responses are decompressed, and HTTP error
    statuses fail the request (`--fail`). At most `max_concurrent` curl
    processes run at the same time.
    """

    name = "curl"

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        curl_path: str = "curl",
    ):
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self.user_agent = user_agent
        self.curl_path = curl_path
        self._semaphore = asyncio.Semaphore(max_concurrent)

    def build_command(self, url: str) -> list[str]:
        command = [
            self.curl_path,
            "-s",
            "-S",
            "-L",
            "--fail",
            "--compressed",
            "--connect-timeout", f"{self.connect_timeout:g}",
            "--max-time", f"{self.timeout:g}",
            "--user-agent", self.user_agent,
        ]
        for header, value in REQUEST_HEADERS.items():
            command += ["--header", f"{header}: {value}"]
        command += ["--header", "Cache-Control: no-cache", url]
        return command

    async def fetch(self, url: str, *, wait_for: str | None = None) -> str:
        command = self.build_command(url)
        async with self._semaphore:
            logger.debug("Fetching %s with curl", url)
            try:
                proc = await asyncio.create_subprocess_exec(
                    *command,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as e:
                raise FetchLaunchError(f"Failed to execute curl: {e}") from e
            try:
                stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
            except asyncio.TimeoutError:
                with contextlib.suppress(ProcessLookupError):
                    proc.kill()
                await proc.wait()
                raise FetchTimeout(f"Request timeout after {self.timeout:g}s: {url}") from None

        error_text = maybe_truncate(stderr.decode("utf-8", errors="replace").strip())
        if proc.returncode == CURL_HTTP_ERROR:
            match = _CURL_STATUS_RE.search(error_text)
            raise FetchStatusError(url, int(match.group(1)) if match else None)
        if proc.returncode == CURL_OPERATION_TIMEOUT:
            raise FetchTimeout(f"Request timeout after {self.timeout:g}s: {url}")
        if proc.returncode != 0:
            raise FetchError(
                f"curl failed with code {proc.returncode}: {error_text or 'Unknown error'}"
            )

        html = stdout.decode("utf-8", errors="replace")
        if not html.strip():
            raise EmptyResponseError(url)
        logger.debug("Fetched %s (%d bytes)", url, len(stdout))
        return html


class BrowserFetcher(Fetcher):
    """
    Fetch pages with headless Chromium.

    The browser is launched on first use and relaunched if it disconnects.
    Every fetch gets its own page, which is always closed afterwards. Images,
    stylesheets, fonts and media are blocked to keep page loads fast.
    At most `max_concurrent` pages are open at the same time.
    """

    name = "browser"

    def __init__(
        self,
        *,
        headless: bool = True,
        timeout: float = DEFAULT_TIMEOUT,
        selector_timeout: float = DEFAULT_SELECTOR_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
        launch_args: tuple[str, ...] = BROWSER_ARGS,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
    ):
        self.headless = headless
        self.timeout = timeout
        self.selector_timeout = selector_timeout
        self.user_agent = user_agent
        self.launch_args = launch_args
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._launch_lock = asyncio.Lock()
        self._semaphore = asyncio.Semaphore(max_concurrent)

    @property
    def is_running(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    async def _ensure_browser(self) -> Browser:
        async with self._launch_lock:
            if self._browser is not None and self._browser.is_connected():
                return self._browser
            logger.info("Launching browser (headless=%s)", self.headless)
            try:
                if self._playwright is None:
                    self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(
                    headless=self.headless,
                    args=list(self.launch_args),
                )
            except PlaywrightError as e:
                raise FetchLaunchError(f"Failed to launch browser: {e}") from e
            return self._browser

    @staticmethod
    async def _block_resources(route: Route) -> None:
        if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
            await route.abort()
        else:
            await route.continue_()

    async def fetch(self, url: str, *, wait_for: str | None = None) -> str:
        async with self._semaphore:
            logger.debug("Fetching %s with browser", url)
            return await self._fetch_page(url, wait_for)

    async def _fetch_page(self, url: str, wait_for: str | None) -> str:
        browser = await self._ensure_browser()
        try:
            page = await browser.new_page(
                user_agent=self.user_agent,
                viewport={"width": 1920, "height": 1080},
                extra_http_headers=REQUEST_HEADERS,
            )
        except PlaywrightError as e:
            raise FetchNavigationError(f"Failed to open page for {url}: {e}") from e

        try:
            await page.route("**/*", self._block_resources)
            try:
                response = await page.goto(
                    url, wait_until="networkidle", timeout=self.timeout * 1000
                )
            except PlaywrightTimeoutError as e:
                raise FetchTimeout(f"Navigation timeout after {self.timeout:g}s: {url}") from e
            except PlaywrightError as e:
                raise FetchNavigationError(
                    f"Navigation failed for {url}: {maybe_truncate(str(e))}"
                ) from e
            if response is not None and response.status >= 400:
                raise FetchStatusError(url, response.status)

            if wait_for:
                try:
                    await page.wait_for_selector(wait_for, timeout=self.selector_timeout * 1000)
                except PlaywrightTimeoutError:
                    logger.info("Selector %r did not appear on %s, reading page anyway", wait_for, url)

            try:
                html = await page.content()
            except PlaywrightError as e:
                raise FetchNavigationError(f"Failed to read content of {url}: {e}") from e
        finally:
            try:
                await page.close()
            except PlaywrightError as e:
                logger.warning("Failed to close page for %s: %s", url, e)

        if not html.strip():
            raise EmptyResponseError(url)
        return html

    async def aclose(self) -> None:
        async with self._launch_lock:
            browser, self._browser = self._browser, None
            playwright, self._playwright = self._playwright, None
            if browser is not None:
                logger.info("Closing browser")
                try:
                    await browser.close()
                except PlaywrightError as e:
                    logger.warning("Failed to close browser: %s", e)
            if playwright is not None:
                await playwright.stop()
