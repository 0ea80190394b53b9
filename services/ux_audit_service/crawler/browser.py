from contextlib import asynccontextmanager
from typing import AsyncIterator
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError, Page, async_playwright

from config.logging_config import get_logger
from services.ux_audit_service.config import Settings, settings as default_settings
from services.ux_audit_service.errors import RendererError

logger = get_logger(__name__)

_HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")


def extract_anchor_hrefs(html: str, base_url: str) -> list[str]:
    """Absolute hrefs of every ``<a href>`` in document order."""
    soup = BeautifulSoup(html, "lxml")
    links: list[str] = []
    for a in soup.find_all("a"):
        href = a.get("href")
        if href and href.strip():
            links.append(urljoin(base_url, href.strip()))
    return links


class PlaywrightRenderer:
    """One browser tab driven sequentially by the crawl loop."""

    def __init__(self, page: Page, wait_until: str = "domcontentloaded", settle_delay_s: float = 2.0):
        self._page = page
        self._wait_until = wait_until
        self._settle_delay_ms = int(settle_delay_s * 1000)

    @property
    def current_url(self) -> str:
        return self._page.url

    async def goto(self, url: str, timeout_s: float) -> None:
        try:
            resp = await self._page.goto(url, wait_until=self._wait_until, timeout=int(timeout_s * 1000))
        except PlaywrightError as e:
            raise RendererError(url, str(e)) from e

        if resp is not None:
            content_type = (resp.headers.get("content-type") or "").lower()
            if content_type and not content_type.startswith(_HTML_CONTENT_TYPES):
                raise RendererError(url, f"non_html_response: {content_type}")

        if self._settle_delay_ms:
            await self._page.wait_for_timeout(self._settle_delay_ms)

    async def screenshot(self) -> bytes:
        try:
            return await self._page.screenshot(full_page=True, type="png")
        except PlaywrightError as e:
            raise RendererError(self._page.url, f"screenshot_failed: {e}") from e

    async def extract_links(self) -> list[str]:
        html = await self._page.content()
        return extract_anchor_hrefs(html, self._page.url)


@asynccontextmanager
async def open_renderer(settings: Settings = default_settings) -> AsyncIterator[PlaywrightRenderer]:
    """Launch chromium with a single page; the browser is closed on every exit path."""
    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=True, args=["--no-sandbox", "--disable-setuid-sandbox"])
        try:
            context = await browser.new_context(
                user_agent=settings.user_agent,
                viewport={"width": settings.viewport_width, "height": settings.viewport_height},
                ignore_https_errors=True,
            )
            page = await context.new_page()
            logger.debug("Browser page acquired")
            yield PlaywrightRenderer(page, wait_until=settings.wait_until, settle_delay_s=settings.settle_delay_s)
        finally:
            await browser.close()
            logger.debug("Browser closed")
