"""
Page rendering: a cheap static fetch first, a headless browser when the page
looks like it needs client-side rendering

The headless path uses Playwright with a local Chromium, or a Browserbase
session when Browserbase credentials are configured.
"""

import logging
from typing import Optional, Protocol

import httpx
from browserbase import Browserbase
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from .config import Settings
from .errors import RenderError
from .models import RenderedDocument, RenderMode

logger = logging.getLogger(__name__)

CHROMIUM_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]


class FallbackPolicy(Protocol):
    """Decides whether a statically fetched page needs a headless render"""

    def should_fallback_to_dynamic_render(self, html: str) -> bool:
        ...


class SizeAndScriptPolicy:
    """
    Fall back when the static body is short or has no <script> tag

    This is a coarse classifier. Small static pages get rendered needlessly and
    dynamic pages with a large initial shell are kept as static.
    """

    def __init__(self, min_length: int = 2000, marker: str = "<script"):
        self.min_length = min_length
        self.marker = marker.lower()

    def should_fallback_to_dynamic_render(self, html: str) -> bool:
        return len(html) < self.min_length or self.marker not in html.lower()


class RendererSelector:
    """Obtains a page's HTML by the cheapest method that looks complete"""

    def __init__(
        self,
        settings: Settings,
        policy: Optional[FallbackPolicy] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings
        self.policy = policy or SizeAndScriptPolicy(settings.min_static_length)
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            follow_redirects=True,
            headers={"User-Agent": settings.user_agent},
        )

    async def close(self):
        if self._owns_client and not self.client.is_closed:
            await self.client.aclose()

    async def render(self, url: str) -> RenderedDocument:
        """
        Get the HTML for url

        Args:
            url: Absolute HTTP(S) URL of the page

        Returns:
            RenderedDocument whose mode says which path produced the HTML

        Raises:
            RenderError: if the static result is unusable and the headless render fails too
        """
        try:
            html = await self._fetch_static(url)
        except httpx.HTTPError as e:
            logger.info("Static fetch of %s failed (%s), rendering in a headless browser", url, e)
        else:
            if not self.policy.should_fallback_to_dynamic_render(html):
                logger.info("Using static HTML for %s (%d chars)", url, len(html))
                return RenderedDocument(html=html, mode=RenderMode.STATIC)
            logger.info("Static HTML for %s looks incomplete, rendering in a headless browser", url)

        try:
            html = await self._render_headless(url)
        except Exception as e:
            logger.error("Headless render of %s failed: %s: %s", url, type(e).__name__, e)
            raise RenderError(f"Could not render {url}: {e}") from e

        if not html:
            raise RenderError(f"Headless render of {url} returned an empty document")

        logger.info("Rendered %s in a headless browser (%d chars)", url, len(html))
        return RenderedDocument(html=html, mode=RenderMode.DYNAMIC)

    async def _fetch_static(self, url: str) -> str:
        response = await self.client.get(url, timeout=self.settings.static_timeout)
        response.raise_for_status()
        return response.text

    async def _render_headless(self, url: str) -> str:
        """
        Load url in a headless browser and return the serialized DOM

        The browser is closed before returning, whether or not navigation succeeded.
        """
        timeout_ms = self.settings.render_timeout * 1000

        async with async_playwright() as p:
            if self.settings.use_browserbase:
                browser, page = await self._open_browserbase_page(p)
            else:
                browser = await p.chromium.launch(headless=True, args=CHROMIUM_ARGS)
                page = None

            try:
                if page is None:
                    context = await browser.new_context(user_agent=self.settings.user_agent)
                    page = await context.new_page()

                try:
                    await page.goto(url, wait_until="networkidle", timeout=timeout_ms)
                except PlaywrightTimeoutError:
                    # Network never settled; take whatever has loaded so far
                    logger.warning("Network did not go idle for %s within %ss", url, self.settings.render_timeout)

                return await page.content()
            finally:
                await browser.close()
                logger.debug("Browser closed for %s", url)

    async def _open_browserbase_page(self, p):
        bb = Browserbase(api_key=self.settings.browserbase_api_key)
        session = bb.sessions.create(project_id=self.settings.browserbase_project_id)
        logger.info("Created Browserbase session %s", session.id)

        browser = await p.chromium.connect_over_cdp(session.connect_url)
        try:
            context = browser.contexts[0]
            page = context.pages[0] if context.pages else await context.new_page()
        except Exception:
            await browser.close()
            raise
        return browser, page
