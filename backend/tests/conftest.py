import logging
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from site_mirror.config import Settings


@pytest.fixture(autouse=True)
def configure_logging(caplog):
    """Capture DEBUG messages from the package in every test."""
    caplog.set_level(logging.DEBUG, logger="site_mirror")


@pytest.fixture
def settings(tmp_path):
    return Settings(
        work_dir=tmp_path / "work",
        public_dir=tmp_path / "public",
        max_concurrent_downloads=4,
    )


def mock_client(handler):
    """An httpx.AsyncClient whose requests are answered by handler(request)."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)


class FakePlaywright:
    """Stand-in for async_playwright() that records what the renderer does."""

    def __init__(self, html="<html><body>rendered</body></html>", goto_error=None):
        self.page = MagicMock()
        self.page.goto = AsyncMock(side_effect=goto_error)
        self.page.content = AsyncMock(return_value=html)

        self.context = MagicMock()
        self.context.new_page = AsyncMock(return_value=self.page)
        self.context.pages = [self.page]

        self.browser = MagicMock()
        self.browser.new_context = AsyncMock(return_value=self.context)
        self.browser.contexts = [self.context]
        self.browser.close = AsyncMock()

        self.playwright = MagicMock()
        self.playwright.chromium.launch = AsyncMock(return_value=self.browser)
        self.playwright.chromium.connect_over_cdp = AsyncMock(return_value=self.browser)

        self.factory = MagicMock()
        self.factory.return_value.__aenter__ = AsyncMock(return_value=self.playwright)
        self.factory.return_value.__aexit__ = AsyncMock(return_value=False)


@pytest.fixture
def fake_playwright():
    return FakePlaywright


def static_page(body_size=2500, script=True):
    """A static page large enough (and scripted enough) to skip the headless render."""
    head = '<script src="/app.js"></script>' if script else ""
    return f"<html><head>{head}</head><body>{'x' * body_size}</body></html>"
