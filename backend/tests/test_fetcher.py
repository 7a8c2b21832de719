"""Tests for the asset fetcher."""

import asyncio
import logging

import httpx
import pytest

from conftest import mock_client
from site_mirror.errors import AssetFetchError, PersistenceError
from site_mirror.fetcher import AssetFetcher
from site_mirror.models import AssetCategory, AssetReference


def reference(url, local_path, category=AssetCategory.MISC):
    return AssetReference(remote_url=url, category=category, local_path=local_path)


def asset_handler(request):
    if request.url.path == "/missing.png":
        return httpx.Response(404)
    if request.url.path == "/down.js":
        raise httpx.ConnectError("connection refused", request=request)
    return httpx.Response(200, content=f"body of {request.url.path}".encode())


class TestAssetFetcher:
    """Test AssetFetcher."""

    def test_fetch_returns_bytes(self, settings):
        fetcher = AssetFetcher(settings, client=mock_client(asset_handler))
        assert asyncio.run(fetcher.fetch("https://ex.com/site.css")) == b"body of /site.css"

    def test_fetch_404_logs_warning_and_returns_none(self, settings, caplog):
        fetcher = AssetFetcher(settings, client=mock_client(asset_handler))

        with caplog.at_level(logging.WARNING):
            assert asyncio.run(fetcher.fetch("https://ex.com/missing.png")) is None

        assert "HTTP 404" in caplog.text
        assert "https://ex.com/missing.png" in caplog.text

    def test_fetch_bytes_raises_on_network_error(self, settings):
        fetcher = AssetFetcher(settings, client=mock_client(asset_handler))

        with pytest.raises(AssetFetchError) as exc_info:
            asyncio.run(fetcher.fetch_bytes("https://ex.com/down.js"))
        assert exc_info.value.url == "https://ex.com/down.js"

    def test_download_creates_parent_directories(self, settings, tmp_path):
        fetcher = AssetFetcher(settings, client=mock_client(asset_handler))
        ref = reference("https://ex.com/fonts/a.woff2", "assets/fonts/a.woff2", AssetCategory.FONT)

        assert asyncio.run(fetcher.download(ref, tmp_path)) is True
        assert (tmp_path / "assets" / "fonts" / "a.woff2").read_bytes() == b"body of /fonts/a.woff2"

    def test_download_all_tolerates_failures(self, settings, tmp_path):
        fetcher = AssetFetcher(settings, client=mock_client(asset_handler))
        refs = [
            reference("https://ex.com/site.css", "assets/css/site.css", AssetCategory.CSS),
            reference("https://ex.com/missing.png", "assets/images/missing.png", AssetCategory.IMAGE),
            reference("https://ex.com/down.js", "assets/js/down.js", AssetCategory.JS),
            reference("https://ex.com/app.js", "assets/js/app.js", AssetCategory.JS),
        ]

        failed = asyncio.run(fetcher.download_all(refs, tmp_path))

        assert failed == ["https://ex.com/missing.png", "https://ex.com/down.js"]
        assert (tmp_path / "assets" / "css" / "site.css").exists()
        assert (tmp_path / "assets" / "js" / "app.js").exists()
        assert not (tmp_path / "assets" / "images" / "missing.png").exists()

    def test_download_all_respects_concurrency_limit(self, settings, tmp_path):
        settings = settings.model_copy(update={"max_concurrent_downloads": 2})
        state = {"active": 0, "peak": 0}

        async def slow_handler(request):
            state["active"] += 1
            state["peak"] = max(state["peak"], state["active"])
            await asyncio.sleep(0.01)
            state["active"] -= 1
            return httpx.Response(200, content=b"ok")

        fetcher = AssetFetcher(settings, client=mock_client(slow_handler))
        refs = [reference(f"https://ex.com/{i}.js", f"assets/js/{i}.js", AssetCategory.JS) for i in range(6)]

        failed = asyncio.run(fetcher.download_all(refs, tmp_path))

        assert failed == []
        assert state["peak"] == 2

    def test_write_failure_raises_persistence_error(self, settings, tmp_path):
        blocker = tmp_path / "assets"
        blocker.write_text("not a directory")
        fetcher = AssetFetcher(settings, client=mock_client(asset_handler))
        refs = [reference("https://ex.com/site.css", "assets/css/site.css", AssetCategory.CSS)]

        with pytest.raises(PersistenceError):
            asyncio.run(fetcher.download_all(refs, tmp_path))
