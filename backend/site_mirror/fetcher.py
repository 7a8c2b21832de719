"""
Asset fetching with httpx

A failed asset is logged and skipped; it never aborts the clone.
"""

import asyncio
import logging
from pathlib import Path
from typing import Iterable, List, Optional

import httpx

from .config import Settings
from .errors import AssetFetchError, PersistenceError
from .models import AssetReference

logger = logging.getLogger(__name__)


class AssetFetcher:
    """Downloads page assets into a site folder"""

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=settings.asset_timeout,
            follow_redirects=True,
            headers={"User-Agent": settings.user_agent},
        )

    async def __aenter__(self) -> "AssetFetcher":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self):
        """Close the HTTP client if this fetcher created it"""
        if self._owns_client and not self.client.is_closed:
            await self.client.aclose()

    async def fetch_bytes(self, url: str) -> bytes:
        """
        Retrieve url, raising AssetFetchError on a network error or non-2xx status
        """
        try:
            response = await self.client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise AssetFetchError(url, f"{type(e).__name__}: {e}") from e

        if not response.is_success:
            raise AssetFetchError(url, f"HTTP {response.status_code}")
        return response.content

    async def fetch(self, url: str) -> Optional[bytes]:
        """
        Retrieve url, returning None instead of raising when it cannot be fetched
        """
        try:
            return await self.fetch_bytes(url)
        except AssetFetchError as e:
            logger.warning(e.message)
            return None

    async def download(self, reference: AssetReference, site_root: Path) -> bool:
        """
        Fetch one asset and store it at its local path under site_root

        Returns:
            True if the asset was written, False if it could not be fetched

        Raises:
            PersistenceError: if the file cannot be written
        """
        content = await self.fetch(reference.remote_url)
        if content is None:
            return False

        destination = site_root / reference.local_path
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(content)
        except OSError as e:
            raise PersistenceError(f"Could not write asset {destination}: {e}") from e

        logger.debug("Downloaded %s -> %s", reference.remote_url, destination)
        return True

    async def download_all(self, references: Iterable[AssetReference], site_root: Path) -> List[str]:
        """
        Download every reference concurrently, at most max_concurrent_downloads at a time

        All downloads run to completion before this returns, whatever happens to
        their siblings.

        Returns:
            Remote URLs of the assets that could not be fetched

        Raises:
            PersistenceError: the first write failure, after every download has finished
        """
        references = list(references)
        semaphore = asyncio.Semaphore(self.settings.max_concurrent_downloads)

        async def bounded_download(reference: AssetReference) -> bool:
            async with semaphore:
                return await self.download(reference, site_root)

        results = await asyncio.gather(
            *(bounded_download(reference) for reference in references),
            return_exceptions=True,
        )

        failed: List[str] = []
        for reference, result in zip(references, results):
            if isinstance(result, PersistenceError):
                raise result
            if isinstance(result, BaseException):
                logger.warning("Unexpected error downloading %s: %s", reference.remote_url, result)
                failed.append(reference.remote_url)
            elif not result:
                failed.append(reference.remote_url)

        logger.info(
            "Fetched %d of %d assets into %s",
            len(references) - len(failed), len(references), site_root,
        )
        return failed
