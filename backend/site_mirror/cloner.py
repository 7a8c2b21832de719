"""
Clone orchestration: render, rewrite, fetch assets, archive
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Dict, Optional

from .archive import ArchiveBuilder
from .config import Settings
from .extractor import ReferenceExtractor
from .fetcher import AssetFetcher
from .models import CloneRequest, CloneResult, ClonedSite
from .renderer import RendererSelector

logger = logging.getLogger(__name__)


class WebsiteCloner:
    """
    Produces a zipped local mirror of a single page

    Clones of different URLs run independently. Clones of the same URL share a
    site folder, so they are serialized on a per-folder lock.
    """

    def __init__(
        self,
        settings: Settings,
        renderer: Optional[RendererSelector] = None,
        extractor: Optional[ReferenceExtractor] = None,
        fetcher: Optional[AssetFetcher] = None,
        archive: Optional[ArchiveBuilder] = None,
    ):
        self.settings = settings
        self.renderer = renderer or RendererSelector(settings)
        self.extractor = extractor or ReferenceExtractor()
        self.fetcher = fetcher or AssetFetcher(settings)
        self.archive = archive or ArchiveBuilder(settings)
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    async def close(self):
        await self.renderer.close()
        await self.fetcher.close()

    @asynccontextmanager
    async def _target_lock(self, folder_name: str):
        lock = self._locks.setdefault(folder_name, asyncio.Lock())
        self._lock_users[folder_name] = self._lock_users.get(folder_name, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[folder_name] -= 1
            if not self._lock_users[folder_name]:
                del self._lock_users[folder_name]
                del self._locks[folder_name]

    async def clone_website(self, url: str) -> CloneResult:
        """
        Clone the page at url into a zip archive

        Args:
            url: Absolute HTTP(S) URL of the page

        Returns:
            CloneResult describing the archive. Assets that could not be fetched
            are listed in failed_assets; they do not fail the clone.

        Raises:
            ValidationError: if url is not an absolute HTTP(S) URL
            RenderError: if no usable HTML could be obtained
            PersistenceError: if writing the folder or archive failed
        """
        request = CloneRequest.from_url(url)
        site = self.archive.layout(request.target_url)

        async with self._target_lock(site.folder_name):
            return await self._clone(request, site)

    async def _clone(self, request: CloneRequest, site: ClonedSite) -> CloneResult:
        url = request.target_url
        logger.info("Cloning %s into %s", url, site.root)

        document = await self.renderer.render(url)

        # Paths are final before any asset is fetched
        html, references = self.extractor.extract(document.html, url)

        self.archive.prepare(site)
        failed_assets = await self.fetcher.download_all(references, site.root)
        if failed_assets:
            logger.warning("%d of %d assets missing from clone of %s", len(failed_assets), len(references), url)

        archive_path = self.archive.materialize(site, html)

        result = CloneResult(
            mode=document.mode,
            archive_path=str(archive_path),
            public_archive_path=str(site.public_archive_path),
            archive_file_name=site.archive_file_name,
            asset_count=len(references),
            failed_assets=failed_assets,
        )
        logger.info(result.message)
        return result
