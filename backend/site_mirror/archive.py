"""
Site folder layout and zip packaging
"""

import logging
import os
import re
import shutil
import zipfile
from pathlib import Path

from .config import Settings
from .errors import PersistenceError
from .extractor import ASSET_ROOT
from .models import ClonedSite

logger = logging.getLogger(__name__)

DOCUMENT_NAME = "index.html"

_SCHEME_PREFIX = re.compile(r"^(\w+:)?//")
_NON_WORD = re.compile(r"\W", re.ASCII)


def site_folder_name(url: str) -> str:
    """
    Derive the folder name for a target URL

    The scheme is stripped and every non-word character becomes "_", so
    https://a.b/c gives a_b_c.
    """
    return _NON_WORD.sub("_", _SCHEME_PREFIX.sub("", url, count=1))


class ArchiveBuilder:
    """Lays out a site folder on disk and packages it as a zip archive"""

    def __init__(self, settings: Settings):
        self.settings = settings

    def layout(self, url: str) -> ClonedSite:
        """Compute every path a clone of url will use, without touching the disk"""
        folder_name = site_folder_name(url)
        work_dir = Path(self.settings.work_dir).resolve()
        root = work_dir / folder_name
        archive_name = f"{folder_name}.zip"

        return ClonedSite(
            folder_name=folder_name,
            root=root,
            document_path=root / DOCUMENT_NAME,
            asset_root=root / ASSET_ROOT,
            archive_path=work_dir / archive_name,
            public_archive_path=Path(self.settings.downloads_dir).resolve() / archive_name,
        )

    def prepare(self, site: ClonedSite) -> None:
        """
        Create an empty site folder and its assets directory, removing what a
        previous run of the same URL left behind
        """
        try:
            if site.root.exists():
                shutil.rmtree(site.root)
            site.asset_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Could not prepare folder {site.root}: {e}") from e

    def materialize(self, site: ClonedSite, document_html: str) -> Path:
        """
        Write the document, zip the site folder and publish a copy of the archive

        Assets are expected to already be stored under site.root.

        Returns:
            Path of the archive in the working directory

        Raises:
            PersistenceError: on any filesystem failure
        """
        try:
            site.root.mkdir(parents=True, exist_ok=True)
            site.document_path.write_text(document_html, encoding="utf-8")
        except OSError as e:
            raise PersistenceError(f"Could not write document {site.document_path}: {e}") from e

        self._write_zip(site.root, site.archive_path)
        self._publish(site.archive_path, site.public_archive_path)

        logger.info("Archived %s to %s", site.root, site.archive_path)
        return site.archive_path

    def _write_zip(self, folder: Path, archive_path: Path) -> None:
        """Zip every file under folder, with paths relative to folder, in sorted order"""
        partial_path = archive_path.with_name(archive_path.name + ".part")
        try:
            archive_path.parent.mkdir(parents=True, exist_ok=True)
            with zipfile.ZipFile(partial_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
                for path in sorted(folder.rglob("*")):
                    if path.is_file():
                        archive.write(path, arcname=path.relative_to(folder).as_posix())
            os.replace(partial_path, archive_path)
        except OSError as e:
            partial_path.unlink(missing_ok=True)
            raise PersistenceError(f"Could not create archive {archive_path}: {e}") from e

    def _publish(self, archive_path: Path, public_path: Path) -> None:
        try:
            public_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(archive_path, public_path)
        except OSError as e:
            raise PersistenceError(f"Could not copy archive to {public_path}: {e}") from e
        logger.debug("Published archive copy at %s", public_path)
