"""
Asset reference extraction and rewriting

Finds stylesheets, scripts, images and other linked resources in a page,
assigns each one a local path under assets/ and points the markup at it.
No network or filesystem access happens here.
"""

import logging
import posixpath
from typing import Dict, List, Optional, Tuple
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from .models import AssetCategory, AssetReference

logger = logging.getLogger(__name__)

ASSET_ROOT = "assets"

# Elements that load an external resource, and the attribute holding its URL
REFERENCE_ATTRIBUTES = {
    "link": "href",
    "script": "src",
    "img": "src",
}

EXTENSION_CATEGORIES = {
    ".css": AssetCategory.CSS,
    ".js": AssetCategory.JS,
    ".png": AssetCategory.IMAGE,
    ".jpg": AssetCategory.IMAGE,
    ".jpeg": AssetCategory.IMAGE,
    ".gif": AssetCategory.IMAGE,
    ".svg": AssetCategory.IMAGE,
    ".webp": AssetCategory.IMAGE,
    ".woff": AssetCategory.FONT,
    ".woff2": AssetCategory.FONT,
    ".ttf": AssetCategory.FONT,
    ".eot": AssetCategory.FONT,
    ".otf": AssetCategory.FONT,
}

# <link> relations that point at other documents rather than page resources
NON_RESOURCE_RELS = {
    "alternate", "author", "bookmark", "canonical", "dns-prefetch", "help",
    "license", "me", "next", "pingback", "preconnect", "prev", "search",
    "shortlink", "webmention",
}


def classify_asset(url: str) -> AssetCategory:
    """Classify a URL by the extension of its path, ignoring case"""
    path = urlparse(url).path
    extension = posixpath.splitext(path)[1].lower()
    return EXTENSION_CATEGORIES.get(extension, AssetCategory.MISC)


def local_path_for(url: str) -> Optional[str]:
    """
    Compute the site-relative path an asset is stored at

    The path is assets/<category folder>/<basename of the URL path>. Query
    string and fragment are dropped and the basename keeps its original case.
    Returns None when the URL path has no usable basename.
    """
    basename = posixpath.basename(urlparse(url).path)
    if basename in ("", ".", ".."):
        return None
    return posixpath.join(ASSET_ROOT, classify_asset(url).value, basename)


class ReferenceExtractor:
    """Rewrites asset references in a page to local paths"""

    def __init__(self, parser: str = "html.parser"):
        self.parser = parser

    def extract(self, html: str, base_url: str) -> Tuple[str, List[AssetReference]]:
        """
        Rewrite every asset reference in html to its local path

        Args:
            html: The page markup
            base_url: URL the page was loaded from, used to resolve relative references

        Returns:
            Tuple of (rewritten_html, references). Each distinct remote URL appears
            once in references, in document order.
        """
        soup = BeautifulSoup(html, self.parser)
        references: Dict[str, AssetReference] = {}

        for element in soup.find_all(list(REFERENCE_ATTRIBUTES)):
            attribute = REFERENCE_ATTRIBUTES[element.name]
            if element.name == "link" and self._is_navigational_link(element):
                continue

            reference = self._reference_for(element.get(attribute), base_url)
            if reference is None:
                continue

            element[attribute] = reference.local_path
            references.setdefault(reference.remote_url, reference)

        logger.debug("Extracted %d asset references from %s", len(references), base_url)
        return str(soup), list(references.values())

    def _is_navigational_link(self, element) -> bool:
        rel = element.get("rel") or []
        if isinstance(rel, str):
            rel = rel.split()
        return any(value.lower() in NON_RESOURCE_RELS for value in rel)

    def _reference_for(self, value, base_url: str) -> Optional[AssetReference]:
        """Build the reference for one attribute value, or None if it should be left alone"""
        if not isinstance(value, str):
            return None
        value = value.strip()
        if not value or value.lower().startswith("data:"):
            return None

        try:
            remote_url = urljoin(base_url, value)
            parsed = urlparse(remote_url)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                return None
            local_path = local_path_for(remote_url)
        except ValueError:
            # Malformed authority such as "http://[broken/x.png"
            return None

        if local_path is None:
            return None

        return AssetReference(
            remote_url=remote_url,
            category=classify_asset(remote_url),
            local_path=local_path,
        )
