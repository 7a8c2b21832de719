"""
Data models for the site mirroring service
"""

from enum import Enum
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field

from .errors import ValidationError


class RenderMode(str, Enum):
    """How the page HTML was obtained"""
    STATIC = "static"
    DYNAMIC = "dynamic"


class AssetCategory(str, Enum):
    """Asset kinds; the value is the folder name under assets/"""
    CSS = "css"
    JS = "js"
    IMAGE = "images"
    FONT = "fonts"
    MISC = "misc"


def validate_target_url(url) -> str:
    """
    Check that url is an absolute HTTP(S) URL

    Returns:
        The URL with surrounding whitespace removed

    Raises:
        ValidationError: if the URL is empty, relative or uses another scheme
    """
    if not isinstance(url, str) or not url.strip():
        raise ValidationError("Invalid URL. Include http(s)://")

    url = url.strip()
    parsed = urlparse(url)
    if parsed.scheme.lower() not in ("http", "https") or not parsed.netloc:
        raise ValidationError(f"Invalid URL: {url}. Include http(s)://")
    return url


class CloneRequest(BaseModel):
    """A validated request to clone one page"""
    model_config = ConfigDict(frozen=True)

    target_url: str

    @classmethod
    def from_url(cls, url) -> "CloneRequest":
        return cls(target_url=validate_target_url(url))


class RenderedDocument(BaseModel):
    """HTML obtained for the target page"""
    model_config = ConfigDict(frozen=True)

    html: str
    mode: RenderMode


class AssetReference(BaseModel):
    """A remote asset and the path it is stored at inside the site folder"""
    model_config = ConfigDict(frozen=True)

    remote_url: str
    category: AssetCategory
    local_path: str = Field(..., description="POSIX path relative to the site folder")


class ClonedSite(BaseModel):
    """Filesystem layout owned by a single clone run"""
    model_config = ConfigDict(frozen=True)

    folder_name: str
    root: Path
    document_path: Path
    asset_root: Path
    archive_path: Path
    public_archive_path: Path

    @property
    def archive_file_name(self) -> str:
        return self.archive_path.name


class CloneResult(BaseModel):
    """Outcome of a successful clone run"""
    model_config = ConfigDict(frozen=True)

    mode: RenderMode
    archive_path: str
    public_archive_path: str
    archive_file_name: str
    asset_count: int = 0
    failed_assets: List[str] = Field(default_factory=list)

    @property
    def message(self) -> str:
        return f"Website ({self.mode.value}) cloned to {self.archive_path}"

    @property
    def is_complete(self) -> bool:
        return not self.failed_assets


# HTTP models

class CloneRequestModel(BaseModel):
    """Request body for POST /api/clone"""
    url: Optional[str] = Field(None, description="URL of website to clone")


class CloneResponseModel(BaseModel):
    """Response body for a successful POST /api/clone"""
    message: str = Field(..., description="Human readable status")
    zip_file_name: str = Field(..., serialization_alias="zipFileName")
    download_path: str = Field(..., serialization_alias="downloadPath")
    mode: RenderMode
    failed_assets: List[str] = Field(default_factory=list, serialization_alias="failedAssets")


class ErrorResponseModel(BaseModel):
    message: str
