"""
Configuration for the site mirroring service

Settings are read once from the environment (and an optional .env file) and
passed explicitly to the cloner, the HTTP app and the agent loop.
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


def _get_int_env(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable {key} must be an integer, got {value!r}")


def _get_float_env(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable {key} must be a number, got {value!r}")


class Settings(BaseModel):
    """Runtime settings for one service process"""

    # Filesystem layout
    work_dir: Path = Field(default=Path("."), description="Where site folders and archives are written")
    public_dir: Path = Field(default=Path("./public"), description="Directory served as static files")
    downloads_subdir: str = Field(default="downloads", description="Archive copies live here under public_dir")

    # Renderer
    static_timeout: float = Field(default=10.0, gt=0, description="Seconds allowed for the static fetch")
    render_timeout: float = Field(default=60.0, gt=0, description="Seconds allowed for the headless render")
    min_static_length: int = Field(default=2000, ge=0, description="Shorter static bodies trigger a render")
    browserbase_api_key: Optional[str] = None
    browserbase_project_id: Optional[str] = None

    # Asset fetching
    asset_timeout: float = Field(default=30.0, gt=0)
    max_concurrent_downloads: int = Field(default=8, ge=1)
    user_agent: str = DEFAULT_USER_AGENT

    # Agent loop
    google_api_key: Optional[str] = None
    agent_model: str = "gemini-1.5-pro"
    agent_max_steps: int = Field(default=15, ge=1)
    agent_timeout: float = Field(default=60.0, gt=0, description="Seconds allowed for one model reply")

    # Logging / serving
    log_level: str = "INFO"
    log_file: Optional[str] = None
    port: int = 3000

    @property
    def downloads_dir(self) -> Path:
        return self.public_dir / self.downloads_subdir

    @property
    def use_browserbase(self) -> bool:
        return bool(self.browserbase_api_key and self.browserbase_project_id)

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from environment variables, loading .env first

        Returns:
            A fully populated Settings instance

        Raises:
            ValueError: if a numeric variable cannot be parsed
        """
        load_dotenv()

        return cls(
            work_dir=Path(os.getenv("MIRROR_WORK_DIR", ".")),
            public_dir=Path(os.getenv("MIRROR_PUBLIC_DIR", "./public")),
            downloads_subdir=os.getenv("MIRROR_DOWNLOADS_SUBDIR", "downloads"),
            static_timeout=_get_float_env("STATIC_FETCH_TIMEOUT", 10.0),
            render_timeout=_get_float_env("RENDER_TIMEOUT", 60.0),
            asset_timeout=_get_float_env("ASSET_FETCH_TIMEOUT", 30.0),
            min_static_length=_get_int_env("MIN_STATIC_HTML_LENGTH", 2000),
            max_concurrent_downloads=_get_int_env("MAX_CONCURRENT_DOWNLOADS", 8),
            user_agent=os.getenv("MIRROR_USER_AGENT", DEFAULT_USER_AGENT),
            browserbase_api_key=os.getenv("BROWSERBASE_API_KEY") or None,
            browserbase_project_id=os.getenv("BROWSERBASE_PROJECT_ID") or None,
            google_api_key=os.getenv("GOOGLE_API_KEY") or None,
            agent_model=os.getenv("AGENT_MODEL", "gemini-1.5-pro"),
            agent_max_steps=_get_int_env("AGENT_MAX_STEPS", 15),
            agent_timeout=_get_float_env("AGENT_TIMEOUT", 60.0),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_file=os.getenv("LOG_FILE") or None,
            port=_get_int_env("PORT", 3000),
        )

    def __repr__(self) -> str:
        return f"Settings(work_dir={self.work_dir}, public_dir={self.public_dir})"
