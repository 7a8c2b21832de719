"""
HTTP API for the site mirroring service
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .cloner import WebsiteCloner
from .config import Settings
from .errors import CloneError, ValidationError
from .logging_setup import setup_logging
from .models import CloneRequestModel, CloneResponseModel, ErrorResponseModel

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, cloner: Optional[WebsiteCloner] = None) -> FastAPI:
    """
    Build the FastAPI app

    Args:
        settings: Service settings; read from the environment when omitted
        cloner: Cloner to serve requests with; built from settings when omitted
    """
    settings = settings or Settings.from_env()
    cloner = cloner or WebsiteCloner(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await cloner.close()

    app = FastAPI(
        title="Site Mirror API",
        description="Clone a web page and its assets into a downloadable zip archive",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.cloner = cloner

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post(
        "/api/clone",
        response_model=CloneResponseModel,
        responses={400: {"model": ErrorResponseModel}, 500: {"model": ErrorResponseModel}},
    )
    async def clone_website(request: CloneRequestModel):
        """Clone a page and return where its archive can be downloaded"""
        try:
            result = await cloner.clone_website(request.url)
        except ValidationError as e:
            return JSONResponse(status_code=400, content={"message": e.message})
        except CloneError as e:
            logger.error("/api/clone failed for %s: %s", request.url, e.message)
            return JSONResponse(status_code=500, content={"message": e.message})
        except Exception as e:
            logger.exception("/api/clone crashed for %s", request.url)
            return JSONResponse(status_code=500, content={"message": str(e) or "Clone failed"})

        return CloneResponseModel(
            message="Cloned successfully",
            zip_file_name=result.archive_file_name,
            download_path=f"/{settings.downloads_subdir}/{result.archive_file_name}",
            mode=result.mode,
            failed_assets=result.failed_assets,
        )

    @app.get("/api/health")
    async def health():
        return {"ok": True}

    # Web UI and archive downloads
    public_dir = Path(settings.public_dir)
    settings.downloads_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/", StaticFiles(directory=str(public_dir), html=True), name="public")

    return app


def main():
    import uvicorn

    settings = Settings.from_env()
    setup_logging(settings.log_level, settings.log_file)
    logger.info("Web UI: http://localhost:%d", settings.port)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
