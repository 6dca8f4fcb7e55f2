import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from vn_engine import config
from vn_engine.routes import router

load_dotenv(Path(__file__).parent.parent / ".env")

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"

logger = logging.getLogger(__name__)


def create_app(data_dir: Path | None = None) -> FastAPI:
    resolved = data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))
    config.init_config(resolved)
    logger.debug("player settings stored under %s", resolved)

    app = FastAPI(title="Visual Novel Engine")
    app.include_router(router, prefix="/api")
    return app


# Default app instance for uvicorn (uses DATA_DIR env var or default)
app = create_app()
