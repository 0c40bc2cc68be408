import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from backend.routes import router
from storychain.config import AIConfig
from storychain.services import Services
from storychain.storage import Storage

load_dotenv(Path(__file__).parent.parent / ".env")

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"


def create_app(data_dir: Path | None = None, ai_config: AIConfig | None = None) -> FastAPI:
    resolved = data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))
    config = ai_config or AIConfig.from_env()

    app = FastAPI(title="Story Relay")
    app.state.services = Services(Storage(resolved))
    app.state.ai_config = config
    app.include_router(router, prefix="/api")

    logger.info(
        "data dir %s, generator: %s", resolved, config.status()["provider"]
    )
    return app


# Default app instance for uvicorn (uses DATA_DIR env var or default)
app = create_app()
