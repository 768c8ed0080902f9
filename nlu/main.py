"""NLU Server - per-bot multi-language model lifecycle."""

import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from nlu.config import settings
from nlu.core import BotDefinition
from nlu.dependencies import get_bot_service
from nlu.errors import NLUError
from nlu.routers import bots_router, health_router, training_router
from nlu.services import BotService

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def mount_configured_bots(service: BotService, definitions_dir: str) -> int:
    """
    Mount every bot folder that has a bot.json.

    bot.json holds {"default_language": "en", "languages": ["en", "fr"]}.
    A bot that fails to mount is logged and skipped.
    """
    root = Path(definitions_dir)
    if not root.is_dir():
        logger.warning(f"Definitions directory {root} not found, no bot mounted")
        return 0

    mounted = 0
    for config_path in sorted(root.glob("*/bot.json")):
        bot_id = config_path.parent.name
        try:
            config = json.loads(config_path.read_text(encoding="utf-8"))
            bot = BotDefinition(
                bot_id=bot_id,
                default_language=config["default_language"],
                languages=tuple(config["languages"])
            )
            await service.mount_bot(bot)
            mounted += 1
        except (ValueError, KeyError, NLUError) as e:
            logger.error(f"Could not mount bot {bot_id}: {e}")

    logger.info(f"Mounted {mounted} bot(s)")
    return mounted


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.version}")
    service = get_bot_service()
    if settings.mount_on_startup:
        await mount_configured_bots(service, settings.definitions_dir)

    yield

    # Shutdown
    logger.info("Shutting down...")
    await service.shutdown()


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Per-bot multi-language NLU model lifecycle",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health_router)
app.include_router(bots_router, prefix="/api/v1")
app.include_router(training_router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": settings.version,
        "docs": "/docs"
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "nlu.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
