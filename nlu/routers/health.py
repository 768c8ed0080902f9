"""Health and system status API router."""

import time
from fastapi import APIRouter, Depends

from nlu.config import settings
from nlu.dependencies import get_bot_service
from nlu.schemas import HealthResponse
from nlu.services import BotService

router = APIRouter(tags=["system"])

_start_time = time.time()


@router.get("/health", response_model=HealthResponse)
async def health_check(service: BotService = Depends(get_bot_service)):
    """Basic health check endpoint."""
    bots = service.list_bots()
    models_loaded = [
        model.id.to_string()
        for bot in bots
        for model in bot.loaded_models().values()
    ]

    return HealthResponse(
        status="healthy",
        version=settings.version,
        bots_mounted=[bot.bot_id for bot in bots],
        models_loaded=models_loaded,
        uptime_seconds=time.time() - _start_time
    )
