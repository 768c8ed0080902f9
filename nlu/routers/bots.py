"""Bot mounting, model loading and prediction API router."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from nlu.core import BotDefinition, ModelOrchestrator
from nlu.dependencies import get_bot_service
from nlu.errors import NLUError
from nlu.schemas import (
    BotResponse,
    EntityResponse,
    IntentResponse,
    LoadModelResponse,
    MountBotRequest,
    PredictRequest,
    PredictResponse,
)
from nlu.services import BotService
from .errors import to_http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bots", tags=["bots"])


def _bot_response(orchestrator: ModelOrchestrator) -> BotResponse:
    return BotResponse(
        bot_id=orchestrator.bot_id,
        default_language=orchestrator.default_language,
        languages=list(orchestrator.languages),
        models={
            language: model.id.to_string()
            for language, model in orchestrator.loaded_models().items()
        }
    )


@router.get("", response_model=List[BotResponse])
async def list_bots(service: BotService = Depends(get_bot_service)):
    """List mounted bots."""
    return [_bot_response(o) for o in service.list_bots()]


@router.post("", response_model=BotResponse, status_code=201)
async def mount_bot(
    request: MountBotRequest,
    service: BotService = Depends(get_bot_service)
):
    """Mount a bot and load its latest models."""
    try:
        bot = BotDefinition(
            bot_id=request.bot_id,
            default_language=request.default_language,
            languages=tuple(request.languages)
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        orchestrator = await service.mount_bot(bot)
    except NLUError as e:
        logger.error(f"Failed to mount bot {bot.bot_id}: {e}")
        raise to_http_error(e)

    return _bot_response(orchestrator)


@router.delete("/{bot_id}")
async def unmount_bot(bot_id: str, service: BotService = Depends(get_bot_service)):
    """Unmount a bot, canceling its trainings."""
    try:
        await service.unmount_bot(bot_id)
    except NLUError as e:
        raise to_http_error(e)

    return {"status": "unmounted", "bot_id": bot_id}


@router.post("/{bot_id}/models/{language}/load-latest", response_model=LoadModelResponse)
async def load_latest_model(
    bot_id: str,
    language: str,
    service: BotService = Depends(get_bot_service)
):
    """Load the most recent model of a language."""
    try:
        model = await service.load_latest(bot_id, language)
    except NLUError as e:
        raise to_http_error(e)

    return LoadModelResponse(
        bot_id=bot_id,
        language=language,
        model_id=model.id.to_string(),
        created_at=model.created_at
    )


@router.post("/{bot_id}/predict", response_model=PredictResponse)
async def predict(
    bot_id: str,
    request: PredictRequest,
    service: BotService = Depends(get_bot_service)
):
    """Understand a text with the model of the requested or default language."""
    try:
        result = await service.predict(bot_id, request.text, request.language)
    except NLUError as e:
        raise to_http_error(e)

    intents = [IntentResponse(name=i.name, confidence=i.confidence) for i in result.intents]
    return PredictResponse(
        language=result.language_code,
        model_id=result.model_id.to_string(),
        intent=intents[0] if intents else None,
        intents=intents,
        entities=[
            EntityResponse(
                name=e.name,
                value=e.value,
                source=e.source,
                start=e.start,
                end=e.end,
                confidence=e.confidence
            )
            for e in result.entities
        ]
    )
