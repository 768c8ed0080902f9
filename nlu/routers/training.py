"""Training API router."""

from fastapi import APIRouter, Depends

from nlu.dependencies import get_bot_service
from nlu.errors import NLUError
from nlu.schemas import TrainingSessionResponse
from nlu.services import BotService, TrainingSession
from .errors import to_http_error

router = APIRouter(prefix="/bots/{bot_id}/training", tags=["training"])


def _session_response(session: TrainingSession) -> TrainingSessionResponse:
    return TrainingSessionResponse(
        bot_id=session.bot_id,
        language=session.language_code,
        status=session.status.value,
        progress=session.progress,
        error=session.error,
        model_id=session.model_id,
        started_at=session.started_at,
        finished_at=session.finished_at
    )


@router.post("/{language}", response_model=TrainingSessionResponse, status_code=202)
async def start_training(
    bot_id: str,
    language: str,
    service: BotService = Depends(get_bot_service)
):
    """Start training a language in the background."""
    try:
        session = await service.start_training(bot_id, language)
    except NLUError as e:
        raise to_http_error(e)

    return _session_response(session)


@router.get("/{language}", response_model=TrainingSessionResponse)
async def get_training(
    bot_id: str,
    language: str,
    service: BotService = Depends(get_bot_service)
):
    """Get the status of the last training of a language."""
    try:
        session = service.get_training(bot_id, language)
    except NLUError as e:
        raise to_http_error(e)

    return _session_response(session)


@router.delete("/{language}", response_model=TrainingSessionResponse)
async def cancel_training(
    bot_id: str,
    language: str,
    service: BotService = Depends(get_bot_service)
):
    """Request cancellation of a running training."""
    try:
        session = await service.cancel_training(bot_id, language)
    except NLUError as e:
        raise to_http_error(e)

    return _session_response(session)
