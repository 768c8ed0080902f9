"""Pydantic schemas for API requests and responses."""

from .requests import MountBotRequest, PredictRequest
from .responses import (
    BotResponse,
    EntityResponse,
    HealthResponse,
    IntentResponse,
    LoadModelResponse,
    PredictResponse,
    TrainingSessionResponse,
)

__all__ = [
    # Requests
    "MountBotRequest",
    "PredictRequest",
    # Responses
    "BotResponse",
    "EntityResponse",
    "HealthResponse",
    "IntentResponse",
    "LoadModelResponse",
    "PredictResponse",
    "TrainingSessionResponse",
]
