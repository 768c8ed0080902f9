"""Response schemas for the API."""

from typing import Dict, List, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict


class IntentResponse(BaseModel):
    name: str
    confidence: float


class EntityResponse(BaseModel):
    name: str
    value: str
    source: str
    start: int
    end: int
    confidence: float


class PredictResponse(BaseModel):
    """Result of a prediction."""
    model_config = ConfigDict(protected_namespaces=())

    language: str
    model_id: str
    intent: Optional[IntentResponse] = None
    intents: List[IntentResponse] = []
    entities: List[EntityResponse] = []


class BotResponse(BaseModel):
    """A mounted bot and its loaded models per language."""
    bot_id: str
    default_language: str
    languages: List[str]
    models: Dict[str, str] = {}  # language -> model id


class TrainingSessionResponse(BaseModel):
    """State of a training session."""
    model_config = ConfigDict(protected_namespaces=())

    bot_id: str
    language: str
    status: str
    progress: float = 0.0
    error: Optional[str] = None
    model_id: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class LoadModelResponse(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    bot_id: str
    language: str
    model_id: str
    created_at: datetime


class HealthResponse(BaseModel):
    """Service health."""
    status: str
    version: str
    bots_mounted: List[str] = []
    models_loaded: List[str] = []
    uptime_seconds: float
