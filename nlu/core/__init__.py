"""Core module - abstractions, registry and orchestration of NLU models."""

from .model_id import ModelId
from .registry import ModelRegistry
from .prediction import PredictionRouter
from .orchestrator import BotDefinition, ModelOrchestrator

__all__ = [
    "ModelId",
    "ModelRegistry",
    "PredictionRouter",
    "BotDefinition",
    "ModelOrchestrator",
]
