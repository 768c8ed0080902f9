"""Abstract base classes for the model lifecycle collaborators."""

from .base_model_repository import BaseModelRepository, Model
from .base_definitions import (
    BaseDefinitionsProvider,
    TrainingSet,
    IntentDefinition,
    EntityDefinition,
    EntityOccurrence,
)
from .base_engine import (
    BaseEngine,
    TrainingOptions,
    ProgressCallback,
    PredictionResult,
    IntentPrediction,
    EntityPrediction,
)

__all__ = [
    # Base classes
    "BaseModelRepository",
    "BaseDefinitionsProvider",
    "BaseEngine",
    # Data classes
    "Model",
    "TrainingSet",
    "IntentDefinition",
    "EntityDefinition",
    "EntityOccurrence",
    "TrainingOptions",
    "ProgressCallback",
    "PredictionResult",
    "IntentPrediction",
    "EntityPrediction",
]
