"""Abstract base class for NLU engines."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from nlu.core.model_id import ModelId
from .base_model_repository import Model
from .base_definitions import TrainingSet

ProgressCallback = Callable[[float], None]


@dataclass
class TrainingOptions:
    """Options for a training run."""
    previous_model: Optional[Model] = None
    progress_callback: Optional[ProgressCallback] = None


@dataclass
class IntentPrediction:
    """Confidence of a single intent."""
    name: str
    confidence: float


@dataclass
class EntityPrediction:
    """An entity found in the input text."""
    name: str
    value: str
    source: str
    start: int
    end: int
    confidence: float = 1.0


@dataclass
class PredictionResult:
    """Result of understanding one text input."""
    language_code: str
    model_id: ModelId
    intents: List[IntentPrediction] = field(default_factory=list)
    entities: List[EntityPrediction] = field(default_factory=list)

    @property
    def top_intent(self) -> Optional[IntentPrediction]:
        return self.intents[0] if self.intents else None


class BaseEngine(ABC):
    """Abstract base class for engines that train and run NLU models."""

    @property
    @abstractmethod
    def specification_hash(self) -> str:
        """Fingerprint of the engine version and training configuration."""
        pass

    @abstractmethod
    def fingerprint(self, training_set: TrainingSet) -> str:
        """Fingerprint of the training data, used as content hash."""
        pass

    @abstractmethod
    async def train(
        self,
        training_id: str,
        training_set: TrainingSet,
        options: TrainingOptions
    ) -> Model:
        """
        Train a model.

        Raises TrainingCanceledError when canceled, TrainingFailedError
        otherwise.
        """
        pass

    @abstractmethod
    async def cancel_training(self, training_id: str) -> None:
        """Ask a running training to stop. No-op if none is running."""
        pass

    @abstractmethod
    async def load_model(self, model: Model) -> None:
        """Make a model ready for predictions."""
        pass

    @abstractmethod
    async def unload_model(self, model_id: ModelId) -> None:
        """Free a loaded model. No-op if not loaded."""
        pass

    @abstractmethod
    def is_loaded(self, model_id: ModelId) -> bool:
        """Whether a model is loaded."""
        pass

    @abstractmethod
    async def predict(self, model: Model, text: str) -> PredictionResult:
        """Run inference with a loaded model."""
        pass
