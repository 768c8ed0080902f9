"""Abstract base class for training definition providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class EntityOccurrence:
    """One canonical value of a list entity and its synonyms."""
    name: str
    synonyms: List[str] = field(default_factory=list)


@dataclass
class EntityDefinition:
    """A custom entity: a list of values or a pattern."""
    name: str
    type: str = "list"
    occurrences: List[EntityOccurrence] = field(default_factory=list)
    pattern: Optional[str] = None
    fuzzy: float = 1.0


@dataclass
class IntentDefinition:
    """An intent with its utterances for one language."""
    name: str
    utterances: List[str]
    contexts: List[str] = field(default_factory=lambda: ["global"])
    slots: List[dict] = field(default_factory=list)


@dataclass
class TrainingSet:
    """Everything the engine needs to train one language of one bot."""
    bot_id: str
    language_code: str
    seed: int
    intents: List[IntentDefinition] = field(default_factory=list)
    entities: List[EntityDefinition] = field(default_factory=list)


class BaseDefinitionsProvider(ABC):
    """Abstract base class for sources of intents and entities."""

    @abstractmethod
    async def initialize(self) -> None:
        """Acquire resources needed to read definitions."""
        pass

    @abstractmethod
    async def teardown(self) -> None:
        """Release resources."""
        pass

    @abstractmethod
    async def get_train_set(self, language_code: str) -> TrainingSet:
        """Build the training set of a language."""
        pass
