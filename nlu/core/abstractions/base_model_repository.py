"""Abstract base class for model artifact storage."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from nlu.core.model_id import ModelId

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Model:
    """A trained, immutable model artifact."""
    id: ModelId
    payload: bytes = field(repr=False)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def language_code(self) -> str:
        return self.id.language_code


class BaseModelRepository(ABC):
    """Abstract base class for model repositories (filesystem, Supabase, etc.)."""

    @property
    @abstractmethod
    def store_name(self) -> str:
        """Return the store identifier."""
        pass

    @abstractmethod
    async def initialize(self) -> None:
        """Acquire storage resources."""
        pass

    @abstractmethod
    async def teardown(self) -> None:
        """Release storage resources."""
        pass

    @abstractmethod
    async def get_model(self, model_id: ModelId) -> Optional[Model]:
        """Return the model with that exact id, or None."""
        pass

    @abstractmethod
    async def get_latest_model(self, language_code: str) -> Optional[Model]:
        """Return the most recently created model of a language, or None."""
        pass

    @abstractmethod
    async def save_model(self, model: Model) -> None:
        """Persist a model. Saving an existing id keeps a single artifact and refreshes its created_at."""
        pass

    @abstractmethod
    async def list_models(self, language_code: str) -> List[Model]:
        """List all models of a language, in no particular order."""
        pass

    @abstractmethod
    async def delete_model(self, model_id: ModelId) -> None:
        """Delete a model. Deleting a missing model is a no-op."""
        pass

    async def prune_models(
        self,
        models: List[Model],
        to_keep: int,
        protected: Optional[Iterable[ModelId]] = None
    ) -> List[ModelId]:
        """
        Delete all but the most recent models of a candidate set.

        Args:
            models: Candidates, already filtered to one language by the caller
            to_keep: Number of most recent models to retain
            protected: Ids that are never deleted, whatever their rank

        Returns the ids of the deleted models.
        """
        keep = set(protected or ())
        ranked = sorted(models, key=lambda m: m.created_at, reverse=True)

        deleted = []
        for model in ranked[max(to_keep, 0):]:
            if model.id in keep:
                logger.debug(f"Kept protected model {model.id.brief}")
                continue
            await self.delete_model(model.id)
            deleted.append(model.id)

        if deleted:
            logger.info(
                f"Pruned {len(deleted)} model(s) from {self.store_name}, "
                f"kept {len(ranked) - len(deleted)}"
            )
        return deleted
