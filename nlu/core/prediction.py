"""Routes prediction requests to the model of the right language."""

import logging

from nlu.errors import NoModelAvailableError
from .abstractions import BaseEngine, PredictionResult
from .registry import ModelRegistry

logger = logging.getLogger(__name__)


class PredictionRouter:
    """Resolve the model for a language, falling back once to the default."""

    def __init__(
        self,
        bot_id: str,
        default_language: str,
        engine: BaseEngine,
        registry: ModelRegistry
    ):
        self._bot_id = bot_id
        self._default_language = default_language
        self._engine = engine
        self._registry = registry

    async def predict(self, text: str, language_code: str) -> PredictionResult:
        model = self._registry.get(language_code)

        if model is None:
            model = self._registry.get(self._default_language)
            if model is None:
                raise NoModelAvailableError(
                    self._bot_id, language_code, self._default_language
                )
            logger.debug(
                f"No model for {self._bot_id}/{language_code}, "
                f"falling back to {self._default_language}"
            )

        return await self._engine.predict(model, text)
