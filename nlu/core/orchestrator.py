"""Model lifecycle of one bot: mount, load, train, cancel, predict."""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Set, Tuple

from nlu.errors import (
    DependencyInitError,
    ModelNotFoundError,
    NotMountedError,
    TrainingAlreadyInProgressError,
    TrainingCanceledError,
    TrainingFailedError,
    UnsupportedLanguageError,
)
from .abstractions import (
    BaseDefinitionsProvider,
    BaseEngine,
    BaseModelRepository,
    Model,
    PredictionResult,
    ProgressCallback,
    TrainingOptions,
)
from .model_id import SAFE_NAME, ModelId
from .prediction import PredictionRouter
from .registry import ModelRegistry

logger = logging.getLogger(__name__)

DEFAULT_MODELS_TO_KEEP = 2


@dataclass(frozen=True)
class BotDefinition:
    """Languages a bot speaks."""
    bot_id: str
    default_language: str
    languages: Tuple[str, ...]

    def __post_init__(self):
        if not SAFE_NAME.match(self.bot_id):
            raise ValueError(f"Invalid bot id: {self.bot_id!r}")
        object.__setattr__(self, "languages", tuple(self.languages))
        if self.default_language not in self.languages:
            raise ValueError(
                f"Default language {self.default_language} of bot {self.bot_id} "
                f"is not one of its languages {list(self.languages)}"
            )


class ModelOrchestrator:
    """
    Owns the models loaded for one bot.

    Collaborators are injected. At most one training runs per language;
    trainings of different languages run concurrently.
    """

    def __init__(
        self,
        bot: BotDefinition,
        engine: BaseEngine,
        model_repository: BaseModelRepository,
        definitions: BaseDefinitionsProvider,
        models_to_keep: int = DEFAULT_MODELS_TO_KEEP
    ):
        self._bot = bot
        self._engine = engine
        self._repository = model_repository
        self._definitions = definitions
        self._models_to_keep = models_to_keep

        self._registry = ModelRegistry(bot.bot_id, bot.languages)
        self._predictor = PredictionRouter(
            bot.bot_id, bot.default_language, engine, self._registry
        )
        self._training: Set[str] = set()
        self._mounted = False

    @property
    def bot_id(self) -> str:
        return self._bot.bot_id

    @property
    def default_language(self) -> str:
        return self._bot.default_language

    @property
    def languages(self) -> Tuple[str, ...]:
        return self._bot.languages

    @property
    def is_mounted(self) -> bool:
        return self._mounted

    def loaded_models(self) -> Dict[str, Model]:
        """Copy of the registry."""
        return self._registry.snapshot()

    def is_training(self, language_code: str) -> bool:
        return language_code in self._training

    async def mount(self) -> None:
        """Initialize the model repository then the definitions provider."""
        try:
            await self._repository.initialize()
        except Exception as e:
            raise DependencyInitError(
                f"Model repository {self._repository.store_name} of bot "
                f"{self.bot_id} failed to initialize: {e}",
                cause=e
            ) from e

        try:
            await self._definitions.initialize()
        except Exception as e:
            await self._repository.teardown()
            raise DependencyInitError(
                f"Definitions of bot {self.bot_id} failed to initialize: {e}",
                cause=e
            ) from e

        self._mounted = True
        logger.info(f"Mounted bot {self.bot_id} ({', '.join(self.languages)})")

    async def unmount(self) -> None:
        """Tear down collaborators and unload every model. Idempotent."""
        for language_code in list(self._training):
            await self._engine.cancel_training(self._make_training_id(language_code))

        if self._mounted:
            await self._definitions.teardown()
            await self._repository.teardown()
            self._mounted = False

        for language_code, model in self._registry.items():
            await self._engine.unload_model(model.id)
            self._registry.remove(language_code)

        logger.info(f"Unmounted bot {self.bot_id}")

    async def load_latest(self, language_code: str) -> Model:
        self._assert_language(language_code)
        self._assert_mounted()
        model = await self._repository.get_latest_model(language_code)
        if model is None:
            raise ModelNotFoundError(
                f"No model found for bot {self.bot_id} and language {language_code}."
            )
        await self._load(model)
        return model

    async def load(self, model_id: ModelId) -> Model:
        self._assert_mounted()
        model = await self._repository.get_model(model_id)
        if model is None:
            raise ModelNotFoundError(f"Model {model_id} not found.")
        await self._load(model)
        return model

    async def _load(self, model: Model) -> None:
        self._assert_language(model.language_code)
        await self._engine.load_model(model)
        previous = self._registry.install(model)
        if previous is not None and previous.id != model.id:
            await self._engine.unload_model(previous.id)

    async def train(
        self,
        language_code: str,
        progress_callback: Optional[ProgressCallback] = None
    ) -> Model:
        """
        Train, persist, install and prune a model for a language.

        A failed training leaves the registry and the repository untouched.
        """
        self._assert_language(language_code)
        self._assert_mounted()

        training_id = self._make_training_id(language_code)
        if language_code in self._training:
            raise TrainingAlreadyInProgressError(training_id)

        self._training.add(language_code)
        try:
            training_set = await self._definitions.get_train_set(language_code)

            options = TrainingOptions(
                previous_model=self._registry.get(language_code),
                progress_callback=progress_callback
            )

            logger.info(f"Training {training_id} started")
            try:
                model = await self._engine.train(training_id, training_set, options)
            except TrainingFailedError:
                raise
            except Exception as e:
                raise TrainingFailedError(
                    f"Training {training_id} failed: {e}", cause=e
                ) from e

            if not self._mounted:
                raise TrainingCanceledError(
                    f"Bot {self.bot_id} was unmounted during training {training_id}"
                )

            await self._repository.save_model(model)
            await self._load(model)
            logger.info(f"Training {training_id} produced model {model.id.brief}")

            await self._prune(language_code)
            return model
        finally:
            self._training.discard(language_code)

    async def _prune(self, language_code: str) -> None:
        current = self._registry.get(language_code)
        protected = [current.id] if current is not None else []

        models = await self._repository.list_models(language_code)
        await self._repository.prune_models(
            models, to_keep=self._models_to_keep, protected=protected
        )

    async def cancel_training(self, language_code: str) -> None:
        """Signal the engine to stop the training of a language. Does not wait."""
        self._assert_language(language_code)
        await self._engine.cancel_training(self._make_training_id(language_code))

    async def predict(
        self,
        text: str,
        anticipated_language: Optional[str] = None
    ) -> PredictionResult:
        return await self._predictor.predict(
            text, anticipated_language or self.default_language
        )

    async def needs_training(self, language_code: str) -> bool:
        """Whether the loaded model is missing or stale for the current definitions."""
        self._assert_language(language_code)
        self._assert_mounted()

        model = self._registry.get(language_code)
        if model is None:
            return True
        if model.id.specification_hash != self._engine.specification_hash:
            return True

        training_set = await self._definitions.get_train_set(language_code)
        return model.id.content_hash != self._engine.fingerprint(training_set)

    def _assert_language(self, language_code: str) -> None:
        if language_code not in self.languages:
            raise UnsupportedLanguageError(self.bot_id, language_code)

    def _assert_mounted(self) -> None:
        if not self._mounted:
            raise NotMountedError(f"Bot {self.bot_id} is not mounted.")

    def _make_training_id(self, language_code: str) -> str:
        return f"{self.bot_id}:{language_code}"
