"""Mounted bots and their background training sessions."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from nlu.core import BotDefinition, ModelOrchestrator
from nlu.core.abstractions import (
    BaseDefinitionsProvider,
    BaseEngine,
    BaseModelRepository,
    PredictionResult,
)
from nlu.core.orchestrator import DEFAULT_MODELS_TO_KEEP
from nlu.errors import (
    BotNotMountedError,
    ModelNotFoundError,
    NLUError,
    TrainingAlreadyInProgressError,
    TrainingCanceledError,
    UnsupportedLanguageError,
)

logger = logging.getLogger(__name__)

RepositoryFactory = Callable[[str], BaseModelRepository]
DefinitionsFactory = Callable[[str], BaseDefinitionsProvider]


class TrainingStatus(str, Enum):
    """Training session statuses."""
    IDLE = "idle"
    PENDING = "training-pending"
    TRAINING = "training"
    DONE = "done"
    CANCELED = "canceled"
    ERRORED = "errored"


@dataclass
class TrainingSession:
    """State of the last training of a bot language."""
    bot_id: str
    language_code: str
    status: TrainingStatus = TrainingStatus.IDLE
    progress: float = 0.0
    error: Optional[str] = None
    model_id: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class BotService:
    """Mount bots and run their trainings in the background."""

    def __init__(
        self,
        engine: BaseEngine,
        repository_factory: RepositoryFactory,
        definitions_factory: DefinitionsFactory,
        models_to_keep: int = DEFAULT_MODELS_TO_KEEP,
        auto_train_on_mount: bool = False
    ):
        self._engine = engine
        self._repository_factory = repository_factory
        self._definitions_factory = definitions_factory
        self._models_to_keep = models_to_keep
        self._auto_train = auto_train_on_mount

        self._bots: Dict[str, ModelOrchestrator] = {}
        self._sessions: Dict[Tuple[str, str], TrainingSession] = {}
        self._tasks: Dict[Tuple[str, str], asyncio.Task] = {}

    @property
    def engine(self) -> BaseEngine:
        return self._engine

    def list_bots(self) -> List[ModelOrchestrator]:
        return list(self._bots.values())

    def get_bot(self, bot_id: str) -> ModelOrchestrator:
        orchestrator = self._bots.get(bot_id)
        if orchestrator is None:
            raise BotNotMountedError(bot_id)
        return orchestrator

    async def mount_bot(self, bot: BotDefinition) -> ModelOrchestrator:
        """
        Mount a bot and load the latest model of each of its languages.

        A bot that is already mounted is unmounted first.
        """
        if bot.bot_id in self._bots:
            logger.info(f"Remounting bot {bot.bot_id}")
            await self.unmount_bot(bot.bot_id)

        orchestrator = ModelOrchestrator(
            bot,
            self._engine,
            self._repository_factory(bot.bot_id),
            self._definitions_factory(bot.bot_id),
            models_to_keep=self._models_to_keep
        )
        await orchestrator.mount()
        self._bots[bot.bot_id] = orchestrator

        try:
            for language_code in bot.languages:
                try:
                    await orchestrator.load_latest(language_code)
                except ModelNotFoundError:
                    logger.info(f"No model yet for {bot.bot_id}/{language_code}")

                if self._auto_train and await orchestrator.needs_training(language_code):
                    await self.start_training(bot.bot_id, language_code)
        except Exception as e:
            logger.error(f"Loading models of bot {bot.bot_id} failed, unmounting: {e}")
            await self.unmount_bot(bot.bot_id)
            raise

        return orchestrator

    async def unmount_bot(self, bot_id: str) -> None:
        """Cancel running trainings of a bot and unmount it."""
        orchestrator = self.get_bot(bot_id)

        pending = []
        for language_code in orchestrator.languages:
            task = self._tasks.get((bot_id, language_code))
            if task is None:
                continue
            await orchestrator.cancel_training(language_code)
            task.cancel()
            pending.append(task)

        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        del self._bots[bot_id]
        for key in [k for k in self._sessions if k[0] == bot_id]:
            del self._sessions[key]

        await orchestrator.unmount()

    async def start_training(self, bot_id: str, language_code: str) -> TrainingSession:
        """Schedule a training and return its session immediately."""
        orchestrator = self.get_bot(bot_id)
        if language_code not in orchestrator.languages:
            raise UnsupportedLanguageError(bot_id, language_code)

        key = (bot_id, language_code)
        if key in self._tasks or orchestrator.is_training(language_code):
            raise TrainingAlreadyInProgressError(f"{bot_id}:{language_code}")

        session = TrainingSession(
            bot_id=bot_id,
            language_code=language_code,
            status=TrainingStatus.PENDING,
            started_at=datetime.now(timezone.utc)
        )
        self._sessions[key] = session

        task = asyncio.create_task(self._run_training(orchestrator, session))
        task.add_done_callback(lambda t: self._forget_task(key, t))
        self._tasks[key] = task
        logger.info(f"Queued training of {bot_id}/{language_code}")
        return session

    def _forget_task(self, key: Tuple[str, str], task: asyncio.Task) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]

    async def _run_training(
        self,
        orchestrator: ModelOrchestrator,
        session: TrainingSession
    ) -> None:
        def on_progress(progress: float):
            session.progress = progress

        session.status = TrainingStatus.TRAINING
        try:
            model = await orchestrator.train(session.language_code, on_progress)
            session.status = TrainingStatus.DONE
            session.progress = 1.0
            session.model_id = model.id.to_string()
        except TrainingCanceledError:
            session.status = TrainingStatus.CANCELED
            logger.info(f"Training of {session.bot_id}/{session.language_code} canceled")
        except asyncio.CancelledError:
            session.status = TrainingStatus.CANCELED
            raise
        except NLUError as e:
            session.status = TrainingStatus.ERRORED
            session.error = str(e)
            logger.error(f"Training of {session.bot_id}/{session.language_code} failed: {e}")
        except Exception as e:
            session.status = TrainingStatus.ERRORED
            session.error = str(e)
            logger.exception(
                f"Unexpected error training {session.bot_id}/{session.language_code}"
            )
        finally:
            session.finished_at = datetime.now(timezone.utc)
            key = (session.bot_id, session.language_code)
            current = asyncio.current_task()
            if current is not None:
                self._forget_task(key, current)

    async def cancel_training(self, bot_id: str, language_code: str) -> TrainingSession:
        orchestrator = self.get_bot(bot_id)
        await orchestrator.cancel_training(language_code)

        key = (bot_id, language_code)
        session = self._sessions.get(key)
        task = self._tasks.get(key)
        if session is not None and task is not None and session.status == TrainingStatus.PENDING:
            # Not started yet, the engine has nothing to cancel
            task.cancel()
            session.status = TrainingStatus.CANCELED
            session.finished_at = datetime.now(timezone.utc)

        return self.get_training(bot_id, language_code)

    def get_training(self, bot_id: str, language_code: str) -> TrainingSession:
        orchestrator = self.get_bot(bot_id)
        if language_code not in orchestrator.languages:
            raise UnsupportedLanguageError(bot_id, language_code)

        session = self._sessions.get((bot_id, language_code))
        if session is None:
            return TrainingSession(bot_id=bot_id, language_code=language_code)
        return session

    async def wait_for_training(self, bot_id: str, language_code: str) -> TrainingSession:
        """Wait until the running training of a language finishes, if any."""
        task = self._tasks.get((bot_id, language_code))
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        return self.get_training(bot_id, language_code)

    async def load_latest(self, bot_id: str, language_code: str):
        orchestrator = self.get_bot(bot_id)
        if language_code not in orchestrator.languages:
            raise UnsupportedLanguageError(bot_id, language_code)
        return await orchestrator.load_latest(language_code)

    async def predict(
        self,
        bot_id: str,
        text: str,
        language_code: Optional[str] = None
    ) -> PredictionResult:
        return await self.get_bot(bot_id).predict(text, language_code)

    async def shutdown(self) -> None:
        """Unmount every bot."""
        for bot_id in list(self._bots):
            await self.unmount_bot(bot_id)
