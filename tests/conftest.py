"""Shared fixtures and test doubles."""

import asyncio
import json
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from nlu.core import BotDefinition, ModelId, ModelOrchestrator
from nlu.core.abstractions import (
    BaseDefinitionsProvider,
    BaseEngine,
    BaseModelRepository,
    IntentDefinition,
    IntentPrediction,
    Model,
    PredictionResult,
    TrainingOptions,
    TrainingSet,
)
from nlu.errors import TrainingCanceledError

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


def make_model(
    language_code: str = "en",
    content_hash: str = "content1",
    bot_id: str = "bot1",
    minutes: int = 0
) -> Model:
    """Model created `minutes` after BASE_TIME."""
    return Model(
        id=ModelId(
            bot_id=bot_id,
            language_code=language_code,
            specification_hash="spec1",
            content_hash=content_hash,
            seed=42
        ),
        payload=f"{content_hash}-{language_code}".encode(),
        created_at=BASE_TIME + timedelta(minutes=minutes)
    )


class InMemoryModelRepository(BaseModelRepository):
    """Model repository backed by a dict, recording calls."""

    def __init__(self, models: Optional[List[Model]] = None, fail_on_init: bool = False):
        self.models: Dict[ModelId, Model] = {m.id: m for m in models or []}
        self.fail_on_init = fail_on_init
        self.initialized = False
        self.saved: List[Model] = []
        self.prune_calls: List[dict] = []
        self.list_calls: List[str] = []

    @property
    def store_name(self) -> str:
        return "memory"

    async def initialize(self) -> None:
        if self.fail_on_init:
            raise OSError("disk unavailable")
        self.initialized = True

    async def teardown(self) -> None:
        self.initialized = False

    async def get_model(self, model_id):
        return self.models.get(model_id)

    async def get_latest_model(self, language_code):
        models = await self.list_models(language_code)
        return max(models, key=lambda m: m.created_at) if models else None

    async def save_model(self, model):
        self.saved.append(model)
        self.models[model.id] = model

    async def list_models(self, language_code):
        self.list_calls.append(language_code)
        return [m for m in self.models.values() if m.language_code == language_code]

    async def delete_model(self, model_id):
        self.models.pop(model_id, None)

    async def prune_models(self, models, to_keep, protected=None):
        self.prune_calls.append({
            "models": list(models),
            "to_keep": to_keep,
            "protected": list(protected or []),
        })
        return await super().prune_models(models, to_keep, protected)


class StaticDefinitionsProvider(BaseDefinitionsProvider):
    """Definitions held in memory."""

    def __init__(self, bot_id: str = "bot1", intents: Optional[Dict[str, List[IntentDefinition]]] = None):
        self.bot_id = bot_id
        self.intents = intents or {}
        self.initialized = False
        self.torn_down = False

    async def initialize(self) -> None:
        self.initialized = True

    async def teardown(self) -> None:
        self.torn_down = True

    async def get_train_set(self, language_code):
        return TrainingSet(
            bot_id=self.bot_id,
            language_code=language_code,
            seed=42,
            intents=list(self.intents.get(language_code, []))
        )


class FakeEngine(BaseEngine):
    """
    Engine returning queued models.

    With `block=True`, train waits until released or canceled.
    """

    def __init__(self):
        self.next_models: List[Model] = []
        self.train_error: Optional[Exception] = None
        self.block = False
        self.release = asyncio.Event()
        self.started = asyncio.Event()
        self.train_calls: List[tuple] = []
        self.cancel_calls: List[str] = []
        self.loaded: Dict[ModelId, Model] = {}
        self.unloaded: List[ModelId] = []
        self.predict_calls: List[tuple] = []
        self._canceled: Dict[str, bool] = {}

    @property
    def specification_hash(self) -> str:
        return "spec1"

    def fingerprint(self, training_set):
        return f"content-{len(training_set.intents)}"

    async def train(self, training_id, training_set, options: TrainingOptions):
        self.train_calls.append((training_id, training_set, options))
        self._canceled[training_id] = False
        self.started.set()
        try:
            if options.progress_callback:
                options.progress_callback(0.5)
            if self.block:
                await self.release.wait()
            if self._canceled[training_id]:
                raise TrainingCanceledError(f"Training {training_id} was canceled")
            if self.train_error is not None:
                raise self.train_error
            if options.progress_callback:
                options.progress_callback(1.0)
            return self.next_models.pop(0)
        finally:
            del self._canceled[training_id]

    async def cancel_training(self, training_id):
        self.cancel_calls.append(training_id)
        if training_id in self._canceled:
            self._canceled[training_id] = True
            self.release.set()

    async def load_model(self, model):
        self.loaded[model.id] = model

    async def unload_model(self, model_id):
        self.unloaded.append(model_id)
        self.loaded.pop(model_id, None)

    def is_loaded(self, model_id):
        return model_id in self.loaded

    async def predict(self, model, text):
        self.predict_calls.append((model, text))
        return PredictionResult(
            language_code=model.language_code,
            model_id=model.id,
            intents=[IntentPrediction(name="greeting", confidence=1.0)]
        )


@pytest.fixture
def bot():
    return BotDefinition(bot_id="bot1", default_language="en", languages=("en", "fr"))


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def repository():
    return InMemoryModelRepository()


@pytest.fixture
def definitions():
    return StaticDefinitionsProvider(intents={
        "fr": [
            IntentDefinition(name="greeting", utterances=["bonjour", "salut", "coucou"]),
        ],
        "en": [
            IntentDefinition(name="greeting", utterances=["hello", "hi"]),
        ],
    })


@pytest.fixture
def orchestrator(bot, engine, repository, definitions):
    return ModelOrchestrator(bot, engine, repository, definitions)


def write_definitions(root, bot_id: str = "bot1", languages=("en", "fr")) -> None:
    """Write a small bot folder: bot.json, two intents, one list entity."""
    bot_dir = root / bot_id
    (bot_dir / "intents").mkdir(parents=True)
    (bot_dir / "entities").mkdir(parents=True)

    (bot_dir / "bot.json").write_text(json.dumps({
        "default_language": languages[0],
        "languages": list(languages),
    }))
    (bot_dir / "intents" / "greeting.json").write_text(json.dumps({
        "name": "Greeting",
        "contexts": ["global"],
        "utterances": {
            "en": ["hello", "hi there", "good morning"],
            "fr": ["bonjour", "salut", "coucou"],
        },
        "slots": [],
    }))
    (bot_dir / "intents" / "book_flight.json").write_text(json.dumps({
        "name": "Book Flight",
        "utterances": {
            "en": ["book a flight to paris", "i want to fly to london", "find me a flight"],
            "fr": ["reserver un vol pour paris", "je veux prendre l'avion"],
        },
    }))
    (bot_dir / "entities" / "city.json").write_text(json.dumps({
        "name": "city",
        "type": "list",
        "occurrences": [
            {"name": "Paris", "synonyms": ["city of light"]},
            {"name": "London", "synonyms": []},
        ],
        "fuzzy": 1.0,
    }))
