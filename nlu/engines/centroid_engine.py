"""Nearest-centroid intent classifier with list and pattern entity extraction."""

import asyncio
import json
import logging
import re
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

import numpy as np

from nlu.core.abstractions import (
    BaseEngine,
    EntityDefinition,
    EntityOccurrence,
    EntityPrediction,
    IntentPrediction,
    Model,
    PredictionResult,
    TrainingOptions,
    TrainingSet,
)
from nlu.core.model_id import ModelId, halfmd5
from nlu.errors import ModelNotLoadedError, TrainingCanceledError, TrainingFailedError

logger = logging.getLogger(__name__)

ENGINE_VERSION = "centroid-1.0"
TOKEN_PATTERN = re.compile(r"\w+", re.UNICODE)


def tokenize(text: str) -> List[str]:
    return TOKEN_PATTERN.findall(text.lower())


@dataclass
class LoadedModel:
    """A model ready for inference."""
    model_id: ModelId
    intents: List[str]
    vocabulary: Dict[str, int]
    centroids: np.ndarray
    entities: List[EntityDefinition]


class CentroidEngine(BaseEngine):
    """
    Each intent is the mean of its L2-normalized bag-of-words utterance
    vectors. Prediction ranks intents by cosine similarity.
    """

    def __init__(self, version: str = ENGINE_VERSION):
        self._version = version
        self._specification_hash = halfmd5(version)
        self._loaded: Dict[ModelId, LoadedModel] = {}
        self._cancel_events: Dict[str, asyncio.Event] = {}

    @property
    def specification_hash(self) -> str:
        return self._specification_hash

    def fingerprint(self, training_set: TrainingSet) -> str:
        content = {
            "intents": sorted(
                (asdict(intent) for intent in training_set.intents),
                key=lambda i: i["name"]
            ),
            "entities": sorted(
                (asdict(entity) for entity in training_set.entities),
                key=lambda e: e["name"]
            ),
        }
        return halfmd5(json.dumps(content, sort_keys=True))

    async def train(
        self,
        training_id: str,
        training_set: TrainingSet,
        options: TrainingOptions
    ) -> Model:
        if training_id in self._cancel_events:
            raise TrainingFailedError(f"Training {training_id} is already running")

        cancel = asyncio.Event()
        self._cancel_events[training_id] = cancel
        try:
            return await self._train(training_id, training_set, options, cancel)
        finally:
            del self._cancel_events[training_id]

    async def _train(
        self,
        training_id: str,
        training_set: TrainingSet,
        options: TrainingOptions,
        cancel: asyncio.Event
    ) -> Model:
        previous = self._previous_intents(options.previous_model)
        total = len(training_set.intents)
        intents = {}
        reused = 0

        for index, intent in enumerate(training_set.intents):
            if cancel.is_set():
                raise TrainingCanceledError(f"Training {training_id} was canceled")

            intent_hash = halfmd5(json.dumps(intent.utterances))
            seed = previous.get(intent.name)
            if seed is not None and seed["hash"] == intent_hash:
                weights = seed["weights"]
                reused += 1
            else:
                weights = self._centroid_weights(intent.utterances)

            intents[intent.name] = {"hash": intent_hash, "weights": weights}
            self._report(options, (index + 1) / total)

            # Let predictions and cancellation run between intents
            await asyncio.sleep(0)

        if cancel.is_set():
            raise TrainingCanceledError(f"Training {training_id} was canceled")
        if total == 0:
            self._report(options, 1.0)

        payload = json.dumps({
            "engine": self._version,
            "specification_hash": self._specification_hash,
            "intents": intents,
            "entities": [asdict(e) for e in training_set.entities],
        }).encode("utf-8")

        model_id = ModelId(
            bot_id=training_set.bot_id,
            language_code=training_set.language_code,
            specification_hash=self._specification_hash,
            content_hash=self.fingerprint(training_set),
            seed=training_set.seed
        )
        logger.info(
            f"Trained {model_id.brief}: {total} intents, {reused} reused from previous model"
        )
        return Model(id=model_id, payload=payload, created_at=datetime.now(timezone.utc))

    def _previous_intents(self, previous_model: Optional[Model]) -> dict:
        """Intents of the previous model, usable only with the same specification."""
        if previous_model is None:
            return {}
        if previous_model.id.specification_hash != self._specification_hash:
            return {}
        try:
            return json.loads(previous_model.payload)["intents"]
        except (ValueError, KeyError) as e:
            logger.warning(f"Ignoring unreadable previous model {previous_model.id.brief}: {e}")
            return {}

    def _centroid_weights(self, utterances: List[str]) -> Dict[str, float]:
        """Mean of the L2-normalized term-frequency vectors."""
        weights: Dict[str, float] = {}
        for utterance in utterances:
            tokens = tokenize(utterance)
            if not tokens:
                continue
            counts: Dict[str, int] = {}
            for token in tokens:
                counts[token] = counts.get(token, 0) + 1
            norm = float(np.sqrt(sum(c * c for c in counts.values())))
            for token, count in counts.items():
                weights[token] = weights.get(token, 0.0) + count / norm

        n = len(utterances)
        return {token: value / n for token, value in weights.items()}

    def _report(self, options: TrainingOptions, progress: float) -> None:
        if options.progress_callback is not None:
            options.progress_callback(progress)

    async def cancel_training(self, training_id: str) -> None:
        event = self._cancel_events.get(training_id)
        if event is None:
            return
        event.set()
        logger.info(f"Cancellation requested for training {training_id}")

    async def load_model(self, model: Model) -> None:
        """Build the centroid matrix of a model."""
        if model.id in self._loaded:
            return

        try:
            data = json.loads(model.payload)
            intents: Dict[str, dict] = data["intents"]
            raw_entities = data.get("entities", [])
        except (ValueError, KeyError) as e:
            raise ValueError(f"Model {model.id.brief} payload is not readable: {e}") from e

        names = sorted(intents)
        vocabulary: Dict[str, int] = {}
        for name in names:
            for token in intents[name]["weights"]:
                vocabulary.setdefault(token, len(vocabulary))

        centroids = np.zeros((len(names), len(vocabulary)), dtype=np.float32)
        for row, name in enumerate(names):
            for token, weight in intents[name]["weights"].items():
                centroids[row, vocabulary[token]] = weight

        norms = np.linalg.norm(centroids, axis=1, keepdims=True)
        norms[norms == 0] = 1.0
        centroids /= norms

        entities = [
            EntityDefinition(
                name=e["name"],
                type=e.get("type", "list"),
                occurrences=[EntityOccurrence(**o) for o in e.get("occurrences", [])],
                pattern=e.get("pattern"),
                fuzzy=e.get("fuzzy", 1.0)
            )
            for e in raw_entities
        ]

        self._loaded[model.id] = LoadedModel(
            model_id=model.id,
            intents=names,
            vocabulary=vocabulary,
            centroids=centroids,
            entities=entities
        )
        logger.info(f"Loaded {model.id.brief} ({len(names)} intents, {len(vocabulary)} tokens)")

    async def unload_model(self, model_id: ModelId) -> None:
        if self._loaded.pop(model_id, None) is not None:
            logger.info(f"Unloaded {model_id.brief}")

    def is_loaded(self, model_id: ModelId) -> bool:
        return model_id in self._loaded

    async def predict(self, model: Model, text: str) -> PredictionResult:
        loaded = self._loaded.get(model.id)
        if loaded is None:
            raise ModelNotLoadedError(f"Model {model.id.brief} is not loaded")

        return PredictionResult(
            language_code=model.language_code,
            model_id=model.id,
            intents=self._classify(loaded, text),
            entities=self._extract_entities(loaded, text)
        )

    def _classify(self, loaded: LoadedModel, text: str) -> List[IntentPrediction]:
        if not loaded.intents:
            return []

        vector = np.zeros(len(loaded.vocabulary), dtype=np.float32)
        for token in tokenize(text):
            index = loaded.vocabulary.get(token)
            if index is not None:
                vector[index] += 1.0

        norm = np.linalg.norm(vector)
        if norm == 0:
            scores = np.zeros(len(loaded.intents), dtype=np.float32)
        else:
            scores = np.clip(loaded.centroids @ (vector / norm), 0.0, None)
            total = float(scores.sum())
            if total > 0:
                scores = scores / total

        predictions = [
            IntentPrediction(name=name, confidence=float(score))
            for name, score in zip(loaded.intents, scores)
        ]
        predictions.sort(key=lambda p: (-p.confidence, p.name))
        return predictions

    def _extract_entities(self, loaded: LoadedModel, text: str) -> List[EntityPrediction]:
        found = []
        for entity in loaded.entities:
            if entity.type == "pattern" and entity.pattern:
                for match in re.finditer(entity.pattern, text, re.IGNORECASE):
                    found.append(EntityPrediction(
                        name=entity.name,
                        value=match.group(0),
                        source=match.group(0),
                        start=match.start(),
                        end=match.end()
                    ))
                continue

            for occurrence in entity.occurrences:
                for surface in [occurrence.name, *occurrence.synonyms]:
                    expression = r"(?<!\w)" + re.escape(surface) + r"(?!\w)"
                    for match in re.finditer(expression, text, re.IGNORECASE):
                        found.append(EntityPrediction(
                            name=entity.name,
                            value=occurrence.name,
                            source=match.group(0),
                            start=match.start(),
                            end=match.end()
                        ))

        found.sort(key=lambda e: (e.start, e.end))
        return found
