"""Reads intents and entities of a bot from JSON files."""

import json
import logging
import re
from pathlib import Path
from typing import List

from nlu.core.abstractions import (
    BaseDefinitionsProvider,
    EntityDefinition,
    EntityOccurrence,
    IntentDefinition,
    TrainingSet,
)

logger = logging.getLogger(__name__)


def sanitize_name(text: str) -> str:
    """Lowercase, whitespace to dashes, drop anything outside [a-z0-9-_.]."""
    text = re.sub(r"\s", "-", text.lower())
    return re.sub(r"[^a-z0-9\-_.]", "", text)


class FileSystemDefinitionsProvider(BaseDefinitionsProvider):
    """
    Training definitions laid out as:

        <bot_dir>/intents/<name>.json
        <bot_dir>/entities/<name>.json
    """

    def __init__(self, bot_dir: str, bot_id: str, seed: int = 42):
        self._dir = Path(bot_dir)
        self._bot_id = bot_id
        self._seed = seed
        self._initialized = False

    async def initialize(self) -> None:
        if not self._dir.is_dir():
            raise FileNotFoundError(f"Definitions directory {self._dir} does not exist")
        self._initialized = True
        logger.info(f"Reading definitions of {self._bot_id} from {self._dir}")

    async def teardown(self) -> None:
        self._initialized = False

    def _read_json_files(self, folder: str) -> List[dict]:
        items = []
        for path in sorted((self._dir / folder).glob("*.json")):
            try:
                items.append(json.loads(path.read_text(encoding="utf-8")))
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid definition file {path}: {e}") from e
        return items

    def _read_intents(self, language_code: str) -> List[IntentDefinition]:
        intents = []
        for raw in self._read_json_files("intents"):
            utterances = [
                u.strip()
                for u in raw.get("utterances", {}).get(language_code, [])
                if u.strip()
            ]
            if not utterances:
                continue

            intents.append(IntentDefinition(
                name=sanitize_name(raw["name"]),
                utterances=utterances,
                contexts=raw.get("contexts") or ["global"],
                slots=raw.get("slots", [])
            ))
        return intents

    def _read_entities(self) -> List[EntityDefinition]:
        entities = []
        for raw in self._read_json_files("entities"):
            occurrences = [
                EntityOccurrence(name=o["name"], synonyms=o.get("synonyms", []))
                for o in raw.get("occurrences", [])
            ]
            entities.append(EntityDefinition(
                name=raw["name"],
                type=raw.get("type", "list"),
                occurrences=occurrences,
                pattern=raw.get("pattern"),
                fuzzy=raw.get("fuzzy", 1.0)
            ))
        return entities

    async def get_train_set(self, language_code: str) -> TrainingSet:
        training_set = TrainingSet(
            bot_id=self._bot_id,
            language_code=language_code,
            seed=self._seed,
            intents=self._read_intents(language_code),
            entities=self._read_entities()
        )
        logger.debug(
            f"Training set {self._bot_id}/{language_code}: "
            f"{len(training_set.intents)} intents, {len(training_set.entities)} entities"
        )
        return training_set
