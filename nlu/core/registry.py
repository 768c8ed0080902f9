"""In-memory registry of the models loaded for a bot, one per language."""

import logging
import threading
from typing import Dict, Iterable, List, Optional, Tuple

from nlu.errors import UnsupportedLanguageError
from .abstractions import Model

logger = logging.getLogger(__name__)


class ModelRegistry:
    """
    Language code -> currently loaded Model.

    Entries are replaced by a single assignment under a lock, so readers
    see either the previous model or the new one, never a partial entry.
    """

    def __init__(self, bot_id: str, languages: Iterable[str]):
        self._bot_id = bot_id
        self._languages = frozenset(languages)
        self._models: Dict[str, Model] = {}
        self._lock = threading.Lock()

    def get(self, language_code: str) -> Optional[Model]:
        return self._models.get(language_code)

    def install(self, model: Model) -> Optional[Model]:
        """Install a model for its language. Returns the replaced model."""
        language_code = model.language_code
        if language_code not in self._languages:
            raise UnsupportedLanguageError(self._bot_id, language_code)

        with self._lock:
            previous = self._models.get(language_code)
            self._models[language_code] = model

        logger.info(f"Installed model {model.id.brief} for {self._bot_id}/{language_code}")
        return previous

    def remove(self, language_code: str) -> Optional[Model]:
        """Remove the entry of a language. Returns the removed model."""
        with self._lock:
            return self._models.pop(language_code, None)

    def items(self) -> List[Tuple[str, Model]]:
        """Snapshot of the entries."""
        with self._lock:
            return list(self._models.items())

    def snapshot(self) -> Dict[str, Model]:
        with self._lock:
            return dict(self._models)

    def check(self) -> None:
        """Raise if an entry violates the registry invariants."""
        for language_code, model in self.items():
            if language_code not in self._languages:
                raise UnsupportedLanguageError(self._bot_id, language_code)
            if model.language_code != language_code:
                raise ValueError(
                    f"Model {model.id.brief} serves {model.language_code}, "
                    f"registered under {language_code}"
                )

    def __contains__(self, language_code: str) -> bool:
        return language_code in self._models

    def __len__(self) -> int:
        return len(self._models)
