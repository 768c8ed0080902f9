"""Filesystem model repository: one directory per bot."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from nlu.core.abstractions import BaseModelRepository, Model
from nlu.core.model_id import ModelId
from nlu.errors import InvalidModelIdError

logger = logging.getLogger(__name__)

MODEL_EXT = ".model"
META_EXT = ".json"


class FileSystemModelRepository(BaseModelRepository):
    """Stores each model as a payload file plus a JSON metadata file."""

    def __init__(self, base_dir: str, bot_id: str):
        self._dir = Path(base_dir) / bot_id
        self._bot_id = bot_id

    @property
    def store_name(self) -> str:
        return "filesystem"

    @property
    def directory(self) -> Path:
        return self._dir

    async def initialize(self) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Model repository ready at {self._dir}")

    async def teardown(self) -> None:
        pass

    def _paths(self, model_id: ModelId):
        stem = model_id.to_string()
        return self._dir / f"{stem}{MODEL_EXT}", self._dir / f"{stem}{META_EXT}"

    def _read(self, meta_path: Path) -> Optional[Model]:
        """Read a model from its metadata file, None when incomplete or foreign."""
        try:
            meta = json.loads(meta_path.read_text(encoding="utf-8"))
            model_id = ModelId.from_string(meta["model_id"])
            created_at = datetime.fromisoformat(meta["created_at"])
        except (OSError, ValueError, KeyError, InvalidModelIdError) as e:
            logger.warning(f"Skipping unreadable model metadata {meta_path.name}: {e}")
            return None

        payload_path = meta_path.with_suffix(MODEL_EXT)
        if not payload_path.exists():
            logger.warning(f"Model payload missing for {model_id.brief}")
            return None

        return Model(
            id=model_id,
            payload=payload_path.read_bytes(),
            created_at=created_at
        )

    async def get_model(self, model_id: ModelId) -> Optional[Model]:
        _, meta_path = self._paths(model_id)
        if not meta_path.exists():
            return None
        return self._read(meta_path)

    async def get_latest_model(self, language_code: str) -> Optional[Model]:
        models = await self.list_models(language_code)
        if not models:
            return None
        return max(models, key=lambda m: m.created_at)

    async def save_model(self, model: Model) -> None:
        payload_path, meta_path = self._paths(model.id)
        resaved = meta_path.exists()

        # Same id, same artifact: overwrite in place so created_at is refreshed
        payload_path.write_bytes(model.payload)
        # Metadata last: a model is only visible once both files exist
        meta_path.write_text(json.dumps({
            "model_id": model.id.to_string(),
            "language_code": model.language_code,
            "created_at": model.created_at.isoformat(),
        }), encoding="utf-8")
        if resaved:
            logger.info(f"Refreshed model {model.id.brief} created at {model.created_at.isoformat()}")
        else:
            logger.info(f"Saved model {model.id.brief} ({len(model.payload)} bytes)")

    async def list_models(self, language_code: str) -> List[Model]:
        models = []
        for meta_path in self._dir.glob(f"*{META_EXT}"):
            model = self._read(meta_path)
            if model is not None and model.language_code == language_code:
                models.append(model)
        return models

    async def delete_model(self, model_id: ModelId) -> None:
        payload_path, meta_path = self._paths(model_id)
        meta_path.unlink(missing_ok=True)
        payload_path.unlink(missing_ok=True)
        logger.info(f"Deleted model {model_id.brief}")
