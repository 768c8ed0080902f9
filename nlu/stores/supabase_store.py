"""Supabase model repository."""

import base64
import logging
from datetime import datetime
from typing import List, Optional

from nlu.core.abstractions import BaseModelRepository, Model
from nlu.core.model_id import ModelId

logger = logging.getLogger(__name__)


class SupabaseModelRepository(BaseModelRepository):
    """Stores models as rows of a Supabase table, payload base64 encoded."""

    def __init__(
        self,
        supabase_url: str,
        supabase_key: str,
        bot_id: str,
        table: str = "nlu_models",
        service_role_key: Optional[str] = None
    ):
        self._url = supabase_url
        self._key = supabase_key
        self._service_key = service_role_key
        self._bot_id = bot_id
        self._table = table
        self._client = None

    @property
    def store_name(self) -> str:
        return "supabase"

    async def initialize(self) -> None:
        """Connect to Supabase."""
        if self._client is not None:
            return

        from supabase import create_client

        key = self._service_key or self._key
        self._client = create_client(self._url, key)
        logger.info(f"Connected to Supabase table {self._table}")

    async def teardown(self) -> None:
        """Disconnect from Supabase."""
        self._client = None
        logger.info("Disconnected from Supabase")

    def _query(self):
        return self._client.table(self._table)

    def _to_model(self, row: dict) -> Model:
        return Model(
            id=ModelId.from_string(row["model_id"]),
            payload=base64.b64decode(row["payload"]),
            created_at=datetime.fromisoformat(row["created_at"])
        )

    async def get_model(self, model_id: ModelId) -> Optional[Model]:
        result = self._query() \
            .select("*") \
            .eq("bot_id", self._bot_id) \
            .eq("model_id", model_id.to_string()) \
            .limit(1) \
            .execute()

        if not result.data:
            return None
        return self._to_model(result.data[0])

    async def get_latest_model(self, language_code: str) -> Optional[Model]:
        result = self._query() \
            .select("*") \
            .eq("bot_id", self._bot_id) \
            .eq("language_code", language_code) \
            .order("created_at", desc=True) \
            .limit(1) \
            .execute()

        if not result.data:
            return None
        return self._to_model(result.data[0])

    async def save_model(self, model: Model) -> None:
        data = {
            "bot_id": self._bot_id,
            "model_id": model.id.to_string(),
            "language_code": model.language_code,
            "created_at": model.created_at.isoformat(),
            "payload": base64.b64encode(model.payload).decode("ascii"),
        }
        self._query().upsert(data, on_conflict="model_id").execute()
        logger.info(f"Saved model {model.id.brief} to Supabase")

    async def list_models(self, language_code: str) -> List[Model]:
        result = self._query() \
            .select("*") \
            .eq("bot_id", self._bot_id) \
            .eq("language_code", language_code) \
            .execute()

        return [self._to_model(row) for row in result.data or []]

    async def delete_model(self, model_id: ModelId) -> None:
        self._query() \
            .delete() \
            .eq("bot_id", self._bot_id) \
            .eq("model_id", model_id.to_string()) \
            .execute()
        logger.info(f"Deleted model {model_id.brief} from Supabase")
