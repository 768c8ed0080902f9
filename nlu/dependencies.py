"""FastAPI dependency injection."""

import os
from functools import lru_cache

from nlu.config import settings
from nlu.core.abstractions import BaseDefinitionsProvider, BaseModelRepository
from nlu.engines import CentroidEngine
from nlu.errors import DependencyInitError
from nlu.services import BotService
from nlu.stores import (
    FileSystemDefinitionsProvider,
    FileSystemModelRepository,
    SupabaseModelRepository,
)


def create_model_repository(bot_id: str) -> BaseModelRepository:
    """Model repository of a bot, per the configured model store."""
    if settings.storage_backend == "supabase":
        if not settings.supabase_url or not settings.supabase_anon_key:
            raise DependencyInitError(
                "Supabase model store requires NLU_SUPABASE_URL and NLU_SUPABASE_ANON_KEY"
            )
        return SupabaseModelRepository(
            supabase_url=settings.supabase_url,
            supabase_key=settings.supabase_anon_key,
            bot_id=bot_id,
            table=settings.supabase_models_table,
            service_role_key=settings.supabase_service_role_key
        )

    if settings.storage_backend != "filesystem":
        raise DependencyInitError(f"Unknown model store: {settings.storage_backend}")
    return FileSystemModelRepository(settings.models_dir, bot_id)


def create_definitions_provider(bot_id: str) -> BaseDefinitionsProvider:
    """Definitions of a bot, read from its folder under the definitions directory."""
    return FileSystemDefinitionsProvider(
        os.path.join(settings.definitions_dir, bot_id),
        bot_id,
        seed=settings.default_seed
    )


# Bot service singleton
@lru_cache()
def get_bot_service() -> BotService:
    """Get the bot service instance."""
    return BotService(
        engine=CentroidEngine(),
        repository_factory=create_model_repository,
        definitions_factory=create_definitions_provider,
        models_to_keep=settings.models_to_keep,
        auto_train_on_mount=settings.auto_train_on_mount
    )
