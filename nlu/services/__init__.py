"""Business logic services."""

from .bot_service import BotService, TrainingSession, TrainingStatus

__all__ = [
    "BotService",
    "TrainingSession",
    "TrainingStatus",
]
