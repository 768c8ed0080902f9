"""Request schemas for the API."""

from typing import List, Optional
from pydantic import BaseModel, Field


class MountBotRequest(BaseModel):
    """Bot to mount with the languages it speaks."""
    bot_id: str = Field(..., min_length=1, max_length=100, pattern=r"^[A-Za-z0-9_-]+$")
    default_language: str = Field(..., min_length=2, max_length=10)
    languages: List[str] = Field(..., min_length=1)


class PredictRequest(BaseModel):
    """Text to understand."""
    text: str = Field(..., min_length=1, max_length=2000)
    language: Optional[str] = None  # Falls back to the bot default language
