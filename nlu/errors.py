"""Exceptions raised by the model lifecycle core and its collaborators."""

from typing import Optional


class NLUError(Exception):
    """Base class for all NLU service errors."""


class UnsupportedLanguageError(NLUError):
    """The bot is not configured for the requested language."""

    def __init__(self, bot_id: str, language_code: str):
        self.bot_id = bot_id
        self.language_code = language_code
        super().__init__(
            f"Bot {bot_id} has no support for language {language_code}."
        )


class ModelNotFoundError(NLUError):
    """No matching model artifact in the repository."""


class NoModelAvailableError(NLUError):
    """Neither the requested nor the default-language model is loaded."""

    def __init__(self, bot_id: str, language_code: str, default_language: str):
        self.bot_id = bot_id
        self.language_code = language_code
        self.default_language = default_language
        super().__init__(
            f"Bot {bot_id} has no model loaded for language {language_code} "
            f"nor for its default language {default_language}."
        )


class TrainingFailedError(NLUError):
    """Training did not produce a model."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)


class TrainingCanceledError(TrainingFailedError):
    """Training was canceled before completion."""


class TrainingAlreadyInProgressError(NLUError):
    """A training for the same bot and language is already running."""

    def __init__(self, training_id: str):
        self.training_id = training_id
        super().__init__(f"Training {training_id} is already in progress.")


class DependencyInitError(NLUError):
    """A collaborator failed to initialize during mount."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)


class NotMountedError(NLUError):
    """An operation was called before a successful mount."""


class InvalidModelIdError(NLUError):
    """A model id string could not be parsed."""


class ModelNotLoadedError(NLUError):
    """The engine was asked to predict with a model it has not loaded."""


class BotNotMountedError(NLUError):
    """No bot with that id is mounted."""

    def __init__(self, bot_id: str):
        self.bot_id = bot_id
        super().__init__(f"Bot {bot_id} is not mounted.")
