"""Map service errors to HTTP errors."""

from fastapi import HTTPException

from nlu.errors import (
    BotNotMountedError,
    DependencyInitError,
    InvalidModelIdError,
    ModelNotFoundError,
    NLUError,
    NoModelAvailableError,
    TrainingAlreadyInProgressError,
    UnsupportedLanguageError,
)

STATUS_CODES = {
    UnsupportedLanguageError: 400,
    InvalidModelIdError: 400,
    BotNotMountedError: 404,
    ModelNotFoundError: 404,
    NoModelAvailableError: 404,
    TrainingAlreadyInProgressError: 409,
    DependencyInitError: 500,
}


def to_http_error(error: NLUError) -> HTTPException:
    for error_type, status_code in STATUS_CODES.items():
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))
