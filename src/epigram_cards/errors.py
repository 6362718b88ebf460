"""Exceptions raised by the card generation pipeline."""

from typing import Optional


class PipelineError(Exception):
    """Base class for pipeline failures."""

    def __init__(self, message: str, content_id: Optional[str] = None):
        super().__init__(message)
        self.content_id = content_id


class FatalConfigurationError(PipelineError):
    """Required chunks or metadata are missing; nothing was generated."""


class RunInProgressError(PipelineError):
    """Another run for the same content id has not finished."""


class RunCancelled(PipelineError):
    """The caller cancelled the run; partial results were discarded."""


class ValidationFailure(PipelineError):
    """The generated card set did not pass the validation gate."""

    reason = "validation_failed"

    def __init__(
        self,
        message: str,
        total: int = 0,
        invalid: int = 0,
        content_id: Optional[str] = None,
    ):
        super().__init__(message, content_id=content_id)
        self.total = total
        self.invalid = invalid


class EmptyResult(ValidationFailure):
    reason = "empty_result"


class InsufficientCards(ValidationFailure):
    reason = "insufficient_cards"


class TooManyInvalidCards(ValidationFailure):
    reason = "too_many_invalid_cards"


class CompletionError(Exception):
    """The text completion service failed or was unavailable."""


class CompletionTimeout(CompletionError):
    """The text completion service did not answer in time."""


class ResponseParseError(ValueError):
    """A completion response did not contain a usable JSON payload."""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw
