"""Epigram Cards - tiered study cards from books and articles using Claude."""

__version__ = "0.1.0"

from .cache import ResultCache
from .chunking import ChunkStore, RelatedChunkFinder, chunk_document, generate_content_id
from .completion import AnthropicCompletion, CompletionRequest, TextCompletion
from .config import PipelineSettings
from .deduplicator import ChunkDeduplicator
from .errors import (
    CompletionError,
    CompletionTimeout,
    EmptyResult,
    FatalConfigurationError,
    InsufficientCards,
    PipelineError,
    ResponseParseError,
    RunCancelled,
    RunInProgressError,
    TooManyInvalidCards,
    ValidationFailure,
)
from .models import (
    ApplicationCard,
    BookMetadata,
    Card,
    CardTier,
    Chunk,
    FlashcardCard,
    PipelineResult,
    QuizCard,
    SynthesisCard,
)
from .parser import extract_document
from .pipeline import CardPipelineOrchestrator, PipelineContext
from .validator import CardValidator

__all__ = [
    # Pipeline
    "CardPipelineOrchestrator",
    "PipelineContext",
    "PipelineSettings",
    # Components
    "ChunkDeduplicator",
    "RelatedChunkFinder",
    "CardValidator",
    "ResultCache",
    "ChunkStore",
    "chunk_document",
    "generate_content_id",
    "extract_document",
    # Completion
    "AnthropicCompletion",
    "CompletionRequest",
    "TextCompletion",
    # Models
    "ApplicationCard",
    "BookMetadata",
    "Card",
    "CardTier",
    "Chunk",
    "FlashcardCard",
    "PipelineResult",
    "QuizCard",
    "SynthesisCard",
    # Errors
    "PipelineError",
    "FatalConfigurationError",
    "ValidationFailure",
    "EmptyResult",
    "InsufficientCards",
    "TooManyInvalidCards",
    "CompletionError",
    "CompletionTimeout",
    "ResponseParseError",
    "RunCancelled",
    "RunInProgressError",
]
