"""Tier generators and completion response parsing."""

from .base import GenerationStats, TierGenerator
from .parsing import parse_tier_response
from .tiers import (
    BOOK_OVERVIEW_LABEL,
    ApplicationGenerator,
    ApplicationInput,
    FlashcardGenerator,
    FlashcardInput,
    OverviewGenerator,
    OverviewInput,
    QuizGenerator,
    QuizInput,
    SynthesisGenerator,
    SynthesisInput,
)

__all__ = [
    "TierGenerator",
    "GenerationStats",
    "parse_tier_response",
    "FlashcardGenerator",
    "FlashcardInput",
    "ApplicationGenerator",
    "ApplicationInput",
    "QuizGenerator",
    "QuizInput",
    "SynthesisGenerator",
    "SynthesisInput",
    "OverviewGenerator",
    "OverviewInput",
    "BOOK_OVERVIEW_LABEL",
]
