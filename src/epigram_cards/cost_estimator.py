"""Cost estimation for a card generation run."""

from dataclasses import dataclass, field
from typing import Optional

from .models import TIER_ORDER, CardTier, Chunk
from .pipeline import group_chunks, window_count


@dataclass
class CostEstimate:
    """Estimated cost for processing."""

    total_input_tokens: int
    total_output_tokens: int
    estimated_cost_usd: float
    chunks_count: int
    groups_count: int
    total_words: int

    # Per-tier breakdown
    calls_per_tier: dict[str, int] = field(default_factory=dict)
    cards_per_tier: dict[str, int] = field(default_factory=dict)

    @property
    def total_calls(self) -> int:
        return sum(self.calls_per_tier.values())

    def __str__(self) -> str:
        return (
            f"Estimated cost: ${self.estimated_cost_usd:.4f} USD\n"
            f"  Completion calls: {self.total_calls}\n"
            f"  Input tokens: ~{self.total_input_tokens:,}\n"
            f"  Output tokens: ~{self.total_output_tokens:,}\n"
            f"  Chunks: {self.chunks_count} in {self.groups_count} groups\n"
            f"  Total words: {self.total_words:,}"
        )


class CostEstimator:
    """Estimate API costs before generation."""

    # Claude Sonnet 4 pricing
    # https://www.anthropic.com/pricing
    INPUT_PRICE_PER_1M = 3.00
    OUTPUT_PRICE_PER_1M = 15.00

    CHARS_PER_TOKEN = 4
    SYSTEM_PROMPT_TOKENS = 400
    PROMPT_TEMPLATE_TOKENS = 350
    RELATED_EXCERPT_TOKENS = 80  # per related chunk shown to the model
    SUMMARY_EXCERPT_TOKENS = 100  # per chapter summary shown to the overview call

    # Tokens a finished card occupies, as output and when fed to a later tier
    TOKENS_PER_CARD = {
        CardTier.FLASHCARD: 150,
        CardTier.APPLICATION: 250,
        CardTier.QUIZ: 200,
        CardTier.SYNTHESIS: 450,
    }

    FLASHCARDS_PER_CHUNK = 4
    APPLICATIONS_PER_CALL = 2
    QUIZZES_PER_CALL = 3
    SYNTHESIS_PER_CALL = 1

    def __init__(
        self,
        application_window: int = 3,
        synthesis_window: int = 8,
        related_chunks_k: int = 3,
        book_overview: bool = True,
        input_price_per_1m: Optional[float] = None,
        output_price_per_1m: Optional[float] = None,
    ):
        """
        Initialize cost estimator.

        Args:
            application_window: Flashcards per application call
            synthesis_window: Unlabeled chunks per synthesis group
            related_chunks_k: Related chunks attached to each flashcard call
            book_overview: Count the closing book overview call
            input_price_per_1m: Override input token price per 1M tokens
            output_price_per_1m: Override output token price per 1M tokens
        """
        self.application_window = application_window
        self.synthesis_window = synthesis_window
        self.related_chunks_k = related_chunks_k
        self.book_overview = book_overview
        self.input_price = input_price_per_1m or self.INPUT_PRICE_PER_1M
        self.output_price = output_price_per_1m or self.OUTPUT_PRICE_PER_1M

    def estimate(self, chunks: list[Chunk]) -> CostEstimate:
        """
        Estimate total cost for generating cards from a document's chunks.

        Args:
            chunks: The document's stored chunks

        Returns:
            CostEstimate with per-tier breakdown
        """
        unique = list({c.id: c for c in chunks}.values())
        groups = group_chunks(unique, self.synthesis_window)
        overhead = self.SYSTEM_PROMPT_TOKENS + self.PROMPT_TEMPLATE_TOKENS
        per_card = self.TOKENS_PER_CARD

        calls = {tier: 0 for tier in TIER_ORDER}
        cards = {tier: 0 for tier in TIER_ORDER}
        input_tokens = 0

        for chunk in unique:
            related = min(self.related_chunks_k, len(unique) - 1)
            input_tokens += overhead + len(chunk.text) // self.CHARS_PER_TOKEN
            input_tokens += related * self.RELATED_EXCERPT_TOKENS
        calls[CardTier.FLASHCARD] = len(unique)
        cards[CardTier.FLASHCARD] = len(unique) * self.FLASHCARDS_PER_CHUNK

        for group in groups:
            flashcards = len(group.chunks) * self.FLASHCARDS_PER_CHUNK
            app_calls = window_count(flashcards, self.application_window)
            applications = app_calls * self.APPLICATIONS_PER_CALL
            quizzes = self.QUIZZES_PER_CALL

            calls[CardTier.APPLICATION] += app_calls
            cards[CardTier.APPLICATION] += applications
            input_tokens += app_calls * (
                overhead + min(flashcards, self.application_window) * per_card[CardTier.FLASHCARD]
            )

            calls[CardTier.QUIZ] += 1
            cards[CardTier.QUIZ] += quizzes
            input_tokens += overhead + (
                flashcards * per_card[CardTier.FLASHCARD]
                + applications * per_card[CardTier.APPLICATION]
            )

            calls[CardTier.SYNTHESIS] += 1
            cards[CardTier.SYNTHESIS] += self.SYNTHESIS_PER_CALL
            input_tokens += overhead + (
                flashcards * per_card[CardTier.FLASHCARD]
                + applications * per_card[CardTier.APPLICATION]
                + quizzes * per_card[CardTier.QUIZ]
            )

        if self.book_overview and len(groups) > 1:
            calls[CardTier.SYNTHESIS] += 1
            cards[CardTier.SYNTHESIS] += 1
            input_tokens += overhead + len(groups) * self.SUMMARY_EXCERPT_TOKENS

        output_tokens = sum(cards[tier] * per_card[tier] for tier in TIER_ORDER)

        input_cost = (input_tokens / 1_000_000) * self.input_price
        output_cost = (output_tokens / 1_000_000) * self.output_price

        return CostEstimate(
            total_input_tokens=input_tokens,
            total_output_tokens=output_tokens,
            estimated_cost_usd=round(input_cost + output_cost, 4),
            chunks_count=len(unique),
            groups_count=len(groups),
            total_words=sum(c.word_count for c in unique),
            calls_per_tier={tier.value: calls[tier] for tier in TIER_ORDER},
            cards_per_tier={tier.value: cards[tier] for tier in TIER_ORDER},
        )
