"""Validation gate applied to a run's generated cards before caching."""

import logging
from dataclasses import dataclass, field
from typing import Union

from pydantic import ValidationError

from .errors import EmptyResult, InsufficientCards, TooManyInvalidCards
from .models import (
    ApplicationCard,
    FlashcardCard,
    QuizCard,
    SynthesisCard,
    card_adapter,
)

logger = logging.getLogger(__name__)

MIN_TITLE_CHARS = 10
MIN_FRONT_CHARS = 20
MIN_BACK_CHARS = 100
MIN_QUESTION_CHARS = 20
MIN_EXPLANATION_CHARS = 30
MIN_CHOICES = 2
MIN_SCENARIO_CHARS = 20


def _too_short(value: str | None, minimum: int) -> bool:
    return not value or len(value.strip()) < minimum


def card_issues(card) -> list[str]:
    """
    List what is wrong with a single card.

    Returns:
        Problem descriptions; empty for a valid card
    """
    issues: list[str] = []

    if _too_short(card.title, MIN_TITLE_CHARS):
        issues.append(f"title shorter than {MIN_TITLE_CHARS} chars")

    if isinstance(card, (FlashcardCard, SynthesisCard)):
        if _too_short(card.front, MIN_FRONT_CHARS):
            issues.append(f"front shorter than {MIN_FRONT_CHARS} chars")
        if _too_short(card.back, MIN_BACK_CHARS):
            issues.append(f"back shorter than {MIN_BACK_CHARS} chars")
    elif isinstance(card, QuizCard):
        quiz = card.quiz
        if _too_short(quiz.question, MIN_QUESTION_CHARS):
            issues.append(f"question shorter than {MIN_QUESTION_CHARS} chars")
        if len(quiz.choices) < MIN_CHOICES or any(not c.strip() for c in quiz.choices):
            issues.append(f"fewer than {MIN_CHOICES} usable choices")
        if not 0 <= quiz.correct_index < len(quiz.choices):
            issues.append("correct answer index out of range")
        if _too_short(quiz.explanation, MIN_EXPLANATION_CHARS):
            issues.append(f"explanation shorter than {MIN_EXPLANATION_CHARS} chars")
    elif isinstance(card, ApplicationCard):
        if _too_short(card.scenario, MIN_SCENARIO_CHARS):
            issues.append(f"scenario shorter than {MIN_SCENARIO_CHARS} chars")

    return issues


@dataclass
class ValidationReport:
    """Outcome of checking a card set."""

    total: int
    invalid: list[tuple[str, list[str]]] = field(default_factory=list)
    unparseable: int = 0

    @property
    def invalid_count(self) -> int:
        return len(self.invalid) + self.unparseable

    @property
    def invalid_ratio(self) -> float:
        return self.invalid_count / self.total if self.total else 0.0

    def __str__(self) -> str:
        return (
            f"Validation Results:\n"
            f"  Total cards: {self.total}\n"
            f"  Invalid cards: {self.invalid_count} ({self.invalid_ratio:.0%})\n"
            f"    Unparseable: {self.unparseable}"
        )


class CardValidator:
    """Reject card sets that are empty, too small, or mostly malformed."""

    def __init__(self, min_cards: int = 5, max_invalid_ratio: float = 0.3):
        """
        Initialize validator.

        Args:
            min_cards: Smallest acceptable card set
            max_invalid_ratio: Largest acceptable share of invalid cards (0-1)
        """
        self.min_cards = min_cards
        self.max_invalid_ratio = max_invalid_ratio

    def inspect(self, cards: list[Union[dict, object]]) -> ValidationReport:
        """
        Classify every card without raising.

        Cards may be card models or raw dicts (e.g. read back from storage);
        dicts that don't parse as a card count as invalid.
        """
        report = ValidationReport(total=len(cards))
        for index, item in enumerate(cards):
            card = item
            if isinstance(item, dict):
                try:
                    card = card_adapter.validate_python(item)
                except ValidationError as e:
                    logger.debug("Card %d does not parse: %s", index, e.error_count())
                    report.unparseable += 1
                    continue

            issues = card_issues(card)
            if issues:
                report.invalid.append((card.id, issues))
        return report

    def validate(self, cards: list) -> list:
        """
        Gate a card set.

        Returns:
            The same list, unchanged

        Raises:
            EmptyResult: No cards at all
            InsufficientCards: Fewer than min_cards
            TooManyInvalidCards: Invalid share above max_invalid_ratio
        """
        if not cards:
            raise EmptyResult("No cards were generated", total=0)

        if len(cards) < self.min_cards:
            raise InsufficientCards(
                f"Only {len(cards)} cards generated, need at least {self.min_cards}",
                total=len(cards),
            )

        report = self.inspect(cards)
        if report.invalid_ratio > self.max_invalid_ratio:
            raise TooManyInvalidCards(
                f"{report.invalid_count} of {report.total} cards are invalid "
                f"({report.invalid_ratio:.0%} > {self.max_invalid_ratio:.0%})",
                total=report.total,
                invalid=report.invalid_count,
            )

        if report.invalid_count:
            logger.info(
                "Accepted %d cards with %d invalid (%.0f%%)",
                report.total, report.invalid_count, report.invalid_ratio * 100,
            )
        return cards
