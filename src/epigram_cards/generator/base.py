"""Shared scaffolding for the tier generators."""

import logging
import re
import threading
import uuid
from collections import Counter
from typing import Any, Optional

from ..completion import CompletionRequest, TextCompletion
from ..errors import CompletionError, CompletionTimeout, ResponseParseError
from ..models import BookMetadata, CardTier, RunSummary
from .parsing import parse_tier_response
from .prompts import SYSTEM_PROMPT

logger = logging.getLogger(__name__)


def generate_card_id() -> str:
    """Generate a unique card ID."""
    return uuid.uuid4().hex[:12]


def slugify(text: str) -> str:
    """Convert text to a tag-friendly slug."""
    text = text.lower()
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"[\s_]+", "_", text)
    return text[:30].strip("_")


def draft_text(draft: dict, *keys: str) -> str:
    """First non-empty string among the given keys of a draft."""
    for key in keys:
        value = draft.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def draft_tags(draft: dict, defaults: list[str]) -> list[str]:
    """Merge default tags with any string tags the draft supplies."""
    tags = list(defaults)
    raw = draft.get("tags")
    if isinstance(raw, list):
        for tag in raw:
            if isinstance(tag, str) and tag.strip() and tag.strip() not in tags:
                tags.append(tag.strip())
    return tags


def normalize_title(title: str) -> str:
    return re.sub(r"[^a-z0-9]", "", title.lower())


def resolve_source_cards(draft: dict, candidates: list) -> list[str]:
    """
    Ids of the input cards a draft was built from.

    Drafts may name the cards they used by title; when none of those names
    match, every input card is recorded as a source.
    """
    named = draft.get("based_on")
    if isinstance(named, list):
        wanted = {normalize_title(n) for n in named if isinstance(n, str)}
        matched = [c.id for c in candidates if normalize_title(c.title) in wanted]
        if matched:
            return matched
    return [c.id for c in candidates]


class GenerationStats:
    """Thread-safe counters for one processing run."""

    def __init__(self):
        self._lock = threading.Lock()
        self.completion_calls: Counter = Counter()
        self.soft_failures: Counter = Counter()
        self.timeouts: Counter = Counter()
        self.cards: Counter = Counter()

    def record_call(self, tier: CardTier) -> None:
        with self._lock:
            self.completion_calls[tier.value] += 1

    def record_soft_failure(self, tier: CardTier, timeout: bool = False) -> None:
        with self._lock:
            self.soft_failures[tier.value] += 1
            if timeout:
                self.timeouts[tier.value] += 1

    def record_cards(self, tier: CardTier, count: int) -> None:
        with self._lock:
            self.cards[tier.value] += count

    @property
    def total_calls(self) -> int:
        with self._lock:
            return sum(self.completion_calls.values())

    @property
    def total_soft_failures(self) -> int:
        with self._lock:
            return sum(self.soft_failures.values())

    def to_summary(self) -> RunSummary:
        with self._lock:
            return RunSummary(
                completion_calls=dict(self.completion_calls),
                soft_failures=dict(self.soft_failures),
                timeouts=dict(self.timeouts),
                cards_per_tier=dict(self.cards),
            )


class TierGenerator:
    """
    Base class for one generation tier.

    Subclasses describe their prompt and how a parsed draft becomes a card.
    Failures of the completion call or of response parsing are soft: they are
    logged, counted and yield no cards, and never propagate to the caller.
    """

    tier: CardTier
    # Completion task label; defaults to "<tier>_generation"
    task: Optional[str] = None
    max_tokens: int = 2000
    temperature: float = 0.2

    def __init__(self, completion: TextCompletion, system_prompt: str = SYSTEM_PROMPT):
        self.completion = completion
        self.system_prompt = system_prompt

    def has_input(self, primary_input: Any) -> bool:
        """Whether the input is enough to ask for cards at all."""
        return True

    def describe(self, primary_input: Any) -> str:
        """Short label for log messages."""
        return type(primary_input).__name__

    def build_prompt(self, primary_input: Any, metadata: BookMetadata) -> str:
        raise NotImplementedError

    def build_card(self, draft: dict, primary_input: Any, metadata: BookMetadata):
        """
        Turn one parsed draft into a card.

        Returns None for drafts missing the tier's essential fields. May raise
        ValueError or TypeError for drafts of the wrong shape.
        """
        raise NotImplementedError

    def generate(
        self,
        primary_input: Any,
        metadata: BookMetadata,
        stats: Optional[GenerationStats] = None,
    ) -> list:
        """
        Generate this tier's cards for one input.

        Args:
            primary_input: Tier-specific input (chunk, or earlier cards)
            metadata: Book title/author/category
            stats: Run counters to record calls and soft failures in

        Returns:
            Zero or more cards of this tier
        """
        if not self.has_input(primary_input):
            return []

        label = self.describe(primary_input)
        request = CompletionRequest(
            system=self.system_prompt,
            prompt=self.build_prompt(primary_input, metadata),
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            task=self.task or f"{self.tier.value.lower()}_generation",
        )
        if stats:
            stats.record_call(self.tier)

        try:
            raw = self.completion.complete(request)
        except CompletionTimeout as e:
            logger.warning("%s generation timed out for %s: %s", self.tier.value, label, e)
            if stats:
                stats.record_soft_failure(self.tier, timeout=True)
            return []
        except CompletionError as e:
            logger.warning("%s generation unavailable for %s: %s", self.tier.value, label, e)
            if stats:
                stats.record_soft_failure(self.tier)
            return []

        try:
            drafts = parse_tier_response(raw)
        except ResponseParseError as e:
            logger.warning(
                "%s response for %s could not be parsed (%s): %.200s",
                self.tier.value, label, e, e.raw,
            )
            if stats:
                stats.record_soft_failure(self.tier)
            return []

        cards = []
        for draft in drafts:
            try:
                card = self.build_card(draft, primary_input, metadata)
            except (ValueError, TypeError) as e:
                logger.debug("Skipping malformed %s draft for %s: %s", self.tier.value, label, e)
                continue
            if card is not None:
                cards.append(card)

        if not cards:
            logger.warning("%s generation produced no cards for %s", self.tier.value, label)
            if stats:
                stats.record_soft_failure(self.tier)
        else:
            logger.debug("%s: %d card(s) for %s", self.tier.value, len(cards), label)
            if stats:
                stats.record_cards(self.tier, len(cards))
        return cards
