"""The four card generation tiers."""

import re
from dataclasses import dataclass, field
from typing import Optional

from ..models import (
    ApplicationCard,
    BookMetadata,
    CardTier,
    ChapterContext,
    Chunk,
    FlashcardCard,
    QuizCard,
    QuizPayload,
    SynthesisCard,
)
from .base import (
    TierGenerator,
    draft_tags,
    draft_text,
    generate_card_id,
    resolve_source_cards,
    slugify,
)
from .prompts import (
    APPLICATION_PROMPT_TEMPLATE,
    CHAPTER_CONTEXT_TEMPLATE,
    FLASHCARD_PROMPT_TEMPLATE,
    OVERVIEW_PROMPT_TEMPLATE,
    QUIZ_PROMPT_TEMPLATE,
    RELATED_CONTEXT_TEMPLATE,
    SYNTHESIS_PROMPT_TEMPLATE,
)

# Characters of each related chunk shown to the model
RELATED_EXCERPT_CHARS = 300
CHOICE_LABEL_RE = re.compile(r"^\s*[A-Ha-h][\).:]\s+")
LETTER_ANSWER_RE = re.compile(r"^\s*([A-Ha-h])(?:[\).:]|\s|$)")

BOOK_OVERVIEW_LABEL = "Book Overview"
# Leading chunks of the document cited by the overview card
OVERVIEW_SOURCE_CHUNKS = 5
# Characters of each chapter summary shown to the model
SUMMARY_EXCERPT_CHARS = 400


@dataclass
class FlashcardInput:
    main_chunk: Chunk
    related_chunks: list[Chunk] = field(default_factory=list)


@dataclass
class ApplicationInput:
    flashcards: list[FlashcardCard]
    chapter_label: Optional[str] = None


@dataclass
class QuizInput:
    flashcards: list[FlashcardCard]
    applications: list[ApplicationCard] = field(default_factory=list)
    chapter_label: Optional[str] = None


@dataclass
class SynthesisInput:
    flashcards: list[FlashcardCard]
    applications: list[ApplicationCard] = field(default_factory=list)
    quizzes: list[QuizCard] = field(default_factory=list)
    chapter_context: Optional[ChapterContext] = None


@dataclass
class OverviewInput:
    syntheses: list[SynthesisCard]
    chunks: list[Chunk] = field(default_factory=list)


def primary_chunks(cards: list) -> list[str]:
    """The main source chunk of each card, de-duplicated in order."""
    seen: list[str] = []
    for card in cards:
        if card.source_chunks and card.source_chunks[0] not in seen:
            seen.append(card.source_chunks[0])
    return seen


def tier_tags(metadata: BookMetadata, tier: CardTier, chapter_label: Optional[str]) -> list[str]:
    tags = [metadata.category, tier.value.lower()]
    if chapter_label:
        tags.append(f"chapter::{slugify(chapter_label)}")
    return tags


def format_flashcards(flashcards: list[FlashcardCard]) -> str:
    return "\n\n".join(
        f"Concept: {fc.title}\nQ: {fc.front}\nA: {fc.back}" for fc in flashcards
    )


def format_applications(applications: list[ApplicationCard]) -> str:
    if not applications:
        return "(none)"
    return "\n\n".join(
        f"{app.title}\nScenario: {app.scenario}\nQuestion: {app.question}" for app in applications
    )


def parse_correct_index(value: object) -> int:
    """
    Read a correct-answer marker as a 0-based index.

    Accepts integers, digit strings and letters such as "C" or "c)".

    Raises:
        ValueError: If the marker can't be read
    """
    if isinstance(value, bool):
        raise ValueError(f"Unreadable correct answer: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.isdigit():
            return int(stripped)
        match = LETTER_ANSWER_RE.match(stripped)
        if match:
            return ord(match.group(1).upper()) - ord("A")
    raise ValueError(f"Unreadable correct answer: {value!r}")


class FlashcardGenerator(TierGenerator):
    """Tier 1: recall cards from one chunk plus related context."""

    tier = CardTier.FLASHCARD
    max_tokens = 1500
    temperature = 0.1

    def describe(self, primary_input: FlashcardInput) -> str:
        return f"chunk {primary_input.main_chunk.id}"

    def build_prompt(self, primary_input: FlashcardInput, metadata: BookMetadata) -> str:
        chunk = primary_input.main_chunk
        related = ""
        if primary_input.related_chunks:
            excerpts = "\n".join(
                f"{i + 1}. From \"{c.chapter_label or 'Unknown chapter'}\": "
                f"{c.text[:RELATED_EXCERPT_CHARS]}..."
                for i, c in enumerate(primary_input.related_chunks)
            )
            related = RELATED_CONTEXT_TEMPLATE.format(related=excerpts)

        return FLASHCARD_PROMPT_TEMPLATE.format(
            book_title=metadata.title,
            book_author=metadata.author,
            category=metadata.category,
            chapter_label=chunk.chapter_label or "General content",
            main_content=chunk.text,
            related_context=related,
        )

    def build_card(self, draft: dict, primary_input: FlashcardInput, metadata: BookMetadata):
        front = draft_text(draft, "front", "question")
        back = draft_text(draft, "back", "answer")
        if not front or not back:
            return None

        chunk = primary_input.main_chunk
        return FlashcardCard(
            id=generate_card_id(),
            title=draft_text(draft, "title"),
            front=front,
            back=back,
            difficulty=draft.get("difficulty"),
            tags=draft_tags(draft, tier_tags(metadata, self.tier, chunk.chapter_label)),
            source_chunks=[chunk.id] + [c.id for c in primary_input.related_chunks],
            source_cards=[],
            chapter_context=chunk.chapter_label,
        )


class ApplicationGenerator(TierGenerator):
    """Tier 2: practice scenarios from a window of flashcards."""

    tier = CardTier.APPLICATION

    def has_input(self, primary_input: ApplicationInput) -> bool:
        # A scenario needs at least two concepts to work with
        return len(primary_input.flashcards) >= 2

    def describe(self, primary_input: ApplicationInput) -> str:
        return f"{len(primary_input.flashcards)} flashcards ({primary_input.chapter_label or 'unlabeled'})"

    def build_prompt(self, primary_input: ApplicationInput, metadata: BookMetadata) -> str:
        return APPLICATION_PROMPT_TEMPLATE.format(
            book_title=metadata.title,
            book_author=metadata.author,
            category=metadata.category,
            chapter_label=primary_input.chapter_label or "General content",
            flashcards=format_flashcards(primary_input.flashcards),
        )

    def build_card(self, draft: dict, primary_input: ApplicationInput, metadata: BookMetadata):
        scenario = draft_text(draft, "scenario", "content")
        if not scenario:
            return None

        return ApplicationCard(
            id=generate_card_id(),
            title=draft_text(draft, "title"),
            scenario=scenario,
            question=draft_text(draft, "question"),
            solution=draft_text(draft, "solution"),
            difficulty=draft.get("difficulty"),
            tags=draft_tags(draft, tier_tags(metadata, self.tier, primary_input.chapter_label)),
            source_chunks=primary_chunks(primary_input.flashcards),
            source_cards=resolve_source_cards(draft, primary_input.flashcards),
            chapter_context=primary_input.chapter_label,
        )


class QuizGenerator(TierGenerator):
    """Tier 3: multiple choice questions over flashcards and applications."""

    tier = CardTier.QUIZ
    max_tokens = 1500
    temperature = 0.1

    def has_input(self, primary_input: QuizInput) -> bool:
        return bool(primary_input.flashcards)

    def describe(self, primary_input: QuizInput) -> str:
        return f"group {primary_input.chapter_label or 'unlabeled'}"

    def build_prompt(self, primary_input: QuizInput, metadata: BookMetadata) -> str:
        return QUIZ_PROMPT_TEMPLATE.format(
            book_title=metadata.title,
            book_author=metadata.author,
            category=metadata.category,
            chapter_label=primary_input.chapter_label or "General content",
            flashcards=format_flashcards(primary_input.flashcards),
            applications=format_applications(primary_input.applications),
        )

    def build_card(self, draft: dict, primary_input: QuizInput, metadata: BookMetadata):
        body = draft.get("quiz") if isinstance(draft.get("quiz"), dict) else draft
        question = draft_text(body, "question")
        choices = body.get("choices", body.get("options"))
        if not question or not isinstance(choices, list):
            return None

        marker = next(
            (body[key] for key in ("correct_index", "correct_answer", "correctAnswer") if key in body),
            None,
        )
        payload = QuizPayload(
            question=question,
            choices=[CHOICE_LABEL_RE.sub("", str(choice)).strip() for choice in choices],
            correct_index=parse_correct_index(marker),
            explanation=draft_text(body, "explanation"),
        )
        sources = primary_input.flashcards + primary_input.applications
        return QuizCard(
            id=generate_card_id(),
            title=draft_text(draft, "title"),
            quiz=payload,
            difficulty=draft.get("difficulty"),
            tags=draft_tags(draft, tier_tags(metadata, self.tier, primary_input.chapter_label)),
            source_chunks=primary_chunks(primary_input.flashcards),
            source_cards=resolve_source_cards(draft, sources),
            chapter_context=primary_input.chapter_label,
        )


class SynthesisGenerator(TierGenerator):
    """Tier 4: one integrating card per chapter or chunk window."""

    tier = CardTier.SYNTHESIS
    max_tokens = 2500

    def has_input(self, primary_input: SynthesisInput) -> bool:
        return bool(primary_input.flashcards)

    def describe(self, primary_input: SynthesisInput) -> str:
        context = primary_input.chapter_context
        return f"chapter {context.title}" if context else "unlabeled window"

    def build_prompt(self, primary_input: SynthesisInput, metadata: BookMetadata) -> str:
        context = primary_input.chapter_context
        chapter_context = ""
        if context:
            chapter_context = CHAPTER_CONTEXT_TEMPLATE.format(
                title=context.title, position=context.position, total=context.total
            )
        quizzes = "\n".join(f"- {q.quiz.question}" for q in primary_input.quizzes) or "(none)"

        return SYNTHESIS_PROMPT_TEMPLATE.format(
            book_title=metadata.title,
            book_author=metadata.author,
            category=metadata.category,
            chapter_context=chapter_context,
            flashcards=format_flashcards(primary_input.flashcards),
            applications=format_applications(primary_input.applications),
            quizzes=quizzes,
        )

    def build_card(self, draft: dict, primary_input: SynthesisInput, metadata: BookMetadata):
        front = draft_text(draft, "front", "question")
        back = draft_text(draft, "back", "analysis")
        if not front or not back:
            return None

        label = primary_input.chapter_context.title if primary_input.chapter_context else None
        sources = primary_input.flashcards + primary_input.applications + primary_input.quizzes
        return SynthesisCard(
            id=generate_card_id(),
            title=draft_text(draft, "title"),
            front=front,
            back=back,
            scenario=draft_text(draft, "scenario") or None,
            difficulty=draft.get("difficulty", "HARD"),
            tags=draft_tags(draft, tier_tags(metadata, self.tier, label)),
            source_chunks=primary_chunks(primary_input.flashcards),
            source_cards=resolve_source_cards(draft, sources),
            chapter_context=label,
        )


class OverviewGenerator(TierGenerator):
    """Closing synthesis pass: one overview card for the whole book."""

    tier = CardTier.SYNTHESIS
    task = "overview_generation"
    max_tokens = 2000

    def has_input(self, primary_input: OverviewInput) -> bool:
        return bool(primary_input.syntheses)

    def describe(self, primary_input: OverviewInput) -> str:
        return f"book overview of {len(primary_input.syntheses)} summaries"

    def build_prompt(self, primary_input: OverviewInput, metadata: BookMetadata) -> str:
        summaries = "\n\n".join(
            f"{card.chapter_context or 'Section'}: {card.title}\n{card.back[:SUMMARY_EXCERPT_CHARS]}"
            for card in primary_input.syntheses
        )
        return OVERVIEW_PROMPT_TEMPLATE.format(
            book_title=metadata.title,
            book_author=metadata.author,
            category=metadata.category,
            summaries=summaries,
        )

    def build_card(self, draft: dict, primary_input: OverviewInput, metadata: BookMetadata):
        back = draft_text(draft, "back", "content")
        if not back:
            return None

        return SynthesisCard(
            id=generate_card_id(),
            title=draft_text(draft, "title") or f"Overview: {metadata.title}",
            front=draft_text(draft, "front") or "Complete Book Overview",
            back=back,
            difficulty=draft.get("difficulty", "MEDIUM"),
            tags=draft_tags(draft, [metadata.category, "overview", "book-summary"]),
            source_chunks=[c.id for c in primary_input.chunks[:OVERVIEW_SOURCE_CHUNKS]],
            source_cards=resolve_source_cards(draft, primary_input.syntheses),
            chapter_context=BOOK_OVERVIEW_LABEL,
        )
