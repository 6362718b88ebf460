"""Data models for the card generation pipeline."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class CardTier(str, Enum):
    """The generation tier a card belongs to."""

    FLASHCARD = "FLASHCARD"
    APPLICATION = "APPLICATION"
    QUIZ = "QUIZ"
    SYNTHESIS = "SYNTHESIS"


# Tiers in dependency order
TIER_ORDER = (CardTier.FLASHCARD, CardTier.APPLICATION, CardTier.QUIZ, CardTier.SYNTHESIS)


class Difficulty(str, Enum):
    """Difficulty label attached to every card."""

    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"

    @classmethod
    def coerce(cls, value: object) -> "Difficulty":
        """Map loosely formatted difficulty values onto the enum."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        return cls.MEDIUM


class BookMetadata(BaseModel):
    """Descriptive metadata for the source document."""

    title: str
    author: str = Field(default="Unknown Author")
    category: str = Field(default="general")


class Chapter(BaseModel):
    """A chapter of extracted source text."""

    index: int = Field(description="Chapter number (0-indexed)")
    title: Optional[str] = Field(default=None, description="Chapter title, None when the source has no structure")
    content: str = Field(description="Plain text content of the chapter")
    word_count: int = Field(default=0)


class SourceDocument(BaseModel):
    """Extracted text of a book or article, before chunking."""

    metadata: BookMetadata
    chapters: list[Chapter] = Field(default_factory=list)
    source: Optional[str] = Field(default=None, description="Path or URL the text came from")

    @property
    def total_words(self) -> int:
        return sum(ch.word_count for ch in self.chapters)


class Chunk(BaseModel):
    """A contiguous span of source text."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique identifier derived from content id and position")
    content_id: str
    ordinal: int = Field(ge=0, description="Position within the document")
    text: str
    chapter_label: Optional[str] = Field(default=None, description="Chapter or section title")
    chapter_index: Optional[int] = Field(default=None)
    word_count: int = Field(default=0)


def make_chunk_id(content_id: str, ordinal: int) -> str:
    """Build the stable chunk id for a position in a document."""
    return f"{content_id}:{ordinal:05d}"


class QuizPayload(BaseModel):
    """Multiple choice question carried by a QUIZ card."""

    model_config = ConfigDict(frozen=True)

    question: str
    choices: list[str]
    correct_index: int
    explanation: str = ""


class CardBase(BaseModel):
    """Fields shared by every tier."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    difficulty: Difficulty = Field(default=Difficulty.MEDIUM)
    tags: list[str] = Field(default_factory=list)
    source_chunks: list[str] = Field(default_factory=list)
    source_cards: list[str] = Field(default_factory=list)
    chapter_context: Optional[str] = Field(default=None)
    created_at: str = Field(default_factory=lambda: datetime.now().isoformat())

    @field_validator("difficulty", mode="before")
    @classmethod
    def _coerce_difficulty(cls, value: object) -> Difficulty:
        return Difficulty.coerce(value)

    def get_display_text(self) -> str:
        """Get human-readable card content."""
        return self.title


class FlashcardCard(CardBase):
    """Foundation recall card."""

    tier: Literal["FLASHCARD"] = "FLASHCARD"
    front: str = ""
    back: str = ""

    def get_display_text(self) -> str:
        return f"Q: {self.front}\nA: {self.back}"


class ApplicationCard(CardBase):
    """Practice scenario built from a window of flashcards."""

    tier: Literal["APPLICATION"] = "APPLICATION"
    scenario: str = ""
    question: str = ""
    solution: str = ""

    def get_display_text(self) -> str:
        return f"Scenario: {self.scenario}\nQ: {self.question}"


class QuizCard(CardBase):
    """Assessment card."""

    tier: Literal["QUIZ"] = "QUIZ"
    quiz: QuizPayload

    def get_display_text(self) -> str:
        options = "\n".join(f"  {i}. {choice}" for i, choice in enumerate(self.quiz.choices))
        return f"Q: {self.quiz.question}\n{options}"


class SynthesisCard(CardBase):
    """Integration card spanning a chapter or window."""

    tier: Literal["SYNTHESIS"] = "SYNTHESIS"
    front: str = ""
    back: str = ""
    scenario: Optional[str] = Field(default=None)

    def get_display_text(self) -> str:
        return f"Q: {self.front}\nA: {self.back}"


Card = Annotated[
    Union[FlashcardCard, ApplicationCard, QuizCard, SynthesisCard],
    Field(discriminator="tier"),
]

card_adapter: TypeAdapter = TypeAdapter(Card)
card_list_adapter: TypeAdapter = TypeAdapter(list[Card])


class ChapterContext(BaseModel):
    """Position of a chapter within the document, passed to synthesis prompts."""

    title: str
    position: int
    total: int


class ChapterRecord(BaseModel):
    """Chapter to chunk to card association recorded at generation time."""

    label: Optional[str] = Field(default=None, description="Chapter label, None for unlabeled windows")
    position: int
    chunk_ids: list[str] = Field(default_factory=list)
    card_ids: list[str] = Field(default_factory=list)


class CardProvenance(BaseModel):
    """Where a card came from."""

    source_chunks: list[str] = Field(default_factory=list)
    source_cards: list[str] = Field(default_factory=list)
    chapter_context: Optional[str] = None


class RunSummary(BaseModel):
    """Counters reported for a finished run."""

    completion_calls: dict[str, int] = Field(default_factory=dict)
    soft_failures: dict[str, int] = Field(default_factory=dict)
    timeouts: dict[str, int] = Field(default_factory=dict)
    cards_per_tier: dict[str, int] = Field(default_factory=dict)


class PipelineResult(BaseModel):
    """Final card set returned to the caller."""

    content_id: str
    cards: list[Card] = Field(default_factory=list)
    chapters: list[ChapterRecord] = Field(default_factory=list)
    provenance: dict[str, CardProvenance] = Field(default_factory=dict)
    from_cache: bool = False
    stats: Optional[RunSummary] = None

    @property
    def total_cards(self) -> int:
        return len(self.cards)

    def cards_of(self, tier: CardTier) -> list:
        """Cards belonging to one tier, in generation order."""
        return [c for c in self.cards if c.tier == tier]


def build_provenance(cards: list) -> dict[str, CardProvenance]:
    """Provenance mapping keyed by card id."""
    return {
        card.id: CardProvenance(
            source_chunks=list(card.source_chunks),
            source_cards=list(card.source_cards),
            chapter_context=card.chapter_context,
        )
        for card in cards
    }
