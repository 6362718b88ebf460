"""Shared fixtures: a scripted completion service and sample documents."""

import json
import threading
from typing import Callable, Optional, Union

import pytest

from epigram_cards.chunking import ChunkStore
from epigram_cards.completion import CompletionRequest
from epigram_cards.config import PipelineSettings
from epigram_cards.models import BookMetadata, Chunk, make_chunk_id

LONG_ANSWER = (
    "The passage defines the idea precisely, gives a worked example of it in practice, "
    "and warns about the most common way readers misapply it."
)

TOPIC_TEXTS = [
    "Photosynthesis converts light energy into chemical energy. Plant leaves capture sunlight "
    "and store the energy as glucose, releasing oxygen as a by-product of the reaction.",
    "Chlorophyll pigments in plant leaves absorb light energy. Without chlorophyll the leaves "
    "could not drive photosynthesis, so the plant would be unable to make glucose.",
    "Plate tectonics describes how continental crust drifts over the mantle. Tectonic plates "
    "collide, separate and slide, reshaping oceans and mountain ranges over millions of years.",
    "Earthquakes release stress built up where tectonic plates meet. Faults along plate "
    "boundaries slip suddenly and send seismic waves through the surrounding crust.",
    "Supply and demand set market prices. When buyers want more of a good than sellers offer, "
    "prices rise until the quantity demanded falls back in line with supply.",
    "Inflation erodes the purchasing power of money. Central banks raise interest rates to "
    "slow demand when prices across the economy climb too quickly.",
]

Handler = Union[str, BaseException, Callable[[CompletionRequest], str]]


def flashcard_response(count: int = 2, prefix: str = "Key concept") -> str:
    return json.dumps([
        {
            "title": f"{prefix} number {i + 1}",
            "front": "What does the author mean by this central concept?",
            "back": LONG_ANSWER,
            "difficulty": "EASY",
            "tags": ["concept"],
        }
        for i in range(count)
    ])


def application_response() -> str:
    return json.dumps([
        {
            "title": "Applying the chapter concepts",
            "scenario": "A project lead has to choose between two competing plans under a deadline.",
            "question": "Which concept should guide the decision, and why?",
            "solution": LONG_ANSWER,
            "difficulty": "MEDIUM",
        }
    ])


def quiz_response() -> str:
    return json.dumps([
        {
            "title": "Check your understanding",
            "question": "Which statement best describes the central concept?",
            "choices": ["A) A side effect", "B) The core mechanism", "C) An exception", "D) A myth"],
            "correct_answer": "B",
            "explanation": "The second option restates the mechanism the chapter describes.",
            "difficulty": "MEDIUM",
        }
    ])


def synthesis_response() -> str:
    return json.dumps([
        {
            "title": "How the chapter fits together",
            "front": "How do the ideas in this section build on one another?",
            "back": LONG_ANSWER,
            "scenario": "Explain the chapter to a colleague who has only read the summary.",
            "difficulty": "HARD",
        }
    ])


def overview_response() -> str:
    return json.dumps([
        {
            "title": "Overview: Foundations of Everything",
            "front": "Complete Book Overview",
            "back": LONG_ANSWER,
            "difficulty": "MEDIUM",
            "tags": ["overview"],
        }
    ])


def valid_responses() -> dict[str, Handler]:
    """Responses that produce a passing card set for every tier."""
    return {
        "flashcard_generation": lambda request: flashcard_response(),
        "application_generation": lambda request: application_response(),
        "quiz_generation": lambda request: quiz_response(),
        "synthesis_generation": lambda request: synthesis_response(),
        "overview_generation": lambda request: overview_response(),
    }


class FakeCompletion:
    """
    Scripted TextCompletion.

    Responses are looked up by the request's task label. A handler may be a
    response string, an exception instance to raise, or a callable taking
    the request.
    """

    def __init__(self, responses: Optional[dict[str, Handler]] = None, default: Handler = "[]"):
        self.responses = dict(responses or {})
        self.default = default
        self.requests: list[CompletionRequest] = []
        self._lock = threading.Lock()

    def complete(self, request: CompletionRequest) -> str:
        with self._lock:
            self.requests.append(request)

        handler = self.responses.get(request.task, self.default)
        if isinstance(handler, BaseException):
            raise handler
        if callable(handler):
            return handler(request)
        return handler

    def calls_for(self, task: str) -> int:
        with self._lock:
            return sum(1 for r in self.requests if r.task == task)

    @property
    def call_count(self) -> int:
        with self._lock:
            return len(self.requests)


def create_test_chunk(
    ordinal: int,
    text: Optional[str] = None,
    chapter_label: Optional[str] = None,
    content_id: str = "doc1",
) -> Chunk:
    """Helper to create test chunks."""
    text = text or TOPIC_TEXTS[ordinal % len(TOPIC_TEXTS)]
    return Chunk(
        id=make_chunk_id(content_id, ordinal),
        content_id=content_id,
        ordinal=ordinal,
        text=text,
        chapter_label=chapter_label,
        word_count=len(text.split()),
    )


def create_test_chunks(
    labels: tuple = ("Chapter One", "Chapter One", "Chapter Two", "Chapter Two"),
    content_id: str = "doc1",
) -> list[Chunk]:
    """One chunk per label, in order."""
    return [
        create_test_chunk(i, chapter_label=label, content_id=content_id)
        for i, label in enumerate(labels)
    ]


@pytest.fixture
def metadata() -> BookMetadata:
    return BookMetadata(title="Foundations of Everything", author="A. Writer", category="science")


@pytest.fixture
def settings(tmp_path) -> PipelineSettings:
    return PipelineSettings(storage_dir=tmp_path / "storage", max_workers=2, api_key="test-key")


@pytest.fixture
def chunk_store(settings) -> ChunkStore:
    return ChunkStore(settings.chunks_dir)


@pytest.fixture
def stored_document(chunk_store, metadata) -> str:
    """Store the default four-chunk, two-chapter document and return its id."""
    chunk_store.put_document("doc1", metadata, create_test_chunks())
    return "doc1"


@pytest.fixture
def fake_completion() -> FakeCompletion:
    return FakeCompletion(valid_responses())
