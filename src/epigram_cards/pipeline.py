"""Drive a document's chunks through the four generation tiers."""

import logging
import math
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Iterable, Iterator, Optional

from .cache import ResultCache
from .chunking.related import RelatedChunkFinder, SentenceTransformerEmbedder
from .chunking.store import ChunkStore, chunk_fingerprint
from .completion import AnthropicCompletion, TextCompletion
from .config import PipelineSettings
from .deduplicator import ChunkDeduplicator
from .errors import FatalConfigurationError, RunCancelled, RunInProgressError, ValidationFailure
from .generator import (
    BOOK_OVERVIEW_LABEL,
    ApplicationGenerator,
    ApplicationInput,
    FlashcardGenerator,
    FlashcardInput,
    GenerationStats,
    OverviewGenerator,
    OverviewInput,
    QuizGenerator,
    QuizInput,
    SynthesisGenerator,
    SynthesisInput,
    TierGenerator,
)
from .models import (
    TIER_ORDER,
    BookMetadata,
    CardTier,
    ChapterContext,
    ChapterRecord,
    Chunk,
    PipelineResult,
    build_provenance,
)
from .validator import CardValidator

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    """Lifecycle of a processing run."""

    NOT_STARTED = "not_started"
    CHUNKING_COMPLETE = "chunking_complete"
    GENERATING_FLASHCARDS = "generating_flashcards"
    GENERATING_APPLICATIONS = "generating_applications"
    GENERATING_QUIZZES = "generating_quizzes"
    GENERATING_SYNTHESIS = "generating_synthesis"
    VALIDATING = "validating"
    CACHED = "cached"
    FAILED = "failed"


TIER_STATES = {
    CardTier.FLASHCARD: RunState.GENERATING_FLASHCARDS,
    CardTier.APPLICATION: RunState.GENERATING_APPLICATIONS,
    CardTier.QUIZ: RunState.GENERATING_QUIZZES,
    CardTier.SYNTHESIS: RunState.GENERATING_SYNTHESIS,
}


@dataclass
class ChunkGroup:
    """Chunks of one chapter, or a window of unlabeled chunks."""

    position: int
    label: Optional[str]
    chunks: list[Chunk] = field(default_factory=list)

    @property
    def chunk_ids(self) -> set[str]:
        return {c.id for c in self.chunks}


def group_chunks(chunks: list[Chunk], window: int = 8) -> list[ChunkGroup]:
    """
    Group chunks for the application, quiz and synthesis tiers.

    Labeled chunks group by chapter label in order of first appearance.
    Unlabeled chunks form windows of at most `window` consecutive chunks.
    """
    groups: list[ChunkGroup] = []
    by_label: dict[str, ChunkGroup] = {}
    open_window: Optional[ChunkGroup] = None
    seen: set[str] = set()

    for chunk in sorted(chunks, key=lambda c: c.ordinal):
        if chunk.id in seen:
            continue
        seen.add(chunk.id)
        if chunk.chapter_label:
            group = by_label.get(chunk.chapter_label)
            if group is None:
                group = ChunkGroup(position=len(groups) + 1, label=chunk.chapter_label)
                by_label[chunk.chapter_label] = group
                groups.append(group)
            group.chunks.append(chunk)
            open_window = None
        else:
            if open_window is None or len(open_window.chunks) >= window:
                open_window = ChunkGroup(position=len(groups) + 1, label=None)
                groups.append(open_window)
            open_window.chunks.append(chunk)

    return groups


def window_count(total: int, size: int, minimum: int = 2) -> int:
    """Number of windows `balanced_windows` makes from `total` items."""
    if total < minimum:
        return 0
    return min(math.ceil(total / size), total // minimum)


def balanced_windows(items: list, size: int, minimum: int = 2) -> list[list]:
    """
    Split items into consecutive windows of near-equal length.

    Every item lands in a window: 4 items with size 3 give 2+2, 5 give 3+2.
    Windows never drop below `minimum`, so with size 2 an odd item makes
    the first window one larger than `size`.
    """
    count = window_count(len(items), size, minimum)
    if not count:
        return []

    base, extra = divmod(len(items), count)
    windows = []
    start = 0
    for i in range(count):
        length = base + (1 if i < extra else 0)
        windows.append(items[start : start + length])
        start += length
    return windows


def in_group(card, group: ChunkGroup) -> bool:
    """Whether a card's main source chunk belongs to a group. The book overview belongs to none."""
    if card.chapter_context == BOOK_OVERVIEW_LABEL:
        return False
    return bool(card.source_chunks) and card.source_chunks[0] in group.chunk_ids


def build_chapter_records(groups: list[ChunkGroup], cards: list) -> list[ChapterRecord]:
    """Chapter to chunk to card mapping for the persistence layer."""
    return [
        ChapterRecord(
            label=group.label,
            position=group.position,
            chunk_ids=[c.id for c in group.chunks],
            card_ids=[card.id for card in cards if in_group(card, group)],
        )
        for group in groups
    ]


@dataclass
class ProcessingRun:
    """State of one document's pipeline execution."""

    content_id: str
    metadata: BookMetadata
    chunks: list[Chunk]
    dedup: ChunkDeduplicator = field(default_factory=ChunkDeduplicator)
    stats: GenerationStats = field(default_factory=GenerationStats)
    cards: dict[CardTier, list] = field(default_factory=lambda: {tier: [] for tier in TIER_ORDER})
    state: RunState = RunState.NOT_STARTED

    def transition(self, state: RunState) -> None:
        logger.info("%s: %s -> %s", self.content_id, self.state.value, state.value)
        self.state = state

    def add_cards(self, tier: CardTier, cards: list) -> None:
        self.cards[tier].extend(cards)

    def cards_in_group(self, tier: CardTier, group: ChunkGroup) -> list:
        return [card for card in self.cards[tier] if in_group(card, group)]

    @property
    def all_cards(self) -> list:
        """Every card in generation order."""
        return [card for tier in TIER_ORDER for card in self.cards[tier]]


@dataclass
class PipelineContext:
    """Collaborators handed to the orchestrator."""

    chunk_store: ChunkStore
    result_cache: ResultCache
    completion: TextCompletion
    settings: PipelineSettings = field(default_factory=PipelineSettings)
    related_finder: Optional[RelatedChunkFinder] = None
    validator: Optional[CardValidator] = None

    @classmethod
    def from_settings(
        cls,
        settings: Optional[PipelineSettings] = None,
        completion: Optional[TextCompletion] = None,
    ) -> "PipelineContext":
        """Build file-backed stores and an Anthropic client from settings."""
        settings = settings or PipelineSettings()
        embedder = SentenceTransformerEmbedder(settings.embedding_model) if settings.use_embeddings else None
        if completion is None:
            completion = AnthropicCompletion(
                api_key=settings.api_key,
                model=settings.model,
                timeout=settings.completion_timeout,
                max_retries=settings.completion_max_retries,
            )
        return cls(
            chunk_store=ChunkStore(settings.chunks_dir),
            result_cache=ResultCache(settings.cache_dir, ttl=timedelta(days=settings.cache_ttl_days)),
            completion=completion,
            settings=settings,
            related_finder=RelatedChunkFinder(embedder),
            validator=CardValidator(settings.min_cards, settings.max_invalid_ratio),
        )


class CardPipelineOrchestrator:
    """Generate, validate and cache the cards for one document at a time."""

    def __init__(self, context: PipelineContext):
        self.context = context
        self.settings = context.settings
        self.validator = context.validator or CardValidator(
            self.settings.min_cards, self.settings.max_invalid_ratio
        )
        self.generators: dict[CardTier, TierGenerator] = {
            CardTier.FLASHCARD: FlashcardGenerator(context.completion),
            CardTier.APPLICATION: ApplicationGenerator(context.completion),
            CardTier.QUIZ: QuizGenerator(context.completion),
            CardTier.SYNTHESIS: SynthesisGenerator(context.completion),
        }
        self.overview_generator = OverviewGenerator(context.completion)
        self._active: set[str] = set()
        self._active_lock = threading.Lock()

    def run(
        self,
        content_id: str,
        metadata: Optional[BookMetadata] = None,
        force: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> PipelineResult:
        """
        Produce the validated card set for a document.

        Args:
            content_id: Document to process
            metadata: Book metadata (read from the chunk store if omitted)
            force: Discard any cached result and regenerate
            cancel_event: Set by the caller to abandon the run

        Returns:
            PipelineResult with cards, chapter records and provenance

        Raises:
            FatalConfigurationError: No chunks or metadata for the document
            ValidationFailure: The generated set failed the validation gate
            RunCancelled: cancel_event was set before the run finished
            RunInProgressError: Another run for this document is active
        """
        stale = False
        if not force:
            cached = self.context.result_cache.load(content_id)
            if cached is not None:
                if self._matches_stored_chunks(content_id, cached.chunk_fingerprint):
                    logger.info("Using %d cached cards for %s", cached.total_cards, content_id)
                    return PipelineResult(
                        content_id=content_id,
                        cards=cached.cards,
                        chapters=cached.chapters,
                        provenance=build_provenance(cached.cards),
                        from_cache=True,
                    )
                logger.info("Chunks for %s changed since its cards were cached", content_id)
                stale = True

        self._acquire(content_id)
        try:
            if (force or stale) and self.context.result_cache.invalidate(content_id):
                logger.info("Discarded cached cards for %s", content_id)
            run = self._start_run(content_id, metadata)
            return self._execute(run, cancel_event)
        finally:
            self._release(content_id)

    def _matches_stored_chunks(self, content_id: str, fingerprint: Optional[str]) -> bool:
        chunks = self.context.chunk_store.get_chunks(content_id)
        # Nothing stored to compare against: the cached set is all there is
        if not chunks:
            return True
        return fingerprint == chunk_fingerprint(chunks)

    def _acquire(self, content_id: str) -> None:
        with self._active_lock:
            if content_id in self._active:
                raise RunInProgressError(f"A run for {content_id} is already in progress", content_id)
            self._active.add(content_id)

    def _release(self, content_id: str) -> None:
        with self._active_lock:
            self._active.discard(content_id)

    def _start_run(self, content_id: str, metadata: Optional[BookMetadata]) -> ProcessingRun:
        store = self.context.chunk_store
        chunks = sorted(store.get_chunks(content_id), key=lambda c: c.ordinal)
        if not chunks:
            raise FatalConfigurationError(f"No chunks stored for {content_id}", content_id)

        metadata = metadata or store.get_metadata(content_id)
        if metadata is None or not metadata.title.strip():
            raise FatalConfigurationError(f"No book metadata for {content_id}", content_id)

        run = ProcessingRun(content_id=content_id, metadata=metadata, chunks=chunks)
        logger.info("Generating cards for %s by %s (%d chunks)", metadata.title, metadata.author, len(chunks))
        run.transition(RunState.CHUNKING_COMPLETE)
        return run

    def _execute(self, run: ProcessingRun, cancel_event: Optional[threading.Event]) -> PipelineResult:
        groups = group_chunks(run.chunks, self.settings.synthesis_window)

        with ThreadPoolExecutor(
            max_workers=self.settings.max_workers, thread_name_prefix="epigram-gen"
        ) as executor:
            try:
                self._dispatch(run, executor, CardTier.FLASHCARD, self._flashcard_jobs(run), cancel_event)
                self._dispatch(
                    run, executor, CardTier.APPLICATION, self._application_jobs(run, groups), cancel_event
                )
                self._dispatch(run, executor, CardTier.QUIZ, self._quiz_jobs(run, groups), cancel_event)
                self._dispatch(
                    run, executor, CardTier.SYNTHESIS, self._synthesis_jobs(run, groups), cancel_event
                )
                self._dispatch(
                    run,
                    executor,
                    CardTier.SYNTHESIS,
                    self._overview_jobs(run, groups),
                    cancel_event,
                    generator=self.overview_generator,
                )
            except RunCancelled:
                run.transition(RunState.FAILED)
                logger.warning("Run for %s cancelled, discarding partial results", run.content_id)
                raise
            except BaseException as e:
                # Drop queued calls before leaving the with-block waits on the executor
                executor.shutdown(wait=False, cancel_futures=True)
                run.transition(RunState.FAILED)
                logger.warning(
                    "Run for %s aborted by %s, queued generation calls cancelled",
                    run.content_id,
                    type(e).__name__,
                )
                raise

        run.transition(RunState.VALIDATING)
        cards = run.all_cards
        self._log_summary(run)
        try:
            self.validator.validate(cards)
        except ValidationFailure as e:
            e.content_id = run.content_id
            run.transition(RunState.FAILED)
            logger.error("Cards for %s rejected: %s", run.content_id, e)
            raise

        chapters = build_chapter_records(groups, cards)
        self.context.result_cache.put(
            run.content_id, cards, chapters, chunk_fingerprint=chunk_fingerprint(run.chunks)
        )
        run.transition(RunState.CACHED)

        return PipelineResult(
            content_id=run.content_id,
            cards=cards,
            chapters=chapters,
            provenance=build_provenance(cards),
            from_cache=False,
            stats=run.stats.to_summary(),
        )

    def _dispatch(
        self,
        run: ProcessingRun,
        executor: ThreadPoolExecutor,
        tier: CardTier,
        jobs: Iterable,
        cancel_event: Optional[threading.Event],
        generator: Optional[TierGenerator] = None,
    ) -> None:
        """Submit one pass of jobs, then merge their cards in submission order."""
        self._check_cancelled(run, cancel_event, [])
        if run.state != TIER_STATES[tier]:
            run.transition(TIER_STATES[tier])
        generator = generator or self.generators[tier]

        futures: list[Future] = []
        for primary_input in jobs:
            self._check_cancelled(run, cancel_event, futures)
            futures.append(executor.submit(generator.generate, primary_input, run.metadata, run.stats))

        added = 0
        for future in futures:
            cards = future.result()
            self._check_cancelled(run, cancel_event, futures)
            run.add_cards(tier, cards)
            added += len(cards)

        logger.info("%s pass complete: %d cards from %d calls", type(generator).__name__, added, len(futures))

    def _check_cancelled(
        self,
        run: ProcessingRun,
        cancel_event: Optional[threading.Event],
        futures: list[Future],
    ) -> None:
        if cancel_event is None or not cancel_event.is_set():
            return
        for future in futures:
            future.cancel()
        raise RunCancelled(f"Run for {run.content_id} was cancelled", run.content_id)

    def _related(self, chunk: Chunk, chunks: list[Chunk]) -> list[Chunk]:
        finder = self.context.related_finder
        if finder is None or self.settings.related_chunks_k <= 0:
            return []
        return finder.find_related(chunk, chunks, k=self.settings.related_chunks_k)

    def _flashcard_jobs(self, run: ProcessingRun) -> Iterator[FlashcardInput]:
        for chunk in run.chunks:
            if not run.dedup.claim(chunk.id):
                logger.debug("Chunk %s already processed, skipping", chunk.id)
                continue
            yield FlashcardInput(main_chunk=chunk, related_chunks=self._related(chunk, run.chunks))

    def _application_jobs(self, run: ProcessingRun, groups: list[ChunkGroup]) -> Iterator[ApplicationInput]:
        window = self.settings.application_window
        for group in groups:
            flashcards = run.cards_in_group(CardTier.FLASHCARD, group)
            for batch in balanced_windows(flashcards, window):
                yield ApplicationInput(flashcards=batch, chapter_label=group.label)

    def _quiz_jobs(self, run: ProcessingRun, groups: list[ChunkGroup]) -> Iterator[QuizInput]:
        for group in groups:
            flashcards = run.cards_in_group(CardTier.FLASHCARD, group)
            if flashcards:
                yield QuizInput(
                    flashcards=flashcards,
                    applications=run.cards_in_group(CardTier.APPLICATION, group),
                    chapter_label=group.label,
                )

    def _synthesis_jobs(self, run: ProcessingRun, groups: list[ChunkGroup]) -> Iterator[SynthesisInput]:
        for group in groups:
            flashcards = run.cards_in_group(CardTier.FLASHCARD, group)
            if not flashcards:
                continue
            context = None
            if group.label:
                context = ChapterContext(title=group.label, position=group.position, total=len(groups))
            yield SynthesisInput(
                flashcards=flashcards,
                applications=run.cards_in_group(CardTier.APPLICATION, group),
                quizzes=run.cards_in_group(CardTier.QUIZ, group),
                chapter_context=context,
            )

    def _overview_jobs(self, run: ProcessingRun, groups: list[ChunkGroup]) -> Iterator[OverviewInput]:
        # One closing card across groups; a single group already has its synthesis
        syntheses = list(run.cards[CardTier.SYNTHESIS])
        if self.settings.book_overview and len(groups) > 1 and syntheses:
            chunks = list({c.id: c for c in run.chunks}.values())
            yield OverviewInput(syntheses=syntheses, chunks=chunks)

    def _log_summary(self, run: ProcessingRun) -> None:
        summary = run.stats.to_summary()
        breakdown = ", ".join(f"{len(run.cards[tier])} {tier.value.lower()}" for tier in TIER_ORDER)
        logger.info(
            "%s: %d cards (%s); %d completion calls, %d soft failures, %d timeouts",
            run.content_id,
            len(run.all_cards),
            breakdown,
            sum(summary.completion_calls.values()),
            sum(summary.soft_failures.values()),
            sum(summary.timeouts.values()),
        )
