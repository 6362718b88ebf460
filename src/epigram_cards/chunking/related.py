"""Find the chunks of a document most related to a given chunk."""

import hashlib
import logging
import threading
from typing import Iterable, Optional, Protocol

import numpy as np
from sklearn.feature_extraction.text import TfidfVectorizer

from ..models import Chunk

logger = logging.getLogger(__name__)

# Score matrices kept for this many documents
MAX_MEMO_ENTRIES = 8
# Rounding applied before ordering so float noise never decides a tie
SCORE_PRECISION = 9


class Embedder(Protocol):
    """Turns texts into dense vectors."""

    def embed(self, texts: list[str]) -> np.ndarray:
        ...


class SentenceTransformerEmbedder:
    """Embedder backed by a sentence-transformers model."""

    def __init__(self, model_name: str = "all-MiniLM-L6-v2"):
        # Heavy import, only paid when embeddings are switched on
        from sentence_transformers import SentenceTransformer

        self.model = SentenceTransformer(model_name)

    def embed(self, texts: list[str]) -> np.ndarray:
        vectors = self.model.encode(texts, normalize_embeddings=True, show_progress_bar=False)
        return np.asarray(vectors, dtype=float)


def cosine_similarity_matrix(vectors: np.ndarray) -> np.ndarray:
    """Pairwise cosine similarity of row vectors."""
    vectors = np.asarray(vectors, dtype=float)
    norms = np.linalg.norm(vectors, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    unit = vectors / norms
    return unit @ unit.T


def lexical_similarity_matrix(texts: list[str]) -> np.ndarray:
    """
    Pairwise TF-IDF cosine similarity.

    Raises:
        ValueError: If the texts share no usable vocabulary
    """
    vectorizer = TfidfVectorizer(stop_words="english", sublinear_tf=True)
    matrix = vectorizer.fit_transform(texts)
    # Rows are l2-normalized, so the dot product is the cosine
    return (matrix @ matrix.T).toarray()


class RelatedChunkFinder:
    """Rank the other chunks of a document by relevance to a target chunk."""

    def __init__(self, embedder: Optional[Embedder] = None, min_score: float = 0.0):
        """
        Initialize the finder.

        Args:
            embedder: Dense embedder; lexical TF-IDF scoring is used without one
            min_score: Candidates must score strictly above this to be returned
        """
        self.embedder = embedder
        self.min_score = min_score
        self._memo: dict[str, np.ndarray] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _memo_key(chunks: list[Chunk]) -> str:
        # A re-ingest keeps chunk ids but may change their text
        digest = hashlib.md5()
        for chunk in chunks:
            digest.update(chunk.id.encode("utf-8"))
            digest.update(b"\0")
            digest.update(hashlib.md5(chunk.text.encode("utf-8")).digest())
        return digest.hexdigest()

    def _score_matrix(self, chunks: list[Chunk]) -> Optional[np.ndarray]:
        key = self._memo_key(chunks)
        with self._lock:
            if key in self._memo:
                return self._memo[key]

        texts = [c.text for c in chunks]
        scores: Optional[np.ndarray] = None

        if self.embedder is not None:
            try:
                scores = cosine_similarity_matrix(self.embedder.embed(texts))
            except Exception as e:  # embedder backends raise arbitrary errors
                logger.warning("Embedding failed, falling back to lexical scoring: %s", e)

        if scores is None:
            try:
                scores = lexical_similarity_matrix(texts)
            except ValueError as e:
                logger.warning("Lexical scoring unavailable: %s", e)
                return None

        scores = np.round(scores, SCORE_PRECISION)
        with self._lock:
            if len(self._memo) >= MAX_MEMO_ENTRIES:
                self._memo.pop(next(iter(self._memo)))
            self._memo[key] = scores
        return scores

    def find_related(
        self,
        target: Chunk,
        all_chunks: list[Chunk],
        k: int = 3,
        exclude_ids: Iterable[str] = (),
    ) -> list[Chunk]:
        """
        Find the top-k chunks related to a target chunk.

        Args:
            target: Chunk to find context for
            all_chunks: Every chunk of the document
            k: Maximum number of chunks to return
            exclude_ids: Chunk ids that must not be returned

        Returns:
            Up to k chunks, best first; ties go to the earlier chunk
        """
        if k <= 0:
            return []

        ordered = sorted(all_chunks, key=lambda c: c.ordinal)
        if not any(c.id == target.id for c in ordered):
            ordered = sorted(ordered + [target], key=lambda c: c.ordinal)
        if len(ordered) < 2:
            return []

        scores = self._score_matrix(ordered)
        if scores is None:
            return []

        target_row = scores[next(i for i, c in enumerate(ordered) if c.id == target.id)]
        excluded = set(exclude_ids)
        excluded.add(target.id)

        candidates = [
            (float(target_row[i]), chunk.ordinal, chunk)
            for i, chunk in enumerate(ordered)
            if chunk.id not in excluded and target_row[i] > self.min_score
        ]
        candidates.sort(key=lambda item: (-item[0], item[1]))
        return [chunk for _, _, chunk in candidates[:k]]
