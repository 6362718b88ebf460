"""Per-run tracking of chunks already used for flashcard generation."""

import threading
from typing import Iterable


class ChunkDeduplicator:
    """
    Remember which chunk ids a processing run has already consumed.

    One instance belongs to exactly one run and is discarded with it, so a
    failed run never leaves processed markers behind.
    """

    def __init__(self, processed: Iterable[str] = ()):
        self._processed: set[str] = set(processed)
        self._lock = threading.Lock()

    def has_processed(self, chunk_id: str) -> bool:
        """Check if a chunk has already been passed to flashcard generation."""
        with self._lock:
            return chunk_id in self._processed

    def mark_processed(self, chunk_id: str) -> None:
        """Record that a chunk has been consumed."""
        with self._lock:
            self._processed.add(chunk_id)

    def claim(self, chunk_id: str) -> bool:
        """
        Mark a chunk processed if it was not already.

        Returns:
            True if the caller now owns the chunk, False if it was taken before
        """
        with self._lock:
            if chunk_id in self._processed:
                return False
            self._processed.add(chunk_id)
            return True

    @property
    def processed_ids(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._processed)

    def __len__(self) -> int:
        with self._lock:
            return len(self._processed)
