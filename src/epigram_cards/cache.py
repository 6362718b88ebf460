"""Time-boxed cache of validated card sets, one file per content id."""

import json
import logging
import os
import tempfile
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Optional

from pydantic import BaseModel, Field

from .models import Card, ChapterRecord

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(days=7)


class CachedCardSet(BaseModel):
    """Persisted result of a successful run."""

    version: str = "1.0"
    content_id: str
    cards: list[Card] = Field(default_factory=list)
    chapters: list[ChapterRecord] = Field(default_factory=list)
    cached_at: str
    total_cards: int
    # Digest of the chunks the cards were generated from
    chunk_fingerprint: Optional[str] = None


class ResultCache:
    """Store and expire generated card sets."""

    def __init__(
        self,
        cache_dir: Path,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize result cache.

        Args:
            cache_dir: Directory holding the cache files
            ttl: Age after which an entry is treated as absent
            clock: Source of the current time
        """
        self.cache_dir = Path(cache_dir)
        self.ttl = ttl
        self.clock = clock

    def _path(self, content_id: str) -> Path:
        return self.cache_dir / f"{content_id}-cards.json"

    def load(self, content_id: str) -> Optional[CachedCardSet]:
        """
        Load the cache entry for a content id.

        Returns:
            CachedCardSet if present, readable and not expired, None otherwise
        """
        path = self._path(content_id)
        if not path.exists():
            return None

        try:
            entry = CachedCardSet(**json.loads(path.read_text()))
            cached_at = datetime.fromisoformat(entry.cached_at)
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning("Ignoring unreadable cache entry %s: %s", path, e)
            return None

        if self.clock() - cached_at > self.ttl:
            logger.info("Cache expired for %s, will regenerate", content_id)
            return None

        return entry

    def get(self, content_id: str) -> Optional[list]:
        """Cached cards for a content id, or None."""
        entry = self.load(content_id)
        return list(entry.cards) if entry else None

    def put(
        self,
        content_id: str,
        cards: list,
        chapters: Optional[list[ChapterRecord]] = None,
        chunk_fingerprint: Optional[str] = None,
    ) -> Path:
        """
        Write a card set.

        The file is written under a temporary name and renamed into place,
        so readers see either the old entry or the complete new one.

        Returns:
            Path to the cache file
        """
        entry = CachedCardSet(
            content_id=content_id,
            cards=cards,
            chapters=chapters or [],
            cached_at=self.clock().isoformat(),
            total_cards=len(cards),
            chunk_fingerprint=chunk_fingerprint,
        )
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        path = self._path(content_id)

        fd, tmp_name = tempfile.mkstemp(dir=self.cache_dir, prefix=f".{content_id}-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(entry.model_dump_json(indent=2))
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.info("Cached %d cards for %s", len(cards), content_id)
        return path

    def invalidate(self, content_id: str) -> bool:
        """
        Remove the cache entry for a content id.

        Returns:
            True if deleted, False if it didn't exist
        """
        path = self._path(content_id)
        if path.exists():
            path.unlink()
            return True
        return False

    def cleanup(self, older_than_days: float = 30) -> int:
        """
        Delete cache files older than the given age.

        Returns:
            Number of files removed
        """
        if not self.cache_dir.exists():
            return 0

        cutoff = self.clock() - timedelta(days=older_than_days)
        removed = 0
        for path in self.cache_dir.glob("*-cards.json"):
            if datetime.fromtimestamp(path.stat().st_mtime) < cutoff:
                path.unlink()
                removed += 1

        logger.info("Cleaned up %d old cache files", removed)
        return removed

    def stats(self) -> dict:
        """Number and total size of cache files."""
        files = list(self.cache_dir.glob("*-cards.json")) if self.cache_dir.exists() else []
        size = sum(p.stat().st_size for p in files)
        return {
            "cached_sets": len(files),
            "total_size_mb": round(size / (1024 * 1024), 2),
        }
