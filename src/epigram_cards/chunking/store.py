"""File-backed storage for document chunks."""

import hashlib
import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from ..models import BookMetadata, Chunk

logger = logging.getLogger(__name__)


def generate_content_id(title: str, author: str, source: str = "") -> str:
    """Derive a content id from title, author and source path."""
    return hashlib.md5(f"{title}-{author}-{source}".encode("utf-8")).hexdigest()


def chunk_fingerprint(chunks: list[Chunk]) -> str:
    """Digest of a document's chunk ids and texts, ignoring order and repeats."""
    digest = hashlib.md5()
    unique = {c.id: c for c in chunks}
    for chunk in sorted(unique.values(), key=lambda c: c.ordinal):
        digest.update(chunk.id.encode("utf-8"))
        digest.update(b"\0")
        digest.update(chunk.text.encode("utf-8"))
        digest.update(b"\0")
    return digest.hexdigest()


class StoredDocument(BaseModel):
    """On-disk record of a chunked document."""

    version: str = "1.0"
    content_id: str
    metadata: BookMetadata
    chunks: list[Chunk] = Field(default_factory=list)
    stored_at: str = Field(default_factory=lambda: datetime.now().isoformat())


class ChunkStore:
    """Persist chunks per content id and serve repeated reads from memory."""

    def __init__(self, root_dir: Path):
        """
        Initialize chunk store.

        Args:
            root_dir: Directory holding one JSON file per document
        """
        self.root_dir = Path(root_dir)
        self._memo: dict[str, StoredDocument] = {}
        self._lock = threading.Lock()

    def _path(self, content_id: str) -> Path:
        return self.root_dir / f"{content_id}.json"

    def exists(self, content_id: str) -> bool:
        """Check if chunks are stored for a document."""
        return content_id in self._memo or self._path(content_id).exists()

    def put_document(
        self,
        content_id: str,
        metadata: BookMetadata,
        chunks: list[Chunk],
    ) -> Path:
        """
        Store a document's chunks, replacing any previous version.

        Returns:
            Path to the written file
        """
        document = StoredDocument(
            content_id=content_id,
            metadata=metadata,
            chunks=sorted(chunks, key=lambda c: c.ordinal),
        )
        self.root_dir.mkdir(parents=True, exist_ok=True)
        path = self._path(content_id)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(document.model_dump_json(indent=2))
        tmp_path.replace(path)

        with self._lock:
            self._memo[content_id] = document
        logger.info("Stored %d chunks for %s", len(chunks), content_id)
        return path

    def load(self, content_id: str) -> Optional[StoredDocument]:
        """
        Load a stored document.

        Returns:
            StoredDocument if found and readable, None otherwise
        """
        with self._lock:
            if content_id in self._memo:
                return self._memo[content_id]

        path = self._path(content_id)
        if not path.exists():
            return None

        try:
            document = StoredDocument(**json.loads(path.read_text()))
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning("Unreadable chunk file %s: %s", path, e)
            return None

        with self._lock:
            self._memo[content_id] = document
        return document

    def get_chunks(self, content_id: str) -> list[Chunk]:
        """Chunks of a document in ordinal order; empty if none are stored."""
        document = self.load(content_id)
        if document is None:
            return []
        return list(document.chunks)

    def get_metadata(self, content_id: str) -> Optional[BookMetadata]:
        document = self.load(content_id)
        return document.metadata if document else None

    def delete(self, content_id: str) -> bool:
        """
        Delete a stored document.

        Returns:
            True if deleted, False if it didn't exist
        """
        with self._lock:
            self._memo.pop(content_id, None)
        path = self._path(content_id)
        if path.exists():
            path.unlink()
            return True
        return False
