"""Chunking, chunk storage and related-chunk lookup."""

from .chunker import chunk_document
from .related import RelatedChunkFinder, SentenceTransformerEmbedder
from .store import ChunkStore, chunk_fingerprint, generate_content_id

__all__ = [
    "chunk_document",
    "ChunkStore",
    "generate_content_id",
    "chunk_fingerprint",
    "RelatedChunkFinder",
    "SentenceTransformerEmbedder",
]
