"""Split extracted chapters into overlapping semantic chunks."""

import logging
import re

from ..models import Chapter, Chunk, make_chunk_id

logger = logging.getLogger(__name__)

MIN_PARAGRAPH_CHARS = 50
MIN_CHUNK_WORDS = 30
MIN_CHUNK_CHARS = 100
# Chunks are only cut once they hold at least this much text
MIN_CUT_CHARS = 300
# Rough average word length used to turn the overlap into a word count
CHARS_PER_WORD = 5


def normalize_text(text: str) -> str:
    """Collapse runs of spaces while keeping paragraph breaks."""
    text = re.sub(r"[ \t\f\v\r]+", " ", text)
    text = re.sub(r"\n\s*\n", "\n\n", text)
    return text.strip()


def count_words(text: str) -> int:
    """Count words in text."""
    return len(text.split())


def group_sentences(text: str, target_chars: int = 400, min_chars: int = 100) -> list[str]:
    """
    Regroup a single block of text into paragraph-sized pieces.

    Used when a chapter has no paragraph breaks at all.
    """
    flat = re.sub(r"\s+", " ", text)
    sentences = [s.strip() for s in re.split(r"(?<=[.!?])\s+", flat)]
    sentences = [s for s in sentences if len(s) > 20]

    paragraphs: list[str] = []
    current = ""
    for sentence in sentences:
        if len(current) + len(sentence) > target_chars and len(current) > min_chars:
            paragraphs.append(current.strip())
            current = sentence
        else:
            current = f"{current} {sentence}" if current else sentence

    if current.strip():
        paragraphs.append(current.strip())

    return [p for p in paragraphs if len(p) > MIN_PARAGRAPH_CHARS]


def split_paragraphs(text: str) -> list[str]:
    """Split normalized chapter text into paragraphs worth keeping."""
    paragraphs = [re.sub(r"\s+", " ", p).strip() for p in re.split(r"\n\s*\n", text)]
    paragraphs = [p for p in paragraphs if len(p) > MIN_PARAGRAPH_CHARS]

    if len(paragraphs) <= 1 and len(text) > 1000:
        return group_sentences(text)
    return paragraphs


def pack_paragraphs(paragraphs: list[str], chunk_size: int = 3500, overlap: int = 300) -> list[str]:
    """
    Pack paragraphs into chunks of roughly chunk_size characters.

    The tail of each emitted chunk (about `overlap` characters worth of
    words) is repeated at the start of the next one.
    """
    chunks: list[str] = []
    current = ""
    overlap_words = overlap // CHARS_PER_WORD

    for paragraph in paragraphs:
        if current and len(current) + len(paragraph) + 2 > chunk_size and len(current) > MIN_CUT_CHARS:
            chunks.append(current.strip())
            words = current.split()
            carried = words[len(words) - min(overlap_words, len(words)):]
            current = " ".join(carried) + ("\n\n" if carried else "") + paragraph
        else:
            current = f"{current}\n\n{paragraph}" if current else paragraph

    if len(current.strip()) > MIN_CHUNK_CHARS:
        chunks.append(current.strip())

    return chunks


def chunk_document(
    content_id: str,
    chapters: list[Chapter],
    chunk_size: int = 3500,
    overlap: int = 300,
) -> list[Chunk]:
    """
    Chunk every chapter of a document.

    Args:
        content_id: Id of the document the chunks belong to
        chapters: Chapters in reading order
        chunk_size: Target characters per chunk
        overlap: Characters of context repeated between neighbouring chunks

    Returns:
        Chunks with sequential ordinals across the whole document
    """
    chunks: list[Chunk] = []
    dropped = 0

    for chapter in chapters:
        paragraphs = split_paragraphs(normalize_text(chapter.content))
        logger.debug(
            "Chapter %r: %d paragraphs (%d chars)",
            chapter.title, len(paragraphs), len(chapter.content),
        )

        for text in pack_paragraphs(paragraphs, chunk_size, overlap):
            word_count = count_words(text)
            if word_count < MIN_CHUNK_WORDS or len(text) < MIN_CHUNK_CHARS:
                dropped += 1
                continue

            ordinal = len(chunks)
            chunks.append(
                Chunk(
                    id=make_chunk_id(content_id, ordinal),
                    content_id=content_id,
                    ordinal=ordinal,
                    text=text,
                    chapter_label=chapter.title,
                    chapter_index=chapter.index if chapter.title else None,
                    word_count=word_count,
                )
            )

    logger.info("Created %d chunks for %s (%d filtered out)", len(chunks), content_id, dropped)
    return chunks
