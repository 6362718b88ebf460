"""Extract EPUB, markdown and plain text files into chapter data."""

import logging
import re
from pathlib import Path
from typing import Optional

import ebooklib
from bs4 import BeautifulSoup
from ebooklib import epub

from ..models import BookMetadata, Chapter, SourceDocument

logger = logging.getLogger(__name__)

TEXT_SUFFIXES = {".txt", ".text", ".md", ".markdown"}
MARKDOWN_SUFFIXES = {".md", ".markdown"}
MARKDOWN_HEADING_RE = re.compile(r"^#{1,2}\s+(.+?)\s*#*\s*$", re.MULTILINE)

SKIP_PATTERNS = [
    r"^table of contents?$",
    r"^contents?$",
    r"^copyright",
    r"^all rights reserved",
    r"^title page$",
    r"^cover$",
    r"^dedication$",
    r"^acknowledgements?$",
    r"^about the author$",
    r"^index$",
    r"^bibliography$",
    r"^references$",
    r"^notes$",
    r"^appendix",
]


def clean_html_to_text(html_content: str) -> str:
    """Convert HTML to clean plain text."""
    soup = BeautifulSoup(html_content, "html.parser")

    for element in soup(["script", "style", "nav", "header", "footer"]):
        element.decompose()

    text = soup.get_text(separator="\n")

    lines = (line.strip() for line in text.splitlines())
    text = "\n".join(line for line in lines if line)

    # Keep paragraph breaks, drop longer gaps
    text = re.sub(r"\n{3,}", "\n\n", text)

    return text.strip()


def extract_chapter_title(item: epub.EpubHtml, soup: BeautifulSoup, index: int) -> str:
    """Extract the chapter title from an EPUB item."""
    if item.title:
        return item.title

    for tag in ["h1", "h2", "h3"]:
        heading = soup.find(tag)
        if heading:
            title = heading.get_text(strip=True)
            if title and len(title) < 200:
                return title

    if item.file_name:
        name = Path(item.file_name).stem
        name = re.sub(r"^(chapter|ch|chap)[_-]?", "", name, flags=re.IGNORECASE)
        if name and not name.isdigit():
            return name.replace("_", " ").replace("-", " ").title()

    return f"Chapter {index + 1}"


def count_words(text: str) -> int:
    return len(text.split())


def is_content_chapter(text: str, title: Optional[str], min_words: int = 100) -> bool:
    """Determine if this is actual content vs front/back matter."""
    if count_words(text) < min_words:
        return False

    title_lower = (title or "").lower().strip()
    return not any(re.match(pattern, title_lower) for pattern in SKIP_PATTERNS)


def _first_metadata(epub_book: epub.EpubBook, name: str) -> Optional[str]:
    values = epub_book.get_metadata("DC", name)
    return values[0][0] if values else None


def parse_epub(file_path: Path, category: str = "general") -> SourceDocument:
    """
    Parse an EPUB file into chapters in reading order.

    Args:
        file_path: Path to the EPUB file
        category: Category recorded in the book metadata

    Returns:
        SourceDocument with the content chapters

    Raises:
        ValueError: If the EPUB holds no content chapters
    """
    epub_book = epub.read_epub(str(file_path))

    metadata = BookMetadata(
        title=_first_metadata(epub_book, "title") or file_path.stem,
        author=_first_metadata(epub_book, "creator") or "Unknown Author",
        category=category,
    )

    chapters: list[Chapter] = []
    for item in epub_book.get_items():
        if item.get_type() != ebooklib.ITEM_DOCUMENT:
            continue

        html_content = item.get_content().decode("utf-8", errors="ignore")
        text = clean_html_to_text(html_content)
        if not text:
            continue

        soup = BeautifulSoup(html_content, "html.parser")
        title = extract_chapter_title(item, soup, len(chapters))
        if not is_content_chapter(text, title):
            logger.debug("Skipping non-content section %r", title)
            continue

        chapters.append(
            Chapter(index=len(chapters), title=title, content=text, word_count=count_words(text))
        )

    if not chapters:
        raise ValueError(
            f"No content chapters found in '{file_path.name}'. "
            "The EPUB may be empty, corrupted, or contain only front/back matter."
        )

    return SourceDocument(metadata=metadata, chapters=chapters, source=str(file_path))


def split_markdown_chapters(text: str) -> tuple[Optional[str], list[tuple[Optional[str], str]]]:
    """
    Split markdown on level 1 and 2 headings.

    Returns:
        (document title or None, list of (heading, body) sections)
    """
    matches = list(MARKDOWN_HEADING_RE.finditer(text))
    if not matches:
        return None, [(None, text)]

    sections: list[tuple[Optional[str], str]] = []
    preamble = text[: matches[0].start()].strip()
    if preamble:
        sections.append((None, preamble))

    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        body = text[match.end() : end].strip()
        if body:
            sections.append((match.group(1), body))

    doc_title = matches[0].group(1) if text.lstrip().startswith("# ") else None
    return doc_title, sections


def parse_text(
    file_path: Path,
    title: Optional[str] = None,
    author: Optional[str] = None,
    category: str = "general",
) -> SourceDocument:
    """
    Read a plain text or markdown file.

    Plain text becomes a single unlabeled chapter. Markdown headings become
    chapter titles.
    """
    text = file_path.read_text(encoding="utf-8", errors="ignore").strip()
    if not text:
        raise ValueError(f"'{file_path.name}' is empty")

    doc_title = None
    sections: list[tuple[Optional[str], str]] = [(None, text)]
    if file_path.suffix.lower() in MARKDOWN_SUFFIXES:
        doc_title, sections = split_markdown_chapters(text)

    chapters = [
        Chapter(index=i, title=heading, content=body, word_count=count_words(body))
        for i, (heading, body) in enumerate(sections)
    ]
    metadata = BookMetadata(
        title=title or doc_title or file_path.stem.replace("_", " ").replace("-", " "),
        author=author or "Unknown Author",
        category=category,
    )
    return SourceDocument(metadata=metadata, chapters=chapters, source=str(file_path))


def extract_document(
    file_path: str | Path,
    title: Optional[str] = None,
    author: Optional[str] = None,
    category: str = "general",
) -> SourceDocument:
    """
    Extract a document for chunking.

    Args:
        file_path: .epub, .txt or .md file
        title: Override the detected title
        author: Override the detected author
        category: Category recorded in the metadata

    Returns:
        SourceDocument with metadata and chapters

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the format is unsupported or the file has no content
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    suffix = file_path.suffix.lower()
    if suffix == ".epub":
        document = parse_epub(file_path, category=category)
        if title or author:
            document.metadata = document.metadata.model_copy(
                update={k: v for k, v in {"title": title, "author": author}.items() if v}
            )
        return document
    if suffix in TEXT_SUFFIXES:
        return parse_text(file_path, title=title, author=author, category=category)

    raise ValueError(f"Unsupported file type '{suffix}' (expected .epub, .txt or .md)")


def get_document_summary(document: SourceDocument) -> str:
    """Get a human-readable summary of an extracted document."""
    lines = [
        f"Title: {document.metadata.title}",
        f"Author: {document.metadata.author}",
        f"Chapters: {len(document.chapters)}",
        f"Total words: {document.total_words:,}",
        "",
        "Chapters:",
    ]
    for ch in document.chapters:
        lines.append(f"  {ch.index + 1}. {ch.title or '(untitled)'} ({ch.word_count:,} words)")
    return "\n".join(lines)
