"""Tests for document extraction."""

import pytest
from ebooklib import epub

from epigram_cards.parser import extract_document, get_document_summary
from epigram_cards.parser.epub_parser import (
    clean_html_to_text,
    is_content_chapter,
    split_markdown_chapters,
)

BODY = " ".join(f"Sentence {i} discusses how habits form through repetition and reward." for i in range(15))


def create_test_epub(path, chapters: list[tuple[str, str]]) -> None:
    """Helper to write a small EPUB file."""
    book = epub.EpubBook()
    book.set_identifier("test-book")
    book.set_title("Habits of Mind")
    book.set_language("en")
    book.add_author("Jane Writer")

    items = []
    for i, (title, text) in enumerate(chapters):
        item = epub.EpubHtml(title=title, file_name=f"chap_{i}.xhtml", lang="en")
        item.content = f"<html><body><h1>{title}</h1><p>{text}</p></body></html>"
        book.add_item(item)
        items.append(item)

    book.toc = items
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = ["nav"] + items
    epub.write_epub(str(path), book)


class TestHelpers:
    """Tests for extraction helpers."""

    def test_clean_html_to_text(self):
        html = "<html><head><style>p {}</style></head><body><nav>Menu</nav><p>Hello</p><p>World</p></body></html>"
        assert clean_html_to_text(html) == "Hello\nWorld"

    def test_front_matter_is_skipped(self):
        assert not is_content_chapter(BODY, "Copyright")
        assert not is_content_chapter(BODY, "Table of Contents")
        assert not is_content_chapter("too short", "Chapter 1")
        assert is_content_chapter(BODY, "Chapter 1")

    def test_split_markdown_chapters(self):
        text = "# The Book\n\nIntro text.\n\n## Part One\n\nFirst body.\n\n## Part Two\n\nSecond body."

        title, sections = split_markdown_chapters(text)

        assert title == "The Book"
        assert sections == [("The Book", "Intro text."), ("Part One", "First body."), ("Part Two", "Second body.")]


class TestExtractDocument:
    """Tests for extract_document."""

    def test_plain_text_is_one_unlabeled_chapter(self, tmp_path):
        path = tmp_path / "field_notes.txt"
        path.write_text(BODY)

        document = extract_document(path, author="Observer")

        assert document.metadata.title == "field notes"
        assert document.metadata.author == "Observer"
        assert len(document.chapters) == 1
        assert document.chapters[0].title is None
        assert document.total_words == len(BODY.split())

    def test_markdown_headings_become_chapters(self, tmp_path):
        path = tmp_path / "notes.md"
        path.write_text(f"# Study Notes\n\n## Habits\n\n{BODY}\n\n## Rewards\n\n{BODY}\n")

        document = extract_document(path, category="psychology")

        assert document.metadata.title == "Study Notes"
        assert document.metadata.category == "psychology"
        assert [c.title for c in document.chapters] == ["Habits", "Rewards"]

    def test_epub(self, tmp_path):
        path = tmp_path / "habits.epub"
        create_test_epub(path, [("Copyright", BODY), ("Cue and Craving", BODY), ("Reward", BODY)])

        document = extract_document(path)

        assert document.metadata.title == "Habits of Mind"
        assert document.metadata.author == "Jane Writer"
        assert [c.title for c in document.chapters] == ["Cue and Craving", "Reward"]
        assert [c.index for c in document.chapters] == [0, 1]
        assert "Chapters: 2" in get_document_summary(document)

    def test_epub_title_override(self, tmp_path):
        path = tmp_path / "habits.epub"
        create_test_epub(path, [("Reward", BODY)])

        document = extract_document(path, title="Custom Title")

        assert document.metadata.title == "Custom Title"
        assert document.metadata.author == "Jane Writer"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            extract_document(tmp_path / "missing.txt")

    def test_unsupported_type(self, tmp_path):
        path = tmp_path / "slides.pptx"
        path.write_bytes(b"binary")
        with pytest.raises(ValueError, match="Unsupported"):
            extract_document(path)

    def test_empty_text_file(self, tmp_path):
        path = tmp_path / "empty.txt"
        path.write_text("   ")
        with pytest.raises(ValueError):
            extract_document(path)
