"""Source document extraction."""

from .epub_parser import extract_document, get_document_summary, parse_epub, parse_text

__all__ = ["extract_document", "get_document_summary", "parse_epub", "parse_text"]
