"""Markdown parsing: frontmatter and links."""

from vault_context.core.parsing.frontmatter import (
    ParsedDocument,
    load_frontmatter_data,
    parse_document,
    split_frontmatter,
    stringify_document,
)
from vault_context.core.parsing.links import ExtractedLinks, extract_links, normalize_link_target

__all__ = [
    "ParsedDocument",
    "parse_document",
    "split_frontmatter",
    "load_frontmatter_data",
    "stringify_document",
    "ExtractedLinks",
    "extract_links",
    "normalize_link_target",
]
