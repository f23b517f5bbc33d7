"""
Wiki-link and image extraction from markdown bodies.
"""

import re
from typing import NamedTuple

WIKI_IMAGE_PATTERN = re.compile(r"!\[\[([^\]]+)\]\]")
MARKDOWN_IMAGE_PATTERN = re.compile(r"!\[.*?\]\((.*?)\)")
WIKI_LINK_PATTERN = re.compile(r"(?<!!)\[\[([^\]]+)\]\]")
LINK_TARGET_SEPARATOR = re.compile(r"[|#]")
MARKDOWN_EXTENSION = re.compile(r"\.mdx?$", re.IGNORECASE)


class ExtractedLinks(NamedTuple):
    """Links found in one document."""

    image_links: list[str]
    document_links: list[str]


def extract_links(content: str) -> ExtractedLinks:
    """
    Find image embeds and document links.

    Document links drop their alias (``|``) and anchor (``#``) parts, so
    ``[[A]]``, ``[[A|Alias]]`` and ``[[A#Header]]`` all yield ``A``.

    Args:
        content: Markdown body

    Returns:
        ExtractedLinks in order of appearance
    """
    image_links = WIKI_IMAGE_PATTERN.findall(content)
    image_links.extend(MARKDOWN_IMAGE_PATTERN.findall(content))

    document_links = [
        LINK_TARGET_SEPARATOR.split(target, maxsplit=1)[0]
        for target in WIKI_LINK_PATTERN.findall(content)
    ]
    return ExtractedLinks(image_links, document_links)


def normalize_link_target(target: str) -> str:
    """Lowercase a link target and drop a markdown extension."""
    return MARKDOWN_EXTENSION.sub("", target.strip().lower())
