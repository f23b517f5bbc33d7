"""
YAML frontmatter handling for markdown documents.

A document may open with a block delimited by ``---`` lines. Parsing never
fails: a block that is not valid YAML (or not a mapping) leaves the whole file
as body text, and individual fields with invalid values are dropped.
"""

from typing import Any, NamedTuple

import yaml
from pydantic import ValidationError as PydanticValidationError

from vault_context.models.document import FrontMatter
from vault_context.utils.logger import get_logger

logger = get_logger(__name__)

DELIMITER = "---"


class ParsedDocument(NamedTuple):
    """Frontmatter and body of a markdown file."""

    frontmatter: FrontMatter
    content: str


def split_frontmatter(text: str) -> tuple[str | None, str]:
    """
    Separate the raw frontmatter block from the body.

    Args:
        text: Full file text

    Returns:
        (block, body); block is None when the file has no closed frontmatter
    """
    if not text.startswith(DELIMITER):
        return None, text

    lines = text.split("\n")
    if lines[0].rstrip() != DELIMITER:
        return None, text

    for index in range(1, len(lines)):
        if lines[index].rstrip() == DELIMITER:
            return "\n".join(lines[1:index]), "\n".join(lines[index + 1 :])

    return None, text


def load_frontmatter_data(text: str) -> tuple[dict[str, Any], str] | None:
    """
    Load the raw frontmatter mapping without validating its fields.

    Args:
        text: Full file text

    Returns:
        (data, body), or None when the block is malformed
    """
    block, body = split_frontmatter(text)
    if block is None:
        return {}, body

    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as e:
        logger.warning(f"Invalid frontmatter YAML: {e}")
        return None

    if data is None:
        return {}, body
    if not isinstance(data, dict):
        logger.warning(f"Frontmatter is not a mapping (got {type(data).__name__})")
        return None

    return {str(key): value for key, value in data.items()}, body


def parse_document(text: str) -> ParsedDocument:
    """
    Parse a markdown file into validated frontmatter and body.

    Args:
        text: Full file text

    Returns:
        ParsedDocument; empty frontmatter and the full text when the block is malformed
    """
    loaded = load_frontmatter_data(text)
    if loaded is None:
        return ParsedDocument(FrontMatter(), text)

    data, body = loaded
    return ParsedDocument(validate_frontmatter(data), body)


def validate_frontmatter(data: dict[str, Any]) -> FrontMatter:
    """Validate known fields, dropping the ones whose values are invalid."""
    try:
        return FrontMatter.model_validate(data)
    except PydanticValidationError as e:
        invalid = {str(error["loc"][0]) for error in e.errors() if error["loc"]}
        logger.debug(f"Dropping invalid frontmatter fields: {sorted(invalid)}")
        return FrontMatter.model_validate({k: v for k, v in data.items() if k not in invalid})


def stringify_document(body: str, data: dict[str, Any]) -> str:
    """
    Render a body with a frontmatter block.

    Args:
        body: Markdown body without frontmatter
        data: Frontmatter mapping; an empty mapping renders the body alone

    Returns:
        Full file text
    """
    if not data:
        return body

    block = yaml.safe_dump(data, allow_unicode=True, sort_keys=False, default_flow_style=False)
    return f"{DELIMITER}\n{block}{DELIMITER}\n{body}"
