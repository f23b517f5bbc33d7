"""
Document models for indexed vault files.

A DocumentIndex is what the indexer keeps in memory for every markdown file.
An EnrichedDocument is built on demand by the vault manager and carries the
file content plus optional stats, backlinks and a content hash.
"""

import datetime
import hashlib
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class DocumentCategory(str, Enum):
    """Allowed values of the frontmatter ``category`` field."""

    WEB = "web"
    ALGORITHM = "algorithm"
    CS = "cs"
    CODE = "code"


class FrontMatter(BaseModel):
    """
    Recognized frontmatter fields.

    Unknown keys are ignored. Dates written as YAML dates are kept as ISO strings.
    """

    model_config = {"extra": "ignore", "use_enum_values": True}

    title: str | None = None
    date: str | None = None
    tags: list[str] | None = None
    summary: str | None = None
    slug: str | None = None
    category: DocumentCategory | None = None
    completed: bool | None = None

    @field_validator("date", mode="before")
    @classmethod
    def _date_to_string(cls, value: Any) -> Any:
        if isinstance(value, datetime.date):
            return value.isoformat()
        return value


class DocumentStats(BaseModel):
    """Size statistics computed over the full file content."""

    model_config = {"populate_by_name": True}

    word_count: int = Field(..., alias="wordCount", ge=0)
    line_count: int = Field(..., alias="lineCount", ge=0)
    character_count: int = Field(..., alias="characterCount", ge=0)
    content_length: int = Field(..., alias="contentLength", ge=0)
    has_content: bool = Field(..., alias="hasContent")

    @classmethod
    def from_content(cls, content: str) -> "DocumentStats":
        """
        Compute stats for a piece of text.

        Args:
            content: Full file text

        Returns:
            DocumentStats instance
        """
        return cls(
            word_count=len([word for word in content.split() if word]),
            line_count=len(content.split("\n")),
            character_count=len(content),
            content_length=len(content),
            has_content=bool(content.strip()),
        )


class Backlink(BaseModel):
    """A document that links to another one."""

    model_config = {"populate_by_name": True}

    file_path: str = Field(..., alias="filePath")
    title: str


class DocumentIndex(BaseModel):
    """In-memory index entry for one vault file."""

    model_config = {"populate_by_name": True}

    file_path: str = Field(..., alias="filePath", description="Absolute path, unique per vault")
    frontmatter: FrontMatter = Field(default_factory=FrontMatter)
    content_length: int = Field(default=0, alias="contentLength", ge=0)
    image_links: list[str] = Field(default_factory=list, alias="imageLinks")
    document_links: list[str] = Field(default_factory=list, alias="documentLinks")


class EnrichedDocument(DocumentIndex):
    """
    Index entry plus content read from disk.

    ``content`` may be truncated to a preview length; ``stats`` and
    ``content_hash`` always describe the full file.
    """

    content: str = ""
    content_hash: str | None = Field(default=None, alias="contentHash")
    stats: DocumentStats | None = None
    backlinks: list[Backlink] | None = None


class VaultStats(BaseModel):
    """Vault manager status."""

    model_config = {"populate_by_name": True}

    total_files: int = Field(..., alias="totalFiles")
    is_initialized: bool = Field(..., alias="isInitialized")
    vault_path: str = Field(..., alias="vaultPath")


def compute_content_hash(content: str) -> str:
    """
    Compute SHA256 hex digest of content.

    Args:
        content: Text content to hash

    Returns:
        64-character lowercase hex digest
    """
    return hashlib.sha256(content.encode("utf-8")).hexdigest()
