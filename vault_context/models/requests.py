"""
Tool request parameters.

One parameter model covers every vault action; each action reads the fields
it needs. Fields accept both snake_case and the camelCase names used by tool
clients (``maxDocs``, ``continuationToken``, ...).
"""

from enum import Enum

from pydantic import BaseModel, Field

from vault_context.models.context import CollectScope, CompressionMode, MemoryMode


class VaultAction(str, Enum):
    """Actions served by the vault tool."""

    SEARCH = "search"
    READ = "read"
    LIST_ALL = "list_all"
    STATS = "stats"
    COLLECT_CONTEXT = "collect_context"
    LOAD_MEMORY = "load_memory"


class VaultQueryParams(BaseModel):
    """Parameters of a vault tool call."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    action: VaultAction = Field(..., description="Action to perform")
    keyword: str | None = Field(default=None, description="Search keyword (search)")
    filename: str | None = Field(default=None, description="File name or path (read)")
    limit: int | None = Field(default=None, ge=1, le=100, description="Max results")
    include_content: bool | None = Field(
        default=None, alias="includeContent", description="Include document content"
    )
    include_frontmatter: bool | None = Field(
        default=None, alias="includeFrontmatter", description="Include frontmatter"
    )
    excerpt_length: int | None = Field(
        default=None, alias="excerptLength", ge=100, le=2000, description="Excerpt length"
    )
    topic: str | None = Field(default=None, description="Topic for collect_context")
    scope: CollectScope | None = Field(default=None, description="Candidate scope")
    max_docs: int | None = Field(default=None, alias="maxDocs", ge=1, le=100)
    max_chars_per_doc: int | None = Field(default=None, alias="maxCharsPerDoc", ge=200, le=8000)
    memory_mode: MemoryMode | None = Field(default=None, alias="memoryMode")
    continuation_token: str | None = Field(default=None, alias="continuationToken")
    memory_path: str | None = Field(default=None, alias="memoryPath")
    compression_mode: CompressionMode | None = Field(default=None, alias="compressionMode")
    max_output_chars: int | None = Field(
        default=None, alias="maxOutputChars", ge=500, le=12000, description="Output size budget"
    )
    quiet: bool = Field(default=False, description="Return a minimal payload")

    @property
    def mode(self) -> CompressionMode:
        """Compression mode with the balanced default applied."""
        return self.compression_mode or CompressionMode.BALANCED
