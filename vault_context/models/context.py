"""
Models for the context collection pipeline and memory snapshots.

Wire names follow the JSON the tool layer emits: pipeline bookkeeping fields
are snake_case, document and memory packet fields keep their camelCase names.
"""

from enum import Enum

from pydantic import BaseModel, Field


class CompressionMode(str, Enum):
    """Response size presets."""

    AGGRESSIVE = "aggressive"
    BALANCED = "balanced"
    NONE = "none"


class CollectScope(str, Enum):
    """Candidate selection for collect_context."""

    ALL = "all"
    TOPIC = "topic"


class MemoryMode(str, Enum):
    """Where a collected memory packet goes."""

    RESPONSE_ONLY = "response_only"
    VAULT_NOTE = "vault_note"
    BOTH = "both"

    @property
    def writes_note(self) -> bool:
        return self in (MemoryMode.VAULT_NOTE, MemoryMode.BOTH)


class Relevance(str, Enum):
    """Coarse topic relevance of a collected document."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class MemoryWriteStatus(str, Enum):
    """Outcome of persisting the memory snapshot note."""

    NOT_REQUESTED = "not_requested"
    WRITTEN = "written"
    FAILED = "failed"


class ContinuationToken(BaseModel):
    """
    Resumable position in a collect_context scan.

    Serialized as unpadded base64url JSON; ``v`` must be 1.
    """

    model_config = {"populate_by_name": True}

    v: int = Field(default=1, ge=1, le=1, strict=True, description="Token format version")
    cursor: int = Field(..., ge=0, description="Index of the next candidate to scan")
    scope: CollectScope
    topic: str | None = None
    max_docs: int = Field(..., alias="maxDocs", ge=1)
    max_chars_per_doc: int = Field(..., alias="maxCharsPerDoc", ge=200)
    memory_mode: MemoryMode = Field(default=MemoryMode.RESPONSE_ONLY, alias="memoryMode")


class CollectedDocumentStats(BaseModel):
    """Stats copied onto a collected document."""

    model_config = {"populate_by_name": True}

    content_length: int = Field(..., alias="contentLength", ge=0)
    word_count: int = Field(..., alias="wordCount", ge=0)
    has_content: bool = Field(..., alias="hasContent")


class CollectContextDocument(BaseModel):
    """A document distilled for context collection."""

    model_config = {"populate_by_name": True}

    filename: str
    full_path: str = Field(..., alias="fullPath")
    title: str
    tags: list[str] = Field(default_factory=list)
    doc_hash: str
    summary: str
    excerpt: str
    evidence_snippets: list[str] = Field(default_factory=list)
    relevance: Relevance
    stats: CollectedDocumentStats
    backlinks_count: int = Field(default=0, ge=0)
    truncated: bool = False


class SourceRef(BaseModel):
    """Pointer from a memory packet back to a vault document."""

    model_config = {"populate_by_name": True}

    file_path: str = Field(..., alias="filePath")
    title: str
    relevance: Relevance
    evidence_snippets: list[str] = Field(default_factory=list, alias="evidenceSnippets")


class MemoryPacket(BaseModel):
    """Distilled summary of a set of collected documents."""

    model_config = {"populate_by_name": True}

    topic_summary: str = Field(..., alias="topicSummary")
    key_facts: list[str] = Field(default_factory=list, alias="keyFacts")
    experience_bullets: list[str] = Field(default_factory=list, alias="experienceBullets")
    source_refs: list[SourceRef] = Field(default_factory=list, alias="sourceRefs")
    open_questions: list[str] = Field(default_factory=list, alias="openQuestions")
    confidence: float = Field(..., ge=0.0, le=1.0)


class MemoryWrite(BaseModel):
    """Snapshot persistence result reported in-band."""

    requested: bool
    status: MemoryWriteStatus
    note_path: str | None = None
    generated_at: str | None = None
    source_hash: str | None = None
    reason: str | None = None


class CacheInfo(BaseModel):
    """Cache bookkeeping attached to a collect_context payload."""

    key: str
    hit: bool
    schema_version: str
    topic: str | None = None
    doc_hash: str
    mode: MemoryMode


class BatchInfo(BaseModel):
    """Pagination state of a collect_context call."""

    start_cursor: int = Field(..., ge=0)
    processed_docs: int = Field(..., ge=0)
    consumed_candidates: int = Field(..., ge=0)
    max_docs: int = Field(..., ge=1)
    max_chars_per_doc: int = Field(..., ge=200)
    has_more: bool
    continuation_token: str | None = None


class CollectContextPayload(BaseModel):
    """collect_context result before the compression envelope is attached."""

    action: str = "collect_context"
    scope: CollectScope
    topic: str | None = None
    matched_total: int = Field(..., ge=0)
    total_in_vault: int = Field(..., ge=0)
    documents: list[CollectContextDocument] = Field(default_factory=list)
    memory_packet: MemoryPacket
    memory_mode: MemoryMode
    memory_write: MemoryWrite
    cache: CacheInfo | None = None
    batch: BatchInfo


class CompressionEnvelope(BaseModel):
    """Size accounting attached to every shaped response."""

    mode: CompressionMode
    source_chars: int = Field(..., ge=0)
    output_chars: int = Field(..., ge=0)
    estimated_tokens: int = Field(..., ge=0)
    max_output_chars: int | None = None
    truncated: bool
    expand_hint: str


class CollectContextResponse(CollectContextPayload):
    """collect_context result as returned to callers."""

    compression: CompressionEnvelope


class LoadMemoryPayload(BaseModel):
    """load_memory result before the compression envelope is attached."""

    action: str = "load_memory"
    found: bool = True
    memory_path: str
    has_canonical_json: bool
    schema_version: str | None = None
    generated_at: str | None = None
    source_hash: str | None = None
    topic: str | None = None
    scope: str | None = None
    documents_count: int = Field(default=0, ge=0)
    memory_packet: MemoryPacket | None = None
    preview: str
