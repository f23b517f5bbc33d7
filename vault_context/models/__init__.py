"""
Data models for the vault context server.

Core models:
- FrontMatter, DocumentIndex, EnrichedDocument: indexed vault files
- CollectContextPayload, MemoryPacket, ContinuationToken: context collection
- LoadMemoryPayload: memory snapshot reload
- VaultQueryParams, VaultAction: tool input
- ToolResponse, ResponseKind: tagged tool output
"""

from vault_context.models.context import (
    BatchInfo,
    CacheInfo,
    CollectContextDocument,
    CollectContextPayload,
    CollectContextResponse,
    CollectedDocumentStats,
    CollectScope,
    CompressionEnvelope,
    CompressionMode,
    ContinuationToken,
    LoadMemoryPayload,
    MemoryMode,
    MemoryPacket,
    MemoryWrite,
    MemoryWriteStatus,
    Relevance,
    SourceRef,
)
from vault_context.models.document import (
    Backlink,
    DocumentCategory,
    DocumentIndex,
    DocumentStats,
    EnrichedDocument,
    FrontMatter,
    VaultStats,
    compute_content_hash,
)
from vault_context.models.requests import VaultAction, VaultQueryParams
from vault_context.models.responses import ResponseKind, ToolResponse

__all__ = [
    # Document models
    "FrontMatter",
    "DocumentCategory",
    "DocumentIndex",
    "DocumentStats",
    "EnrichedDocument",
    "Backlink",
    "VaultStats",
    "compute_content_hash",
    # Context collection models
    "CompressionMode",
    "CollectScope",
    "MemoryMode",
    "Relevance",
    "MemoryWriteStatus",
    "ContinuationToken",
    "CollectedDocumentStats",
    "CollectContextDocument",
    "SourceRef",
    "MemoryPacket",
    "MemoryWrite",
    "CacheInfo",
    "BatchInfo",
    "CollectContextPayload",
    "CompressionEnvelope",
    "CollectContextResponse",
    "LoadMemoryPayload",
    # Tool models
    "VaultAction",
    "VaultQueryParams",
    "ResponseKind",
    "ToolResponse",
]
