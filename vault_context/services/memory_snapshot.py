"""
Memory snapshot notes.

collect_context can persist its memory packet as a markdown note in the vault:
a human-readable summary followed by a canonical JSON block. load_memory reads
that note back, preferring the JSON block and falling back to the ``- key:``
metadata lines for the header fields.
"""

import hashlib
import json
import re
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from vault_context.core.vault import VaultManager
from vault_context.models.context import (
    CollectContextPayload,
    CollectScope,
    CompressionMode,
    LoadMemoryPayload,
    MemoryPacket,
    MemoryWrite,
    MemoryWriteStatus,
    SourceRef,
)
from vault_context.models.requests import VaultQueryParams
from vault_context.models.responses import ToolResponse
from vault_context.services.compression import (
    finalize_with_compression,
    json_char_length,
    normalize_whitespace,
    resolve_max_output_chars,
    strip_frontmatter_block,
    trim_with_ellipsis,
)
from vault_context.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_NOTE_PATH = "memory/context_memory_snapshot.v1.md"
DEFAULT_SCHEMA_VERSION = "context_memory_snapshot.v1"

CANONICAL_JSON_PATTERN = re.compile(r"```json\s*([\s\S]*?)```")
DEFAULT_PREVIEW_CHARS = 900
CLAMPED_PREVIEW_CHARS = 400
EMPTY_PREVIEW = "Stored memory note exists but has no readable summary section."
PREVIEW_DISABLED = "(preview disabled: set includeContent=true to include memory preview)"
LOAD_EXPAND_HINT = "If memory note is stale, rerun collect_context with memoryMode='both'."


def utc_timestamp() -> str:
    """Current UTC time as ISO 8601 with milliseconds and a Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def compute_source_hash(payload: CollectContextPayload) -> str:
    """
    Hash of the content-bearing part of a payload.

    Covers scope, topic, match count, per-document identity and summary
    fields, and the memory packet. Batch and cache bookkeeping are excluded.

    Args:
        payload: Collected payload

    Returns:
        SHA256 hex digest
    """
    normalized = {
        "scope": payload.scope.value,
        "topic": payload.topic,
        "matched_total": payload.matched_total,
        "documents": [
            {
                "fullPath": doc.full_path,
                "doc_hash": doc.doc_hash,
                "title": doc.title,
                "tags": doc.tags,
                "summary": doc.summary,
                "relevance": doc.relevance.value,
                "contentLength": doc.stats.content_length,
                "backlinks_count": doc.backlinks_count,
                "truncated": doc.truncated,
            }
            for doc in payload.documents
        ],
        "memory_packet": payload.memory_packet.model_dump(mode="json", by_alias=True),
    }
    encoded = json.dumps(normalized, ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


def render_snapshot_markdown(
    payload: CollectContextPayload,
    generated_at: str,
    source_hash: str,
    note_path: str,
    schema_version: str = DEFAULT_SCHEMA_VERSION,
) -> str:
    """
    Render the snapshot note.

    Args:
        payload: Collected payload
        generated_at: ISO timestamp of the write
        source_hash: Hash from compute_source_hash()
        note_path: Vault-relative note path
        schema_version: Snapshot schema identifier

    Returns:
        Markdown text ending with a ``## Canonical JSON`` fenced block
    """
    packet = payload.memory_packet
    canonical = {
        "schema_version": schema_version,
        "generated_at": generated_at,
        "source_hash": source_hash,
        "note_path": note_path,
        "action": payload.action,
        "scope": payload.scope.value,
        "topic": payload.topic,
        "matched_total": payload.matched_total,
        "total_in_vault": payload.total_in_vault,
        "documents": [
            {
                "fullPath": doc.full_path,
                "doc_hash": doc.doc_hash,
                "title": doc.title,
                "tags": doc.tags,
                "relevance": doc.relevance.value,
                "summary": doc.summary,
                "evidence_snippets": doc.evidence_snippets,
                "stats": doc.stats.model_dump(mode="json", by_alias=True),
                "backlinks_count": doc.backlinks_count,
                "truncated": doc.truncated,
            }
            for doc in payload.documents
        ],
        "memory_packet": packet.model_dump(mode="json", by_alias=True),
    }

    key_facts = "\n".join(f"- {fact}" for fact in packet.key_facts[:8])
    bullets = "\n".join(f"- {item}" for item in packet.experience_bullets[:8])
    source_refs = "\n".join(_render_source_ref(ref) for ref in packet.source_refs[:10])
    open_questions = "\n".join(f"- {question}" for question in packet.open_questions)

    lines = [
        "# Context Memory Snapshot v1",
        "",
        f"- generated_at: {generated_at}",
        f"- source_hash: {source_hash}",
        f"- schema_version: {schema_version}",
        f"- topic: {payload.topic if payload.topic is not None else 'null'}",
        f"- scope: {payload.scope.value}",
        f"- matched_total: {payload.matched_total}",
        f"- total_in_vault: {payload.total_in_vault}",
        "",
        "## Topic Summary",
        packet.topic_summary or "(empty)",
        "",
        "## Key Facts",
        key_facts or "- None",
        "",
        "## Experience Bullets",
        bullets or "- None",
        "",
        "## Source Refs",
        source_refs or "- None",
        "",
        "## Open Questions",
        open_questions or "- None",
        "",
        "## Confidence",
        f"{packet.confidence}",
        "",
        "## Canonical JSON",
        "```json",
        json.dumps(canonical, ensure_ascii=False, indent=2),
        "```",
        "",
    ]
    return "\n".join(lines)


def _render_source_ref(ref: SourceRef) -> str:
    line = f"- [{ref.relevance.value}] {ref.title} ({ref.file_path})"
    if ref.evidence_snippets:
        line += "".join(f"\n  - {snippet}" for snippet in ref.evidence_snippets)
    return line


def parse_canonical_json(content: str) -> dict[str, Any] | None:
    """First ```json block of a note, if it holds a JSON object."""
    match = CANONICAL_JSON_PATTERN.search(content)
    if not match or not match.group(1).strip():
        return None
    try:
        parsed = json.loads(match.group(1))
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def strip_canonical_json(content: str) -> str:
    """Remove the first ```json block from a note."""
    match = re.search(r"```json\s*[\s\S]*?```", content)
    if not match:
        return content
    return content[: match.start()] + content[match.end() :]


def extract_meta_value(content: str, key: str) -> str | None:
    """Value of a ``- key: value`` line."""
    match = re.search(rf"^-\s*{re.escape(key)}:\s*(.+)$", content, re.MULTILINE)
    return match.group(1).strip() if match else None


class MemorySnapshotStore:
    """
    Writes and reads the memory snapshot note of one vault.

    Usage:
        store = MemorySnapshotStore(vault_manager)
        memory_write = await store.write(payload)
        response = await store.load(VaultQueryParams(action="load_memory"))
    """

    def __init__(
        self,
        vault_manager: VaultManager,
        note_path: str = DEFAULT_NOTE_PATH,
        schema_version: str = DEFAULT_SCHEMA_VERSION,
    ):
        """
        Initialize snapshot store.

        Args:
            vault_manager: Vault to read from and write to
            note_path: Vault-relative path of the snapshot note
            schema_version: Schema identifier written into the note
        """
        self.vault_manager = vault_manager
        self.note_path = note_path
        self.schema_version = schema_version

    async def write(self, payload: CollectContextPayload) -> MemoryWrite:
        """
        Overwrite the snapshot note with a payload.

        Write failures are reported in the result, not raised.

        Args:
            payload: Collected payload to persist

        Returns:
            MemoryWrite describing the outcome
        """
        generated_at = utc_timestamp()
        source_hash = compute_source_hash(payload)
        markdown = render_snapshot_markdown(
            payload,
            generated_at=generated_at,
            source_hash=source_hash,
            note_path=self.note_path,
            schema_version=self.schema_version,
        )

        try:
            await self.vault_manager.write_raw_document(self.note_path, markdown)
        except Exception as e:
            logger.error(f"Failed to write memory snapshot {self.note_path}: {e}")
            return MemoryWrite(
                requested=True,
                status=MemoryWriteStatus.FAILED,
                note_path=self.note_path,
                generated_at=generated_at,
                source_hash=source_hash,
                reason=str(e),
            )

        logger.info(f"Wrote memory snapshot {self.note_path} ({len(payload.documents)} documents)")
        return MemoryWrite(
            requested=True,
            status=MemoryWriteStatus.WRITTEN,
            note_path=self.note_path,
            generated_at=generated_at,
            source_hash=source_hash,
        )

    async def load(self, params: VaultQueryParams) -> ToolResponse:
        """
        Read a snapshot note back.

        Args:
            params: Tool parameters (memory_path, excerpt_length, include_content,
                quiet, compression_mode, max_output_chars)

        Returns:
            Success or quiet response, or not-found when the note is missing
        """
        mode = params.mode
        memory_path = (params.memory_path or "").strip() or self.note_path

        note = await self.vault_manager.get_document_info(memory_path, include_stats=True)
        if note is None:
            return ToolResponse.not_found(
                f"Memory note not found: {memory_path}",
                "Run collect_context with memoryMode='vault_note' or 'both' first.",
            )

        body = strip_frontmatter_block(note.content)

        if params.quiet:
            payload = self._build_payload(note.file_path, body, preview="")
            return ToolResponse.quiet(
                {
                    "found": True,
                    "memory_path": payload.memory_path,
                    "has_canonical_json": payload.has_canonical_json,
                    "topic": payload.topic,
                    "scope": payload.scope,
                    "schema_version": payload.schema_version or self.schema_version,
                }
            )

        preview_source = normalize_whitespace(strip_canonical_json(body)) or EMPTY_PREVIEW
        if params.excerpt_length is not None:
            preview_limit = params.excerpt_length
        elif mode == CompressionMode.NONE:
            preview_limit = len(preview_source)
        else:
            preview_limit = DEFAULT_PREVIEW_CHARS

        if params.include_content is False:
            preview = PREVIEW_DISABLED
        else:
            preview = trim_with_ellipsis(preview_source, preview_limit)
        preview_truncated = len(preview) < len(preview_source)

        payload = self._build_payload(note.file_path, body, preview)
        max_output_chars = resolve_max_output_chars("load_memory", mode, params.max_output_chars)
        clamped = False
        if max_output_chars is not None:
            clamped = _clamp_to_budget(payload, max_output_chars)

        return ToolResponse.success(
            finalize_with_compression(
                payload,
                mode=mode,
                source_chars=len(body),
                max_output_chars=max_output_chars,
                truncated=preview_truncated or clamped,
                expand_hint=LOAD_EXPAND_HINT,
            )
        )

    def _build_payload(self, note_path: str, body: str, preview: str) -> LoadMemoryPayload:
        parsed = parse_canonical_json(body)
        has_canonical = parsed is not None
        canonical = parsed or {}

        memory_packet = None
        if "memory_packet" in canonical:
            try:
                memory_packet = MemoryPacket.model_validate(canonical["memory_packet"])
            except PydanticValidationError as e:
                logger.warning(f"Ignoring invalid memory packet in {note_path}: {e.error_count()} errors")

        scope = canonical.get("scope")
        if scope not in {item.value for item in CollectScope}:
            scope = None
        topic = canonical.get("topic")
        documents = canonical.get("documents")

        def header_value(key: str) -> str | None:
            value = canonical.get(key)
            return value if isinstance(value, str) else extract_meta_value(body, key)

        return LoadMemoryPayload(
            memory_path=note_path,
            has_canonical_json=has_canonical,
            schema_version=header_value("schema_version"),
            generated_at=header_value("generated_at"),
            source_hash=header_value("source_hash"),
            topic=topic if isinstance(topic, str) else None,
            scope=scope,
            documents_count=len(documents) if isinstance(documents, list) else 0,
            memory_packet=memory_packet,
            preview=preview,
        )


def _clamp_to_budget(payload: LoadMemoryPayload, max_output_chars: int) -> bool:
    """Shrink a load_memory payload in place. Returns True if anything was cut."""
    clamped = False
    packet = payload.memory_packet

    def over_budget() -> bool:
        return json_char_length(payload) > max_output_chars

    if packet is not None:
        while over_budget() and len(packet.source_refs) > 3:
            packet.source_refs.pop()
            clamped = True
        while over_budget() and len(packet.key_facts) > 5:
            packet.key_facts.pop()
            clamped = True
        while over_budget() and len(packet.experience_bullets) > 5:
            packet.experience_bullets.pop()
            clamped = True

    if over_budget() and len(payload.preview) > CLAMPED_PREVIEW_CHARS:
        payload.preview = trim_with_ellipsis(payload.preview, CLAMPED_PREVIEW_CHARS)
        clamped = True

    return clamped
