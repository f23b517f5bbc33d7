"""
Context collection pipeline.

Gathers distilled, size-bounded context about a topic from the vault:

candidates (all docs or topic search, sorted by path)
  → scan from cursor, distilling each document
  → budget guardrails (backlinks, text shrink, drop + rewind)
  → memory packet synthesis
  → content-hash keyed cache
  → optional snapshot note
  → final trimming + compression envelope

Large vaults are consumed in batches; each response carries a continuation
token pointing at the next unscanned candidate.
"""

import hashlib
import json
import os
import re

from pydantic import BaseModel, Field

from vault_context.core.vault import VaultManager
from vault_context.models.context import (
    BatchInfo,
    CacheInfo,
    CollectContextDocument,
    CollectContextPayload,
    CollectedDocumentStats,
    CollectScope,
    CompressionMode,
    ContinuationToken,
    MemoryMode,
    MemoryPacket,
    MemoryWrite,
    MemoryWriteStatus,
    Relevance,
    SourceRef,
)
from vault_context.models.document import DocumentIndex, EnrichedDocument, compute_content_hash
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
from vault_context.services.context_cache import CollectContextCache
from vault_context.services.continuation import (
    decode_continuation_token,
    encode_continuation_token,
)
from vault_context.services.memory_snapshot import DEFAULT_SCHEMA_VERSION, MemorySnapshotStore
from vault_context.utils.exceptions import InvalidContinuationTokenError
from vault_context.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_DOCS = 20
DEFAULT_MAX_CHARS_PER_DOC = 1800

MIN_EXCERPT_CHARS = 220
MIN_SUMMARY_CHARS = 120
MIN_EVIDENCE_CHARS = 80

EVIDENCE_MIN_LINE_CHARS = 24
EVIDENCE_MAX_CHARS = 220
EVIDENCE_SNIPPETS_PER_DOC = 2

MAX_KEY_FACTS = 10
MAX_EXPERIENCE_BULLETS = 8
MAX_SOURCE_REFS = 10
BULLET_SUMMARY_CHARS = 180
TOPIC_SUMMARY_CHARS = 550
TRIMMED_TOPIC_SUMMARY_CHARS = 200

INVALID_TOKEN_MESSAGE = "Invalid continuationToken for collect_context action"
INVALID_TOKEN_SUGGESTION = (
    "Use the continuation_token value returned by a previous collect_context call."
)
MISSING_TOPIC_MESSAGE = "topic parameter is required for collect_context when scope='topic'"
MISSING_TOPIC_SUGGESTION = (
    'Provide a topic, e.g. { action: "collect_context", topic: "next.js", scope: "topic" }'
)
EXPAND_HINT = "If has_more is true, call collect_context again with continuationToken."
EMPTY_EXPAND_HINT = "If more context is needed, rerun collect_context with broader scope or topic."

LIST_LINE = re.compile(r"^([-*]|\d+[.)])\s+")
HEADER_LINE = re.compile(r"^#{1,6}\s+")
BULLET_MARKER = re.compile(r"^[-*]\s+")
MARKDOWN_EXTENSION = re.compile(r"\.mdx?$", re.IGNORECASE)


# Document distillation


def pick_evidence_snippets(content: str, max_snippets: int = EVIDENCE_SNIPPETS_PER_DOC) -> list[str]:
    """
    Pick the most informative lines of a document.

    List items come first, then headers, then plain lines; lines shorter than
    24 characters are ignored.

    Args:
        content: Document text (frontmatter is stripped if present)
        max_snippets: Number of snippets to return

    Returns:
        Deduplicated snippets without list/header markers, each at most 220 chars
    """
    lines = [line.strip() for line in strip_frontmatter_block(content).split("\n")]
    lines = [line for line in lines if len(line) >= EVIDENCE_MIN_LINE_CHARS]

    list_lines = [line for line in lines if LIST_LINE.match(line)]
    header_lines = [line for line in lines if HEADER_LINE.match(line)]
    plain_lines = [
        line for line in lines if not LIST_LINE.match(line) and not HEADER_LINE.match(line)
    ]

    unique = dict.fromkeys(list_lines + header_lines + plain_lines)
    snippets = [
        normalize_whitespace(BULLET_MARKER.sub("", HEADER_LINE.sub("", line))) for line in unique
    ]
    return [trim_with_ellipsis(snippet, EVIDENCE_MAX_CHARS) for snippet in snippets[:max_snippets]]


def infer_relevance(title: str, tags: list[str], excerpt: str, topic: str | None) -> Relevance:
    """Topic in title or tags → high, in excerpt → medium, else low. No topic → medium."""
    if not topic:
        return Relevance.MEDIUM

    needle = topic.lower()
    if needle in title.lower() or any(needle in tag.lower() for tag in tags):
        return Relevance.HIGH
    if needle in excerpt.lower():
        return Relevance.MEDIUM
    return Relevance.LOW


def build_collect_document(
    document: EnrichedDocument, max_chars_per_doc: int, topic: str | None
) -> CollectContextDocument:
    """
    Distill an enriched document.

    Args:
        document: Document read with stats, backlinks and content hash
        max_chars_per_doc: Excerpt length
        topic: Topic used for relevance

    Returns:
        CollectContextDocument
    """
    filename = os.path.basename(document.file_path) or document.file_path
    title = document.frontmatter.title or MARKDOWN_EXTENSION.sub("", filename)
    tags = list(document.frontmatter.tags or [])

    source_content = strip_frontmatter_block(document.content)
    excerpt = trim_with_ellipsis(normalize_whitespace(source_content), max_chars_per_doc)
    evidence = pick_evidence_snippets(source_content)
    summary = (
        " ".join(evidence).strip()
        or trim_with_ellipsis(excerpt, MIN_EXCERPT_CHARS)
        or title
    )

    if document.stats is not None:
        stats = CollectedDocumentStats(
            content_length=document.stats.content_length,
            word_count=document.stats.word_count,
            has_content=document.stats.has_content,
        )
    else:
        stats = CollectedDocumentStats(
            content_length=len(source_content),
            word_count=0,
            has_content=bool(source_content.strip()),
        )

    return CollectContextDocument(
        filename=filename,
        full_path=document.file_path,
        title=title,
        tags=tags,
        doc_hash=document.content_hash or compute_content_hash(source_content),
        summary=summary,
        excerpt=excerpt,
        evidence_snippets=evidence,
        relevance=infer_relevance(title, tags, excerpt, topic),
        stats=stats,
        backlinks_count=len(document.backlinks or []),
        truncated=stats.content_length > len(excerpt),
    )


def build_memory_packet(topic: str | None, documents: list[CollectContextDocument]) -> MemoryPacket:
    """
    Synthesize a memory packet from collected documents.

    Confidence starts at 0.25 with no documents, otherwise
    min(0.9, 0.45 + 0.08 * n), loses up to 0.2 for truncated documents, and
    is clamped to [0.1, 0.95].

    Args:
        topic: Collection topic
        documents: Collected documents in scan order

    Returns:
        MemoryPacket
    """
    key_facts = [
        f"{doc.title}: {snippet}" for doc in documents for snippet in doc.evidence_snippets
    ][:MAX_KEY_FACTS]
    experience_bullets = [
        f"{doc.title}: {trim_with_ellipsis(doc.summary, BULLET_SUMMARY_CHARS)}" for doc in documents
    ][:MAX_EXPERIENCE_BULLETS]
    source_refs = [
        SourceRef(
            file_path=doc.full_path,
            title=doc.title,
            relevance=doc.relevance,
            evidence_snippets=doc.evidence_snippets[:EVIDENCE_SNIPPETS_PER_DOC],
        )
        for doc in documents[:MAX_SOURCE_REFS]
    ]

    if not documents:
        topic_summary = (
            f'No evidence was collected for topic "{topic}".'
            if topic
            else "No documents were collected."
        )
    else:
        topic_summary = trim_with_ellipsis(
            " ".join(f"{doc.title}: {doc.summary}" for doc in documents[:3]),
            TOPIC_SUMMARY_CHARS,
        )

    open_questions = []
    if not documents:
        open_questions.append(
            f'Should we widen the query beyond "{topic}"?'
            if topic
            else "Should we provide a narrower topic for better precision?"
        )
    if any(doc.truncated for doc in documents):
        open_questions.append(
            "Some excerpts were truncated. Do we need full reads for high-priority notes?"
        )
    if 0 < len(documents) < 3:
        open_questions.append(
            "Do we need additional sources before using this as final memory context?"
        )

    if documents:
        truncation_ratio = sum(doc.truncated for doc in documents) / len(documents)
        base_confidence = min(0.9, 0.45 + len(documents) * 0.08)
    else:
        truncation_ratio = 1.0
        base_confidence = 0.25
    confidence = round(max(0.1, min(0.95, base_confidence - truncation_ratio * 0.2)), 2)

    return MemoryPacket(
        topic_summary=topic_summary,
        key_facts=key_facts,
        experience_bullets=experience_bullets,
        source_refs=source_refs,
        open_questions=open_questions,
        confidence=confidence,
    )


# Budget guardrails


def reduce_backlinks_for_budget(documents: list[CollectContextDocument]) -> bool:
    """Step backlink counts down one tier (10, 5, 3, 0). Returns True if any changed."""
    changed = False
    for doc in documents:
        if doc.backlinks_count <= 0:
            continue
        if doc.backlinks_count > 10:
            next_count = 10
        elif doc.backlinks_count > 5:
            next_count = 5
        elif doc.backlinks_count > 3:
            next_count = 3
        else:
            next_count = 0
        if next_count != doc.backlinks_count:
            doc.backlinks_count = next_count
            changed = True
    return changed


def _shrunk(value: str, factor: float, floor: int) -> str:
    if len(value) <= floor:
        return value
    return trim_with_ellipsis(value, max(floor, int(len(value) * factor)))


def shrink_documents_for_budget(documents: list[CollectContextDocument]) -> bool:
    """
    Shorten excerpt (x0.8, floor 220), summary (x0.85, floor 120) and
    evidence snippets (x0.8, floor 80) of every document.

    Returns:
        True if any text changed; False once everything is at its floor
    """
    changed = False
    for doc in documents:
        excerpt = _shrunk(doc.excerpt, 0.8, MIN_EXCERPT_CHARS)
        if excerpt != doc.excerpt:
            doc.excerpt = excerpt
            doc.truncated = True
            changed = True

        summary = _shrunk(doc.summary, 0.85, MIN_SUMMARY_CHARS)
        if summary != doc.summary:
            doc.summary = summary
            doc.truncated = True
            changed = True

        evidence = [_shrunk(snippet, 0.8, MIN_EVIDENCE_CHARS) for snippet in doc.evidence_snippets]
        if evidence != doc.evidence_snippets:
            doc.evidence_snippets = evidence
            doc.truncated = True
            changed = True
    return changed


# Cache keys


def compute_documents_hash(documents: list[CollectContextDocument]) -> str:
    """SHA256 over the ordered (fullPath, doc_hash) pairs."""
    encoded = json.dumps(
        [{"fullPath": doc.full_path, "doc_hash": doc.doc_hash} for doc in documents],
        ensure_ascii=False,
        separators=(",", ":"),
    )
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


class CollectPlan(BaseModel):
    """Effective collect_context parameters after token and defaults are applied."""

    scope: CollectScope
    topic: str | None = None
    start_cursor: int = Field(default=0, ge=0)
    max_docs: int = Field(default=DEFAULT_MAX_DOCS, ge=1)
    max_chars_per_doc: int = Field(default=DEFAULT_MAX_CHARS_PER_DOC, ge=200)
    memory_mode: MemoryMode = MemoryMode.RESPONSE_ONLY
    mode: CompressionMode = CompressionMode.BALANCED
    max_output_chars: int | None = None

    @classmethod
    def from_params(cls, params: VaultQueryParams) -> "CollectPlan":
        """
        Merge tool parameters with a continuation token.

        Token values take precedence over parameters.

        Raises:
            InvalidContinuationTokenError: If the token cannot be decoded
        """
        token = (
            decode_continuation_token(params.continuation_token)
            if params.continuation_token
            else None
        )
        requested_topic = (params.topic or "").strip() or None
        mode = params.mode

        if token is None:
            return cls(
                scope=params.scope or CollectScope.TOPIC,
                topic=requested_topic,
                max_docs=params.max_docs or DEFAULT_MAX_DOCS,
                max_chars_per_doc=params.max_chars_per_doc or DEFAULT_MAX_CHARS_PER_DOC,
                memory_mode=params.memory_mode or MemoryMode.RESPONSE_ONLY,
                mode=mode,
                max_output_chars=resolve_max_output_chars(
                    "collect_context", mode, params.max_output_chars
                ),
            )

        return cls(
            scope=token.scope,
            topic=token.topic if token.topic is not None else requested_topic,
            start_cursor=token.cursor,
            max_docs=token.max_docs,
            max_chars_per_doc=token.max_chars_per_doc,
            memory_mode=token.memory_mode,
            mode=mode,
            max_output_chars=resolve_max_output_chars(
                "collect_context", mode, params.max_output_chars
            ),
        )

    def cache_key(self, doc_hash: str, schema_version: str) -> str:
        """Cache key for this plan over a given document set."""
        return json.dumps(
            {
                "scope": self.scope.value,
                "topic": self.topic,
                "doc_hash": doc_hash,
                "schema_version": schema_version,
                "mode": self.memory_mode.value,
                "start_cursor": self.start_cursor,
                "max_docs": self.max_docs,
                "max_chars_per_doc": self.max_chars_per_doc,
            },
            ensure_ascii=False,
            separators=(",", ":"),
        )

    def continuation_token(self, cursor: int) -> str:
        """Encoded token resuming this plan at a cursor."""
        return encode_continuation_token(
            ContinuationToken(
                cursor=cursor,
                scope=self.scope,
                topic=self.topic,
                max_docs=self.max_docs,
                max_chars_per_doc=self.max_chars_per_doc,
                memory_mode=self.memory_mode,
            )
        )


class ContextCollector:
    """
    Runs collect_context against one vault.

    Usage:
        collector = ContextCollector(vault_manager)
        response = await collector.collect(
            VaultQueryParams(action="collect_context", topic="next.js", max_output_chars=3000)
        )
    """

    def __init__(
        self,
        vault_manager: VaultManager,
        cache: CollectContextCache | None = None,
        snapshot_store: MemorySnapshotStore | None = None,
        schema_version: str = DEFAULT_SCHEMA_VERSION,
    ):
        """
        Initialize collector.

        Args:
            vault_manager: Vault to collect from
            cache: Payload cache (default: a fresh 200-entry cache)
            snapshot_store: Snapshot note writer (default: the standard note path)
            schema_version: Snapshot schema identifier used in cache keys
        """
        self.vault_manager = vault_manager
        self.cache = cache or CollectContextCache()
        self.snapshot_store = snapshot_store or MemorySnapshotStore(
            vault_manager, schema_version=schema_version
        )
        self.schema_version = schema_version

    async def collect(self, params: VaultQueryParams) -> ToolResponse:
        """
        Collect context for a topic (or the whole vault).

        Args:
            params: Tool parameters

        Returns:
            Success response with a collect_context payload, or an error
            response for an invalid continuation token or a missing topic
        """
        await self.vault_manager.initialize()

        try:
            plan = CollectPlan.from_params(params)
        except InvalidContinuationTokenError as e:
            logger.warning(f"Rejected continuation token: {e.message}")
            return ToolResponse.error(INVALID_TOKEN_MESSAGE, INVALID_TOKEN_SUGGESTION)

        if plan.scope == CollectScope.TOPIC and not plan.topic:
            return ToolResponse.error(MISSING_TOPIC_MESSAGE, MISSING_TOPIC_SUGGESTION)

        all_documents = await self.vault_manager.get_all_documents()
        if plan.scope == CollectScope.ALL:
            candidates = list(all_documents)
        else:
            candidates = await self.vault_manager.search_documents(plan.topic or "")
        candidates.sort(key=lambda doc: doc.file_path)

        if not candidates or plan.start_cursor >= len(candidates):
            return await self._collect_empty(plan, len(candidates), len(all_documents))

        documents, positions, next_cursor, source_chars, clamped = await self._scan(
            plan, candidates, len(all_documents)
        )

        matched_total = len(candidates)
        has_more = next_cursor < matched_total
        continuation_token = plan.continuation_token(next_cursor) if has_more else None
        doc_hash = compute_documents_hash(documents)
        cache_key = plan.cache_key(doc_hash, self.schema_version)

        async def build() -> CollectContextPayload:
            return self._build_payload(
                plan,
                documents,
                matched_total=matched_total,
                total_in_vault=len(all_documents),
                next_cursor=next_cursor,
                continuation_token=continuation_token,
                cache=CacheInfo(
                    key=cache_key,
                    hit=False,
                    schema_version=self.schema_version,
                    topic=plan.topic,
                    doc_hash=doc_hash,
                    mode=plan.memory_mode,
                ),
            )

        payload, hit = await self.cache.get_or_create(cache_key, build)
        if hit and payload.cache is not None:
            payload.cache.hit = True

        if plan.memory_mode.writes_note:
            payload.memory_write = await self.snapshot_store.write(payload)

        if plan.max_output_chars is not None:
            clamped = self._trim_to_budget(payload, plan, positions, matched_total) or clamped

        logger.info(
            f"collect_context scope={plan.scope.value} topic={plan.topic!r}: "
            f"{len(payload.documents)} docs from cursor {plan.start_cursor}/{matched_total}, "
            f"cache {'hit' if hit else 'miss'}"
        )

        truncated = (
            payload.batch.has_more
            or any(doc.truncated for doc in documents)
            or any(doc.truncated for doc in payload.documents)
            or clamped
        )
        return ToolResponse.success(
            finalize_with_compression(
                payload,
                mode=plan.mode,
                source_chars=source_chars,
                max_output_chars=plan.max_output_chars,
                truncated=truncated,
                expand_hint=EXPAND_HINT,
            )
        )

    async def _collect_empty(
        self, plan: CollectPlan, matched_total: int, total_in_vault: int
    ) -> ToolResponse:
        doc_hash = compute_documents_hash([])
        cache_key = plan.cache_key(doc_hash, self.schema_version)

        async def build() -> CollectContextPayload:
            return self._build_payload(
                plan,
                [],
                matched_total=matched_total,
                total_in_vault=total_in_vault,
                next_cursor=plan.start_cursor,
                continuation_token=None,
                cache=CacheInfo(
                    key=cache_key,
                    hit=False,
                    schema_version=self.schema_version,
                    topic=plan.topic,
                    doc_hash=doc_hash,
                    mode=plan.memory_mode,
                ),
            )

        payload, hit = await self.cache.get_or_create(cache_key, build)
        if hit and payload.cache is not None:
            payload.cache.hit = True

        if plan.memory_mode.writes_note:
            payload.memory_write = await self.snapshot_store.write(payload)

        logger.info(f"collect_context found no candidates for topic={plan.topic!r}")
        return ToolResponse.success(
            finalize_with_compression(
                payload,
                mode=plan.mode,
                source_chars=0,
                max_output_chars=plan.max_output_chars,
                truncated=False,
                expand_hint=EMPTY_EXPAND_HINT,
            )
        )

    async def _scan(
        self, plan: CollectPlan, candidates: list[DocumentIndex], total_in_vault: int
    ) -> tuple[list[CollectContextDocument], list[int], int, int, bool]:
        """
        Distill candidates from the cursor until max_docs or the budget is hit.

        Returns:
            (documents, candidate index of each document, next cursor,
            source chars, whether the budget forced any reduction)
        """
        documents: list[CollectContextDocument] = []
        positions: list[int] = []
        source_chars = 0
        clamped = False
        cursor = plan.start_cursor

        while cursor < len(candidates) and len(documents) < plan.max_docs:
            position = cursor
            cursor += 1

            enriched = await self.vault_manager.get_document_info(
                candidates[position].file_path,
                include_stats=True,
                include_backlinks=True,
                include_content_hash=True,
                max_content_preview=plan.max_chars_per_doc,
            )
            if enriched is None:
                continue

            document = build_collect_document(enriched, plan.max_chars_per_doc, plan.topic)
            documents.append(document)
            positions.append(position)
            source_chars += document.stats.content_length

            if plan.max_output_chars is None:
                continue

            def provisional_size() -> int:
                return json_char_length(
                    self._build_payload(
                        plan,
                        documents,
                        matched_total=len(candidates),
                        total_in_vault=total_in_vault,
                        next_cursor=cursor,
                        continuation_token=None,
                    )
                )

            if provisional_size() <= plan.max_output_chars:
                continue

            clamped = True
            reduce_backlinks_for_budget(documents)
            while provisional_size() > plan.max_output_chars:
                if not shrink_documents_for_budget(documents):
                    break

            if provisional_size() > plan.max_output_chars:
                if len(documents) > 1:
                    removed = documents.pop()
                    positions.pop()
                    source_chars -= removed.stats.content_length
                    cursor -= 1
                break

        return documents, positions, cursor, source_chars, clamped

    def _build_payload(
        self,
        plan: CollectPlan,
        documents: list[CollectContextDocument],
        matched_total: int,
        total_in_vault: int,
        next_cursor: int,
        continuation_token: str | None,
        cache: CacheInfo | None = None,
    ) -> CollectContextPayload:
        return CollectContextPayload(
            scope=plan.scope,
            topic=plan.topic,
            matched_total=matched_total,
            total_in_vault=total_in_vault,
            documents=list(documents),
            memory_packet=build_memory_packet(plan.topic, documents),
            memory_mode=plan.memory_mode,
            memory_write=MemoryWrite(requested=False, status=MemoryWriteStatus.NOT_REQUESTED),
            cache=cache,
            batch=BatchInfo(
                start_cursor=plan.start_cursor,
                processed_docs=len(documents),
                consumed_candidates=next_cursor - plan.start_cursor,
                max_docs=plan.max_docs,
                max_chars_per_doc=plan.max_chars_per_doc,
                has_more=next_cursor < matched_total,
                continuation_token=continuation_token,
            ),
        )

    def _trim_to_budget(
        self,
        payload: CollectContextPayload,
        plan: CollectPlan,
        positions: list[int],
        matched_total: int,
    ) -> bool:
        """
        Shrink an assembled payload in place until it fits the output budget.

        Order: backlink tier, text shrink, trailing documents (keeping one and
        re-issuing the continuation token), then memory packet lists and the
        topic summary.

        Returns:
            True if anything was cut
        """
        limit = plan.max_output_chars
        if limit is None:
            return False

        def over_budget() -> bool:
            return json_char_length(payload) > limit

        clamped = False
        if over_budget() and reduce_backlinks_for_budget(payload.documents):
            clamped = True

        while over_budget():
            if not shrink_documents_for_budget(payload.documents):
                break
            clamped = True

        dropped = False
        while over_budget() and len(payload.documents) > 1:
            payload.documents.pop()
            dropped = True
            clamped = True

        if dropped:
            next_cursor = positions[len(payload.documents)]
            payload.batch.processed_docs = len(payload.documents)
            payload.batch.consumed_candidates = next_cursor - plan.start_cursor
            payload.batch.has_more = next_cursor < matched_total
            payload.batch.continuation_token = plan.continuation_token(next_cursor)

        packet = payload.memory_packet
        for items, floor in (
            (packet.key_facts, 3),
            (packet.experience_bullets, 3),
            (packet.source_refs, 2),
            (packet.open_questions, 1),
        ):
            while over_budget() and len(items) > floor:
                items.pop()
                clamped = True

        if over_budget() and len(packet.topic_summary) > TRIMMED_TOPIC_SUMMARY_CHARS:
            packet.topic_summary = trim_with_ellipsis(
                packet.topic_summary, TRIMMED_TOPIC_SUMMARY_CHARS
            )
            clamped = True

        return clamped
