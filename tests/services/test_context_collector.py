"""
Tests for the collect_context pipeline.

Tests cover:
1. Document distillation helpers (evidence, relevance, memory packet)
2. Budget guardrail helpers
3. Parameter validation (topic, continuation token)
4. Pagination with continuation tokens
5. Cache hits and content-hash invalidation
6. Output budget guarantees
7. Snapshot writes
"""

from unittest.mock import AsyncMock

import pytest

from vault_context.models.context import (
    CollectContextDocument,
    CollectContextResponse,
    CollectedDocumentStats,
    MemoryMode,
    Relevance,
)
from vault_context.models.requests import VaultQueryParams
from vault_context.models.responses import ResponseKind
from vault_context.services.context_collector import (
    EMPTY_EXPAND_HINT,
    EXPAND_HINT,
    INVALID_TOKEN_MESSAGE,
    MISSING_TOPIC_MESSAGE,
    ContextCollector,
    build_memory_packet,
    compute_documents_hash,
    infer_relevance,
    pick_evidence_snippets,
    reduce_backlinks_for_budget,
    shrink_documents_for_budget,
)
from vault_context.services.memory_snapshot import MemorySnapshotStore


def make_document(
    title: str = "Doc",
    excerpt: str = "excerpt",
    summary: str = "summary",
    evidence: list[str] | None = None,
    backlinks_count: int = 0,
    truncated: bool = False,
) -> CollectContextDocument:
    return CollectContextDocument(
        filename=f"{title}.md",
        full_path=f"/vault/{title}.md",
        title=title,
        tags=[],
        doc_hash="0" * 64,
        summary=summary,
        excerpt=excerpt,
        evidence_snippets=evidence or [],
        relevance=Relevance.MEDIUM,
        stats=CollectedDocumentStats(content_length=100, word_count=10, has_content=True),
        backlinks_count=backlinks_count,
        truncated=truncated,
    )


def collect_params(**kwargs) -> VaultQueryParams:
    return VaultQueryParams(action="collect_context", **kwargs)


def basenames(payload: dict) -> list[str]:
    return [document["filename"] for document in payload["documents"]]


class TestEvidenceSnippets:
    """Evidence line selection."""

    def test_list_then_header_then_plain(self):
        content = (
            "An introductory paragraph that is long enough.\n"
            "# A header line that is long enough\n"
            "- a list item that is long enough to count\n"
            "short\n"
        )

        snippets = pick_evidence_snippets(content)

        assert snippets == [
            "a list item that is long enough to count",
            "A header line that is long enough",
        ]

    def test_short_lines_ignored(self):
        assert pick_evidence_snippets("- tiny\n# small\nshort text") == []

    def test_duplicates_removed(self):
        line = "- the same list item repeated twice"
        assert pick_evidence_snippets(f"{line}\n{line}\n") == ["the same list item repeated twice"]

    def test_long_snippet_trimmed(self):
        snippets = pick_evidence_snippets("- " + "x" * 400)
        assert len(snippets[0]) == 223
        assert snippets[0].endswith("...")

    def test_frontmatter_skipped(self):
        content = "---\ntitle: A title that is long enough to count\n---\n- body list item long enough here"
        assert pick_evidence_snippets(content) == ["body list item long enough here"]


class TestRelevance:
    """Topic relevance classes."""

    def test_title_match_is_high(self):
        assert infer_relevance("Next.js Guide", [], "", "next.js") == Relevance.HIGH

    def test_tag_match_is_high(self):
        assert infer_relevance("Guide", ["frontend-next.js"], "", "next.js") == Relevance.HIGH

    def test_excerpt_match_is_medium(self):
        assert infer_relevance("Guide", [], "we use Next.js here", "next.js") == Relevance.MEDIUM

    def test_no_match_is_low(self):
        assert infer_relevance("Guide", ["x"], "nothing", "next.js") == Relevance.LOW

    def test_no_topic_is_medium(self):
        assert infer_relevance("Guide", [], "", None) == Relevance.MEDIUM


class TestMemoryPacket:
    """Memory packet synthesis."""

    def test_empty_with_topic(self):
        packet = build_memory_packet("rust", [])

        assert packet.topic_summary == 'No evidence was collected for topic "rust".'
        assert packet.open_questions == ['Should we widen the query beyond "rust"?']
        assert packet.confidence == 0.1
        assert packet.key_facts == []

    def test_empty_without_topic(self):
        packet = build_memory_packet(None, [])
        assert packet.topic_summary == "No documents were collected."

    def test_two_documents(self):
        documents = [
            make_document("Alpha", summary="alpha summary", evidence=["alpha fact"]),
            make_document("Beta", summary="beta summary", evidence=["beta fact one", "beta fact two"]),
        ]

        packet = build_memory_packet("topic", documents)

        assert packet.key_facts == ["Alpha: alpha fact", "Beta: beta fact one", "Beta: beta fact two"]
        assert packet.experience_bullets == ["Alpha: alpha summary", "Beta: beta summary"]
        assert [ref.title for ref in packet.source_refs] == ["Alpha", "Beta"]
        assert packet.topic_summary == "Alpha: alpha summary Beta: beta summary"
        assert packet.confidence == 0.61
        assert any("additional sources" in question for question in packet.open_questions)

    def test_truncation_lowers_confidence(self):
        documents = [make_document(str(index), truncated=True) for index in range(4)]

        packet = build_memory_packet("topic", documents)

        assert packet.confidence == round(0.45 + 4 * 0.08 - 0.2, 2)
        assert any("truncated" in question for question in packet.open_questions)

    def test_caps(self):
        documents = [
            make_document(f"D{index}", evidence=["one", "two"]) for index in range(12)
        ]

        packet = build_memory_packet("topic", documents)

        assert len(packet.key_facts) == 10
        assert len(packet.experience_bullets) == 8
        assert len(packet.source_refs) == 10
        assert 0.1 <= packet.confidence <= 0.95


class TestBudgetHelpers:
    """Backlink tiers and text shrinking."""

    def test_backlink_tiers(self):
        documents = [make_document(backlinks_count=count) for count in (12, 7, 4, 2, 0)]

        assert reduce_backlinks_for_budget(documents) is True
        assert [doc.backlinks_count for doc in documents] == [10, 5, 3, 0, 0]

    def test_backlinks_already_zero(self):
        assert reduce_backlinks_for_budget([make_document(backlinks_count=0)]) is False

    def test_shrink_converges_at_floors(self):
        """Repeated shrinking stops changing once every field is at its floor."""
        document = make_document(
            excerpt="e" * 1000, summary="s" * 500, evidence=["v" * 300]
        )

        assert shrink_documents_for_budget([document]) is True
        assert document.truncated is True
        assert len(document.excerpt) == 803

        passes = 0
        while shrink_documents_for_budget([document]):
            passes += 1
            assert passes < 50

        assert len(document.excerpt) <= 223
        assert len(document.summary) <= 123
        assert len(document.evidence_snippets[0]) <= 83

    def test_short_fields_unchanged(self):
        document = make_document()
        assert shrink_documents_for_budget([document]) is False
        assert document.truncated is False

    def test_documents_hash_depends_on_order_and_content(self):
        first = make_document("A")
        second = make_document("B")

        assert compute_documents_hash([first, second]) != compute_documents_hash([second, first])
        assert compute_documents_hash([]) == compute_documents_hash([])


class TestValidation:
    """Parameter errors."""

    @pytest.mark.asyncio
    async def test_topic_required_for_topic_scope(self, demo_manager):
        response = await ContextCollector(demo_manager).collect(collect_params())

        assert response.kind == ResponseKind.ERROR
        assert response.payload["error"] == MISSING_TOPIC_MESSAGE
        assert "suggestion" in response.payload

    @pytest.mark.asyncio
    async def test_blank_topic_rejected(self, demo_manager):
        response = await ContextCollector(demo_manager).collect(collect_params(topic="   "))
        assert response.payload["error"] == MISSING_TOPIC_MESSAGE

    @pytest.mark.asyncio
    async def test_invalid_token(self, demo_manager):
        response = await ContextCollector(demo_manager).collect(
            collect_params(continuation_token="garbage!!")
        )

        assert response.kind == ResponseKind.ERROR
        assert response.payload["error"] == INVALID_TOKEN_MESSAGE


class TestCollect:
    """End-to-end collection over the demo vault."""

    @pytest.mark.asyncio
    async def test_topic_collection(self, demo_manager):
        response = await ContextCollector(demo_manager).collect(
            collect_params(topic="fixture", compression_mode="none")
        )

        assert response.kind == ResponseKind.SUCCESS
        payload = response.payload
        CollectContextResponse.model_validate(payload)

        assert basenames(payload) == ["Meeting Notes.md", "Project Testing Strategy.md"]
        assert payload["matched_total"] == 2
        assert payload["total_in_vault"] == 5
        relevance = {doc["title"]: doc["relevance"] for doc in payload["documents"]}
        assert relevance == {"Meeting Notes": "medium", "Project Testing Strategy": "high"}
        strategy = payload["documents"][1]
        assert strategy["backlinks_count"] == 2
        assert strategy["evidence_snippets"][0].startswith("Unit tests cover")
        assert payload["memory_write"] == {
            "requested": False,
            "status": "not_requested",
            "note_path": None,
            "generated_at": None,
            "source_hash": None,
            "reason": None,
        }
        assert payload["cache"]["hit"] is False
        assert payload["cache"]["mode"] == "response_only"
        assert payload["batch"]["has_more"] is False
        assert payload["batch"]["continuation_token"] is None
        assert payload["compression"]["mode"] == "none"
        assert payload["compression"]["max_output_chars"] is None
        assert payload["compression"]["expand_hint"] == EXPAND_HINT

    @pytest.mark.asyncio
    async def test_scope_all_without_topic(self, demo_manager):
        response = await ContextCollector(demo_manager).collect(
            collect_params(scope="all", compression_mode="none")
        )

        payload = response.payload
        assert payload["topic"] is None
        assert len(payload["documents"]) == 5
        paths = [doc["fullPath"] for doc in payload["documents"]]
        assert paths == sorted(paths)

    @pytest.mark.asyncio
    async def test_pagination(self, demo_manager):
        """Following continuation tokens visits every candidate exactly once."""
        collector = ContextCollector(demo_manager)
        seen: list[str] = []

        response = await collector.collect(
            collect_params(scope="all", max_docs=2, compression_mode="none")
        )
        cursors = []
        while True:
            payload = response.payload
            cursors.append(payload["batch"]["start_cursor"])
            seen.extend(doc["fullPath"] for doc in payload["documents"])
            token = payload["batch"]["continuation_token"]
            if not payload["batch"]["has_more"]:
                assert token is None
                break
            assert payload["compression"]["truncated"] is True
            response = await collector.collect(
                collect_params(continuation_token=token, compression_mode="none")
            )

        assert cursors == [0, 2, 4]
        assert seen == sorted(seen)
        assert len(seen) == 5

    @pytest.mark.asyncio
    async def test_no_matches(self, demo_manager):
        response = await ContextCollector(demo_manager).collect(
            collect_params(topic="zzzunmatched")
        )

        payload = response.payload
        assert payload["documents"] == []
        assert payload["matched_total"] == 0
        assert payload["batch"]["has_more"] is False
        assert payload["memory_packet"]["topicSummary"].startswith("No evidence")
        assert payload["compression"]["truncated"] is False
        assert payload["compression"]["source_chars"] == 0
        assert payload["compression"]["expand_hint"] == EMPTY_EXPAND_HINT


class TestCache:
    """Content-hash keyed caching."""

    @pytest.mark.asyncio
    async def test_repeat_is_hit(self, demo_manager):
        collector = ContextCollector(demo_manager)
        params = collect_params(topic="fixture")

        first = await collector.collect(params)
        second = await collector.collect(params)

        assert first.payload["cache"]["hit"] is False
        assert second.payload["cache"]["hit"] is True
        assert first.payload["cache"]["doc_hash"] == second.payload["cache"]["doc_hash"]
        assert first.payload["cache"]["key"] == second.payload["cache"]["key"]

    @pytest.mark.asyncio
    async def test_content_change_misses(self, demo_manager, write_note):
        collector = ContextCollector(demo_manager)
        params = collect_params(topic="fixture")
        first = await collector.collect(params)

        write_note(
            "Meeting Notes.md",
            "---\ntitle: Meeting Notes\n---\n\n- The fixture vault layout changed entirely this week.\n",
        )
        await demo_manager.refresh()
        second = await collector.collect(params)

        assert second.payload["cache"]["hit"] is False
        assert second.payload["cache"]["doc_hash"] != first.payload["cache"]["doc_hash"]

    @pytest.mark.asyncio
    async def test_hit_flag_survives_memory_write(self, demo_manager):
        """A cache hit is still reported as a hit when the snapshot is written."""
        store = MemorySnapshotStore(demo_manager)
        store.vault_manager = AsyncMock(wraps=demo_manager)
        store.vault_manager.write_raw_document = AsyncMock(return_value=None)
        collector = ContextCollector(demo_manager, snapshot_store=store)
        params = collect_params(topic="fixture", memory_mode=MemoryMode.BOTH)

        await collector.collect(params)
        second = await collector.collect(params)

        assert second.payload["cache"]["hit"] is True
        assert second.payload["memory_write"]["status"] == "written"
        assert store.vault_manager.write_raw_document.await_count == 2


class TestBudget:
    """Output budget guarantees."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("budget", [500, 1500, 3000, 12000])
    async def test_within_budget_or_single_document(self, demo_manager, budget):
        response = await ContextCollector(demo_manager).collect(
            collect_params(scope="all", max_output_chars=budget)
        )

        payload = response.payload
        compression = payload["compression"]
        documents = payload["documents"]
        assert compression["max_output_chars"] == budget
        assert compression["output_chars"] <= budget or (
            len(documents) == 1 and compression["truncated"] is True
        )
        if payload["batch"]["processed_docs"] < payload["matched_total"]:
            assert payload["batch"]["has_more"] is True
            assert payload["batch"]["continuation_token"] is not None
            assert compression["truncated"] is True

    @pytest.mark.asyncio
    async def test_tight_budget_keeps_one_document(self, demo_manager):
        response = await ContextCollector(demo_manager).collect(
            collect_params(scope="all", max_output_chars=500)
        )

        payload = response.payload
        assert len(payload["documents"]) == 1
        assert payload["batch"]["has_more"] is True
        assert payload["compression"]["truncated"] is True

    @pytest.mark.asyncio
    async def test_token_resumes_after_last_returned_document(self, demo_manager):
        """The next batch starts right after the last document returned."""
        collector = ContextCollector(demo_manager)
        first = await collector.collect(collect_params(scope="all", max_output_chars=1500))
        token = first.payload["batch"]["continuation_token"]
        if token is None:
            pytest.skip("all documents fit the budget")

        second = await collector.collect(
            collect_params(continuation_token=token, max_output_chars=1500)
        )

        first_paths = [doc["fullPath"] for doc in first.payload["documents"]]
        second_paths = [doc["fullPath"] for doc in second.payload["documents"]]
        assert second.payload["batch"]["start_cursor"] == first.payload["batch"]["start_cursor"] + (
            first.payload["batch"]["consumed_candidates"]
        )
        assert not set(first_paths) & set(second_paths)
        assert second_paths and second_paths[0] > first_paths[-1]


class TestSnapshotWrite:
    """Persisting the memory packet."""

    @pytest.mark.asyncio
    async def test_vault_note_written(self, demo_manager):
        collector = ContextCollector(demo_manager)

        response = await collector.collect(
            collect_params(topic="fixture", memory_mode="vault_note")
        )

        memory_write = response.payload["memory_write"]
        assert memory_write["requested"] is True
        assert memory_write["status"] == "written"
        assert memory_write["note_path"] == "memory/context_memory_snapshot.v1.md"
        assert len(memory_write["source_hash"]) == 64
        note = demo_manager.vault_path / "memory" / "context_memory_snapshot.v1.md"
        text = note.read_text(encoding="utf-8")
        assert text.startswith("# Context Memory Snapshot v1")
        assert "## Canonical JSON" in text

    @pytest.mark.asyncio
    async def test_write_failure_reported_in_band(self, demo_manager):
        store = MemorySnapshotStore(demo_manager)
        store.vault_manager = AsyncMock(wraps=demo_manager)
        store.vault_manager.write_raw_document = AsyncMock(side_effect=OSError("disk full"))
        collector = ContextCollector(demo_manager, snapshot_store=store)

        response = await collector.collect(collect_params(topic="fixture", memory_mode="both"))

        assert response.kind == ResponseKind.SUCCESS
        memory_write = response.payload["memory_write"]
        assert memory_write["status"] == "failed"
        assert memory_write["reason"] == "disk full"
