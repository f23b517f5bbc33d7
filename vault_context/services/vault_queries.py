"""
Query actions of the vault tool: search, read, list_all and stats.

Each action shapes its result for an LLM context window: compression mode
presets pick how many documents and how much text to return, and a
``max_output_chars`` budget clamps the final payload.
"""

import os
from typing import Any

from vault_context.core.parsing import load_frontmatter_data
from vault_context.core.vault import VaultManager
from vault_context.models.context import CompressionMode
from vault_context.models.document import DocumentIndex, EnrichedDocument
from vault_context.models.requests import VaultQueryParams
from vault_context.models.responses import ToolResponse
from vault_context.services.compression import (
    READ_DEFAULT_BACKLINK_LIMIT,
    READ_DEFAULT_CONTENT_MAX_CHARS,
    SEARCH_DEFAULT_EXCERPT,
    SEARCH_DEFAULT_LIMIT,
    finalize_with_compression,
    json_char_length,
    resolve_max_output_chars,
    trim_with_ellipsis,
)
from vault_context.utils.logger import get_logger

logger = get_logger(__name__)

LIST_DEFAULT_LIMIT = 50
LIST_PREVIEW_CHARS = 200

READ_MIN_BACKLINKS = 3
READ_MIN_CONTENT_CHARS = 400
SEARCH_CLAMPED_FULL_CHARS = 600
SEARCH_CLAMPED_EXCERPT_CHARS = 300

SEARCH_EXPAND_HINT = "If you need full raw text, call vault action='read' with compressionMode='none'."
READ_EXPAND_HINT = (
    "If you need complete raw text, call vault action='read' with compressionMode='none'."
)


def format_document(
    document: DocumentIndex,
    include_content: bool,
    excerpt_length: int | None = None,
) -> dict[str, Any]:
    """
    Shape a document for search and list_all results.

    Args:
        document: Index entry, or an enriched document when content was read
        include_content: Whether to emit content (full text and excerpt)
        excerpt_length: Excerpt cut-off; None keeps the full text

    Returns:
        Dict with filename, fullPath, metadata, stats, content and
        content_is_truncated
    """
    content = document.content if isinstance(document, EnrichedDocument) else None
    stats = document.stats if isinstance(document, EnrichedDocument) else None

    if stats is not None:
        stats_data = stats.model_dump(mode="json", by_alias=True)
        source_length = stats.content_length
    else:
        stats_data = {
            "contentLength": document.content_length,
            "hasContent": bool(content),
            "wordCount": 0,
        }
        source_length = document.content_length

    if include_content and content:
        excerpt = (
            trim_with_ellipsis(content, excerpt_length) if excerpt_length is not None else content
        )
        content_data: dict[str, Any] = {"full": content, "excerpt": excerpt}
    else:
        content_data = {
            "preview": "(Content not loaded)",
            "note": "Full content available with includeContent=true",
        }

    return {
        "filename": os.path.basename(document.file_path),
        "fullPath": document.file_path,
        "metadata": {
            "title": document.frontmatter.title or "Untitled",
            "tags": document.frontmatter.tags or [],
        },
        "stats": stats_data,
        "content": content_data,
        "content_is_truncated": bool(
            excerpt_length is not None and content and source_length > len(content)
        ),
    }


class VaultQueryService:
    """
    search / read / list_all / stats over one vault.

    Usage:
        queries = VaultQueryService(vault_manager)
        response = await queries.search(VaultQueryParams(action="search", keyword="obsidian"))
    """

    def __init__(self, vault_manager: VaultManager):
        self.vault_manager = vault_manager

    async def search(self, params: VaultQueryParams) -> ToolResponse:
        """
        Keyword search.

        Args:
            params: keyword (required), limit, include_content, excerpt_length,
                quiet, compression_mode, max_output_chars

        Returns:
            Success or quiet response
        """
        keyword = params.keyword or ""
        mode = params.mode
        results = await self.vault_manager.search_documents(keyword)

        if params.quiet:
            return ToolResponse.quiet(
                {
                    "found": len(results),
                    "filenames": [os.path.basename(doc.file_path) for doc in results],
                }
            )

        if params.limit is not None:
            limit = params.limit
        elif mode == CompressionMode.NONE:
            limit = len(results)
        else:
            limit = SEARCH_DEFAULT_LIMIT[mode]

        if params.excerpt_length is not None:
            excerpt_length = params.excerpt_length
        else:
            excerpt_length = SEARCH_DEFAULT_EXCERPT.get(mode)

        limited = results[:limit]
        documents = []
        source_chars = 0
        for doc in limited:
            shown: DocumentIndex = doc
            if params.include_content:
                enriched = await self.vault_manager.get_document_info(
                    doc.file_path, include_stats=True, max_content_preview=excerpt_length
                )
                shown = enriched or doc
            formatted = format_document(shown, bool(params.include_content), excerpt_length)
            source_chars += formatted["stats"]["contentLength"]
            documents.append(formatted)

        payload: dict[str, Any] = {
            "query": keyword,
            "found": len(documents),
            "matched_total": len(results),
            "total_in_vault": self.vault_manager.indexer.total_files,
            "documents": documents,
        }

        max_output_chars = resolve_max_output_chars("search", mode, params.max_output_chars)
        clamped = False
        if max_output_chars is not None:
            while json_char_length(payload) > max_output_chars and len(documents) > 1:
                documents.pop()
                payload["found"] = len(documents)
                clamped = True

            if json_char_length(payload) > max_output_chars:
                for document in documents:
                    content = document["content"]
                    if "full" in content:
                        content["full"] = trim_with_ellipsis(content["full"], SEARCH_CLAMPED_FULL_CHARS)
                        content["excerpt"] = trim_with_ellipsis(
                            content["excerpt"], SEARCH_CLAMPED_EXCERPT_CHARS
                        )
                clamped = True

        truncated = (
            len(limited) < len(results)
            or any(document["content_is_truncated"] for document in documents)
            or clamped
        )
        logger.debug(f"search {keyword!r}: {len(results)} matches, returning {len(documents)}")
        return ToolResponse.success(
            finalize_with_compression(
                payload,
                mode=mode,
                source_chars=source_chars,
                max_output_chars=max_output_chars,
                truncated=truncated,
                expand_hint=SEARCH_EXPAND_HINT,
            )
        )

    async def read(self, params: VaultQueryParams) -> ToolResponse:
        """
        Read one document with stats and backlinks.

        Args:
            params: filename (required), excerpt_length, include_frontmatter,
                compression_mode, max_output_chars

        Returns:
            Success response, or not-found
        """
        filename = params.filename or ""
        mode = params.mode
        document = await self.vault_manager.get_document_info(
            filename, include_stats=True, include_backlinks=True
        )
        if document is None:
            return ToolResponse.not_found(
                f"Document not found: {filename}",
                "Check the filename and try again. "
                "Use the vault tool with 'list_all' action to see available documents.",
            )

        if params.excerpt_length is not None:
            content_max = params.excerpt_length
        else:
            content_max = READ_DEFAULT_CONTENT_MAX_CHARS.get(mode)
        backlink_limit = READ_DEFAULT_BACKLINK_LIMIT.get(mode)

        content = document.content
        if params.include_frontmatter is False:
            loaded = load_frontmatter_data(content)
            if loaded is not None:
                content = loaded[1]
        content_truncated = content_max is not None and len(content) > content_max
        if content_truncated:
            content = trim_with_ellipsis(content, content_max)

        backlinks = [
            backlink.model_dump(mode="json", by_alias=True) for backlink in document.backlinks or []
        ]
        backlinks_truncated = backlink_limit is not None and len(backlinks) > backlink_limit
        if backlinks_truncated:
            backlinks = backlinks[:backlink_limit]

        payload = document.model_dump(mode="json", by_alias=True)
        payload["content"] = content
        payload["backlinks"] = backlinks
        if params.include_frontmatter is False:
            payload.pop("frontmatter", None)

        max_output_chars = resolve_max_output_chars("read", mode, params.max_output_chars)
        clamped = False
        if max_output_chars is not None:
            while (
                json_char_length(payload) > max_output_chars
                and len(payload["backlinks"]) > READ_MIN_BACKLINKS
            ):
                payload["backlinks"].pop()
                clamped = True
            while (
                json_char_length(payload) > max_output_chars
                and len(payload["content"]) > READ_MIN_CONTENT_CHARS
            ):
                text = payload["content"]
                payload["content"] = f"{text[: int(len(text) * 0.7)]}..."
                clamped = True

        return ToolResponse.success(
            finalize_with_compression(
                payload,
                mode=mode,
                source_chars=len(document.content),
                max_output_chars=max_output_chars,
                truncated=content_truncated or backlinks_truncated or clamped,
                expand_hint=READ_EXPAND_HINT,
            )
        )

    async def list_all(self, params: VaultQueryParams) -> ToolResponse:
        """List indexed documents (first 50 unless ``limit`` is given)."""
        all_documents = await self.vault_manager.get_all_documents()

        if params.quiet:
            return ToolResponse.quiet(
                {
                    "total_documents": len(all_documents),
                    "filenames": [os.path.basename(doc.file_path) for doc in all_documents],
                }
            )

        shown = all_documents[: params.limit or LIST_DEFAULT_LIMIT]
        documents = []
        for doc in shown:
            if params.include_content:
                enriched = await self.vault_manager.get_document_info(
                    doc.file_path, include_stats=True, max_content_preview=LIST_PREVIEW_CHARS
                )
                documents.append(format_document(enriched or doc, True, LIST_PREVIEW_CHARS))
            else:
                documents.append(format_document(doc, False))

        return ToolResponse.success(
            {
                "vault_overview": {
                    "total_documents": len(all_documents),
                    "showing": len(documents),
                },
                "documents": documents,
            }
        )

    async def stats(self, params: VaultQueryParams) -> ToolResponse:
        """Vault manager status."""
        return ToolResponse.success(
            self.vault_manager.get_stats().model_dump(mode="json", by_alias=True)
        )
