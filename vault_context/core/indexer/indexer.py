"""
In-memory inverted index and backlink graph over vault documents.
"""

import asyncio
import os
from pathlib import Path

from vault_context.core.concurrency import Semaphore
from vault_context.core.indexer.tokenizer import DocumentTokenizer
from vault_context.core.parsing import extract_links, normalize_link_target, parse_document
from vault_context.models.document import DocumentIndex
from vault_context.utils.logger import get_logger

logger = get_logger(__name__)


class Indexer:
    """
    Keyword index over markdown files.

    Holds three maps, always replaced together:
    - documents: file path -> DocumentIndex
    - inverted index: token -> file paths
    - backlinks: normalized link target -> source file paths

    Backlinks are keyed by file name only, so two files with the same name in
    different folders share their backlinks.
    """

    def __init__(self, tokenizer: DocumentTokenizer | None = None):
        """
        Initialize an empty index.

        Args:
            tokenizer: Token extractor (default DocumentTokenizer)
        """
        self.tokenizer = tokenizer or DocumentTokenizer()
        self._documents: dict[str, DocumentIndex] = {}
        self._inverted_index: dict[str, set[str]] = {}
        self._backlink_index: dict[str, set[str]] = {}

    @property
    def total_files(self) -> int:
        """Number of indexed documents."""
        return len(self._documents)

    async def build(self, file_paths: list[str], semaphore: Semaphore) -> None:
        """
        Rebuild the index from scratch.

        Files that cannot be read are logged and left out. The new maps are
        swapped in only once every file has been processed.

        Args:
            file_paths: Files to index
            semaphore: Shared gate for file reads
        """
        results = await asyncio.gather(
            *(self._index_file(file_path, semaphore) for file_path in file_paths)
        )

        documents: dict[str, DocumentIndex] = {}
        inverted_index: dict[str, set[str]] = {}
        for result in results:
            if result is None:
                continue
            document, tokens = result
            documents[document.file_path] = document
            for token in tokens:
                inverted_index.setdefault(token, set()).add(document.file_path)

        backlink_index = self._build_backlinks(documents)

        self._documents = documents
        self._inverted_index = inverted_index
        self._backlink_index = backlink_index

        logger.info(
            f"Indexed {len(documents)}/{len(file_paths)} files "
            f"({len(inverted_index)} tokens, {len(backlink_index)} link targets)"
        )

    async def _index_file(
        self, file_path: str, semaphore: Semaphore
    ) -> tuple[DocumentIndex, set[str]] | None:
        async with semaphore:
            try:
                text = await asyncio.to_thread(Path(file_path).read_text, encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.error(f"Failed to index {file_path}: {e}")
                return None

        parsed = parse_document(text)
        links = extract_links(parsed.content)
        document = DocumentIndex(
            file_path=file_path,
            frontmatter=parsed.frontmatter,
            content_length=len(parsed.content),
            image_links=links.image_links,
            document_links=links.document_links,
        )
        tokens = self.tokenizer.tokenize(file_path, parsed.frontmatter, parsed.content)
        return document, tokens

    @staticmethod
    def _build_backlinks(documents: dict[str, DocumentIndex]) -> dict[str, set[str]]:
        backlinks: dict[str, set[str]] = {}
        for source_path, document in documents.items():
            for link in document.document_links:
                target = normalize_link_target(link)
                if target:
                    backlinks.setdefault(target, set()).add(source_path)
        return backlinks

    def search(self, keyword: str) -> list[DocumentIndex]:
        """
        Find documents containing every token of the keyword.

        Args:
            keyword: Whitespace-separated search terms (case-insensitive)

        Returns:
            Matching documents sorted by path; empty for a blank keyword
        """
        tokens = self.tokenizer.query_tokens(keyword)
        if not tokens:
            return []

        matches: set[str] | None = None
        for token in tokens:
            postings = self._inverted_index.get(token)
            if not postings:
                return []
            matches = set(postings) if matches is None else matches & postings
            if not matches:
                return []

        return [self._documents[path] for path in sorted(matches or ())]

    def get_backlinks(self, file_path: str) -> list[str]:
        """
        Files linking to the given file.

        Args:
            file_path: Path of the link target

        Returns:
            Source paths sorted
        """
        target = normalize_link_target(os.path.basename(file_path))
        return sorted(self._backlink_index.get(target, ()))

    def get_document(self, file_path: str) -> DocumentIndex | None:
        """Indexed entry for an exact path."""
        return self._documents.get(file_path)

    def get_all_documents(self) -> list[DocumentIndex]:
        """All indexed documents sorted by path."""
        return [self._documents[path] for path in sorted(self._documents)]

    def clear(self) -> None:
        """Drop all indexed state."""
        self._documents = {}
        self._inverted_index = {}
        self._backlink_index = {}
