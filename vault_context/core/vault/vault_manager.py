"""
Vault manager: the single entry point to vault files.

Owns the semaphore, walker and indexer for one vault root, resolves loosely
specified file names to files inside the vault, and enriches index entries
with content, stats and backlinks on demand.
"""

import asyncio
import os
import re
from pathlib import Path
from typing import Any

from vault_context.core.concurrency import Semaphore
from vault_context.core.indexer import Indexer
from vault_context.core.parsing import load_frontmatter_data, stringify_document
from vault_context.core.walker import DEFAULT_EXTENSIONS, DirectoryWalker
from vault_context.models.document import (
    Backlink,
    DocumentIndex,
    DocumentStats,
    EnrichedDocument,
    VaultStats,
    compute_content_hash,
)
from vault_context.utils.exceptions import ConfigurationError, VaultPathError
from vault_context.utils.logger import get_logger

logger = get_logger(__name__)

MARKDOWN_EXTENSION = re.compile(r"\.mdx?$", re.IGNORECASE)
CANDIDATE_EXTENSIONS = (".md", ".mdx")


class VaultManager:
    """
    Indexed access to a markdown vault.

    Every path handed in by a caller is checked against the vault root before
    it is touched. Reads of paths outside the root resolve to nothing; writes
    raise VaultPathError.

    Usage:
        manager = VaultManager("/path/to/vault", max_concurrent_io=20)
        await manager.initialize()
        hits = await manager.search_documents("obsidian")
        doc = await manager.get_document_info("Daily Tasks", include_stats=True)
    """

    def __init__(
        self,
        vault_path: str | Path,
        max_concurrent_io: int = 10,
        allowed_extensions: tuple[str, ...] | list[str] = DEFAULT_EXTENSIONS,
    ):
        """
        Initialize vault manager. No I/O happens until initialize().

        Args:
            vault_path: Vault root directory
            max_concurrent_io: Concurrent file system operations
            allowed_extensions: File extensions to index
        """
        self.vault_path = Path(vault_path).expanduser().resolve()
        self.semaphore = Semaphore(max_concurrent_io)
        self.walker = DirectoryWalker(allowed_extensions)
        self.indexer = Indexer()
        self._initialized = False
        self._init_lock = asyncio.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """
        Walk the vault and build the index, once.

        Raises:
            ConfigurationError: If the vault root does not exist
        """
        if self._initialized:
            return

        async with self._init_lock:
            if self._initialized:
                return
            await self._build()

    async def refresh(self) -> None:
        """
        Rebuild the index from disk.

        Always builds, even when a build finished while this call waited for
        the lock, so a file written before the call is always picked up.
        """
        async with self._init_lock:
            await self._build()

    async def _build(self) -> None:
        if not await asyncio.to_thread(self.vault_path.is_dir):
            raise ConfigurationError(
                f"Vault directory does not exist: {self.vault_path}",
                context={"vault_path": str(self.vault_path)},
            )

        logger.info(f"Indexing vault at {self.vault_path}")
        file_paths = await self.walker.walk(str(self.vault_path), self.semaphore)
        await self.indexer.build(file_paths, self.semaphore)
        self._initialized = True

    async def get_all_documents(self) -> list[DocumentIndex]:
        """All indexed documents sorted by path."""
        await self.initialize()
        return self.indexer.get_all_documents()

    async def search_documents(self, keyword: str) -> list[DocumentIndex]:
        """Documents matching every token of the keyword, sorted by path."""
        await self.initialize()
        return self.indexer.search(keyword)

    def get_stats(self) -> VaultStats:
        """Current vault status."""
        return VaultStats(
            total_files=self.indexer.total_files,
            is_initialized=self._initialized,
            vault_path=str(self.vault_path),
        )

    # Path resolution

    def is_within_vault(self, path: Path) -> bool:
        """True if the path is the vault root or below it."""
        return path == self.vault_path or self.vault_path in path.parents

    def _candidate_path(self, filename: str) -> Path:
        """
        Absolute path for a caller-supplied name, checked against the vault root.

        Both the lexical path and its symlink-resolved target must stay inside
        the vault.

        Raises:
            VaultPathError: If either escapes the vault
        """
        candidate = Path(os.path.normpath(self.vault_path / filename.strip()))
        for path in (candidate, candidate.resolve()):
            if not self.is_within_vault(path):
                raise VaultPathError(
                    input_path=filename,
                    resolved_path=str(path),
                    vault_path=str(self.vault_path),
                )
        return candidate

    async def resolve(self, filename: str) -> Path | None:
        """
        Resolve a loosely specified document name to a vault file.

        Tries, in order: the exact path, the path with ``.md``/``.mdx``
        appended, and a search for the file stem whose hit path contains it.

        Args:
            filename: Absolute path, vault-relative path or bare title

        Returns:
            Path of an existing file inside the vault, or None
        """
        await self.initialize()
        return await self._resolve(filename)

    async def _resolve(self, filename: str) -> Path | None:
        if not filename or not filename.strip():
            return None

        try:
            candidate = self._candidate_path(filename)
        except VaultPathError as e:
            logger.warning(f"Rejected path outside vault: {e.input_path} -> {e.resolved_path}")
            return None

        if await asyncio.to_thread(candidate.is_file):
            return candidate

        if not MARKDOWN_EXTENSION.search(candidate.name):
            for extension in CANDIDATE_EXTENSIONS:
                with_extension = candidate.with_name(candidate.name + extension)
                if self.is_within_vault(with_extension.resolve()) and await asyncio.to_thread(
                    with_extension.is_file
                ):
                    return with_extension

        return self._search_by_name(filename)

    def _search_by_name(self, filename: str) -> Path | None:
        stem = MARKDOWN_EXTENSION.sub("", filename.strip())
        basename = os.path.basename(stem)

        for term in dict.fromkeys((stem, basename)):
            if not term:
                continue
            lowered = term.lower()
            for document in self.indexer.search(term):
                path = Path(document.file_path)
                if lowered in document.file_path.lower() and self.is_within_vault(path.resolve()):
                    return path
        return None

    def _writable_path(self, filename: str) -> Path:
        candidate = self._candidate_path(filename)
        if candidate.exists() or MARKDOWN_EXTENSION.search(candidate.name):
            return candidate

        for extension in CANDIDATE_EXTENSIONS:
            with_extension = candidate.with_name(candidate.name + extension)
            if with_extension.is_file():
                return with_extension
        return candidate

    # Reads

    async def get_document_info(
        self,
        filename: str,
        include_stats: bool = False,
        include_backlinks: bool = False,
        max_content_preview: int | None = None,
        include_content_hash: bool = False,
    ) -> EnrichedDocument | None:
        """
        Read a document and enrich its index entry.

        Args:
            filename: Document name or path (see resolve())
            include_stats: Attach word/line/character counts of the full content
            include_backlinks: Attach documents linking here
            max_content_preview: Truncate returned content to this many characters
            include_content_hash: Attach SHA256 of the full content

        Returns:
            EnrichedDocument, or None if the name does not resolve to an indexed file
        """
        await self.initialize()

        path = await self._resolve(filename)
        if path is None:
            return None

        document = self.indexer.get_document(str(path))
        if document is None:
            logger.debug(f"Resolved {filename} to unindexed file {path}")
            return None

        async with self.semaphore:
            try:
                content = await asyncio.to_thread(path.read_text, encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.error(f"Failed to read {path}: {e}")
                return None

        enriched = EnrichedDocument(
            **document.model_dump(),
            content=(
                content[:max_content_preview] if max_content_preview is not None else content
            ),
        )
        if include_stats:
            enriched.stats = DocumentStats.from_content(content)
        if include_content_hash:
            enriched.content_hash = compute_content_hash(content)
        if include_backlinks:
            enriched.backlinks = self._backlinks_for(document.file_path)
        return enriched

    def _backlinks_for(self, file_path: str) -> list[Backlink]:
        backlinks = []
        for source_path in self.indexer.get_backlinks(file_path):
            source = self.indexer.get_document(source_path)
            title = source.frontmatter.title if source else None
            if not title:
                title = MARKDOWN_EXTENSION.sub("", os.path.basename(source_path)) or "Untitled"
            backlinks.append(Backlink(file_path=source_path, title=title))
        return backlinks

    # Writes

    async def write_document(self, filename: str, frontmatter: dict[str, Any]) -> Path:
        """
        Merge keys into a document's frontmatter, keeping its body.

        Args:
            filename: Document name or path inside the vault
            frontmatter: Keys to set

        Returns:
            Path written

        Raises:
            VaultPathError: If the path escapes the vault
        """
        path = self._writable_path(filename)

        async with self.semaphore:
            existing = ""
            if await asyncio.to_thread(path.is_file):
                existing = await asyncio.to_thread(path.read_text, encoding="utf-8")

            loaded = load_frontmatter_data(existing)
            data, body = loaded if loaded is not None else ({}, existing)
            text = stringify_document(body, {**data, **frontmatter})

            await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)
            await asyncio.to_thread(path.write_text, text, encoding="utf-8")

        logger.info(f"Updated frontmatter of {path}")
        await self.refresh()
        return path

    async def write_raw_document(self, filename: str, content: str) -> Path:
        """
        Overwrite a document with raw text, creating parent folders.

        Args:
            filename: Vault-relative or absolute path inside the vault
            content: Full file text

        Returns:
            Path written

        Raises:
            VaultPathError: If the path escapes the vault
        """
        path = self._candidate_path(filename)

        async with self.semaphore:
            await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)
            await asyncio.to_thread(path.write_text, content, encoding="utf-8")

        logger.info(f"Wrote {len(content)} chars to {path}")
        await self.refresh()
        return path
