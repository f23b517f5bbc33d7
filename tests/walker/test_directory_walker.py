"""
Tests for DirectoryWalker.
"""

import os

import pytest

from vault_context.core.concurrency import Semaphore
from vault_context.core.walker import DirectoryWalker


class TestDirectoryWalker:
    """Recursive discovery of markdown files."""

    @pytest.mark.asyncio
    async def test_finds_markdown_recursively(self, vault_dir, write_note):
        """.md and .mdx files are found at every depth; other files are skipped."""
        write_note("top.md", "a")
        write_note("nested/deeper/page.mdx", "b")
        write_note("nested/image.png", "c")
        write_note("nested/readme.txt", "d")

        files = await DirectoryWalker().walk(str(vault_dir), Semaphore(2))

        names = sorted(os.path.relpath(path, vault_dir) for path in files)
        assert names == ["nested/deeper/page.mdx", "top.md"]
        assert all(os.path.isabs(path) for path in files)

    @pytest.mark.asyncio
    async def test_extension_match_is_case_insensitive(self, vault_dir, write_note):
        """Upper-case extensions are matched too."""
        write_note("LOUD.MD", "a")

        files = await DirectoryWalker().walk(str(vault_dir), Semaphore(1))

        assert [os.path.basename(path) for path in files] == ["LOUD.MD"]

    @pytest.mark.asyncio
    async def test_custom_extensions(self, vault_dir, write_note):
        """Only the configured extensions are returned."""
        write_note("note.md", "a")
        write_note("note.txt", "b")

        files = await DirectoryWalker([".txt"]).walk(str(vault_dir), Semaphore(1))

        assert [os.path.basename(path) for path in files] == ["note.txt"]

    @pytest.mark.asyncio
    async def test_unreadable_directory_yields_nothing(self, tmp_path):
        """A directory that cannot be listed contributes no files."""
        sem = Semaphore(1)

        files = await DirectoryWalker().walk(str(tmp_path / "missing"), sem)

        assert files == []
        assert sem.available == 1

    @pytest.mark.asyncio
    async def test_permits_returned_after_walk(self, vault_dir, write_note):
        """Every permit is released once the walk completes."""
        for index in range(5):
            write_note(f"folder{index}/note.md", "x")
        sem = Semaphore(2)

        files = await DirectoryWalker().walk(str(vault_dir), sem)

        assert len(files) == 5
        assert sem.available == 2
        assert sem.waiting == 0
