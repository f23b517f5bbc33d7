"""
Recursive, bounded-concurrency discovery of markdown files.
"""

import asyncio
import os
from collections.abc import Iterable

from vault_context.core.concurrency import Semaphore
from vault_context.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_EXTENSIONS = (".md", ".mdx")


class DirectoryWalker:
    """
    Walks a directory tree and returns the files with an allow-listed extension.

    Each directory listing holds one semaphore permit, released before the
    subdirectories are walked, so deep trees never pin permits while waiting
    on their children.
    """

    def __init__(self, allowed_extensions: Iterable[str] = DEFAULT_EXTENSIONS):
        self.allowed_extensions = frozenset(ext.lower() for ext in allowed_extensions)

    async def walk(self, directory: str, semaphore: Semaphore) -> list[str]:
        """
        Collect matching files below a directory.

        Args:
            directory: Directory to walk
            semaphore: Shared gate for file system operations

        Returns:
            Absolute paths of matching files. A directory that cannot be listed
            contributes nothing; its siblings are still walked.
        """
        async with semaphore:
            try:
                entries = await asyncio.to_thread(self._list_directory, directory)
            except OSError as e:
                logger.error(f"Failed to read directory {directory}: {e}")
                return []

        files: list[str] = []
        subdirectories: list[str] = []
        for path, is_dir in entries:
            if is_dir:
                subdirectories.append(path)
            elif os.path.splitext(path)[1].lower() in self.allowed_extensions:
                files.append(path)

        if subdirectories:
            nested = await asyncio.gather(
                *(self.walk(subdirectory, semaphore) for subdirectory in subdirectories)
            )
            for paths in nested:
                files.extend(paths)

        return files

    @staticmethod
    def _list_directory(directory: str) -> list[tuple[str, bool]]:
        with os.scandir(directory) as it:
            return [
                (os.path.abspath(entry.path), entry.is_dir(follow_symlinks=False))
                for entry in it
                if entry.is_dir(follow_symlinks=False) or entry.is_file(follow_symlinks=False)
            ]
