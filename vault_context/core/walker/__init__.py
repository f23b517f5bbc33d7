"""Vault file discovery."""

from vault_context.core.walker.directory_walker import DEFAULT_EXTENSIONS, DirectoryWalker

__all__ = ["DirectoryWalker", "DEFAULT_EXTENSIONS"]
