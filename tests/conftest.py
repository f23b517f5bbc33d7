"""Shared fixtures: temporary vaults under tmp_path.

Each test gets its own vault directory, so tests never share index or
cache state.
"""

from collections.abc import Callable
from pathlib import Path

import pytest

from vault_context.core.vault import VaultManager

# Demo vault

DEMO_DOCUMENTS: dict[str, tuple[list[str], str]] = {
    "Project Testing Strategy": (
        ["testing", "fixture"],
        "# Project Testing Strategy\n\n"
        "- Unit tests cover the parser and the indexer in isolation.\n"
        "- Integration tests run every tool action against a fixture vault.\n\n"
        "See [[Meeting Notes]] for the decisions behind this plan.\n",
    ),
    "Getting Started with Obsidian MCP Server": (
        ["guide", "obsidian"],
        "# Getting Started\n\n"
        "- Point VAULT_DIR_PATH at the root folder of your notes.\n"
        "- Start the server and call the vault tool with action list_all.\n\n"
        "Related: [[Project Testing Strategy]]\n",
    ),
    "Meeting Notes": (
        ["meeting"],
        "# Weekly Sync\n\n"
        "- Agreed to ship the context collection feature next sprint.\n"
        "- Testing owners will review the fixture vault layout.\n\n"
        "[[Daily Tasks]]\n",
    ),
    "Daily Tasks": (
        ["tasks"],
        "- Review pull requests for the indexer refactor.\n"
        "- Write release notes for the upcoming version.\n\n"
        "[[Project Testing Strategy|strategy]]\n",
    ),
    "Test Note": (
        ["test"],
        "A short note used to check that plain paragraphs are indexed too.\n",
    ),
}


def note_text(title: str, tags: list[str], body: str) -> str:
    """Markdown file text with a title/tags frontmatter block."""
    tag_lines = "".join(f"  - {tag}\n" for tag in tags)
    return f"---\ntitle: {title}\ntags:\n{tag_lines}---\n\n{body}"


# Fixtures


@pytest.fixture
def vault_dir(tmp_path: Path) -> Path:
    """Empty vault root."""
    root = tmp_path / "vault"
    root.mkdir()
    return root


@pytest.fixture
def write_note(vault_dir: Path) -> Callable[[str, str], Path]:
    """Write a file below the vault root, creating folders."""

    def _write(relative_path: str, text: str) -> Path:
        path = vault_dir / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def demo_vault(vault_dir: Path, write_note) -> Path:
    """Vault holding the five demo documents."""
    for title, (tags, body) in DEMO_DOCUMENTS.items():
        write_note(f"{title}.md", note_text(title, tags, body))
    return vault_dir


@pytest.fixture
def vault_manager(vault_dir: Path) -> VaultManager:
    """Manager over the (initially empty) vault root; not yet initialized."""
    return VaultManager(vault_dir, max_concurrent_io=4)


@pytest.fixture
def demo_manager(demo_vault: Path) -> VaultManager:
    """Manager over the demo vault; not yet initialized."""
    return VaultManager(demo_vault, max_concurrent_io=4)
