"""Vault access."""

from vault_context.core.vault.vault_manager import VaultManager

__all__ = ["VaultManager"]
