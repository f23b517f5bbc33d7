"""
Vault tool services.

Actions:
- search, read, list_all, stats: VaultQueryService
- collect_context: ContextCollector
- load_memory: MemorySnapshotStore

VaultToolService dispatches between them; AppContext wires them to one vault.
"""

from vault_context.services.context_cache import CollectContextCache
from vault_context.services.context_collector import ContextCollector
from vault_context.services.memory_snapshot import MemorySnapshotStore
from vault_context.services.metrics import ResponseMetricsRecorder
from vault_context.services.tool_service import AppContext, VaultToolService
from vault_context.services.vault_queries import VaultQueryService

__all__ = [
    "AppContext",
    "CollectContextCache",
    "ContextCollector",
    "MemorySnapshotStore",
    "ResponseMetricsRecorder",
    "VaultQueryService",
    "VaultToolService",
]
