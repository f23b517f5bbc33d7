"""
Vault tool dispatcher and application wiring.

VaultToolService is the single entry point for tool calls: it validates the
parameters, routes the action to its handler, turns failures into error
responses and records response metrics. AppContext builds the one
VaultManager of a process and the services around it.
"""

from typing import Any

from pydantic import ValidationError as PydanticValidationError

from vault_context.config import Config
from vault_context.core.vault import VaultManager
from vault_context.models.requests import VaultAction, VaultQueryParams
from vault_context.models.responses import ToolResponse
from vault_context.services.context_cache import CollectContextCache
from vault_context.services.context_collector import ContextCollector
from vault_context.services.memory_snapshot import MemorySnapshotStore
from vault_context.services.metrics import ResponseMetricsRecorder
from vault_context.services.vault_queries import VaultQueryService
from vault_context.utils.exceptions import VaultContextError
from vault_context.utils.logger import get_logger

logger = get_logger(__name__)


class VaultToolService:
    """
    Dispatches vault tool calls.

    Usage:
        service = VaultToolService(vault_manager, queries, collector, snapshot_store)
        response = await service.execute({"action": "search", "keyword": "project"})
        print(response.to_text())
    """

    def __init__(
        self,
        vault_manager: VaultManager,
        queries: VaultQueryService,
        collector: ContextCollector,
        snapshot_store: MemorySnapshotStore,
        metrics: ResponseMetricsRecorder | None = None,
    ):
        self.vault_manager = vault_manager
        self.queries = queries
        self.collector = collector
        self.snapshot_store = snapshot_store
        self.metrics = metrics

    async def execute(self, params: VaultQueryParams | dict[str, Any]) -> ToolResponse:
        """
        Run one tool call.

        Args:
            params: Validated parameters, or a raw dict from a tool client

        Returns:
            ToolResponse; never raises for bad input or handler failures
        """
        if isinstance(params, dict):
            action = params.get("action")
            if action not in {item.value for item in VaultAction}:
                return ToolResponse.error(f"Unknown action: {action}")
            try:
                params = VaultQueryParams.model_validate(params)
            except PydanticValidationError as e:
                details = "; ".join(
                    f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                    for error in e.errors()
                )
                return ToolResponse.error(f"Invalid parameters: {details}")

        try:
            response = await self._dispatch(params)
        except VaultContextError as e:
            logger.error(f"{params.action.value} failed: {e.message}")
            return ToolResponse.error(f"Execution failed: {e.message}")
        except Exception as e:
            logger.exception(f"{params.action.value} failed unexpectedly")
            return ToolResponse.error(f"Execution failed: {e}")

        if self.metrics is not None:
            await self.metrics.record(params.action.value, response)
        return response

    async def _dispatch(self, params: VaultQueryParams) -> ToolResponse:
        action = params.action

        if action == VaultAction.SEARCH:
            if not params.keyword:
                return ToolResponse.error(
                    "keyword parameter is required for search action",
                    'Provide a keyword, e.g. { action: "search", keyword: "project" }',
                )
            return await self.queries.search(params)

        if action == VaultAction.READ:
            if not params.filename:
                return ToolResponse.error(
                    "filename parameter is required for read action",
                    'Provide a filename, e.g. { action: "read", filename: "meeting-notes.md" }',
                )
            return await self.queries.read(params)

        if action == VaultAction.LIST_ALL:
            return await self.queries.list_all(params)

        if action == VaultAction.STATS:
            return await self.queries.stats(params)

        if action == VaultAction.COLLECT_CONTEXT:
            return await self.collector.collect(params)

        if action == VaultAction.LOAD_MEMORY:
            return await self.snapshot_store.load(params)

        return ToolResponse.error(f"Unknown action: {action.value}")


class AppContext:
    """
    Process-wide services built from a Config.

    Handlers receive the context explicitly instead of reaching for globals.
    """

    def __init__(
        self,
        config: Config,
        vault_manager: VaultManager,
        cache: CollectContextCache,
        tool_service: VaultToolService,
    ):
        self.config = config
        self.vault_manager = vault_manager
        self.cache = cache
        self.tool_service = tool_service

    @classmethod
    def create(cls, config: Config) -> "AppContext":
        """
        Build the vault manager and the services around it.

        Args:
            config: Loaded configuration

        Returns:
            AppContext

        Raises:
            ConfigurationError: If the vault path is unset or missing
        """
        vault_path = config.validate_vault_path()
        vault_manager = VaultManager(
            vault_path,
            max_concurrent_io=config.vault.max_concurrent_io,
            allowed_extensions=config.vault.allowed_extensions,
        )
        cache = CollectContextCache(config.collect_context.cache_max_entries)
        snapshot_store = MemorySnapshotStore(
            vault_manager,
            note_path=config.collect_context.memory_note_path,
            schema_version=config.collect_context.schema_version,
        )
        collector = ContextCollector(
            vault_manager,
            cache=cache,
            snapshot_store=snapshot_store,
            schema_version=config.collect_context.schema_version,
        )
        metrics = (
            ResponseMetricsRecorder(config.metrics.log_path) if config.metrics.log_path else None
        )
        tool_service = VaultToolService(
            vault_manager,
            queries=VaultQueryService(vault_manager),
            collector=collector,
            snapshot_store=snapshot_store,
            metrics=metrics,
        )
        logger.info(f"Vault context ready for {vault_path}")
        return cls(config, vault_manager, cache, tool_service)
