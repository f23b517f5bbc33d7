"""
Vault Context FastAPI Application

HTTP surface for the vault tool: search, read, list_all, stats,
collect_context and load_memory over a local markdown vault.
"""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import Body, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from vault_context.config import Config
from vault_context.models.responses import ResponseKind
from vault_context.services import AppContext
from vault_context.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    vault_initialized: bool
    vault_path: str
    total_files: int


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown."""
    config = Config.from_env_or_yaml(yaml_path="config.yaml")

    setup_logging(
        level=config.logging.level,
        log_to_file=config.logging.log_to_file,
        log_dir=config.logging.log_dir,
        file_rotation=config.logging.file_rotation,
        file_retention=config.logging.file_retention,
        compression=config.logging.compression,
        serialize=config.logging.serialize,
    )

    logger.info("Starting vault context server")
    context = AppContext.create(config)
    await context.vault_manager.initialize()
    logger.info(f"Indexed {context.vault_manager.indexer.total_files} documents")

    app.state.context = context

    yield

    logger.info("Shutting down vault context server")
    context.cache.clear()


app = FastAPI(
    title="Vault Context API",
    description="Token-budgeted context collection over a markdown vault",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _context(request: Request) -> AppContext:
    context = getattr(request.app.state, "context", None)
    if context is None:
        raise HTTPException(status_code=503, detail="Vault not initialized")
    return context


@app.get("/")
async def root():
    """API information."""
    return {
        "name": "Vault Context API",
        "version": "0.1.0",
        "actions": ["search", "read", "list_all", "stats", "collect_context", "load_memory"],
        "endpoints": {"health": "/health", "stats": "/stats", "tool": "/tools/vault"},
    }


@app.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """Health check endpoint."""
    context = getattr(request.app.state, "context", None)
    if context is None:
        return HealthResponse(
            status="initializing", vault_initialized=False, vault_path="", total_files=0
        )

    stats = context.vault_manager.get_stats()
    return HealthResponse(
        status="healthy" if stats.is_initialized else "initializing",
        vault_initialized=stats.is_initialized,
        vault_path=stats.vault_path,
        total_files=stats.total_files,
    )


@app.get("/stats")
async def get_stats(request: Request):
    """Vault statistics."""
    return _context(request).vault_manager.get_stats().model_dump(mode="json", by_alias=True)


@app.post("/tools/vault")
async def vault_tool(request: Request, params: dict[str, Any] = Body(...)):
    """
    Run one vault tool call.

    The body carries the tool parameters (``action`` plus the fields that
    action reads; camelCase names are accepted). Error responses come back
    with status 400, missing documents with 404.
    """
    response = await _context(request).tool_service.execute(params)

    if response.kind == ResponseKind.NOT_FOUND:
        return JSONResponse(status_code=404, content=response.payload)
    if response.kind == ResponseKind.ERROR:
        return JSONResponse(status_code=400, content=response.payload)
    return response.payload
