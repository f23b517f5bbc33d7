"""Concurrency primitives."""

from vault_context.core.concurrency.semaphore import Semaphore

__all__ = ["Semaphore"]
