"""
Lifecycle base for the bot's services.

Every service (catalog client, channel store, synchronizer, webhook relay) is
built by the ServiceContainer, initialized once at startup and shut down in
reverse order when the bot closes.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Any

from utils.logging import get_logger


class BaseService(ABC):
    """
    Common initialize/shutdown/health plumbing.

    Subclasses put their startup work (probing the catalog, creating the store
    directory, logging limits) in ``_initialize_impl``; an exception there
    leaves the service uninitialized and propagates to the container.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.logger = get_logger(f"services.{name}")
        self._initialized = False
        self._initialized_at: float | None = None
        self._lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Run ``_initialize_impl`` once; later calls are no-ops."""
        async with self._lock:
            if self._initialized:
                return

            started = time.monotonic()
            try:
                await self._initialize_impl()
            except Exception as e:
                self.logger.exception(
                    "Failed to initialize %s service", self.name, exc_info=e
                )
                raise
            self._initialized = True
            self._initialized_at = time.monotonic()
            self.logger.info(
                f"{self.name} service ready in {self._initialized_at - started:.2f}s"
            )

    async def shutdown(self) -> None:
        """Release resources. Errors are logged, never raised."""
        if not self._initialized:
            return

        try:
            await self._shutdown_impl()
        except Exception as e:
            self.logger.exception(
                "Error during %s service shutdown", self.name, exc_info=e
            )
        finally:
            self._initialized = False
            self._initialized_at = None
            self.logger.info(f"{self.name} service stopped")

    @abstractmethod
    async def _initialize_impl(self) -> None:
        """Subclass-specific initialization logic."""

    async def _shutdown_impl(self) -> None:
        """Subclass-specific shutdown logic. Override if needed."""

    async def health_check(self) -> dict[str, Any]:
        """Base health fields; subclasses extend the dict."""
        uptime = (
            round(time.monotonic() - self._initialized_at, 1)
            if self._initialized_at is not None
            else None
        )
        return {
            "service": self.name,
            "initialized": self._initialized,
            "status": "healthy" if self._initialized else "not_initialized",
            "uptime_seconds": uptime,
        }
