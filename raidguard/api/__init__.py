"""
RaidGuard - API Package
=======================

FastAPI-based query API for the detection engine.

Features:
- Detection log queries and statistics
- Live settings reads and partial updates
- Per-user suspicion lookups

Usage with the bot:
    from raidguard.api import APIService

    api_service = APIService(engine)
    await api_service.start()

    # On shutdown
    await api_service.stop()
"""

import asyncio
from typing import TYPE_CHECKING, Optional

import uvicorn

if TYPE_CHECKING:
    from raidguard.services.detection import DetectionEngine

from raidguard.core.logger import logger
from raidguard.utils.async_utils import create_safe_task
from raidguard.api.config import get_api_config, APIConfig
from raidguard.api.app import create_app


# =============================================================================
# API Service
# =============================================================================

class APIService:
    """
    Manages the FastAPI server lifecycle alongside the Discord client.

    This service runs the API server in a background task, allowing
    the bot and API to run concurrently.
    """

    def __init__(self, engine: "DetectionEngine", config: Optional[APIConfig] = None) -> None:
        """
        Initialize the API service.

        Args:
            engine: The detection engine to expose
            config: Optional override of the environment config
        """
        self._engine = engine
        self._config = config or get_api_config()
        self._app = create_app(engine)
        self._server: Optional[uvicorn.Server] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        """Check if the API server is running."""
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the API server in a background task."""
        if self.is_running:
            logger.warning("API Already Running", [])
            return

        config = uvicorn.Config(
            app=self._app,
            host=self._config.host,
            port=self._config.port,
            log_level="warning",
            access_log=False,
        )

        self._server = uvicorn.Server(config)
        self._task = create_safe_task(self._run_server(), "API Server")

        logger.tree("API Service Started", [
            ("Host", self._config.host),
            ("Port", str(self._config.port)),
            ("Debug", str(self._config.debug)),
        ], emoji="🌐")

    async def _run_server(self) -> None:
        """Run the uvicorn server."""
        try:
            await self._server.serve()
        except asyncio.CancelledError:
            logger.debug("API Server Cancelled", [])
        except Exception as e:
            logger.error("API Server Error", [
                ("Error Type", type(e).__name__),
                ("Error", str(e)[:100]),
            ])

    async def stop(self) -> None:
        """Stop the API server gracefully."""
        if not self.is_running:
            return

        logger.tree("API Service Stopping", [], emoji="🛑")

        if self._server:
            self._server.should_exit = True

        if self._task:
            try:
                await asyncio.wait_for(self._task, timeout=5.0)
            except asyncio.TimeoutError:
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass

        self._server = None
        self._task = None

        logger.tree("API Service Stopped", [], emoji="✅")


__all__ = [
    "APIService",
    "APIConfig",
    "get_api_config",
    "create_app",
]
