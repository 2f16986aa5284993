"""
Run-until-shutdown server loop.

``QueryServer.run()`` blocks serving the FastAPI app with uvicorn until
SIGINT/SIGTERM or until ``stop()`` is called from another thread. On the
way out the refresh controller is cancelled so an in-flight refresh stops
dispatching new work.
"""

from __future__ import annotations

import logging
import threading

import uvicorn

from mtd_ranker.config import ServerConfig
from mtd_ranker.pipeline.refresh import RefreshController
from mtd_ranker.web.app import create_app

logger = logging.getLogger(__name__)


class QueryServer:
    """Serves one ``RefreshController`` over HTTP.

    Args:
        controller: Shared controller (cache + refresh).
        config:     ``[server]`` section of ``AppConfig``.
    """

    def __init__(self, controller: RefreshController, config: ServerConfig) -> None:
        self.controller = controller
        self.config = config
        self.app = create_app(controller)
        self._server = uvicorn.Server(
            uvicorn.Config(
                self.app,
                host=config.host,
                port=config.port,
                log_config=None,  # keep the root logging set up by configure_logging
            )
        )

    def run(self) -> None:
        if self.config.refresh_on_start:
            threading.Thread(
                target=self._initial_refresh, name="mtd-initial-refresh", daemon=True
            ).start()

        logger.info("Server starting on http://%s:%d", self.config.host, self.config.port)
        try:
            self._server.run()
        finally:
            self.controller.cancel()
            logger.info("Server stopped.")

    def stop(self) -> None:
        """Ask the serving loop to exit; safe to call from any thread."""
        self._server.should_exit = True
        self.controller.cancel()

    def _initial_refresh(self) -> None:
        result = self.controller.refresh()
        logger.info("Initial refresh finished | status=%s", result.status)
