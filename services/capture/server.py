"""Local HTTP server that hosts the export app bundle for the headless browser."""

from __future__ import annotations

import asyncio
import socket
from pathlib import Path

import uvicorn
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from shared.errors import CaptureTimeout, ConfigInvalid
from shared.logging_utils import setup_logging

logger = setup_logging("export-app-server")


def find_free_port(host: str = "127.0.0.1") -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        return sock.getsockname()[1]


def create_app(app_dir: Path) -> FastAPI:
    """FastAPI app serving the export app's static files."""
    app = FastAPI(
        title="Export App Host",
        description="Serves the slide export bundle to the capture browser",
        version="1.0.0",
    )

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "ok"}

    app.mount("/", StaticFiles(directory=str(app_dir), html=True), name="export-app")
    return app


class ExportAppServer:
    """Runs uvicorn in-process on a free local port."""

    def __init__(self, app_dir: Path, host: str = "127.0.0.1", port: int | None = None):
        app_dir = Path(app_dir)
        if not (app_dir / "index.html").exists():
            raise ConfigInvalid(
                f"Export app bundle not found in {app_dir}",
                hint="Set EXPORT_APP_DIR (or capture.export_app_dir) to the built export app.",
            )
        self.app_dir = app_dir
        self.host = host
        self.port = port or find_free_port(host)
        self._server: uvicorn.Server | None = None
        self._task: asyncio.Task | None = None

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    async def start(self, timeout: float = 10) -> "ExportAppServer":
        config = uvicorn.Config(
            create_app(self.app_dir),
            host=self.host,
            port=self.port,
            log_level="warning",
            lifespan="off",
        )
        self._server = uvicorn.Server(config)
        self._task = asyncio.create_task(self._server.serve())

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not self._server.started:
            if self._task.done():
                # serve() returned early, e.g. the port was taken
                self._task.result()
                raise CaptureTimeout(f"Export app server on port {self.port} stopped during startup")
            if loop.time() > deadline:
                raise CaptureTimeout(f"Export app server did not start within {timeout}s")
            await asyncio.sleep(0.05)

        logger.info("Export app server started on port %d", self.port)
        return self

    async def stop(self) -> None:
        if self._server is not None:
            self._server.should_exit = True
        if self._task is not None:
            await self._task
        self._server = None
        self._task = None

    async def __aenter__(self) -> "ExportAppServer":
        return await self.start()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()
