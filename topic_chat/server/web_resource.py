from __future__ import annotations

import os
from typing import Optional

from aiohttp import web

from topic_chat.app import (
    handle_chat,
    handle_health_check,
    handle_models,
    handle_summarize,
)
from topic_chat.config import Config
from topic_chat.logging_config import get_loggers
from topic_chat.server.middleware import (
    cors_middleware,
    error_handling_middleware,
    logging_middleware,
)
from topic_chat.upstream.groq_client import GroqClient

app_logger, _, _ = get_loggers()

MAX_BODY_BYTES = 1024 * 1024


class WebServer:
    """A wrapper for the aiohttp web server."""

    def __init__(self, config: Config, groq_client: Optional[GroqClient] = None):
        self.config = config
        self.port = config.port
        self.host = config.host
        self.groq_client = groq_client or GroqClient(
            api_key=config.groq_api_key, base_url=config.groq_base_url
        )
        self.app = web.Application(
            middlewares=[
                logging_middleware(),
                cors_middleware(),
                error_handling_middleware(),
            ],
            client_max_size=MAX_BODY_BYTES,
        )
        self.app["config"] = config
        self.app["groq_client"] = self.groq_client
        self.app.on_startup.append(self._on_startup)
        self.app.on_cleanup.append(self._on_cleanup)
        self._add_routes()
        self.runner: web.AppRunner | None = None
        self.site: web.TCPSite | None = None

    def _add_routes(self):
        router = self.app.router
        router.add_get("/_health_check", handle_health_check)
        router.add_post("/api/chat", handle_chat)
        router.add_post("/api/summarize", handle_summarize)
        router.add_get("/api/models", handle_models)

        static_dir = self.config.static_dir
        if not static_dir:
            return
        if not os.path.isdir(static_dir):
            app_logger.warning(
                f"STATIC_DIR '{static_dir}' is not a directory; not serving files"
            )
            return

        index_path = os.path.join(static_dir, "index.html")

        async def handle_index(request: web.Request) -> web.StreamResponse:
            if not os.path.isfile(index_path):
                raise web.HTTPNotFound()
            return web.FileResponse(index_path)

        router.add_get("/", handle_index)
        router.add_static("/", static_dir)
        app_logger.info(f"Serving static client files from {static_dir}")

    async def _on_startup(self, app: web.Application):
        await self.groq_client.start()
        if not self.groq_client.has_credentials:
            app_logger.warning("Warning: GROQ_API_KEY is not set. Set it in .env")
        app_logger.info(
            "Completion proxy ready",
            extra={
                "model": self.config.groq_model,
                "candidates": ",".join(self.config.candidate_models),
            },
        )

    async def _on_cleanup(self, app: web.Application):
        await self.groq_client.close()

    async def start(self):
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        self.site = web.TCPSite(self.runner, self.host, self.port)
        await self.site.start()
        app_logger.info(f"Server running on http://{self.host}:{self.port}")

    async def stop(self):
        if self.site:
            await self.site.stop()
        if self.runner:
            await self.runner.cleanup()

    async def cleanup(self):
        await self.stop()
        self.site = None
        self.runner = None
