import asyncio
import logging
import signal

from topic_chat.config import Config
from topic_chat.logging_config import configure_logging
from topic_chat.server.web_resource import WebServer

app_logger = logging.getLogger("topic_chat_app")


async def main(config: Config):
    """Run the proxy until SIGINT or SIGTERM."""
    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _signal_handler():
        app_logger.info("Shutdown signal received, initiating graceful shutdown.")
        shutdown_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _signal_handler)

    app_logger.info(
        "Starting application with key configurations",
        extra={
            "log_level": config.log_level,
            "model": config.groq_model,
            "port": config.port,
            "timeout_s": config.request_timeout_seconds,
        },
    )

    server = WebServer(config)
    await server.start()
    try:
        await shutdown_event.wait()
        app_logger.info("Shutdown event received, server is stopping.")
    finally:
        await server.cleanup()


def run():
    config = Config(_cli_parse_args=True)
    configure_logging(config.log_level, config.upstream_log_level)
    asyncio.run(main(config))


if __name__ == "__main__":
    run()
