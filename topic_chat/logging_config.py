import logging
from typing import Dict, Optional, Tuple

from rich.logging import RichHandler

APP_LOGGER = "topic_chat_app"
ACCESS_LOGGER = "http_access"
UPSTREAM_LOGGER = "groq_upstream"

NOISY_DEPENDENCIES = ("asyncio", "aiohttp", "urllib3")
TRACE = "TRACE"


def get_loggers():
    """Returns the app, access and upstream loggers."""
    return (
        logging.getLogger(APP_LOGGER),
        logging.getLogger(ACCESS_LOGGER),
        logging.getLogger(UPSTREAM_LOGGER),
    )


def _level_number(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def resolve_levels(
    log_level: str = "INFO", upstream_log_level: Optional[str] = None
) -> Tuple[Dict[str, int], int]:
    """
    Map the configured level names onto per-logger levels.

    Returns ``(levels, deps_level)`` where ``levels`` is keyed by logger name.
    TRACE means DEBUG everywhere, dependencies included. DEBUG opens the
    dependencies to INFO; anything else holds them at WARNING. The upstream
    logger follows ``log_level`` unless ``upstream_log_level`` is given, so the
    fallback attempts can be watched without a noisy access log.
    """
    name = log_level.upper()
    if name == TRACE:
        app_level, deps_level = logging.DEBUG, logging.DEBUG
    else:
        app_level = _level_number(name)
        deps_level = logging.INFO if app_level <= logging.DEBUG else logging.WARNING

    if upstream_log_level:
        upstream_name = upstream_log_level.upper()
        upstream_level = (
            logging.DEBUG if upstream_name == TRACE else _level_number(upstream_name)
        )
    else:
        upstream_level = app_level

    levels = {
        APP_LOGGER: app_level,
        ACCESS_LOGGER: app_level,
        UPSTREAM_LOGGER: upstream_level,
    }
    return levels, deps_level


_STANDARD_LOG_RECORD_KEYS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__
) | {"message", "asctime"}


def _format_extra(value) -> str:
    if isinstance(value, (list, tuple)):
        return ",".join(str(item) for item in value)
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


class SingleLineExtrasFilter(logging.Filter):
    """
    Fold ``extra=`` fields into the message as ``key=value`` pairs.

    RichHandler would otherwise drop them. Fields set to None are left out,
    and lists such as the attempted models are joined with commas.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        extra_keys = [
            k for k in record.__dict__ if k not in _STANDARD_LOG_RECORD_KEYS
        ]
        if not extra_keys:
            return True

        pairs = []
        for key in extra_keys:
            value = record.__dict__.pop(key)
            if value is not None:
                pairs.append(f"{key}={_format_extra(value)}")

        if pairs:
            record.msg = f"{record.getMessage()} | {' '.join(pairs)}"
            record.args = ()
        return True


def configure_logging(
    log_level: str = "INFO", upstream_log_level: Optional[str] = None
):
    """Install one RichHandler on the root logger and set per-logger levels."""
    levels, deps_level = resolve_levels(log_level, upstream_log_level)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(min(deps_level, *levels.values()))

    handler = RichHandler(
        rich_tracebacks=True,
        show_path=True,
        show_time=True,
        markup=False,
        show_level=True,
    )
    handler.addFilter(SingleLineExtrasFilter())
    root_logger.addHandler(handler)

    for name, level in levels.items():
        logging.getLogger(name).setLevel(level)
    for dep_name in NOISY_DEPENDENCIES:
        logging.getLogger(dep_name).setLevel(deps_level)

    app_logger, access_logger, upstream_logger = get_loggers()
    app_logger.info(
        "Logging configured",
        extra={
            name: logging.getLevelName(level)
            for name, level in [*levels.items(), ("dependencies", deps_level)]
        },
    )
    return app_logger, access_logger, upstream_logger
