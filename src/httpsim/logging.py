# src/httpsim/logging.py
"""Structured logging for httpsim.

structlog events (``httpsim.*`` modules) and stdlib records (uvicorn,
httpx) share one ``ProcessorFormatter`` handler on the root logger, so a
server started with ``--json-logs`` emits nothing but JSON lines.

Usage:
    from httpsim.logging import configure_logging, get_logger

    configure_logging(json_output=True, level="DEBUG")
    get_logger(__name__).info("httpsim config published", resources=3)
"""

import logging
import sys
from typing import Any, TextIO

import structlog
from structlog.stdlib import ProcessorFormatter
from structlog.typing import Processor

# Per-connection chatter from the proxy client and the access log.
_QUIET_LOGGERS: tuple[str, ...] = (
    "httpx",
    "httpcore",
    "uvicorn.access",
)


def _resolve_level(level: str) -> int:
    levels = logging.getLevelNamesMapping()
    name = level.upper()
    if name not in levels:
        raise ValueError(f"unknown log level: {level!r}")
    return levels[name]


def _pre_chain() -> list[Processor]:
    """Processors run for every record before rendering."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]


def _render_chain(json_output: bool, stream: TextIO) -> list[Processor]:
    if json_output:
        return [
            ProcessorFormatter.remove_processors_meta,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    return [
        ProcessorFormatter.remove_processors_meta,
        structlog.dev.ConsoleRenderer(colors=stream.isatty()),
    ]


def configure_logging(
    *,
    json_output: bool = False,
    level: str = "INFO",
    stream: TextIO | None = None,
) -> None:
    """Route structlog and stdlib logging through one handler.

    Args:
        json_output: Emit one JSON object per line instead of console text.
        level: Root log level name, case-insensitive.
        stream: Output stream (default: the current ``sys.stdout``).

    Raises:
        ValueError: If ``level`` is not a logging level name.
    """
    log_level = _resolve_level(level)
    out = stream if stream is not None else sys.stdout
    pre_chain = _pre_chain()

    structlog.configure(
        processors=[*pre_chain, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Reconfiguration (tests, CLI) needs fresh loggers.
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(out)
    handler.setFormatter(ProcessorFormatter(processors=_render_chain(json_output, out), foreign_pre_chain=pre_chain))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)

    # Never louder than the root level.
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str, **initial_values: Any) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger for a module, optionally with bound fields."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name, **initial_values)
    return logger
