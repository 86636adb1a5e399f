"""
Structured logging for apkanalyzer.

Log events are structlog key/value records. While an APK is analyzed, the
package, the archive entry and the DEX file being read are bound as context
variables, so a decoder only logs what it knows locally (a chunk token, an
offset) and every record still says where it came from::

    with log_context(apk="app.apk", entry="AndroidManifest.xml"):
        decode_xml(data)   # records carry apk=..., entry=..., offset=0x...

androguard logs through loguru; its output is switched off here so that only
apkanalyzer's own records reach the console.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from .config import Config

# Context keys bound while analyzing; decoders add ``offset`` to single events
CONTEXT_KEYS = ("apk", "entry", "dex")
OFFSET_KEYS = ("offset", "chunk_offset", "limit")

_quiet_libraries: set[str] = set()


def quiet_androguard() -> None:
    """Switch off androguard's loguru output. Safe to call repeatedly."""
    if "androguard" in _quiet_libraries:
        return
    from loguru import logger as loguru_logger

    loguru_logger.disable("androguard")
    logging.getLogger("androguard").setLevel(logging.ERROR)
    _quiet_libraries.add("androguard")


def format_offsets(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Render binary offsets as hex, the way they appear in a hex dump."""
    for key in OFFSET_KEYS:
        value = event_dict.get(key)
        if isinstance(value, int) and not isinstance(value, bool):
            event_dict[key] = f"{value:#x}"
    return event_dict


def _use_json(log_format: str) -> bool:
    if log_format == "auto":
        return not sys.stderr.isatty()
    return log_format == "json"


def setup_logging(config: Config | None = None) -> None:
    """Configure structlog, stdlib logging and androguard's loguru output.

    Args:
        config: Optional configuration. Without one, WARNING level and
            automatic format selection keep CLI output readable.
    """
    log_level = config.log_level if config else "WARNING"
    log_format = config.log_format if config else "auto"
    level = getattr(logging, log_level, logging.WARNING)

    # Records of other libraries going through stdlib logging
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=Console(stderr=True),
                show_path=False,
                rich_tracebacks=True,
                tracebacks_show_locals=log_level == "DEBUG",
            )
        ],
        force=True,
    )
    quiet_androguard()

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        format_offsets,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if _use_json(log_format):
        renderer: list[structlog.types.Processor] = [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderer = [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]

    structlog.configure(
        processors=shared_processors + renderer,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_context(*, apk: str | None = None, entry: str | None = None, dex: str | None = None) -> None:
    """Bind the APK (and optionally entry and DEX file) under analysis to later records."""
    values = {"apk": apk, "entry": entry, "dex": dex}
    structlog.contextvars.bind_contextvars(**{k: v for k, v in values.items() if v is not None})


@contextmanager
def log_context(**values: str) -> Iterator[None]:
    """Bind context keys for the duration of a block, restoring the previous values after."""
    unknown = set(values) - set(CONTEXT_KEYS)
    if unknown:
        raise ValueError(f"Unknown log context keys: {sorted(unknown)}")
    with structlog.contextvars.bound_contextvars(**values):
        yield


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
