"""Logging setup.

Modules log through loguru and bind their context once:

    from loguru import logger

    log = logger.bind(component="matcher", demand="payments")
    log.info("Matching pool found: {name}", name="pool-payments")

Bound keys from ``CONTEXT_KEYS`` are appended to the location of every
human-readable line. With ``json = true`` the console sink emits one JSON
record per line instead, for cluster log collectors.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from loguru import logger

type LogLevel = Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"]

CONTEXT_KEYS = ("component", "workload", "demand", "pool", "outcome")

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> <level>{level: <7}</level> "
    "<cyan>{name}</cyan><dim>{extra[context]}</dim> {message}"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} {level: <7} {name}:{line}{extra[context]} {message}"


@dataclass(frozen=True, slots=True)
class LogConfig:
    """[logging] section.

    Attributes:
        level: Minimum level for the console sink.
        json: Emit console records as JSON lines.
        file: Optional log file, always written at DEBUG.
        rotation: When to rotate ``file`` (loguru syntax, e.g. "50 MB", "1 day").
        retention: Rotated files to keep.
    """

    level: LogLevel = "INFO"
    json: bool = False
    console: bool = True
    file: str | None = None
    rotation: str = "50 MB"
    retention: int = 10


def _render_context(record: Any) -> None:
    extra = record["extra"]
    pairs = " ".join(f"{k}={extra[k]}" for k in CONTEXT_KEYS if k in extra)
    extra["context"] = f" [{pairs}]" if pairs else ""


def setup_logging(config: LogConfig) -> list[int]:
    """Replace loguru's default sink with the configured ones.

    Returns the handler ids, for :func:`teardown_logging`.
    """
    logger.remove()
    logger.configure(patcher=_render_context)
    logger.enable("poolwright")

    ids: list[int] = []
    if config.console:
        if config.json:
            ids.append(logger.add(sys.stderr, level=config.level, serialize=True, filter="poolwright"))
        else:
            ids.append(logger.add(
                sys.stderr, level=config.level, format=CONSOLE_FORMAT, colorize=True, filter="poolwright",
            ))
    if config.file:
        Path(config.file).parent.mkdir(parents=True, exist_ok=True)
        ids.append(logger.add(
            config.file,
            level="DEBUG",
            format=FILE_FORMAT,
            rotation=config.rotation,
            retention=config.retention,
            compression="zip",
            diagnose=False,
        ))
    return ids


def teardown_logging(handler_ids: list[int]) -> None:
    for hid in handler_ids:
        logger.remove(hid)
