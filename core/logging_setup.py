from __future__ import annotations
import logging

# SQL echo is only useful when debugging queries
NOISY_LOGGERS = ("sqlalchemy.engine",)


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_console_logging(
    level: int | str = logging.DEBUG,
    quiet: tuple[str, ...] = NOISY_LOGGERS,
) -> None:
    """
    Call once at CLI or worker start. Prints grading logs to console.
    Accepts a level name ("INFO") as read from LOG_LEVEL.
    """
    level = _resolve_level(level)
    for name in quiet:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    root = logging.getLogger()
    if root.handlers:
        # already configured (avoid duplicates)
        root.setLevel(level)
        return

    root.setLevel(level)
    h = logging.StreamHandler()
    fmt = logging.Formatter(
        "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    h.setFormatter(fmt)
    root.addHandler(h)
