from __future__ import annotations

from enum import Enum
import logging

import colorama


class AnsiFore(Enum):
    KEEP = ""
    BLACK = colorama.Fore.BLACK
    RED = colorama.Fore.RED
    GREEN = colorama.Fore.GREEN
    YELLOW = colorama.Fore.YELLOW
    BLUE = colorama.Fore.BLUE
    MAGENTA = colorama.Fore.MAGENTA
    CYAN = colorama.Fore.CYAN
    WHITE = colorama.Fore.WHITE
    BOLD_RED = colorama.Style.BRIGHT + colorama.Fore.RED


class AnsiStyle(Enum):
    BRIGHT = colorama.Style.BRIGHT
    DIM = colorama.Style.DIM
    NORMAL = colorama.Style.NORMAL
    RESET_ALL = colorama.Style.RESET_ALL


def color(col: AnsiFore, msg: str, reset: bool = True) -> str:
    s = col.value + msg
    if reset and col.value:
        s += AnsiStyle.RESET_ALL.value
    return s


class SymsizeLogFormatter(logging.Formatter):
    """Logging formatter that colours the level name."""

    LEVEL_COLORS = {
        "DEBUG": AnsiFore.CYAN,
        "INFO": AnsiFore.GREEN,
        "WARNING": AnsiFore.YELLOW,
        "ERROR": AnsiFore.RED,
        "CRITICAL": AnsiFore.BOLD_RED,
    }

    def __init__(self, *, include_timestamp: bool) -> None:
        fmt = "%(asctime)s " if include_timestamp else ""
        fmt += "%(levelname)s %(message)s"
        super().__init__(fmt=fmt, style="%")

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)
        col = self.LEVEL_COLORS.get(record.levelname, AnsiFore.KEEP)
        return color(col, formatted)


def setup_log(
    log_level: int | str = logging.INFO,
    include_timestamp: bool = False,
) -> None:
    """Set up the logging for symsize."""
    colorama.init()

    if isinstance(log_level, str):
        log_level = logging.getLevelName(log_level)

    logging.basicConfig(level=log_level, force=True)
    logging.getLogger().handlers[0].setFormatter(
        SymsizeLogFormatter(include_timestamp=include_timestamp)
    )
