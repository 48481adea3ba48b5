import logging
import os

from rich.logging import RichHandler

_textual_mode = False


class CenteredFormatter(logging.Formatter):
    longest_name_length = 14  # grows with the longest logger name seen

    def __init__(self, fmt=None, datefmt=None, style="%", initial_width=14):
        super().__init__(fmt, datefmt, style)
        CenteredFormatter.longest_name_length = initial_width

    def format(self, record):
        CenteredFormatter.longest_name_length = max(
            CenteredFormatter.longest_name_length, len(record.name)
        )
        width = CenteredFormatter.longest_name_length
        # format a copy, other handlers still see the raw name
        record = logging.makeLogRecord(record.__dict__)
        record.name = record.name.center(width)
        return super().format(record)


def _log_level() -> int:
    return logging.DEBUG if os.getenv("DEBUG") else logging.INFO


def _make_handler() -> logging.Handler:
    if _textual_mode:
        # imported lazily, only needed once the app is running
        from textual.logging import TextualHandler

        handler = TextualHandler()
    else:
        handler = RichHandler(
            show_time=True,
            show_level=True,
            show_path=False,
            rich_tracebacks=True,
            log_time_format="[%X]",
        )
    handler.setFormatter(CenteredFormatter("[%(name)s]  %(message)s"))
    handler.setLevel(_log_level())
    return handler


def get_logger(name=None) -> logging.Logger:
    """
    Return a logger that writes through rich, or through textual's devtools
    console once use_textual_logging() has been called.
    """
    if name is None:
        name = "levelup"
    logger = logging.getLogger(name)
    logger.setLevel(_log_level())

    if not logger.handlers:
        logger.addHandler(_make_handler())
        logger.propagate = False
        logger.debug(f"Logger for '{name}' initialized.")

    return logger


def use_textual_logging() -> None:
    """
    Swap every handler created by get_logger for textual's handler.
    Writing to the terminal while the app owns it would corrupt the screen.
    """
    global _textual_mode
    _textual_mode = True
    for logger in logging.Logger.manager.loggerDict.values():
        if not isinstance(logger, logging.Logger) or logger.propagate:
            continue
        if any(isinstance(h, RichHandler) for h in logger.handlers):
            logger.handlers.clear()
            logger.addHandler(_make_handler())
