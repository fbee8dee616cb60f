import logging

from rich.logging import RichHandler

from utils.config import get_settings


class CenteredFormatter(logging.Formatter):
    """Pads logger names to the widest name seen so far, so messages line up."""

    longest_name_length = 14

    def __init__(self, fmt=None, datefmt=None, style="%", initial_width=14):
        super().__init__(fmt, datefmt, style)
        CenteredFormatter.longest_name_length = initial_width

    def format(self, record):
        CenteredFormatter.longest_name_length = max(
            CenteredFormatter.longest_name_length, len(record.name)
        )
        record.name = record.name.center(CenteredFormatter.longest_name_length)
        return super().format(record)


def _level() -> int:
    return logging.DEBUG if get_settings().debug else logging.INFO


def get_logger(name=None) -> logging.Logger:
    """
    Return a logger writing through a RichHandler.

    Handlers are attached once per name; later calls only return the logger.
    """
    name = name or "storefront"
    logger = logging.getLogger(name)
    level = _level()
    logger.setLevel(level)

    if not logger.handlers:
        handler = RichHandler(
            show_time=True,
            show_level=True,
            show_path=False,
            rich_tracebacks=True,
            log_time_format="[%X]",
        )
        handler.setFormatter(CenteredFormatter("[%(name)s]  %(message)s"))
        handler.setLevel(level)
        logger.addHandler(handler)
        # Textual owns the terminal while the app runs, keep records off the root
        logger.propagate = False
        logger.debug(f"Logger for '{name}' initialized.")

    return logger
