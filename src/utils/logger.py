import logging

from rich.logging import RichHandler

from utils import config


class CenteredFormatter(logging.Formatter):
    """Pads logger names so the message column lines up across modules."""

    width = 14

    def format(self, record):
        CenteredFormatter.width = max(CenteredFormatter.width, len(record.name))
        record.name = record.name.center(CenteredFormatter.width)
        return super().format(record)


def get_logger(name=None) -> logging.Logger:
    """
    Return the named logger, attaching a RichHandler on first use.

    Level is INFO, or DEBUG when the DEBUG env var is set.
    """
    logger = logging.getLogger(name or "storefront")
    level = logging.DEBUG if config.DEBUG else logging.INFO
    logger.setLevel(level)

    if logger.handlers:
        return logger

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
    # textual owns the terminal; keep records out of the root logger
    logger.propagate = False
    logger.debug(f"logger '{logger.name}' ready")
    return logger
