import logging
from typing import Optional, Union


def default_formatter(fmt: Optional[str] = None) -> logging.Formatter:
    """Returns a logging formatter with a default format if none is specified."""
    default_fmt = "[%(asctime)s] %(levelname)s: %(name)s: %(message)s"
    return logging.Formatter(fmt or default_fmt)


def setup_logger(name: Optional[str] = None, level: Union[int, str] = logging.INFO) -> logging.Logger:
    """Attach a single stream handler to ``name`` (the root logger by default).

    Calling this again replaces the handler instead of stacking a second one.
    """
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        if getattr(handler, "_shop_handler", False):
            logger.removeHandler(handler)
    handler = logging.StreamHandler()
    handler.setFormatter(default_formatter())
    handler._shop_handler = True
    logger.addHandler(handler)
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    return logger
