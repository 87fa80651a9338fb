"""Logging configuration helpers."""

import logging

_PACKAGE_LOGGER = "studio_pricing"


def configure_logging(level: int = logging.INFO) -> None:
    """Attach one stream handler to the package logger, once."""
    logger = logging.getLogger(_PACKAGE_LOGGER)
    logger.setLevel(level)
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s: %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
