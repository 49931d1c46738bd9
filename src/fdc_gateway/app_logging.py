"""Logging configuration helpers."""

import logging

# httpx logs full request URLs at INFO, and those carry the api_key parameter.
_QUIET_LOGGERS = ("httpx", "httpcore")


def configure_logging(level: int | str = logging.INFO) -> None:
    """Configure gateway logging with a single stream handler.

    ``level`` accepts either a logging constant or a name such as ``"DEBUG"``.
    """
    logger = logging.getLogger("fdc_gateway")
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s: %(name)s: %(message)s")
    )
    logger.addHandler(handler)
    logger.propagate = False
