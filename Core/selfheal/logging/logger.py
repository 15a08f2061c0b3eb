from __future__ import annotations

import logging
import sys

LOGGER_NAME = "selfheal"
HANDLER_NAME = "selfheal-console"
LOG_FORMAT = "[SELF-HEALING][%(levelname)s] %(message)s"

_LEVELS = {
    "silent": logging.CRITICAL + 1,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


def build_logger(level: str = "info", name: str = LOGGER_NAME) -> logging.Logger:
    """Returns the healing logger configured for the requested verbosity.

    ``silent`` suppresses everything, ``info`` reports tier transitions and
    healing results, ``debug`` adds every keep/discard decision.
    """

    normalized = level.lower()
    if normalized not in _LEVELS:
        raise ValueError(f"Unsupported log level: {level}")
    logger = logging.getLogger(name)
    logger.setLevel(_LEVELS[normalized])
    if not any(handler.get_name() == HANDLER_NAME for handler in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.set_name(HANDLER_NAME)
        logger.addHandler(handler)
    return logger
