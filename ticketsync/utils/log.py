"""
Default logging interface
"""

import logging
import os


_LOG_FORMATTER = logging.Formatter(
    "[%(asctime)s][%(threadName)s][%(levelname)s][%(name)s]:%(message)s"
)

# Environment variable overriding the default log level.
_LOG_LEVEL_ENV_VAR = "TICKETSYNC_LOG_LEVEL"


def get_log_level(default: int = logging.INFO) -> int:
    """
    Get the log level configured in the environment.

    :param default: The level to use if none is configured or the name is unknown.
    :return: The numeric log level.
    """
    level_name = os.getenv(_LOG_LEVEL_ENV_VAR)
    if not level_name:
        return default
    level = logging.getLevelName(level_name.strip().upper())
    # getLevelName() returns a "Level X" string for unknown names.
    return level if isinstance(level, int) else default


def get_default_logger(name: str) -> logging.Logger:
    """
    Get default logger for a given name.

    :param name: The logger name.
    :return: The logger object.
    """

    # Library users that do not configure logging should not see
    # "No handlers could be found for logger XXX".
    if len(logging.getLogger().handlers) == 0:
        logging.getLogger().addHandler(logging.NullHandler())

    log = logging.getLogger(name)
    log.setLevel(get_log_level())

    if len(log.handlers) == 0:
        handler = logging.StreamHandler()
        handler.setFormatter(_LOG_FORMATTER)
        log.addHandler(handler)
        log.propagate = False

    return log
