# Configuration settings should be set in app.config
# The SAJSONAPI class variables hold the defaults, environment variables are used as a last resort
import os
import sys
import logging
from flask import current_app
from typing import Any, Optional


class SAJSONAPI:
    """Default configuration, overridden by the Flask app config (if any)

    DEFAULT_PAGE_LIMIT: page[limit] used when the client didn't send one
    MAX_PAGE_LIMIT: upper bound for page[limit], None means no maximum
    PAGE_UNLIMITED: page[limit] value requesting all items (only honored without MAX_PAGE_LIMIT)
    """

    DEFAULT_PAGE_LIMIT = 25
    MAX_PAGE_LIMIT = None
    PAGE_UNLIMITED = "none"
    LOGLEVEL = logging.WARNING

    @staticmethod
    def init_logging(loglevel: int = logging.WARNING) -> logging.Logger:
        """
        Specify the log format used by the package logger
        The webserver will catch stderr so we send everything there
        """
        log = logging.getLogger("sajsonapi")
        if log.level == logging.NOTSET:
            handler = logging.StreamHandler(sys.stderr)
            formatter = logging.Formatter("[%(asctime)s] %(levelname)s: %(message)s")
            handler.setFormatter(formatter)
            log.setLevel(loglevel)
            log.addHandler(handler)
        return log


def get_config(option: str) -> Optional[Any]:
    """Retrieve a configuration parameter
    lookup order: flask app config, SAJSONAPI class settings, environment
    :param option: configuration parameter
    :return: configuration value
    """
    try:
        return current_app.config[option]
    except (KeyError, RuntimeError):
        # RuntimeError: working outside of the app context
        pass
    result = getattr(SAJSONAPI, option, None)
    if result is None:
        result = os.environ.get(option, None)
    return result


def is_debug() -> bool:
    """
    We use the loglevel to check whether we're running in debug mode
    :return: whether the app is in debug mode
    """
    return log.getEffectiveLevel() < logging.INFO


#
# logging initialization
#
try:
    DEBUG = os.getenv("DEBUG", logging.WARNING)
    LOGLEVEL = int(DEBUG)
except ValueError:  # pragma: no cover
    print(f'Invalid LogLevel in DEBUG Environment Variable! "{DEBUG}"')
    LOGLEVEL = logging.INFO

log = SAJSONAPI.init_logging(LOGLEVEL)
