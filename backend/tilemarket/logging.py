"""
Logging configuration for the tile state API.
"""

import logging
import sys

UPSTREAM_LOGGERS = ("httpx", "httpcore", "web3", "urllib3")


def setup_logging(debug: bool = False) -> logging.Logger:
    """
    Configure application logging.

    :param debug: Emit DEBUG records when True
    :type debug: bool
    :return: Root logger for the tile state application
    :rtype: logging.Logger
    """
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )
    # httpx logs every request at INFO; store walks issue thousands
    for name in UPSTREAM_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if debug else logging.WARNING)

    return logging.getLogger('tilemarket')


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific module.

    :param name: The module name for the logger
    :type name: str
    :return: Logger instance for the specified module
    :rtype: logging.Logger
    """
    return logging.getLogger(f'tilemarket.{name}')
