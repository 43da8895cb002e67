"""Logging setup shared by the API, the scripts and the simulations."""

import logging
from typing import Iterable


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Chatty HTTP/RPC client loggers kept at WARNING unless debugging.
NOISY_LOGGERS = ("web3", "urllib3", "httpx")


def setup_logging(debug: bool = False, quiet: Iterable[str] = NOISY_LOGGERS) -> None:
    """Configure the root logger once.

    ``debug`` switches the engine to DEBUG (swap fills, oracle reads) and
    leaves the client libraries in ``quiet`` unfiltered.
    """
    if logging.getLogger().handlers:
        return
    logging.basicConfig(level=logging.DEBUG if debug else logging.INFO, format=LOG_FORMAT)
    if not debug:
        for name in quiet:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
