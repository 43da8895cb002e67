"""Core utilities for configuration, logging and transactions."""

from .atomic import StatefulComponent, TransactionManager
from .config import AppSettings, load_settings
from .logging_config import get_logger, setup_logging
from .web3_client_manager import Web3ClientManager

__all__ = [
    "AppSettings",
    "load_settings",
    "StatefulComponent",
    "TransactionManager",
    "Web3ClientManager",
    "get_logger",
    "setup_logging",
]
