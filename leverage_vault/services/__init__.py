"""Vault services: accounting, rebalancing, flash-loan periphery and simulated venues."""

from .accounting_core import AccountingCore
from .flash_lender import InMemoryFlashLender
from .flash_loan_orchestrator import FlashLoanOrchestrator
from .lending_market import InMemoryLendingMarket
from .price_oracle import InMemoryPriceOracle, OracleStalenessPolicy, PriceReader
from .rebalancing_engine import RebalancingEngine
from .swap_executors import OracleDexSwapExecutor, RoutedAggregatorSwapExecutor, build_swap_executor
from .token_ledger import TokenLedger
from .vault_engine import VaultEngine, build_engine
from .web3_price_oracle import Web3PriceOracle

__all__ = [
    "AccountingCore",
    "FlashLoanOrchestrator",
    "InMemoryFlashLender",
    "InMemoryLendingMarket",
    "InMemoryPriceOracle",
    "OracleDexSwapExecutor",
    "OracleStalenessPolicy",
    "PriceReader",
    "RebalancingEngine",
    "RoutedAggregatorSwapExecutor",
    "TokenLedger",
    "VaultEngine",
    "Web3PriceOracle",
    "build_engine",
    "build_swap_executor",
]
