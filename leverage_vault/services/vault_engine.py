"""Wiring of the ledger, oracle, market, vault core and periphery into one engine."""

from dataclasses import dataclass
import logging
from typing import Optional

from ..core.atomic import TransactionManager
from ..core.config import AppSettings
from ..core.web3_client_manager import Web3ClientManager
from ..models.collaborators import PriceOracle, SwapExecutor
from ..models.enums import SwapVenue
from ..models.exceptions import ConfigurationError
from ..models.vault import PositionSnapshot, VaultParameters
from .accounting_core import AccountingCore
from .flash_lender import InMemoryFlashLender
from .flash_loan_orchestrator import FlashLoanOrchestrator
from .lending_market import InMemoryLendingMarket
from .price_oracle import Clock, InMemoryPriceOracle, OracleStalenessPolicy, PriceReader, now_epoch
from .rebalancing_engine import RebalancingEngine
from .swap_executors import build_swap_executor, pool_addresses
from .token_ledger import TokenLedger
from .web3_price_oracle import Web3PriceOracle


logger = logging.getLogger(__name__)


@dataclass
class VaultEngine:
    """Every component of one vault deployment sharing a transaction manager."""

    settings: AppSettings
    transactions: TransactionManager
    ledger: TokenLedger
    oracle: PriceOracle
    prices: PriceReader
    market: InMemoryLendingMarket
    core: AccountingCore
    rebalancer: RebalancingEngine
    lender: InMemoryFlashLender
    swapper: SwapExecutor
    orchestrator: FlashLoanOrchestrator

    def fund(self, account: str, asset: str, amount: int) -> None:
        """Mint test tokens to ``account``."""
        self.ledger.mint(asset, account, amount)

    def set_price(self, asset: str, price: int, updated_at: Optional[int] = None) -> None:
        if not isinstance(self.oracle, InMemoryPriceOracle):
            raise ConfigurationError("Prices are read from chain and cannot be set", asset=asset)
        self.oracle.set_price(asset, price, updated_at)

    def snapshot(self) -> PositionSnapshot:
        return self.core.position_snapshot()


def vault_parameters(settings: AppSettings) -> VaultParameters:
    """Validated vault parameters from ``settings``."""
    return VaultParameters(
        collateral_asset=settings.collateral_asset,
        debt_asset=settings.debt_asset,
        target_leverage_bps=settings.target_leverage_bps,
        lower_bound_bps=settings.lower_bound_bps,
        upper_bound_bps=settings.upper_bound_bps,
        max_subsidy_bps=settings.max_subsidy_bps,
        min_deviation_bps=settings.min_deviation_bps,
        max_subsidy_base_value=settings.max_subsidy_base_value,
        withdrawal_fee_bps=settings.withdrawal_fee_bps,
        fee_receiver=settings.fee_receiver,
    )


def _build_oracle(settings: AppSettings, transactions: TransactionManager, clock: Clock) -> PriceOracle:
    if settings.web3_enabled:
        if not settings.web3_rpc_url:
            raise ConfigurationError("web3.rpc_url is required when web3 is enabled")
        client = Web3ClientManager(settings.web3_rpc_url, abi_json=settings.web3_feed_abi_json)
        logger.info("Using on-chain price feeds: %s", sorted(settings.web3_price_feeds))
        return Web3PriceOracle(client, settings.web3_price_feeds)
    oracle = InMemoryPriceOracle(transactions, clock=clock)
    oracle.set_price(settings.collateral_asset, settings.collateral_price)
    oracle.set_price(settings.debt_asset, settings.debt_price)
    return oracle


def build_engine(
    settings: AppSettings,
    oracle: Optional[PriceOracle] = None,
    clock: Clock = now_epoch,
) -> VaultEngine:
    """Assemble a funded in-memory deployment described by ``settings``.

    The market, flash lender and swap pools are seeded with the configured
    liquidity. ``oracle`` overrides the configured price source.
    """
    transactions = TransactionManager()
    ledger = TokenLedger(transactions)
    ledger.register_asset(settings.collateral_asset, settings.collateral_decimals)
    ledger.register_asset(settings.debt_asset, settings.debt_decimals)

    if oracle is None:
        oracle = _build_oracle(settings, transactions, clock)
    prices = PriceReader(oracle, OracleStalenessPolicy.from_seconds(settings.max_price_age_sec), clock=clock)

    market = InMemoryLendingMarket(ledger, oracle, transactions, max_ltv_bps=settings.market_max_ltv_bps)
    ledger.mint(settings.debt_asset, market.address, settings.market_liquidity)

    core = AccountingCore(
        settings.vault_address,
        vault_parameters(settings),
        market,
        prices,
        ledger,
        transactions,
        balance_tolerance=settings.balance_tolerance,
    )
    rebalancer = RebalancingEngine(core)

    lender = InMemoryFlashLender(ledger, transactions, fee_bps=settings.flash_fee_bps)
    ledger.mint(settings.debt_asset, lender.address, settings.flash_liquidity)

    try:
        venue = SwapVenue(settings.swap_venue)
    except ValueError as exc:
        raise ConfigurationError("Unsupported swap venue", venue=settings.swap_venue) from exc
    swapper = build_swap_executor(venue, ledger, oracle, settings.swap_pool_fees_bps)
    for pool in pool_addresses(swapper):
        ledger.mint(settings.collateral_asset, pool, settings.dex_liquidity)
        ledger.mint(settings.debt_asset, pool, settings.dex_liquidity)

    orchestrator = FlashLoanOrchestrator(
        core,
        rebalancer,
        lender,
        swapper,
        swap_tolerance=settings.swap_tolerance,
        default_slippage_bps=settings.default_slippage_bps,
    )
    logger.info(
        "Vault engine ready vault=%s pair=%s/%s venue=%s",
        core.address,
        settings.collateral_asset,
        settings.debt_asset,
        venue.value,
    )
    return VaultEngine(
        settings=settings,
        transactions=transactions,
        ledger=ledger,
        oracle=oracle,
        prices=prices,
        market=market,
        core=core,
        rebalancer=rebalancer,
        lender=lender,
        swapper=swapper,
        orchestrator=orchestrator,
    )
