"""In-memory lending market simulation holding collateral and debt positions."""

from dataclasses import dataclass, field
import logging
from typing import Dict, Tuple

from ..common.protocol_constants import ONE_HUNDRED_PERCENT_BPS, Rounding, token_to_base
from ..core.atomic import StatefulComponent, TransactionManager
from ..models.collaborators import LendingMarket, PriceOracle
from ..models.enums import MarketOperation
from ..models.exceptions import ExternalCallError
from .token_ledger import TokenLedger


logger = logging.getLogger(__name__)

MARKET_ADDRESS = "lending-market"


@dataclass
class MarketState:
    """Holds mutable market positions and simulation knobs."""

    collateral: Dict[str, Dict[str, int]] = field(default_factory=dict)
    debt: Dict[str, Dict[str, int]] = field(default_factory=dict)
    pending_interest: Dict[Tuple[str, str], int] = field(default_factory=dict)
    rounding_shortfall: Dict[MarketOperation, int] = field(default_factory=dict)


class InMemoryLendingMarket(LendingMarket, StatefulComponent):
    """Aave-like market with max-LTV checks, interest hooks and rounding knobs.

    ``set_rounding_shortfall`` makes an operation deliver ``units`` less than
    requested (negative values over-deliver), which is how index rounding in a
    real market shows up to the vault.
    """

    def __init__(
        self,
        ledger: TokenLedger,
        oracle: PriceOracle,
        transactions: TransactionManager,
        max_ltv_bps: int = 8_500,
        address: str = MARKET_ADDRESS,
    ) -> None:
        if not 0 < max_ltv_bps < ONE_HUNDRED_PERCENT_BPS:
            raise ValueError("max_ltv_bps must be between 0 and 10000")
        self.address = address
        self._ledger = ledger
        self._oracle = oracle
        self._max_ltv_bps = max_ltv_bps
        self._transactions = transactions
        self._state = MarketState()
        transactions.register(self)

    # ------------------------------------------------------------------
    # Simulation controls
    # ------------------------------------------------------------------
    def set_rounding_shortfall(self, operation: MarketOperation, units: int) -> None:
        self._state.rounding_shortfall[operation] = units

    def accrue_interest(self, account: str, asset: str, amount: int) -> None:
        """Add ``amount`` of interest to ``account``'s debt immediately."""
        self._add(self._state.debt, account, asset.upper(), amount)
        logger.info("Interest accrued account=%s asset=%s amount=%s", account, asset, amount)

    def schedule_interest(self, account: str, asset: str, amount: int) -> None:
        """Accrue ``amount`` on the next state-changing call (index update)."""
        key = (account, asset.upper())
        self._state.pending_interest[key] = self._state.pending_interest.get(key, 0) + amount

    def supply_for(self, payer: str, account: str, asset: str, amount: int) -> None:
        """Supply collateral paid by ``payer`` on behalf of ``account``."""
        with self._transactions.atomic("market.supply"):
            self._apply_pending_interest()
            key = asset.upper()
            self._ledger.transfer(key, payer, self.address, amount)
            credited = amount - self._shortfall(MarketOperation.SUPPLY)
            self._add(self._state.collateral, account, key, max(credited, 0))

    # ------------------------------------------------------------------
    # LendingMarket interface
    # ------------------------------------------------------------------
    def supply(self, account: str, asset: str, amount: int) -> None:
        if amount <= 0:
            raise ExternalCallError("Supply amount must be > 0", amount=amount)
        self.supply_for(account, account, asset, amount)

    def withdraw_collateral(self, account: str, asset: str, amount: int) -> int:
        with self._transactions.atomic("market.withdraw"):
            self._apply_pending_interest()
            key = asset.upper()
            held = self.get_collateral_balance(account, key)
            if amount <= 0 or amount > held:
                raise ExternalCallError("Invalid withdraw amount", amount=amount, collateral=held)
            self._add(self._state.collateral, account, key, -amount)
            self._require_healthy(account)
            sent = max(amount - self._shortfall(MarketOperation.WITHDRAW), 0)
            self._ledger.transfer(key, self.address, account, sent)
            return amount

    def borrow(self, account: str, asset: str, amount: int) -> int:
        with self._transactions.atomic("market.borrow"):
            self._apply_pending_interest()
            key = asset.upper()
            if amount <= 0:
                raise ExternalCallError("Borrow amount must be > 0", amount=amount)
            liquidity = self._ledger.balance_of(key, self.address)
            if liquidity < amount:
                raise ExternalCallError("Insufficient market liquidity", amount=amount, liquidity=liquidity)
            self._add(self._state.debt, account, key, amount)
            self._require_healthy(account)
            sent = max(amount - self._shortfall(MarketOperation.BORROW), 0)
            self._ledger.transfer(key, self.address, account, sent)
            return amount

    def repay(self, account: str, asset: str, amount: int) -> int:
        with self._transactions.atomic("market.repay"):
            self._apply_pending_interest()
            key = asset.upper()
            outstanding = self.get_debt_balance(account, key)
            if amount <= 0 or outstanding == 0:
                raise ExternalCallError("Nothing to repay", amount=amount, debt=outstanding)
            paid = min(amount, outstanding)
            self._ledger.transfer(key, account, self.address, paid)
            reduction = min(max(paid - self._shortfall(MarketOperation.REPAY), 0), outstanding)
            self._add(self._state.debt, account, key, -reduction)
            return paid

    def get_collateral_balance(self, account: str, asset: str) -> int:
        return self._state.collateral.get(account, {}).get(asset.upper(), 0)

    def get_debt_balance(self, account: str, asset: str) -> int:
        return self._state.debt.get(account, {}).get(asset.upper(), 0)

    def get_collateral_value(self, account: str) -> int:
        return self._value(self._state.collateral.get(account, {}))

    def get_debt_value(self, account: str) -> int:
        return self._value(self._state.debt.get(account, {}), Rounding.CEIL)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _value(self, holdings: Dict[str, int], rounding: Rounding = Rounding.FLOOR) -> int:
        total = 0
        for asset, amount in holdings.items():
            if amount == 0:
                continue
            price, _ = self._oracle.get_price(asset)
            total += token_to_base(amount, price, self._ledger.decimals(asset), rounding)
        return total

    def _require_healthy(self, account: str) -> None:
        debt_value = self.get_debt_value(account)
        if debt_value == 0:
            return
        max_debt = self.get_collateral_value(account) * self._max_ltv_bps // ONE_HUNDRED_PERCENT_BPS
        if debt_value > max_debt:
            raise ExternalCallError("Position would exceed max LTV", debt_value=debt_value, max_debt=max_debt)

    def _apply_pending_interest(self) -> None:
        if not self._state.pending_interest:
            return
        pending = self._state.pending_interest
        self._state.pending_interest = {}
        for (account, asset), amount in pending.items():
            self.accrue_interest(account, asset, amount)

    def _shortfall(self, operation: MarketOperation) -> int:
        return self._state.rounding_shortfall.get(operation, 0)

    @staticmethod
    def _add(book: Dict[str, Dict[str, int]], account: str, asset: str, delta: int) -> None:
        position = book.setdefault(account, {})
        position[asset] = position.get(asset, 0) + delta
