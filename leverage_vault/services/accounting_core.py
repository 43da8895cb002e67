"""Share accounting for the leveraged vault.

Net asset value is always ``value(collateral) - value(debt)`` read from the
lending market. Collateral is valued rounding down and debt rounding up, so
every derived figure (NAV, leverage, share price) is conservative for the vault.
"""

from dataclasses import dataclass, field
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from ..common.protocol_constants import (
    BALANCE_DIFF_TOLERANCE,
    UNLIMITED,
    VIRTUAL_ASSETS,
    VIRTUAL_SHARES,
    Rounding,
    base_to_token,
    bps_of,
    gross_amount_for_net,
    mul_div,
    token_to_base,
)
from ..core.atomic import StatefulComponent, TransactionManager
from ..models.collaborators import LendingMarket
from ..models.enums import ErrorCode, MarketOperation
from ..models.exceptions import (
    ConfigurationError,
    InsolventVaultError,
    InsufficientBalanceError,
    LeverageBoundsError,
    MarketIntegrityError,
    SlippageError,
    UndefinedLeverageError,
    VaultPausedError,
)
from ..models.results import DepositResult, RedeemPreview, RedeemResult
from ..models.vault import PositionSnapshot, VaultParameters
from . import leverage_calculator as calc
from .price_oracle import PriceReader
from .token_ledger import TokenLedger


logger = logging.getLogger(__name__)


@dataclass
class CoreState:
    """Holds mutable vault state; the position itself lives in the market."""

    params: VaultParameters
    share_supply: int = 0
    share_balances: Dict[str, int] = field(default_factory=dict)
    paused: bool = False


class AccountingCore(StatefulComponent):
    """Mints and burns vault shares against net asset value."""

    def __init__(
        self,
        address: str,
        params: VaultParameters,
        market: LendingMarket,
        prices: PriceReader,
        ledger: TokenLedger,
        transactions: TransactionManager,
        balance_tolerance: int = BALANCE_DIFF_TOLERANCE,
    ) -> None:
        if balance_tolerance < 0:
            raise ConfigurationError("Balance tolerance must be >= 0", balance_tolerance=balance_tolerance)
        self.address = address
        self._market = market
        self._prices = prices
        self._ledger = ledger
        self._transactions = transactions
        self._tolerance = balance_tolerance
        self._collateral_asset = params.collateral_asset
        self._debt_asset = params.debt_asset
        self._state = CoreState(params=params)
        transactions.register(self)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def params(self) -> VaultParameters:
        return self._state.params

    @property
    def collateral_asset(self) -> str:
        return self._collateral_asset

    @property
    def debt_asset(self) -> str:
        return self._debt_asset

    @property
    def ledger(self) -> TokenLedger:
        return self._ledger

    @property
    def transactions(self) -> TransactionManager:
        return self._transactions

    @property
    def balance_tolerance(self) -> int:
        return self._tolerance

    @property
    def paused(self) -> bool:
        return self._state.paused

    @property
    def share_supply(self) -> int:
        return self._state.share_supply

    def balance_of(self, account: str) -> int:
        """Vault shares held by ``account``."""
        return self._state.share_balances.get(account, 0)

    # ------------------------------------------------------------------
    # Valuation
    # ------------------------------------------------------------------
    def collateral_to_base(self, amount: int, rounding: Rounding = Rounding.FLOOR) -> int:
        return token_to_base(amount, self._price(self._collateral_asset), self._decimals(self._collateral_asset), rounding)

    def debt_to_base(self, amount: int, rounding: Rounding = Rounding.CEIL) -> int:
        return token_to_base(amount, self._price(self._debt_asset), self._decimals(self._debt_asset), rounding)

    def base_to_collateral(self, amount_base: int, rounding: Rounding = Rounding.FLOOR) -> int:
        return base_to_token(amount_base, self._price(self._collateral_asset), self._decimals(self._collateral_asset), rounding)

    def base_to_debt(self, amount_base: int, rounding: Rounding = Rounding.FLOOR) -> int:
        return base_to_token(amount_base, self._price(self._debt_asset), self._decimals(self._debt_asset), rounding)

    def get_collateral(self) -> int:
        """Collateral held for the vault by the market, in native units."""
        return self._market.get_collateral_balance(self.address, self._collateral_asset)

    def get_debt(self) -> int:
        """Debt owed by the vault to the market, in native units."""
        return self._market.get_debt_balance(self.address, self._debt_asset)

    def get_collateral_base(self) -> int:
        return self.collateral_to_base(self.get_collateral())

    def get_debt_base(self) -> int:
        return self.debt_to_base(self.get_debt())

    def total_assets(self) -> int:
        """Net asset value: collateral value minus debt value."""
        return self.get_collateral_base() - self.get_debt_base()

    def current_leverage_bps(self) -> int:
        return calc.current_leverage_bps(self.get_collateral_base(), self.get_debt_base())

    def is_too_imbalanced(self) -> bool:
        """True when leverage is outside the bounds or undefined."""
        try:
            leverage = self.current_leverage_bps()
        except UndefinedLeverageError:
            return True
        params = self.params
        return calc.is_too_imbalanced(leverage, params.lower_bound_bps, params.upper_bound_bps)

    def deposit_leverage_bps(self) -> int:
        """Leverage new deposits are levered at: current, or target for an empty vault."""
        leverage = self.current_leverage_bps()
        return leverage if leverage > 0 else self.params.target_leverage_bps

    def position_snapshot(self) -> PositionSnapshot:
        params = self.params
        collateral = self.get_collateral()
        debt = self.get_debt()
        collateral_base = self.collateral_to_base(collateral)
        debt_base = self.debt_to_base(debt)
        return PositionSnapshot(
            collateral=collateral,
            debt=debt,
            collateral_base=collateral_base,
            debt_base=debt_base,
            net_asset_value=collateral_base - debt_base,
            leverage_bps=calc.current_leverage_bps(collateral_base, debt_base),
            target_leverage_bps=params.target_leverage_bps,
            lower_bound_bps=params.lower_bound_bps,
            upper_bound_bps=params.upper_bound_bps,
            share_supply=self._state.share_supply,
            is_too_imbalanced=self.is_too_imbalanced(),
            paused=self._state.paused,
        )

    # ------------------------------------------------------------------
    # Share conversion and previews
    # ------------------------------------------------------------------
    def convert_to_shares(self, value_base: int) -> int:
        """Shares worth ``value_base`` at the current share price, rounded down."""
        nav = self._require_solvent()
        return mul_div(value_base, self._state.share_supply + VIRTUAL_SHARES, nav + VIRTUAL_ASSETS)

    def convert_to_assets(self, shares: int) -> int:
        """Base value of ``shares`` at the current share price, rounded down."""
        nav = self._require_solvent()
        return mul_div(shares, nav + VIRTUAL_ASSETS, self._state.share_supply + VIRTUAL_SHARES)

    def borrow_amount_keeping_leverage(self, collateral_amount: int) -> int:
        """Debt tokens to borrow against ``collateral_amount`` without moving leverage up."""
        supplied_base = self.collateral_to_base(collateral_amount)
        debt_base = calc.borrow_base_keeping_leverage(supplied_base, self.deposit_leverage_bps())
        return self.base_to_debt(debt_base)

    def preview_deposit(self, collateral_in: int, debt_borrowed: Optional[int] = None) -> int:
        if debt_borrowed is None:
            debt_borrowed = self.borrow_amount_keeping_leverage(collateral_in)
        added = self.collateral_to_base(collateral_in) - self.debt_to_base(debt_borrowed)
        return self.convert_to_shares(max(added, 0))

    def preview_redeem(self, shares: int) -> RedeemPreview:
        """Proportional collateral (rounded down) and debt (rounded up) for ``shares``."""
        supply = self._state.share_supply
        if shares <= 0 or shares > supply:
            raise ConfigurationError("Shares must be within (0, supply]", shares=shares, supply=supply)
        gross = mul_div(self.get_collateral(), shares, supply)
        debt = mul_div(self.get_debt(), shares, supply, Rounding.CEIL)
        fee = bps_of(gross, self.params.withdrawal_fee_bps)
        return RedeemPreview(shares=shares, collateral_out=gross - fee, withdrawal_fee=fee, debt_to_repay=debt)

    def preview_mint(self, shares: int) -> int:
        """Collateral needed to mint exactly ``shares``, rounded up."""
        if shares <= 0:
            raise ConfigurationError("Shares must be > 0", shares=shares)
        nav = self._require_solvent()
        value = mul_div(shares, nav + VIRTUAL_ASSETS, self._state.share_supply + VIRTUAL_SHARES, Rounding.CEIL)
        leveraged = calc.target_leveraged_assets(value, self.deposit_leverage_bps(), Rounding.CEIL)
        return self.base_to_collateral(leveraged, Rounding.CEIL)

    def preview_withdraw(self, collateral_out: int) -> int:
        """Shares to burn so that ``collateral_out`` arrives net of the fee, rounded up."""
        if collateral_out <= 0:
            raise ConfigurationError("Withdraw amount must be > 0", collateral_out=collateral_out)
        supply = self._state.share_supply
        collateral = self.get_collateral()
        gross = gross_amount_for_net(collateral_out, self.params.withdrawal_fee_bps)
        if supply == 0 or gross > collateral:
            raise ConfigurationError("Withdraw exceeds vault collateral", gross=gross, collateral=collateral)
        return mul_div(gross, supply, collateral, Rounding.CEIL)

    def max_deposit(self) -> int:
        if self._state.paused or self.is_too_imbalanced():
            return 0
        return UNLIMITED

    def max_mint(self) -> int:
        return self.max_deposit()

    def max_redeem(self, owner: str) -> int:
        if self._state.paused or self.is_too_imbalanced():
            return 0
        return self.balance_of(owner)

    def max_withdraw(self, owner: str) -> int:
        """Collateral ``owner`` can withdraw net of the fee."""
        shares = self.max_redeem(owner)
        if shares == 0:
            return 0
        return self.preview_redeem(shares).collateral_out

    # ------------------------------------------------------------------
    # User operations
    # ------------------------------------------------------------------
    def deposit(
        self,
        caller: str,
        collateral_in: int,
        receiver: Optional[str] = None,
        debt_borrowed: Optional[int] = None,
        min_shares: int = 0,
    ) -> DepositResult:
        """Supply ``collateral_in``, borrow debt for the caller and mint shares.

        Args:
            caller: Account paying the collateral and receiving the borrowed debt.
            collateral_in: Collateral amount in native units.
            receiver: Account credited with the shares; defaults to ``caller``.
            debt_borrowed: Debt to borrow; defaults to the leverage-keeping amount.
            min_shares: Revert when fewer shares would be minted.

        Raises:
            LeverageBoundsError: If the vault is too imbalanced before, or out of
                bounds after, the deposit.
            SlippageError: If fewer than ``min_shares`` shares are minted.
        """
        return self._deposit("deposit", caller, collateral_in, receiver or caller, debt_borrowed, min_shares)

    def mint(
        self,
        caller: str,
        shares: int,
        receiver: Optional[str] = None,
        max_collateral_in: int = UNLIMITED,
    ) -> DepositResult:
        """Mint exactly ``shares``, pulling the collateral ``preview_mint`` quotes.

        Debt is borrowed as on deposit. Value the measured deposit adds beyond
        ``shares`` stays with the existing holders.
        """
        with self._transactions.atomic("mint"):
            self.require_not_paused()
            self.require_balanced("mint")
            collateral_in = self.preview_mint(shares)
            if collateral_in > max_collateral_in:
                raise SlippageError(
                    "Collateral required above maximum",
                    collateral_in=collateral_in,
                    maximum=max_collateral_in,
                )
            return self._deposit("mint", caller, collateral_in, receiver or caller, None, 0, exact_shares=shares)

    def _deposit(
        self,
        operation: str,
        caller: str,
        collateral_in: int,
        receiver: str,
        debt_borrowed: Optional[int],
        min_shares: int,
        exact_shares: Optional[int] = None,
    ) -> DepositResult:
        with self._transactions.atomic(operation):
            self.require_not_paused()
            if collateral_in <= 0:
                raise ConfigurationError("Deposit amount must be > 0", collateral_in=collateral_in)
            self.require_balanced(operation)
            supply_before = self._state.share_supply
            nav_before = self._require_solvent()
            if supply_before > 0 and nav_before == 0:
                raise InsolventVaultError("Existing shares have no backing", share_supply=supply_before)
            if debt_borrowed is None:
                debt_borrowed = self.borrow_amount_keeping_leverage(collateral_in)

            self._ledger.transfer(self._collateral_asset, caller, self.address, collateral_in)
            self.supply_to_market(collateral_in)
            received = 0
            if debt_borrowed > 0:
                received = self.borrow_from_market(debt_borrowed)
                self._ledger.transfer(self._debt_asset, self.address, caller, received)

            added = self.total_assets() - nav_before
            if added <= 0:
                raise SlippageError("Deposit adds no net value", net_value_added=added)
            shares = mul_div(added, supply_before + VIRTUAL_SHARES, nav_before + VIRTUAL_ASSETS)
            if exact_shares is not None:
                if shares < exact_shares:
                    raise SlippageError("Deposit value short of shares to mint", shares=shares, requested=exact_shares)
                shares = exact_shares
            if shares == 0 or shares < min_shares:
                raise SlippageError("Minted shares below minimum", shares=shares, min_shares=min_shares)
            self._mint_shares(receiver, shares)

            leverage_after = self.current_leverage_bps()
            self._require_within_bounds(leverage_after)
            logger.info(
                "%s caller=%s receiver=%s collateral=%s borrowed=%s shares=%s leverage=%s",
                operation.capitalize(),
                caller,
                receiver,
                collateral_in,
                received,
                shares,
                leverage_after,
            )
            return DepositResult(
                shares=shares,
                collateral_in=collateral_in,
                debt_borrowed=received,
                net_value_added=added,
                leverage_after_bps=leverage_after,
            )

    def redeem(
        self,
        caller: str,
        shares: int,
        receiver: Optional[str] = None,
        min_collateral_out: int = 0,
    ) -> RedeemResult:
        """Burn ``shares``, repay their debt from the caller and release collateral.

        Debt is repaid before collateral is withdrawn; the debt share is rounded
        up so the last redeemer clears the position completely.
        """
        receiver = receiver or caller
        with self._transactions.atomic("redeem"):
            self.require_not_paused()
            held = self.balance_of(caller)
            if shares <= 0 or shares > held:
                raise InsufficientBalanceError("Not enough shares", shares=shares, balance=held)
            self.require_balanced("redeem")
            preview = self.preview_redeem(shares)
            gross = preview.collateral_out + preview.withdrawal_fee
            self._burn_shares(caller, shares)

            if preview.debt_to_repay > 0:
                self._ledger.transfer(self._debt_asset, caller, self.address, preview.debt_to_repay)
                self.repay_to_market(preview.debt_to_repay)
            received = self.withdraw_from_market(gross) if gross > 0 else 0

            fee = bps_of(received, self.params.withdrawal_fee_bps)
            net = received - fee
            if net < min_collateral_out:
                raise SlippageError("Collateral out below minimum", collateral_out=net, minimum=min_collateral_out)
            if fee > 0:
                self._ledger.transfer(self._collateral_asset, self.address, self.params.fee_receiver, fee)
            self._ledger.transfer(self._collateral_asset, self.address, receiver, net)
            self._require_solvent()
            logger.info(
                "Redeem caller=%s receiver=%s shares=%s collateral=%s fee=%s repaid=%s",
                caller,
                receiver,
                shares,
                net,
                fee,
                preview.debt_to_repay,
            )
            return RedeemResult(shares=shares, collateral_out=net, withdrawal_fee=fee, debt_repaid=preview.debt_to_repay)

    def withdraw(
        self,
        caller: str,
        collateral_out: int,
        receiver: Optional[str] = None,
        max_shares: int = UNLIMITED,
    ) -> RedeemResult:
        """Redeem the shares ``preview_withdraw`` quotes for ``collateral_out``.

        The receiver gets at least ``collateral_out`` net of the withdrawal fee;
        share rounding can leave it a few units more.
        """
        with self._transactions.atomic("withdraw"):
            self.require_not_paused()
            self.require_balanced("withdraw")
            shares = self.preview_withdraw(collateral_out)
            if shares > max_shares:
                raise SlippageError("Shares to burn above maximum", shares=shares, maximum=max_shares)
            return self.redeem(caller, shares, receiver, min_collateral_out=collateral_out)

    def transfer_shares(self, sender: str, recipient: str, shares: int) -> None:
        with self._transactions.atomic("transfer_shares"):
            self._burn_shares(sender, shares)
            self._mint_shares(recipient, shares)

    # ------------------------------------------------------------------
    # Balance-delta market wrappers (call inside a transaction)
    # ------------------------------------------------------------------
    def supply_to_market(self, amount: int) -> int:
        """Supply collateral and return the collateral position increase."""
        asset = self._collateral_asset
        tokens_before = self._ledger.balance_of(asset, self.address)
        position_before = self.get_collateral()
        self._market.supply(self.address, asset, amount)
        spent = tokens_before - self._ledger.balance_of(asset, self.address)
        credited = self.get_collateral() - position_before
        if spent > amount:
            raise MarketIntegrityError(
                "Market pulled more collateral than requested",
                operation=MarketOperation.SUPPLY.value,
                requested=amount,
                observed=spent,
            )
        self._check_delivery(MarketOperation.SUPPLY, amount, credited)
        return credited

    def withdraw_from_market(self, amount: int) -> int:
        """Withdraw collateral and return the tokens actually received."""
        asset = self._collateral_asset
        tokens_before = self._ledger.balance_of(asset, self.address)
        self._market.withdraw_collateral(self.address, asset, amount)
        received = self._ledger.balance_of(asset, self.address) - tokens_before
        self._check_delivery(MarketOperation.WITHDRAW, amount, received)
        return received

    def borrow_from_market(self, amount: int) -> int:
        """Borrow debt tokens and return the tokens actually received."""
        asset = self._debt_asset
        tokens_before = self._ledger.balance_of(asset, self.address)
        self._market.borrow(self.address, asset, amount)
        received = self._ledger.balance_of(asset, self.address) - tokens_before
        self._check_delivery(MarketOperation.BORROW, amount, received)
        return received

    def repay_to_market(self, amount: int) -> int:
        """Repay debt and return the debt position decrease."""
        asset = self._debt_asset
        tokens_before = self._ledger.balance_of(asset, self.address)
        debt_before = self.get_debt()
        self._market.repay(self.address, asset, amount)
        spent = tokens_before - self._ledger.balance_of(asset, self.address)
        reduced = debt_before - self.get_debt()
        if spent > amount:
            raise MarketIntegrityError(
                "Market pulled more debt tokens than requested",
                operation=MarketOperation.REPAY.value,
                requested=amount,
                observed=spent,
            )
        self._check_delivery(MarketOperation.REPAY, amount, reduced)
        return reduced

    # ------------------------------------------------------------------
    # Governance configuration
    # ------------------------------------------------------------------
    def set_leverage_bounds(self, lower_bound_bps: int, target_leverage_bps: int, upper_bound_bps: int) -> None:
        self._update_params(
            lower_bound_bps=lower_bound_bps,
            target_leverage_bps=target_leverage_bps,
            upper_bound_bps=upper_bound_bps,
        )

    def set_max_subsidy_bps(self, max_subsidy_bps: int) -> None:
        self._update_params(max_subsidy_bps=max_subsidy_bps)

    def set_min_deviation_bps(self, min_deviation_bps: int) -> None:
        self._update_params(min_deviation_bps=min_deviation_bps)

    def set_max_subsidy_base_value(self, max_subsidy_base_value: Optional[int]) -> None:
        self._update_params(max_subsidy_base_value=max_subsidy_base_value)

    def set_withdrawal_fee(self, withdrawal_fee_bps: int, fee_receiver: Optional[str] = None) -> None:
        changes: Dict[str, Any] = {"withdrawal_fee_bps": withdrawal_fee_bps}
        if fee_receiver is not None:
            changes["fee_receiver"] = fee_receiver
        self._update_params(**changes)

    def pause(self) -> None:
        with self._transactions.atomic("pause"):
            self._state.paused = True
        logger.warning("Vault %s paused", self.address)

    def unpause(self) -> None:
        with self._transactions.atomic("unpause"):
            self._state.paused = False
        logger.info("Vault %s unpaused", self.address)

    def require_not_paused(self) -> None:
        if self._state.paused:
            raise VaultPausedError("Vault is paused")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _update_params(self, **changes: Any) -> None:
        with self._transactions.atomic("update_params"):
            payload = self._state.params.model_dump()
            for key in ("collateral_asset", "debt_asset"):
                if key in changes:
                    raise ConfigurationError("Asset pair is immutable", field=key)
            payload.update(changes)
            try:
                self._state.params = VaultParameters(**payload)
            except ValidationError as exc:
                raise ConfigurationError("Invalid vault parameters: {0}".format(exc.errors()[0]["msg"]), **changes) from exc
        logger.info("Vault parameters updated: %s", changes)

    def _check_delivery(self, operation: MarketOperation, requested: int, observed: int) -> None:
        if observed + self._tolerance < requested:
            raise MarketIntegrityError(
                "Market under-delivered beyond tolerance",
                operation=operation.value,
                requested=requested,
                observed=observed,
                tolerance=self._tolerance,
            )
        if observed > requested:
            logger.info("Market over-delivered on %s requested=%s observed=%s", operation.value, requested, observed)

    def _require_solvent(self) -> int:
        nav = self.total_assets()
        if nav < 0:
            raise InsolventVaultError("Debt value exceeds collateral value", net_asset_value=nav)
        return nav

    def require_balanced(self, operation: str) -> None:
        if self.is_too_imbalanced():
            params = self.params
            raise LeverageBoundsError(
                "Vault is too imbalanced for {0}".format(operation),
                code=ErrorCode.TOO_IMBALANCED,
                lower_bound_bps=params.lower_bound_bps,
                upper_bound_bps=params.upper_bound_bps,
            )

    def _require_within_bounds(self, leverage: int) -> None:
        params = self.params
        if not params.lower_bound_bps <= leverage <= params.upper_bound_bps:
            raise LeverageBoundsError(
                "Leverage outside bounds",
                leverage_bps=leverage,
                lower_bound_bps=params.lower_bound_bps,
                upper_bound_bps=params.upper_bound_bps,
            )

    def _mint_shares(self, account: str, shares: int) -> None:
        balances = self._state.share_balances
        balances[account] = balances.get(account, 0) + shares
        self._state.share_supply += shares

    def _burn_shares(self, account: str, shares: int) -> None:
        held = self.balance_of(account)
        if shares < 0 or shares > held:
            raise InsufficientBalanceError("Not enough shares", shares=shares, balance=held)
        self._state.share_balances[account] = held - shares
        self._state.share_supply -= shares

    def _price(self, asset: str) -> int:
        return self._prices.price_of(asset)

    def _decimals(self, asset: str) -> int:
        return self._ledger.decimals(asset)
