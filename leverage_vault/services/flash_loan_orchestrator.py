"""Flash-loan funded periphery for one-shot leveraged entry, exit and rebalancing.

Every flow runs in one transaction: borrow with a flash loan, swap exact
output, call the accounting core or rebalancing engine, repay the loan and
forward what is left. Amounts are always derived from tracked contributions
and measured balance deltas, never from the orchestrator's raw balance, so
tokens donated to it are neither spent nor paid out.
"""

from dataclasses import dataclass, field
import logging
from typing import Any, Dict, Mapping, Optional

from ..common.protocol_constants import FLASH_LOAN_CALLBACK_SUCCESS, ONE_HUNDRED_PERCENT_BPS, SWAP_AMOUNT_TOLERANCE
from ..models.collaborators import FlashLoanProvider, FlashLoanReceiver, SwapExecutor
from ..models.enums import ErrorCode, FlashOperation, RebalanceDirection
from ..models.exceptions import (
    ConfigurationError,
    FlashLoanError,
    LeverageBoundsError,
    SlippageError,
    SwapError,
)
from ..models.results import (
    FlashDepositResult,
    FlashRebalanceResult,
    FlashRedeemResult,
    RebalanceResult,
)
from . import leverage_calculator as calc
from .accounting_core import AccountingCore
from .rebalancing_engine import RebalancingEngine


logger = logging.getLogger(__name__)

ORCHESTRATOR_ADDRESS = "flash-orchestrator"


@dataclass
class FlashContext:
    """Inputs and outputs of the flow currently inside a flash loan."""

    operation: FlashOperation
    caller: str
    inputs: Dict[str, Any] = field(default_factory=dict)
    outputs: Dict[str, Any] = field(default_factory=dict)


class FlashLoanOrchestrator(FlashLoanReceiver):
    """Periphery that bundles flash loan, swap and vault call into one operation."""

    def __init__(
        self,
        core: AccountingCore,
        rebalancer: RebalancingEngine,
        lender: FlashLoanProvider,
        swapper: SwapExecutor,
        address: str = ORCHESTRATOR_ADDRESS,
        swap_tolerance: int = SWAP_AMOUNT_TOLERANCE,
        default_slippage_bps: int = 50,
    ) -> None:
        if not 0 <= default_slippage_bps < ONE_HUNDRED_PERCENT_BPS:
            raise ConfigurationError("Default slippage must be within [0, 10000)", slippage_bps=default_slippage_bps)
        self.address = address
        self._core = core
        self._rebalancer = rebalancer
        self._lender = lender
        self._swapper = swapper
        self._swap_tolerance = swap_tolerance
        self._default_slippage_bps = default_slippage_bps
        self._context: Optional[FlashContext] = None

    # ------------------------------------------------------------------
    # Leveraged deposit / redeem
    # ------------------------------------------------------------------
    def deposit_with_leverage(
        self,
        caller: str,
        collateral_amount: int,
        receiver: Optional[str] = None,
        min_output_shares: int = 0,
        slippage_bps: Optional[int] = None,
        routing_data: Optional[Mapping[str, Any]] = None,
    ) -> FlashDepositResult:
        """Turn ``collateral_amount`` into a position levered at the vault's leverage.

        The flash loan covers the debt the vault will lend against the combined
        collateral. Only ``swap input + fee`` is actually borrowed from the
        vault, so anything the swap saves ends up in the depositor's shares.
        """
        core = self._core
        receiver = receiver or caller
        slippage = self._default_slippage_bps if slippage_bps is None else slippage_bps
        with core.transactions.atomic("deposit_with_leverage"):
            core.require_not_paused()
            if collateral_amount <= 0:
                raise ConfigurationError("Deposit amount must be > 0", collateral_amount=collateral_amount)
            core.require_balanced("deposit")
            baseline = self._balances()
            core.ledger.transfer(core.collateral_asset, caller, self.address, collateral_amount)

            leveraged = calc.target_leveraged_assets(collateral_amount, core.deposit_leverage_bps())
            extra = calc.required_additional_collateral(calc.apply_slippage(leveraged, slippage), collateral_amount)
            if extra == 0:
                raise ConfigurationError("Slippage leaves nothing to lever", slippage_bps=slippage)
            flash_amount = core.borrow_amount_keeping_leverage(collateral_amount + extra)
            context = FlashContext(
                FlashOperation.DEPOSIT,
                caller,
                inputs={
                    "receiver": receiver,
                    "collateral_amount": collateral_amount,
                    "extra": extra,
                    "min_output_shares": min_output_shares,
                    "routing_data": routing_data,
                },
            )
            self._run_flash_loan(context, core.debt_asset, flash_amount)
            swept = self._sweep(receiver, baseline)
            outputs = context.outputs
            logger.info(
                "Leveraged deposit caller=%s collateral=%s extra=%s shares=%s leftover_debt=%s",
                caller,
                collateral_amount,
                extra,
                outputs["shares"],
                swept[core.debt_asset],
            )
            return FlashDepositResult(
                shares=outputs["shares"],
                user_collateral=collateral_amount,
                extra_collateral=extra,
                flash_amount=flash_amount,
                swap_input=outputs["swap_input"],
                debt_borrowed=outputs["debt_borrowed"],
                leftover_debt=swept[core.debt_asset],
            )

    def redeem_with_leverage(
        self,
        caller: str,
        shares: int,
        receiver: Optional[str] = None,
        min_output_collateral: int = 0,
        routing_data: Optional[Mapping[str, Any]] = None,
    ) -> FlashRedeemResult:
        """Exit ``shares`` into collateral only, without the caller holding debt tokens."""
        core = self._core
        receiver = receiver or caller
        with core.transactions.atomic("redeem_with_leverage"):
            core.require_not_paused()
            baseline = self._balances()
            core.transfer_shares(caller, self.address, shares)
            flash_amount = core.preview_redeem(shares).debt_to_repay
            context = FlashContext(
                FlashOperation.REDEEM,
                caller,
                inputs={"shares": shares, "routing_data": routing_data},
            )
            if flash_amount > 0:
                self._run_flash_loan(context, core.debt_asset, flash_amount)
            else:
                redeemed = core.redeem(self.address, shares, receiver=self.address)
                context.outputs.update(swap_input=0, debt_repaid=redeemed.debt_repaid)
            swept = self._sweep(receiver, baseline)
            collateral_out = swept[core.collateral_asset]
            if collateral_out < min_output_collateral:
                raise SlippageError(
                    "Collateral out below minimum",
                    collateral_out=collateral_out,
                    minimum=min_output_collateral,
                )
            logger.info(
                "Leveraged redeem caller=%s shares=%s collateral_out=%s flash=%s",
                caller,
                shares,
                collateral_out,
                flash_amount,
            )
            return FlashRedeemResult(
                shares=shares,
                collateral_out=collateral_out,
                flash_amount=flash_amount,
                swap_input=context.outputs["swap_input"],
                debt_repaid=context.outputs["debt_repaid"],
            )

    # ------------------------------------------------------------------
    # Flash-funded rebalancing
    # ------------------------------------------------------------------
    def increase_leverage_with_flash(
        self,
        caller: str,
        collateral_from_caller: int = 0,
        min_profit: int = 0,
        routing_data: Optional[Mapping[str, Any]] = None,
    ) -> FlashRebalanceResult:
        """Increase leverage funding the missing collateral with flash-borrowed debt.

        Profit is paid to the caller in the debt token.
        """
        core = self._core
        with core.transactions.atomic("increase_leverage_with_flash"):
            quote = self._rebalancer.quote_rebalance()
            self._require_direction(quote.direction, RebalanceDirection.INCREASE)
            baseline = self._balances()
            if collateral_from_caller > 0:
                core.ledger.transfer(core.collateral_asset, caller, self.address, collateral_from_caller)
            amount = max(quote.input_amount, collateral_from_caller)
            shortfall = amount - collateral_from_caller
            context = FlashContext(
                FlashOperation.INCREASE_LEVERAGE,
                caller,
                inputs={"amount": amount, "shortfall": shortfall, "routing_data": routing_data},
            )
            flash_amount = quote.estimated_output if shortfall > 0 else 0
            if flash_amount > 0:
                self._run_flash_loan(context, core.debt_asset, flash_amount)
            else:
                context.outputs.update(
                    rebalance=self._rebalancer.increase_leverage(self.address, extra_collateral=amount),
                    swap_input=0,
                )
            return self._finish_rebalance(context, caller, baseline, flash_amount, collateral_from_caller, min_profit)

    def decrease_leverage_with_flash(
        self,
        caller: str,
        debt_from_caller: int = 0,
        min_profit: int = 0,
        routing_data: Optional[Mapping[str, Any]] = None,
    ) -> FlashRebalanceResult:
        """Decrease leverage repaying with flash-borrowed debt bought back from the collateral payout.

        Profit is paid to the caller in the collateral token.
        """
        core = self._core
        with core.transactions.atomic("decrease_leverage_with_flash"):
            quote = self._rebalancer.quote_rebalance()
            self._require_direction(quote.direction, RebalanceDirection.DECREASE)
            baseline = self._balances()
            if debt_from_caller > 0:
                core.ledger.transfer(core.debt_asset, caller, self.address, debt_from_caller)
            amount = max(quote.input_amount, debt_from_caller)
            shortfall = amount - debt_from_caller
            context = FlashContext(
                FlashOperation.DECREASE_LEVERAGE,
                caller,
                inputs={"amount": amount, "shortfall": shortfall, "routing_data": routing_data},
            )
            if shortfall > 0:
                self._run_flash_loan(context, core.debt_asset, shortfall)
            else:
                context.outputs.update(
                    rebalance=self._rebalancer.decrease_leverage(self.address, extra_debt_repay=amount),
                    swap_input=0,
                )
            return self._finish_rebalance(context, caller, baseline, shortfall, debt_from_caller, min_profit)

    # ------------------------------------------------------------------
    # Flash loan callback
    # ------------------------------------------------------------------
    def on_flash_loan(self, initiator: str, asset: str, amount: int, fee: int, data: Any) -> str:
        context = self._context
        if initiator != self.address or context is None or data != context.operation.value:
            raise FlashLoanError("Untrusted flash loan callback", initiator=initiator)
        handlers = {
            FlashOperation.DEPOSIT: self._on_deposit,
            FlashOperation.REDEEM: self._on_redeem,
            FlashOperation.INCREASE_LEVERAGE: self._on_increase,
            FlashOperation.DECREASE_LEVERAGE: self._on_decrease,
        }
        handlers[context.operation](context, amount, fee)
        return FLASH_LOAN_CALLBACK_SUCCESS

    def _on_deposit(self, context: FlashContext, amount: int, fee: int) -> None:
        core = self._core
        inputs = context.inputs
        if amount <= fee:
            raise FlashLoanError("Flash fee consumes the whole loan", amount=amount, fee=fee)
        spent = self._swap_exact_output(
            core.debt_asset,
            core.collateral_asset,
            inputs["extra"],
            amount - fee,
            inputs["routing_data"],
        )
        deposited = core.deposit(
            self.address,
            inputs["collateral_amount"] + inputs["extra"],
            receiver=inputs["receiver"],
            debt_borrowed=spent + fee + core.balance_tolerance,
            min_shares=inputs["min_output_shares"],
        )
        context.outputs.update(shares=deposited.shares, swap_input=spent, debt_borrowed=deposited.debt_borrowed)

    def _on_redeem(self, context: FlashContext, amount: int, fee: int) -> None:
        core = self._core
        redeemed = core.redeem(self.address, context.inputs["shares"], receiver=self.address)
        spent = self._swap_exact_output(
            core.collateral_asset,
            core.debt_asset,
            redeemed.debt_repaid + fee,
            redeemed.collateral_out,
            context.inputs["routing_data"],
        )
        context.outputs.update(swap_input=spent, debt_repaid=redeemed.debt_repaid)

    def _on_increase(self, context: FlashContext, amount: int, fee: int) -> None:
        core = self._core
        inputs = context.inputs
        spent = self._swap_exact_output(
            core.debt_asset,
            core.collateral_asset,
            inputs["shortfall"],
            amount - fee,
            inputs["routing_data"],
        )
        rebalance = self._rebalancer.increase_leverage(self.address, extra_collateral=inputs["amount"])
        context.outputs.update(rebalance=rebalance, swap_input=spent)

    def _on_decrease(self, context: FlashContext, amount: int, fee: int) -> None:
        core = self._core
        inputs = context.inputs
        rebalance = self._rebalancer.decrease_leverage(self.address, extra_debt_repay=inputs["amount"])
        spent = self._swap_exact_output(
            core.collateral_asset,
            core.debt_asset,
            amount + fee,
            rebalance.output_amount,
            inputs["routing_data"],
        )
        context.outputs.update(rebalance=rebalance, swap_input=spent)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _run_flash_loan(self, context: FlashContext, asset: str, amount: int) -> None:
        if self._context is not None:
            raise FlashLoanError("Flash operation already in progress", operation=self._context.operation.value)
        self._context = context
        try:
            self._lender.flash_loan(self, asset, amount, context.operation.value, initiator=self.address)
        finally:
            self._context = None

    def _swap_exact_output(
        self,
        token_in: str,
        token_out: str,
        desired_out: int,
        max_in: int,
        routing_data: Optional[Mapping[str, Any]],
    ) -> int:
        """Swap through the venue and verify it against measured balance deltas.

        Returns:
            int: Input actually spent.

        Raises:
            SwapError: If more than ``max_in`` is spent, the reported input
                disagrees with the measured spend beyond tolerance, or the
                output balance grows by less than ``desired_out``.
        """
        ledger = self._core.ledger
        in_before = ledger.balance_of(token_in, self.address)
        out_before = ledger.balance_of(token_out, self.address)
        try:
            reported = self._swapper.swap_exact_output(
                self.address, token_in, token_out, desired_out, max_in, routing_data
            )
        except Exception:
            logger.exception("Swap failed %s -> %s desired_out=%s max_in=%s", token_in, token_out, desired_out, max_in)
            raise
        spent = in_before - ledger.balance_of(token_in, self.address)
        received = ledger.balance_of(token_out, self.address) - out_before
        if spent > max_in:
            raise SwapError("Swap spent more than allowed", code=ErrorCode.SWAP_INPUT_EXCEEDED, spent=spent, max_in=max_in)
        if abs(reported - spent) > self._swap_tolerance:
            raise SwapError(
                "Reported swap input differs from spent amount",
                code=ErrorCode.SWAP_AMOUNT_MISMATCH,
                reported=reported,
                spent=spent,
                tolerance=self._swap_tolerance,
            )
        if received < desired_out:
            raise SwapError(
                "Swap output below requested amount",
                code=ErrorCode.SWAP_OUTPUT_SHORTFALL,
                received=received,
                desired_out=desired_out,
            )
        return spent

    def _finish_rebalance(
        self,
        context: FlashContext,
        caller: str,
        baseline: Dict[str, int],
        flash_amount: int,
        contribution: int,
        min_profit: int,
    ) -> FlashRebalanceResult:
        core = self._core
        rebalance: RebalanceResult = context.outputs["rebalance"]
        swept = self._sweep(caller, baseline)
        if context.operation is FlashOperation.INCREASE_LEVERAGE:
            profit_token = core.debt_asset
        else:
            profit_token = core.collateral_asset
        profit = swept[profit_token]
        if profit < min_profit:
            raise SlippageError("Rebalance profit below minimum", profit=profit, minimum=min_profit)
        logger.info(
            "Flash %s caller=%s flash=%s profit=%s %s",
            context.operation.value,
            caller,
            flash_amount,
            profit,
            profit_token,
        )
        return FlashRebalanceResult(
            operation=context.operation,
            rebalance=rebalance,
            flash_amount=flash_amount,
            swap_input=context.outputs["swap_input"],
            caller_contribution=contribution,
            profit_token=profit_token,
            profit=profit,
        )

    def _balances(self) -> Dict[str, int]:
        core = self._core
        return {
            asset: core.ledger.balance_of(asset, self.address)
            for asset in (core.collateral_asset, core.debt_asset)
        }

    def _sweep(self, recipient: str, baseline: Dict[str, int]) -> Dict[str, int]:
        """Forward everything gained since ``baseline`` to ``recipient``."""
        swept: Dict[str, int] = {}
        for asset, balance in self._balances().items():
            gained = balance - baseline[asset]
            if gained < 0:
                raise FlashLoanError("Orchestrator ended below its starting balance", asset=asset, shortfall=-gained)
            if gained > 0:
                self._core.ledger.transfer(asset, self.address, recipient, gained)
            swept[asset] = gained
        return swept

    @staticmethod
    def _require_direction(actual: RebalanceDirection, expected: RebalanceDirection) -> None:
        if actual is not expected:
            raise LeverageBoundsError(
                "Rebalance direction does not match leverage",
                code=ErrorCode.WRONG_REBALANCE_DIRECTION,
                expected=expected.value,
                actual=actual.value,
            )
