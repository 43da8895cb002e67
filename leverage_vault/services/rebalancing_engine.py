"""Permissionless rebalancing toward target leverage.

Each call predicts the amounts with the leverage calculator, executes them
against the market through the balance-delta wrappers and then verifies the
leverage actually read back from the market. Any violation aborts the whole
transaction.
"""

import logging
from typing import Tuple

from ..common.protocol_constants import ONE_HUNDRED_PERCENT_BPS, Rounding, bps_of, ceil_div
from ..models.enums import ErrorCode, RebalanceDirection
from ..models.exceptions import InsolventVaultError, LeverageBoundsError, SlippageError
from ..models.results import RebalanceQuote, RebalanceResult
from . import leverage_calculator as calc
from .accounting_core import AccountingCore


logger = logging.getLogger(__name__)


def decrease_rounding_margin(target_leverage_bps: int) -> int:
    """Base units a decrease repays below the exact solution.

    Valuation rounds by at most one base unit per side; shifting the solution by
    this margin keeps the measured post-leverage at or above target.
    """
    return 2 * ceil_div(target_leverage_bps, ONE_HUNDRED_PERCENT_BPS) + 2


class RebalancingEngine:
    """Moves leverage toward target and pays the caller a bounded subsidy."""

    def __init__(self, core: AccountingCore) -> None:
        self._core = core

    @property
    def core(self) -> AccountingCore:
        return self._core

    def plan(self) -> calc.RebalancePlan:
        """Rebalance plan for the current market position."""
        core = self._core
        params = core.params
        plan = calc.plan_rebalance(
            core.get_collateral_base(),
            core.get_debt_base(),
            params.target_leverage_bps,
            params.max_subsidy_bps,
            params.min_deviation_bps,
            params.max_subsidy_base_value,
        )
        if plan.direction is RebalanceDirection.DECREASE:
            margin = decrease_rounding_margin(params.target_leverage_bps)
            return calc.RebalancePlan(
                plan.direction,
                plan.current_leverage_bps,
                max(plan.input_base - margin, 0),
                plan.output_base,
                plan.subsidy_bps,
            )
        return plan

    def quote_rebalance(self) -> RebalanceQuote:
        """Token amounts the next rebalance would take and pay out."""
        core = self._core
        plan = self.plan()
        if plan.direction is RebalanceDirection.INCREASE:
            amount_in = core.base_to_collateral(plan.input_base)
            payout_base, _ = self._increase_payout(core.collateral_to_base(amount_in), plan.subsidy_bps)
            input_token, output_token = core.collateral_asset, core.debt_asset
            estimated = core.base_to_debt(payout_base)
        elif plan.direction is RebalanceDirection.DECREASE:
            amount_in = core.base_to_debt(plan.input_base)
            payout_base, _ = self._decrease_payout(core.debt_to_base(amount_in, Rounding.CEIL), plan.subsidy_bps)
            input_token, output_token = core.debt_asset, core.collateral_asset
            gross = core.base_to_collateral(payout_base, Rounding.CEIL)
            estimated = gross - bps_of(gross, core.params.withdrawal_fee_bps)
        else:
            amount_in, estimated = 0, 0
            input_token, output_token = core.collateral_asset, core.debt_asset
        return RebalanceQuote(
            direction=plan.direction,
            current_leverage_bps=plan.current_leverage_bps,
            target_leverage_bps=core.params.target_leverage_bps,
            input_token=input_token,
            input_amount=amount_in,
            output_token=output_token,
            estimated_output=estimated,
            subsidy_bps=plan.subsidy_bps,
        )

    def increase_leverage(
        self,
        caller: str,
        extra_collateral: int = 0,
        min_leverage_gain_bps: int = 0,
        min_received_debt: int = 0,
    ) -> RebalanceResult:
        """Supply collateral from ``caller`` and pay out borrowed debt plus subsidy.

        The supplied amount is ``max(calculated, extra_collateral)``. The call
        reverts unless ``current < new <= target`` holds afterwards.
        """
        core = self._core
        ledger = core.ledger
        with core.transactions.atomic("increase_leverage"):
            core.require_not_paused()
            plan = self.plan()
            self._require_direction(plan, RebalanceDirection.INCREASE)
            supply_before = core.share_supply
            amount = max(core.base_to_collateral(plan.input_base), extra_collateral)
            self._require_positive(amount, plan)

            ledger.transfer(core.collateral_asset, caller, core.address, amount)
            credited = core.supply_to_market(amount)
            supplied_base = core.collateral_to_base(min(credited, amount))
            payout_base, subsidy_value = self._increase_payout(supplied_base, plan.subsidy_bps)
            borrow_amount = core.base_to_debt(payout_base)
            received = core.borrow_from_market(borrow_amount) if borrow_amount > 0 else 0
            ledger.transfer(core.debt_asset, core.address, caller, received)
            if received < min_received_debt:
                raise SlippageError("Received debt below minimum", received=received, minimum=min_received_debt)

            leverage_after = core.current_leverage_bps()
            target = core.params.target_leverage_bps
            if not plan.current_leverage_bps < leverage_after <= target:
                raise LeverageBoundsError(
                    "Increase leverage out of range",
                    code=ErrorCode.INCREASE_OUT_OF_RANGE,
                    leverage_before_bps=plan.current_leverage_bps,
                    leverage_after_bps=leverage_after,
                    target_leverage_bps=target,
                )
            self._check_gain(leverage_after - plan.current_leverage_bps, min_leverage_gain_bps)
            self._check_invariants(supply_before)
            logger.info(
                "Increase leverage caller=%s supplied=%s received=%s subsidy_bps=%s leverage=%s->%s",
                caller,
                amount,
                received,
                plan.subsidy_bps,
                plan.current_leverage_bps,
                leverage_after,
            )
            return RebalanceResult(
                direction=RebalanceDirection.INCREASE,
                input_amount=amount,
                output_amount=received,
                subsidy_bps=plan.subsidy_bps,
                subsidy_base_value=subsidy_value,
                leverage_before_bps=plan.current_leverage_bps,
                leverage_after_bps=leverage_after,
            )

    def decrease_leverage(
        self,
        caller: str,
        extra_debt_repay: int = 0,
        min_leverage_loss_bps: int = 0,
        min_received_collateral: int = 0,
    ) -> RebalanceResult:
        """Repay debt from ``caller`` and pay out withdrawn collateral plus subsidy.

        The repaid amount is ``max(calculated, extra_debt_repay)``; debt tokens
        already sitting in the vault are never added to it. The withdrawal fee
        is taken from the released collateral as on redeem. The call reverts
        unless ``target <= new < current`` holds afterwards.
        """
        core = self._core
        ledger = core.ledger
        with core.transactions.atomic("decrease_leverage"):
            core.require_not_paused()
            plan = self.plan()
            self._require_direction(plan, RebalanceDirection.DECREASE)
            supply_before = core.share_supply
            amount = max(core.base_to_debt(plan.input_base), extra_debt_repay)
            self._require_positive(amount, plan)

            ledger.transfer(core.debt_asset, caller, core.address, amount)
            reduced = core.repay_to_market(amount)
            repaid_base = core.debt_to_base(min(reduced, amount), Rounding.CEIL)
            payout_base, subsidy_value = self._decrease_payout(repaid_base, plan.subsidy_bps)
            withdraw_amount = min(core.base_to_collateral(payout_base, Rounding.CEIL), core.get_collateral())
            withdrawn = core.withdraw_from_market(withdraw_amount) if withdraw_amount > 0 else 0
            params = core.params
            fee = bps_of(withdrawn, params.withdrawal_fee_bps)
            received = withdrawn - fee
            if fee > 0:
                ledger.transfer(core.collateral_asset, core.address, params.fee_receiver, fee)
            ledger.transfer(core.collateral_asset, core.address, caller, received)
            if received < min_received_collateral:
                raise SlippageError(
                    "Received collateral below minimum",
                    received=received,
                    minimum=min_received_collateral,
                )

            leverage_after = core.current_leverage_bps()
            target = core.params.target_leverage_bps
            if not target <= leverage_after < plan.current_leverage_bps:
                raise LeverageBoundsError(
                    "Decrease leverage out of range",
                    code=ErrorCode.DECREASE_OUT_OF_RANGE,
                    leverage_before_bps=plan.current_leverage_bps,
                    leverage_after_bps=leverage_after,
                    target_leverage_bps=target,
                )
            self._check_gain(plan.current_leverage_bps - leverage_after, min_leverage_loss_bps)
            self._check_invariants(supply_before)
            logger.info(
                "Decrease leverage caller=%s repaid=%s received=%s fee=%s subsidy_bps=%s leverage=%s->%s",
                caller,
                amount,
                received,
                fee,
                plan.subsidy_bps,
                plan.current_leverage_bps,
                leverage_after,
            )
            return RebalanceResult(
                direction=RebalanceDirection.DECREASE,
                input_amount=amount,
                output_amount=received,
                subsidy_bps=plan.subsidy_bps,
                subsidy_base_value=subsidy_value,
                leverage_before_bps=plan.current_leverage_bps,
                leverage_after_bps=leverage_after,
                withdrawal_fee=fee,
            )

    def _increase_payout(self, supplied_base: int, subsidy: int) -> Tuple[int, int]:
        payout = calc.debt_borrow_for_increase(supplied_base, subsidy)
        return self._cap_subsidy(supplied_base, payout)

    def _decrease_payout(self, repaid_base: int, subsidy: int) -> Tuple[int, int]:
        payout = calc.collateral_withdraw_for_decrease(repaid_base, subsidy)
        return self._cap_subsidy(repaid_base, payout)

    def _cap_subsidy(self, moved_base: int, payout_base: int) -> Tuple[int, int]:
        cap = self._core.params.max_subsidy_base_value
        subsidy_value = payout_base - moved_base
        if cap is not None and subsidy_value > cap:
            return moved_base + cap, cap
        return payout_base, subsidy_value

    @staticmethod
    def _require_direction(plan: calc.RebalancePlan, expected: RebalanceDirection) -> None:
        if plan.direction is not expected:
            raise LeverageBoundsError(
                "Rebalance direction does not match leverage",
                code=ErrorCode.WRONG_REBALANCE_DIRECTION,
                expected=expected.value,
                actual=plan.direction.value,
                leverage_bps=plan.current_leverage_bps,
            )

    @staticmethod
    def _require_positive(amount: int, plan: calc.RebalancePlan) -> None:
        if amount <= 0:
            raise LeverageBoundsError(
                "Rebalance amount rounds to zero",
                code=ErrorCode.WRONG_REBALANCE_DIRECTION,
                leverage_bps=plan.current_leverage_bps,
            )

    @staticmethod
    def _check_gain(moved_bps: int, minimum_bps: int) -> None:
        if moved_bps < minimum_bps:
            raise SlippageError("Leverage moved less than requested", moved_bps=moved_bps, minimum_bps=minimum_bps)

    def _check_invariants(self, supply_before: int) -> None:
        core = self._core
        if core.share_supply != supply_before:
            raise InsolventVaultError(
                "Share supply changed during rebalance",
                supply_before=supply_before,
                supply_after=core.share_supply,
            )
        nav = core.total_assets()
        if nav < 0:
            raise InsolventVaultError("Debt value exceeds collateral value", net_asset_value=nav)
