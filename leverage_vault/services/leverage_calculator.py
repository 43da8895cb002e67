"""Pure leverage math over base-currency values.

Notation used below: ``C`` collateral value, ``D`` debt value, ``T`` target
leverage, ``k`` subsidy, ``S = ONE_HUNDRED_PERCENT_BPS``; all leverage, subsidy
and slippage figures are in basis points.

Amounts that must not overshoot the target are rounded down; amounts that must
reach it are rounded up.
"""

from dataclasses import dataclass
from typing import Optional

from ..common.protocol_constants import ONE_HUNDRED_PERCENT_BPS, Rounding, ceil_div, mul_div
from ..models.enums import ErrorCode, RebalanceDirection
from ..models.exceptions import ConfigurationError, LeverageBoundsError, UndefinedLeverageError

S = ONE_HUNDRED_PERCENT_BPS


@dataclass(frozen=True)
class RebalancePlan:
    """Base-value amounts of the rebalance that restores target leverage."""

    direction: RebalanceDirection
    current_leverage_bps: int
    input_base: int
    output_base: int
    subsidy_bps: int


def current_leverage_bps(collateral_base: int, debt_base: int) -> int:
    """Return ``C * S / (C - D)``; an empty position has leverage 0.

    Example:  current_leverage_bps(200, 100)  ->  20000
    """
    if collateral_base == 0 and debt_base == 0:
        return 0
    if collateral_base <= debt_base:
        raise UndefinedLeverageError(
            "Collateral value must exceed debt value",
            collateral_base=collateral_base,
            debt_base=debt_base,
        )
    return collateral_base * S // (collateral_base - debt_base)


def collateral_needed_for_target(debt_base: int, target_leverage_bps: int) -> int:
    """Collateral value at which ``debt_base`` sits exactly at target leverage."""
    _require_target(target_leverage_bps)
    return ceil_div(target_leverage_bps * debt_base, target_leverage_bps - S)


def subsidy_bps(
    current_leverage: int,
    target_leverage: int,
    max_subsidy_bps: int,
    min_deviation_bps: int = 0,
) -> int:
    """Rebalancer incentive proportional to the leverage deviation.

    Example:  subsidy_bps(20000, 30000, 500)  ->  500   (raw 3333, capped)
    """
    if target_leverage <= 0:
        raise ConfigurationError("Target leverage must be > 0", target_leverage_bps=target_leverage)
    deviation = abs(current_leverage - target_leverage)
    if deviation < min_deviation_bps:
        return 0
    return min(deviation * S // target_leverage, max_subsidy_bps)


def effective_subsidy_bps(subsidy: int, amount_base: int, max_subsidy_base_value: Optional[int]) -> int:
    """Lower ``subsidy`` so that ``amount_base * subsidy / S`` stays within the value cap."""
    if max_subsidy_base_value is None or amount_base == 0:
        return subsidy
    return min(subsidy, max_subsidy_base_value * S // amount_base)


def collateral_deposit_to_reach_target(
    collateral_base: int,
    debt_base: int,
    target_leverage_bps: int,
    subsidy: int,
) -> int:
    """Collateral value ``x`` to supply so that borrowing ``x * (1 + k)`` lands on target.

    Solves ``x = (T(C - D) - C) / (1 + T*k)``, rounded down.
    """
    _require_target(target_leverage_bps)
    if collateral_base == 0:
        raise UndefinedLeverageError("Vault has no collateral to lever up", collateral_base=0)
    leverage = current_leverage_bps(collateral_base, debt_base)
    numerator = target_leverage_bps * (collateral_base - debt_base) * S - collateral_base * S * S
    if numerator < 0:
        raise LeverageBoundsError(
            "Leverage is above target; decrease instead",
            code=ErrorCode.WRONG_REBALANCE_DIRECTION,
            current_leverage_bps=leverage,
            target_leverage_bps=target_leverage_bps,
        )
    return numerator // (S * S + target_leverage_bps * subsidy)


def debt_repay_to_reach_target(
    collateral_base: int,
    debt_base: int,
    target_leverage_bps: int,
    subsidy: int,
) -> int:
    """Debt value ``y`` to repay so that withdrawing ``y * (1 + k)`` lands on target.

    Solves ``y = (C - T(C - D)) / (1 + k - T*k)``, rounded down.

    Raises:
        ConfigurationError: If ``1 + k - T*k`` is zero or negative.
    """
    _require_target(target_leverage_bps)
    leverage = current_leverage_bps(collateral_base, debt_base)
    numerator = collateral_base * S * S - target_leverage_bps * (collateral_base - debt_base) * S
    if numerator < 0:
        raise LeverageBoundsError(
            "Leverage is below target; increase instead",
            code=ErrorCode.WRONG_REBALANCE_DIRECTION,
            current_leverage_bps=leverage,
            target_leverage_bps=target_leverage_bps,
        )
    denominator = S * S + subsidy * S - target_leverage_bps * subsidy
    if denominator <= 0:
        raise ConfigurationError(
            "Subsidy too large for target leverage",
            target_leverage_bps=target_leverage_bps,
            subsidy_bps=subsidy,
        )
    return numerator // denominator


def debt_borrow_for_increase(collateral_supplied_base: int, subsidy: int) -> int:
    """Debt value paid out for ``collateral_supplied_base`` including the subsidy."""
    return mul_div(collateral_supplied_base, S + subsidy, S)


def collateral_withdraw_for_decrease(debt_repaid_base: int, subsidy: int) -> int:
    """Collateral value paid out for ``debt_repaid_base`` including the subsidy."""
    return mul_div(debt_repaid_base, S + subsidy, S, Rounding.CEIL)


def is_too_imbalanced(leverage_bps: int, lower_bound_bps: int, upper_bound_bps: int) -> bool:
    """True when a non-empty position sits outside ``[lower, upper]``."""
    return leverage_bps != 0 and (leverage_bps < lower_bound_bps or leverage_bps > upper_bound_bps)


def rebalance_direction(leverage_bps: int, target_leverage_bps: int) -> RebalanceDirection:
    if leverage_bps == 0 or leverage_bps == target_leverage_bps:
        return RebalanceDirection.NONE
    if leverage_bps < target_leverage_bps:
        return RebalanceDirection.INCREASE
    return RebalanceDirection.DECREASE


def plan_rebalance(
    collateral_base: int,
    debt_base: int,
    target_leverage_bps: int,
    max_subsidy_bps: int,
    min_deviation_bps: int = 0,
    max_subsidy_base_value: Optional[int] = None,
) -> RebalancePlan:
    """Compute direction, amounts and effective subsidy of the restoring rebalance.

    For increases the absolute cap is applied to the paid-out debt after
    solving, which can only leave leverage below target. For decreases the
    subsidy rate itself is lowered and the amount re-solved, so the position
    still reaches the target instead of undershooting it.
    """
    leverage = current_leverage_bps(collateral_base, debt_base)
    direction = rebalance_direction(leverage, target_leverage_bps)
    if direction is RebalanceDirection.NONE:
        return RebalancePlan(direction, leverage, 0, 0, 0)

    subsidy = subsidy_bps(leverage, target_leverage_bps, max_subsidy_bps, min_deviation_bps)
    if direction is RebalanceDirection.INCREASE:
        supplied = collateral_deposit_to_reach_target(collateral_base, debt_base, target_leverage_bps, subsidy)
        subsidy = effective_subsidy_bps(subsidy, supplied, max_subsidy_base_value)
        return RebalancePlan(direction, leverage, supplied, debt_borrow_for_increase(supplied, subsidy), subsidy)

    repaid = debt_repay_to_reach_target(collateral_base, debt_base, target_leverage_bps, subsidy)
    capped = effective_subsidy_bps(subsidy, repaid, max_subsidy_base_value)
    if capped != subsidy:
        subsidy = capped
        repaid = debt_repay_to_reach_target(collateral_base, debt_base, target_leverage_bps, subsidy)
    return RebalancePlan(direction, leverage, repaid, collateral_withdraw_for_decrease(repaid, subsidy), subsidy)


# ---------------------------------------------------------------------------
# Deposit / periphery helpers
# ---------------------------------------------------------------------------

def target_leveraged_assets(assets: int, leverage_bps: int, rounding: Rounding = Rounding.FLOOR) -> int:
    """Leveraged collateral backing ``assets`` of equity at ``leverage_bps``."""
    return mul_div(assets, leverage_bps, S, rounding)


def borrow_base_keeping_leverage(supplied_base: int, leverage_bps: int) -> int:
    """Debt value to borrow against ``supplied_base`` so leverage stays at ``leverage_bps``.

    Example:  borrow_base_keeping_leverage(300, 30000)  ->  200
    """
    _require_target(leverage_bps)
    return mul_div(supplied_base, leverage_bps - S, leverage_bps)


def required_additional_collateral(leveraged_collateral: int, deposit_collateral: int) -> int:
    """Collateral to buy so that ``deposit_collateral`` grows to ``leveraged_collateral``."""
    if deposit_collateral > leveraged_collateral:
        raise ConfigurationError(
            "Deposit exceeds leveraged collateral",
            deposit=deposit_collateral,
            leveraged=leveraged_collateral,
        )
    return leveraged_collateral - deposit_collateral


def apply_slippage(amount: int, slippage_bps: int) -> int:
    """Reduce ``amount`` by ``slippage_bps``."""
    if not 0 <= slippage_bps <= S:
        raise ConfigurationError("Slippage must be within [0, 10000]", slippage_bps=slippage_bps)
    return mul_div(amount, S - slippage_bps, S)


def _require_target(target_leverage_bps: int) -> None:
    if target_leverage_bps <= S:
        raise ConfigurationError("Target leverage must exceed 1x", target_leverage_bps=target_leverage_bps)
