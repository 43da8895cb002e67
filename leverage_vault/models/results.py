"""Result and quote models returned by engine operations."""

from pydantic import Field

from .base import EngineModel, Money, PercentageBps
from .enums import FlashOperation, RebalanceDirection


class DepositResult(EngineModel):
    """Outcome of a direct deposit into the accounting core."""

    shares: int = Field(..., ge=0)
    collateral_in: Money = Field(..., ge=0)
    debt_borrowed: Money = Field(..., ge=0)
    net_value_added: Money
    leverage_after_bps: PercentageBps


class RedeemResult(EngineModel):
    """Outcome of burning shares against the proportional position."""

    shares: int = Field(..., ge=0)
    collateral_out: Money = Field(..., ge=0)
    withdrawal_fee: Money = Field(default=0, ge=0)
    debt_repaid: Money = Field(..., ge=0)


class RedeemPreview(EngineModel):
    """Token amounts a redemption of ``shares`` would move right now."""

    shares: int = Field(..., ge=0)
    collateral_out: Money = Field(..., ge=0)
    withdrawal_fee: Money = Field(default=0, ge=0)
    debt_to_repay: Money = Field(..., ge=0)


class RebalanceQuote(EngineModel):
    """Amounts a rebalancer would move to bring leverage back to target."""

    direction: RebalanceDirection
    current_leverage_bps: PercentageBps
    target_leverage_bps: PercentageBps
    input_token: str
    input_amount: Money = Field(..., ge=0)
    output_token: str
    estimated_output: Money = Field(..., ge=0)
    subsidy_bps: PercentageBps = Field(..., ge=0)


class RebalanceResult(EngineModel):
    """Outcome of an executed increase or decrease of leverage."""

    direction: RebalanceDirection
    input_amount: Money = Field(..., ge=0)
    output_amount: Money = Field(..., ge=0)
    subsidy_bps: PercentageBps = Field(..., ge=0)
    subsidy_base_value: Money = Field(..., ge=0)
    leverage_before_bps: PercentageBps
    leverage_after_bps: PercentageBps
    withdrawal_fee: Money = Field(default=0, ge=0)


class FlashDepositResult(EngineModel):
    """Outcome of a flash-loan funded leveraged deposit."""

    shares: int = Field(..., ge=0)
    user_collateral: Money = Field(..., ge=0)
    extra_collateral: Money = Field(..., ge=0)
    flash_amount: Money = Field(..., ge=0)
    swap_input: Money = Field(..., ge=0)
    debt_borrowed: Money = Field(..., ge=0)
    leftover_debt: Money = Field(default=0, ge=0)


class FlashRedeemResult(EngineModel):
    """Outcome of a flash-loan funded leveraged redemption."""

    shares: int = Field(..., ge=0)
    collateral_out: Money = Field(..., ge=0)
    flash_amount: Money = Field(..., ge=0)
    swap_input: Money = Field(..., ge=0)
    debt_repaid: Money = Field(..., ge=0)


class FlashRebalanceResult(EngineModel):
    """Outcome of a flash-loan funded increase or decrease of leverage."""

    operation: FlashOperation
    rebalance: RebalanceResult
    flash_amount: Money = Field(..., ge=0)
    swap_input: Money = Field(..., ge=0)
    caller_contribution: Money = Field(..., ge=0)
    profit_token: str
    profit: Money = Field(..., ge=0)
