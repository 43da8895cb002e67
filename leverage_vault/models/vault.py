"""Vault parameter and position snapshot models."""

import logging
from typing import Optional

from pydantic import Field, root_validator, validator

from ..common.protocol_constants import DEFAULT_MAX_SUBSIDY_BASE_VALUE, ONE_HUNDRED_PERCENT_BPS
from .base import Address, EngineModel, Money, PercentageBps


logger = logging.getLogger(__name__)

MAX_WITHDRAWAL_FEE_BPS = 1_000


class VaultParameters(EngineModel):
    """Governance-settable vault configuration with an immutable asset pair."""

    collateral_asset: Address = Field(..., min_length=1)
    debt_asset: Address = Field(..., min_length=1)

    target_leverage_bps: PercentageBps = Field(..., gt=ONE_HUNDRED_PERCENT_BPS)
    lower_bound_bps: PercentageBps = Field(..., ge=ONE_HUNDRED_PERCENT_BPS)
    upper_bound_bps: PercentageBps = Field(..., gt=ONE_HUNDRED_PERCENT_BPS)

    max_subsidy_bps: PercentageBps = Field(default=0, ge=0, le=ONE_HUNDRED_PERCENT_BPS)
    min_deviation_bps: PercentageBps = Field(default=0, ge=0)
    max_subsidy_base_value: Optional[Money] = Field(default=DEFAULT_MAX_SUBSIDY_BASE_VALUE, ge=0)

    withdrawal_fee_bps: PercentageBps = Field(default=0, ge=0, le=MAX_WITHDRAWAL_FEE_BPS)
    fee_receiver: Address = Field(default="fee-receiver", min_length=1)

    @validator("collateral_asset", "debt_asset")
    def _normalize_asset(cls, value: str) -> str:
        """Store asset identifiers in upper case."""
        return value.upper()

    @root_validator(skip_on_failure=True)
    def _validate_bounds(cls, values: dict) -> dict:
        """Enforce lower <= target <= upper and a distinct asset pair."""
        lower = int(values.get("lower_bound_bps", 0))
        target = int(values.get("target_leverage_bps", 0))
        upper = int(values.get("upper_bound_bps", 0))
        if not lower <= target <= upper:
            logger.warning("Rejected leverage bounds lower=%s target=%s upper=%s", lower, target, upper)
            raise ValueError("leverage bounds must satisfy lower <= target <= upper")
        if values.get("collateral_asset") == values.get("debt_asset"):
            raise ValueError("collateral and debt assets must differ")
        return values


class PositionSnapshot(EngineModel):
    """Point-in-time view of the vault's market position and share supply."""

    collateral: Money
    debt: Money
    collateral_base: Money
    debt_base: Money
    net_asset_value: Money
    leverage_bps: PercentageBps
    target_leverage_bps: PercentageBps
    lower_bound_bps: PercentageBps
    upper_bound_bps: PercentageBps
    share_supply: int
    is_too_imbalanced: bool
    paused: bool
