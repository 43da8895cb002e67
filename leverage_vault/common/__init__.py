"""Common reusable constants and integer math exports."""

from .protocol_constants import (
    BALANCE_DIFF_TOLERANCE,
    FLASH_LOAN_CALLBACK_SUCCESS,
    ONE_HUNDRED_PERCENT_BPS,
    PRICE_DECIMALS,
    PRICE_UNIT,
    SWAP_AMOUNT_TOLERANCE,
    UNLIMITED,
    Rounding,
    base_to_token,
    bps_of,
    ceil_div,
    mul_div,
    token_to_base,
)

__all__ = [
    "BALANCE_DIFF_TOLERANCE",
    "FLASH_LOAN_CALLBACK_SUCCESS",
    "ONE_HUNDRED_PERCENT_BPS",
    "PRICE_DECIMALS",
    "PRICE_UNIT",
    "SWAP_AMOUNT_TOLERANCE",
    "UNLIMITED",
    "Rounding",
    "base_to_token",
    "bps_of",
    "ceil_div",
    "mul_div",
    "token_to_base",
]
