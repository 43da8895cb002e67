"""Reusable enums for the leverage vault domain."""

from enum import Enum


class StringEnum(str, Enum):
    """Base enum class with string behavior for JSON serialization."""


class RebalanceDirection(StringEnum):
    """Which way a rebalance moves the leverage ratio."""

    INCREASE = "INCREASE"
    DECREASE = "DECREASE"
    NONE = "NONE"


class SwapVenue(StringEnum):
    """Swap venues a flash-loan orchestrator can be built with."""

    ORACLE_DEX = "oracle_dex"
    AGGREGATOR = "aggregator"


class MarketOperation(StringEnum):
    """Lending market calls wrapped by balance-delta checks."""

    SUPPLY = "SUPPLY"
    WITHDRAW = "WITHDRAW"
    BORROW = "BORROW"
    REPAY = "REPAY"


class FlashOperation(StringEnum):
    """Periphery flows executed inside a flash-loan callback."""

    DEPOSIT = "DEPOSIT"
    REDEEM = "REDEEM"
    INCREASE_LEVERAGE = "INCREASE_LEVERAGE"
    DECREASE_LEVERAGE = "DECREASE_LEVERAGE"


class ErrorCode(StringEnum):
    """Stable identifiers attached to every engine error."""

    MARKET_SHORTFALL = "MARKET_SHORTFALL"
    LEVERAGE_UNDEFINED = "LEVERAGE_UNDEFINED"
    LEVERAGE_OUT_OF_BOUNDS = "LEVERAGE_OUT_OF_BOUNDS"
    INCREASE_OUT_OF_RANGE = "INCREASE_OUT_OF_RANGE"
    DECREASE_OUT_OF_RANGE = "DECREASE_OUT_OF_RANGE"
    WRONG_REBALANCE_DIRECTION = "WRONG_REBALANCE_DIRECTION"
    TOO_IMBALANCED = "TOO_IMBALANCED"
    SWAP_INPUT_EXCEEDED = "SWAP_INPUT_EXCEEDED"
    SWAP_AMOUNT_MISMATCH = "SWAP_AMOUNT_MISMATCH"
    SWAP_OUTPUT_SHORTFALL = "SWAP_OUTPUT_SHORTFALL"
    INVALID_CONFIGURATION = "INVALID_CONFIGURATION"
    SLIPPAGE_EXCEEDED = "SLIPPAGE_EXCEEDED"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    FLASH_LOAN_FAILED = "FLASH_LOAN_FAILED"
    VAULT_PAUSED = "VAULT_PAUSED"
    VAULT_INSOLVENT = "VAULT_INSOLVENT"
    STALE_PRICE = "STALE_PRICE"
    EXTERNAL_CALL_FAILED = "EXTERNAL_CALL_FAILED"
