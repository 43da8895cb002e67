"""Custom exceptions for the accounting, rebalancing and periphery layers.

Every error aborts the transaction it is raised in. ``context`` carries the
numeric values that triggered the failure so callers and logs can report them.
"""

from typing import Any, Dict, Optional

from .enums import ErrorCode


class EngineError(Exception):
    """Base class for engine failures."""

    default_code = ErrorCode.INVALID_CONFIGURATION

    def __init__(self, message: str, code: Optional[ErrorCode] = None, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the error for API responses."""
        return {"code": self.code.value, "message": self.message, "context": dict(self.context)}

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join("{0}={1}".format(key, value) for key, value in sorted(self.context.items()))
        return "{0} ({1})".format(self.message, details)


class MarketIntegrityError(EngineError):
    """Raised when a lending market moves less than requested beyond tolerance."""

    default_code = ErrorCode.MARKET_SHORTFALL


class LeverageBoundsError(EngineError):
    """Raised when a leverage ratio is out of range or moves the wrong way."""

    default_code = ErrorCode.LEVERAGE_OUT_OF_BOUNDS


class UndefinedLeverageError(LeverageBoundsError):
    """Raised when collateral value does not exceed debt value."""

    default_code = ErrorCode.LEVERAGE_UNDEFINED


class SwapError(EngineError):
    """Raised when a swap spends too much, reports inconsistently or under-delivers."""

    default_code = ErrorCode.SWAP_OUTPUT_SHORTFALL


class ConfigurationError(EngineError):
    """Raised for invalid parameters and degenerate formulas."""

    default_code = ErrorCode.INVALID_CONFIGURATION


class SlippageError(EngineError):
    """Raised when a caller-supplied minimum is not met."""

    default_code = ErrorCode.SLIPPAGE_EXCEEDED


class InsufficientBalanceError(EngineError):
    """Raised when an account cannot cover a transfer or burn."""

    default_code = ErrorCode.INSUFFICIENT_BALANCE


class FlashLoanError(EngineError):
    """Raised when a flash loan is not repaid or its callback is not trusted."""

    default_code = ErrorCode.FLASH_LOAN_FAILED


class VaultPausedError(EngineError):
    """Raised for user operations while the vault is paused."""

    default_code = ErrorCode.VAULT_PAUSED


class InsolventVaultError(EngineError):
    """Raised when net asset value is negative or shares have no backing."""

    default_code = ErrorCode.VAULT_INSOLVENT


class StalePriceError(EngineError):
    """Raised when an oracle price is older than the configured maximum age."""

    default_code = ErrorCode.STALE_PRICE


class ExternalCallError(EngineError):
    """Raised by collaborators (market, DEX, flash lender) rejecting a call."""

    default_code = ErrorCode.EXTERNAL_CALL_FAILED
