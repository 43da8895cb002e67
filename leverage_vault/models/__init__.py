"""Public model package exports for the leverage vault engine."""

from .base import Address, EngineModel, Money, PercentageBps
from .collaborators import FlashLoanProvider, FlashLoanReceiver, LendingMarket, PriceOracle, SwapExecutor
from .enums import ErrorCode, FlashOperation, MarketOperation, RebalanceDirection, SwapVenue
from .exceptions import (
    ConfigurationError,
    EngineError,
    ExternalCallError,
    FlashLoanError,
    InsolventVaultError,
    InsufficientBalanceError,
    LeverageBoundsError,
    MarketIntegrityError,
    SlippageError,
    StalePriceError,
    SwapError,
    UndefinedLeverageError,
    VaultPausedError,
)
from .results import (
    DepositResult,
    FlashDepositResult,
    FlashRebalanceResult,
    FlashRedeemResult,
    RebalanceQuote,
    RebalanceResult,
    RedeemPreview,
    RedeemResult,
)
from .vault import PositionSnapshot, VaultParameters

__all__ = [
    "Address",
    "EngineModel",
    "Money",
    "PercentageBps",
    "FlashLoanProvider",
    "FlashLoanReceiver",
    "LendingMarket",
    "PriceOracle",
    "SwapExecutor",
    "ErrorCode",
    "FlashOperation",
    "MarketOperation",
    "RebalanceDirection",
    "SwapVenue",
    "ConfigurationError",
    "EngineError",
    "ExternalCallError",
    "FlashLoanError",
    "InsolventVaultError",
    "InsufficientBalanceError",
    "LeverageBoundsError",
    "MarketIntegrityError",
    "SlippageError",
    "StalePriceError",
    "SwapError",
    "UndefinedLeverageError",
    "VaultPausedError",
    "DepositResult",
    "FlashDepositResult",
    "FlashRebalanceResult",
    "FlashRedeemResult",
    "RebalanceQuote",
    "RebalanceResult",
    "RedeemPreview",
    "RedeemResult",
    "PositionSnapshot",
    "VaultParameters",
]
