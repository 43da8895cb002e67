"""Canonical protocol constants and integer math shared by every layer.

All amounts are integers in native token units. Prices are scaled by
``PRICE_UNIT`` and a *base value* is what an amount is worth in the oracle's
base currency:

    base_value = amount * price // 10**decimals

Leverage and fees are expressed in basis points where ``ONE_HUNDRED_PERCENT_BPS``
means 1x / 100 %.
"""

from __future__ import annotations

from enum import Enum

# ---------------------------------------------------------------------------
# Scaling factors
# ---------------------------------------------------------------------------
ONE_HUNDRED_PERCENT_BPS: int = 10_000
PRICE_DECIMALS: int = 8
PRICE_UNIT: int = 10**PRICE_DECIMALS

# ---------------------------------------------------------------------------
# Engine tolerances
# ---------------------------------------------------------------------------
BALANCE_DIFF_TOLERANCE: int = 1        # native units the market may round against us
SWAP_AMOUNT_TOLERANCE: int = 1         # reported vs measured swap input
UNLIMITED: int = 2**256 - 1            # type(uint256).max sentinel

# ---------------------------------------------------------------------------
# Share accounting
# ---------------------------------------------------------------------------
VIRTUAL_SHARES: int = 1
VIRTUAL_ASSETS: int = 1

FLASH_LOAN_CALLBACK_SUCCESS: str = "ERC3156FlashBorrower.onFlashLoan"

# ---------------------------------------------------------------------------
# Rebalance subsidy
# ---------------------------------------------------------------------------
DEFAULT_MAX_SUBSIDY_BASE_VALUE: int = 1_000 * PRICE_UNIT   # one rebalance pays at most this much base value

# models.vault reads the constants above while this import runs.
from ..models.exceptions import ConfigurationError  # noqa: E402


class Rounding(Enum):
    """Rounding direction for integer division."""

    FLOOR = "floor"
    CEIL = "ceil"


# ---------------------------------------------------------------------------
# Integer helpers
# ---------------------------------------------------------------------------

def ceil_div(numerator: int, denominator: int) -> int:
    """Division rounded towards positive infinity.

    Example:  ceil_div(7, 2)  ->  4
    """
    if denominator <= 0:
        raise ConfigurationError("Denominator must be positive", denominator=denominator)
    return -((-numerator) // denominator)


def mul_div(a: int, b: int, denominator: int, rounding: Rounding = Rounding.FLOOR) -> int:
    """Compute ``a * b / denominator`` with explicit rounding."""
    if denominator <= 0:
        raise ConfigurationError("Denominator must be positive", denominator=denominator)
    product = a * b
    if rounding is Rounding.CEIL:
        return ceil_div(product, denominator)
    return product // denominator


def bps_of(amount: int, bps: int, rounding: Rounding = Rounding.FLOOR) -> int:
    """Return ``amount * bps / 10_000``.

    Example:  bps_of(1_000, 250)  ->  25
    """
    return mul_div(amount, bps, ONE_HUNDRED_PERCENT_BPS, rounding)


# ---------------------------------------------------------------------------
# Unit conversion
# ---------------------------------------------------------------------------

def token_to_base(amount: int, price: int, decimals: int, rounding: Rounding = Rounding.FLOOR) -> int:
    """Convert native token units to base value.

    Example:  1e18 units at price 2e8 with 18 decimals  ->  2e8
    """
    if price <= 0:
        raise ConfigurationError("Price must be positive", price=price)
    return mul_div(amount, price, 10**decimals, rounding)


def base_to_token(amount_base: int, price: int, decimals: int, rounding: Rounding = Rounding.FLOOR) -> int:
    """Convert base value to native token units at ``price``."""
    if price <= 0:
        raise ConfigurationError("Price must be positive", price=price)
    return mul_div(amount_base, 10**decimals, price, rounding)


def gross_amount_for_net(net_amount: int, fee_bps: int) -> int:
    """Gross amount that leaves ``net_amount`` after a ``fee_bps`` fee."""
    return mul_div(net_amount, ONE_HUNDRED_PERCENT_BPS, ONE_HUNDRED_PERCENT_BPS - fee_bps, Rounding.CEIL)

