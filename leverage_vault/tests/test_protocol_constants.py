"""Unit tests for protocol constants and integer helpers."""

import unittest

from leverage_vault.common.protocol_constants import (
    DEFAULT_MAX_SUBSIDY_BASE_VALUE,
    ONE_HUNDRED_PERCENT_BPS,
    PRICE_UNIT,
    UNLIMITED,
    Rounding,
    base_to_token,
    bps_of,
    ceil_div,
    gross_amount_for_net,
    mul_div,
    token_to_base,
)
from leverage_vault.models.exceptions import ConfigurationError


class TestConstants(unittest.TestCase):
    """Verify scaling constants."""

    def test_one_hundred_percent(self) -> None:
        self.assertEqual(ONE_HUNDRED_PERCENT_BPS, 10_000)

    def test_price_unit(self) -> None:
        self.assertEqual(PRICE_UNIT, 10**8)

    def test_unlimited_is_uint256_max(self) -> None:
        self.assertEqual(UNLIMITED, 2**256 - 1)

    def test_default_subsidy_cap_is_finite(self) -> None:
        self.assertEqual(DEFAULT_MAX_SUBSIDY_BASE_VALUE, 1_000 * PRICE_UNIT)


class TestIntegerMath(unittest.TestCase):
    """Verify rounding helpers."""

    def test_ceil_div(self) -> None:
        self.assertEqual(ceil_div(7, 2), 4)
        self.assertEqual(ceil_div(8, 2), 4)
        self.assertEqual(ceil_div(0, 3), 0)

    def test_zero_denominator_is_a_configuration_error(self) -> None:
        with self.assertRaises(ConfigurationError):
            ceil_div(1, 0)
        with self.assertRaises(ConfigurationError):
            mul_div(1, 1, 0)

    def test_mul_div_rounding(self) -> None:
        self.assertEqual(mul_div(10, 1, 3), 3)
        self.assertEqual(mul_div(10, 1, 3, Rounding.CEIL), 4)

    def test_bps_of(self) -> None:
        self.assertEqual(bps_of(1_000, 250), 25)
        self.assertEqual(bps_of(999, 1, Rounding.CEIL), 1)


class TestUnitConversion(unittest.TestCase):
    """Verify native-unit to base-value conversions."""

    def test_token_to_base_one_eth(self) -> None:
        self.assertEqual(token_to_base(10**18, 2_000 * PRICE_UNIT, 18), 2_000 * PRICE_UNIT)

    def test_token_to_base_six_decimals(self) -> None:
        self.assertEqual(token_to_base(1_500_000, PRICE_UNIT, 6), 150_000_000)

    def test_base_to_token_floor_and_ceil(self) -> None:
        price = 3 * PRICE_UNIT
        self.assertEqual(base_to_token(PRICE_UNIT, price, 0), 0)
        self.assertEqual(base_to_token(PRICE_UNIT, price, 0, Rounding.CEIL), 1)

    def test_conversion_round_trip_never_gains(self) -> None:
        price = 1_700 * PRICE_UNIT
        for amount in (1, 7, 10**15 + 3, 123_456_789_012_345_678):
            base = token_to_base(amount, price, 18)
            self.assertLessEqual(base_to_token(base, price, 18), amount)

    def test_non_positive_price_rejected(self) -> None:
        with self.assertRaises(ConfigurationError):
            base_to_token(PRICE_UNIT, 0, 18)
        with self.assertRaises(ConfigurationError):
            token_to_base(10**18, 0, 18)

    def test_gross_amount_for_net(self) -> None:
        self.assertEqual(gross_amount_for_net(9_970, 30), 10_000)
        self.assertEqual(gross_amount_for_net(12_345, 0), 12_345)
        gross = gross_amount_for_net(12_345, 17)
        self.assertGreaterEqual(gross - bps_of(gross, 17), 12_345)


if __name__ == "__main__":
    unittest.main()
