"""Unit tests for the in-memory oracle and the staleness policy."""

import unittest

from leverage_vault.core.atomic import TransactionManager
from leverage_vault.models.enums import ErrorCode
from leverage_vault.models.exceptions import ConfigurationError, StalePriceError
from leverage_vault.services.price_oracle import InMemoryPriceOracle, OracleStalenessPolicy, PriceReader


class _Clock:
    def __init__(self, now: int) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


class TestInMemoryPriceOracle(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = _Clock(1_000)
        self.oracle = InMemoryPriceOracle(TransactionManager(), clock=self.clock)

    def test_set_and_get(self) -> None:
        self.oracle.set_price("weth", 2_000 * 10**8)
        self.assertEqual(self.oracle.get_price("WETH"), (2_000 * 10**8, 1_000))

    def test_explicit_timestamp(self) -> None:
        self.oracle.set_price("WETH", 5, updated_at=10)
        self.assertEqual(self.oracle.get_price("WETH")[1], 10)

    def test_rejects_non_positive_price(self) -> None:
        with self.assertRaises(ConfigurationError):
            self.oracle.set_price("WETH", 0)

    def test_unknown_asset(self) -> None:
        with self.assertRaises(ConfigurationError):
            self.oracle.get_price("WBTC")


class TestPriceReader(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = _Clock(1_000)
        self.oracle = InMemoryPriceOracle(TransactionManager(), clock=self.clock)
        self.oracle.set_price("WETH", 2_000 * 10**8)

    def test_policy_from_seconds(self) -> None:
        self.assertIsNone(OracleStalenessPolicy.from_seconds(0).max_age_sec)
        self.assertEqual(OracleStalenessPolicy.from_seconds(60).max_age_sec, 60)

    def test_no_policy_accepts_old_prices(self) -> None:
        reader = PriceReader(self.oracle, OracleStalenessPolicy(), clock=self.clock)
        self.clock.now = 10**9
        self.assertEqual(reader.price_of("WETH"), 2_000 * 10**8)

    def test_fresh_price_accepted_at_limit(self) -> None:
        reader = PriceReader(self.oracle, OracleStalenessPolicy(max_age_sec=60), clock=self.clock)
        self.clock.now = 1_060
        self.assertEqual(reader.price_of("WETH"), 2_000 * 10**8)

    def test_stale_price_rejected(self) -> None:
        reader = PriceReader(self.oracle, OracleStalenessPolicy(max_age_sec=60), clock=self.clock)
        self.clock.now = 1_061
        with self.assertRaises(StalePriceError) as ctx:
            reader.price_of("WETH")
        self.assertEqual(ctx.exception.code, ErrorCode.STALE_PRICE)
        self.assertEqual(ctx.exception.context["age"], 61)


if __name__ == "__main__":
    unittest.main()
