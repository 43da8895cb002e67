"""Tests for the price-path, subsidy-sweep and random-sequence simulations."""

import unittest

import numpy as np

from leverage_vault.simulation import (
    MultiplierResult,
    PricePathConfig,
    SequenceConfig,
    SubsidySweepConfig,
    optimal_multiplier,
    run_random_sequence,
    run_subsidy_sweep,
    simulate_gbm_paths,
)
from leverage_vault.simulation.subsidy_sweep import simulate_trials
from leverage_vault.tests.support import make_engine

SMALL_PATHS = PricePathConfig(n_paths=20, n_steps=50)


class TestPricePaths(unittest.TestCase):
    def test_shape_and_start(self) -> None:
        prices = simulate_gbm_paths(100.0, SMALL_PATHS, seed=1)
        self.assertEqual(prices.shape, (20, 51))
        self.assertTrue(np.allclose(prices[:, 0], 100.0))
        self.assertTrue(np.all(prices > 0))

    def test_seed_is_reproducible(self) -> None:
        first = simulate_gbm_paths(50.0, SMALL_PATHS, seed=42)
        self.assertTrue(np.array_equal(first, simulate_gbm_paths(50.0, SMALL_PATHS, seed=42)))
        self.assertFalse(np.array_equal(first, simulate_gbm_paths(50.0, SMALL_PATHS, seed=43)))

    def test_invalid_inputs(self) -> None:
        with self.assertRaises(ValueError):
            simulate_gbm_paths(0.0, SMALL_PATHS)
        with self.assertRaises(ValueError):
            simulate_gbm_paths(1.0, PricePathConfig(n_paths=0))


class TestSubsidySweep(unittest.TestCase):
    def test_multiplier_grid(self) -> None:
        multipliers = SubsidySweepConfig().multipliers()
        self.assertEqual(len(multipliers), 16)
        self.assertAlmostEqual(multipliers[0], 0.5)
        self.assertAlmostEqual(multipliers[-1], 2.0)

    def test_flat_prices_never_rebalance(self) -> None:
        prices = np.full((3, 11), 100.0)
        values, leverages, rebalances = simulate_trials(prices, 1.0, SubsidySweepConfig())
        self.assertTrue(np.all(rebalances == 0))
        self.assertTrue(np.allclose(values, 100.0 * 100.0 / 3.0))
        self.assertTrue(np.allclose(leverages, 30_000.0))

    def test_price_drop_triggers_paid_rebalance(self) -> None:
        prices = np.array([[100.0, 90.0, 90.0]])
        nav_before = 100.0 * 90.0 - 100.0 * 100.0 * (2.0 / 3.0)
        values, _, rebalances = simulate_trials(prices, 1.0, SubsidySweepConfig())
        self.assertEqual(int(rebalances[0]), 1)
        self.assertLess(values[0], nav_before)

    def test_sweep_is_reproducible(self) -> None:
        config = SubsidySweepConfig(paths=SMALL_PATHS, multiplier_min=0.5, multiplier_max=1.0)
        results = run_subsidy_sweep(config, seed=7)
        self.assertEqual([result.multiplier for result in results], [0.5, 0.6, 0.7, 0.8, 0.9, 1.0])
        self.assertEqual(results, run_subsidy_sweep(config, seed=7))
        best = optimal_multiplier(results)
        self.assertEqual(best.mean_value, max(result.mean_value for result in results))

    def test_invalid_bounds(self) -> None:
        with self.assertRaises(ValueError):
            run_subsidy_sweep(SubsidySweepConfig(lower_bound_bps=31_000, paths=SMALL_PATHS))

    def test_optimal_prefers_first_on_tie(self) -> None:
        tied = [MultiplierResult(m, 10.0, 30_000.0, 29_000.0, 31_000.0, 1.0, 0) for m in (0.5, 0.6)]
        self.assertEqual(optimal_multiplier(tied).multiplier, 0.5)
        with self.assertRaises(ValueError):
            optimal_multiplier([])


class TestRandomSequence(unittest.TestCase):
    def test_invariants_hold_across_operations(self) -> None:
        engine = make_engine()
        config = SequenceConfig(n_operations=40)
        outcome = run_random_sequence(engine, config, seed=3)
        self.assertGreater(len(outcome.accepted), 0)
        for step in outcome.steps:
            if step.rejected:
                self.assertEqual(step.before, step.after, msg=step.kind)
            self.assertEqual(step.after.net_asset_value, step.after.collateral_base - step.after.debt_base)
            self.assertGreaterEqual(step.after.net_asset_value, 0)
        holders = sum(engine.core.balance_of(actor) for actor in config.actors)
        self.assertEqual(engine.core.share_supply, holders)

    def test_same_seed_same_sequence(self) -> None:
        config = SequenceConfig(n_operations=20)
        first = run_random_sequence(make_engine(), config, seed=11)
        second = run_random_sequence(make_engine(), config, seed=11)
        self.assertEqual(
            [(step.kind, step.actor, step.error_code) for step in first.steps],
            [(step.kind, step.actor, step.error_code) for step in second.steps],
        )


if __name__ == "__main__":
    unittest.main()
