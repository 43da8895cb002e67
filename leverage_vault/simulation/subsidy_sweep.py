"""Monte Carlo sweep of the rebalance-subsidy deviation multiplier.

Each trial holds a position at target leverage while the collateral price
follows a GBM path and the debt token stays pegged at 1. Whenever leverage
leaves ``[lower, upper]`` a rebalancer is paid
``min(multiplier * deviation / target, max_subsidy)`` of NAV to restore the
target, provided that subsidy beats the rebalancer's trading cost. The sweep
reports the mean retained value per multiplier so the multiplier that best
trades subsidy spend against time spent out of bounds can be picked.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import List, Sequence, Tuple

import numpy as np

from ..common.protocol_constants import ONE_HUNDRED_PERCENT_BPS
from .price_paths import PricePathConfig, simulate_gbm_paths


logger = logging.getLogger(__name__)

S = float(ONE_HUNDRED_PERCENT_BPS)

# Leverage reported for a position whose debt value reached its collateral value.
UNDEFINED_LEVERAGE_BPS = float(2**53 - 1)


@dataclass(frozen=True)
class SubsidySweepConfig:
    """Parameters of the subsidy-multiplier sweep."""

    target_leverage_bps: int = 30_000
    lower_bound_bps: int = 25_000
    upper_bound_bps: int = 35_000
    max_subsidy_bps: int = 5_000
    cost_bps: float = 30.0
    """Rebalancer trading cost; smaller subsidies are not worth acting on."""

    multiplier_min: float = 0.5
    multiplier_max: float = 2.0
    multiplier_step: float = 0.1
    initial_price: float = 100.0
    initial_collateral: float = 100.0
    paths: PricePathConfig = field(default_factory=PricePathConfig)

    def multipliers(self) -> np.ndarray:
        """Swept multipliers, inclusive of ``multiplier_max``."""
        if self.multiplier_step <= 0:
            raise ValueError("multiplier_step must be > 0")
        if self.multiplier_max < self.multiplier_min:
            raise ValueError("multiplier_max must be >= multiplier_min")
        values = np.arange(self.multiplier_min, self.multiplier_max + 1e-9, self.multiplier_step)
        return np.round(values, 6)


@dataclass(frozen=True)
class MultiplierResult:
    """Aggregated outcome of all trials for one multiplier."""

    multiplier: float
    mean_value: float
    avg_leverage_bps: float
    q25_leverage_bps: float
    q75_leverage_bps: float
    mean_rebalances: float
    wiped_out: int


def simulate_trials(
    prices: np.ndarray,
    multiplier: float,
    config: SubsidySweepConfig,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Run every price path of ``prices`` for one multiplier.

    Parameters
    ----------
    prices:
        Array of shape ``(n_trials, n_steps + 1)`` from :func:`simulate_gbm_paths`.
    multiplier:
        Deviation multiplier applied to the raw subsidy.
    config:
        Sweep parameters.

    Returns
    -------
    tuple of np.ndarray
        Retained value, mean leverage (bps) and rebalance count per trial.
        Wiped-out trials report zero value and zero leverage.
    """
    target = float(config.target_leverage_bps)
    n_trials, n_columns = prices.shape
    n_steps = n_columns - 1

    collateral_tokens = np.full(n_trials, float(config.initial_collateral))
    debt = collateral_tokens * prices[:, 0] * (1.0 - S / target)
    cumulative_subsidy = np.zeros(n_trials)
    leverage_sum = np.zeros(n_trials)
    rebalances = np.zeros(n_trials, dtype=np.int64)
    alive = np.ones(n_trials, dtype=bool)

    for step in range(1, n_columns):
        price = prices[:, step]
        collateral_base = collateral_tokens * price
        nav = collateral_base - debt
        safe_nav = np.where(nav > 0, nav, 1.0)
        leverage = np.where(nav > 0, collateral_base * S / safe_nav, UNDEFINED_LEVERAGE_BPS)
        leverage_sum += np.where(alive, leverage, 0.0)

        out_of_bounds = alive & ((leverage > config.upper_bound_bps) | (leverage < config.lower_bound_bps))
        deviation = np.abs(leverage - target)
        subsidy = np.minimum(multiplier * deviation * S / target, float(config.max_subsidy_bps))
        acting = out_of_bounds & (subsidy > config.cost_bps)

        subsidy_value = subsidy * nav / S
        nav_after = nav - subsidy_value
        wiped = acting & (nav_after <= 0)
        alive &= ~wiped
        acting &= ~wiped

        new_collateral_base = target / S * nav_after
        cumulative_subsidy = np.where(acting, cumulative_subsidy + subsidy_value, cumulative_subsidy)
        collateral_tokens = np.where(acting, new_collateral_base / price, collateral_tokens)
        debt = np.where(acting, new_collateral_base - nav_after, debt)
        rebalances += acting

    final_value = collateral_tokens * prices[:, -1] - debt - cumulative_subsidy
    values = np.where(alive, final_value, 0.0)
    mean_leverage = np.where(alive, leverage_sum / n_steps, 0.0)
    return values, mean_leverage, rebalances


def run_subsidy_sweep(config: SubsidySweepConfig | None = None, seed: int | None = None) -> List[MultiplierResult]:
    """Evaluate every multiplier against the same set of price paths."""
    if config is None:
        config = SubsidySweepConfig()
    if not config.lower_bound_bps <= config.target_leverage_bps <= config.upper_bound_bps:
        raise ValueError("Bounds must satisfy lower <= target <= upper")
    if config.target_leverage_bps <= ONE_HUNDRED_PERCENT_BPS:
        raise ValueError("Target leverage must exceed 1x")

    prices = simulate_gbm_paths(config.initial_price, config.paths, seed=seed)
    results: List[MultiplierResult] = []
    for multiplier in config.multipliers():
        values, leverages, rebalances = simulate_trials(prices, float(multiplier), config)
        results.append(
            MultiplierResult(
                multiplier=float(multiplier),
                mean_value=float(values.mean()),
                avg_leverage_bps=float(leverages.mean()),
                q25_leverage_bps=float(np.percentile(leverages, 25)),
                q75_leverage_bps=float(np.percentile(leverages, 75)),
                mean_rebalances=float(rebalances.mean()),
                wiped_out=int(np.count_nonzero(values == 0.0)),
            )
        )
    logger.info("Subsidy sweep evaluated %d multipliers over %d trials", len(results), prices.shape[0])
    return results


def optimal_multiplier(results: Sequence[MultiplierResult]) -> MultiplierResult:
    """Result with the highest mean retained value; the smallest multiplier wins ties."""
    if not results:
        raise ValueError("No sweep results")
    return max(results, key=lambda result: result.mean_value)
