"""Collateral price paths from Geometric Brownian Motion with a stochastic drift.

Each step draws its own annual drift ``mu_mean + rate_sigma * N(0, 1)``, which
lets a path go through periods of negative carry, as a borrowing rate would.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class PricePathConfig:
    """Parameters for the GBM price simulation."""

    n_paths: int = 200
    """Number of independent Monte Carlo paths."""

    n_steps: int = 1000
    """Time steps per path; together they span one year."""

    sigma: float = 0.20
    """Annualised volatility of the collateral price."""

    mu_mean: float = 0.05
    """Mean annual drift."""

    rate_sigma: float = 0.10
    """Standard deviation of the per-step annual drift."""

    @property
    def dt(self) -> float:
        """Step size as a fraction of one year."""
        return 1.0 / self.n_steps


def simulate_gbm_paths(
    initial_price: float,
    config: PricePathConfig | None = None,
    seed: int | None = None,
) -> np.ndarray:
    """Simulate GBM price paths.

    Parameters
    ----------
    initial_price:
        Starting collateral price in base currency.
    config:
        Simulation hyper-parameters.  Uses defaults when *None*.
    seed:
        Optional RNG seed for reproducibility.

    Returns
    -------
    np.ndarray
        Shape ``(n_paths, n_steps + 1)`` where column 0 is ``initial_price``.
    """
    if config is None:
        config = PricePathConfig()
    if initial_price <= 0:
        raise ValueError("initial_price must be > 0")
    if config.n_paths <= 0 or config.n_steps <= 0:
        raise ValueError("n_paths and n_steps must be > 0")

    rng = np.random.default_rng(seed)
    dt = config.dt
    sigma = config.sigma

    mu = config.mu_mean + config.rate_sigma * rng.standard_normal((config.n_paths, config.n_steps))
    z = rng.standard_normal((config.n_paths, config.n_steps))

    # Log-return per step: (mu - sigma^2/2)*dt + sigma*sqrt(dt)*Z
    log_increments = (mu - 0.5 * sigma**2) * dt + sigma * np.sqrt(dt) * z

    cumulative = np.cumsum(log_increments, axis=1)
    cumulative = np.column_stack([np.zeros(config.n_paths), cumulative])
    return initial_price * np.exp(cumulative)
