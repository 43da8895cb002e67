"""Script to sweep the rebalance-subsidy multiplier with Monte Carlo paths."""

import argparse
import logging
from typing import List, Optional

from leverage_vault.core import setup_logging
from leverage_vault.simulation import (
    PricePathConfig,
    SubsidySweepConfig,
    optimal_multiplier,
    run_subsidy_sweep,
)


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Find the subsidy multiplier that maximises retained vault value.")
    parser.add_argument("--target", type=int, required=True, help="Target leverage in bps (e.g. 30000 for 3x).")
    parser.add_argument("--lower", type=int, required=True, help="Lower bound leverage bps.")
    parser.add_argument("--upper", type=int, required=True, help="Upper bound leverage bps.")
    parser.add_argument("--sigma", type=float, default=0.2, help="Annualised volatility of collateral price.")
    parser.add_argument("--mu-mean", type=float, default=0.05, help="Mean annual drift of collateral price.")
    parser.add_argument("--rate-sigma", type=float, default=0.1, help="Std-dev of annual drift.")
    parser.add_argument("--steps", type=int, default=1000, help="Timesteps per trial.")
    parser.add_argument("--trials", type=int, default=200, help="Number of Monte Carlo trials.")
    parser.add_argument("--subsidy-max", type=int, default=5000, help="Maximum subsidy in bps.")
    parser.add_argument("--cost-bps", type=float, default=30.0, help="Rebalancer trading cost in bps.")
    parser.add_argument("--mult-min", type=float, default=0.5, help="Minimum deviation multiplier.")
    parser.add_argument("--mult-max", type=float, default=2.0, help="Maximum deviation multiplier.")
    parser.add_argument("--mult-step", type=float, default=0.1, help="Step for deviation multiplier.")
    parser.add_argument("--initial-price", type=float, default=100.0, help="Initial collateral price.")
    parser.add_argument("--initial-collateral", type=float, default=100.0, help="Initial collateral tokens.")
    parser.add_argument("--seed", type=int, default=None, help="RNG seed.")
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level.")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Run the sweep and log one line per multiplier plus the optimum."""
    args = build_parser().parse_args(argv)
    setup_logging(debug=args.verbose)
    config = SubsidySweepConfig(
        target_leverage_bps=args.target,
        lower_bound_bps=args.lower,
        upper_bound_bps=args.upper,
        max_subsidy_bps=args.subsidy_max,
        cost_bps=args.cost_bps,
        multiplier_min=args.mult_min,
        multiplier_max=args.mult_max,
        multiplier_step=args.mult_step,
        initial_price=args.initial_price,
        initial_collateral=args.initial_collateral,
        paths=PricePathConfig(
            n_paths=args.trials,
            n_steps=args.steps,
            sigma=args.sigma,
            mu_mean=args.mu_mean,
            rate_sigma=args.rate_sigma,
        ),
    )
    results = run_subsidy_sweep(config, seed=args.seed)
    for result in results:
        logger.info(
            "multiplier=%.2f mean_value=%.4f avg_lev=%.0f q25=%.0f q75=%.0f rebalances=%.1f wiped=%d",
            result.multiplier,
            result.mean_value,
            result.avg_leverage_bps,
            result.q25_leverage_bps,
            result.q75_leverage_bps,
            result.mean_rebalances,
            result.wiped_out,
        )
    best = optimal_multiplier(results)
    logger.info("Optimal multiplier: %.2f with mean retained value %.2f", best.multiplier, best.mean_value)


if __name__ == "__main__":
    main()
