"""Monte Carlo and randomized-sequence simulation of the leverage vault."""

from .price_paths import PricePathConfig, simulate_gbm_paths
from .sequences import OperationKind, SequenceConfig, SequenceOutcome, run_random_sequence
from .subsidy_sweep import MultiplierResult, SubsidySweepConfig, optimal_multiplier, run_subsidy_sweep

__all__ = [
    "MultiplierResult",
    "OperationKind",
    "PricePathConfig",
    "SequenceConfig",
    "SequenceOutcome",
    "SubsidySweepConfig",
    "optimal_multiplier",
    "run_random_sequence",
    "run_subsidy_sweep",
    "simulate_gbm_paths",
]
