"""Seeded random operation sequences against a live ``VaultEngine``.

Every operation is a real engine call. Engine errors are expected along the way
(a decrease while below target, a deposit while too imbalanced) and are
recorded together with the snapshot taken afterwards, so callers can check that
rejected operations left no trace and that accepted ones kept the position
consistent.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import List, Optional, Tuple

import numpy as np

from ..common.protocol_constants import ONE_HUNDRED_PERCENT_BPS
from ..models.exceptions import EngineError, UndefinedLeverageError
from ..models.vault import PositionSnapshot
from ..services.vault_engine import VaultEngine


logger = logging.getLogger(__name__)


class OperationKind(str, Enum):
    """Operations a random sequence draws from."""

    DEPOSIT = "deposit"
    REDEEM = "redeem"
    FLASH_DEPOSIT = "flash_deposit"
    FLASH_REDEEM = "flash_redeem"
    INCREASE_LEVERAGE = "increase_leverage"
    DECREASE_LEVERAGE = "decrease_leverage"
    PRICE_MOVE = "price_move"
    ACCRUE_INTEREST = "accrue_interest"


@dataclass(frozen=True)
class SequenceConfig:
    """Shape of a random sequence."""

    n_operations: int = 60
    actors: Tuple[str, ...] = ("alice", "bob", "carol")
    keeper: str = "keeper"
    funding: int = 10**27
    """Tokens of each asset minted to every actor and the keeper."""

    deposit_unit: int = 10**16
    max_deposit_units: int = 1_000
    max_price_move_bps: int = 500
    max_interest_bps: int = 30


@dataclass(frozen=True)
class SequenceStep:
    """One executed operation and the vault state right after it."""

    kind: OperationKind
    actor: str
    error_code: Optional[str]
    before: PositionSnapshot
    after: PositionSnapshot

    @property
    def rejected(self) -> bool:
        return self.error_code is not None


@dataclass
class SequenceOutcome:
    """Steps of a sequence; ``insolvent`` is set when debt caught up with collateral."""

    steps: List[SequenceStep] = field(default_factory=list)
    insolvent: bool = False

    @property
    def accepted(self) -> List[SequenceStep]:
        return [step for step in self.steps if not step.rejected]

    @property
    def rejected(self) -> List[SequenceStep]:
        return [step for step in self.steps if step.rejected]


def run_random_sequence(
    engine: VaultEngine,
    config: SequenceConfig | None = None,
    seed: int | None = None,
) -> SequenceOutcome:
    """Fund the actors and run ``config.n_operations`` random operations.

    Parameters
    ----------
    engine:
        Engine with an in-memory oracle; prices are moved through it.
    config:
        Sequence shape.  Uses defaults when *None*.
    seed:
        Optional RNG seed for reproducibility.

    Returns
    -------
    SequenceOutcome
        Every step in order.  The run stops early if the vault turns insolvent.
    """
    if config is None:
        config = SequenceConfig()
    rng = np.random.default_rng(seed)
    core = engine.core
    for account in config.actors + (config.keeper,):
        engine.fund(account, core.collateral_asset, config.funding)
        engine.fund(account, core.debt_asset, config.funding)

    kinds = list(OperationKind)
    outcome = SequenceOutcome()
    before = engine.snapshot()
    for _ in range(config.n_operations):
        kind = kinds[int(rng.integers(len(kinds)))]
        actor = config.actors[int(rng.integers(len(config.actors)))]
        error_code: Optional[str] = None
        try:
            _apply(engine, kind, actor, config, rng)
        except EngineError as exc:
            error_code = exc.code.value
            logger.info("Sequence step %s by %s rejected: %s", kind.value, actor, exc)
        try:
            after = engine.snapshot()
        except UndefinedLeverageError:
            logger.warning("Vault became insolvent after %s", kind.value)
            outcome.insolvent = True
            break
        outcome.steps.append(SequenceStep(kind, actor, error_code, before, after))
        before = after
    return outcome


def _apply(
    engine: VaultEngine,
    kind: OperationKind,
    actor: str,
    config: SequenceConfig,
    rng: np.random.Generator,
) -> None:
    core = engine.core
    if kind is OperationKind.DEPOSIT:
        core.deposit(actor, _deposit_amount(config, rng))
    elif kind is OperationKind.FLASH_DEPOSIT:
        engine.orchestrator.deposit_with_leverage(actor, _deposit_amount(config, rng))
    elif kind in (OperationKind.REDEEM, OperationKind.FLASH_REDEEM):
        shares = core.balance_of(actor) * int(rng.integers(1, 101)) // 100
        if kind is OperationKind.REDEEM:
            core.redeem(actor, shares)
        else:
            engine.orchestrator.redeem_with_leverage(actor, shares)
    elif kind is OperationKind.INCREASE_LEVERAGE:
        engine.rebalancer.increase_leverage(config.keeper)
    elif kind is OperationKind.DECREASE_LEVERAGE:
        engine.rebalancer.decrease_leverage(config.keeper)
    elif kind is OperationKind.PRICE_MOVE:
        move = int(rng.integers(-config.max_price_move_bps, config.max_price_move_bps + 1))
        price, _ = engine.oracle.get_price(core.collateral_asset)
        engine.set_price(core.collateral_asset, max(price * (ONE_HUNDRED_PERCENT_BPS + move) // ONE_HUNDRED_PERCENT_BPS, 1))
    elif kind is OperationKind.ACCRUE_INTEREST:
        debt = core.get_debt()
        interest = debt * int(rng.integers(0, config.max_interest_bps + 1)) // ONE_HUNDRED_PERCENT_BPS
        if interest > 0:
            engine.market.accrue_interest(core.address, core.debt_asset, interest)


def _deposit_amount(config: SequenceConfig, rng: np.random.Generator) -> int:
    return int(rng.integers(1, config.max_deposit_units + 1)) * config.deposit_unit
