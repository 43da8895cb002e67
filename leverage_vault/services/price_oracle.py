"""Price oracle implementations and the staleness policy applied on reads."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from typing import Callable, Dict, Optional, Tuple

from ..core.atomic import StatefulComponent, TransactionManager
from ..models.collaborators import PriceOracle
from ..models.exceptions import ConfigurationError, StalePriceError


logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def now_epoch() -> int:
    """Return current UTC epoch seconds."""
    return int(datetime.now(timezone.utc).timestamp())


@dataclass
class OracleState:
    """Holds mutable oracle prices."""

    prices: Dict[str, int] = field(default_factory=dict)
    updated_at: Dict[str, int] = field(default_factory=dict)


class InMemoryPriceOracle(PriceOracle, StatefulComponent):
    """Settable price source used by the simulator and tests."""

    def __init__(self, transactions: TransactionManager, clock: Clock = now_epoch) -> None:
        self._state = OracleState()
        self._clock = clock
        transactions.register(self)

    def set_price(self, asset: str, price: int, updated_at: Optional[int] = None) -> None:
        """Publish ``price`` for ``asset``; timestamps default to now."""
        if price <= 0:
            raise ConfigurationError("Price must be > 0", asset=asset.upper(), price=price)
        key = asset.upper()
        self._state.prices[key] = price
        self._state.updated_at[key] = self._clock() if updated_at is None else updated_at
        logger.info("Oracle price updated asset=%s price=%s", key, price)

    def get_price(self, asset: str) -> Tuple[int, int]:
        key = asset.upper()
        if key not in self._state.prices:
            raise ConfigurationError("No price for asset", asset=key)
        return self._state.prices[key], self._state.updated_at[key]


@dataclass(frozen=True)
class OracleStalenessPolicy:
    """Maximum accepted price age in seconds; ``None`` disables the check."""

    max_age_sec: Optional[int] = None

    @classmethod
    def from_seconds(cls, seconds: int) -> "OracleStalenessPolicy":
        """Build a policy where ``0`` or less means no staleness check."""
        return cls(max_age_sec=seconds if seconds > 0 else None)


class PriceReader:
    """Reads oracle prices and enforces the staleness policy."""

    def __init__(
        self,
        oracle: PriceOracle,
        policy: OracleStalenessPolicy = OracleStalenessPolicy(),
        clock: Clock = now_epoch,
    ) -> None:
        self._oracle = oracle
        self._policy = policy
        self._clock = clock

    @property
    def policy(self) -> OracleStalenessPolicy:
        return self._policy

    def price_of(self, asset: str) -> int:
        """Return a positive, fresh price for ``asset``.

        Raises:
            ConfigurationError: If the oracle reports a non-positive price.
            StalePriceError: If the price is older than the policy allows.
        """
        price, updated_at = self._oracle.get_price(asset)
        if price <= 0:
            raise ConfigurationError("Oracle returned non-positive price", asset=asset, price=price)
        max_age = self._policy.max_age_sec
        if max_age is not None:
            age = self._clock() - updated_at
            if age > max_age:
                raise StalePriceError("Oracle price is stale", asset=asset, age=age, max_age=max_age)
        return price
