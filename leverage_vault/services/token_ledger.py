"""In-memory ERC-20-like balance ledger shared by every simulated actor."""

from dataclasses import dataclass, field
import logging
from typing import Dict

from ..core.atomic import StatefulComponent, TransactionManager
from ..models.exceptions import ConfigurationError, InsufficientBalanceError


logger = logging.getLogger(__name__)


@dataclass
class LedgerState:
    """Holds mutable ledger state."""

    decimals: Dict[str, int] = field(default_factory=dict)
    balances: Dict[str, Dict[str, int]] = field(default_factory=dict)
    total_supply: Dict[str, int] = field(default_factory=dict)


class TokenLedger(StatefulComponent):
    """Token balances keyed by asset then account."""

    def __init__(self, transactions: TransactionManager) -> None:
        self._state = LedgerState()
        transactions.register(self)

    def register_asset(self, asset: str, decimals: int) -> None:
        """Declare ``asset`` with its number of decimals."""
        key = asset.upper()
        if decimals < 0 or decimals > 36:
            raise ConfigurationError("Unsupported token decimals", asset=key, decimals=decimals)
        self._state.decimals[key] = decimals
        self._state.balances.setdefault(key, {})
        self._state.total_supply.setdefault(key, 0)

    def decimals(self, asset: str) -> int:
        return self._state.decimals[self._known(asset)]

    def balance_of(self, asset: str, account: str) -> int:
        return self._state.balances[self._known(asset)].get(account, 0)

    def total_supply(self, asset: str) -> int:
        return self._state.total_supply[self._known(asset)]

    def mint(self, asset: str, account: str, amount: int) -> None:
        """Create ``amount`` new tokens for ``account``."""
        key = self._known(asset)
        _require_non_negative(amount)
        balances = self._state.balances[key]
        balances[account] = balances.get(account, 0) + amount
        self._state.total_supply[key] += amount

    def burn(self, asset: str, account: str, amount: int) -> None:
        """Destroy ``amount`` tokens held by ``account``."""
        key = self._known(asset)
        _require_non_negative(amount)
        self._debit(key, account, amount)
        self._state.total_supply[key] -= amount

    def transfer(self, asset: str, sender: str, recipient: str, amount: int) -> None:
        """Move ``amount`` of ``asset`` from ``sender`` to ``recipient``."""
        key = self._known(asset)
        _require_non_negative(amount)
        if amount == 0:
            return
        self._debit(key, sender, amount)
        balances = self._state.balances[key]
        balances[recipient] = balances.get(recipient, 0) + amount
        logger.debug("transfer asset=%s from=%s to=%s amount=%s", key, sender, recipient, amount)

    def _debit(self, key: str, account: str, amount: int) -> None:
        balances = self._state.balances[key]
        available = balances.get(account, 0)
        if available < amount:
            raise InsufficientBalanceError(
                "Insufficient token balance",
                asset=key,
                account=account,
                available=available,
                required=amount,
            )
        balances[account] = available - amount

    def _known(self, asset: str) -> str:
        key = asset.upper()
        if key not in self._state.decimals:
            raise ConfigurationError("Unknown asset", asset=key)
        return key


def _require_non_negative(amount: int) -> None:
    if amount < 0:
        raise ValueError("Token amount must be >= 0")
