"""Interfaces for the external collaborators the vault engine talks to."""

from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional, Tuple


class PriceOracle(ABC):
    """Source of asset prices in the base currency."""

    @abstractmethod
    def get_price(self, asset: str) -> Tuple[int, int]:
        """Return ``(price, updated_at)`` for ``asset``.

        ``price`` is scaled by ``PRICE_UNIT`` and ``updated_at`` is a unix
        timestamp in seconds.
        """


class LendingMarket(ABC):
    """Lending market holding the vault's collateral and debt positions."""

    @abstractmethod
    def supply(self, account: str, asset: str, amount: int) -> None:
        """Pull ``amount`` of ``asset`` from ``account`` and credit it as collateral."""

    @abstractmethod
    def withdraw_collateral(self, account: str, asset: str, amount: int) -> int:
        """Release collateral to ``account`` and return the amount reported as sent."""

    @abstractmethod
    def borrow(self, account: str, asset: str, amount: int) -> int:
        """Borrow ``asset`` against ``account``'s collateral."""

    @abstractmethod
    def repay(self, account: str, asset: str, amount: int) -> int:
        """Repay ``account``'s debt and return the amount reported as repaid."""

    @abstractmethod
    def get_collateral_balance(self, account: str, asset: str) -> int:
        """Collateral of ``asset`` held for ``account`` in native units."""

    @abstractmethod
    def get_debt_balance(self, account: str, asset: str) -> int:
        """Outstanding debt of ``asset`` owed by ``account`` in native units."""

    @abstractmethod
    def get_collateral_value(self, account: str) -> int:
        """Total collateral of ``account`` valued in the base currency."""

    @abstractmethod
    def get_debt_value(self, account: str) -> int:
        """Total debt of ``account`` valued in the base currency."""


class FlashLoanReceiver(ABC):
    """Contract-like object that can receive a flash loan."""

    address: str

    @abstractmethod
    def on_flash_loan(self, initiator: str, asset: str, amount: int, fee: int, data: Any) -> str:
        """Use the borrowed funds and return ``FLASH_LOAN_CALLBACK_SUCCESS``."""


class FlashLoanProvider(ABC):
    """Lender of single-transaction loans."""

    @abstractmethod
    def flash_fee(self, asset: str, amount: int) -> int:
        """Fee charged on top of ``amount``."""

    @abstractmethod
    def max_flash_loan(self, asset: str) -> int:
        """Largest amount of ``asset`` available for a flash loan."""

    @abstractmethod
    def flash_loan(
        self,
        receiver: FlashLoanReceiver,
        asset: str,
        amount: int,
        data: Any,
        initiator: Optional[str] = None,
    ) -> None:
        """Lend ``amount``, invoke the receiver callback and collect ``amount + fee``.

        ``initiator`` is the account requesting the loan; it defaults to the
        receiver and is passed through to the callback.
        """


class SwapExecutor(ABC):
    """Exact-output swap venue."""

    @abstractmethod
    def swap_exact_output(
        self,
        account: str,
        token_in: str,
        token_out: str,
        desired_out: int,
        max_in: int,
        routing_data: Optional[Mapping[str, Any]] = None,
    ) -> int:
        """Buy exactly ``desired_out`` of ``token_out`` for ``account``.

        Returns:
            int: Amount of ``token_in`` the venue reports as spent.
        """
