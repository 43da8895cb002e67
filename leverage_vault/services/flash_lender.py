"""In-memory ERC-3156-style flash lender."""

import logging
from typing import Any, Optional

from ..common.protocol_constants import FLASH_LOAN_CALLBACK_SUCCESS, ONE_HUNDRED_PERCENT_BPS, mul_div
from ..core.atomic import TransactionManager
from ..models.collaborators import FlashLoanProvider, FlashLoanReceiver
from ..models.exceptions import ConfigurationError, ExternalCallError, FlashLoanError
from .token_ledger import TokenLedger


logger = logging.getLogger(__name__)

FLASH_LENDER_ADDRESS = "flash-lender"


class InMemoryFlashLender(FlashLoanProvider):
    """Lends from its ledger balance and pulls back ``amount + fee`` after the callback."""

    def __init__(
        self,
        ledger: TokenLedger,
        transactions: TransactionManager,
        fee_bps: int = 0,
        address: str = FLASH_LENDER_ADDRESS,
    ) -> None:
        if not 0 <= fee_bps < ONE_HUNDRED_PERCENT_BPS:
            raise ConfigurationError("Flash fee must be within [0, 10000)", fee_bps=fee_bps)
        self.address = address
        self.fee_bps = fee_bps
        self._ledger = ledger
        self._transactions = transactions

    def flash_fee(self, asset: str, amount: int) -> int:
        return mul_div(amount, self.fee_bps, ONE_HUNDRED_PERCENT_BPS)

    def max_flash_loan(self, asset: str) -> int:
        return self._ledger.balance_of(asset, self.address)

    def flash_loan(
        self,
        receiver: FlashLoanReceiver,
        asset: str,
        amount: int,
        data: Any,
        initiator: Optional[str] = None,
    ) -> None:
        initiator = initiator or receiver.address
        with self._transactions.atomic("flash_loan"):
            available = self.max_flash_loan(asset)
            if amount <= 0 or amount > available:
                raise ExternalCallError("Flash loan amount unavailable", amount=amount, available=available)
            fee = self.flash_fee(asset, amount)
            self._ledger.transfer(asset, self.address, receiver.address, amount)
            confirmation = receiver.on_flash_loan(initiator, asset, amount, fee, data)
            if confirmation != FLASH_LOAN_CALLBACK_SUCCESS:
                raise FlashLoanError("Flash loan callback failed", receiver=receiver.address)
            owed = amount + fee
            balance = self._ledger.balance_of(asset, receiver.address)
            if balance < owed:
                raise FlashLoanError("Flash loan not repaid", owed=owed, balance=balance, receiver=receiver.address)
            self._ledger.transfer(asset, receiver.address, self.address, owed)
            logger.info("Flash loan asset=%s amount=%s fee=%s receiver=%s", asset, amount, fee, receiver.address)
