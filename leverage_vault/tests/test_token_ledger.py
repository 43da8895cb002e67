"""Unit tests for the in-memory token ledger."""

import unittest

from leverage_vault.core.atomic import TransactionManager
from leverage_vault.models.exceptions import ConfigurationError, InsufficientBalanceError
from leverage_vault.services.token_ledger import TokenLedger


class TestTokenLedger(unittest.TestCase):
    def setUp(self) -> None:
        self.transactions = TransactionManager()
        self.ledger = TokenLedger(self.transactions)
        self.ledger.register_asset("weth", 18)

    def test_assets_are_case_insensitive(self) -> None:
        self.ledger.mint("WETH", "alice", 10)
        self.assertEqual(self.ledger.balance_of("weth", "alice"), 10)
        self.assertEqual(self.ledger.decimals("Weth"), 18)

    def test_mint_burn_and_transfer(self) -> None:
        self.ledger.mint("WETH", "alice", 100)
        self.ledger.transfer("WETH", "alice", "bob", 30)
        self.ledger.burn("WETH", "bob", 10)
        self.assertEqual(self.ledger.balance_of("WETH", "alice"), 70)
        self.assertEqual(self.ledger.balance_of("WETH", "bob"), 20)
        self.assertEqual(self.ledger.total_supply("WETH"), 90)

    def test_overdraft_raises(self) -> None:
        self.ledger.mint("WETH", "alice", 5)
        with self.assertRaises(InsufficientBalanceError) as ctx:
            self.ledger.transfer("WETH", "alice", "bob", 6)
        self.assertEqual(ctx.exception.context["available"], 5)

    def test_unknown_asset(self) -> None:
        with self.assertRaises(ConfigurationError):
            self.ledger.balance_of("DAI", "alice")

    def test_negative_amount_rejected(self) -> None:
        with self.assertRaises(ValueError):
            self.ledger.mint("WETH", "alice", -1)

    def test_invalid_decimals(self) -> None:
        with self.assertRaises(ConfigurationError):
            self.ledger.register_asset("ODD", 40)

    def test_transfers_roll_back_with_transaction(self) -> None:
        self.ledger.mint("WETH", "alice", 100)
        with self.assertRaises(InsufficientBalanceError):
            with self.transactions.atomic("two transfers"):
                self.ledger.transfer("WETH", "alice", "bob", 60)
                self.ledger.transfer("WETH", "alice", "bob", 60)
        self.assertEqual(self.ledger.balance_of("WETH", "alice"), 100)
        self.assertEqual(self.ledger.balance_of("WETH", "bob"), 0)


if __name__ == "__main__":
    unittest.main()
