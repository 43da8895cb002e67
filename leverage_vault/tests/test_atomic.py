"""Unit tests for snapshot-and-restore transactions."""

from dataclasses import dataclass, field
from typing import List
import unittest

from leverage_vault.core.atomic import StatefulComponent, TransactionManager


@dataclass
class _CounterState:
    value: int = 0
    history: List[int] = field(default_factory=list)


class _Counter(StatefulComponent):
    def __init__(self, transactions: TransactionManager) -> None:
        self._state = _CounterState()
        transactions.register(self)

    @property
    def value(self) -> int:
        return self._state.value

    def add(self, amount: int) -> None:
        self._state.value += amount
        self._state.history.append(amount)


class TestTransactionManager(unittest.TestCase):
    def setUp(self) -> None:
        self.transactions = TransactionManager()
        self.counter = _Counter(self.transactions)

    def test_commit_keeps_changes(self) -> None:
        with self.transactions.atomic("add"):
            self.counter.add(5)
        self.assertEqual(self.counter.value, 5)
        self.assertFalse(self.transactions.in_transaction)

    def test_failure_restores_state(self) -> None:
        self.counter.add(1)
        with self.assertRaises(RuntimeError):
            with self.transactions.atomic("fail"):
                self.counter.add(10)
                raise RuntimeError("boom")
        self.assertEqual(self.counter.value, 1)
        self.assertEqual(self.counter._state.history, [1])

    def test_nested_failure_rolls_back_to_savepoint(self) -> None:
        with self.transactions.atomic("outer"):
            self.counter.add(1)
            try:
                with self.transactions.atomic("inner"):
                    self.counter.add(100)
                    self.assertEqual(self.transactions.depth, 2)
                    raise ValueError("inner failure")
            except ValueError:
                pass
            self.counter.add(2)
        self.assertEqual(self.counter.value, 3)

    def test_outer_failure_discards_committed_inner_block(self) -> None:
        with self.assertRaises(ValueError):
            with self.transactions.atomic("outer"):
                with self.transactions.atomic("inner"):
                    self.counter.add(7)
                raise ValueError("outer failure")
        self.assertEqual(self.counter.value, 0)

    def test_register_is_idempotent(self) -> None:
        self.transactions.register(self.counter)
        with self.assertRaises(RuntimeError):
            with self.transactions.atomic("fail"):
                self.counter.add(3)
                raise RuntimeError("boom")
        self.assertEqual(self.counter.value, 0)


if __name__ == "__main__":
    unittest.main()
