"""Unit tests for flash-loan funded deposits, redemptions and rebalances."""

from typing import Any, Mapping, Optional
import unittest

from leverage_vault.models.collaborators import SwapExecutor
from leverage_vault.models.enums import ErrorCode, FlashOperation
from leverage_vault.models.exceptions import (
    FlashLoanError,
    LeverageBoundsError,
    SlippageError,
    SwapError,
    VaultPausedError,
)
from leverage_vault.services.flash_loan_orchestrator import FlashLoanOrchestrator
from leverage_vault.tests.support import ALICE, KEEPER, WAD, make_engine, usd


class MisbehavingSwapExecutor(SwapExecutor):
    """Wraps a real pool and distorts what the orchestrator observes."""

    def __init__(self, inner, ledger, report_delta: int = 0, output_clawback: int = 0, extra_pull: int = 0) -> None:
        self._inner = inner
        self._ledger = ledger
        self.report_delta = report_delta
        self.output_clawback = output_clawback
        self.extra_pull = extra_pull

    def swap_exact_output(
        self,
        account: str,
        token_in: str,
        token_out: str,
        desired_out: int,
        max_in: int,
        routing_data: Optional[Mapping[str, Any]] = None,
    ) -> int:
        spent = self._inner.swap_exact_output(account, token_in, token_out, desired_out, max_in)
        if self.extra_pull:
            self._ledger.transfer(token_in, account, self._inner.address, self.extra_pull)
        if self.output_clawback:
            self._ledger.transfer(token_out, account, self._inner.address, self.output_clawback)
        return spent + self.report_delta


def _with_swapper(engine, swapper) -> FlashLoanOrchestrator:
    return FlashLoanOrchestrator(engine.core, engine.rebalancer, engine.lender, swapper, swap_tolerance=1)


class TestLeveragedDeposit(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = make_engine()
        self.orchestrator = self.engine.orchestrator

    def test_deposit_into_empty_vault(self) -> None:
        dusd_before = self.engine.ledger.balance_of("DUSD", ALICE)
        result = self.orchestrator.deposit_with_leverage(ALICE, WAD)
        self.assertEqual(result.extra_collateral, 1_985 * 10**15)
        self.assertEqual(result.flash_amount, 3_980 * WAD)
        self.assertEqual(result.swap_input, 3_970 * WAD)
        self.assertEqual(result.debt_borrowed, 3_970 * WAD + 1)
        self.assertEqual(result.shares, 199_999_999_999)
        self.assertEqual(result.leftover_debt, 1)
        self.assertEqual(self.engine.core.balance_of(ALICE), result.shares)
        self.assertEqual(self.engine.core.current_leverage_bps(), 29_850)
        self.assertEqual(self.engine.ledger.balance_of("DUSD", ALICE) - dusd_before, 1)
        self.assertEqual(self.engine.ledger.balance_of("DUSD", self.orchestrator.address), 0)
        self.assertEqual(self.engine.ledger.balance_of("WETH", self.orchestrator.address), 0)

    def test_round_trip_returns_less_than_deposited(self) -> None:
        shares = self.orchestrator.deposit_with_leverage(ALICE, WAD).shares
        result = self.orchestrator.redeem_with_leverage(ALICE, shares)
        self.assertEqual(result.flash_amount, 3_970 * WAD + 1)
        self.assertEqual(result.collateral_out, 999_999_999_995_000_000)
        self.assertLess(result.collateral_out, WAD)
        self.assertEqual(self.engine.core.share_supply, 0)
        self.assertEqual(self.engine.core.get_debt(), 0)

    def test_flash_fee_paid_to_lender(self) -> None:
        engine = make_engine(flash_fee_bps=9)
        lender_before = engine.ledger.balance_of("DUSD", engine.lender.address)
        result = engine.orchestrator.deposit_with_leverage(ALICE, WAD)
        fee = result.flash_amount * 9 // 10_000
        self.assertEqual(engine.ledger.balance_of("DUSD", engine.lender.address) - lender_before, fee)
        self.assertGreater(result.shares, 0)

    def test_min_output_shares(self) -> None:
        weth_before = self.engine.ledger.balance_of("WETH", ALICE)
        with self.assertRaises(SlippageError):
            self.orchestrator.deposit_with_leverage(ALICE, WAD, min_output_shares=200_000_000_000)
        self.assertEqual(self.engine.core.share_supply, 0)
        self.assertEqual(self.engine.ledger.balance_of("WETH", ALICE), weth_before)

    def test_paused_vault(self) -> None:
        self.engine.core.pause()
        with self.assertRaises(VaultPausedError):
            self.orchestrator.deposit_with_leverage(ALICE, WAD)

    def test_too_imbalanced_vault(self) -> None:
        self.engine.core.deposit(ALICE, WAD)
        self.engine.set_price("WETH", usd(1_700))
        with self.assertRaises(LeverageBoundsError):
            self.orchestrator.deposit_with_leverage(ALICE, WAD)

    def test_aggregator_picks_cheapest_pool(self) -> None:
        engine = make_engine(swap_venue="aggregator", swap_pool_fees_bps=[30, 5])
        result = engine.orchestrator.deposit_with_leverage(ALICE, WAD)
        self.assertEqual(result.swap_input, 3_971_985 * 10**15)

    def test_redeem_min_output_collateral(self) -> None:
        shares = self.orchestrator.deposit_with_leverage(ALICE, WAD).shares
        with self.assertRaises(SlippageError):
            self.orchestrator.redeem_with_leverage(ALICE, shares, min_output_collateral=WAD)
        self.assertEqual(self.engine.core.balance_of(ALICE), shares)


class TestSwapGuards(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = make_engine()
        self.dex = self.engine.swapper

    def _deposit_with(self, **distortions: int) -> SwapError:
        orchestrator = _with_swapper(self.engine, MisbehavingSwapExecutor(self.dex, self.engine.ledger, **distortions))
        weth_before = self.engine.ledger.balance_of("WETH", ALICE)
        with self.assertRaises(SwapError) as ctx:
            orchestrator.deposit_with_leverage(ALICE, WAD)
        self.assertEqual(self.engine.core.share_supply, 0)
        self.assertEqual(self.engine.ledger.balance_of("WETH", ALICE), weth_before)
        return ctx.exception

    def test_swap_spending_more_than_allowed(self) -> None:
        self.engine.fund("flash-orchestrator", "DUSD", 100 * WAD)
        error = self._deposit_with(extra_pull=20 * WAD)
        self.assertEqual(error.code, ErrorCode.SWAP_INPUT_EXCEEDED)
        self.assertEqual(self.engine.ledger.balance_of("DUSD", "flash-orchestrator"), 100 * WAD)

    def test_swap_misreporting_input(self) -> None:
        error = self._deposit_with(report_delta=2)
        self.assertEqual(error.code, ErrorCode.SWAP_AMOUNT_MISMATCH)

    def test_report_within_tolerance_accepted(self) -> None:
        orchestrator = _with_swapper(self.engine, MisbehavingSwapExecutor(self.dex, self.engine.ledger, report_delta=1))
        self.assertGreater(orchestrator.deposit_with_leverage(ALICE, WAD).shares, 0)

    def test_swap_output_shortfall(self) -> None:
        error = self._deposit_with(output_clawback=1)
        self.assertEqual(error.code, ErrorCode.SWAP_OUTPUT_SHORTFALL)


class TestFlashCallback(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = make_engine()
        self.orchestrator = self.engine.orchestrator

    def test_direct_callback_rejected(self) -> None:
        with self.assertRaises(FlashLoanError):
            self.orchestrator.on_flash_loan("attacker", "DUSD", WAD, 0, FlashOperation.DEPOSIT.value)

    def test_foreign_initiator_rejected(self) -> None:
        lender = self.engine.lender
        liquidity = self.engine.ledger.balance_of("DUSD", lender.address)
        with self.assertRaises(FlashLoanError):
            lender.flash_loan(self.orchestrator, "DUSD", 10 * WAD, FlashOperation.DEPOSIT.value, initiator="attacker")
        self.assertEqual(self.engine.ledger.balance_of("DUSD", lender.address), liquidity)
        self.assertEqual(self.engine.ledger.balance_of("DUSD", self.orchestrator.address), 0)


class TestFlashRebalance(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = make_engine()
        self.engine.core.deposit(ALICE, WAD)
        self.orchestrator = self.engine.orchestrator

    def test_increase_funded_by_flash_loan(self) -> None:
        self.engine.set_price("WETH", usd(3_000))
        dusd_before = self.engine.ledger.balance_of("DUSD", KEEPER)
        weth_before = self.engine.ledger.balance_of("WETH", KEEPER)
        result = self.orchestrator.increase_leverage_with_flash(KEEPER)
        self.assertEqual(result.operation, FlashOperation.INCREASE_LEVERAGE)
        self.assertEqual(result.flash_amount, 1_961_165_048_540_000_000_000)
        self.assertEqual(result.swap_input, 1_941_747_572_820_000_000_000)
        self.assertEqual(result.profit_token, "DUSD")
        self.assertEqual(result.profit, 19_417_475_720_000_000_000)
        self.assertEqual(result.rebalance.leverage_after_bps, 29_999)
        self.assertEqual(self.engine.ledger.balance_of("DUSD", KEEPER) - dusd_before, result.profit)
        self.assertEqual(self.engine.ledger.balance_of("WETH", KEEPER), weth_before)

    def test_increase_fully_funded_by_caller(self) -> None:
        self.engine.set_price("WETH", usd(3_000))
        needed = self.engine.rebalancer.quote_rebalance().input_amount
        result = self.orchestrator.increase_leverage_with_flash(KEEPER, collateral_from_caller=needed)
        self.assertEqual(result.flash_amount, 0)
        self.assertEqual(result.caller_contribution, needed)
        self.assertEqual(result.profit, result.rebalance.output_amount)

    def test_decrease_funded_by_flash_loan(self) -> None:
        self.engine.set_price("WETH", usd(1_700))
        weth_before = self.engine.ledger.balance_of("WETH", KEEPER)
        result = self.orchestrator.decrease_leverage_with_flash(KEEPER)
        self.assertEqual(result.operation, FlashOperation.DECREASE_LEVERAGE)
        self.assertEqual(result.flash_amount, 612_244_897_860_000_000_000)
        self.assertEqual(result.profit_token, "WETH")
        self.assertEqual(result.profit, 3_601_440_576_470_588)
        self.assertEqual(self.engine.ledger.balance_of("WETH", KEEPER) - weth_before, result.profit)
        self.assertFalse(self.engine.core.is_too_imbalanced())

    def test_min_profit(self) -> None:
        self.engine.set_price("WETH", usd(3_000))
        with self.assertRaises(SlippageError):
            self.orchestrator.increase_leverage_with_flash(KEEPER, min_profit=10**30)
        self.assertEqual(self.engine.core.current_leverage_bps(), 17_999)

    def test_wrong_direction(self) -> None:
        self.engine.set_price("WETH", usd(1_700))
        with self.assertRaises(LeverageBoundsError) as ctx:
            self.orchestrator.increase_leverage_with_flash(KEEPER)
        self.assertEqual(ctx.exception.code, ErrorCode.WRONG_REBALANCE_DIRECTION)


if __name__ == "__main__":
    unittest.main()
