"""Unit tests for vault parameter models and engine errors."""

import unittest

from pydantic import ValidationError

from leverage_vault.models.enums import ErrorCode, RebalanceDirection
from leverage_vault.models.exceptions import ConfigurationError, EngineError, LeverageBoundsError, SwapError
from leverage_vault.models.results import RebalanceQuote
from leverage_vault.models.vault import VaultParameters


def _params(**overrides) -> VaultParameters:
    values = {
        "collateral_asset": "weth",
        "debt_asset": "dusd",
        "target_leverage_bps": 30_000,
        "lower_bound_bps": 20_000,
        "upper_bound_bps": 40_000,
    }
    values.update(overrides)
    return VaultParameters(**values)


class VaultParametersTests(unittest.TestCase):
    """Test parameter normalization and bound rules."""

    def test_happy_path(self) -> None:
        """Normalize asset symbols and default the optional fields."""
        params = _params()
        self.assertEqual(params.collateral_asset, "WETH")
        self.assertEqual(params.debt_asset, "DUSD")
        self.assertEqual(params.max_subsidy_bps, 0)
        self.assertEqual(params.max_subsidy_base_value, 1_000 * 10**8)
        self.assertIsNone(_params(max_subsidy_base_value=None).max_subsidy_base_value)
        self.assertEqual(params.fee_receiver, "fee-receiver")

    def test_bounds_must_bracket_target(self) -> None:
        """Reject a target outside [lower, upper]."""
        with self.assertRaises(ValidationError):
            _params(lower_bound_bps=31_000)
        with self.assertRaises(ValidationError):
            _params(upper_bound_bps=29_000)

    def test_target_must_exceed_one(self) -> None:
        """Reject an unlevered target."""
        with self.assertRaises(ValidationError):
            _params(target_leverage_bps=10_000, lower_bound_bps=10_000)

    def test_assets_must_differ(self) -> None:
        with self.assertRaises(ValidationError):
            _params(debt_asset="WETH")

    def test_fee_limits(self) -> None:
        self.assertEqual(_params(withdrawal_fee_bps=1_000).withdrawal_fee_bps, 1_000)
        with self.assertRaises(ValidationError):
            _params(withdrawal_fee_bps=1_001)
        with self.assertRaises(ValidationError):
            _params(max_subsidy_bps=-1)

    def test_models_are_frozen(self) -> None:
        params = _params()
        with self.assertRaises(ValidationError):
            params.target_leverage_bps = 25_000


class PayloadTests(unittest.TestCase):
    def test_quote_payload_is_json_ready(self) -> None:
        quote = RebalanceQuote(
            direction=RebalanceDirection.DECREASE,
            current_leverage_bps=46_363,
            target_leverage_bps=30_000,
            input_token="DUSD",
            input_amount=10**21,
            output_token="WETH",
            estimated_output=10**17,
            subsidy_bps=100,
        )
        payload = quote.to_payload()
        self.assertEqual(payload["direction"], "DECREASE")
        self.assertEqual(payload["input_amount"], 10**21)


class EngineErrorTests(unittest.TestCase):
    """Test error codes and serialization."""

    def test_default_codes(self) -> None:
        self.assertEqual(ConfigurationError("bad").code, ErrorCode.INVALID_CONFIGURATION)
        self.assertEqual(SwapError("short").code, ErrorCode.SWAP_OUTPUT_SHORTFALL)
        self.assertEqual(LeverageBoundsError("out").code, ErrorCode.LEVERAGE_OUT_OF_BOUNDS)

    def test_explicit_code_and_context(self) -> None:
        error = LeverageBoundsError("imbalanced", code=ErrorCode.TOO_IMBALANCED, lower_bound_bps=20_000)
        self.assertIsInstance(error, EngineError)
        self.assertEqual(
            error.to_dict(),
            {"code": "TOO_IMBALANCED", "message": "imbalanced", "context": {"lower_bound_bps": 20_000}},
        )
        self.assertEqual(str(error), "imbalanced (lower_bound_bps=20000)")
        self.assertEqual(str(ConfigurationError("plain")), "plain")


if __name__ == "__main__":
    unittest.main()
