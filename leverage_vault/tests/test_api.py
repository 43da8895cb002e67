"""HTTP tests for the read-only vault API."""

import unittest

from fastapi.testclient import TestClient

from leverage_vault.main import create_app
from leverage_vault.tests.support import ALICE, WAD, make_engine, usd


class TestVaultApi(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = make_engine()
        self.engine.core.deposit(ALICE, WAD)
        self.client = TestClient(create_app(engine=self.engine))

    def test_health(self) -> None:
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok", "vault": self.engine.core.address})

    def test_settings_expose_parameters(self) -> None:
        body = self.client.get("/settings").json()
        self.assertEqual(body["collateral_asset"], "WETH")
        self.assertEqual(body["parameters"]["target_leverage_bps"], 30_000)
        self.assertFalse(body["web3_enabled"])

    def test_vault_state(self) -> None:
        body = self.client.get("/vault/state").json()
        self.assertEqual(body["leverage_bps"], 29_999)
        self.assertEqual(body["share_supply"], 66_666_666_667)
        self.assertEqual(body["net_asset_value"], body["collateral_base"] - body["debt_base"])
        self.assertFalse(body["is_too_imbalanced"])

    def test_rebalance_quote(self) -> None:
        self.engine.set_price("WETH", usd(3_000))
        body = self.client.get("/vault/rebalance-quote").json()
        self.assertEqual(body["direction"], "INCREASE")
        self.assertEqual(body["input_token"], "WETH")
        self.assertEqual(body["input_amount"], 647_249_190_940_000_000)

    def test_preview_deposit(self) -> None:
        response = self.client.get("/vault/preview-deposit", params={"collateral_amount": WAD})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["shares"], self.engine.core.preview_deposit(WAD))
        self.assertEqual(body["debt_borrowed"], self.engine.core.borrow_amount_keeping_leverage(WAD))

    def test_preview_deposit_validates_amount(self) -> None:
        response = self.client.get("/vault/preview-deposit", params={"collateral_amount": 0})
        self.assertEqual(response.status_code, 422)

    def test_preview_redeem(self) -> None:
        response = self.client.get("/vault/preview-redeem", params={"shares": 66_666_666_667})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["collateral_out"], WAD)

    def test_engine_errors_map_to_conflict(self) -> None:
        response = self.client.get("/vault/preview-redeem", params={"shares": 10**12})
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["code"], "INVALID_CONFIGURATION")

    def test_preview_mint(self) -> None:
        response = self.client.get("/vault/preview-mint", params={"shares": 1_000})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["collateral_amount"], self.engine.core.preview_mint(1_000))

    def test_preview_withdraw(self) -> None:
        response = self.client.get("/vault/preview-withdraw", params={"collateral_amount": WAD})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["shares"], 66_666_666_667)
        too_much = self.client.get("/vault/preview-withdraw", params={"collateral_amount": 2 * WAD})
        self.assertEqual(too_much.status_code, 409)

    def test_undefined_leverage_reported(self) -> None:
        self.engine.set_price("WETH", usd(1_000))
        response = self.client.get("/vault/state")
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["code"], "LEVERAGE_UNDEFINED")


if __name__ == "__main__":
    unittest.main()
