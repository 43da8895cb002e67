"""Shared builders for engine tests."""

from dataclasses import replace

from leverage_vault.common.protocol_constants import PRICE_UNIT
from leverage_vault.core.config import AppSettings, load_settings
from leverage_vault.services.vault_engine import VaultEngine, build_engine

WAD = 10**18
NOW = 1_700_000_000

ALICE = "alice"
BOB = "bob"
KEEPER = "keeper"


def make_settings(**overrides: object) -> AppSettings:
    """Packaged defaults (WETH/DUSD at 2000/1, 3x target in [2x, 4x]) with overrides."""
    return replace(load_settings(), **overrides)


def make_engine(**overrides: object) -> VaultEngine:
    """Engine on a frozen clock with ALICE, BOB and KEEPER funded in both assets."""
    engine = build_engine(make_settings(**overrides), clock=lambda: NOW)
    for account in (ALICE, BOB, KEEPER):
        engine.fund(account, "WETH", 1_000 * WAD)
        engine.fund(account, "DUSD", 10_000_000 * WAD)
    return engine


def usd(amount: int) -> int:
    """Oracle price for ``amount`` dollars."""
    return amount * PRICE_UNIT
