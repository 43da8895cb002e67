"""Configuration loading utilities for YAML-based engine settings."""

from dataclasses import dataclass, field
import json
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ..common.protocol_constants import DEFAULT_MAX_SUBSIDY_BASE_VALUE
from .logging_config import get_logger


logger = get_logger(__name__)
_BASE_DIR = Path(__file__).resolve().parent.parent
_CONFIG_PATH = _BASE_DIR / "config.yml"


@dataclass(frozen=True)
class AppSettings:
    """Engine settings loaded from YAML configuration file."""

    app_name: str
    debug: bool
    host: str
    port: int
    vault_address: str
    collateral_asset: str
    debt_asset: str
    collateral_decimals: int
    debt_decimals: int
    target_leverage_bps: int
    lower_bound_bps: int
    upper_bound_bps: int
    max_subsidy_bps: int
    min_deviation_bps: int
    max_subsidy_base_value: Optional[int]
    withdrawal_fee_bps: int
    fee_receiver: str
    balance_tolerance: int
    swap_tolerance: int
    max_price_age_sec: int
    collateral_price: int
    debt_price: int
    market_max_ltv_bps: int
    market_liquidity: int
    flash_fee_bps: int
    flash_liquidity: int
    default_slippage_bps: int
    swap_venue: str
    swap_pool_fees_bps: list[int]
    dex_liquidity: int
    web3_enabled: bool
    web3_rpc_url: Optional[str]
    web3_feed_abi_json: str
    web3_price_feeds: Dict[str, str] = field(default_factory=dict)


def _to_bool(value: Any, default: bool = False) -> bool:
    """Convert value to bool with a default fallback."""
    try:
        if isinstance(value, bool):
            return value
        return value.strip().lower() in {"1", "true", "yes", "on"}
    except (AttributeError, ValueError):
        logger.warning("Invalid boolean value '%s'. Using default=%s", value, default)
        return default


def _to_int(value: Any, default: int) -> int:
    """Convert value to int with a default fallback."""
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Invalid integer value '%s'. Using default=%s", value, default)
        return default


def _to_optional_int(value: Any, default: Optional[int]) -> Optional[int]:
    """Convert value to int; an explicitly empty value means ``None``."""
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Invalid integer value '%s'. Using default=%s", value, default)
        return default


def _to_int_list(value: Any, default: list[int]) -> list[int]:
    """Convert list-like or comma-separated value to list[int]."""
    if value is None:
        return list(default)
    items = value if isinstance(value, list) else str(value).split(",")
    try:
        return [int(str(item).strip()) for item in items if str(item).strip()]
    except ValueError:
        logger.warning("Invalid integer list '%s'. Using default=%s", value, default)
        return list(default)


def _to_str_map(value: Any) -> Dict[str, str]:
    """Convert a mapping payload to ``Dict[str, str]`` with upper-cased keys."""
    if not isinstance(value, dict):
        return {}
    return {str(key).upper(): str(item) for key, item in value.items() if item}


def _to_json_string(value: Any, default: str = "[]") -> str:
    """Convert value into JSON string for ABI compatibility."""
    try:
        if value is None:
            return default
        if isinstance(value, str):
            return value
        return json.dumps(value)
    except Exception:
        logger.exception("Failed to serialize value as JSON string.")
        return default


def _read_config(config_path: Path) -> dict:
    """Read and parse YAML configuration."""
    try:
        with config_path.open("r", encoding="utf-8") as config_file:
            config_data = yaml.safe_load(config_file) or {}
        logger.info("Configuration loaded from %s", config_path)
        return config_data
    except FileNotFoundError:
        logger.warning("Config file not found at %s. Falling back to defaults.", config_path)
        return {}
    except Exception:
        logger.exception("Failed to load config file from %s", config_path)
        return {}


def load_settings(config_path: Optional[Path] = None) -> AppSettings:
    """Load engine settings from ``config.yml`` or the given path."""
    config = _read_config(Path(config_path) if config_path else _CONFIG_PATH)
    app_cfg = config.get("app", {}) or {}
    vault_cfg = config.get("vault", {}) or {}
    oracle_cfg = config.get("oracle", {}) or {}
    market_cfg = config.get("market", {}) or {}
    flash_cfg = config.get("flash_loan", {}) or {}
    swap_cfg = config.get("swap", {}) or {}
    web3_cfg = config.get("web3", {}) or {}

    return AppSettings(
        app_name=str(app_cfg.get("name", "Leverage Vault Engine")),
        debug=_to_bool(app_cfg.get("debug", False), False),
        host=str(app_cfg.get("host", "127.0.0.1")),
        port=_to_int(app_cfg.get("port", 8000), 8000),
        vault_address=str(vault_cfg.get("address", "leverage-vault")),
        collateral_asset=str(vault_cfg.get("collateral_asset", "WETH")).upper(),
        debt_asset=str(vault_cfg.get("debt_asset", "DUSD")).upper(),
        collateral_decimals=_to_int(vault_cfg.get("collateral_decimals", 18), 18),
        debt_decimals=_to_int(vault_cfg.get("debt_decimals", 18), 18),
        target_leverage_bps=_to_int(vault_cfg.get("target_leverage_bps", 30000), 30000),
        lower_bound_bps=_to_int(vault_cfg.get("lower_bound_bps", 20000), 20000),
        upper_bound_bps=_to_int(vault_cfg.get("upper_bound_bps", 40000), 40000),
        max_subsidy_bps=_to_int(vault_cfg.get("max_subsidy_bps", 100), 100),
        min_deviation_bps=_to_int(vault_cfg.get("min_deviation_bps", 0), 0),
        max_subsidy_base_value=_to_optional_int(
            vault_cfg.get("max_subsidy_base_value", DEFAULT_MAX_SUBSIDY_BASE_VALUE),
            DEFAULT_MAX_SUBSIDY_BASE_VALUE,
        ),
        withdrawal_fee_bps=_to_int(vault_cfg.get("withdrawal_fee_bps", 0), 0),
        fee_receiver=str(vault_cfg.get("fee_receiver", "fee-receiver")),
        balance_tolerance=_to_int(vault_cfg.get("balance_tolerance", 1), 1),
        swap_tolerance=_to_int(swap_cfg.get("amount_tolerance", 1), 1),
        max_price_age_sec=_to_int(oracle_cfg.get("max_price_age_sec", 0), 0),
        collateral_price=_to_int(oracle_cfg.get("collateral_price", 2000 * 10**8), 2000 * 10**8),
        debt_price=_to_int(oracle_cfg.get("debt_price", 10**8), 10**8),
        market_max_ltv_bps=_to_int(market_cfg.get("max_ltv_bps", 8500), 8500),
        market_liquidity=_to_int(market_cfg.get("liquidity", 10**30), 10**30),
        flash_fee_bps=_to_int(flash_cfg.get("fee_bps", 0), 0),
        flash_liquidity=_to_int(flash_cfg.get("liquidity", 10**30), 10**30),
        default_slippage_bps=_to_int(flash_cfg.get("default_slippage_bps", 50), 50),
        swap_venue=str(swap_cfg.get("venue", "oracle_dex")).lower(),
        swap_pool_fees_bps=_to_int_list(swap_cfg.get("pool_fees_bps", [0]), [0]),
        dex_liquidity=_to_int(swap_cfg.get("liquidity", 10**30), 10**30),
        web3_enabled=_to_bool(web3_cfg.get("enabled", False), False),
        web3_rpc_url=web3_cfg.get("rpc_url"),
        web3_feed_abi_json=_to_json_string(web3_cfg.get("feed_abi_json"), default="[]"),
        web3_price_feeds=_to_str_map(web3_cfg.get("price_feeds")),
    )
