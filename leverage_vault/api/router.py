"""Read-only vault endpoints: position state, rebalance quote and previews."""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from ..models.exceptions import EngineError
from ..services.vault_engine import VaultEngine


logger = logging.getLogger(__name__)


def build_vault_router(engine: VaultEngine) -> APIRouter:
    """Create the router serving ``engine``.

    Engine errors propagate to the application's exception handler, which maps
    them to HTTP 409; anything else is reported as HTTP 500.
    """
    router = APIRouter()
    settings = engine.settings

    @router.get("/health", summary="Health check")
    def health_check() -> dict:
        """Return service health status for load balancers and monitors."""
        return {"status": "ok", "vault": engine.core.address}

    @router.get("/settings", summary="Settings snapshot")
    def get_settings_snapshot() -> dict:
        """Expose non-sensitive deployment settings."""
        return {
            "app_name": settings.app_name,
            "debug": settings.debug,
            "vault_address": settings.vault_address,
            "collateral_asset": settings.collateral_asset,
            "debt_asset": settings.debt_asset,
            "swap_venue": settings.swap_venue,
            "web3_enabled": settings.web3_enabled,
            "max_price_age_sec": settings.max_price_age_sec,
            "parameters": engine.core.params.to_payload(),
        }

    @router.get("/vault/state", summary="Current position snapshot")
    def vault_state() -> dict:
        try:
            return engine.snapshot().to_payload()
        except EngineError:
            raise
        except Exception as exc:
            logger.exception("Vault state lookup failed")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))

    @router.get("/vault/rebalance-quote", summary="Amounts of the next rebalance")
    def rebalance_quote() -> dict:
        """Return direction, input and estimated output of the restoring rebalance."""
        try:
            return engine.rebalancer.quote_rebalance().to_payload()
        except EngineError:
            raise
        except Exception as exc:
            logger.exception("Rebalance quote failed")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))

    @router.get("/vault/preview-deposit", summary="Shares minted for a deposit")
    def preview_deposit(
        collateral_amount: int = Query(..., gt=0),
        debt_borrowed: Optional[int] = Query(default=None, ge=0),
    ) -> dict:
        core = engine.core
        if debt_borrowed is None:
            debt_borrowed = core.borrow_amount_keeping_leverage(collateral_amount)
        return {
            "collateral_amount": collateral_amount,
            "debt_borrowed": debt_borrowed,
            "shares": core.preview_deposit(collateral_amount, debt_borrowed),
            "max_deposit": core.max_deposit(),
        }

    @router.get("/vault/preview-redeem", summary="Position share released for a redeem")
    def preview_redeem(shares: int = Query(..., gt=0)) -> dict:
        return engine.core.preview_redeem(shares).to_payload()

    @router.get("/vault/preview-mint", summary="Collateral needed to mint shares")
    def preview_mint(shares: int = Query(..., gt=0)) -> dict:
        core = engine.core
        return {"shares": shares, "collateral_amount": core.preview_mint(shares), "max_mint": core.max_mint()}

    @router.get("/vault/preview-withdraw", summary="Shares burned for a net collateral withdrawal")
    def preview_withdraw(collateral_amount: int = Query(..., gt=0)) -> dict:
        return {"collateral_amount": collateral_amount, "shares": engine.core.preview_withdraw(collateral_amount)}

    return router
