"""HTTP routers for the leverage vault engine."""

from .router import build_vault_router

__all__ = ["build_vault_router"]
