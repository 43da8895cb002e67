"""Application entrypoint exposing the vault engine over FastAPI."""

from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from .api import build_vault_router
from .core import AppSettings, get_logger, load_settings, setup_logging
from .models.exceptions import EngineError
from .services import VaultEngine, build_engine


logger = get_logger(__name__)


def create_app(settings: Optional[AppSettings] = None, engine: Optional[VaultEngine] = None) -> FastAPI:
    """Create and configure a FastAPI application instance."""
    if engine is None:
        engine = build_engine(settings or load_settings())
    settings = engine.settings
    setup_logging(debug=settings.debug)
    app = FastAPI(title=settings.app_name, debug=settings.debug)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:4200", "http://127.0.0.1:4200"],
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.exception_handler(EngineError)
    async def _engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
        logger.warning("Engine error on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=exc.to_dict())

    app.state.engine = engine
    app.include_router(build_vault_router(engine))
    logger.info("Application initialized: %s", settings.app_name)
    return app


def run() -> None:
    """Start the ASGI server for local development."""
    settings = load_settings()
    try:
        uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
    except Exception:
        logger.exception("Failed to start uvicorn server.")
        raise


if __name__ == "__main__":
    run()
