"""
EscrowMail API - FastAPI backend over the pending transfer service.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from escrowmail import __version__
from escrowmail.application.transfers.service import TransferServicePort
from escrowmail.config import AppConfig, load_config
from escrowmail.core.di import Container, bootstrap_dependencies
from escrowmail.infrastructure.logging import configure_logging

from .errors import register_error_handlers
from .routes import pending_transfers

logger = logging.getLogger(__name__)


def create_app(config: Optional[AppConfig] = None, *, container: Optional[Container] = None) -> FastAPI:
    """
    Build the API app.

    Collaborators are wired on startup: from the given container when one is
    passed (tests), otherwise from configuration.
    """
    app = FastAPI(
        title="EscrowMail API",
        description="Send value to an email address; claim, cancel or expire it later",
        version=__version__,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "healthy", "version": __version__}

    app.include_router(pending_transfers.router, prefix="/api", tags=["Pending Transfers"])

    @app.on_event("startup")
    async def _startup_service():
        cfg = config or load_config()
        configure_logging(cfg.logging)
        cfg.validate_required(serving=True)
        wired = container or bootstrap_dependencies(cfg, Container())
        app.state.config = cfg
        app.state.api_key = cfg.api.api_key
        app.state.service = wired.resolve(TransferServicePort)

    @app.on_event("shutdown")
    async def _shutdown_service():
        service = getattr(app.state, "service", None)
        if service is not None:
            await service.close()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _config = load_config()
    uvicorn.run(app, host=_config.api.host, port=_config.api.port)
