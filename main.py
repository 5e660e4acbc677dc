"""
Shopify app installer — application entry point.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
from typing import Optional

import uvicorn
from fastapi import FastAPI

from api.middleware import register_error_handlers, register_middleware
from api.webhooks import router as webhooks_router
from config.settings import config
from oauth.encryption import is_encryption_enabled
from oauth.errors import LedgerUnavailable
from oauth.installer import OAuthInstaller
from oauth.routes import router as oauth_router

logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
    stream=sys.stdout,
)
for _noisy in ("httpcore", "httpx", "asyncio"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


async def _sweep_expired_states(installer: OAuthInstaller, interval: int) -> None:
    """Periodically drop pending authorizations nobody came back for."""
    while True:
        await asyncio.sleep(interval)
        try:
            purged = await installer.purge_expired_states()
        except LedgerUnavailable as exc:
            logger.warning("Expired state sweep failed: %s", exc)
            continue
        except Exception:
            logger.exception("Expired state sweep crashed; retrying in %ds", interval)
            continue
        if purged:
            logger.info("Purged %d expired OAuth states", purged)


def create_app(installer: Optional[OAuthInstaller] = None) -> FastAPI:
    """
    Build the app. Without an explicit ``installer`` the SQL-backed one
    is wired from settings and the schema is bootstrapped on startup.
    """
    app = FastAPI(
        title="Shopify App Installer",
        version="1.0.0",
        description="OAuth installation and token storage for a Shopify app.",
    )

    own_wiring = installer is None
    if own_wiring:
        from oauth.factory import build_installer

        installer = build_installer(config)
    app.state.installer = installer

    register_middleware(app)
    register_error_handlers(app)

    # Routes
    app.include_router(oauth_router)
    app.include_router(webhooks_router)

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    @app.on_event("startup")
    async def on_startup():
        if own_wiring:
            missing = config.missing_required()
            if missing:
                raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")
            if config.auto_create_tables:
                from database.helpers import create_tables
                from database.session import engine

                await create_tables(engine)

        logger.info("Token encryption at rest: %s", "enabled" if is_encryption_enabled() else "disabled")

        # Clean up states abandoned before the last restart
        purged = await installer.purge_expired_states()
        if purged:
            logger.info("Cleaned up %d expired OAuth states from previous run", purged)

        app.state.state_sweeper = asyncio.create_task(
            _sweep_expired_states(installer, config.oauth_state_sweep_interval)
        )
        logger.info("Application ready to accept installs (callback: %s)", installer.client.redirect_uri)

    @app.on_event("shutdown")
    async def on_shutdown():
        sweeper = getattr(app.state, "state_sweeper", None)
        if sweeper is not None:
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level="debug" if config.debug else "info",
    )
