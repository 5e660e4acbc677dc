"""
Build the production OAuthInstaller from settings.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.settings import Settings, config
from oauth.installer import OAuthInstaller
from oauth.ledger import SqlStateLedger
from oauth.shopify import ShopifyClient
from oauth.store import SqlCredentialStore


def build_shopify_client(settings: Settings = config) -> ShopifyClient:
    return ShopifyClient(
        client_id=settings.shopify_api_key,
        client_secret=settings.shopify_api_secret,
        scopes=settings.shopify_scopes,
        redirect_uri=settings.oauth_redirect_uri,
        shop_suffixes=settings.shop_domain_suffixes,
        timeout=settings.token_exchange_timeout,
    )


def build_installer(
    settings: Settings = config,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> OAuthInstaller:
    """Wire the SQL-backed ledger and store to a Shopify client."""
    if session_factory is None:
        from database.session import async_session_factory as session_factory

    return OAuthInstaller(
        ledger=SqlStateLedger(session_factory),
        store=SqlCredentialStore(session_factory),
        client=build_shopify_client(settings),
        state_ttl=timedelta(seconds=settings.oauth_state_ttl_seconds),
    )
