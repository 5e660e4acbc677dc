"""
Shared fixtures: a stubbed Shopify token endpoint, in-memory and SQLite
backends, and an installer wired to them.
"""

from datetime import timedelta

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from database.models import Base
from oauth.installer import OAuthInstaller
from oauth.ledger import InMemoryStateLedger
from oauth.shopify import ShopifyClient
from oauth.store import InMemoryCredentialStore
from tests.support import CLIENT_ID, CLIENT_SECRET, REDIRECT_URI, SCOPES, FakeClock, StubTokenEndpoint


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def token_endpoint():
    return StubTokenEndpoint()


@pytest.fixture
def shopify_client(token_endpoint):
    return ShopifyClient(
        client_id=CLIENT_ID,
        client_secret=CLIENT_SECRET,
        scopes=SCOPES,
        redirect_uri=REDIRECT_URI,
        shop_suffixes=("example.com", "myshopify.com"),
        timeout=5.0,
        transport=httpx.MockTransport(token_endpoint),
    )


@pytest.fixture
def ledger(clock):
    return InMemoryStateLedger(clock=clock)


@pytest.fixture
def store(clock):
    return InMemoryCredentialStore(clock=clock)


@pytest.fixture
def installer(ledger, store, shopify_client):
    return OAuthInstaller(
        ledger=ledger,
        store=store,
        client=shopify_client,
        state_ttl=timedelta(minutes=10),
    )


def _sqlite_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def sqlite_session_factory():
    """In-memory SQLite with the schema created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield _sqlite_factory(engine)
    await engine.dispose()


@pytest_asyncio.fixture
async def file_session_factory(tmp_path):
    """File-backed SQLite so concurrent sessions use separate connections."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'installer.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield _sqlite_factory(engine)
    await engine.dispose()


@pytest_asyncio.fixture
async def schemaless_session_factory():
    """SQLite without any tables — every statement fails."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    yield _sqlite_factory(engine)
    await engine.dispose()
