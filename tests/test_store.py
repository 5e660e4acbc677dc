"""
Tests for the credential store — upsert semantics and encryption at rest.
"""

import asyncio

import pytest
from cryptography.fernet import Fernet
from sqlalchemy import func, select

from database.models import Shop
from oauth import encryption
from oauth.errors import PersistenceFailed
from oauth.store import SqlCredentialStore
from tests.support import SHOP


@pytest.fixture
def fernet_key(monkeypatch):
    key = Fernet.generate_key().decode()
    monkeypatch.setattr(encryption, "_fernet", Fernet(key.encode()))
    monkeypatch.setattr(encryption, "_initialised", True)
    return key


@pytest.fixture
def plaintext_tokens(monkeypatch):
    monkeypatch.setattr(encryption, "_fernet", None)
    monkeypatch.setattr(encryption, "_initialised", True)


class TestInMemoryCredentialStore:
    @pytest.mark.asyncio
    async def test_upsert_overwrites(self, store, clock):
        first = await store.upsert(SHOP, "token1")
        clock.advance(minutes=5)
        second = await store.upsert(SHOP, "token2", scope="read_orders")

        assert len(store) == 1
        assert second.access_token == "token2"
        assert second.scope == "read_orders"
        assert second.created_at == first.created_at
        assert second.updated_at > first.updated_at

    @pytest.mark.asyncio
    async def test_unknown_shop(self, store):
        assert await store.get_by_shop(SHOP) is None


class TestSqlCredentialStore:
    async def _row_count(self, factory, shop=SHOP) -> int:
        async with factory() as session:
            return (await session.execute(select(func.count()).select_from(Shop).where(Shop.shop == shop))).scalar_one()

    @pytest.mark.asyncio
    async def test_upsert_keeps_one_row(self, sqlite_session_factory, clock, plaintext_tokens):
        store = SqlCredentialStore(sqlite_session_factory, clock=clock)

        first = await store.upsert(SHOP, "token1")
        clock.advance(minutes=5)
        second = await store.upsert(SHOP, "token2")

        assert await self._row_count(sqlite_session_factory) == 1
        stored = await store.get_by_shop(SHOP)
        assert stored.access_token == "token2"
        assert stored.created_at == first.created_at
        assert stored.updated_at == second.updated_at == clock.now

    @pytest.mark.asyncio
    async def test_shops_are_independent(self, sqlite_session_factory, plaintext_tokens):
        store = SqlCredentialStore(sqlite_session_factory)

        await store.upsert(SHOP, "token-a")
        await store.upsert("shop-b.example.com", "token-b")

        assert (await store.get_by_shop(SHOP)).access_token == "token-a"
        assert (await store.get_by_shop("shop-b.example.com")).access_token == "token-b"

    @pytest.mark.asyncio
    async def test_concurrent_upserts(self, file_session_factory, plaintext_tokens):
        store = SqlCredentialStore(file_session_factory)
        others = [f"shop-{i}.example.com" for i in range(8)]

        results = await asyncio.gather(
            *(store.upsert(SHOP, f"token-{i}") for i in range(8)),
            *(store.upsert(shop, f"token-{shop}") for shop in others),
            return_exceptions=True,
        )

        assert [r for r in results if isinstance(r, BaseException)] == []
        assert await self._row_count(file_session_factory) == 1
        assert (await store.get_by_shop(SHOP)).access_token in {f"token-{i}" for i in range(8)}
        for shop in others:
            assert await self._row_count(file_session_factory, shop) == 1
            assert (await store.get_by_shop(shop)).access_token == f"token-{shop}"

    @pytest.mark.asyncio
    async def test_unknown_shop(self, sqlite_session_factory):
        store = SqlCredentialStore(sqlite_session_factory)
        assert await store.get_by_shop(SHOP) is None

    @pytest.mark.asyncio
    async def test_scope_is_stored(self, sqlite_session_factory, plaintext_tokens):
        store = SqlCredentialStore(sqlite_session_factory)
        await store.upsert(SHOP, "token1", scope="read_products,read_orders")

        assert (await store.get_by_shop(SHOP)).scope == "read_products,read_orders"

    @pytest.mark.asyncio
    async def test_token_encrypted_at_rest(self, sqlite_session_factory, fernet_key):
        store = SqlCredentialStore(sqlite_session_factory)
        await store.upsert(SHOP, "tok_abc")

        async with sqlite_session_factory() as session:
            raw = (await session.execute(select(Shop.access_token).where(Shop.shop == SHOP))).scalar_one()
        assert raw != "tok_abc"
        assert Fernet(fernet_key.encode()).decrypt(raw.encode()).decode() == "tok_abc"
        assert (await store.get_by_shop(SHOP)).access_token == "tok_abc"

    @pytest.mark.asyncio
    async def test_legacy_plaintext_rows_still_read(self, sqlite_session_factory, monkeypatch):
        store = SqlCredentialStore(sqlite_session_factory)
        monkeypatch.setattr(encryption, "_fernet", None)
        monkeypatch.setattr(encryption, "_initialised", True)
        await store.upsert(SHOP, "tok_plain")

        monkeypatch.setattr(encryption, "_fernet", Fernet(Fernet.generate_key()))
        assert (await store.get_by_shop(SHOP)).access_token == "tok_plain"

    @pytest.mark.asyncio
    async def test_storage_errors_surface_as_persistence_failed(self, schemaless_session_factory):
        store = SqlCredentialStore(schemaless_session_factory)

        with pytest.raises(PersistenceFailed):
            await store.upsert(SHOP, "token1")


class TestCredentialRepr:
    @pytest.mark.asyncio
    async def test_token_not_in_repr(self, store):
        credential = await store.upsert(SHOP, "tok_secret_value")
        assert "tok_secret_value" not in repr(credential)
