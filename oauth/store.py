"""
Credential store — one access token per shop.

``upsert`` is the only mutation.  The SQL implementation relies on the
unique index on ``shops.shop`` (INSERT … ON CONFLICT DO UPDATE), so
concurrent installs for different shops never contend and concurrent
installs for the same shop resolve to last-write-wins on a single row.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Dict, Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database.models import Shop
from oauth.encryption import decrypt_token, encrypt_token
from oauth.errors import PersistenceFailed
from oauth.schemas import Credential, as_utc, utcnow

logger = logging.getLogger(__name__)

_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class CredentialStore(ABC):
    """Abstract per-shop credential storage."""

    @abstractmethod
    async def upsert(self, shop: str, access_token: str, scope: Optional[str] = None) -> Credential:
        """Insert or overwrite the credential for ``shop``. Raises ``PersistenceFailed``."""
        ...

    @abstractmethod
    async def get_by_shop(self, shop: str) -> Optional[Credential]:
        ...


class InMemoryCredentialStore(CredentialStore):
    def __init__(self, *, clock: Callable[[], datetime] = utcnow) -> None:
        self._clock = clock
        self._rows: Dict[str, Credential] = {}

    async def upsert(self, shop: str, access_token: str, scope: Optional[str] = None) -> Credential:
        now = self._clock()
        existing = self._rows.get(shop)
        credential = Credential(
            shop=shop,
            access_token=access_token,
            scope=scope,
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )
        self._rows[shop] = credential
        return credential

    async def get_by_shop(self, shop: str) -> Optional[Credential]:
        return self._rows.get(shop)

    def __len__(self) -> int:
        return len(self._rows)


class SqlCredentialStore(CredentialStore):
    """Store backed by the ``shops`` table (PostgreSQL in production, SQLite in tests)."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    async def upsert(self, shop: str, access_token: str, scope: Optional[str] = None) -> Credential:
        now = self._clock()
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    dialect = session.get_bind().dialect.name
                    insert = _UPSERT_INSERTS.get(dialect)
                    if insert is None:
                        raise PersistenceFailed(f"Upsert not supported on the {dialect!r} dialect")

                    stmt = insert(Shop).values(
                        shop=shop,
                        access_token=encrypt_token(access_token),
                        scope=scope,
                        created_at=now,
                        updated_at=now,
                    )
                    stmt = stmt.on_conflict_do_update(
                        index_elements=["shop"],
                        set_={
                            "access_token": stmt.excluded.access_token,
                            "scope": stmt.excluded.scope,
                            "updated_at": stmt.excluded.updated_at,
                        },
                    ).returning(Shop.created_at, Shop.updated_at)
                    row = (await session.execute(stmt)).one()
        except SQLAlchemyError as exc:
            logger.error("Failed to store access token for %s: %s", shop, exc)
            raise PersistenceFailed(f"Could not store the access token for {shop}") from exc

        logger.info("Stored access token for %s", shop)
        return Credential(
            shop=shop,
            access_token=access_token,
            scope=scope,
            created_at=as_utc(row.created_at),
            updated_at=as_utc(row.updated_at),
        )

    async def get_by_shop(self, shop: str) -> Optional[Credential]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(Shop).where(Shop.shop == shop))
                row = result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceFailed(f"Could not read the credential for {shop}") from exc

        if row is None:
            return None
        return Credential(
            shop=row.shop,
            access_token=decrypt_token(row.access_token),
            scope=row.scope,
            created_at=as_utc(row.created_at),
            updated_at=as_utc(row.updated_at),
        )
