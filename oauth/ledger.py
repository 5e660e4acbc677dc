"""
State ledger — short-lived record of pending authorizations.

A state is written when the merchant is sent to the consent screen and
removed by the first callback that presents it.  ``take_if_valid`` reads
and deletes in one atomic step, so two deliveries of the same callback
can never both succeed.  Any presentation consumes the state, even one
that is then rejected for a shop mismatch or expiry.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database.models import OAuthState
from oauth.errors import LedgerUnavailable
from oauth.schemas import PendingAuthorization, as_utc, utcnow

logger = logging.getLogger(__name__)


class StateLedger(ABC):
    """Abstract store of pending authorizations."""

    def __init__(self, *, clock: Callable[[], datetime] = utcnow) -> None:
        self._clock = clock

    @abstractmethod
    async def put(self, state: str, shop: str) -> None:
        """Record a new pending authorization. Raises ``LedgerUnavailable``."""
        ...

    @abstractmethod
    async def _pop(self, state: str) -> Optional[PendingAuthorization]:
        """Atomically remove and return the entry for ``state``."""
        ...

    @abstractmethod
    async def purge_expired(self, max_age: timedelta) -> int:
        """Delete entries older than ``max_age``; return how many went."""
        ...

    async def take_if_valid(
        self,
        state: str,
        shop: str,
        max_age: timedelta,
    ) -> Optional[PendingAuthorization]:
        """
        Consume ``state`` and return it if it was issued for ``shop``
        within ``max_age``; otherwise return None.
        """
        pending = await self._pop(state)
        if pending is None:
            logger.warning("OAuth state %s… not found (unknown or already used)", state[:8])
            return None
        if pending.shop != shop:
            logger.warning(
                "OAuth state %s… was issued for %s, presented by %s",
                state[:8], pending.shop, shop,
            )
            return None
        age = self._clock() - pending.created_at
        if age > max_age:
            logger.warning(
                "OAuth state %s… for %s expired (%.0fs old)",
                state[:8], shop, age.total_seconds(),
            )
            return None
        return pending


class InMemoryStateLedger(StateLedger):
    """
    Process-local ledger for tests and single-process development.

    ``dict.pop`` runs without yielding to the event loop, which is what
    makes the take atomic here.
    """

    def __init__(self, *, clock: Callable[[], datetime] = utcnow) -> None:
        super().__init__(clock=clock)
        self._entries: Dict[str, PendingAuthorization] = {}

    async def put(self, state: str, shop: str) -> None:
        self._entries[state] = PendingAuthorization(state=state, shop=shop, created_at=self._clock())

    async def _pop(self, state: str) -> Optional[PendingAuthorization]:
        return self._entries.pop(state, None)

    async def purge_expired(self, max_age: timedelta) -> int:
        cutoff = self._clock() - max_age
        stale = [s for s, p in self._entries.items() if p.created_at < cutoff]
        for s in stale:
            del self._entries[s]
        return len(stale)

    def __contains__(self, state: object) -> bool:
        return state in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class SqlStateLedger(StateLedger):
    """Ledger backed by the ``oauth_states`` table."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        super().__init__(clock=clock)
        self._session_factory = session_factory

    async def put(self, state: str, shop: str) -> None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(OAuthState(state=state, shop=shop, created_at=self._clock()))
        except SQLAlchemyError as exc:
            logger.error("Failed to record OAuth state for %s: %s", shop, exc)
            raise LedgerUnavailable("Could not record the authorization attempt") from exc

    async def _pop(self, state: str) -> Optional[PendingAuthorization]:
        # Single DELETE … RETURNING: the row lock makes concurrent callers
        # for the same state see exactly one returned row between them.
        stmt = (
            delete(OAuthState)
            .where(OAuthState.state == state)
            .returning(OAuthState.shop, OAuthState.created_at)
            .execution_options(synchronize_session=False)
        )
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    row = (await session.execute(stmt)).first()
        except SQLAlchemyError as exc:
            logger.error("Failed to consume OAuth state %s…: %s", state[:8], exc)
            raise LedgerUnavailable("Could not verify the authorization attempt") from exc

        if row is None:
            return None
        return PendingAuthorization(state=state, shop=row.shop, created_at=as_utc(row.created_at))

    async def purge_expired(self, max_age: timedelta) -> int:
        cutoff = self._clock() - max_age
        stmt = (
            delete(OAuthState)
            .where(OAuthState.created_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(stmt)
        except SQLAlchemyError as exc:
            raise LedgerUnavailable("Could not purge expired OAuth states") from exc
        return result.rowcount or 0
