"""
OAuthInstaller — the install handshake as a small state machine.

    begin_authorization:     shop → state recorded → consent URL
    complete_authorization:  RECEIVED → VALIDATED → EXCHANGED → PERSISTED
                             (or REJECTED at any checkpoint)

The ledger, the credential store and the provider client are injected;
nothing here knows which backends they use.
"""

from __future__ import annotations

import logging
import secrets
from datetime import timedelta
from typing import Optional

from oauth.errors import InstallError, InvalidOrExpiredState, MissingParameter, PersistenceFailed
from oauth.ledger import StateLedger
from oauth.schemas import Credential, InstallStage
from oauth.shopify import ShopifyClient
from oauth.store import CredentialStore

logger = logging.getLogger(__name__)

STATE_BYTES = 16  # 128 bits


def new_state() -> str:
    return secrets.token_hex(STATE_BYTES)


class OAuthInstaller:
    def __init__(
        self,
        *,
        ledger: StateLedger,
        store: CredentialStore,
        client: ShopifyClient,
        state_ttl: timedelta = timedelta(minutes=10),
    ) -> None:
        self.ledger = ledger
        self.store = store
        self.client = client
        self.state_ttl = state_ttl

    async def begin_authorization(self, shop: str) -> str:
        """
        Record a fresh state for ``shop`` and return the consent URL.

        Raises ``InvalidTenant`` for a malformed shop and
        ``LedgerUnavailable`` when the state could not be recorded; in
        both cases no URL is produced.
        """
        shop = self.client.normalize_shop(shop)
        state = new_state()
        await self.ledger.put(state, shop)
        url = self.client.get_auth_url(shop, state)
        logger.info("Install started for %s (state %s…)", shop, state[:8])
        return url

    async def complete_authorization(
        self,
        shop: Optional[str],
        code: Optional[str],
        state: Optional[str],
    ) -> Credential:
        """
        Validate a callback, exchange its code and store the token.

        Raises ``MissingParameter``, ``InvalidOrExpiredState``,
        ``TokenExchangeFailed``, ``PersistenceFailed`` or
        ``LedgerUnavailable``.
        """
        stage = InstallStage.RECEIVED
        try:
            missing = [name for name, value in (("shop", shop), ("code", code)) if not value]
            if missing:
                raise MissingParameter(*missing)
            shop = shop.strip().lower()

            if not state:
                raise InvalidOrExpiredState("OAuth state is missing")
            pending = await self.ledger.take_if_valid(state, shop, self.state_ttl)
            if pending is None:
                raise InvalidOrExpiredState()
            stage = self._advance(shop, stage, InstallStage.VALIDATED)

            grant = await self.client.exchange_code(pending.shop, code)
            stage = self._advance(shop, stage, InstallStage.EXCHANGED)

            try:
                credential = await self.store.upsert(pending.shop, grant.access_token, scope=grant.scope)
            except PersistenceFailed:
                logger.critical(
                    "Shopify install for %s completed at the provider but the access token "
                    "was NOT stored — manual reconciliation required",
                    pending.shop,
                )
                raise
            self._advance(shop, stage, InstallStage.PERSISTED)

        except InstallError as exc:
            log = logger.warning if stage is InstallStage.RECEIVED else logger.error
            log(
                "Install for %s %s at %s: %s",
                shop, InstallStage.REJECTED.value, stage.value, exc,
            )
            raise

        logger.info("App installed for %s", credential.shop)
        return credential

    async def purge_expired_states(self) -> int:
        return await self.ledger.purge_expired(self.state_ttl)

    @staticmethod
    def _advance(shop: str, current: InstallStage, nxt: InstallStage) -> InstallStage:
        logger.debug("Install for %s: %s → %s", shop, current.value, nxt.value)
        return nxt
