"""
ShopifyClient — the provider side of the install handshake.

Builds the consent URL on the shop's admin domain and exchanges the
authorization code for an offline access token.  The exchange is a single
POST with a bounded timeout and is never retried: codes are single-use.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Sequence

import httpx

from oauth.errors import InvalidTenant, TokenExchangeFailed
from oauth.schemas import AuthorizationRequest, TokenGrant

logger = logging.getLogger(__name__)

_SHOP_LABEL = r"[a-z0-9][a-z0-9\-]*"


def normalize_shop_domain(shop: str, suffixes: Sequence[str]) -> str:
    """
    Return ``shop`` trimmed and lower-cased if it looks like
    ``<store>.<suffix>`` for one of ``suffixes``.

    Raises ``InvalidTenant`` otherwise.
    """
    candidate = (shop or "").strip().lower()
    if not candidate:
        raise InvalidTenant("Shop domain is empty")
    for suffix in suffixes:
        pattern = rf"{_SHOP_LABEL}\.{re.escape(suffix.lower().lstrip('.'))}"
        if re.fullmatch(pattern, candidate):
            return candidate
    raise InvalidTenant(f"{shop!r} is not a valid shop domain")


class ShopifyClient:
    """OAuth client for one Shopify app (client id + secret)."""

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        scopes: List[str],
        redirect_uri: str,
        shop_suffixes: Sequence[str] = ("myshopify.com",),
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.client_id = client_id
        self._client_secret = client_secret
        self.scopes = list(scopes)
        self.redirect_uri = redirect_uri
        self.shop_suffixes = tuple(shop_suffixes)
        self._timeout = timeout
        self._transport = transport

    def normalize_shop(self, shop: str) -> str:
        return normalize_shop_domain(shop, self.shop_suffixes)

    def authorization_request(self, shop: str, state: str) -> AuthorizationRequest:
        return AuthorizationRequest(
            shop=shop,
            scopes=self.scopes,
            redirect_uri=self.redirect_uri,
            state=state,
            client_id=self.client_id,
        )

    def get_auth_url(self, shop: str, state: str) -> str:
        return self.authorization_request(shop, state).to_url()

    async def exchange_code(self, shop: str, code: str) -> TokenGrant:
        """
        Exchange an authorization code for an access token.

        Raises
        ------
        TokenExchangeFailed
            On timeout, network error, non-2xx status, a non-JSON body,
            an ``error`` field, or a body without ``access_token``.
        """
        url = f"https://{shop}/admin/oauth/access_token"
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(
                    url,
                    json={
                        "client_id": self.client_id,
                        "client_secret": self._client_secret,
                        "code": code,
                    },
                    headers={"Accept": "application/json"},
                )
        except httpx.TimeoutException as exc:
            raise TokenExchangeFailed(
                f"Token exchange with {shop} timed out after {self._timeout:g}s"
            ) from exc
        except httpx.HTTPError as exc:
            raise TokenExchangeFailed(f"Token exchange with {shop} failed: {exc}") from exc

        data = _json_or_none(resp)

        if resp.is_error:
            detail = _error_detail(data) or f"HTTP {resp.status_code}"
            raise TokenExchangeFailed(
                f"Shopify rejected the token exchange for {shop}: {detail}",
                provider_rejected=resp.is_client_error,
            )
        if data is None:
            raise TokenExchangeFailed(f"Token endpoint for {shop} returned a non-JSON body")
        if "error" in data:
            raise TokenExchangeFailed(
                f"Shopify OAuth error for {shop}: {_error_detail(data)}",
                provider_rejected=True,
            )

        access_token = data.get("access_token")
        if not access_token or not isinstance(access_token, str):
            raise TokenExchangeFailed(f"Token response for {shop} has no access_token")

        logger.debug("Token exchange succeeded for %s (scope=%s)", shop, data.get("scope"))
        return TokenGrant(access_token=access_token, scope=data.get("scope"))


def _json_or_none(resp: httpx.Response) -> Optional[Dict[str, Any]]:
    try:
        data = resp.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def _error_detail(data: Optional[Dict[str, Any]]) -> Optional[str]:
    if not data:
        return None
    for key in ("error_description", "error", "errors"):
        if data.get(key):
            return str(data[key])
    return None
