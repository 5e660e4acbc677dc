"""
Install routes — OAuth entry redirect and callback.

    GET /oauth?shop=<shop>                          → 302 to Shopify consent
    GET /oauth/callback?shop=&code=&state=          → confirmation page

Failures are raised as ``InstallError`` and rendered by the handler in
``api.middleware``.
"""

from __future__ import annotations

import html
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import HTMLResponse, RedirectResponse

from api.dependencies import get_installer
from oauth.errors import MissingParameter
from oauth.installer import OAuthInstaller

logger = logging.getLogger(__name__)

router = APIRouter(tags=["oauth"])


@router.get("/oauth")
async def begin_install(
    shop: Optional[str] = Query(None),
    installer: OAuthInstaller = Depends(get_installer),
) -> RedirectResponse:
    """Send the merchant to the shop's consent screen."""
    if shop is None:
        raise MissingParameter("shop")
    auth_url = await installer.begin_authorization(shop)
    return RedirectResponse(auth_url, status_code=status.HTTP_302_FOUND)


@router.get("/oauth/callback")
async def oauth_callback(
    shop: Optional[str] = Query(None),
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    installer: OAuthInstaller = Depends(get_installer),
) -> HTMLResponse:
    """
    Shopify redirects here after consent.

    Validates the state, exchanges the code and stores the token, then
    returns a small HTML page the merchant can close.
    """
    credential = await installer.complete_authorization(shop, code, state)
    return HTMLResponse(content=_callback_html(credential.shop), status_code=status.HTTP_200_OK)


# ── Callback HTML template ─────────────────────────────────────────────


def _callback_html(shop: str) -> str:
    shop = html.escape(shop)
    return f"""<!DOCTYPE html>
<html>
<head>
    <title>App installed — {shop}</title>
    <style>
        body {{
            font-family: system-ui, sans-serif;
            display: flex; align-items: center; justify-content: center;
            height: 100vh; margin: 0;
        }}
        .card {{ text-align: center; padding: 40px; max-width: 400px; }}
        .emoji {{ font-size: 3rem; }}
        p {{ color: #555; font-size: 0.9rem; }}
    </style>
</head>
<body>
    <div class="card">
        <div class="emoji">✅</div>
        <h2>App installed!</h2>
        <p>{shop} is connected. You can close this tab.</p>
    </div>
</body>
</html>"""
