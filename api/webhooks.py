"""
Webhook receiver — acknowledges Shopify webhooks without processing them.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


@router.post("/webhooks/checkout_update")
async def checkout_update(request: Request) -> PlainTextResponse:
    """Log the checkout payload and acknowledge with 200."""
    try:
        payload = await request.json()
    except ValueError:
        payload = None
    logger.info(
        "Checkout update from %s: %s",
        request.headers.get("X-Shopify-Shop-Domain", "unknown shop"),
        payload,
    )
    return PlainTextResponse("ok")
