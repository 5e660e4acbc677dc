"""
Constants and test doubles shared across the test modules.
"""

from datetime import datetime, timedelta, timezone

import httpx

SHOP = "shop-a.example.com"
CLIENT_ID = "K"
CLIENT_SECRET = "shh-secret"
REDIRECT_URI = "https://installer.example.net/oauth/callback"
SCOPES = ["read_products", "write_checkouts", "read_orders"]


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class StubTokenEndpoint:
    """``httpx.MockTransport`` handler standing in for /admin/oauth/access_token."""

    def __init__(self) -> None:
        self.status_code = 200
        self.payload = {"access_token": "tok_abc", "scope": "read_products,write_checkouts"}
        self.raw_body = None
        self.exc = None
        self.calls = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if self.exc is not None:
            raise self.exc
        if self.raw_body is not None:
            return httpx.Response(self.status_code, content=self.raw_body)
        return httpx.Response(self.status_code, json=self.payload)
