"""
Pydantic schemas for the installation flow.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from urllib.parse import urlencode

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class InstallStage(str, Enum):
    RECEIVED = "received"
    VALIDATED = "validated"
    EXCHANGED = "exchanged"
    PERSISTED = "persisted"
    REJECTED = "rejected"


class PendingAuthorization(BaseModel):
    state: str
    shop: str
    created_at: datetime


class Credential(BaseModel):
    shop: str
    access_token: str = Field(repr=False)
    scope: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class TokenGrant(BaseModel):
    """What the provider's token endpoint handed back."""

    access_token: str = Field(repr=False)
    scope: Optional[str] = None


class AuthorizationRequest(BaseModel):
    """
    Everything needed to send a merchant to the consent screen.

    Only lives long enough to produce :meth:`to_url`.
    """

    shop: str
    scopes: List[str]
    redirect_uri: str
    state: str
    client_id: str

    def to_url(self) -> str:
        # urlencode quotes every value exactly once; never pre-quote the inputs.
        params = {
            "client_id": self.client_id,
            "scope": ",".join(self.scopes),
            "redirect_uri": self.redirect_uri,
            "state": self.state,
        }
        return f"https://{self.shop}/admin/oauth/authorize?{urlencode(params)}"
