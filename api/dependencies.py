"""
FastAPI dependencies (shared across routes).
"""

from __future__ import annotations

from fastapi import Request

from oauth.installer import OAuthInstaller


def get_installer(request: Request) -> OAuthInstaller:
    """The installer wired into the app by ``main.create_app``."""
    return request.app.state.installer
