"""
Token encryption — encrypt / decrypt shop access tokens at rest.

Uses Fernet (AES-128-CBC + HMAC-SHA256) from the ``cryptography`` library.
The encryption key is loaded from ``config.token_encryption_key``
(env var: ``TOKEN_ENCRYPTION_KEY``).

If no key is configured, encryption is **disabled** and tokens are stored
as plaintext (with a startup warning).  Generate a key with::

    python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"
"""

from __future__ import annotations

import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from config.settings import config

logger = logging.getLogger(__name__)

_fernet: Optional[Fernet] = None
_initialised = False


def configure(key: Optional[str]) -> None:
    """(Re)initialise the cipher. An empty key disables encryption."""
    global _fernet, _initialised

    _initialised = True
    if not key:
        _fernet = None
        logger.warning(
            "TOKEN_ENCRYPTION_KEY not set — shop access tokens will be stored as plaintext."
        )
        return

    _fernet = Fernet(key.encode())
    logger.info("Token encryption enabled (Fernet/AES-128-CBC)")


def _cipher() -> Optional[Fernet]:
    if not _initialised:
        configure(config.token_encryption_key)
    return _fernet


def encrypt_token(plaintext: str) -> str:
    """
    Encrypt a token string for database storage.

    Returns the Fernet ciphertext (URL-safe base64), or the plaintext
    unchanged when encryption is disabled.
    """
    fernet = _cipher()
    if fernet is None:
        return plaintext
    return fernet.encrypt(plaintext.encode()).decode()


def decrypt_token(ciphertext: str) -> str:
    """
    Decrypt a token string read from the database.

    Rows written before encryption was enabled are not valid Fernet tokens
    and are returned as-is.
    """
    fernet = _cipher()
    if fernet is None:
        return ciphertext
    try:
        return fernet.decrypt(ciphertext.encode()).decode()
    except InvalidToken:
        logger.debug("Stored token is not Fernet ciphertext; returning it unchanged")
        return ciphertext


def is_encryption_enabled() -> bool:
    return _cipher() is not None
