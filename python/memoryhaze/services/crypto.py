"""Gift link token codec.

Binds a shared gift link to one intended recipient by encrypting the
recipient's user id into an opaque, URL-embeddable token.

Implements XSalsa20-Poly1305 authenticated encryption via PyNaCl SecretBox.

Wire shape:
    <nonce hex>:<ciphertext hex>

Security invariants:
- A fresh random 24-byte nonce is drawn for every encoding, so encoding the
  same identity twice yields different tokens
- The key is derived from GIFT_LINK_SECRET (BLAKE2b, 32-byte digest)
- Any malformed, truncated or forged token fails with DecodeError; decode
  never raises anything else
- Tokens and plaintext identities are never logged
"""

import os
from functools import lru_cache

import nacl.exceptions
import nacl.hash
from nacl.encoding import RawEncoder
from nacl.secret import SecretBox

from memoryhaze.config import get_settings
from memoryhaze.logging import get_logger

logger = get_logger(__name__)

# XSalsa20-Poly1305 nonce size (24 bytes)
NONCE_SIZE = SecretBox.NONCE_SIZE

# SecretBox key size (32 bytes)
KEY_SIZE = SecretBox.KEY_SIZE

TOKEN_SEPARATOR = ":"

# Used only when GIFT_LINK_SECRET is unset (local/test); settings validation
# rejects a missing secret in staging and prod.
_FALLBACK_SECRET = "memoryhaze-development-link-secret"


class CryptoError(Exception):
    """Raised when cryptographic operations fail."""

    pass


class DecodeError(CryptoError):
    """Raised when a link token cannot be decoded."""

    pass


def _derive_key(secret: str) -> bytes:
    return nacl.hash.blake2b(secret.encode("utf-8"), digest_size=KEY_SIZE, encoder=RawEncoder)


@lru_cache(maxsize=1)
def _get_link_key() -> bytes:
    """Derive and cache the link codec key from settings."""
    secret = get_settings().gift_link_secret
    if not secret:
        logger.warning(
            "gift_link_secret_missing",
            detail="GIFT_LINK_SECRET is not set; using the development fallback key",
        )
        secret = _FALLBACK_SECRET
    return _derive_key(secret)


def clear_link_key_cache() -> None:
    """Clear the cached link key. Useful for testing or secret rotation."""
    _get_link_key.cache_clear()


def generate_nonce() -> bytes:
    """Generate a random 24-byte nonce. Must be unique per encoding."""
    return os.urandom(NONCE_SIZE)


def encode_identity(identity: str) -> str:
    """Encode a user identity into an opaque link token.

    Args:
        identity: The intended recipient's user id (string form).

    Returns:
        Token of the form ``<nonce hex>:<ciphertext hex>``.

    Raises:
        CryptoError: If encryption fails.
    """
    nonce = generate_nonce()
    try:
        box = SecretBox(_get_link_key())
        encrypted = box.encrypt(identity.encode("utf-8"), nonce=nonce)
    except nacl.exceptions.CryptoError as e:
        logger.error("link_encode_failed", error=type(e).__name__)
        raise CryptoError("Failed to encode link token") from e

    return f"{nonce.hex()}{TOKEN_SEPARATOR}{encrypted.ciphertext.hex()}"


def decode_identity(token: str) -> str:
    """Recover the user identity from a link token.

    Args:
        token: Token produced by encode_identity().

    Returns:
        The original identity string.

    Raises:
        DecodeError: If the token is malformed, tampered with, or was encoded
            under a different key.
    """
    if not isinstance(token, str) or token.count(TOKEN_SEPARATOR) != 1:
        raise DecodeError("Malformed link token")

    nonce_hex, ciphertext_hex = token.split(TOKEN_SEPARATOR)
    try:
        nonce = bytes.fromhex(nonce_hex)
        ciphertext = bytes.fromhex(ciphertext_hex)
    except ValueError as e:
        raise DecodeError("Link token is not valid hex") from e

    if len(nonce) != NONCE_SIZE or not ciphertext:
        raise DecodeError("Link token has the wrong shape")

    try:
        plaintext = SecretBox(_get_link_key()).decrypt(ciphertext, nonce=nonce)
        return plaintext.decode("utf-8")
    except (nacl.exceptions.CryptoError, UnicodeDecodeError) as e:
        raise DecodeError("Link token failed authentication") from e
