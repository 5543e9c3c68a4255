"""
Sealed state: AES-256-GCM envelope for the CSRF state and caller data carried across the redirect.
Format (lowercase hex): nonce (16 bytes) || ciphertext || GCM tag (16 bytes).
Key is SHA-256 of the operator secret, so the secret can be any length.
"""
import hashlib
import json
import logging
import os
import re

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from authingy.errors import InvalidState

logger = logging.getLogger(__name__)

NONCE_LENGTH = 16
TAG_LENGTH = 16
# Hex chars: nonce + tag + at least one byte of ciphertext
MIN_SEALED_LENGTH = (NONCE_LENGTH + TAG_LENGTH) * 2 + 2

_HEX_RE = re.compile(r"[0-9a-f]+")


def _derive_key(secret: str) -> bytes:
    return hashlib.sha256(secret.encode("utf-8")).digest()


def seal(secret: str, plaintext: dict) -> str:
    """
    Encrypt and authenticate a JSON-serializable mapping. A fresh nonce is used per call,
    so sealing the same mapping twice gives different strings.
    Raises TypeError if plaintext is not JSON-serializable.
    Non-string keys (int, float, bool, None) are accepted but come back as strings, as with JSON.
    """
    data = json.dumps(plaintext, separators=(",", ":")).encode("utf-8")
    nonce = os.urandom(NONCE_LENGTH)
    # AESGCM.encrypt returns ciphertext || tag
    encrypted = AESGCM(_derive_key(secret)).encrypt(nonce, data, None)
    return (nonce + encrypted).hex()


def unseal(secret: str, sealed: str) -> dict:
    """
    Verify and decrypt a value produced by seal(). Safe on attacker-controlled input.
    Raises InvalidState on any failure; the cause is logged at debug level only, never returned.
    """
    try:
        return _unseal(secret, sealed)
    except (InvalidTag, ValueError, TypeError) as e:
        logger.debug("Sealed state rejected: %s", type(e).__name__)
        raise InvalidState("Invalid state") from None


def _unseal(secret: str, sealed: str) -> dict:
    if not isinstance(sealed, str) or len(sealed) < MIN_SEALED_LENGTH or len(sealed) % 2:
        raise ValueError("bad length")
    # Strict lowercase hex: an uppercase digit would decode to the same bytes
    if not _HEX_RE.fullmatch(sealed):
        raise ValueError("not lowercase hex")
    raw = bytes.fromhex(sealed)
    nonce, encrypted = raw[:NONCE_LENGTH], raw[NONCE_LENGTH:]
    data = AESGCM(_derive_key(secret)).decrypt(nonce, encrypted, None)
    # UnicodeDecodeError and JSONDecodeError are both ValueError
    value = json.loads(data.decode("utf-8"))
    if not isinstance(value, dict):
        raise ValueError("not a mapping")
    return value
