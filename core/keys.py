"""
core/keys.py -- RSA key material helpers for token signing.

Key material travels through the environment as base64-encoded PEM text so a
multi-line key fits in a single env var. decode_key() is the only place that
turns configuration text back into PEM; nothing ever derives a key from token
content.

generate_key_pair() backs two callers:
  - Settings in DEBUG mode, when no keys are configured (ephemeral keys).
  - `python main.py keygen`, which prints a ready-to-paste .env block.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

from __future__ import annotations

import base64
import binascii

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

_PEM_MARKER = "-----BEGIN "


def generate_key_pair(key_size: int = 2048) -> tuple[str, str]:
    """Return a fresh (private_pem, public_pem) RSA pair as text."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")
    public_pem = (
        private_key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode("ascii")
    )
    return private_pem, public_pem


def encode_key(pem: str) -> str:
    """Base64-encode PEM text for storage in a single env var."""
    return base64.b64encode(pem.encode("ascii")).decode("ascii")


def decode_key(value: str) -> str:
    """Decode a base64 env value back to PEM text.

    Raises ValueError if the value is not base64 or does not decode to PEM.
    """
    try:
        pem = base64.b64decode(value.encode("ascii"), validate=True).decode("ascii")
    except (binascii.Error, UnicodeError) as exc:
        raise ValueError("Key material is not valid base64-encoded PEM text") from exc
    if _PEM_MARKER not in pem:
        raise ValueError("Key material does not decode to a PEM block")
    return pem
