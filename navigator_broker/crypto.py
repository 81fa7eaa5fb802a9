"""
Broker Crypto Core — Session ids, key derivation and in-memory sealing.

Secrets held by the Session Store are never kept as plaintext:
    HKDF(process_seed, "broker-session:<session_id>") → AEAD → sealed secret

The process seed is random per process and never leaves memory, so
sealed values cannot be opened from the session id alone, and a restart
makes every sealed value unreadable (sessions are not durable).

Security Note:
    Never log plaintext or ciphertext values.
    Nonces are random 96-bit; collision probability negligible under normal usage.
"""
import os
import secrets
import logging
from typing import Any

import orjson
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

logger = logging.getLogger("navigator.broker")

NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16
KEY_LENGTH = 32  # AES-256
SESSION_ID_BYTES = 32  # 256 bits of entropy, 64 hex chars

_PROCESS_SEED = os.urandom(KEY_LENGTH)


def _get_cipher_cls() -> type:
    """Return the AEAD cipher class based on BROKER_CIPHER_BACKEND env var."""
    backend = os.environ.get("BROKER_CIPHER_BACKEND", "aesgcm").lower()
    if backend == "chacha20":
        return ChaCha20Poly1305
    return AESGCM


# Resolved once at module load so seal/open always agree.
CIPHER_CLS = _get_cipher_cls()


def generate_session_id() -> str:
    """Return a new unpredictable session identifier.

    Returns:
        64-character hex string carrying 256 bits from the OS CSPRNG.
    """
    return secrets.token_hex(SESSION_ID_BYTES)


def derive_key(seed: bytes, context: str) -> bytes:
    """Derive a 32-byte encryption key using HKDF-SHA256.

    Args:
        seed: Input key material.
        context: Context string for domain separation.

    Returns:
        32-byte derived key.
    """
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=None,
        info=context.encode("utf-8"),
    )
    return hkdf.derive(seed)


def _session_cipher(session_id: str):
    key = derive_key(_PROCESS_SEED, f"broker-session:{session_id}")
    return CIPHER_CLS(key)


def seal(value: Any, session_id: str) -> bytes:
    """Serialize and encrypt a secret for in-memory storage.

    Format: [nonce 12B][encrypted_payload + tag 16B]

    The session id is bound as associated data, so a sealed value moved
    to another session fails to open.
    """
    cipher = _session_cipher(session_id)
    nonce = os.urandom(NONCE_SIZE)
    aad = session_id.encode("utf-8")
    return nonce + cipher.encrypt(nonce, serialize_value(value), aad)


def unseal(sealed: bytes, session_id: str) -> Any:
    """Decrypt a value produced by :func:`seal`.

    Raises:
        ValueError: If the sealed payload is truncated.
        cryptography.exceptions.InvalidTag: If it was tampered with or
            belongs to another session.
    """
    _min = NONCE_SIZE + TAG_SIZE
    if len(sealed) < _min:
        raise ValueError(
            f"sealed value too short: {len(sealed)} bytes (minimum {_min})"
        )
    cipher = _session_cipher(session_id)
    nonce = sealed[:NONCE_SIZE]
    plaintext = cipher.decrypt(
        nonce, sealed[NONCE_SIZE:], session_id.encode("utf-8")
    )
    return deserialize_value(plaintext)


def serialize_value(value: Any) -> bytes:
    """Serialize a Python value to orjson bytes for encryption."""
    return orjson.dumps(value)


def deserialize_value(data: bytes) -> Any:
    """Deserialize orjson bytes back to a Python value."""
    return orjson.loads(data)
