"""
Vault Crypto Core — Key derivation and config payload encryption.

Config payloads are sealed as a whole:
- Key: PBKDF2-HMAC-SHA256(app_key, salt=app_id, 100k iterations) → 32 bytes
- Payload: orjson(config_data) → AES-256-GCM → ``{"_enc": <envelope>}``

Envelope format (stored inside ``config_data``):
    "enc:v1:" + hex(nonce 12B) + "." + hex(ciphertext + GCM tag 16B)

Payloads without a versioned ``_enc`` field are legacy plaintext and pass
through decryption unchanged.

Security Note:
    Never log key material, plaintext or ciphertext values.
    Nonces are random 96-bit; collision probability negligible under normal usage.
"""
import os
import logging
from typing import Any
from collections.abc import Mapping

import orjson
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

logger = logging.getLogger("navigator.config.vault")

NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16  # GCM authentication tag
KEY_LENGTH = 32  # AES-256
KDF_ITERATIONS = 100_000

ENC_FIELD = "_enc"
ENC_PREFIX = "enc:v1:"
ENC_SEPARATOR = "."


class VaultError(Exception):
    """Base error for sealed payload handling."""


class EnvelopeFormatError(VaultError, ValueError):
    """The ``_enc`` envelope carries the version prefix but is malformed."""


class EnvelopeIntegrityError(VaultError):
    """Authentication tag mismatch: wrong key or tampered envelope."""


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_key(app_key: str, app_id: str) -> bytes:
    """Derive the 32-byte AES key from the application secret pair.

    The iteration count makes this CPU-significant: callers memoize the
    result instead of deriving per request.

    Args:
        app_key: Shared application secret (key material).
        app_id: Application identifier (salt).

    Returns:
        32-byte derived key.
    """
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=app_id.encode("utf-8"),
        iterations=KDF_ITERATIONS,
    )
    key = kdf.derive(app_key.encode("utf-8"))
    logger.debug("Derived config key (PBKDF2-SHA256, %d iterations)", KDF_ITERATIONS)
    return key


# ---------------------------------------------------------------------------
# Payload encryption
# ---------------------------------------------------------------------------

def encrypt_config_data(config_data: Mapping[str, Any], key: bytes) -> dict[str, Any]:
    """Seal a config payload into an ``_enc`` envelope.

    A fresh random nonce is drawn on every call.

    Args:
        config_data: JSON-serializable mapping to encrypt.
        key: 32-byte key from :func:`derive_key`.

    Returns:
        ``{"_enc": "enc:v1:<hex nonce>.<hex ciphertext+tag>"}``

    Raises:
        TypeError: If config_data is not a mapping or not JSON-serializable.
    """
    if not isinstance(config_data, Mapping):
        raise TypeError(
            f"config_data must be a mapping, got {type(config_data).__name__}"
        )
    plaintext = orjson.dumps(dict(config_data), option=orjson.OPT_SORT_KEYS)
    nonce = os.urandom(NONCE_SIZE)
    ct = AESGCM(key).encrypt(nonce, plaintext, None)
    return {ENC_FIELD: f"{ENC_PREFIX}{nonce.hex()}{ENC_SEPARATOR}{ct.hex()}"}


def is_encrypted(config_data: Mapping[str, Any]) -> bool:
    """Return True if config_data carries a versioned ``_enc`` envelope."""
    enc = config_data.get(ENC_FIELD)
    return isinstance(enc, str) and enc.startswith(ENC_PREFIX)


def _split_envelope(enc: str) -> tuple[bytes, bytes]:
    """Parse an envelope string into (nonce, ciphertext+tag).

    Raises:
        EnvelopeFormatError: On missing separator, bad hex or bad lengths.
    """
    payload = enc[len(ENC_PREFIX):]
    nonce_hex, sep, ct_hex = payload.partition(ENC_SEPARATOR)
    if not sep:
        raise EnvelopeFormatError(
            "Malformed envelope: missing separator between nonce and ciphertext"
        )
    try:
        nonce = bytes.fromhex(nonce_hex)
        ct = bytes.fromhex(ct_hex)
    except ValueError as err:
        raise EnvelopeFormatError(f"Malformed envelope: {err}") from err
    if len(nonce) != NONCE_SIZE:
        raise EnvelopeFormatError(
            f"Malformed envelope: nonce is {len(nonce)} bytes "
            f"(expected {NONCE_SIZE})"
        )
    if len(ct) < TAG_SIZE:
        raise EnvelopeFormatError(
            f"Malformed envelope: ciphertext too short: {len(ct)} bytes "
            f"(minimum {TAG_SIZE})"
        )
    return nonce, ct


def decrypt_config_data(config_data: Mapping[str, Any], key: bytes) -> Mapping[str, Any]:
    """Open a sealed config payload.

    Payloads without a versioned ``_enc`` field are returned unchanged
    (the same object), so records written before encryption keep working.

    Args:
        config_data: Config payload, sealed or plain.
        key: 32-byte key from :func:`derive_key`.

    Returns:
        The original mapping.

    Raises:
        EnvelopeFormatError: If the envelope is malformed or the plaintext
            is not a JSON object.
        EnvelopeIntegrityError: If the authentication tag does not verify.
    """
    if not is_encrypted(config_data):
        return config_data
    nonce, ct = _split_envelope(config_data[ENC_FIELD])
    try:
        plaintext = AESGCM(key).decrypt(nonce, ct, None)
    except InvalidTag as err:
        raise EnvelopeIntegrityError(
            "Envelope authentication failed"
        ) from err
    try:
        data = orjson.loads(plaintext)
    except orjson.JSONDecodeError as err:
        raise EnvelopeFormatError(
            "Decrypted payload is not valid JSON"
        ) from err
    if not isinstance(data, dict):
        raise EnvelopeFormatError(
            f"Decrypted payload must be a JSON object, got {type(data).__name__}"
        )
    return data
