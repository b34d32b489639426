"""Config Vault — Sealed configuration payloads.

Security Note (Threat Model):
    The derived key lives in process memory for the lifetime of the
    ConfigService that owns it, and decrypted payloads are cached in
    memory. A memory dump of the application process could expose both.
    This is an accepted limitation.
"""

from .crypto import (
    derive_key,
    encrypt_config_data,
    decrypt_config_data,
    is_encrypted,
    VaultError,
    EnvelopeFormatError,
    EnvelopeIntegrityError,
)
from .config import VaultConfig, load_secret_pair

__all__ = [
    "derive_key",
    "encrypt_config_data",
    "decrypt_config_data",
    "is_encrypted",
    "VaultError",
    "EnvelopeFormatError",
    "EnvelopeIntegrityError",
    "VaultConfig",
    "load_secret_pair",
]
