"""At-rest encryption for stored account private keys."""

from __future__ import annotations

import base64
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

import config

VAULT_VERSION = "v1"
PBKDF2_ITERATIONS = 200_000
SALT_BYTES = 16
NONCE_BYTES = 12


class KeyVaultError(RuntimeError):
    """Raised when a secret cannot be encrypted or decrypted."""


def _derive_key(secret: str, salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=32, salt=salt, iterations=PBKDF2_ITERATIONS)
    return kdf.derive(secret.encode("utf-8"))


def _secret(override: str | None) -> str:
    secret = override if override is not None else config.ENCRYPTION_KEY
    if not secret:
        raise KeyVaultError("ENCRYPTION_KEY is empty")
    return secret


def encrypt_private_key(plaintext: str, secret: str | None = None) -> str:
    salt = secrets.token_bytes(SALT_BYTES)
    nonce = secrets.token_bytes(NONCE_BYTES)
    key = _derive_key(_secret(secret), salt)
    ciphertext = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)
    return ":".join(
        [
            VAULT_VERSION,
            base64.b64encode(salt).decode("ascii"),
            base64.b64encode(nonce).decode("ascii"),
            base64.b64encode(ciphertext).decode("ascii"),
        ]
    )


def decrypt_private_key(token: str, secret: str | None = None) -> str:
    parts = str(token or "").split(":")
    if len(parts) != 4 or parts[0] != VAULT_VERSION:
        raise KeyVaultError("encrypted key has an unknown format")
    try:
        salt = base64.b64decode(parts[1])
        nonce = base64.b64decode(parts[2])
        ciphertext = base64.b64decode(parts[3])
    except ValueError as exc:
        raise KeyVaultError("encrypted key is not valid base64") from exc
    if len(salt) != SALT_BYTES or len(nonce) != NONCE_BYTES or len(ciphertext) < 16:
        raise KeyVaultError("encrypted key has invalid lengths")

    key = _derive_key(_secret(secret), salt)
    try:
        return AESGCM(key).decrypt(nonce, ciphertext, None).decode("utf-8")
    except InvalidTag as exc:
        raise KeyVaultError("encrypted key failed authentication (wrong ENCRYPTION_KEY?)") from exc
