from __future__ import annotations

import base64
import binascii
import os
import secrets
from dataclasses import dataclass
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

IV_LENGTH = 12
AUTH_TAG_LENGTH = 16
KEY_LENGTH = 32


class EncryptionKeyMissingError(RuntimeError):
    pass


class TokenDecryptionError(ValueError):
    pass


@dataclass(frozen=True)
class EncryptedToken:
    encrypted: str
    iv: str
    auth_tag: str

    def to_record(self) -> dict[str, str]:
        return {"encrypted": self.encrypted, "iv": self.iv, "authTag": self.auth_tag}

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> EncryptedToken:
        try:
            return cls(
                encrypted=str(record["encrypted"]),
                iv=str(record["iv"]),
                auth_tag=str(record["authTag"]),
            )
        except (KeyError, TypeError) as exc:
            raise TokenDecryptionError("encrypted token record is incomplete") from exc


def _b64encode(value: bytes) -> str:
    return base64.b64encode(value).decode("ascii")


def _b64decode(value: str) -> bytes:
    try:
        return base64.b64decode(value.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise TokenDecryptionError("encrypted token field is not valid base64") from exc


def generate_encryption_key() -> str:
    return secrets.token_hex(KEY_LENGTH)


class TokenCipher:
    """AES-256-GCM encryption for third-party tokens at rest.

    The key is a 64 character hex string. Ciphertext, IV and tag are kept as
    separate base64 fields so rows stay readable by other tooling.
    """

    def __init__(self, key_hex: str | None) -> None:
        if not key_hex:
            raise EncryptionKeyMissingError("ENCRYPTION_KEY is not set")
        try:
            key = bytes.fromhex(key_hex)
        except ValueError as exc:
            raise EncryptionKeyMissingError("ENCRYPTION_KEY must be hex encoded") from exc
        if len(key) != KEY_LENGTH:
            raise EncryptionKeyMissingError("ENCRYPTION_KEY must be 32 bytes (64 hex characters)")
        self._aead = AESGCM(key)

    def encrypt(self, token: str) -> EncryptedToken:
        iv = os.urandom(IV_LENGTH)
        sealed = self._aead.encrypt(iv, token.encode("utf-8"), None)
        ciphertext, tag = sealed[:-AUTH_TAG_LENGTH], sealed[-AUTH_TAG_LENGTH:]
        return EncryptedToken(encrypted=_b64encode(ciphertext), iv=_b64encode(iv), auth_tag=_b64encode(tag))

    def decrypt(self, data: EncryptedToken) -> str:
        ciphertext = _b64decode(data.encrypted)
        iv = _b64decode(data.iv)
        tag = _b64decode(data.auth_tag)
        if len(iv) != IV_LENGTH or len(tag) != AUTH_TAG_LENGTH:
            raise TokenDecryptionError("encrypted token has a malformed iv or auth tag")
        try:
            plaintext = self._aead.decrypt(iv, ciphertext + tag, None)
        except InvalidTag as exc:
            raise TokenDecryptionError("authentication tag does not verify") from exc
        return plaintext.decode("utf-8")

    def encrypt_record(self, token: str) -> dict[str, str]:
        return self.encrypt(token).to_record()

    def decrypt_record(self, record: dict[str, Any]) -> str:
        return self.decrypt(EncryptedToken.from_record(record))
