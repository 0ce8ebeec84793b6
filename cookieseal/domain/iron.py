"""Iron (Fe26.2) authenticated encryption built on `cryptography`.

A seal is eight `*`-separated components:

    Fe26.2*<password id>*<encryption salt>*<iv>*<ciphertext>*<expiration>*<hmac salt>*<hmac>

The payload is JSON, encrypted with AES-256-CBC and signed with
HMAC-SHA256 over the first six components. Both keys are derived from the
password with PBKDF2-SHA1 (one iteration) and a fresh 256-bit salt, which
keeps seals interchangeable with other iron implementations.
"""
from __future__ import annotations

import base64
import binascii
import json
import re
import secrets
import time
from dataclasses import dataclass
from collections.abc import Mapping
from typing import Any

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives import hmac as crypto_hmac
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

MAC_PREFIX = "Fe26.2"
MIN_PASSWORD_LENGTH = 32
TIMESTAMP_SKEW_SEC = 60

_SALT_BYTES = 32
_IV_BYTES = 16
_KEY_BYTES = 32
_ITERATIONS = 1
_PASSWORD_ID = re.compile(r"^\w+$", re.ASCII)


class IronError(Exception):
    """Raised on iron misuse or on failures that are not token problems."""


class ExpiredOrInvalidTokenError(IronError):
    """The token cannot be trusted; callers treat it as no token at all."""


class ExpiredSealError(ExpiredOrInvalidTokenError):
    pass


class BadHmacError(ExpiredOrInvalidTokenError):
    pass


class PasswordNotFoundError(ExpiredOrInvalidTokenError):
    pass


class MalformedSealError(ExpiredOrInvalidTokenError):
    pass


@dataclass(frozen=True)
class SealPassword:
    """Secret used to seal, tagged with the id written into the seal."""

    id: str
    secret: str


Secret = str | SealPassword


def _now_ms() -> int:
    return int(time.time() * 1000)


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64url_decode(text: str) -> bytes:
    try:
        return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))
    except (binascii.Error, ValueError) as exc:
        raise MalformedSealError("Invalid base64url component") from exc


def _derive_key(secret: str, salt: str) -> bytes:
    if len(secret) < MIN_PASSWORD_LENGTH:
        raise IronError(f"Password string too short (min {MIN_PASSWORD_LENGTH} characters required)")
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA1(),
        length=_KEY_BYTES,
        salt=salt.encode("utf-8"),
        iterations=_ITERATIONS,
    )
    return kdf.derive(secret.encode("utf-8"))


def _hmac_digest(secret: str, salt: str, message: str) -> str:
    mac = crypto_hmac.HMAC(_derive_key(secret, salt), hashes.SHA256())
    mac.update(message.encode("utf-8"))
    return _b64url_encode(mac.finalize())


def _encrypt(secret: str, plaintext: bytes) -> tuple[str, bytes, bytes]:
    salt = secrets.token_hex(_SALT_BYTES)
    iv = secrets.token_bytes(_IV_BYTES)
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = Cipher(algorithms.AES(_derive_key(secret, salt)), modes.CBC(iv)).encryptor()
    return salt, iv, encryptor.update(padded) + encryptor.finalize()


def _decrypt(secret: str, salt: str, iv: bytes, ciphertext: bytes) -> bytes:
    decryptor = Cipher(algorithms.AES(_derive_key(secret, salt)), modes.CBC(iv)).decryptor()
    try:
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError as exc:
        raise IronError("Failed decrypting sealed object") from exc


def seal(data: Any, password: Secret, *, ttl_ms: int = 0, now_ms: int | None = None) -> str:
    """Encrypt and sign `data`. A `ttl_ms` of 0 produces a seal that never expires."""
    if isinstance(password, SealPassword):
        password_id, secret = password.id, password.secret
        if not _PASSWORD_ID.match(password_id):
            raise IronError("Invalid password id")
    else:
        password_id, secret = "", password

    now = _now_ms() if now_ms is None else now_ms
    plaintext = json.dumps(data, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    salt, iv, ciphertext = _encrypt(secret, plaintext)
    expiration = str(now + ttl_ms) if ttl_ms else ""

    mac_base = "*".join(
        [MAC_PREFIX, password_id, salt, _b64url_encode(iv), _b64url_encode(ciphertext), expiration]
    )
    hmac_salt = secrets.token_hex(_SALT_BYTES)
    return f"{mac_base}*{hmac_salt}*{_hmac_digest(secret, hmac_salt, mac_base)}"


def unseal(
    sealed: str,
    password: str | Mapping[str, str],
    *,
    ttl_ms: int = 0,
    now_ms: int | None = None,
) -> Any:
    """Verify and decrypt a seal.

    `password` is either the secret itself or a map of password id to
    secret; with a map, the id recorded in the seal picks the secret.
    `ttl_ms` is accepted for symmetry with `seal`; the expiration checked
    is the one recorded in the seal.
    """
    now = _now_ms() if now_ms is None else now_ms
    parts = sealed.split("*")
    if len(parts) != 8:
        raise MalformedSealError("Incorrect number of sealed components")

    prefix, password_id, enc_salt, enc_iv, encrypted_b64, expiration, hmac_salt, digest = parts
    mac_base = "*".join(parts[:6])

    if prefix != MAC_PREFIX:
        raise MalformedSealError("Wrong mac prefix")

    if expiration:
        if not expiration.isdigit() or not expiration.isascii():
            raise MalformedSealError("Invalid expiration")
        if int(expiration) <= now - TIMESTAMP_SKEW_SEC * 1000:
            raise ExpiredSealError("Expired seal")

    if isinstance(password, str):
        secret = password
    else:
        key = password_id or "default"
        secret = password.get(key)
        if not secret:
            raise PasswordNotFoundError(f"Cannot find password: {key}")

    expected = _hmac_digest(secret, hmac_salt, mac_base)
    if not secrets.compare_digest(expected.encode("ascii"), digest.encode("utf-8")):
        raise BadHmacError("Bad hmac value")

    plaintext = _decrypt(secret, enc_salt, _b64url_decode(enc_iv), _b64url_decode(encrypted_b64))
    try:
        return json.loads(plaintext.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise IronError("Failed parsing sealed object JSON") from exc
