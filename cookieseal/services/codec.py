"""Token codec: iron seals plus a trailing major-version tag.

Tokens look like `<seal>~<major version>`. The version lets the payload
layout change between releases without logging everybody out: tokens
without a tag come from the pre-versioning layout and keep their data
under `persistent`.
"""
from __future__ import annotations

import logging
from enum import Enum
from collections.abc import Mapping
from typing import Any

from starlette.concurrency import run_in_threadpool

from ..domain import iron
from ..domain.options import FOURTEEN_DAYS_IN_SECONDS
from ..domain.passwords import Password, current_password, normalize_passwords

logger = logging.getLogger(__name__)

VERSION_DELIMITER = "~"


class TokenVersion(Enum):
    LEGACY = "legacy"
    V2 = 2
    # Post-quantum envelope, recognised but not decodable here.
    V3 = 3


CURRENT_VERSION = TokenVersion.V2


class UnsupportedTokenVersionError(iron.ExpiredOrInvalidTokenError):
    """The token carries a version this release cannot read."""


def parse_token(token: str) -> tuple[str, TokenVersion | None, int | None]:
    """Split `token` into `(seal, version, raw version number)`.

    A missing or non-numeric tag means the legacy layout. A numeric tag
    that names no known version comes back as `(seal, None, number)`.
    """
    seal, sep, tag = token.rpartition(VERSION_DELIMITER)
    if not sep or not tag.isdigit() or not tag.isascii():
        return token, TokenVersion.LEGACY, None
    number = int(tag)
    try:
        return seal, TokenVersion(number), number
    except ValueError:
        return seal, None, number


def _decode_v2(payload: Any) -> Any:
    return {} if payload is None else payload


def _decode_legacy(payload: Any) -> dict[str, Any]:
    # `flash` held one-request messages; it is dropped on purpose.
    persistent = payload.get("persistent") if isinstance(payload, Mapping) else None
    return dict(persistent or {})


_DECODERS = {
    TokenVersion.V2: _decode_v2,
    TokenVersion.LEGACY: _decode_legacy,
}


def encode_token(data: Any, password: Password, ttl: int = FOURTEEN_DAYS_IN_SECONDS) -> str:
    """Seal `data` with the newest password and tag it with the current version."""
    password_id, secret = current_password(normalize_passwords(password))
    sealed = iron.seal(data, iron.SealPassword(id=password_id, secret=secret), ttl_ms=ttl * 1000)
    return f"{sealed}{VERSION_DELIMITER}{CURRENT_VERSION.value}"


def decode_token(token: str, password: Password, ttl: int = FOURTEEN_DAYS_IN_SECONDS) -> Any:
    """Return the data sealed in `token`.

    Expired, tampered, wrongly-keyed and malformed tokens decode to an empty
    dict so the request simply carries no session. Other errors propagate.
    """
    passwords = normalize_passwords(password)
    seal, version, number = parse_token(token)
    try:
        decoder = _DECODERS.get(version)
        if decoder is None:
            raise UnsupportedTokenVersionError(f"Unsupported token version: {number}")
        payload = iron.unseal(seal, passwords, ttl_ms=ttl * 1000)
        return decoder(payload)
    except UnsupportedTokenVersionError as exc:
        logger.warning("Discarding session token: %s", exc)
        return {}
    except iron.ExpiredOrInvalidTokenError as exc:
        logger.debug("Discarding session token: %s", type(exc).__name__)
        return {}


async def seal_data(data: Any, *, password: Password, ttl: int = FOURTEEN_DAYS_IN_SECONDS) -> str:
    return await run_in_threadpool(encode_token, data, password, ttl)


async def unseal_data(token: str, *, password: Password, ttl: int = FOURTEEN_DAYS_IN_SECONDS) -> Any:
    return await run_in_threadpool(decode_token, token, password, ttl)
