"""Session options and the resolver that turns them into a cookie config."""
from __future__ import annotations

from dataclasses import dataclass
from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigurationError, missing
from .iron import TIMESTAMP_SKEW_SEC
from .passwords import normalize_passwords

FOURTEEN_DAYS_IN_SECONDS = 14 * 24 * 3600
# Largest max-age browsers honour; stands in for "never expires".
MAX_COOKIE_AGE = 2147483647


class CookieOptions(BaseModel):
    """Set-Cookie attributes. Defaults are the secure ones."""

    http_only: bool = True
    secure: bool = True
    same_site: Literal["lax", "strict", "none"] | None = "lax"
    path: str | None = "/"
    domain: str | None = None
    max_age: int | None = None

    model_config = ConfigDict(extra="forbid")


class SessionOptions(BaseModel):
    cookie_name: str = Field(..., min_length=1)
    password: str | dict[int | str, str]
    ttl: int = Field(FOURTEEN_DAYS_IN_SECONDS, ge=0)
    cookie_options: CookieOptions = Field(default_factory=CookieOptions)

    model_config = ConfigDict(extra="forbid")


OptionsInput = SessionOptions | Mapping[str, Any]


@dataclass(frozen=True)
class SessionConfig:
    """Fully resolved options used to seal and write one cookie."""

    cookie_name: str
    passwords: dict[str, str]
    ttl: int
    cookie_options: CookieOptions


def _cookie_options_as_dict(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, CookieOptions):
        return value.model_dump(exclude_unset=True)
    return dict(value)


def _options_as_dict(options: OptionsInput) -> dict[str, Any]:
    if isinstance(options, SessionOptions):
        data = options.model_dump(exclude_unset=True)
    else:
        data = dict(options)
    data["cookie_options"] = _cookie_options_as_dict(data.get("cookie_options"))
    return data


def merge_options(options: OptionsInput, overrides: OptionsInput | None = None) -> dict[str, Any]:
    """Layer `overrides` over `options`, cookie attributes key by key."""
    merged = _options_as_dict(options)
    if overrides:
        extra = _options_as_dict(overrides)
        cookie_options = {**merged["cookie_options"], **extra.pop("cookie_options")}
        merged.update(extra)
        merged["cookie_options"] = cookie_options
    return merged


def resolve_config(options: OptionsInput, overrides: OptionsInput | None = None) -> SessionConfig:
    """Merge defaults, user options and overrides, then derive the cookie max-age.

    An explicit `cookie_options.max_age` wins: `None` asks for a browser
    session cookie (no Max-Age attribute, seal without expiry) and any other
    value is used as-is. Otherwise a ttl of 0 means "never expires" and any
    other ttl gives a cookie that expires 60 seconds before its seal.
    """
    if options is None:
        raise missing("options")

    merged = merge_options(options, overrides)
    if not merged.get("cookie_name"):
        raise missing("cookie_name")
    if not merged.get("password"):
        raise missing("password")

    passwords = normalize_passwords(merged["password"])
    try:
        validated = SessionOptions.model_validate(merged)
    except ValidationError as exc:
        raise ConfigurationError(
            f"Bad usage: invalid session options ({exc.error_count()} errors)",
            errors=exc.errors(include_url=False),
        ) from exc

    explicit_cookie_options = merged["cookie_options"]
    cookie_options = validated.cookie_options.model_dump()
    ttl = validated.ttl

    if "max_age" in explicit_cookie_options:
        if explicit_cookie_options["max_age"] is None:
            ttl = 0
    elif ttl == 0:
        ttl = MAX_COOKIE_AGE
        cookie_options["max_age"] = MAX_COOKIE_AGE
    else:
        cookie_options["max_age"] = ttl - TIMESTAMP_SKEW_SEC

    return SessionConfig(
        cookie_name=validated.cookie_name,
        passwords=passwords,
        ttl=ttl,
        cookie_options=CookieOptions(**cookie_options),
    )
