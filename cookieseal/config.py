"""Session options read from the environment."""
import os

from pydantic import ValidationError

from .domain.errors import ConfigurationError
from .domain.options import FOURTEEN_DAYS_IN_SECONDS, CookieOptions, SessionOptions


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() not in ("0", "false", "no", "")


def options_from_env(cookie_name: str | None = None) -> SessionOptions:
    """Build `SessionOptions` from SESSION_* environment variables.

    SESSION_SECRET_KEY holds a single secret, or a rotation map written as
    `1:first-secret,2:second-secret`.
    """
    secret = os.getenv("SESSION_SECRET_KEY")
    if not secret:
        raise ConfigurationError("SESSION_SECRET_KEY environment variable must be set", field="password")

    try:
        ttl = int(os.getenv("SESSION_TTL", str(FOURTEEN_DAYS_IN_SECONDS)))
    except ValueError as exc:
        raise ConfigurationError("SESSION_TTL must be an integer number of seconds", field="ttl") from exc

    cookie_options = CookieOptions(
        # For development, allow insecure cookies over HTTP
        secure=_flag("SECURE_COOKIES", "true"),
        domain=os.getenv("COOKIE_DOMAIN") or None,
    )
    try:
        return SessionOptions(
            cookie_name=cookie_name or os.getenv("SESSION_COOKIE_NAME", "session"),
            password=parse_secret(secret),
            ttl=ttl,
            cookie_options=cookie_options,
        )
    except ValidationError as exc:
        raise ConfigurationError(
            "Invalid session settings in environment",
            errors=exc.errors(include_url=False),
        ) from exc


def parse_secret(raw: str) -> str | dict[int, str]:
    """Turn `1:aaa,2:bbb` into `{1: "aaa", 2: "bbb"}`; anything else is a single secret."""
    entries = [entry.partition(":") for entry in raw.split(",")]
    if all(sep and key.strip().isdigit() for key, sep, _ in entries):
        return {int(key.strip()): value for key, _, value in entries}
    return raw
