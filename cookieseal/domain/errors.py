"""Errors raised by the session engine."""
from __future__ import annotations

from typing import Any


class CookieSealError(Exception):
    """Base error. Keyword context lands in `details` and in the message."""

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.details = details

    def __str__(self) -> str:
        message = self.args[0]
        if not self.details:
            return message
        context = ", ".join(f"{key}={value!r}" for key, value in sorted(self.details.items()))
        return f"{message} ({context})"


class ConfigurationError(CookieSealError):
    """Bad usage: missing arguments, missing options, short passwords."""

    def __init__(self, message: str, field: str | None = None, **details: Any) -> None:
        if field:
            details["field"] = field
        super().__init__(message, **details)
        self.field = field


class CookieTooLargeError(CookieSealError):
    """The serialized cookie is over the size browsers accept."""

    def __init__(self, length: int, limit: int) -> None:
        super().__init__(
            f"Cookie length is too big {length}, browsers will refuse it. Try to remove some data.",
            length=length,
            limit=limit,
        )
        self.length = length
        self.limit = limit


class PostResponseCommitError(CookieSealError):
    """A cookie write was attempted after the response headers went out."""

    def __init__(self) -> None:
        super().__init__(
            "Cannot set session cookie: save() was called after headers were sent. "
            "Make sure to call it before the response is sent."
        )


def missing(field: str) -> ConfigurationError:
    """Create a configuration error for a missing argument or option."""
    return ConfigurationError(f"Bad usage: missing {field}", field=field)
