"""Set-Cookie serialization.

Request cookies are parsed by Starlette (`Request.cookies`, `cookie_parser`);
this module only builds the response side.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from urllib.parse import quote

from ..domain.options import CookieOptions

# RFC 6265 token characters, the only ones allowed in a cookie name.
_COOKIE_NAME = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
# Characters encodeURIComponent leaves untouched.
_VALUE_SAFE = "!~*'()-_."


def serialize_cookie(name: str, value: str, options: CookieOptions | None = None) -> str:
    """Build a Set-Cookie header value.

    Attribute order: Max-Age, Domain, Path, HttpOnly, Secure, SameSite.
    A `max_age` of None emits no Max-Age, which makes a browser session cookie.
    """
    if not _COOKIE_NAME.match(name):
        raise ValueError(f"Invalid cookie name: {name!r}")
    options = options or CookieOptions()

    parts = [f"{name}={quote(value, safe=_VALUE_SAFE)}"]
    if options.max_age is not None:
        parts.append(f"Max-Age={int(options.max_age)}")
    if options.domain:
        parts.append(f"Domain={options.domain}")
    if options.path:
        parts.append(f"Path={options.path}")
    if options.http_only:
        parts.append("HttpOnly")
    if options.secure:
        parts.append("Secure")
    if options.same_site:
        parts.append(f"SameSite={options.same_site.capitalize()}")
    return "; ".join(parts)


@dataclass(frozen=True)
class SetCookie:
    """A cookie waiting to be written to a response."""

    name: str
    value: str
    options: CookieOptions = field(default_factory=CookieOptions)

    def serialize(self) -> str:
        return serialize_cookie(self.name, self.value, self.options)

    def byte_length(self) -> int:
        return len(self.serialize().encode("utf-8"))
