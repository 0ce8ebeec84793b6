"""Transport adapters: read the session cookie from a request, write it to a response.

Each host transport gets its own reader/writer pair and the caller picks the
one matching its framework:

- header map: `request.headers` is a plain mapping and the response exposes
  `get_header` / `set_header` (and optionally `headers_sent`).
- fetch style: `request.headers.get(...)` and `response.headers.append(...)`,
  which is what Starlette/FastAPI `Request` and `Response` provide.
- cookie store: an object with `get(name)` returning something with a
  `value` attribute and `set(name, value, options)`.
"""
from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from starlette.requests import cookie_parser

from ..domain.errors import PostResponseCommitError
from ..domain.options import CookieOptions
from .cookies import SetCookie

SET_COOKIE = "set-cookie"


@runtime_checkable
class CookieReader(Protocol):
    def read(self, cookie_name: str) -> str:
        """Return the raw cookie value, or an empty string."""


@runtime_checkable
class CookieWriter(Protocol):
    def write(self, cookie: SetCookie) -> None:
        """Queue `cookie` on the response."""


class CookieStore(Protocol):
    def get(self, name: str) -> Any | None:
        ...

    def set(self, name: str, value: str, options: CookieOptions) -> None:
        ...


class HeaderMapReader:
    def __init__(self, request: Any) -> None:
        self.request = request

    def read(self, cookie_name: str) -> str:
        headers = self.request.headers or {}
        header = headers.get("cookie") or headers.get("Cookie") or ""
        return cookie_parser(header).get(cookie_name, "")


class HeaderMapWriter:
    """Appends to the response's Set-Cookie header, keeping values already there."""

    def __init__(self, response: Any) -> None:
        self.response = response

    def write(self, cookie: SetCookie) -> None:
        if getattr(self.response, "headers_sent", False) is True:
            raise PostResponseCommitError()

        existing = self.response.get_header(SET_COOKIE)
        if existing is None:
            values: list[str] = []
        elif isinstance(existing, str):
            values = [existing]
        else:
            values = list(existing)
        self.response.set_header(SET_COOKIE, [*values, cookie.serialize()])


class FetchReader:
    """Uses `request.cookies` on Starlette requests, else parses `headers.get("cookie")`."""

    def __init__(self, request: Any) -> None:
        self.request = request

    def read(self, cookie_name: str) -> str:
        cookies = getattr(self.request, "cookies", None)
        if cookies is None:
            cookies = cookie_parser(self.request.headers.get("cookie") or "")
        return cookies.get(cookie_name, "")


class FetchWriter:
    def __init__(self, response: Any) -> None:
        self.response = response

    def write(self, cookie: SetCookie) -> None:
        if getattr(self.response, "committed", False) is True:
            raise PostResponseCommitError()
        self.response.headers.append(SET_COOKIE, cookie.serialize())


class CookieStoreAdapter:
    """Reader and writer over a cookie store; the host assembles the headers."""

    def __init__(self, store: CookieStore) -> None:
        self.store = store

    def read(self, cookie_name: str) -> str:
        cookie = self.store.get(cookie_name)
        if cookie is None:
            return ""
        return getattr(cookie, "value", "") or ""

    def write(self, cookie: SetCookie) -> None:
        if getattr(self.store, "committed", False) is True:
            raise PostResponseCommitError()
        self.store.set(cookie.name, cookie.value, cookie.options)
