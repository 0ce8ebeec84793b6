"""
cookieseal: stateless sessions sealed inside a cookie.

Session data is encrypted and signed with iron (Fe26.2), tagged with a
token version and written to the client as a cookie, so the server keeps
no session storage. Passwords can be rotated without logging anyone out:
new seals use the newest password, older ones still open while their
password id stays configured.
"""

__all__ = [
    "ConfigurationError",
    "CookieOptions",
    "CookieSealError",
    "CookieStoreAdapter",
    "CookieTooLargeError",
    "FetchReader",
    "FetchWriter",
    "HeaderMapReader",
    "HeaderMapWriter",
    "PostResponseCommitError",
    "Session",
    "SessionOptions",
    "get_cookie_store_session",
    "get_session",
    "seal_data",
    "unseal_data",
]

from .domain.errors import (
    ConfigurationError,
    CookieSealError,
    CookieTooLargeError,
    PostResponseCommitError,
)
from .domain.options import CookieOptions, SessionOptions
from .infra.adapters import (
    CookieStoreAdapter,
    FetchReader,
    FetchWriter,
    HeaderMapReader,
    HeaderMapWriter,
)
from .services.codec import seal_data, unseal_data
from .session import Session, get_cookie_store_session, get_session

__version__ = "0.1.0"
