from __future__ import annotations

from collections.abc import Iterator, Mapping, MutableMapping
from typing import Any

from .domain.errors import CookieTooLargeError, missing
from .domain.options import OptionsInput, SessionConfig, merge_options, resolve_config
from .infra.adapters import CookieReader, CookieStore, CookieStoreAdapter, CookieWriter
from .infra.cookies import SetCookie
from .services.codec import seal_data, unseal_data

MAX_COOKIE_LENGTH = 4096


class Session(MutableMapping):
    """Request-scoped session: the decoded data plus the operations on it.

    Session fields are read and written like a dict (`session["user"]`);
    `data` returns the underlying dict. Nothing reaches the client unless
    `save()` is awaited before the response is sent.
    """

    __slots__ = ("_data", "_options", "_config", "_writer")

    def __init__(
        self,
        data: dict[str, Any],
        options: OptionsInput,
        config: SessionConfig,
        writer: CookieWriter,
    ) -> None:
        self._data = data
        self._options = options
        self._config = config
        self._writer = writer

    @property
    def data(self) -> dict[str, Any]:
        return self._data

    @property
    def config(self) -> SessionConfig:
        return self._config

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._data[key] = value

    def __delitem__(self, key: str) -> None:
        del self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"Session({self._data!r})"

    def _config_for(self, overrides: OptionsInput | None) -> SessionConfig:
        if overrides is None:
            return self._config
        return resolve_config(self._options, overrides)

    async def save(self, overrides: OptionsInput | None = None) -> None:
        """Seal the current data and queue it as a Set-Cookie on the response."""
        config = self._config_for(overrides)
        token = await seal_data(self._data, password=config.passwords, ttl=config.ttl)
        cookie = SetCookie(config.cookie_name, token, config.cookie_options)

        length = cookie.byte_length()
        if length > MAX_COOKIE_LENGTH:
            raise CookieTooLargeError(length, MAX_COOKIE_LENGTH)
        self._writer.write(cookie)

    def destroy(self, overrides: OptionsInput | None = None) -> None:
        """Clear the data and expire the cookie on the client."""
        config = self._config_for(overrides)
        self._data.clear()
        expired = config.cookie_options.model_copy(update={"max_age": 0})
        self._writer.write(SetCookie(config.cookie_name, "", expired))

    def update_config(self, options: OptionsInput) -> None:
        """Use `options` for the remaining save() and destroy() calls of this request."""
        self._config = resolve_config(self._options, options)
        self._options = merge_options(self._options, options)


async def get_session(
    request: CookieReader | None,
    response: CookieWriter | None,
    options: OptionsInput | None,
) -> Session:
    """Load the session sealed in the request cookie.

    `request` and `response` are transport adapters, for instance
    `FetchReader(request)` / `FetchWriter(response)` for Starlette. A
    missing, expired, tampered or foreign cookie gives an empty session.
    """
    if request is None:
        raise missing("request")
    if response is None:
        raise missing("response")
    if options is None:
        raise missing("options")

    config = resolve_config(options)
    token = request.read(config.cookie_name)

    data: dict[str, Any] = {}
    if token:
        decoded = await unseal_data(token, password=config.passwords, ttl=config.ttl)
        if isinstance(decoded, Mapping):
            data = dict(decoded)

    return Session(data, options, config, response)


async def get_cookie_store_session(store: CookieStore | None, options: OptionsInput | None) -> Session:
    """`get_session` for hosts that hand out a cookie store instead of request/response."""
    if store is None:
        raise missing("cookie store")
    adapter = CookieStoreAdapter(store)
    return await get_session(adapter, adapter, options)
