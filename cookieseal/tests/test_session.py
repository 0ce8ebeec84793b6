from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from starlette.requests import Request
from starlette.responses import Response

from cookieseal import (
    ConfigurationError,
    CookieTooLargeError,
    FetchReader,
    FetchWriter,
    HeaderMapReader,
    HeaderMapWriter,
    PostResponseCommitError,
    get_cookie_store_session,
    get_session,
    seal_data,
)
from cookieseal.domain import iron

PASSWORD = "Gbm49ATjnqnkCCCdhV4uDBhbfnPqsCW0"
OPTIONS = {"cookie_name": "test", "password": PASSWORD}
DEFAULT_ATTRIBUTES = "Path=/; HttpOnly; Secure; SameSite=Lax"


def _request(cookie=None):
    headers = {"cookie": cookie} if cookie else {}
    return HeaderMapReader(SimpleNamespace(headers=headers))


def _response(existing=None, headers_sent=False):
    res = MagicMock()
    res.get_header.return_value = existing
    res.headers_sent = headers_sent
    return res


def _written(res, call=0):
    name, values = res.set_header.call_args_list[call].args
    assert name == "set-cookie"
    return values


def _cookie_pair(set_cookie):
    return set_cookie.split(";")[0]


@pytest.fixture
def clock(monkeypatch):
    now = {"ms": 0}
    monkeypatch.setattr(iron, "_now_ms", lambda: now["ms"])
    return now


@pytest.mark.asyncio
async def test_new_session_is_empty():
    session = await get_session(_request(), HeaderMapWriter(_response()), OPTIONS)

    assert session == {}
    assert len(session) == 0
    assert session.data == {}


@pytest.mark.asyncio
async def test_save_sets_cookie():
    res = _response()
    session = await get_session(_request(), HeaderMapWriter(res), OPTIONS)
    session["user"] = {"id": 100}

    await session.save()

    values = _written(res)
    assert len(values) == 1
    name, _, attributes = values[0].partition("; ")
    assert name.startswith("test=Fe26.2*1*")
    assert name.endswith("~2")
    assert attributes == f"Max-Age=1209540; {DEFAULT_ATTRIBUTES}"


@pytest.mark.asyncio
async def test_saved_cookie_is_read_back_and_deleted_fields_stay_deleted():
    res = _response()
    first = await get_session(_request(), HeaderMapWriter(res), OPTIONS)
    first["user"] = {"id": 100}
    first["admin"] = True
    await first.save()

    second = await get_session(_request(_cookie_pair(_written(res)[0])), HeaderMapWriter(res), OPTIONS)
    assert second == {"user": {"id": 100}, "admin": True}

    del second["user"]
    await second.save()

    third = await get_session(_request(_cookie_pair(_written(res, 1)[0])), HeaderMapWriter(res), OPTIONS)
    assert third.data == {"admin": True}


@pytest.mark.asyncio
async def test_zero_ttl_uses_protocol_maximum_max_age():
    res = _response()
    session = await get_session(_request(), HeaderMapWriter(res), {**OPTIONS, "ttl": 0})

    await session.save()

    assert _written(res)[0].split("; ")[1] == "Max-Age=2147483647"


@pytest.mark.asyncio
async def test_explicit_max_age_none_emits_session_cookie():
    res = _response()
    options = {**OPTIONS, "cookie_options": {"max_age": None}}
    session = await get_session(_request(), HeaderMapWriter(res), options)

    await session.save()

    cookie = _written(res)[0]
    assert "Max-Age" not in cookie
    assert cookie.split("; ", 1)[1] == DEFAULT_ATTRIBUTES


@pytest.mark.asyncio
async def test_destroy_clears_data_and_expires_cookie():
    res = _response()
    session = await get_session(_request(), HeaderMapWriter(res), OPTIONS)
    session["user"] = {"id": 88}

    session.destroy()

    assert session == {}
    assert _written(res) == [f"test=; Max-Age=0; {DEFAULT_ATTRIBUTES}"]


@pytest.mark.asyncio
async def test_destroy_on_empty_session():
    res = _response()
    session = await get_session(_request(), HeaderMapWriter(res), OPTIONS)

    session.destroy()
    session.destroy()

    assert len(session) == 0
    assert _written(res, 1) == [f"test=; Max-Age=0; {DEFAULT_ATTRIBUTES}"]


@pytest.mark.asyncio
async def test_save_keeps_previously_set_cookie():
    res = _response(existing="a=1")
    session = await get_session(_request(), HeaderMapWriter(res), OPTIONS)

    await session.save()

    values = _written(res)
    assert len(values) == 2
    assert values[0] == "a=1"
    assert values[1].startswith("test=")


@pytest.mark.asyncio
async def test_destroy_keeps_previously_set_cookies():
    res = _response(existing=["existingCookie=value", "anotherCookie=value2"])
    session = await get_session(_request(), HeaderMapWriter(res), OPTIONS)

    session.destroy()

    assert _written(res) == [
        "existingCookie=value",
        "anotherCookie=value2",
        f"test=; Max-Age=0; {DEFAULT_ATTRIBUTES}",
    ]


@pytest.mark.asyncio
async def test_too_large_cookie_is_rejected_without_writing():
    res = _response()
    session = await get_session(_request(), HeaderMapWriter(res), OPTIONS)
    session["user"] = {"id": 20, "meta": "somevalue" * 500}

    with pytest.raises(CookieTooLargeError) as excinfo:
        await session.save()

    assert excinfo.value.length > 4096
    res.set_header.assert_not_called()


@pytest.mark.asyncio
async def test_save_after_headers_sent_fails():
    session = await get_session(_request(), HeaderMapWriter(_response(headers_sent=True)), OPTIONS)

    with pytest.raises(PostResponseCommitError):
        await session.save()


@pytest.mark.asyncio
async def test_operations_cannot_be_reassigned():
    session = await get_session(_request(), HeaderMapWriter(_response()), OPTIONS)

    with pytest.raises(AttributeError):
        session.save = lambda: None
    with pytest.raises(AttributeError):
        session.destroy = lambda: None

    session["save"] = "just data"
    assert session["save"] == "just data"
    assert callable(session.save)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "args, field",
    [
        ((None, HeaderMapWriter(MagicMock()), OPTIONS), "request"),
        ((_request(), None, OPTIONS), "response"),
        ((_request(), HeaderMapWriter(MagicMock()), None), "options"),
        ((_request(), HeaderMapWriter(MagicMock()), {"password": PASSWORD}), "cookie_name"),
        ((_request(), HeaderMapWriter(MagicMock()), {"cookie_name": "test"}), "password"),
    ],
)
async def test_bad_usage(args, field):
    with pytest.raises(ConfigurationError) as excinfo:
        await get_session(*args)
    assert excinfo.value.field == field


@pytest.mark.asyncio
async def test_short_password_is_bad_usage():
    with pytest.raises(ConfigurationError, match="password too short"):
        await get_session(_request(), HeaderMapWriter(_response()), {**OPTIONS, "password": PASSWORD[1:]})


@pytest.mark.asyncio
async def test_expired_cookie_gives_empty_session(clock):
    ttl = 100
    token = await seal_data({"user": {"id": 20}}, password=PASSWORD, ttl=ttl)
    options = {**OPTIONS, "ttl": ttl}

    first = await get_session(_request(f"test={token}"), HeaderMapWriter(_response()), options)
    assert first == {"user": {"id": 20}}

    clock["ms"] = (ttl + 60) * 1000
    second = await get_session(_request(f"test={token}"), HeaderMapWriter(_response()), options)
    assert second == {}


@pytest.mark.asyncio
async def test_save_refreshes_seal_expiry(clock):
    ttl = 100
    options = {**OPTIONS, "ttl": ttl}
    res = _response()

    first = await get_session(_request(), HeaderMapWriter(res), options)
    first["user"] = {"id": 42}
    await first.save()
    first_cookie = _written(res)[0]
    assert first_cookie.split("; ")[1] == "Max-Age=40"

    clock["ms"] = (ttl + 30) * 1000
    second = await get_session(_request(_cookie_pair(first_cookie)), HeaderMapWriter(res), options)
    assert second == {"user": {"id": 42}}
    await second.save()
    second_cookie = _written(res, 1)[0]
    assert second_cookie.split("; ")[1] == "Max-Age=40"

    clock["ms"] = (ttl + 30 + ttl + 30) * 1000
    third = await get_session(_request(_cookie_pair(second_cookie)), HeaderMapWriter(res), options)
    assert third == {"user": {"id": 42}}


@pytest.mark.asyncio
async def test_rotated_password_still_opens_old_cookie():
    token = await seal_data({"user": {"id": 30}}, password={1: "BcTv8NKLVfGcTt18HqGf2DhEnmJrLbNU"})
    options = {
        "cookie_name": "test",
        "password": {2: "scKVNPWFippYjA3tRjJPuPnK7ocj4Vnn", 1: "BcTv8NKLVfGcTt18HqGf2DhEnmJrLbNU"},
    }
    res = _response()

    session = await get_session(_request(f"test={token}"), HeaderMapWriter(res), options)
    assert session == {"user": {"id": 30}}

    await session.save()
    assert _written(res)[0].split("*")[1] == "2"


@pytest.mark.asyncio
async def test_previous_format_cookie_is_read():
    legacy = iron.seal({"persistent": {"user": {"id": 77}}, "flash": {}}, iron.SealPassword("1", PASSWORD))

    session = await get_session(_request(f"test={legacy}"), HeaderMapWriter(_response()), OPTIONS)

    assert session["user"] == {"id": 77}


@pytest.mark.asyncio
async def test_update_config_applies_to_later_saves():
    res = _response()
    session = await get_session(_request(), HeaderMapWriter(res), OPTIONS)

    session.update_config({"ttl": 3600, "cookie_options": {"path": "/app"}})
    res.set_header.assert_not_called()

    await session.save()
    assert _written(res)[0].split("; ", 1)[1] == "Max-Age=3540; Path=/app; HttpOnly; Secure; SameSite=Lax"
    assert session.config.ttl == 3600


@pytest.mark.asyncio
async def test_save_with_overrides_does_not_change_config():
    res = _response()
    session = await get_session(_request(), HeaderMapWriter(res), OPTIONS)

    await session.save({"cookie_options": {"secure": False}})
    await session.save()

    assert _written(res, 0)[0].endswith("Path=/; HttpOnly; SameSite=Lax")
    assert _written(res, 1)[0].endswith(DEFAULT_ATTRIBUTES)


@pytest.mark.asyncio
async def test_fetch_style_request_and_response():
    token = await seal_data({"user": {"id": 5}}, password=PASSWORD)
    request = Request({"type": "http", "headers": [(b"cookie", f"other=1; test={token}".encode())]})
    response = Response()
    response.headers.append("set-cookie", "a=1")

    session = await get_session(FetchReader(request), FetchWriter(response), OPTIONS)
    assert session == {"user": {"id": 5}}

    await session.save()
    session.destroy()

    values = response.headers.getlist("set-cookie")
    assert values[0] == "a=1"
    assert values[1].startswith("test=Fe26.2*1*")
    assert values[2] == f"test=; Max-Age=0; {DEFAULT_ATTRIBUTES}"


@pytest.mark.asyncio
async def test_fetch_writer_refuses_committed_response():
    response = SimpleNamespace(headers=MagicMock(), committed=True)
    session = await get_session(_request(), FetchWriter(response), OPTIONS)

    with pytest.raises(PostResponseCommitError):
        await session.save()
    response.headers.append.assert_not_called()


@pytest.mark.asyncio
async def test_fetch_reader_parses_header_when_request_has_no_cookies():
    token = await seal_data({"user": {"id": 6}}, password=PASSWORD)
    request = SimpleNamespace(headers={"cookie": f"test={token}; other=1"})

    session = await get_session(FetchReader(request), FetchWriter(Response()), OPTIONS)

    assert session == {"user": {"id": 6}}


class _CookieStore:
    def __init__(self, cookies=None):
        self.cookies = dict(cookies or {})
        self.calls = []

    def get(self, name):
        if name not in self.cookies:
            return None
        return SimpleNamespace(name=name, value=self.cookies[name])

    def set(self, name, value, options):
        self.calls.append((name, value, options))
        self.cookies[name] = value


@pytest.mark.asyncio
async def test_cookie_store_session():
    store = _CookieStore()
    session = await get_cookie_store_session(store, OPTIONS)
    assert session == {}

    session["username"] = "ada"
    session["is_logged_in"] = True
    await session.save()

    name, value, options = store.calls[0]
    assert name == "test"
    assert value.endswith("~2")
    assert options.max_age == 1209540

    reloaded = await get_cookie_store_session(store, OPTIONS)
    assert reloaded == {"username": "ada", "is_logged_in": True}

    reloaded.destroy()
    name, value, options = store.calls[-1]
    assert (name, value, options.max_age) == ("test", "", 0)


@pytest.mark.asyncio
async def test_cookie_store_is_required():
    with pytest.raises(ConfigurationError) as excinfo:
        await get_cookie_store_session(None, OPTIONS)
    assert excinfo.value.field == "cookie store"


@pytest.mark.asyncio
async def test_cookie_store_refuses_committed_store():
    store = _CookieStore()
    store.committed = True
    session = await get_cookie_store_session(store, OPTIONS)

    with pytest.raises(PostResponseCommitError):
        await session.save()
    with pytest.raises(PostResponseCommitError):
        session.destroy()
    assert store.calls == []
