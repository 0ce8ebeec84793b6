"""FastAPI dependency that provides the sealed-cookie session."""

from fastapi import Request, Response

from .config import options_from_env
from .domain.options import OptionsInput
from .infra.adapters import FetchReader, FetchWriter
from .session import Session, get_session


class SessionDependency:
    """Use as `session: Session = Depends(SessionDependency(options))`.

    Cookies are queued on the temporal response FastAPI merges into the
    one returned by the endpoint, so endpoints must return data rather than
    a `Response` instance for `save()`/`destroy()` to reach the client.
    Options default to `options_from_env()`, read on first use.
    """

    def __init__(self, options: OptionsInput | None = None) -> None:
        self.options = options

    async def __call__(self, request: Request, response: Response) -> Session:
        if self.options is None:
            self.options = options_from_env()
        return await get_session(FetchReader(request), FetchWriter(response), self.options)
