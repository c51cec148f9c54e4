"""
The contract of the collaborators that the reflector is driving.

The reflector does not know how the objects are listed and watched.
It only requires three operations, which are usually network I/O:
a plain listing, a listing at a specific position, and opening
a watch-stream since a specific position.

The errors of these operations are not classified by their types:
anything raised is a failure of the corresponding operation.
Only the "410 Gone" status is special (see :func:`is_gone`).

The shipped implementation for the real API servers is
:class:`kreflector.clients.sources.APISource`; the tests use in-memory ones.
"""
from typing import AsyncIterator, Collection, Optional, Tuple

from typing_extensions import Protocol

from kreflector.structs import bodies, references

HTTP_GONE_CODE = 410


class WatchStream(Protocol):
    """
    An open watch connection: an async iterator with explicit closing.

    ``__anext__`` raises `StopAsyncIteration` when the server closes
    the stream cleanly. Any other exception is a transport or decoding failure
    of one item, after which the stream can still be iterated further.
    """

    def __aiter__(self) -> AsyncIterator[bodies.RawInput]: ...

    async def __anext__(self) -> bodies.RawInput: ...

    async def aclose(self) -> None: ...


class Source(Protocol):

    async def list(
            self,
            resource: references.Resource,
            selector: references.Selector,
    ) -> Tuple[Collection[bodies.RawBody], Optional[str]]: ...

    async def list_from_version(
            self,
            resource: references.Resource,
            selector: references.Selector,
            version: str,
    ) -> Tuple[Collection[bodies.RawBody], Optional[str]]: ...

    async def watch(
            self,
            resource: references.Resource,
            selector: references.Selector,
            since: str,
    ) -> WatchStream: ...


def is_gone(error: object) -> bool:
    """
    Check if the error means that the requested position is gone for good.

    Both the raised exceptions (with the ``status`` or ``code`` attributes)
    and the raw ``Status`` payloads of the watch-streams are recognised.
    """
    if isinstance(error, dict):
        return error.get('code') == HTTP_GONE_CODE
    status = getattr(error, 'status', None)
    code = getattr(error, 'code', None)
    return status == HTTP_GONE_CODE or code == HTTP_GONE_CODE
