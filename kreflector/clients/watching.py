"""
Watching and streaming the watch-events.

The watch-streams are long-living HTTP responses with one JSON document
per line. The stream is opened by one request, and then the lines are read
one by one as they arrive, until the server closes the connection
(usually, by its own timeout, or by the requested timeout).

Opening a watch-stream is retried as any other request (on connection errors,
timeouts, HTTP 5xx). Once the stream is open, its failures are never retried
here: the reflector decides what to do on them (usually, to re-open or re-list).
"""
import asyncio
import json
import logging
from typing import AsyncIterator, Dict, Optional, cast

import aiohttp

from kreflector.clients import api, auth
from kreflector.helpers import typedefs
from kreflector.structs import bodies, configuration, references

logger = logging.getLogger(__name__)


class StreamingResponse:
    """
    An open watch-stream: an async iterator over the parsed watch-events.

    A clean closing of the connection by the server is the end of iteration.
    The lines that cannot be decoded, or are not JSON objects, are raised
    as errors, but the stream remains usable and continues with the next line
    on the next iteration.
    The connection failures are raised as errors too; since the connection
    is gone, the next iteration sees the end of the stream.

    Closing is idempotent, and is safe before the iteration is started.
    """

    def __init__(self, response: aiohttp.ClientResponse) -> None:
        super().__init__()
        self._response = response
        self._lines = _iter_jsonlines(response.content)
        self._closed = False

    def __aiter__(self) -> "StreamingResponse":
        return self

    async def __anext__(self) -> bodies.RawInput:
        if self._closed:
            raise StopAsyncIteration
        try:
            line = await self._lines.__anext__()
        except StopAsyncIteration:
            self._response.close()
            raise
        except (aiohttp.ClientConnectionError, aiohttp.ClientPayloadError, asyncio.TimeoutError):
            self._response.close()
            raise
        data = json.loads(line.decode("utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"A watch-event is not a JSON object: {data!r}")
        return cast(bodies.RawInput, data)

    async def aclose(self) -> None:
        self._closed = True
        await self._lines.aclose()
        self._response.close()


async def watch_objs(
        *,
        context: auth.APIContext,
        settings: configuration.ReflectorSettings,
        resource: references.Resource,
        selector: references.Selector,
        since: Optional[str] = None,
        logger: typedefs.Logger = logger,
) -> StreamingResponse:
    """
    Open a watch-stream of objects of a specific resource type.

    The connection is established and checked for errors before returning,
    so that the failures of opening are distinguishable from the failures
    of streaming (which happen when the events are pulled later).
    """
    params: Dict[str, str] = selector.as_params(paging=False)
    params['watch'] = 'true'
    if since is not None:
        params['resourceVersion'] = since
    if settings.watching.allow_bookmarks:
        params['allowWatchBookmarks'] = 'true'
    if settings.watching.server_timeout is not None:
        params['timeoutSeconds'] = str(settings.watching.server_timeout)

    response = await api.request(
        method='get',
        url=resource.get_url(namespace=selector.namespace, params=params),
        timeout=aiohttp.ClientTimeout(
            total=settings.watching.client_timeout,
            sock_connect=settings.watching.connect_timeout,
        ),
        context=context,
        settings=settings,
        logger=logger,
    )
    return StreamingResponse(response)


async def _iter_jsonlines(
        content: aiohttp.StreamReader,
        chunk_size: int = 1024 * 1024,
) -> AsyncIterator[bytes]:
    """
    Iterate line by line over the response's content.

    Usage::

        async for line in _iter_lines(response.content):
            pass

    This is an equivalent of::

        async for line in response.content:
            pass

    Except that the aiohttp's line iteration fails if the accumulated buffer
    length is above 2**17 bytes, i.e. 128 KB (`aiohttp.streams.DEFAULT_LIMIT`
    for the buffer's low-watermark, multiplied by 2 for the high-watermark).
    The objects' fields can be much longer, up to MBs in length.

    The chunk size of 1MB is an empirical guess for keeping the memory footprint
    reasonably low on huge amount of small lines (limited to 1 MB in total),
    while ensuring the near-instant reads of the huge lines (can be a problem
    with a small chunk size due to too many iterations).
    """

    # Minimize the memory footprint by keeping at most 2 copies of a yielded line in memory
    # (in the buffer and as a yielded value), and at most 1 copy of other lines (in the buffer).
    buffer = b''
    async for data in content.iter_chunked(chunk_size):
        buffer += data
        del data

        start = 0
        index = buffer.find(b'\n', start)
        while index >= 0:
            line = buffer[start:index]
            if line.strip():
                yield line
            del line
            start = index + 1
            index = buffer.find(b'\n', start)

        if start > 0:
            buffer = buffer[start:]

    if buffer.strip():
        yield buffer
