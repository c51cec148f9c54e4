import asyncio
import collections.abc
import itertools
from typing import Any, Iterable, Iterator, Mapping, Optional, Tuple, Union

import aiohttp

from kreflector.clients import auth, errors
from kreflector.helpers import typedefs
from kreflector.structs import configuration

# The errors worth retrying: they can disappear by themselves soon.
# All other errors are escalated immediately (e.g. 410 Gone or 403 Forbidden).
RETRIABLE_ERRORS = (aiohttp.ClientConnectionError, errors.APIServerError, asyncio.TimeoutError)


async def request(
        method: str,
        url: str,  # relative to the server/api root.
        *,
        context: auth.APIContext,
        settings: configuration.ReflectorSettings,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[aiohttp.ClientTimeout] = None,
        logger: typedefs.Logger,
) -> aiohttp.ClientResponse:
    """
    Make a request and check its response, with retries on retriable errors.

    The retriable errors are the connection errors, timeouts, and HTTP 5xx.
    The last error is escalated when the backoffs are exhausted.
    The response is not parsed: it is the caller's job (streamed or not).
    """
    if '://' not in url:
        url = context.server.rstrip('/') + '/' + url.lstrip('/')
    if timeout is None:
        timeout = aiohttp.ClientTimeout(
            total=settings.networking.request_timeout,
            sock_connect=settings.networking.connect_timeout,
        )

    what = f"{method.upper()} {url}"
    for idx, attempt, backoff in _attempts(settings.networking.error_backoffs):
        if idx > 1:
            logger.debug(f"Request attempt {attempt}: {what}")
        try:
            response = await context.session.request(
                method=method,
                url=url,
                headers=headers,
                timeout=timeout,
            )
            await errors.check_response(response)
        except RETRIABLE_ERRORS as e:
            if backoff is None:
                logger.error(f"Request attempt {attempt} failed; escalating: {what} -> {e!r}")
                raise
            logger.error(f"Request attempt {attempt} failed; will retry: {what} -> {e!r}")
            await asyncio.sleep(backoff)
        else:
            if idx > 1:
                logger.debug(f"Request attempt {attempt} succeeded: {what}")
            return response

    raise RuntimeError("Broken retryable routine.")  # impossible, but needed for type-checking.


def _attempts(
        backoffs: Union[float, Iterable[float]],
) -> Iterator[Tuple[int, str, Optional[float]]]:
    """
    Number the attempts, and pair them with the delays before the next ones.

    The last attempt has no delay (``None``): its failure is escalated.
    The backoffs can be a single number (one retry), or any iterable,
    including the infinite ones (the attempts are then numbered without a total).
    """
    delays = backoffs if isinstance(backoffs, collections.abc.Iterable) else [backoffs]
    total = len(delays) + 1 if isinstance(delays, collections.abc.Sized) else None
    for idx, delay in enumerate(itertools.chain(delays, [None]), start=1):
        yield idx, f"#{idx}/{total}" if total is not None else f"#{idx}", delay


async def get(
        url: str,  # relative to the server/api root.
        *,
        context: auth.APIContext,
        settings: configuration.ReflectorSettings,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[aiohttp.ClientTimeout] = None,
        logger: typedefs.Logger,
) -> Any:
    """ Request and parse a JSON document. """
    response = await request(
        method='get',
        url=url,
        headers=headers,
        timeout=timeout,
        context=context,
        settings=settings,
        logger=logger,
    )
    async with response:
        return await response.json()
