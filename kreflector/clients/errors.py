"""
API errors.

The underlying client library (now, ``aiohttp``) can be replaced in the future.
We cannot rely on embedding its exceptions all over the code of the library.
Hence, we have our own hierarchy of exceptions for the API errors.

Low-level errors, such as the network connectivity issues, SSL/HTTPS issues,
etc, are escalated from the client library as is, since they are related not
to the domain of the API, but rather to the networking and encryption.

The original errors of the client library are chained as the causes of our own
specialised errors -- for better explainability of errors in the stack traces.

Some selected reasons of the API errors are made into their own classes,
so that they could be intercepted and handled in other places of the library.
Most notably, "410 Gone" means that the requested position is too old,
and the reflector must re-list the objects from scratch.
"""
import collections.abc
import json
from typing import Any, Collection, Mapping, Optional, Type

import aiohttp
from typing_extensions import Literal, TypedDict


class RawStatusCause(TypedDict):
    field: str
    reason: str
    message: str


class RawStatusDetails(TypedDict):
    name: str
    uid: str
    retryAfterSeconds: int
    kind: str
    group: str
    causes: Collection[RawStatusCause]


# https://kubernetes.io/docs/reference/generated/kubernetes-api/v1.19/#status-v1-meta
class RawStatus(TypedDict):
    apiVersion: str
    kind: Literal["Status"]
    code: int
    status: Literal["Success", "Failure"]
    reason: str
    message: str
    details: RawStatusDetails


class APIError(Exception):
    """
    An error reported by the API, with the ``Status`` payload if it was sent.

    The payload is kept only if it is really a ``Status`` object:
    other response bodies can contain anything, including sensitive data.
    """

    def __init__(
            self,
            payload: Optional[RawStatus],
            *,
            status: int,
    ) -> None:
        super().__init__(payload.get('message') if payload else None, payload)
        self.status = status
        self.payload = payload

    def _get(self, key: str) -> Any:
        return self.payload.get(key) if self.payload else None

    @property
    def code(self) -> Optional[int]:
        return self._get('code')

    @property
    def message(self) -> Optional[str]:
        return self._get('message')

    @property
    def details(self) -> Optional[RawStatusDetails]:
        return self._get('details')

    @property
    def retry_after(self) -> Optional[int]:
        """ The server's hint (in seconds) on when to retry, if any. """
        return (self.details or {}).get('retryAfterSeconds')


class APIClientError(APIError):
    pass


class APIServerError(APIError):
    pass


class APIUnauthorizedError(APIClientError):
    pass


class APIForbiddenError(APIClientError):
    pass


class APINotFoundError(APIClientError):
    pass


class APIConflictError(APIClientError):
    pass


class APIGoneError(APIClientError):
    pass


_SPECIFIC_ERRORS: Mapping[int, Type[APIError]] = {
    401: APIUnauthorizedError,
    403: APIForbiddenError,
    404: APINotFoundError,
    409: APIConflictError,
    410: APIGoneError,
}


def get_error_class(status: int) -> Type[APIError]:
    if status in _SPECIFIC_ERRORS:
        return _SPECIFIC_ERRORS[status]
    elif 400 <= status < 500:
        return APIClientError
    elif 500 <= status < 600:
        return APIServerError
    else:
        return APIError


async def check_response(
        response: aiohttp.ClientResponse,
) -> None:
    """
    Check for specialised API errors, and raise with extended information.

    The body must be read before ``raise_for_status()``, which closes it.
    The aiohttp's error is chained as the cause of our own one.
    """
    if response.status < 400:
        return

    payload: Optional[RawStatus]
    try:
        payload = await response.json()
    except (json.JSONDecodeError, aiohttp.ContentTypeError, aiohttp.ClientConnectionError):
        payload = None
    if not isinstance(payload, collections.abc.Mapping) or payload.get('kind') != 'Status':
        payload = None

    cls = get_error_class(response.status)
    try:
        response.raise_for_status()
    except aiohttp.ClientResponseError as e:
        raise cls(payload, status=response.status) from e
