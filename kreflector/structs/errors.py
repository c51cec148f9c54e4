"""
Errors of the reflector as seen by its consumers.

The recoverable errors are never raised: they are yielded as items
of the reflector's stream (exactly once each), and the reflector continues
on its own on the next pull. The consumers can log them, count them,
or ignore them -- but they cannot miss them.

The original errors of the collaborators (the API clients) are kept
as the causes -- for better explainability of errors in the stack traces.

The only fatal error is a broken contract of the collaborators:
the objects without positions. It is raised, and the stream is over.
"""
from typing import Any, Mapping, Optional


class ReflectorError(Exception):
    """ A base class for all recoverable errors yielded by the reflector. """

    def __init__(self, cause: BaseException) -> None:
        super().__init__(cause)
        self.__cause__ = cause

    @property
    def cause(self) -> BaseException:
        return self.args[0]

    def __str__(self) -> str:
        return f"{self.__class__.__name__}: {self.cause!r}"


class InitialListFailed(ReflectorError):
    """ The listing has failed; it will be retried on the next pull. """


class WatchStartFailed(ReflectorError):
    """ The watch-stream could not be opened after a successful listing. """


class WatchError(ReflectorError):
    """ The watch-stream has reported a server-side error as its event. """


class WatchFailed(ReflectorError):
    """ The watch-stream has failed to deliver or decode an event. """


class WatchStatusError(Exception):
    """
    A server-side error delivered in the watch-stream as a ``Status`` event.

    It is not raised by the streams (they are still alive), but is created
    by the reflector to be the cause of the yielded `WatchError`.
    """

    def __init__(self, payload: Mapping[str, Any]) -> None:
        super().__init__(payload.get('message'), payload)
        self.payload = payload

    @property
    def code(self) -> Optional[int]:
        return self.payload.get('code')

    @property
    def reason(self) -> Optional[str]:
        return self.payload.get('reason')

    @property
    def message(self) -> Optional[str]:
        return self.payload.get('message')


class PositionMissingError(Exception):
    """
    An object or a listing came without a position (``resourceVersion``).

    This can only be caused by a broken collaborator (the API client),
    and continuing would silently break the positions of the reflector.
    """

    def __init__(self, message: str, *, payload: Optional[object] = None) -> None:
        super().__init__(message)
        self.payload = payload
