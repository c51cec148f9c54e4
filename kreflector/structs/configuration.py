"""
All configuration flags, options, settings to fine-tune a reflector.

All settings are grouped semantically just for convenience
(instead of a flat mega-object with all the values in it).

Some of the settings are flags, some are scalars, some are optional,
some are not (but all of them have reasonable defaults).
"""
import dataclasses
from typing import Any, Iterable, Optional


@dataclasses.dataclass
class NetworkingSettings:

    request_timeout: Optional[float] = 5 * 60  # == aiohttp.client.DEFAULT_TIMEOUT
    """
    A timeout for the one-time requests (the listings), in seconds.
    """

    connect_timeout: Optional[float] = None
    """
    A timeout for establishing a connection for the one-time requests.
    """

    error_backoffs: Iterable[float] = (1, 1, 2, 3, 5, 8, 13, 21)
    """
    Backoff intervals in case of retriable API errors of the one-time requests.

    The retriable errors are the connection errors, timeouts, and HTTP 5xx.
    All other errors (e.g. 4xx) are escalated immediately with no retries.

    The number of retries is the number of the intervals. When all of them
    are exhausted, the last error is escalated to the reflector.

    To disable the retries, set it to ``[]`` or ``()``.
    """


@dataclasses.dataclass
class WatchingSettings:

    server_timeout: Optional[float] = None
    """
    The maximum duration of one streaming request. Patched in some tests.
    If ``None``, then obey the server-side timeouts (they seem to be random).
    """

    client_timeout: Optional[float] = None
    """
    An HTTP/HTTPS session timeout to use in watch requests.
    """

    connect_timeout: Optional[float] = None
    """
    An HTTP/HTTPS connection timeout to use in watch requests.
    """

    reconnect_backoff: float = 0.1
    """
    How long should a pause be between watch requests (to prevent API flooding).
    """

    allow_bookmarks: bool = True
    """
    Should the server be asked to send the bookmarks in the watch-streams?

    The bookmarks only advance the position silently, so that a re-opened
    watch-stream does not start from a position that is too old already.
    """


@dataclasses.dataclass
class ReflectingSettings:

    error_backoffs: Iterable[float] = (1, 1, 2, 3, 5, 8, 13, 21, 34, 55)
    """
    Backoff intervals before re-listing or re-watching after recoverable errors.

    The delay is slept on the next pull after the error is yielded,
    so the consumers receive the errors instantly. Every further error leads
    to the next, even bigger delay; the last delay repeats when exhausted.
    Every successful listing or watch-opening resets the sequence.

    Only ``iter()`` is called on every new sequence, no other protocols
    are required; but make sure that it is re-iterable for multiple uses.

    To disable the backoff (on your own risk), set it to ``[]`` or ``()``.
    """

    error_escalation_threshold: Optional[int] = None
    """
    How many consecutive errors in the same watch-stream force a full re-list.

    The "410 Gone" errors always force the re-list regardless of this setting.
    Other errors keep the stream and the position by default (``None``).
    The threshold of 1 re-lists on every error; 0 and below are rejected.
    Any successfully observed event or bookmark resets the counter.
    """

    def __setattr__(self, name: str, value: Any) -> None:
        if name == 'error_escalation_threshold' and value is not None and value < 1:
            raise ValueError(f"The escalation threshold must be 1+ or None; got {value!r}.")
        super().__setattr__(name, value)


@dataclasses.dataclass
class ReflectorSettings:
    networking: NetworkingSettings = dataclasses.field(default_factory=NetworkingSettings)
    watching: WatchingSettings = dataclasses.field(default_factory=WatchingSettings)
    reflecting: ReflectingSettings = dataclasses.field(default_factory=ReflectingSettings)
