"""
Reflecting: keeping an eventually-consistent view of a remote collection.

The reflector drives the "list, then watch" protocol against a source
(usually an API server): it lists all the objects, opens a watch-stream
since the listing's position, follows the watch-stream's positions,
re-opens the stream when it is closed by the server, and re-lists
when the server says that the position is gone ("410 Gone").

It is implemented as a state machine with three states:

* `Empty`: nothing is known; the objects must be listed (from a position
  or from scratch).
* `Listed`: the objects are listed; a watch-stream must be opened.
* `Watching`: the watch-stream is open; the events are read from it.

Every step of the machine either yields something to the consumers
(an event or a recoverable error), or makes an internal transition
(opening a stream, following a bookmark, re-opening a closed stream).
The internal transitions are never exposed: the machine steps further
until there is something to yield, so that every pull gives exactly
one meaningful item.

The machine is driven by its consumers only: nothing happens until
the next item is pulled. When the consumer stops pulling (closes
the generator or cancels its task), the watch-stream is closed.
"""
import asyncio
import collections.abc
import dataclasses
from typing import AsyncIterator, Iterable, Iterator, Optional, Tuple, Union

from kreflector.engines import loggers
from kreflector.helpers import typedefs
from kreflector.reactor import sources
from kreflector.structs import bodies, configuration, errors, events, references

# The initial position of the listings if the known position could not be used.
# The API servers treat it as "any position", usually served from their caches.
EARLIEST_POSITION = '0'

# Everything yielded to the consumers: either an event, or a recoverable error.
Item = Union[events.Event, errors.ReflectorError]


@dataclasses.dataclass(frozen=True)
class Empty:
    """ Nothing is known: list from the position if given, or from scratch. """
    init_position: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class Listed:
    """ The objects are listed, and the watch-stream must be opened. """
    position: str


@dataclasses.dataclass(frozen=True)
class Watching:
    """ The watch-stream is open; the position is of the latest seen object. """
    position: str
    stream: sources.WatchStream = dataclasses.field(repr=False, compare=False)
    failures: int = 0  # consecutive server-side errors in this stream


State = Union[Empty, Listed, Watching]


@dataclasses.dataclass
class Backoff:
    """ A state of the error backoff: for listing & watching after errors. """
    source_of_delays: Optional[Iterator[float]] = None
    last_used_delay: Optional[float] = None

    def next_delay(self, delays: Iterable[float]) -> Optional[float]:
        if self.source_of_delays is None:
            self.source_of_delays = iter(delays)
        delay = next(self.source_of_delays, self.last_used_delay)
        self.last_used_delay = delay
        return delay

    def reset(self) -> None:
        self.source_of_delays = self.last_used_delay = None


async def reflect(
        source: sources.Source,
        resource: references.Resource,
        selector: Optional[references.Selector] = None,
        *,
        settings: Optional[configuration.ReflectorSettings] = None,
        logger: Optional[typedefs.Logger] = None,
) -> AsyncIterator[Item]:
    """
    Reflect the objects of a resource infinitely, as a stream of events.

    The first event is always a `Reset` with all the objects listed.
    It is followed by `Applied` & `Deleted` events from the watch-stream,
    and by new `Reset` events whenever the objects are re-listed.

    The recoverable errors are yielded as items (the `ReflectorError`
    descendants) rather than raised, and the stream continues after them
    on the next pull. Only the broken contracts of the source (objects without
    positions) are raised, and the stream is over in that case.

    This routine never ends gracefully. It only exits with unrecoverable
    exceptions, or when the consumer stops consuming it.
    """
    settings = settings if settings is not None else configuration.ReflectorSettings()
    selector = selector if selector is not None else references.Selector()
    logger = logger if logger is not None else loggers.ReflectorLogger(
        resource=resource, selector=selector)

    backoff = Backoff()
    state: State = Empty()
    logger.debug(f"Starting the reflector for {resource} {selector}.")
    try:
        while True:
            prev_state = state
            item, state = await step(
                source=source,
                resource=resource,
                selector=selector,
                settings=settings,
                logger=logger,
                state=state,
            )

            # Every successful listing or watch-opening starts the error backoff from scratch.
            if isinstance(item, events.Reset) or isinstance(state, Watching):
                backoff.reset()

            # A stream closed by the server is re-opened, but not too often (to prevent API flooding).
            if isinstance(prev_state, Watching) and isinstance(state, Listed):
                await asyncio.sleep(settings.watching.reconnect_backoff)

            # Internal transitions are not exposed: step further until there is something to yield.
            if item is None:
                continue

            yield item

            # Slow down the re-listing & re-watching after the errors (but not the yielding of them).
            if isinstance(item, (errors.InitialListFailed, errors.WatchStartFailed)):
                delay = backoff.next_delay(settings.reflecting.error_backoffs)
                if delay:
                    logger.debug(f"Sleeping for {delay} seconds before retrying.")
                    await asyncio.sleep(delay)
    finally:
        if isinstance(state, Watching):
            await state.stream.aclose()
        logger.debug(f"Stopping the reflector for {resource} {selector}.")


async def step(
        *,
        source: sources.Source,
        resource: references.Resource,
        selector: references.Selector,
        settings: configuration.ReflectorSettings,
        logger: typedefs.Logger,
        state: State,
) -> Tuple[Optional[Item], State]:
    """
    Make one transition of the state machine.

    Returns an item to yield (or ``None`` for internal transitions)
    and the new state. The only suspension point is the I/O of the source.
    """
    if isinstance(state, Empty):
        try:
            if state.init_position is not None:
                logger.debug(f"Listing the objects since position {state.init_position!r}.")
                items, position = await source.list_from_version(
                    resource, selector, state.init_position)
            else:
                logger.debug("Listing the objects from scratch.")
                items, position = await source.list(resource, selector)
        except Exception as e:
            # "410 Gone": even the position of the listing is too old, re-list with no position.
            if sources.is_gone(e):
                logger.warning(f"Listing has failed, the position is gone; re-listing: {e!r}")
                return errors.InitialListFailed(e), Empty(None)
            else:
                logger.warning(f"Listing has failed; re-listing from the earliest position: {e!r}")
                return errors.InitialListFailed(e), Empty(EARLIEST_POSITION)
        if not position:
            raise errors.PositionMissingError(f"The listing of {resource} has no position.")
        logger.debug(f"Listed {len(items)} objects at position {position!r}.")
        return events.Reset(list(items)), Listed(position)

    elif isinstance(state, Listed):
        try:
            logger.debug(f"Opening the watch-stream since position {state.position!r}.")
            stream = await source.watch(resource, selector, state.position)
        except Exception as e:
            logger.warning(f"Watch-stream could not be opened; retrying: {e!r}")
            return errors.WatchStartFailed(e), state
        return None, Watching(state.position, stream)

    elif isinstance(state, Watching):
        try:
            raw_input = await state.stream.__anext__()
        except StopAsyncIteration:
            # The server closes the streams from time to time. It is normal, the position is valid.
            logger.debug(f"Watch-stream is closed at position {state.position!r}; re-opening.")
            await state.stream.aclose()
            return None, Listed(state.position)
        except Exception as e:
            logger.warning(f"Watch-stream has failed; continuing: {e!r}")
            return errors.WatchFailed(e), state
        return await _interpret(raw_input, state=state, settings=settings, logger=logger)

    else:
        raise TypeError(f"Unsupported state of the reflector: {state!r}")


async def _interpret(
        raw_input: bodies.RawInput,
        *,
        state: Watching,
        settings: configuration.ReflectorSettings,
        logger: typedefs.Logger,
) -> Tuple[Optional[Item], State]:
    if not isinstance(raw_input, collections.abc.Mapping):
        exc = ValueError(f"A watch-event is not a JSON object: {raw_input!r}")
        logger.warning(f"Watch-stream has failed; continuing: {exc!r}")
        return errors.WatchFailed(exc), state

    raw_type = raw_input.get('type')
    raw_object = raw_input.get('object') or {}

    if raw_type in ['ADDED', 'MODIFIED', 'DELETED']:
        body: bodies.RawBody = raw_object  # type: ignore
        position = bodies.get_position(body)
        if position is None:
            raise errors.PositionMissingError(
                f"The {raw_type} object {bodies.get_name(body)} has no position.",
                payload=raw_input)
        event = events.Deleted(body) if raw_type == 'DELETED' else events.Applied(body)
        return event, Watching(position, state.stream)

    elif raw_type == 'BOOKMARK':
        position = bodies.get_position(raw_object)
        if position is None:
            raise errors.PositionMissingError("The bookmark has no position.", payload=raw_input)
        logger.debug(f"Bookmarked at position {position!r}.")
        return None, Watching(position, state.stream)

    elif raw_type == 'ERROR':
        if not isinstance(raw_object, collections.abc.Mapping):
            raw_object = {'message': str(raw_object)}
        exc = errors.WatchStatusError(raw_object)

        # "410 Gone" is for the "resource version too old" error, we must re-list from scratch.
        if sources.is_gone(raw_object):
            logger.debug(f"Watch-stream position {state.position!r} is gone; re-listing.")
            await state.stream.aclose()
            return errors.WatchError(exc), Empty(None)

        failures = state.failures + 1
        threshold = settings.reflecting.error_escalation_threshold
        if threshold is not None and failures >= threshold:
            logger.warning(f"Watch-stream has failed {failures} times in a row; re-listing: {exc!r}")
            await state.stream.aclose()
            return errors.WatchError(exc), Empty(None)

        logger.warning(f"Watch-stream has reported an error; continuing: {exc!r}")
        return errors.WatchError(exc), Watching(state.position, state.stream, failures)

    else:
        logger.warning(f"Ignoring an unsupported event type: {raw_input!r}")
        return None, state
