import logging
import re
from typing import Any, Iterable, List, Optional, Tuple, Union
from unittest.mock import AsyncMock, MagicMock

import pytest

from kreflector.clients.auth import APIContext
from kreflector.structs.configuration import ReflectorSettings
from kreflector.structs.credentials import ConnectionInfo
from kreflector.structs.references import NamespaceName, Resource, Selector


def pytest_configure(config):
    # Warnings from the testing tools out of our control should not fail the tests.
    config.addinivalue_line('filterwarnings', 'ignore:The loop argument:DeprecationWarning:aiohttp')


@pytest.fixture()
def namespaced_resource():
    """ The resource used in the tests. Usually mocked, so it does not matter. """
    return Resource('example.com', 'v1', 'widgets', namespaced=True)


@pytest.fixture()
def cluster_resource():
    """ The resource used in the tests. Usually mocked, so it does not matter. """
    return Resource('example.com', 'v1', 'widgets', namespaced=False)


@pytest.fixture(params=[True, False], ids=['namespaced', 'cluster'])
def resource(request):
    """ The resource used in the tests. Usually mocked, so it does not matter. """
    return Resource('example.com', 'v1', 'widgets', namespaced=request.param)


@pytest.fixture()
def namespace(resource):
    return NamespaceName('ns') if resource.namespaced else None


@pytest.fixture()
def selector(namespace):
    return Selector(namespace=namespace)


@pytest.fixture()
def settings():
    settings = ReflectorSettings()
    settings.networking.error_backoffs = []
    settings.reflecting.error_backoffs = []
    settings.watching.reconnect_backoff = 0
    return settings


@pytest.fixture()
def logger():
    return logging.getLogger('kreflector.tests')


#
# Fake sources of the objects, fully in memory, with the scripted responses.
# No network, no aiohttp, no API servers: only the reflector's contract.
#

class ScriptExhausted(Exception):
    """ Raised when the reflector goes further than a test has scripted. """


class FakeStream:
    """
    A scripted watch-stream: yields the dicts, raises the exceptions, then ends.
    """

    def __init__(self, inputs: Iterable[Union[dict, BaseException]]) -> None:
        super().__init__()
        self.inputs = list(inputs)
        self.close_count = 0

    def __aiter__(self) -> "FakeStream":
        return self

    async def __anext__(self) -> Any:
        if self.close_count or not self.inputs:
            raise StopAsyncIteration
        item = self.inputs.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def aclose(self) -> None:
        self.close_count += 1


class FakeSource:
    """
    A scripted source: every call takes the next scripted result of its kind.

    The listings are either ``(items, position)`` or exceptions to raise.
    The watches are either collections of inputs (dicts or exceptions)
    or exceptions to raise instead of opening the stream.
    All calls are remembered for assertions.
    """

    def __init__(self) -> None:
        super().__init__()
        self.listings: List[Union[Tuple[List[dict], Optional[str]], BaseException]] = []
        self.watches: List[Union[Iterable[Union[dict, BaseException]], BaseException]] = []
        self.calls: List[Tuple[str, Optional[str]]] = []
        self.streams: List[FakeStream] = []

    async def list(self, resource, selector):
        self.calls.append(('list', None))
        return self._next_listing()

    async def list_from_version(self, resource, selector, version):
        self.calls.append(('list_from_version', version))
        return self._next_listing()

    async def watch(self, resource, selector, since):
        self.calls.append(('watch', since))
        if not self.watches:
            raise ScriptExhausted("No more watches are scripted.")
        script = self.watches.pop(0)
        if isinstance(script, BaseException):
            raise script
        stream = FakeStream(script)
        self.streams.append(stream)
        return stream

    def _next_listing(self):
        if not self.listings:
            raise ScriptExhausted("No more listings are scripted.")
        script = self.listings.pop(0)
        if isinstance(script, BaseException):
            raise script
        return script


@pytest.fixture()
def source():
    return FakeSource()


@pytest.fixture()
def stream_factory():
    return FakeStream


@pytest.fixture()
def pull():
    """
    Pull exactly N items from the reflector's stream, and close it afterwards.
    """
    async def pull_fn(stream, n: int, *, close: bool = True) -> List[Any]:
        items = []
        try:
            for _ in range(n):
                items.append(await stream.__anext__())
        finally:
            if close:
                await stream.aclose()
        return items
    return pull_fn


#
# Mocks for the real API servers (via aresponses) for the API client tests.
#

@pytest.fixture()
def hostname():
    """ A fake hostname to be used in all aiohttp/aresponses tests. """
    return 'fake-host'


@pytest.fixture()
async def context(hostname):
    info = ConnectionInfo(server=f'http://{hostname}')
    async with APIContext(info) as context:
        yield context


# Note: Unused `context` is to ensure that the session is closed for every test.
@pytest.fixture()
def resp_mocker(context, aresponses):
    """
    A factory of server-side callbacks for `aresponses` with mocking/spying.

    The value of the fixture is a function, which return a coroutine mock.
    That coroutine mock should be passed to `aresponses.add` as a response
    callback function. When called, it calls the mock defined by the function's
    arguments (specifically, return_value or side_effects).

    The difference from passing the responses directly to `aresponses.add`
    is that it is possible to assert on whether the response was handled
    by that callback at all (i.e. HTTP URL & method matched), especially
    if there are multiple responses registered.

    Sample usage::

        def test_me(resp_mocker):
            response = aiohttp.web.json_response({'a': 'b'})
            callback = resp_mocker(return_value=response)
            aresponses.add(hostname, '/path/', 'get', callback)
            do_something()
            assert callback.called
            assert callback.call_count == 1
    """
    def resp_maker(*args, **kwargs):
        actual_response = MagicMock(*args, **kwargs)

        async def resp_mock_effect(request):
            return actual_response()

        return AsyncMock(side_effect=resp_mock_effect)
    return resp_maker


#
# Helpers for the logging checks.
#

@pytest.fixture()
def assert_logs(caplog):
    """
    A function to assert the logs are present (by pattern).

    The listed message patterns MUST be present, in the order specified.
    Some other log messages can also be present, but they are ignored.
    """
    caplog.set_level(logging.DEBUG)

    def assert_logs_fn(patterns, prohibited=[], strict=False):
        __traceback_hide__ = True
        remaining_patterns = list(patterns)
        for message in caplog.messages:
            # The expected pattern is at position 0.
            # Looking-ahead: if one of the following patterns matches, while the
            # 0th does not, then the log message is missing, and we fail the test.
            for idx, pattern in enumerate(remaining_patterns):
                m = re.search(pattern, message)
                if m:
                    if idx == 0:
                        remaining_patterns[:1] = []
                        break  # out of `remaining_patterns` cycle
                    else:
                        skipped_patterns = remaining_patterns[:idx]
                        raise AssertionError(f"Few patterns were skipped: {skipped_patterns!r}")
                elif strict:
                    raise AssertionError(f"Unexpected log message: {message!r}")

            # Check that the prohibited patterns do not appear in any message.
            for pattern in prohibited:
                m = re.search(pattern, message)
                if m:
                    raise AssertionError(f"Prohibited log pattern found: {message!r} ~ {pattern!r}")

        # If all patterns have been matched in order, we are done.
        # if some are left, but the messages are over, then we fail.
        if remaining_patterns:
            raise AssertionError(f"Few patterns were missed: {remaining_patterns!r}")

    return assert_logs_fn
