"""
Only the tests from the API client (simulated) to the parsed watch-events.

Excluded: the interpretation of the events by the reflector
(see ``tests/reflecting/``), except for one end-to-end check
that the reflector gets all the events of a real stream.
"""
import asyncio
import json
import json.decoder

import aiohttp.web
import pytest

from kreflector.clients.errors import APIError, APIGoneError
from kreflector.clients.sources import APISource
from kreflector.clients.watching import StreamingResponse, watch_objs
from kreflector.reactor.reflecting import reflect
from kreflector.structs import events
from kreflector.structs.references import Selector

STREAM_WITH_NORMAL_EVENTS = [
    {'type': 'ADDED', 'object': {'spec': 'a'}},
    {'type': 'ADDED', 'object': {'spec': 'b'}},
]


@pytest.fixture()
def stream_mock(resp_mocker, aresponses, hostname, resource, selector):
    """ Serve one watch-stream with the pre-rendered text (no actual streaming). """
    def feed(text):
        mock = resp_mocker(return_value=aresponses.Response(text=text))
        url = resource.get_url(namespace=selector.namespace)
        aresponses.add(hostname, url, 'get', mock)
        return mock
    return feed


async def test_empty_stream_yields_nothing(
        stream_mock, context, settings, logger, resource, selector):
    stream_mock('')

    stream = await watch_objs(context=context, settings=settings, logger=logger,
                              resource=resource, selector=selector, since='1')
    events = []
    async for event in stream:
        events.append(event)

    assert events == []


async def test_event_stream_yields_everything(
        stream_mock, context, settings, logger, resource, selector):
    stream_mock('\n'.join(json.dumps(event) for event in STREAM_WITH_NORMAL_EVENTS))

    stream = await watch_objs(context=context, settings=settings, logger=logger,
                              resource=resource, selector=selector, since='1')
    events = []
    async for event in stream:
        events.append(event)

    assert events == STREAM_WITH_NORMAL_EVENTS


async def test_watch_params(
        stream_mock, context, settings, logger, resource, selector):
    settings.watching.server_timeout = 123
    settings.watching.allow_bookmarks = True
    mock = stream_mock('')

    stream = await watch_objs(context=context, settings=settings, logger=logger,
                              resource=resource, selector=selector, since='9')
    await stream.aclose()

    request = mock.call_args[0][0]
    assert request.query['watch'] == 'true'
    assert request.query['resourceVersion'] == '9'
    assert request.query['allowWatchBookmarks'] == 'true'
    assert request.query['timeoutSeconds'] == '123'


async def test_watch_params_without_extras(
        stream_mock, context, settings, logger, resource, selector):
    settings.watching.server_timeout = None
    settings.watching.allow_bookmarks = False
    mock = stream_mock('')

    stream = await watch_objs(context=context, settings=settings, logger=logger,
                              resource=resource, selector=selector)
    await stream.aclose()

    request = mock.call_args[0][0]
    assert request.query['watch'] == 'true'
    assert 'resourceVersion' not in request.query
    assert 'allowWatchBookmarks' not in request.query
    assert 'timeoutSeconds' not in request.query


async def test_undecodable_line_keeps_the_stream(
        stream_mock, context, settings, logger, resource, selector):
    stream_mock('\n'.join([
        json.dumps(STREAM_WITH_NORMAL_EVENTS[0]),
        'not a json {',
        json.dumps(STREAM_WITH_NORMAL_EVENTS[1]),
    ]))

    stream = await watch_objs(context=context, settings=settings, logger=logger,
                              resource=resource, selector=selector, since='1')

    assert await stream.__anext__() == STREAM_WITH_NORMAL_EVENTS[0]
    with pytest.raises(json.decoder.JSONDecodeError):
        await stream.__anext__()
    assert await stream.__anext__() == STREAM_WITH_NORMAL_EVENTS[1]
    with pytest.raises(StopAsyncIteration):
        await stream.__anext__()


@pytest.mark.parametrize('line', ['null', '"text"', '[1, 2]', '123'])
async def test_non_object_line_keeps_the_stream(
        stream_mock, context, settings, logger, resource, selector, line):
    stream_mock('\n'.join([
        json.dumps(STREAM_WITH_NORMAL_EVENTS[0]),
        line,
        json.dumps(STREAM_WITH_NORMAL_EVENTS[1]),
    ]))

    stream = await watch_objs(context=context, settings=settings, logger=logger,
                              resource=resource, selector=selector, since='1')

    assert await stream.__anext__() == STREAM_WITH_NORMAL_EVENTS[0]
    with pytest.raises(ValueError, match=r"not a JSON object"):
        await stream.__anext__()
    assert await stream.__anext__() == STREAM_WITH_NORMAL_EVENTS[1]
    with pytest.raises(StopAsyncIteration):
        await stream.__anext__()


async def test_closing_is_idempotent(
        stream_mock, context, settings, logger, resource, selector):
    stream_mock(json.dumps(STREAM_WITH_NORMAL_EVENTS[0]))

    stream = await watch_objs(context=context, settings=settings, logger=logger,
                              resource=resource, selector=selector, since='1')
    await stream.aclose()
    await stream.aclose()

    with pytest.raises(StopAsyncIteration):
        await stream.__anext__()


@pytest.mark.parametrize('status', [400, 403, 500, 666])
async def test_opening_errors_are_raised(
        resp_mocker, aresponses, hostname, context, settings, logger, resource, selector, status):
    mock = resp_mocker(return_value=aresponses.Response(status=status, reason='oops'))
    aresponses.add(hostname, resource.get_url(namespace=selector.namespace), 'get', mock)

    with pytest.raises(APIError) as e:
        await watch_objs(context=context, settings=settings, logger=logger,
                         resource=resource, selector=selector, since='1')
    assert e.value.status == status


async def test_opening_gone_is_raised(
        resp_mocker, aresponses, hostname, context, settings, logger, resource, selector):
    payload = {'kind': 'Status', 'code': 410, 'message': 'too old'}
    mock = resp_mocker(return_value=aiohttp.web.json_response(payload, status=410))
    aresponses.add(hostname, resource.get_url(namespace=selector.namespace), 'get', mock)

    with pytest.raises(APIGoneError):
        await watch_objs(context=context, settings=settings, logger=logger,
                         resource=resource, selector=selector, since='1')


async def test_api_source_lists_and_watches(
        resp_mocker, aresponses, hostname, context, settings, logger, resource, selector):
    url = resource.get_url(namespace=selector.namespace)
    list_data = {'items': [{'metadata': {'name': 'a'}}], 'metadata': {'resourceVersion': '5'}}
    list_mock = resp_mocker(side_effect=lambda: aiohttp.web.json_response(list_data))
    watch_text = json.dumps(STREAM_WITH_NORMAL_EVENTS[0])
    watch_mock = resp_mocker(return_value=aresponses.Response(text=watch_text))
    aresponses.add(hostname, url, 'get', list_mock)
    aresponses.add(hostname, url, 'get', list_mock)
    aresponses.add(hostname, url, 'get', watch_mock)

    source = APISource(context, settings=settings, logger=logger)
    items, position = await source.list(resource, selector)
    assert items == [{'metadata': {'name': 'a'}}]
    assert position == '5'

    items, position = await source.list_from_version(resource, selector, '3')
    assert position == '5'
    assert list_mock.call_args[0][0].query['resourceVersion'] == '3'

    stream = await source.watch(resource, selector, position)
    assert isinstance(stream, StreamingResponse)
    assert await stream.__anext__() == STREAM_WITH_NORMAL_EVENTS[0]
    await stream.aclose()
    assert watch_mock.call_args[0][0].query['resourceVersion'] == '5'


async def test_watch_params_ignore_paging(
        stream_mock, context, settings, logger, resource, namespace):
    selector = Selector(namespace=namespace, label_selector='app=x', limit=10, continue_token='c')
    mock = stream_mock('')

    stream = await watch_objs(context=context, settings=settings, logger=logger,
                              resource=resource, selector=selector, since='9')
    await stream.aclose()

    request = mock.call_args[0][0]
    assert request.query['labelSelector'] == 'app=x'
    assert 'limit' not in request.query
    assert 'continue' not in request.query


async def test_opening_is_retried_on_server_errors(
        resp_mocker, aresponses, hostname, context, settings, logger, resource, selector):
    url = resource.get_url(namespace=selector.namespace)
    fail_mock = resp_mocker(return_value=aresponses.Response(status=503, reason='oops'))
    watch_mock = resp_mocker(return_value=aresponses.Response(
        text=json.dumps(STREAM_WITH_NORMAL_EVENTS[0])))
    aresponses.add(hostname, url, 'get', fail_mock)
    aresponses.add(hostname, url, 'get', watch_mock)

    settings.networking.error_backoffs = [0]
    stream = await watch_objs(context=context, settings=settings, logger=logger,
                              resource=resource, selector=selector, since='1')

    assert fail_mock.called
    assert watch_mock.called
    assert await stream.__anext__() == STREAM_WITH_NORMAL_EVENTS[0]
    await stream.aclose()


async def test_reflecting_yields_the_last_events_of_a_closed_stream(
        resp_mocker, aresponses, hostname, context, settings, logger, resource, selector, pull):
    url = resource.get_url(namespace=selector.namespace)
    obj_a = {'metadata': {'name': 'a', 'resourceVersion': '2'}}
    obj_b = {'metadata': {'name': 'b', 'resourceVersion': '3'}}
    list_data = {'items': [], 'metadata': {'resourceVersion': '1'}}
    list_mock = resp_mocker(return_value=aiohttp.web.json_response(list_data))
    watch_text = '\n'.join([
        json.dumps({'type': 'ADDED', 'object': obj_a}),
        json.dumps({'type': 'ADDED', 'object': obj_b}),
    ])
    watch_mock = resp_mocker(return_value=aresponses.Response(text=watch_text))
    aresponses.add(hostname, url, 'get', list_mock)
    aresponses.add(hostname, url, 'get', watch_mock)

    source = APISource(context, settings=settings, logger=logger)
    stream = reflect(source, resource, selector, settings=settings, logger=logger)
    items = await asyncio.wait_for(pull(stream, 3), timeout=5)

    assert items == [events.Reset([]), events.Applied(obj_a), events.Applied(obj_b)]
    assert watch_mock.call_args[0][0].query['resourceVersion'] == '1'
