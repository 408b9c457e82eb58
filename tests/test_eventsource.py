import httpx
import pytest

from gptkit.errors import (
    CannotCloneRequestError,
    InvalidContentTypeError,
    InvalidLastEventIdError,
    InvalidStatusCodeError,
    StreamEndedError,
    TransportError,
    Utf8DecodeError,
)
from gptkit.eventsource import (
    EventSource,
    EventStreamParser,
    MessageEvent,
    OpenEvent,
    ReadyState,
    check_response,
)
from gptkit.retry import Constant, Never

SSE = {"content-type": "text/event-stream"}


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _serving(body, requests, status=200, headers=SSE):
    def handler(request):
        requests.append(request)
        return httpx.Response(status, headers=headers, content=body)

    return handler


def _streamed_body():
    yield b"x"


# --- parser ---------------------------------------------------------------


def test_parser_simple_event():
    events = EventStreamParser().feed(b"data: hello\n\n")
    assert events == [MessageEvent(event="message", data="hello", id="", retry=None)]


def test_parser_multiline_data_and_type():
    events = EventStreamParser().feed(b"event: update\ndata: a\ndata: b\n\n")
    assert len(events) == 1
    assert events[0].event == "update"
    assert events[0].data == "a\nb"


def test_parser_comment_and_empty_event_skipped():
    events = EventStreamParser().feed(b": comment\n\nevent: x\n\n")
    assert events == []


def test_parser_id_persists_across_events():
    parser = EventStreamParser()
    events = parser.feed(b"id: 42\ndata: a\n\ndata: b\n\n")
    assert [e.id for e in events] == ["42", "42"]
    assert parser.last_event_id == "42"


def test_parser_initial_last_event_id():
    events = EventStreamParser("start").feed(b"data: x\n\n")
    assert events[0].id == "start"


def test_parser_id_with_nul_is_ignored():
    events = EventStreamParser("keep").feed(b"id: a\x00b\ndata: x\n\n")
    assert events[0].id == "keep"


def test_parser_retry_in_seconds():
    events = EventStreamParser().feed(b"retry: 2500\ndata: x\n\n")
    assert events[0].retry == pytest.approx(2.5)


def test_parser_non_numeric_retry_ignored():
    events = EventStreamParser().feed(b"retry: soon\ndata: x\n\n")
    assert events[0].retry is None


def test_parser_crlf_split_across_chunks():
    parser = EventStreamParser()
    first = parser.feed(b"data: one\r")
    second = parser.feed(b"\n\r\n")
    assert first == []
    assert [e.data for e in second] == ["one"]


def test_parser_partial_utf8_across_chunks():
    encoded = "data: héllo\n\n".encode("utf-8")
    split = encoded.index(b"\xc3") + 1
    parser = EventStreamParser()
    events = parser.feed(encoded[:split]) + parser.feed(encoded[split:])
    assert [e.data for e in events] == ["héllo"]


def test_parser_strips_bom():
    events = EventStreamParser().feed("\ufeffdata: x\n\n".encode("utf-8"))
    assert events[0].data == "x"


def test_parser_invalid_utf8():
    with pytest.raises(Utf8DecodeError):
        EventStreamParser().feed(b"data: \xff\xfe\n\n")


def test_parser_field_without_colon():
    events = EventStreamParser().feed(b"data\n\n")
    assert events[0].data == ""


# --- check_response -------------------------------------------------------


def test_check_response_accepts_event_stream():
    response = httpx.Response(200, headers={"content-type": "text/event-stream; charset=utf-8"})
    assert check_response(response) is response


def test_check_response_bad_status():
    response = httpx.Response(404, headers=SSE)
    with pytest.raises(InvalidStatusCodeError) as info:
        check_response(response)
    assert info.value.status_code == 404


def test_check_response_missing_content_type():
    with pytest.raises(InvalidContentTypeError) as info:
        check_response(httpx.Response(200))
    assert info.value.content_type == ""


def test_check_response_wrong_content_type():
    with pytest.raises(InvalidContentTypeError) as info:
        check_response(httpx.Response(200, headers={"content-type": "application/json"}))
    assert info.value.content_type == "application/json"


# --- EventSource ----------------------------------------------------------


def test_cannot_clone_streamed_body():
    with pytest.raises(CannotCloneRequestError, match="expected a cloneable request"):
        EventSource(
            httpx.AsyncClient(), "POST", "http://localhost/events", content=_streamed_body()
        )


@pytest.mark.asyncio
async def test_open_message_then_stream_end():
    requests = []
    async with _client(_serving(b"id: 1\ndata: hello\n\n", requests)) as client:
        source = EventSource(client, "GET", "http://localhost/events")
        source.set_retry_policy(Never())
        assert source.ready_state() == ReadyState.CONNECTING
        assert await source.__anext__() == OpenEvent()
        assert source.ready_state() == ReadyState.OPEN
        message = await source.__anext__()
        assert message.data == "hello"
        assert source.last_event_id() == "1"
        with pytest.raises(StreamEndedError):
            await source.__anext__()
        assert source.ready_state() == ReadyState.CLOSED
        with pytest.raises(StopAsyncIteration):
            await source.__anext__()
    assert requests[0].headers["accept"] == "text/event-stream"


@pytest.mark.asyncio
async def test_async_for_collects_events():
    requests = []
    async with _client(_serving(b"data: a\n\ndata: b\n\n", requests)) as client:
        source = EventSource(client, "GET", "http://localhost/events")
        source.set_retry_policy(Never())
        seen = []
        with pytest.raises(StreamEndedError):
            async for item in source:
                seen.append(item)
    assert seen[0] == OpenEvent()
    assert [e.data for e in seen[1:]] == ["a", "b"]


@pytest.mark.asyncio
async def test_reconnect_sends_last_event_id():
    requests = []
    async with _client(_serving(b"id: 7\ndata: a\n\n", requests)) as client:
        source = EventSource(client, "GET", "http://localhost/events")
        source.set_retry_policy(Constant(0.0))
        await source.__anext__()
        await source.__anext__()
        with pytest.raises(StreamEndedError):
            await source.__anext__()
        assert source.ready_state() == ReadyState.CONNECTING
        assert await source.__anext__() == OpenEvent()
        source.close()
        assert source.ready_state() == ReadyState.CLOSED
    assert len(requests) == 2
    assert "last-event-id" not in requests[0].headers
    assert requests[1].headers["last-event-id"] == "7"


@pytest.mark.asyncio
async def test_retry_field_updates_policy():
    requests = []
    policy = Constant(0.0)
    async with _client(_serving(b"retry: 2500\ndata: a\n\n", requests)) as client:
        source = EventSource(client, "GET", "http://localhost/events")
        source.set_retry_policy(policy)
        await source.__anext__()
        await source.__anext__()
        source.close()
    assert policy.delay == pytest.approx(2.5)


@pytest.mark.asyncio
async def test_bad_status_closes():
    requests = []
    async with _client(_serving(b"", requests, status=500)) as client:
        source = EventSource(client, "GET", "http://localhost/events")
        with pytest.raises(InvalidStatusCodeError) as info:
            await source.__anext__()
        assert info.value.status_code == 500
        assert source.ready_state() == ReadyState.CLOSED


@pytest.mark.asyncio
async def test_wrong_content_type_closes():
    requests = []
    handler = _serving(b"{}", requests, headers={"content-type": "application/json"})
    async with _client(handler) as client:
        source = EventSource(client, "GET", "http://localhost/events")
        with pytest.raises(InvalidContentTypeError):
            await source.__anext__()
        assert source.ready_state() == ReadyState.CLOSED


@pytest.mark.asyncio
async def test_transport_error_with_never_policy_closes():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    async with _client(handler) as client:
        source = EventSource(client, "GET", "http://localhost/events")
        source.set_retry_policy(Never())
        with pytest.raises(TransportError):
            await source.__anext__()
        assert source.ready_state() == ReadyState.CLOSED


@pytest.mark.asyncio
async def test_transport_error_schedules_retry():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    async with _client(handler) as client:
        source = EventSource(client, "GET", "http://localhost/events")
        source.set_retry_policy(Constant(0.0))
        with pytest.raises(TransportError):
            await source.__anext__()
        assert source.ready_state() == ReadyState.CONNECTING
        source.close()


@pytest.mark.asyncio
async def test_invalid_last_event_id_on_reconnect():
    requests = []
    async with _client(_serving(b"id: a\x01b\ndata: x\n\n", requests)) as client:
        source = EventSource(client, "GET", "http://localhost/events")
        source.set_retry_policy(Constant(0.0))
        await source.__anext__()
        await source.__anext__()
        with pytest.raises(StreamEndedError):
            await source.__anext__()
        with pytest.raises(InvalidLastEventIdError) as info:
            await source.__anext__()
        assert info.value.last_event_id == "a\x01b"
        assert source.ready_state() == ReadyState.CLOSED


@pytest.mark.asyncio
async def test_close_stops_iteration():
    requests = []
    async with _client(_serving(b"data: a\n\n", requests)) as client:
        source = EventSource(client, "GET", "http://localhost/events")
        source.close()
        with pytest.raises(StopAsyncIteration):
            await source.__anext__()
    assert requests == []


@pytest.mark.asyncio
async def test_post_body_is_resent_on_retry():
    requests = []
    async with _client(_serving(b"data: a\n\n", requests)) as client:
        source = EventSource(
            client, "POST", "http://localhost/events", json={"prompt": "hi"}
        )
        source.set_retry_policy(Constant(0.0))
        await source.__anext__()
        await source.__anext__()
        with pytest.raises(StreamEndedError):
            await source.__anext__()
        await source.__anext__()
        source.close()
    assert len(requests) == 2
    assert requests[0].content == requests[1].content
    assert requests[1].method == "POST"