"""Server-sent event streams over httpx, with reconnection on failure.

Iterating an ``EventSource`` yields an ``OpenEvent`` each time a connection
is established and a ``MessageEvent`` for every event received. Failures are
raised from ``__anext__`` as ``EventSourceError`` subclasses. After a failure
the source may still be iterated: if the retry policy allows it, the next
call waits the retry delay and reconnects, sending the last event id. Once
the source is closed, iteration stops.
"""

from __future__ import annotations

import asyncio
import codecs
import enum
from collections import deque
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass
from typing import Any

import httpx

from .errors import (
    CannotCloneRequestError,
    EventSourceError,
    InvalidContentTypeError,
    InvalidLastEventIdError,
    InvalidStatusCodeError,
    StreamEndedError,
    TransportError,
    Utf8DecodeError,
)
from .retry import RetryPolicy, default_retry

_DEFAULT_EVENT_TYPE = "message"
_BOM = "\ufeff"


class ReadyState(enum.IntEnum):
    """The ready state of an event source."""

    CONNECTING = 0
    OPEN = 1
    CLOSED = 2


@dataclass(frozen=True)
class OpenEvent:
    """Emitted when a connection to the endpoint has been opened."""


@dataclass(frozen=True)
class MessageEvent:
    """One event of the stream; ``retry`` is in seconds when the server sent one."""

    event: str
    data: str
    id: str
    retry: float | None = None


class EventStreamParser:
    """Incremental parser turning raw bytes into message events."""

    def __init__(self, last_event_id: str = "") -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="strict")
        self._buffer = ""
        self._started = False
        self._last_event_id = last_event_id
        self._event_type = ""
        self._data: list[str] = []
        self._retry: float | None = None

    @property
    def last_event_id(self) -> str:
        return self._last_event_id

    def feed(self, chunk: bytes) -> list[MessageEvent]:
        """Consume a chunk of bytes and return the events it completes."""
        try:
            text = self._decoder.decode(chunk)
        except UnicodeDecodeError as exc:
            raise Utf8DecodeError(str(exc)) from exc
        if not self._started and text:
            self._started = True
            if text.startswith(_BOM):
                text = text[len(_BOM):]
        self._buffer += text
        events = []
        for line in self._lines():
            event = self._process_line(line)
            if event is not None:
                events.append(event)
        return events

    def _lines(self) -> list[str]:
        lines = []
        buffer = self._buffer
        start = 0
        while True:
            cr = buffer.find("\r", start)
            lf = buffer.find("\n", start)
            candidates = [pos for pos in (cr, lf) if pos >= 0]
            if not candidates:
                break
            end = min(candidates)
            if buffer[end] == "\r":
                if end + 1 >= len(buffer):
                    # A lone CR at the end may be the first half of CRLF.
                    break
                next_start = end + 2 if buffer[end + 1] == "\n" else end + 1
            else:
                next_start = end + 1
            lines.append(buffer[start:end])
            start = next_start
        self._buffer = buffer[start:]
        return lines

    def _process_line(self, line: str) -> MessageEvent | None:
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None
        name, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]
        if name == "event":
            self._event_type = value
        elif name == "data":
            self._data.append(value)
        elif name == "id":
            if "\0" not in value:
                self._last_event_id = value
        elif name == "retry":
            if value and value.isascii() and value.isdigit():
                self._retry = int(value) / 1000
        return None

    def _dispatch(self) -> MessageEvent | None:
        data, self._data = self._data, []
        event_type, self._event_type = self._event_type, ""
        retry, self._retry = self._retry, None
        if not data:
            return None
        return MessageEvent(
            event=event_type or _DEFAULT_EVENT_TYPE,
            data="\n".join(data),
            id=self._last_event_id,
            retry=retry,
        )


def check_response(response: httpx.Response) -> httpx.Response:
    """Ensure a response is a 200 with a ``text/event-stream`` content type."""
    if response.status_code != 200:
        raise InvalidStatusCodeError(response.status_code, response)
    content_type = response.headers.get("content-type")
    if content_type is None:
        raise InvalidContentTypeError("")
    essence = content_type.split(";", 1)[0].strip()
    main_type, sep, sub_type = essence.partition("/")
    if not sep or not main_type or not sub_type:
        raise InvalidContentTypeError(content_type)
    if (main_type.lower(), sub_type.lower()) != ("text", "event-stream"):
        raise InvalidContentTypeError(content_type)
    return response


def _valid_header_value(value: str) -> bool:
    return all(ch == "\t" or (" " <= ch and ch != "\x7f") for ch in value)


def _replayable(value: Any) -> bool:
    return value is None or isinstance(value, (str, bytes, Mapping))


class EventSource:
    """An event stream over an HTTP request that reconnects when it fails."""

    def __init__(
        self,
        client: httpx.AsyncClient | None,
        method: str,
        url: str | httpx.URL,
        **kwargs: Any,
    ) -> None:
        if not _replayable(kwargs.get("content")) or not _replayable(kwargs.get("data")):
            raise CannotCloneRequestError()
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient()
        self._method = method
        self._url = url
        headers = httpx.Headers(kwargs.pop("headers", None))
        headers["accept"] = "text/event-stream"
        self._headers = headers
        self._kwargs = kwargs

        self._request: httpx.Request | None = self._build_request()
        self._response: httpx.Response | None = None
        self._chunks: AsyncIterator[bytes] | None = None
        self._parser: EventStreamParser | None = None
        self._pending: deque[MessageEvent] = deque()
        self._delay: float | None = None
        self._closed = False
        self._retry_policy: RetryPolicy = default_retry()
        self._last_event_id = ""
        self._last_retry: tuple[int, float] | None = None

    @staticmethod
    def get(url: str | httpx.URL) -> EventSource:
        """Create an event source for a plain GET request."""
        return EventSource(None, "GET", url)

    def close(self) -> None:
        """Close the stream and stop reconnecting."""
        self._closed = True

    def set_retry_policy(self, policy: RetryPolicy) -> None:
        self._retry_policy = policy

    def last_event_id(self) -> str:
        return self._last_event_id

    def ready_state(self) -> ReadyState:
        if self._closed:
            return ReadyState.CLOSED
        if self._delay is not None or self._request is not None:
            return ReadyState.CONNECTING
        return ReadyState.OPEN

    def __aiter__(self) -> EventSource:
        return self

    async def __anext__(self) -> OpenEvent | MessageEvent:
        if self._closed:
            await self._clear_fetch()
            if self._owns_client:
                await self._client.aclose()
            raise StopAsyncIteration

        if self._delay is not None:
            delay, self._delay = self._delay, None
            await asyncio.sleep(delay)
            try:
                await self._retry_fetch()
            except InvalidLastEventIdError:
                self._closed = True
                raise

        if self._request is not None:
            request, self._request = self._request, None
            try:
                response = await self._client.send(request, stream=True)
            except (httpx.HTTPError, httpx.StreamError) as exc:
                error = TransportError(str(exc))
                await self._handle_error(error)
                raise error from exc
            await self._clear_fetch()
            try:
                check_response(response)
            except EventSourceError:
                await response.aclose()
                self._closed = True
                raise
            self._handle_response(response)
            return OpenEvent()

        return await self._next_message()

    def _build_request(self, extra: Mapping[str, str] | None = None) -> httpx.Request:
        headers = httpx.Headers(self._headers)
        if extra:
            headers.update(extra)
        return self._client.build_request(
            self._method, self._url, headers=headers, **self._kwargs
        )

    async def _clear_fetch(self) -> None:
        self._request = None
        self._pending.clear()
        self._chunks = None
        self._parser = None
        response, self._response = self._response, None
        if response is not None:
            await response.aclose()

    async def _retry_fetch(self) -> None:
        await self._clear_fetch()
        if not _valid_header_value(self._last_event_id):
            raise InvalidLastEventIdError(self._last_event_id)
        self._request = self._build_request({"last-event-id": self._last_event_id})

    def _handle_response(self, response: httpx.Response) -> None:
        self._last_retry = None
        self._response = response
        self._chunks = response.aiter_bytes()
        self._parser = EventStreamParser(self._last_event_id)

    def _handle_event(self, event: MessageEvent) -> None:
        self._last_event_id = event.id
        if event.retry is not None:
            self._retry_policy.set_reconnection_time(event.retry)

    async def _handle_error(self, error: EventSourceError) -> None:
        await self._clear_fetch()
        delay = self._retry_policy.retry(error, self._last_retry)
        if delay is None:
            self._closed = True
            return
        retry_num = self._last_retry[0] if self._last_retry is not None else 1
        self._last_retry = (retry_num, delay)
        self._delay = delay

    async def _next_message(self) -> MessageEvent:
        while not self._pending:
            if self._chunks is None or self._parser is None:
                error: EventSourceError = StreamEndedError()
                await self._handle_error(error)
                raise error
            try:
                chunk = await self._chunks.__anext__()
            except StopAsyncIteration:
                error = StreamEndedError()
                await self._handle_error(error)
                raise error from None
            except (httpx.HTTPError, httpx.StreamError) as exc:
                error = TransportError(str(exc))
                await self._handle_error(error)
                raise error from exc
            try:
                self._pending.extend(self._parser.feed(chunk))
            except Utf8DecodeError as exc:
                await self._handle_error(exc)
                raise
        event = self._pending.popleft()
        self._handle_event(event)
        return event