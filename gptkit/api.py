"""An asynchronous client of the platform API."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable, Mapping
from pathlib import Path
from typing import Any

import httpx

from .endpoints import Chat, Completions, Models
from .errors import APIError, APIErrorKind, EventSourceError
from .eventsource import EventSource, OpenEvent

OPENAI_API_V1_ENDPOINT = "https://api.openai.com/v1"
_DONE = "[DONE]"


class Client:
    """Sends authenticated requests to the platform API."""

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url if base_url is not None else OPENAI_API_V1_ENDPOINT
        self.http_client = http_client if http_client is not None else httpx.AsyncClient()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _headers(self, json_body: bool = True) -> dict[str, str]:
        headers = {"authorization": f"Bearer {self.api_key}"}
        if json_body:
            headers["content-type"] = "application/json"
        return headers

    async def get(self, path: str) -> str:
        """GET a path; only server errors are raised."""
        response = await self.http_client.get(self._url(path), headers=self._headers())
        if response.is_server_error:
            raise APIError(APIErrorKind.ENDPOINT, response.text)
        return response.text

    async def post(self, path: str, parameters: Any) -> str:
        """POST a JSON body; any unsuccessful status is raised."""
        response = await self.http_client.post(
            self._url(path), headers=self._headers(), json=parameters
        )
        if not response.is_success:
            raise APIError(APIErrorKind.ENDPOINT, response.text)
        return response.text

    async def delete(self, path: str) -> str:
        """DELETE a path; only server errors are raised."""
        response = await self.http_client.delete(self._url(path), headers=self._headers())
        if response.is_server_error:
            raise APIError(APIErrorKind.ENDPOINT, response.text)
        return response.text

    async def post_with_form(
        self,
        path: str,
        files: Mapping[str, Any],
        data: Mapping[str, Any] | None = None,
    ) -> str:
        """POST a multipart form; any unsuccessful status is raised."""
        response = await self.http_client.post(
            self._url(path),
            headers=self._headers(json_body=False),
            files=files,
            data=data,
        )
        if not response.is_success:
            raise APIError(APIErrorKind.ENDPOINT, response.text)
        return response.text

    async def post_stream(
        self, path: str, parameters: Any, parse: Callable[[Any], Any]
    ) -> AsyncIterator[Any]:
        """POST a JSON body and stream back the parsed server-sent events."""
        event_source = EventSource(
            self.http_client,
            "POST",
            self._url(path),
            headers=self._headers(),
            json=parameters,
        )
        return Client.process_stream(event_source, parse)

    @staticmethod
    async def process_stream(
        event_source: EventSource, parse: Callable[[Any], Any]
    ) -> AsyncIterator[Any]:
        """Yield parsed event payloads until ``[DONE]`` or the source closes.

        A failed event is yielded as an ``APIError`` and the stream goes on.
        """
        try:
            while True:
                try:
                    event = await event_source.__anext__()
                except StopAsyncIteration:
                    return
                except EventSourceError as exc:
                    yield APIError(APIErrorKind.STREAM, str(exc))
                    continue
                if isinstance(event, OpenEvent):
                    continue
                if event.data == _DONE:
                    return
                try:
                    item = parse(json.loads(event.data))
                except (ValueError, TypeError, KeyError) as exc:
                    item = APIError(APIErrorKind.STREAM, str(exc))
                yield item
        finally:
            event_source.close()
            try:
                await event_source.__anext__()
            except StopAsyncIteration:
                pass

    def chat(self) -> Chat:
        return Chat(self)

    def completions(self) -> Completions:
        return Completions(self)

    def models(self) -> Models:
        return Models(self)


async def file_from_disk_to_form_part(path: str) -> tuple[str, bytes, str]:
    """Read a file into a multipart file part named after its path."""
    try:
        content = await asyncio.to_thread(Path(path).read_bytes)
    except OSError as exc:
        raise APIError(APIErrorKind.FILE, str(exc)) from exc
    return (path, content, "application/octet-stream")