"""Chat, completion and model endpoints of the platform API."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Callable, Iterable
from typing import Any, Protocol

from .errors import APIError, APIErrorKind
from .resources import (
    ChatCompletionParameters,
    ChatCompletionResponse,
    ChatCompletionStreamResponse,
    CompletionParameters,
    CompletionResponse,
    CompletionStreamResponse,
    Model,
)

_STREAM_MAX_TOKENS = 50


class _ApiClient(Protocol):
    async def get(self, path: str) -> str: ...

    async def post(self, path: str, parameters: Any) -> str: ...

    async def post_stream(
        self, path: str, parameters: Any, parse: Callable[[Any], Any]
    ) -> AsyncIterator[Any]: ...


def _parse(text: str, build: Callable[[Any], Any]) -> Any:
    try:
        return build(json.loads(text))
    except (ValueError, TypeError, KeyError) as exc:
        raise APIError(APIErrorKind.PARSE, str(exc)) from exc


def _copy(source: dict[str, Any], target: dict[str, Any], keys: Iterable[str]) -> None:
    target.update((key, source[key]) for key in keys if key in source)


def chat_stream_parameters(parameters: ChatCompletionParameters) -> dict[str, Any]:
    """Return the body of a streamed chat completion request."""
    wire = parameters.to_dict()
    body: dict[str, Any] = {"model": wire["model"], "messages": wire["messages"]}
    _copy(wire, body, ("temperature", "top_p", "n"))
    body["stream"] = True
    _copy(
        wire,
        body,
        ("stop", "max_tokens", "presence_penalty", "frequency_penalty", "logit_bias"),
    )
    return body


def completion_stream_parameters(parameters: CompletionParameters) -> dict[str, Any]:
    """Return the body of a streamed text completion request.

    The suffix and user are not sent, and the token limit is always 50.
    """
    wire = parameters.to_dict()
    body: dict[str, Any] = {
        "model": wire["model"],
        "prompt": wire["prompt"],
        "max_tokens": _STREAM_MAX_TOKENS,
    }
    _copy(wire, body, ("temperature", "top_p", "n"))
    body["stream"] = True
    _copy(
        wire,
        body,
        (
            "logprobs",
            "echo",
            "stop",
            "presence_penalty",
            "frequency_penalty",
            "best_of",
            "logit_bias",
        ),
    )
    return body


class Chat:
    """The chat completion endpoint."""

    def __init__(self, client: _ApiClient) -> None:
        self.client = client

    async def create(self, parameters: ChatCompletionParameters) -> ChatCompletionResponse:
        text = await self.client.post("/chat/completions", parameters.to_dict())
        return _parse(text, ChatCompletionResponse.from_dict)

    async def create_stream(
        self, parameters: ChatCompletionParameters
    ) -> AsyncIterator[ChatCompletionStreamResponse | APIError]:
        return await self.client.post_stream(
            "/chat/completions",
            chat_stream_parameters(parameters),
            ChatCompletionStreamResponse.from_dict,
        )


class Completions:
    """The text completion endpoint."""

    def __init__(self, client: _ApiClient) -> None:
        self.client = client

    async def create(self, parameters: CompletionParameters) -> CompletionResponse:
        text = await self.client.post("/completions", parameters.to_dict())
        return _parse(text, CompletionResponse.from_dict)

    async def create_stream(
        self, parameters: CompletionParameters
    ) -> AsyncIterator[CompletionStreamResponse | APIError]:
        return await self.client.post_stream(
            "/completions",
            completion_stream_parameters(parameters),
            CompletionStreamResponse.from_dict,
        )


def _model_list(value: Any) -> list[Model]:
    data = value.get("data") if isinstance(value, dict) else None
    if not isinstance(data, list):
        raise ValueError("invalid type for `data`: expected a list")
    return [Model.from_dict(item) for item in data]


class Models:
    """The model listing endpoint."""

    def __init__(self, client: _ApiClient) -> None:
        self.client = client

    async def list(self) -> list[Model]:
        text = await self.client.get("/models")
        return _parse(text, _model_list)

    async def get(self, model_id: str) -> Model:
        text = await self.client.get(f"/models/{model_id}")
        return _parse(text, Model.from_dict)