"""Request and response shapes of the platform completion and chat endpoints."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Union

from .util import generate_random_string

StopToken = Union[str, "list[str]"]

_U32_MAX = 0xFFFFFFFF


class OpenAIModel(str, Enum):
    """Known model names; the value is the name sent on the wire."""

    GPT_4 = "gpt-4"
    GPT_4_0314 = "gpt-4-0314"
    GPT_4_32K = "gpt-4-32k"
    GPT_4_32K_0314 = "gpt-4-32k-0314"
    GPT3_5_TURBO = "gpt-3.5-turbo"
    GPT3_5_TURBO_0301 = "gpt-3.5-turbo-0301"
    TEXT_DAVINCI_003 = "text-davinci-003"
    TEXT_DAVINCI_EDIT_001 = "text-davinci-edit-001"
    TEXT_CURIE_001 = "text-curie-001"
    TEXT_BABBAGE_001 = "text-babbage-001"
    TEXT_ADA_001 = "text-ada-001"
    TEXT_EMBEDDING_ADA_002 = "text-embedding-ada-002"
    WHISPER_1 = "whisper-1"
    TEXT_MODERATION_STABLE = "text-moderation-stable"
    TEXT_MODERATION_LATEST = "text-moderation-latest"

    def __str__(self) -> str:
        # The display names of the two turbo models are crossed over.
        if self is OpenAIModel.GPT3_5_TURBO:
            return OpenAIModel.GPT3_5_TURBO_0301.value
        if self is OpenAIModel.GPT3_5_TURBO_0301:
            return OpenAIModel.GPT3_5_TURBO.value
        return self.value


class Role(str, Enum):
    """The author of a chat message; the value is the wire form."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"

    def __str__(self) -> str:
        return self.value.capitalize()


class FinishReason(Enum):
    """Why a choice stopped; the value is the wire form."""

    STOP_SEQUENCE_REACHED = "stop"
    TOKEN_LIMIT_REACHED = "length"
    CONTENT_FILTER_FLAGGED = "content_filter"

    @classmethod
    def from_wire(cls, value: Any) -> FinishReason:
        """Parse the wire form of a finish reason."""
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"unknown finish reason: {value!r}") from None


def _mapping(data: Any) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"expected an object, got {type(data).__name__}")
    return data


def _field(data: Mapping[str, Any], key: str) -> Any:
    if key not in data:
        raise ValueError(f"missing field `{key}`")
    return data[key]


def _str(data: Mapping[str, Any], key: str) -> str:
    value = _field(data, key)
    if not isinstance(value, str):
        raise ValueError(f"invalid type for `{key}`: expected a string")
    return value


def _opt_str(data: Mapping[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"invalid type for `{key}`: expected a string")
    return value


def _u32(data: Mapping[str, Any], key: str) -> int:
    value = _field(data, key)
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= _U32_MAX:
        raise ValueError(f"invalid value for `{key}`: expected a u32")
    return value


def _list(data: Mapping[str, Any], key: str) -> list[Any]:
    value = _field(data, key)
    if not isinstance(value, list):
        raise ValueError(f"invalid type for `{key}`: expected a list")
    return value


def _role(value: Any) -> Role:
    try:
        return Role(value)
    except ValueError:
        raise ValueError(f"unknown role: {value!r}") from None


def _stop_to_wire(stop: StopToken) -> Any:
    return stop if isinstance(stop, str) else list(stop)


@dataclass
class Usage:
    """Token counts of a request."""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int

    @classmethod
    def from_dict(cls, data: Any) -> Usage:
        data = _mapping(data)
        return cls(
            prompt_tokens=_u32(data, "prompt_tokens"),
            completion_tokens=_u32(data, "completion_tokens"),
            total_tokens=_u32(data, "total_tokens"),
        )


@dataclass
class ChatMessage:
    """One message of a chat conversation."""

    role: Role
    content: str
    name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.name is not None:
            result["name"] = self.name
        return result

    @classmethod
    def from_dict(cls, data: Any) -> ChatMessage:
        data = _mapping(data)
        return cls(
            role=_role(_field(data, "role")),
            content=_str(data, "content"),
            name=_opt_str(data, "name"),
        )


def _default_messages() -> list[ChatMessage]:
    return [ChatMessage(Role.USER, "Hello!")]


@dataclass
class ChatCompletionParameters:
    """Parameters of a chat completion request; unset options are not sent."""

    model: str = str(OpenAIModel.GPT3_5_TURBO)
    messages: list[ChatMessage] = field(default_factory=_default_messages)
    temperature: float | None = None
    top_p: float | None = None
    n: int | None = None
    stop: StopToken | None = None
    max_tokens: int | None = None
    presence_penalty: float | None = None
    frequency_penalty: float | None = None
    logit_bias: dict[str, Any] | None = None
    user: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "model": self.model,
            "messages": [message.to_dict() for message in self.messages],
        }
        optional = {
            "temperature": self.temperature,
            "top_p": self.top_p,
            "n": self.n,
            "stop": None if self.stop is None else _stop_to_wire(self.stop),
            "max_tokens": self.max_tokens,
            "presence_penalty": self.presence_penalty,
            "frequency_penalty": self.frequency_penalty,
            "logit_bias": None if self.logit_bias is None else dict(self.logit_bias),
            "user": self.user,
        }
        result.update((key, value) for key, value in optional.items() if value is not None)
        return result


@dataclass
class ChatCompletionChoice:
    """One answer of a chat completion."""

    index: int
    message: ChatMessage
    finish_reason: FinishReason | None = None

    @classmethod
    def from_dict(cls, data: Any) -> ChatCompletionChoice:
        data = _mapping(data)
        reason = data.get("finish_reason")
        return cls(
            index=_u32(data, "index"),
            message=ChatMessage.from_dict(_field(data, "message")),
            finish_reason=None if reason is None else FinishReason.from_wire(reason),
        )


@dataclass
class ChatCompletionResponse:
    """The reply to a chat completion request."""

    id: str
    object: str
    created: int
    model: str
    choices: list[ChatCompletionChoice]
    usage: Usage

    @classmethod
    def from_dict(cls, data: Any) -> ChatCompletionResponse:
        data = _mapping(data)
        return cls(
            id=_str(data, "id"),
            object=_str(data, "object"),
            created=_u32(data, "created"),
            model=_str(data, "model"),
            choices=[ChatCompletionChoice.from_dict(c) for c in _list(data, "choices")],
            usage=Usage.from_dict(_field(data, "usage")),
        )


@dataclass
class DeltaValue:
    """The part of a message carried by one stream chunk."""

    role: Role | None = None
    content: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> DeltaValue:
        data = _mapping(data)
        role = data.get("role")
        return cls(
            role=None if role is None else _role(role),
            content=_opt_str(data, "content"),
        )


@dataclass
class DeltaField:
    """One choice of a chat stream chunk."""

    delta: DeltaValue
    index: int

    @classmethod
    def from_dict(cls, data: Any) -> DeltaField:
        data = _mapping(data)
        return cls(
            delta=DeltaValue.from_dict(_field(data, "delta")),
            index=_u32(data, "index"),
        )


@dataclass
class ChatCompletionStreamResponse:
    """One chunk of a streamed chat completion."""

    id: str
    object: str
    created: int
    model: str
    choices: list[DeltaField]

    @classmethod
    def from_dict(cls, data: Any) -> ChatCompletionStreamResponse:
        data = _mapping(data)
        return cls(
            id=_str(data, "id"),
            object=_str(data, "object"),
            created=_u32(data, "created"),
            model=_str(data, "model"),
            choices=[DeltaField.from_dict(c) for c in _list(data, "choices")],
        )


@dataclass
class CompletionParameters:
    """Parameters of a text completion request; unset options are not sent."""

    model: str = str(OpenAIModel.TEXT_DAVINCI_003)
    prompt: str = "Say this is a test"
    suffix: str | None = None
    max_tokens: int | None = None
    temperature: float | None = None
    top_p: float | None = None
    n: int | None = None
    logprobs: int | None = None
    echo: bool | None = None
    stop: StopToken | None = None
    presence_penalty: float | None = None
    frequency_penalty: float | None = None
    best_of: int | None = None
    logit_bias: dict[str, Any] | None = None
    user: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"model": self.model, "prompt": self.prompt}
        optional = {
            "suffix": self.suffix,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "n": self.n,
            "logprobs": self.logprobs,
            "echo": self.echo,
            "stop": None if self.stop is None else _stop_to_wire(self.stop),
            "presence_penalty": self.presence_penalty,
            "frequency_penalty": self.frequency_penalty,
            "best_of": self.best_of,
            "logit_bias": None if self.logit_bias is None else dict(self.logit_bias),
            "user": self.user,
        }
        result.update((key, value) for key, value in optional.items() if value is not None)
        return result


@dataclass
class CompletionChoice:
    """One answer of a text completion."""

    text: str
    index: int
    finish_reason: FinishReason

    @classmethod
    def from_dict(cls, data: Any) -> CompletionChoice:
        data = _mapping(data)
        return cls(
            text=_str(data, "text"),
            index=_u32(data, "index"),
            finish_reason=FinishReason.from_wire(_field(data, "finish_reason")),
        )


@dataclass
class CompletionResponse:
    """The reply to a text completion request."""

    id: str
    object: str
    created: int
    model: str
    choices: list[CompletionChoice]
    usage: Usage

    @classmethod
    def from_dict(cls, data: Any) -> CompletionResponse:
        data = _mapping(data)
        return cls(
            id=_str(data, "id"),
            object=_str(data, "object"),
            created=_u32(data, "created"),
            model=_str(data, "model"),
            choices=[CompletionChoice.from_dict(c) for c in _list(data, "choices")],
            usage=Usage.from_dict(_field(data, "usage")),
        )


@dataclass
class CompletionStreamChoice:
    """One choice of a text completion stream chunk."""

    text: str
    index: int

    @classmethod
    def from_dict(cls, data: Any) -> CompletionStreamChoice:
        data = _mapping(data)
        return cls(text=_str(data, "text"), index=_u32(data, "index"))


@dataclass
class CompletionStreamResponse:
    """One chunk of a streamed text completion."""

    id: str
    object: str
    created: int
    model: str
    choices: list[CompletionStreamChoice]

    @classmethod
    def from_dict(cls, data: Any) -> CompletionStreamResponse:
        data = _mapping(data)
        return cls(
            id=_str(data, "id"),
            object=_str(data, "object"),
            created=_u32(data, "created"),
            model=_str(data, "model"),
            choices=[CompletionStreamChoice.from_dict(c) for c in _list(data, "choices")],
        )


@dataclass
class Model:
    """A model listed by the platform."""

    id: str
    object: str
    owned_by: str

    @classmethod
    def from_dict(cls, data: Any) -> Model:
        data = _mapping(data)
        return cls(
            id=_str(data, "id"),
            object=_str(data, "object"),
            owned_by=_str(data, "owned_by"),
        )


def generate_file_name(path: str, length: int, file_type: str) -> str:
    """Return ``path/<random alphanumeric name>.file_type``."""
    return f"{path}/{generate_random_string(length)}.{file_type}"