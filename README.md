# gptkit

An asynchronous client library for the OpenAI platform API. It is built on `httpx` and covers chat completions, text completions and model listing. Streaming replies use a server-sent events client that reconnects after a failure. The library also has two small helpers: one rotates through HAR record files, and one keeps preauth device-check cookies.

## Modules

| Module | What it holds |
| --- | --- |
| `gptkit.api` | `Client` and `file_from_disk_to_form_part` |
| `gptkit.endpoints` | `Chat`, `Completions`, `Models`, `chat_stream_parameters`, `completion_stream_parameters` |
| `gptkit.resources` | request parameters, response dataclasses, `OpenAIModel`, `Role`, `FinishReason`, `generate_file_name` |
| `gptkit.eventsource` | `EventSource`, `EventStreamParser`, `OpenEvent`, `MessageEvent`, `ReadyState`, `check_response` |
| `gptkit.retry` | `RetryPolicy`, `ExponentialBackoff`, `Constant`, `Never`, `default_retry` |
| `gptkit.har` | `HarProvider`, `HarPath` |
| `gptkit.preauth` | `PreauthCookieProvider`, `is_fresh` |
| `gptkit.errors` | every exception type of the package |
| `gptkit.util` | `home_dir`, `now_duration`, `format_time_to_rfc3339`, `generate_random_string` |

## Installation

```
pip install gptkit
```

## The API client

```python
import asyncio
from gptkit.api import Client
from gptkit.resources import ChatCompletionParameters, ChatMessage, Role

async def main():
    client = Client(api_key="placeholder")
    params = ChatCompletionParameters(
        model="gpt-3.5-turbo",
        messages=[ChatMessage(role=Role.USER, content="Hello!")],
    )
    response = await client.chat().create(params)
    print(response.choices[0].message.content)

asyncio.run(main())
```

`Client(api_key, base_url=None, http_client=None)` sends every request with a `Bearer` authorization header. When `base_url` is not given, it uses the platform's `/v1` endpoint. When `http_client` is not given, it creates its own `httpx.AsyncClient`. Each method returns the response body as text. The methods raise on different statuses:

| Method | Raises `APIError` with kind `ENDPOINT` when |
| --- | --- |
| `get(path)` | the server answers with a 5xx status |
| `delete(path)` | the server answers with a 5xx status |
| `post(path, parameters)` | the status is not 2xx |
| `post_with_form(path, files, data=None)` | the status is not 2xx |

`post` sends `parameters` as a JSON body. `post_with_form` sends a multipart form, with `files` and `data` given as they would be to `httpx`.

`await file_from_disk_to_form_part(path)` reads a file and returns a `(path, content, "application/octet-stream")` tuple, ready to use as an entry in `files`. If the file cannot be read, it raises `APIError` with kind `FILE`.

`client.chat()`, `client.completions()` and `client.models()` return the endpoint wrappers:

- `Chat.create(parameters)` posts to `/chat/completions` and returns a `ChatCompletionResponse`.
- `Completions.create(parameters)` posts to `/completions` and returns a `CompletionResponse`.
- `Models.list()` returns the `data` list of `/models` as `Model` objects.
- `Models.get(model_id)` returns one `Model`.

If a reply cannot be parsed, these methods raise `APIError` with kind `PARSE`.

## Streaming

```python
from gptkit.errors import APIError

async def stream(client):
    chunks = await client.chat().create_stream(ChatCompletionParameters())
    async for item in chunks:
        if isinstance(item, APIError):
            print("stream error:", item)
            continue
        for choice in item.choices:
            print(choice.delta.content or "", end="")
```

`Chat.create_stream` and `Completions.create_stream` return an async iterator. It yields one parsed chunk per event: a `ChatCompletionStreamResponse` or a `CompletionStreamResponse`. The iterator stops at the `[DONE]` event, or when the event source closes.

An event that fails is **yielded** as an `APIError` of kind `STREAM`, not raised. This covers both a transport failure and a payload that cannot be parsed. After yielding the error, the stream goes on, and the event source reconnects if its retry policy allows it.

Two helpers build the bodies of streamed requests:

- `chat_stream_parameters` builds the body of a streamed chat request. It adds `"stream": true`.
- `completion_stream_parameters` builds the body of a streamed completion request. It leaves out `suffix` and `user`, and always sets `max_tokens` to 50.

`Client.post_stream(path, parameters, parse)` and `Client.process_stream(event_source, parse)` are the general forms of streaming, for any endpoint and parser.

## Request and response types

`ChatCompletionParameters` and `CompletionParameters` are dataclasses. Their `to_dict()` leaves out every option that is `None`.

- The default chat model is `str(OpenAIModel.GPT3_5_TURBO)`, which gives `"gpt-3.5-turbo-0301"`. The `str()` of the two turbo models is crossed over. Their `.value` is the plain wire name.
- The default chat message is a user message, `"Hello!"`.
- The default completion model is `"text-davinci-003"`, with the prompt `"Say this is a test"`.

For the other enums:

- `Role` values are the lowercase wire names. Their `str()` is capitalized, for example `"User"`.
- `FinishReason.from_wire` accepts `"stop"`, `"length"` and `"content_filter"`.

Every response type has a `from_dict()` method that checks field presence and types, and raises `ValueError` on bad input.

`generate_file_name(path, length, file_type)` returns `path/<random alphanumeric name>.<file_type>`.

## Server-sent events

```python
from gptkit.eventsource import EventSource, MessageEvent
from gptkit.errors import EventSourceError

async def listen():
    source = EventSource.get("http://localhost:8000/events")
    try:
        async for event in source:
            if isinstance(event, MessageEvent):
                print(event.event, event.data)
    except EventSourceError as exc:
        print("error:", exc)
        source.close()
```

### Creating a source

Use `EventSource(client, method, url, **kwargs)` for any request, or `EventSource.get(url)` for a plain GET request.

- The request is sent with `Accept: text/event-stream`.
- Extra keyword arguments go to `httpx`.
- If `client` is `None`, the source creates its own client and closes it once iteration ends.
- If a body given as `content` or `data` cannot be sent again, the constructor raises `CannotCloneRequestError`.

### Iterating

Iteration yields an `OpenEvent` each time a connection opens, and a `MessageEvent(event, data, id, retry)` for each event.

Failures are raised as subclasses of `EventSourceError`. After a transport error, a decoding error or the end of the stream, the retry policy decides what happens next:

- If the policy gives a delay, you can iterate again. The next call waits that long, then reconnects and sends the `Last-Event-ID` header.
- If the policy gives no delay, the source closes.

A bad status code or a bad content type closes the source at once. `check_response` is the function that performs these two checks.

### Other methods

- `close()` stops the source.
- `ready_state()` returns `CONNECTING`, `OPEN` or `CLOSED`.
- `last_event_id()` returns the id of the last event received.
- `set_retry_policy(policy)` replaces the retry policy.

`EventStreamParser(last_event_id="")` is the incremental parser the source uses. `feed(chunk)` takes bytes and returns the completed `MessageEvent`s. It raises `Utf8DecodeError` on invalid UTF-8.

## Retry policies

All durations are in seconds. Each policy has `retry(error, last_retry)`, which returns the next delay or `None` to give up.

- `ExponentialBackoff(start, factor, max_duration=None, max_retries=None)` multiplies the last delay by `factor`, capped at `max_duration`.
- `Constant(delay, max_retries=None)` always returns the same delay.
- `Never()` never retries.
- `default_retry()` returns a fresh `ExponentialBackoff(0.3, 2.0, 5.0)`, with no limit on the number of retries.

A `retry:` field sent by the server is passed to the policy's `set_reconnection_time`.

## HAR files

```python
from gptkit.har import HarProvider

with HarProvider(None, ".gpt4") as provider:
    har = provider.pool()
    print(har.dir_path, har.file_path)
```

`HarProvider(dir_path, default_dir_name)` uses `dir_path`, or `<home>/<default_dir_name>` when `dir_path` is `None`. It creates the directory if it is missing, and collects the `.har` files in it in sorted order.

`pool()` returns a `HarPath` with the next file in round-robin order. When there are no files, it returns a `HarPath` whose `file_path` is `None`.

Entering the provider as a context manager, or calling `watch()`, starts a `watchdog` observer. The observer rebuilds the pool whenever the directory changes. `close()` stops the observer. `reset_pool()` rescans the directory by hand.

## Preauth cookies

`PreauthCookieProvider(path=None)` keeps `_preauth_devicecheck` cookie values, keyed by device id. It stores them in `path`, or in `<home>/.preauth_cookies` when `path` is `None`.

- **Loading.** When created, it loads the fresh entries from the file and writes only those back.
- **Limits.** It holds at most 1000 entries, and each entry lives for 24 hours.
- **`push(value)`** takes a `Cookie` or `Set-Cookie` header value, stores the device-check cookie found in it, and rewrites the file.
- **`get()`** returns a random fresh entry, or `None` if there is none.
- **`values()`** returns every stored entry.

`is_fresh(entry, now=None)` checks whether an entry of the form `device:timestamp-suffix` has a timestamp less than a day, minus one minute, before `now`.

## Errors

| Exception | When it is raised | Notes |
| --- | --- | --- |
| `APIError` | by the API client | `kind` is an `APIErrorKind`: `ENDPOINT`, `PARSE`, `FILE` or `STREAM`. Its text is the message alone. |
| `EventSourceError` | by the event source | The subclasses are `Utf8DecodeError`, `ParserError`, `TransportError`, `InvalidContentTypeError`, `InvalidStatusCodeError`, `InvalidLastEventIdError` and `StreamEndedError`. |
| `AuthError(kind, detail=None)` | never by this package | Built from an `AuthErrorKind`. Kinds whose message takes a detail require one. |
| `TokenStoreError(kind, detail=None)` | never by this package | Built from a `TokenStoreErrorKind`. |

## What this package does not do

`AuthError` and `TokenStoreError` are defined for callers to use. The package has no login flow, no token storage and no captcha solving. It provides no command-line program and no HTTP server. Its only storage is the preauth cookie file and the HAR directories described above.

## Running the tests

```
pip install -e ".[test]"
pytest
```