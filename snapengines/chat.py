"""Interactive text chat with an OpenAI-compatible inference server."""

from __future__ import annotations

import json
import os
import socket
import sys
import time
from typing import Any, Iterable, Iterator
from urllib.parse import urlsplit

import httpx

from .console import ProgressSpinner
from .suggestions import suggest_server_logs, suggest_server_startup

_SYSTEM_PROMPT = "You are a helpful assistant."
_READY_PROMPT = "Are you up?"
_HANDSHAKE_TIMEOUT = 5.0


class ChatError(Exception):
    """Raised when the chat session cannot continue."""


def _colour(text: str, code: str) -> str:
    if os.environ.get("NO_COLOR") or not sys.stdout.isatty():
        return text
    return f"\033[{code}m{text}\033[0m"


def _blue(text: str) -> str:
    return _colour(text, "34")


def _red(text: str) -> str:
    return _colour(text, "31")


def _decode_event(payload: str) -> Any:
    try:
        event = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ChatError(f"invalid stream event: {exc}") from exc
    if isinstance(event, dict) and event.get("error"):
        error = event["error"]
        message = error.get("message", error) if isinstance(error, dict) else error
        raise ChatError(f"stream error: {message}")
    return event


def parse_sse_lines(lines: Iterable[str | bytes]) -> Iterator[Any]:
    """Yield the decoded JSON data of each server-sent event until '[DONE]'."""
    data: list[str] = []
    for raw in lines:
        line = raw.decode("utf-8") if isinstance(raw, bytes) else raw
        line = line.rstrip("\r\n")
        if not line:
            if data:
                payload = "\n".join(data)
                data = []
                if payload == "[DONE]":
                    return
                yield _decode_event(payload)
            continue
        if line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "data":
            data.append(value)
    if data:
        payload = "\n".join(data)
        if payload != "[DONE]":
            yield _decode_event(payload)


def _error_type(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    error = body.get("error", body)
    return error.get("type") if isinstance(error, dict) else None


def _describe(response: httpx.Response) -> str:
    request = response.request
    return (
        f'{request.method} "{request.url}": {response.status_code} '
        f"{response.reason_phrase} {response.text}"
    ).strip()


def _transport_failure(exc: Exception) -> ChatError:
    if isinstance(exc, httpx.ConnectError) and (
        isinstance(exc.__cause__, ConnectionRefusedError) or "refused" in str(exc).lower()
    ):
        return ChatError(f"connection refused\n\n{suggest_server_logs()}")
    if isinstance(exc, httpx.RemoteProtocolError):
        print()
        return ChatError(f"connection closed by server\n\n{suggest_server_logs()}")
    return ChatError(f"{exc}\n\n{suggest_server_logs()}")


class ChatClient:
    """A chat session against the server at ``base_url``."""

    retry_interval = 5.0
    wait_timeout = 60.0

    def __init__(self, base_url: str, model_name: str = "", verbose: bool = False) -> None:
        if not base_url:
            raise ChatError("the --base-url parameter is required")
        self.base_url = base_url
        self.model_name = model_name
        self.verbose = verbose
        self.http = httpx.Client(timeout=httpx.Timeout(600.0, connect=_HANDSHAKE_TIMEOUT))

    def _url(self, path: str) -> str:
        return self.base_url.rstrip("/") + "/" + path

    def start(self) -> None:
        """Connect, wait for the server and run the prompt loop."""
        print(f"Using server at {self.base_url}")
        self.handshake()
        if not self.model_name:
            self.lookup_model_name()
        if self.verbose:
            print(f"Using model {self.model_name}")
        self.check_server_ready()

        print("Type your prompt, then ENTER to submit. CTRL-C to quit.")
        try:
            import readline  # noqa: F401  (line editing and history for input())
        except ImportError:
            pass

        messages: list[dict[str, Any]] = [{"role": "system", "content": _SYSTEM_PROMPT}]
        prompt_text = _red("» ")
        while True:
            try:
                prompt = input(prompt_text)
            except KeyboardInterrupt:
                print("^C")
                break
            except EOFError:
                break
            if prompt == "exit":
                break
            if prompt:
                messages = self.handle_prompt(messages, prompt)
        print("Closing chat")

    def handshake(self) -> None:
        """Check that the server's port accepts connections."""
        with ProgressSpinner("Connecting to server"):
            try:
                parts = urlsplit(self.base_url)
                port = parts.port
            except ValueError as exc:
                raise ChatError(f"invalid base URL: {exc}") from exc
            host = parts.hostname or ""
            if port is None:
                port = 443 if parts.scheme == "https" else 80
            try:
                conn = socket.create_connection((host, port), timeout=_HANDSHAKE_TIMEOUT)
            except ConnectionRefusedError as exc:
                raise ChatError(
                    f"connection refused\n\n{suggest_server_startup()}\n{suggest_server_logs()}"
                ) from exc
            except OSError as exc:
                raise ChatError(str(exc)) from exc
            conn.close()

    def _send(self, method: str, path: str, body: Any, started: float) -> httpx.Response | None:
        """Send a request; None means the server is still loading and was waited for."""
        try:
            response = self.http.request(method, self._url(path), json=body)
        except httpx.HTTPError as exc:
            raise ChatError(f"{exc}\n\n{suggest_server_logs()}") from exc
        if response.status_code < 400:
            return response
        if response.status_code == 503 and _error_type(response) == "unavailable_error":
            if time.monotonic() - started > self.wait_timeout:
                raise ChatError(
                    "no models available on server\n\n"
                    f"{suggest_server_startup()}\n{suggest_server_logs()}"
                )
            time.sleep(self.retry_interval)
            return None
        raise ChatError(f"api: {_describe(response)}")

    def lookup_model_name(self) -> str:
        """Ask the server for its single model and use it."""
        with ProgressSpinner("Looking up model name"):
            started = time.monotonic()
            while True:
                response = self._send("GET", "models", None, started)
                if response is None:
                    continue
                try:
                    models = [entry["id"] for entry in response.json().get("data") or []]
                except (ValueError, AttributeError, KeyError, TypeError) as exc:
                    raise ChatError(f"invalid models response: {exc}") from exc
                if not models:
                    if time.monotonic() - started > self.wait_timeout:
                        raise ChatError(
                            "server returned no models\n\n"
                            f"{suggest_server_startup()}\n{suggest_server_logs()}"
                        )
                    time.sleep(self.retry_interval)
                    continue
                if len(models) > 1:
                    raise ChatError(
                        "expected one but server returned multiple models: " + ", ".join(models)
                    )
                self.model_name = models[0]
                return self.model_name

    def check_server_ready(self) -> None:
        """Wait until the server accepts chat completion requests."""
        body = {
            "messages": [{"role": "system", "content": _READY_PROMPT}],
            "model": self.model_name,
            "max_completion_tokens": 1,
            "max_tokens": 1,
        }
        with ProgressSpinner("Waiting for server to be ready"):
            started = time.monotonic()
            while self._send("POST", "chat/completions", body, started) is None:
                pass

    def handle_prompt(self, messages: list[dict[str, Any]], prompt: str) -> list[dict[str, Any]]:
        """Send a prompt, print the streamed reply and return the extended history."""
        messages = [*messages, {"role": "user", "content": prompt}]
        params = {"messages": messages, "model": self.model_name}
        if self.verbose:
            print(f"Sending request: {json.dumps(params)}")

        spinner = ProgressSpinner("Waiting for a response").start()
        try:
            with self.http.stream(
                "POST", self._url("chat/completions"), json={**params, "stream": True}
            ) as response:
                spinner.stop()
                if response.status_code >= 400:
                    response.read()
                    raise ChatError(f"{_describe(response)}\n\n{suggest_server_logs()}")
                reply = self.process_stream(response.iter_lines())
        except httpx.HTTPError as exc:
            raise _transport_failure(exc) from exc
        finally:
            spinner.stop()

        if reply is not None:
            messages.append(reply)
        print()
        return messages

    def process_stream(self, lines: Iterable[str | bytes]) -> dict[str, Any] | None:
        """Print streamed content as it arrives; return the assistant message, if any."""
        thinking = False
        content: list[str] = []
        refusal: list[str] = []
        tool_calls: dict[int, dict[str, str]] = {}
        try:
            for chunk in parse_sse_lines(lines):
                choices = chunk.get("choices") or [] if isinstance(chunk, dict) else []
                if not choices:
                    continue
                choice = choices[0]
                delta = choice.get("delta") or {}

                for call in delta.get("tool_calls") or []:
                    entry = tool_calls.setdefault(call.get("index", 0), {"name": "", "arguments": ""})
                    function = call.get("function") or {}
                    entry["name"] += function.get("name") or ""
                    entry["arguments"] += function.get("arguments") or ""
                if delta.get("refusal"):
                    refusal.append(delta["refusal"])

                piece = delta.get("content") or ""
                content.append(piece)
                if "<think>" in piece:
                    thinking = True
                    sys.stdout.write(_blue(piece))
                elif "</think>" in piece:
                    thinking = False
                    sys.stdout.write(_blue(piece))
                elif thinking:
                    sys.stdout.write(_blue(piece))
                else:
                    sys.stdout.write(piece)
                sys.stdout.flush()

                if choice.get("finish_reason"):
                    for index, call in sorted(tool_calls.items()):
                        print(
                            f"Tool call stream finished {index}: {call['name']} {call['arguments']}",
                            end="",
                        )
                    tool_calls.clear()
                    if refusal:
                        print(f"Refusal stream finished: {''.join(refusal)}", end="")
                        refusal.clear()
        except httpx.HTTPError as exc:
            raise _transport_failure(exc) from exc
        except ChatError as exc:
            raise ChatError(f"{exc}\n\n{suggest_server_logs()}") from exc

        text = "".join(content)
        if not text:
            return None
        return {"role": "assistant", "content": text}