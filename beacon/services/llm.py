"""
Generation Clients

Chat generation with incremental token streaming.

Two implementations of the ``GenerationClient`` protocol:
    - OpenAIGenerationClient: chat completions through the ``openai`` SDK,
      usage reported on the final chunk (``stream_options.include_usage``).
    - OllamaGenerationClient: local models via Ollama's ``/api/chat``
      endpoint over httpx, NDJSON streaming.

Stream event schema::

    StreamEvent(type="token", text="<chunk of answer>")
    StreamEvent(type="done", usage=Usage(...))   # exactly once, last

Provider failures raise ``GenerationServiceError``; there is no silent
fallback to a canned answer.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol, runtime_checkable

import httpx
import openai
from openai import AsyncOpenAI

from beacon.core.exceptions import GenerationServiceError
from beacon.models.schemas import ConversationMessage, Usage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationRequest:
    """
    One generation call.

    Attributes:
        model: Concrete model identifier.
        messages: Conversation turns, the last one being the user query.
        temperature: Sampling temperature.
        max_tokens: Output token cap.
        system_prompt: System instructions (sent as the first message).
    """

    model: str
    messages: list[ConversationMessage]
    temperature: float = 0.3
    max_tokens: int = 4096
    system_prompt: str = ""

    def chat_messages(self) -> list[dict[str, str]]:
        """Provider-ready message list with the system prompt first."""
        messages: list[dict[str, str]] = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.extend({"role": m.role, "content": m.content} for m in self.messages)
        return messages


@dataclass(frozen=True)
class StreamEvent:
    type: Literal["token", "done"]
    text: str = ""
    usage: Usage | None = None


@dataclass(frozen=True)
class Completion:
    content: str
    model: str
    usage: Usage = field(default_factory=Usage)


@runtime_checkable
class GenerationClient(Protocol):
    def stream(self, request: GenerationRequest) -> AsyncIterator[StreamEvent]: ...

    async def complete(self, request: GenerationRequest) -> Completion: ...


# ---------------------------------------------------------------------------
# OpenAI
# ---------------------------------------------------------------------------


class OpenAIGenerationClient:
    """
    Generation client backed by OpenAI chat completions.

    Usage::

        client = OpenAIGenerationClient(AsyncOpenAI(api_key="sk-..."))
        async for event in client.stream(request):
            if event.type == "token":
                print(event.text, end="")

    Args:
        client: Configured ``AsyncOpenAI`` instance (owned by the caller).
    """

    def __init__(self, client: AsyncOpenAI) -> None:
        self._client = client

    async def stream(self, request: GenerationRequest) -> AsyncIterator[StreamEvent]:
        """
        Stream tokens, then one ``done`` event carrying usage.

        Raises:
            GenerationServiceError: On any provider failure.
        """
        usage = Usage()
        try:
            stream = await self._client.chat.completions.create(
                model=request.model,
                messages=request.chat_messages(),
                temperature=request.temperature,
                max_tokens=request.max_tokens,
                stream=True,
                stream_options={"include_usage": True},
            )
            # Closing the stream aborts the HTTP response on cancellation
            async with stream:
                async for chunk in stream:
                    # Usage is attached to the final chunk
                    if chunk.usage is not None:
                        usage = Usage.of(
                            chunk.usage.prompt_tokens or 0,
                            chunk.usage.completion_tokens or 0,
                        )
                    if chunk.choices and chunk.choices[0].delta.content:
                        yield StreamEvent(
                            type="token", text=chunk.choices[0].delta.content
                        )
        except openai.OpenAIError as e:
            raise GenerationServiceError(f"{type(e).__name__}: {e}") from e

        logger.info(
            "OpenAI stream finished (model=%s, tokens=%d)",
            request.model,
            usage.total_tokens,
        )
        yield StreamEvent(type="done", usage=usage)

    async def complete(self, request: GenerationRequest) -> Completion:
        """
        Single, non-streamed completion.

        Raises:
            GenerationServiceError: On any provider failure.
        """
        try:
            response = await self._client.chat.completions.create(
                model=request.model,
                messages=request.chat_messages(),
                temperature=request.temperature,
                max_tokens=request.max_tokens,
            )
        except openai.OpenAIError as e:
            raise GenerationServiceError(f"{type(e).__name__}: {e}") from e

        content = ""
        if response.choices:
            content = response.choices[0].message.content or ""
        usage = (
            Usage.of(response.usage.prompt_tokens, response.usage.completion_tokens)
            if response.usage
            else Usage()
        )
        return Completion(content=content, model=request.model, usage=usage)


# ---------------------------------------------------------------------------
# Ollama
# ---------------------------------------------------------------------------


class OllamaGenerationClient:
    """
    Generation client backed by a local Ollama server.

    Args:
        http_client: Shared ``httpx.AsyncClient`` (owned by the caller).
        base_url: Ollama API base URL.
    """

    def __init__(self, http_client: httpx.AsyncClient, base_url: str) -> None:
        self._http = http_client
        self._base_url = base_url.rstrip("/")

    def _payload(self, request: GenerationRequest, stream: bool) -> dict[str, Any]:
        return {
            "model": request.model,
            "messages": request.chat_messages(),
            "stream": stream,
            "options": {
                "temperature": request.temperature,
                "num_predict": request.max_tokens,
            },
        }

    async def stream(self, request: GenerationRequest) -> AsyncIterator[StreamEvent]:
        """
        Stream tokens from ``/api/chat`` (one JSON object per line).

        Raises:
            GenerationServiceError: On transport, HTTP or decoding failure.
        """
        url = f"{self._base_url}/api/chat"
        usage = Usage()
        try:
            async with self._http.stream(
                "POST", url, json=self._payload(request, stream=True)
            ) as response:
                if response.status_code >= 400:
                    raise GenerationServiceError(
                        f"Ollama returned HTTP {response.status_code}"
                    )
                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    data = json.loads(line)
                    if "error" in data:
                        raise GenerationServiceError(str(data["error"]))
                    text = data.get("message", {}).get("content", "")
                    if text:
                        yield StreamEvent(type="token", text=text)
                    if data.get("done"):
                        usage = Usage.of(
                            int(data.get("prompt_eval_count", 0)),
                            int(data.get("eval_count", 0)),
                        )
        except httpx.HTTPError as e:
            raise GenerationServiceError(f"{type(e).__name__}: {e}") from e
        except ValueError as e:
            raise GenerationServiceError(f"invalid stream payload: {e}") from e

        logger.info(
            "Ollama stream finished (model=%s, tokens=%d)",
            request.model,
            usage.total_tokens,
        )
        yield StreamEvent(type="done", usage=usage)

    async def complete(self, request: GenerationRequest) -> Completion:
        """
        Single, non-streamed completion.

        Raises:
            GenerationServiceError: On transport, HTTP or decoding failure.
        """
        url = f"{self._base_url}/api/chat"
        try:
            response = await self._http.post(
                url, json=self._payload(request, stream=False)
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("Ollama API error: %s", e.response.text)
            raise GenerationServiceError(f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise GenerationServiceError(f"{type(e).__name__}: {e}") from e
        except ValueError as e:
            raise GenerationServiceError(f"invalid response payload: {e}") from e

        content = data.get("message", {}).get("content", "")
        logger.info(
            "Ollama response generated (model=%s, length=%d)",
            request.model,
            len(content),
        )
        return Completion(
            content=content,
            model=request.model,
            usage=Usage.of(
                int(data.get("prompt_eval_count", 0)),
                int(data.get("eval_count", 0)),
            ),
        )
