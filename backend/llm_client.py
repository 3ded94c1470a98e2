from __future__ import annotations
import logging
import os
from typing import Any, Dict, Iterator, List, Optional

import openai
from openai import OpenAI

from errors import UpstreamError

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

_client: OpenAI | None = None


def get_client(timeout: float = 60.0) -> OpenAI:
    global _client
    if _client is None:
        openrouter_key = os.getenv("OPENROUTER_API_KEY")
        api_key = openrouter_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise UpstreamError("OPENROUTER_API_KEY or OPENAI_API_KEY must be set")
        base_url = os.getenv("OPENAI_BASE_URL") or (OPENROUTER_BASE_URL if openrouter_key else None)
        _client = OpenAI(base_url=base_url, api_key=api_key, timeout=timeout)
    return _client


def api_available() -> bool:
    return bool(os.getenv("OPENROUTER_API_KEY") or os.getenv("OPENAI_API_KEY"))


def _delta_text(chunk: Any) -> str:
    # usage-only chunks (and some proxies' keepalives) carry no choices
    choices = getattr(chunk, "choices", None) or []
    if not choices:
        return ""
    delta = getattr(choices[0], "delta", None)
    return (getattr(delta, "content", None) or "") if delta is not None else ""


class ChatStream:
    """Pull iterator over the text deltas of one streamed completion.

    ``next()`` returns the next delta (possibly empty) or ``None`` once the
    upstream sequence is exhausted. Single consumer only.
    """

    def __init__(self, response: Any):
        self._response = response
        self._it: Iterator[Any] = iter(response)
        self._done = False

    def next(self) -> Optional[str]:
        if self._done:
            return None
        try:
            chunk = next(self._it)
        except StopIteration:
            self._done = True
            return None
        except openai.OpenAIError as e:
            self._done = True
            raise UpstreamError("Model stream failed", str(e)) from e
        return _delta_text(chunk)

    def __iter__(self) -> Iterator[str]:
        while True:
            delta = self.next()
            if delta is None:
                return
            yield delta

    def close(self):
        self._done = True
        close = getattr(self._response, "close", None)
        if close is not None:
            try:
                close()
            except Exception as e:  # closing a dead HTTP response
                logger.debug("closing upstream stream failed: %s", e)


class OpenAIChatUpstream:
    """Chat-completion collaborator backed by the OpenAI SDK."""

    def __init__(self, model: str = "gpt-4", temperature: float = 0.8, max_tokens: int = 400,
                 presence_penalty: float = 0.6, frequency_penalty: float = 0.4,
                 timeout: float = 60.0, client: OpenAI | None = None):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.presence_penalty = presence_penalty
        self.frequency_penalty = frequency_penalty
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "OpenAIChatUpstream":
        return cls(
            model=config.get("LLM_MODEL", "gpt-4"),
            temperature=float(config.get("LLM_TEMPERATURE", 0.8)),
            max_tokens=int(config.get("LLM_MAX_TOKENS", 400)),
            presence_penalty=float(config.get("LLM_PRESENCE_PENALTY", 0.6)),
            frequency_penalty=float(config.get("LLM_FREQUENCY_PENALTY", 0.4)),
            timeout=float(config.get("LLM_TIMEOUT", 60.0)),
        )

    @property
    def client(self) -> OpenAI:
        return self._client or get_client(self.timeout)

    def _create(self, messages: List[Dict[str, str]], stream: bool):
        logger.info("Calling LLM model=%s stream=%s prompt_chars=%d", self.model, stream,
                    sum(len(m.get("content") or "") for m in messages))
        try:
            return self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                presence_penalty=self.presence_penalty,
                frequency_penalty=self.frequency_penalty,
                stream=stream,
            )
        except openai.OpenAIError as e:
            raise UpstreamError("Failed to generate interview response", str(e)) from e

    def open_stream(self, messages: List[Dict[str, str]]) -> ChatStream:
        return ChatStream(self._create(messages, stream=True))

    def complete(self, messages: List[Dict[str, str]]) -> str:
        completion = self._create(messages, stream=False)
        if not completion.choices:
            return ""
        return completion.choices[0].message.content or ""


def transcribe_audio(audio: bytes, filename: str = "chunk.webm", model: str = "whisper-1") -> str:
    """Send one concatenated audio chunk to the speech-to-text endpoint."""
    if not audio:
        raise UpstreamError("Transcription failed", "empty audio")
    logger.info("Transcribing audio chunk bytes=%d", len(audio))
    try:
        result = get_client().audio.transcriptions.create(model=model, file=(filename, audio))
    except openai.OpenAIError as e:
        raise UpstreamError("Transcription failed", str(e)) from e
    return getattr(result, "text", "") or ""
