"""Relay of upstream chat-completion streams to a downstream sink.

The engine is shared by the SSE route and every socket session. It keeps no
per-relay state of its own: each call gets a fresh accumulator, so concurrent
relays never see each other's output. The only shared resource is the cache.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, Iterable, Iterator, Optional, Protocol, Union

from cache_service import DEFAULT_TTL, CacheStore
from errors import SinkClosed, UpstreamError, ValidationError
from helpers import _iso_now
from interviewer import HISTORY_TURNS, build_messages
from models import (
    CacheEntry, ChatTurn, RelayError, RequestContext, StreamChunk,
    coerce_context, coerce_turns,
)
from questions import cache_key_for, question_from_key

logger = logging.getLogger(__name__)

RelayEvent = Union[StreamChunk, RelayError]
ContextArg = Union[RequestContext, Dict[str, Any], None]
TurnsArg = Optional[Iterable[Union[ChatTurn, Dict[str, Any]]]]


class Sink(Protocol):
    def send_chunk(self, chunk: StreamChunk) -> None: ...
    def send_error(self, error: RelayError) -> None: ...
    def close(self) -> None: ...


def _validate(text: Any) -> str:
    clean = str(text or "").strip()
    if not clean:
        raise ValidationError("Input text is required")
    return clean


class RelayEngine:
    def __init__(self, upstream, cache: Optional[CacheStore] = None,
                 ttl_seconds: int = DEFAULT_TTL, history_turns: int = HISTORY_TURNS):
        self.upstream = upstream
        self.cache = cache
        self.ttl_seconds = ttl_seconds
        self.history_turns = history_turns

    def relay(self, text: Any, context: ContextArg = None, transcript: TurnsArg = None) -> Iterator[RelayEvent]:
        """Validate now, then return the lazy event stream for one relay.

        The stream yields zero or more content chunks followed by exactly one
        terminal event: a final ``StreamChunk`` or a ``RelayError``.
        """
        clean = _validate(text)
        return self._events(clean, coerce_context(context), coerce_turns(transcript))

    def _cached_answer(self, key: Optional[str]) -> Optional[str]:
        if key is None or self.cache is None:
            return None
        raw = self.cache.get(key)
        if raw is None:
            return None
        try:
            return CacheEntry.from_json(raw).answer
        except ValueError as e:
            logger.warning("Ignoring unreadable cache record %s: %s", key, e)
            return None

    def _events(self, text: str, ctx: RequestContext, turns) -> Iterator[RelayEvent]:
        key = cache_key_for(text)
        cached = self._cached_answer(key)
        if cached is not None:
            logger.info("Cache hit for %s", key)
            yield StreamChunk(cached, is_final=True, from_cache=True)
            return

        messages = build_messages(text, ctx, turns, self.history_turns)
        try:
            stream = self.upstream.open_stream(messages)
        except UpstreamError as e:
            logger.error("Upstream failed before streaming: %s", e.details or e)
            yield RelayError("Analysis failed", e.details or e.message)
            return

        answer = []
        try:
            while True:
                try:
                    delta = stream.next()
                except UpstreamError as e:
                    logger.error("Upstream failed mid-stream after %d chars: %s",
                                 sum(map(len, answer)), e.details or e)
                    yield RelayError("Analysis failed", e.details or e.message)
                    return
                if delta is None:
                    break
                if not delta:
                    continue
                answer.append(delta)
                yield StreamChunk(delta)
        finally:
            stream.close()

        full = "".join(answer)
        if key is not None and self.cache is not None:
            entry = CacheEntry(question=question_from_key(key), answer=full, timestamp=_iso_now())
            self.cache.set(key, entry.to_json(), self.ttl_seconds)
        yield StreamChunk("", is_final=True)

    def run(self, text: Any, context: ContextArg = None, transcript: TurnsArg = None,
            *, sink: Sink) -> str:
        """Drive one relay into ``sink``. Returns the text delivered.

        ``ValidationError`` propagates without touching the sink's stream;
        the sink is closed in every other case.
        """
        events = self.relay(text, context, transcript)
        delivered = []
        try:
            for event in events:
                if isinstance(event, RelayError):
                    sink.send_error(event)
                    break
                delivered.append(event.content)
                sink.send_chunk(event)
        except SinkClosed:
            logger.info("Sink closed mid-relay, abandoning upstream stream")
        except Exception as e:
            logger.exception("Relay crashed")
            sink.send_error(RelayError("Analysis failed", str(e)))
        finally:
            events.close()
            sink.close()
        return "".join(delivered)

    def complete(self, text: Any, context: ContextArg = None, transcript: TurnsArg = None) -> Dict[str, str]:
        """Non-streaming variant: one upstream call, no sink, no cache."""
        clean = _validate(text)
        messages = build_messages(clean, coerce_context(context), coerce_turns(transcript), self.history_turns)
        answer = self.upstream.complete(messages)
        return {
            "input": clean,
            "response": answer or "No response generated",
            "timestamp": _iso_now(),
        }
