"""Shared fakes for the relay tests."""

import os
from typing import Dict, List, Optional

import pytest

# app.py picks its config class from ENV at import time
os.environ.setdefault("ENV", "test")

from errors import UpstreamError  # noqa: E402


class FakeCache:
    """Dict-backed stand-in for CacheStore that records every call."""

    def __init__(self, data: Optional[Dict[str, str]] = None):
        self.data = dict(data or {})
        self.gets: List[str] = []
        self.sets: List[tuple] = []

    def get(self, key):
        self.gets.append(key)
        return self.data.get(key)

    def set(self, key, value, ttl_seconds=None):
        self.sets.append((key, value, ttl_seconds))
        self.data[key] = value

    def status(self):
        return {"enabled": True, "failures": 0}


class FakeStream:
    def __init__(self, deltas, fail_after: Optional[int] = None):
        self._deltas = list(deltas)
        self._fail_after = fail_after
        self._pos = 0
        self.closed = False

    def next(self):
        if self._fail_after is not None and self._pos >= self._fail_after:
            raise UpstreamError("Model stream failed", "connection reset")
        if self._pos >= len(self._deltas):
            return None
        delta = self._deltas[self._pos]
        self._pos += 1
        return delta

    def close(self):
        self.closed = True


class FakeUpstream:
    """Scripted chat upstream: yields ``deltas`` and records requests."""

    def __init__(self, deltas=("Hello", "", " world"), fail_after=None, fail_open=False,
                 answer="Batch answer"):
        self.deltas = deltas
        self.fail_after = fail_after
        self.fail_open = fail_open
        self.answer = answer
        self.opened: List[list] = []
        self.completed: List[list] = []
        self.streams: List[FakeStream] = []

    def open_stream(self, messages):
        self.opened.append(messages)
        if self.fail_open:
            raise UpstreamError("Failed to generate interview response", "401 invalid api key")
        stream = FakeStream(self.deltas, self.fail_after)
        self.streams.append(stream)
        return stream

    def complete(self, messages):
        self.completed.append(messages)
        if self.fail_open:
            raise UpstreamError("Failed to generate interview response", "429 rate limited")
        return self.answer


class RecordingSink:
    def __init__(self):
        self.chunks = []
        self.errors = []
        self.closed = False

    def send_chunk(self, chunk):
        self.chunks.append(chunk)

    def send_error(self, error):
        self.errors.append(error)

    def close(self):
        self.closed = True


@pytest.fixture
def fake_cache():
    return FakeCache()


@pytest.fixture
def fake_upstream():
    return FakeUpstream()


@pytest.fixture
def sink():
    return RecordingSink()
