# session.py
from __future__ import annotations
import base64
import binascii
import json
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Set

from errors import SinkClosed, TransportError, UpstreamError, ValidationError
from framing import analysis_frame, error_frame, frame
from models import RelayError, StreamChunk
from questions import extract_latest_question

logger = logging.getLogger(__name__)

AUDIO_FLUSH_SEGMENTS = 10

Sender = Callable[[str], None]
Transcriber = Callable[[bytes], str]


class SocketSink:
    """Relay sink that writes each event as a framed socket message."""

    def __init__(self, send: Sender, question: Optional[str]):
        self._send = send
        self.question = question
        self.closed = False

    def _emit(self, data: str):
        if self.closed:
            raise SinkClosed()
        try:
            self._send(data)
        except (ConnectionError, OSError) as e:
            self.closed = True
            raise SinkClosed() from e

    def send_chunk(self, chunk: StreamChunk):
        self._emit(analysis_frame(chunk, self.question))

    def send_error(self, error: RelayError):
        self._emit(error_frame(error.message, error.details))

    def close(self):
        self.closed = True


class ConnectionSession:
    """State for one live socket connection.

    The audio buffer belongs to this session only; ``_lock`` keeps appends and
    the flush at ``flush_segments`` atomic when the server dispatches events
    for one client on several threads. Relays still writing to this
    connection are tracked so ``close`` can abandon them.
    """

    def __init__(self, sid: str, send: Sender, engine, transcriber: Transcriber,
                 flush_segments: int = AUDIO_FLUSH_SEGMENTS):
        self.sid = sid
        self.send = send
        self.engine = engine
        self.transcriber = transcriber
        self.flush_segments = flush_segments
        self.audio_buffer: List[bytes] = []
        self._sinks: Set[SocketSink] = set()
        self.closed = False
        self._lock = threading.Lock()

    # -------- lifecycle --------
    def open(self):
        logger.info("[%s] connection established", self.sid)
        self.send(frame("connection_status", {"status": "connected"}))

    def close(self):
        with self._lock:
            self.closed = True
            self.audio_buffer = []
            sinks, self._sinks = self._sinks, set()
        for sink in sinks:
            sink.close()
        logger.info("[%s] connection closed", self.sid)

    # -------- inbound --------
    def _parse(self, raw: Any) -> Dict[str, Any]:
        if isinstance(raw, (bytes, bytearray)):
            try:
                raw = bytes(raw).decode("utf-8")
            except UnicodeDecodeError:
                raise TransportError("Invalid message format")
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except ValueError:
                raise TransportError("Invalid message format")
        if not isinstance(raw, dict):
            raise TransportError("Invalid message format")
        if not raw.get("type") or not raw.get("payload"):
            raise TransportError("Message must include type and payload")
        return raw

    def handle(self, raw: Any):
        """Dispatch one inbound envelope. Never raises for client mistakes."""
        try:
            message = self._parse(raw)
            kind, payload = message["type"], message["payload"]
            if kind == "transcript_analysis":
                self.handle_transcript_analysis(payload)
            elif kind == "audio_data":
                self.handle_audio_data(payload)
            else:
                logger.warning("[%s] unknown message type: %s", self.sid, kind)
                self.send(error_frame("Unknown message type"))
        except (TransportError, ValidationError) as e:
            logger.warning("[%s] rejected message: %s", self.sid, e.message)
            self.send(error_frame("Failed to process message", e.message))
        except SinkClosed:
            logger.info("[%s] connection gone, dropping message", self.sid)
        except Exception as e:
            logger.exception("[%s] message handling crashed", self.sid)
            self.send(error_frame("Failed to process message", str(e)))

    def handle_transcript_analysis(self, payload: Any):
        if not isinstance(payload, dict) or not str(payload.get("text") or "").strip():
            raise TransportError("Transcript analysis requires text")
        text = payload["text"]
        sink = SocketSink(self.send, extract_latest_question(text))
        with self._lock:
            if self.closed:
                sink.close()
            self._sinks.add(sink)
        try:
            self.engine.run(text, payload.get("context"), payload.get("fullTranscript"), sink=sink)
        finally:
            with self._lock:
                self._sinks.discard(sink)

    def handle_audio_data(self, payload: Any):
        segment = self._audio_bytes(payload)
        with self._lock:
            self.audio_buffer.append(segment)
            if len(self.audio_buffer) < self.flush_segments:
                return
            chunk = b"".join(self.audio_buffer)
            self.audio_buffer = []
        self._transcribe(chunk)

    def _audio_bytes(self, payload: Any) -> bytes:
        if isinstance(payload, (bytes, bytearray)):
            return bytes(payload)
        if isinstance(payload, str):
            try:
                return base64.b64decode(payload, validate=True)
            except (binascii.Error, ValueError):
                raise TransportError("Audio data must be binary or base64")
        raise TransportError("Audio data must be binary or base64")

    def _transcribe(self, chunk: bytes):
        try:
            text = self.transcriber(chunk)
        except UpstreamError as e:
            logger.error("[%s] audio transcription error: %s", self.sid, e.details or e.message)
            self.send(error_frame("Transcription failed"))
            return
        except Exception:
            logger.exception("[%s] audio transcription crashed", self.sid)
            self.send(error_frame("Transcription failed"))
            return
        self.send(frame("transcript", {"text": text}))
