# app.py
from __future__ import annotations
import base64
import binascii
import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask, Response, jsonify, request, stream_with_context
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_socketio import SocketIO
from flask_talisman import Talisman

# --- Load env BEFORE importing config (so config sees env) ---
ENV_PATH = Path(__file__).with_name(".env")
load_dotenv(ENV_PATH)

# --- Local modules ---
from config import DevConfig, ProdConfig, TestConfig, validate_required_secrets
from helpers import _iso_now
from errors import AssistError, ValidationError
from models import RelayError, RequestContext
from framing import SSE_HEADERS, error_frame, sse_completion, sse_content, sse_error
from cache_service import CacheStore
from llm_client import OpenAIChatUpstream, api_available, transcribe_audio
from relay import RelayEngine
from session import ConnectionSession
from storage import add_session, drop_session, get_session

# ------------------------------
# App / Config
# ------------------------------
app = Flask(__name__)
ENV = os.getenv("ENV", "dev")
app.config.from_object({"prod": ProdConfig, "test": TestConfig}.get(ENV, DevConfig))
validate_required_secrets()  # raises only when ENV=prod and secrets missing

logging.basicConfig(
    level=app.config.get("LOG_LEVEL", "INFO"),
    format="%(asctime)s [%(name)s] %(levelname)s %(message)s",
)
logger = logging.getLogger("app")

limiter = Limiter(key_func=get_remote_address, app=app, default_limits=[app.config["RATELIMIT_DEFAULT"]])

CORS(
    app,
    resources={r"/*": {"origins": app.config["CORS_ORIGINS"] or "*"}},
    supports_credentials=False,
    allow_headers=["Authorization", "Content-Type"],
    methods=["GET", "POST", "OPTIONS"],
)

IS_PROD = ENV == "prod" and not app.config.get("DEBUG", False)

# Security headers; JSON + SSE only, so the CSP stays minimal
Talisman(
    app,
    force_https=IS_PROD,
    content_security_policy={
        "default-src": ["'self'"],
        "connect-src": ["'self'", "https:", "wss:"] if IS_PROD else ["'self'", "http://localhost:*", "ws://localhost:*"],
        "frame-ancestors": ["'none'"],
    },
    session_cookie_secure=IS_PROD,
    frame_options="DENY",
    referrer_policy="strict-origin-when-cross-origin",
)

app.url_map.strict_slashes = False

socketio = SocketIO(app, cors_allowed_origins=app.config["CORS_ORIGINS"] or "*")

# ------------------------------
# Relay wiring (one cache + one engine per process)
# ------------------------------
cache = CacheStore.from_config(app.config)
engine = RelayEngine(
    upstream=OpenAIChatUpstream.from_config(app.config),
    cache=cache,
    ttl_seconds=app.config["CACHE_TTL_SECONDS"],
    history_turns=app.config["HISTORY_TURNS"],
)

@app.errorhandler(AssistError)
def handle_assist_error(err: AssistError):
    body = err.to_dict()
    body["timestamp"] = _iso_now()
    return jsonify(body), err.status_code

# ------------------------------
# Health
# ------------------------------
@app.get("/")
@app.get("/api/health")
def health():
    return jsonify({
        "status": "healthy",
        "timestamp": _iso_now(),
        "apiAvailable": api_available(),
        "cache": cache.status(),
    })

# ------------------------------
# Meeting assist (SSE or batch)
# ------------------------------
def _wants_stream(data: dict) -> bool:
    flag = data.get("stream")
    if flag is None:
        return True
    if isinstance(flag, str):
        return flag.strip().lower() not in ("false", "0", "no")
    return bool(flag)

def _sse_stream(events, ctx: RequestContext):
    try:
        for event in events:
            if isinstance(event, RelayError):
                yield sse_error(event)
                return
            if event.content:
                yield sse_content(event, ctx)
            if event.is_final:
                yield sse_completion()
    except Exception as e:
        logger.exception("Streaming error")
        yield sse_error(RelayError("Streaming error occurred", str(e)))
    finally:
        # client disconnects land here via GeneratorExit; stop pulling upstream
        events.close()

@app.post("/api/meeting/assist")
@limiter.limit("30/minute")
def meeting_assist():
    data = request.get_json(force=True, silent=True) or {}
    text = data.get("text")
    context = data.get("context")
    transcript = data.get("fullTranscript")
    logger.info("assist request chars=%d turns=%d stream=%s",
                len(str(text or "")), len(transcript or []) if isinstance(transcript, list) else 0,
                data.get("stream", True))

    if not _wants_stream(data):
        return jsonify(engine.complete(text, context, transcript))

    ctx = RequestContext.from_dict(context)
    events = engine.relay(text, ctx, transcript)  # ValidationError -> 400 before any streaming
    return Response(
        stream_with_context(_sse_stream(events, ctx)),
        mimetype="text/event-stream",
        headers=SSE_HEADERS,
    )

# ------------------------------
# Transcription (one-shot)
# ------------------------------
@app.post("/api/meeting/transcribe")
@limiter.limit("30/minute")
def meeting_transcribe():
    data = request.get_json(force=True, silent=True) or {}
    audio_b64 = data.get("audioData") or ""
    try:
        audio = base64.b64decode(audio_b64, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("audioData must be base64")
    if not audio:
        raise ValidationError("audioData is required")
    return jsonify({"transcript": transcribe_audio(audio)})

# ------------------------------
# Socket transport
# ------------------------------
def _sender(sid: str):
    def send(data: str):
        socketio.emit("message", data, to=sid)
    return send

def _transcribe(audio: bytes) -> str:
    return transcribe_audio(audio)

@socketio.on("connect")
def sio_connect(auth=None):
    sid = request.sid
    session = add_session(ConnectionSession(
        sid, _sender(sid), engine, _transcribe,
        flush_segments=app.config["AUDIO_FLUSH_SEGMENTS"],
    ))
    session.open()
    return True

@socketio.on("message")
@socketio.on("json")
def sio_message(data):
    session = get_session(request.sid)
    if session is None:
        socketio.emit("message", error_frame("Unknown session"), to=request.sid)
        return
    session.handle(data)

@socketio.on("disconnect")
def sio_disconnect(*args):
    session = drop_session(request.sid)
    if session is not None:
        session.close()

# ------------------------------
# Entrypoint
# ------------------------------
if __name__ == "__main__":
    socketio.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")), debug=app.config.get("DEBUG", False))
