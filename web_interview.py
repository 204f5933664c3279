#!/usr/bin/env python3
"""
Undercurrent - voice-driven career discovery interview (web API)

Features:
- Main interview: 18 questions across 8 sections, each answer gets a short
  spoken coaching reply and an optional follow-up
- Odyssey Plans: describe and rate three possible five-year futures
- Career Canvas, next steps and a synthesis report sent by email
- Voice output via ElevenLabs, voice input via Whisper

Run:
    python3 web_interview.py

Then call the JSON API on: http://localhost:5001
"""

import asyncio
import base64
import binascii
import threading

from flask import Flask, Response, jsonify, request
from itsdangerous import BadSignature, URLSafeSerializer

from undercurrent.config import get_settings, resolve_secret_key
from undercurrent.exceptions import (
    FlowStateError,
    SessionUnavailableError,
    StoreError,
    SynthesisUnavailableError,
    TranscriptionError,
    ValidationError,
)
from undercurrent.logging_config import configure_logging
from undercurrent.services import InterviewService, build_service

TOKEN_HEADER = "X-User-Token"
TOKEN_SALT = "undercurrent-user-token"


def _submit_result_json(result) -> dict:
    return {
        "question_id": result.question_id,
        "mode": result.mode.value,
        "stage": result.stage.value,
        "ai_response": result.ai_response,
        "audio": base64.b64encode(result.audio).decode("ascii") if result.audio else None,
        "coaching_failed": result.coaching_failed,
        "advanced": result.advanced,
        "warnings": result.warnings,
    }


def create_app(service: InterviewService = None, secret_key: str = None) -> Flask:
    """
    Build the Flask app.

    User tokens are signed user ids, so they stay valid across restarts and
    on every instance that shares the secret key.

    Args:
        service: Interview service; built from the environment on first use when omitted
        secret_key: Token signing key; resolved from settings on first use when omitted
    """
    app = Flask(__name__)

    state = {"service": service, "signer": None}
    state_lock = threading.Lock()

    def get_service() -> InterviewService:
        with state_lock:
            if state["service"] is None:
                settings = get_settings()
                configure_logging(settings.log_level, settings.json_logs)
                state["service"] = build_service(settings)
            return state["service"]

    def get_signer() -> URLSafeSerializer:
        with state_lock:
            if state["signer"] is None:
                key = secret_key or resolve_secret_key(get_settings())
                app.secret_key = key
                state["signer"] = URLSafeSerializer(key, salt=TOKEN_SALT)
            return state["signer"]

    def current_user():
        token = request.headers.get(TOKEN_HEADER, "")
        if not token:
            return None
        try:
            user_id = get_signer().loads(token)
        except BadSignature:
            return None
        return user_id if isinstance(user_id, str) and user_id else None

    def require_user():
        user_id = current_user()
        if user_id is None:
            return None, (jsonify({"error": "Missing or invalid user token"}), 401)
        return user_id, None

    def body() -> dict:
        return request.get_json(silent=True) or {}

    # ── Errors ──────────────────────────────────────────────────

    @app.errorhandler(ValidationError)
    def handle_validation(e):
        return jsonify({"error": str(e)}), 400

    @app.errorhandler(FlowStateError)
    def handle_state(e):
        return jsonify({"error": str(e)}), 409

    @app.errorhandler(SessionUnavailableError)
    def handle_session_unavailable(e):
        return jsonify({"error": str(e)}), 503

    @app.errorhandler(StoreError)
    def handle_store(e):
        return jsonify({"error": str(e)}), 500

    @app.errorhandler(SynthesisUnavailableError)
    def handle_synthesis(e):
        return jsonify({"error": str(e), "retryable": True}), 502

    # ── Users & session ─────────────────────────────────────────

    @app.route("/")
    def index():
        return jsonify({"name": "Undercurrent", "status": "ok"})

    @app.route("/api/users", methods=["POST"])
    def register_user():
        data = body()
        profile = get_service().register_user(
            name=data.get("name", ""),
            email=data.get("email", ""),
        )
        token = get_signer().dumps(profile.user_id)
        return jsonify({"token": token, "user": profile.to_dict()})

    @app.route("/api/session", methods=["GET"])
    def get_session():
        user_id, error = require_user()
        if error:
            return error
        return jsonify(get_service().get_state(user_id))

    @app.route("/api/reset", methods=["POST"])
    def reset_session():
        user_id, error = require_user()
        if error:
            return error
        session = get_service().reset(user_id)
        return jsonify({"success": True, "session": session.to_dict()})

    # ── Interview ───────────────────────────────────────────────

    @app.route("/api/answer", methods=["POST"])
    def submit_answer():
        user_id, error = require_user()
        if error:
            return error
        data = body()
        result = asyncio.run(get_service().submit_answer(
            user_id,
            data.get("text", ""),
            with_audio=bool(data.get("with_audio", True)),
        ))
        return jsonify(_submit_result_json(result))

    @app.route("/api/advance", methods=["POST"])
    def advance():
        user_id, error = require_user()
        if error:
            return error
        return jsonify(get_service().advance(user_id))

    @app.route("/api/odyssey/path", methods=["POST"])
    def odyssey_path():
        user_id, error = require_user()
        if error:
            return error
        return jsonify(get_service().submit_odyssey_path(user_id, body().get("text", "")))

    @app.route("/api/odyssey/rating", methods=["POST"])
    def odyssey_rating():
        user_id, error = require_user()
        if error:
            return error
        data = body()
        return jsonify(get_service().rate_odyssey(user_id, data.get("dimension", ""), data.get("value")))

    @app.route("/api/odyssey/finish", methods=["POST"])
    def odyssey_finish():
        user_id, error = require_user()
        if error:
            return error
        return jsonify(get_service().finish_odyssey_path(user_id))

    # ── Canvas, next steps & report ─────────────────────────────

    @app.route("/api/canvas", methods=["POST"])
    def update_canvas():
        user_id, error = require_user()
        if error:
            return error
        fields = body().get("career_canvas", {})
        if not isinstance(fields, dict):
            return jsonify({"error": "career_canvas must be an object"}), 400
        return jsonify(get_service().update_canvas(user_id, fields))

    @app.route("/api/canvas/generate", methods=["POST"])
    def generate_canvas():
        user_id, error = require_user()
        if error:
            return error
        suggestions = asyncio.run(get_service().generate_canvas(user_id))
        return jsonify({"career_canvas": suggestions})

    @app.route("/api/next-steps", methods=["POST"])
    def save_next_steps():
        user_id, error = require_user()
        if error:
            return error
        steps = body().get("next_steps", [])
        if not isinstance(steps, list):
            return jsonify({"error": "next_steps must be a list"}), 400
        saved = get_service().save_next_steps(user_id, steps)
        return jsonify({"next_steps": [{"action": s.action, "deadline": s.deadline} for s in saved]})

    @app.route("/api/synthesis", methods=["POST"])
    def generate_synthesis():
        user_id, error = require_user()
        if error:
            return error
        report = asyncio.run(get_service().generate_synthesis(user_id))
        return jsonify(report.to_dict())

    @app.route("/api/report/email", methods=["POST"])
    def send_report():
        user_id, error = require_user()
        if error:
            return error
        return jsonify(asyncio.run(get_service().send_report(user_id)))

    # ── Voice ───────────────────────────────────────────────────

    @app.route("/api/tts", methods=["POST"])
    def text_to_speech():
        """Generate speech audio using ElevenLabs (returns MP3)."""
        user_id, error = require_user()
        if error:
            return error
        data = body()
        text = data.get("text", "")
        if not text:
            return jsonify({"error": "No text provided"}), 400

        audio_bytes = asyncio.run(get_service().speak_text(user_id, text, data.get("voice_id")))
        if not audio_bytes:
            return jsonify({"error": "No audio generated"}), 200
        return Response(audio_bytes, mimetype="audio/mpeg")

    @app.route("/api/tts/status", methods=["GET"])
    def tts_status():
        return jsonify({"elevenlabs": get_service().tts_available})

    @app.route("/api/transcribe", methods=["POST"])
    def transcribe_audio():
        """Transcribe base64 audio with Whisper. Failures fall back to typed input."""
        user_id, error = require_user()
        if error:
            return error
        data = body()
        audio_b64 = data.get("audio", "")
        if not audio_b64:
            return jsonify({"error": "No audio data"}), 400

        try:
            audio_bytes = base64.b64decode(audio_b64, validate=True)
        except (binascii.Error, ValueError):
            return jsonify({"error": "Audio is not valid base64"}), 400

        try:
            text = asyncio.run(get_service().transcribe(audio_bytes, data.get("mime_type", "audio/webm")))
        except TranscriptionError as e:
            return jsonify({"error": str(e), "text": ""}), 200
        return jsonify({"text": text})

    @app.route("/api/voices", methods=["GET"])
    def list_voices():
        return jsonify({"voices": [v.to_dict() for v in get_service().list_voices()]})

    @app.route("/api/voice", methods=["GET", "PUT"])
    def user_voice():
        user_id, error = require_user()
        if error:
            return error
        if request.method == "PUT":
            voice = get_service().set_voice(user_id, body().get("voice_id", ""))
        else:
            voice = get_service().get_voice(user_id)
        return jsonify(voice.to_dict())

    return app


app = create_app()


if __name__ == '__main__':
    print("""
╔═══════════════════════════════════════════════════════════════╗
║     UNDERCURRENT - CAREER DISCOVERY INTERVIEW                  ║
╠═══════════════════════════════════════════════════════════════╣
║  Voice Input: Client microphone → Whisper transcription        ║
║  Voice Output: ElevenLabs text-to-speech                       ║
║  Also works with typed answers                                 ║
╠═══════════════════════════════════════════════════════════════╣
║  Sections 1-8: Main interview with coaching replies            ║
║  Odyssey Plans: Three futures, rated on four dimensions        ║
║  Report: Career Canvas, next steps and synthesis by email      ║
╚═══════════════════════════════════════════════════════════════╝

Starting web server...

API available on: http://localhost:5001

Press Ctrl+C to stop the server.
    """)

    app.run(debug=True, host='0.0.0.0', port=5001)
