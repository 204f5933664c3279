"""
Tests for the Flask JSON API.
"""

import base64
import time

import pytest

from conftest import FakeEmailSender, FakeLLM, FakeSynthesizer, FakeTranscriber
from undercurrent.agents.coaching import CoachingResponseGenerator
from undercurrent.agents.synthesis import CareerCanvasGenerator, SynthesisGenerator
from undercurrent.config import Settings, StorageSettings, resolve_secret_key
from undercurrent.exceptions import TranscriptionError
from undercurrent.services.interview_service import InterviewService
from undercurrent.storage.session_store import JsonSessionStore
from undercurrent.voice.voices import VoicePreferenceStore
from web_interview import TOKEN_HEADER, create_app


def build_app(store, tmp_path, llm=None, transcriber=None, synthesizer=None, timeout=2.0,
              secret_key="test-secret"):
    llm = llm or FakeLLM(json_reply={"key_insight": "Teach for a living."})
    service = InterviewService(
        store=store,
        coach=CoachingResponseGenerator(llm, timeout=timeout),
        synthesis=SynthesisGenerator(llm, timeout=timeout),
        canvas_generator=CareerCanvasGenerator(llm, timeout=timeout),
        synthesizer=synthesizer or FakeSynthesizer(),
        transcriber=transcriber or FakeTranscriber(),
        email_sender=FakeEmailSender(),
        voice_preferences=VoicePreferenceStore(tmp_path / "voices.json"),
        canvas_debounce=10,
    )
    app = create_app(service, secret_key=secret_key)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(store, tmp_path):
    return build_app(store, tmp_path).test_client()


def register(client, name="Alex", email="alex@example.com"):
    response = client.post("/api/users", json={"name": name, "email": email})
    assert response.status_code == 200
    return {TOKEN_HEADER: response.get_json()["token"]}


# ═══════════════════════════════════════════════════════════════
# AUTH & SESSION
# ═══════════════════════════════════════════════════════════════

class TestAuth:
    def test_index(self, client):
        assert client.get("/").get_json()["status"] == "ok"

    def test_missing_token(self, client):
        assert client.get("/api/session").status_code == 401

    def test_unknown_token(self, client):
        assert client.get("/api/session", headers={TOKEN_HEADER: "nope"}).status_code == 401

    def test_tampered_token(self, client):
        headers = register(client)
        headers[TOKEN_HEADER] += "x"
        assert client.get("/api/session", headers=headers).status_code == 401

    def test_token_from_other_key_rejected(self, store, tmp_path):
        headers = register(build_app(store, tmp_path, secret_key="key-one").test_client())
        other = build_app(store, tmp_path, secret_key="key-two").test_client()
        assert other.get("/api/session", headers=headers).status_code == 401

    def test_token_survives_restart(self, tmp_path):
        sessions = tmp_path / "sessions"
        client = build_app(JsonSessionStore(sessions), tmp_path).test_client()
        headers = register(client)
        for text in ("I lead a design team", "Yes, exactly"):
            client.post("/api/answer", json={"text": text, "with_audio": False}, headers=headers)

        restarted = build_app(JsonSessionStore(sessions), tmp_path).test_client()
        response = restarted.get("/api/session", headers=headers)
        assert response.status_code == 200
        assert response.get_json()["flow"]["question"]["id"] == 2
        assert restarted.post("/api/report/email", headers=headers).get_json() == {"success": True}

    def test_signing_key_generated_once(self, tmp_path, monkeypatch):
        monkeypatch.delenv("UNDERCURRENT_SECRET_KEY", raising=False)
        settings = Settings(storage=StorageSettings(data_dir=tmp_path))

        key = resolve_secret_key(settings)
        assert key
        assert resolve_secret_key(Settings(storage=StorageSettings(data_dir=tmp_path))) == key
        assert (tmp_path / "secret_key").read_text().strip() == key

    def test_signing_key_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("UNDERCURRENT_SECRET_KEY", "from-env")
        assert resolve_secret_key(Settings(storage=StorageSettings(data_dir=tmp_path))) == "from-env"
        assert not (tmp_path / "secret_key").exists()

    def test_invalid_email(self, client):
        response = client.post("/api/users", json={"name": "Alex", "email": "alex"})
        assert response.status_code == 400

    def test_session_state(self, client):
        headers = register(client)
        data = client.get("/api/session", headers=headers).get_json()
        assert data["flow"]["question"]["id"] == 1
        assert data["flow"]["prompt"].startswith("Welcome to Undercurrent.")
        assert data["session"]["current_question_id"] == 1


# ═══════════════════════════════════════════════════════════════
# INTERVIEW
# ═══════════════════════════════════════════════════════════════

class TestAnswer:
    def test_answer_then_follow_up(self, client):
        headers = register(client)

        data = client.post("/api/answer", json={"text": "I lead a design team"}, headers=headers).get_json()
        assert data["question_id"] == 1
        assert data["mode"] == "followup"
        assert base64.b64decode(data["audio"]) == b"ID3-fake-mp3"

        data = client.post("/api/answer", json={"text": "Yes, exactly"}, headers=headers).get_json()
        assert data["mode"] == "main"
        assert data["advanced"] is True

        flow = client.get("/api/session", headers=headers).get_json()["flow"]
        assert flow["question"]["id"] == 2

    def test_empty_answer_is_400(self, client):
        headers = register(client)
        response = client.post("/api/answer", json={"text": "  "}, headers=headers)
        assert response.status_code == 400
        assert "error" in response.get_json()

    def test_odyssey_outside_stage_is_409(self, client):
        headers = register(client)
        response = client.post("/api/odyssey/path", json={"text": "A future"}, headers=headers)
        assert response.status_code == 409

    def test_coach_failure_moves_on(self, store, tmp_path):
        client = build_app(store, tmp_path, llm=FakeLLM(error=RuntimeError("down"))).test_client()
        headers = register(client)

        data = client.post("/api/answer", json={"text": "An answer"}, headers=headers).get_json()
        assert data["coaching_failed"] is True
        assert data["ai_response"] is None
        assert client.get("/api/session", headers=headers).get_json()["flow"]["question"]["id"] == 2

    def test_slow_coach_does_not_hold_response(self, store, tmp_path):
        client = build_app(store, tmp_path, llm=FakeLLM(delay=1.5), timeout=0.1).test_client()
        headers = register(client)

        started = time.monotonic()
        data = client.post("/api/answer", json={"text": "An answer", "with_audio": False}, headers=headers).get_json()
        assert time.monotonic() - started < 1.0
        assert data["coaching_failed"] is True
        assert data["advanced"] is True

    def test_advance(self, client):
        headers = register(client)
        client.post("/api/answer", json={"text": "Answer", "with_audio": False}, headers=headers)
        assert client.post("/api/advance", headers=headers).get_json()["question"]["id"] == 2

    def test_reset(self, client):
        headers = register(client)
        client.post("/api/answer", json={"text": "Answer"}, headers=headers)
        client.post("/api/advance", headers=headers)

        data = client.post("/api/reset", headers=headers).get_json()
        assert data["success"] is True
        assert data["session"]["current_question_id"] == 1


# ═══════════════════════════════════════════════════════════════
# CANVAS, NEXT STEPS & REPORT
# ═══════════════════════════════════════════════════════════════

class TestCanvasAndReport:
    def test_canvas_update(self, client):
        headers = register(client)
        data = client.post("/api/canvas", json={"career_canvas": {"customers": "Founders"}}, headers=headers).get_json()
        assert data["filled"] == 1
        assert data["ready"] is False

    def test_canvas_must_be_object(self, client):
        headers = register(client)
        response = client.post("/api/canvas", json={"career_canvas": ["Founders"]}, headers=headers)
        assert response.status_code == 400

    def test_next_steps(self, client):
        headers = register(client)
        data = client.post(
            "/api/next-steps",
            json={"next_steps": [{"action": "Email Sam", "deadline": "Monday"}]},
            headers=headers,
        ).get_json()
        assert data["next_steps"][0] == {"action": "Email Sam", "deadline": "Monday"}
        assert len(data["next_steps"]) == 3

    def test_synthesis_and_email(self, client):
        headers = register(client)
        report = client.post("/api/synthesis", headers=headers).get_json()
        assert report["key_insight"] == "Teach for a living."
        assert report["zone_of_genius"] is None

        assert client.post("/api/report/email", headers=headers).get_json() == {"success": True}
        assert client.get("/api/session", headers=headers).get_json()["session"]["email_sent"] is True

    def test_slow_synthesis_is_502_without_waiting(self, store, tmp_path):
        client = build_app(store, tmp_path, llm=FakeLLM(delay=1.5), timeout=0.1).test_client()
        headers = register(client)

        started = time.monotonic()
        response = client.post("/api/synthesis", headers=headers)
        assert time.monotonic() - started < 1.0
        assert response.status_code == 502

    def test_synthesis_failure_is_502(self, store, tmp_path):
        client = build_app(store, tmp_path, llm=FakeLLM(error=RuntimeError("down"))).test_client()
        headers = register(client)
        response = client.post("/api/synthesis", headers=headers)
        assert response.status_code == 502
        assert response.get_json()["retryable"] is True


# ═══════════════════════════════════════════════════════════════
# VOICE
# ═══════════════════════════════════════════════════════════════

class TestVoice:
    def test_tts_returns_mp3(self, client):
        headers = register(client)
        response = client.post("/api/tts", json={"text": "Hello"}, headers=headers)
        assert response.status_code == 200
        assert response.mimetype == "audio/mpeg"
        assert response.data == b"ID3-fake-mp3"

    def test_tts_without_audio(self, store, tmp_path):
        client = build_app(store, tmp_path, synthesizer=FakeSynthesizer(audio=None)).test_client()
        headers = register(client)
        response = client.post("/api/tts", json={"text": "Hello"}, headers=headers)
        assert response.get_json() == {"error": "No audio generated"}

    def test_tts_status(self, client):
        assert client.get("/api/tts/status").get_json() == {"elevenlabs": True}

    def test_transcribe(self, client):
        headers = register(client)
        audio = base64.b64encode(b"webm-bytes").decode("ascii")
        data = client.post(
            "/api/transcribe", json={"audio": audio, "mime_type": "audio/webm"}, headers=headers
        ).get_json()
        assert data == {"text": "I want to build things"}

    def test_transcribe_requires_token(self, client):
        audio = base64.b64encode(b"webm-bytes").decode("ascii")
        assert client.post("/api/transcribe", json={"audio": audio}).status_code == 401

    def test_transcribe_bad_input(self, client):
        headers = register(client)
        assert client.post("/api/transcribe", json={}, headers=headers).status_code == 400
        assert client.post("/api/transcribe", json={"audio": "not base64!"}, headers=headers).status_code == 400

    def test_transcribe_failure_falls_back(self, store, tmp_path):
        transcriber = FakeTranscriber(error=TranscriptionError("No speech detected"))
        client = build_app(store, tmp_path, transcriber=transcriber).test_client()
        headers = register(client)
        audio = base64.b64encode(b"silence").decode("ascii")

        response = client.post("/api/transcribe", json={"audio": audio}, headers=headers)
        assert response.status_code == 200
        assert response.get_json() == {"error": "No speech detected", "text": ""}

    def test_voices(self, client):
        voices = client.get("/api/voices").get_json()["voices"]
        assert len(voices) == 5
        assert voices[0]["name"] == "Rachel"

    def test_set_voice(self, client):
        headers = register(client)
        assert client.get("/api/voice", headers=headers).get_json()["name"] == "Rachel"

        response = client.put("/api/voice", json={"voice_id": "VR6AewLTigWG4xSOukaG"}, headers=headers)
        assert response.get_json()["name"] == "Arnold"

        response = client.put("/api/voice", json={"voice_id": "bogus"}, headers=headers)
        assert response.status_code == 400
