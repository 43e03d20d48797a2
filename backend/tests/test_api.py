# backend/tests/test_api.py
"""
HTTP surface tests (LLM not configured, so analysis runs on heuristics and fallbacks):
1. Transcript tools
2. Calls
3. Uploads
4. Script writing
5. Voice webhook
6. Health checks
"""

import json
from unittest.mock import patch

from fastapi.testclient import TestClient

from pitchcoach.config import settings
from pitchcoach.main import app
from pitchcoach.utils.webhook_signature import SIGNATURE_HEADER, compute_webhook_signature

client = TestClient(app)

TRANSCRIPT = (
    "User: Hi, this is Sam from WebWorks, calling about your website.\n"
    "Prospect: We already have one.\n"
    "User: I understand. Would you be interested in a quick demo?"
)


def _create_call(**payload):
    response = client.post("/api/calls", json=payload or {"prospect_personality": "skeptical", "difficulty_level": 3})
    assert response.status_code == 200
    return response.json()


# ============================================================================
# 1. TRANSCRIPT TOOLS
# ============================================================================

class TestTranscriptEndpoints:

    def test_clean(self):
        response = client.post(
            "/api/transcripts/clean",
            json={"transcript": "User: User: hi there\nCORE PERSONALITY:\nBe rude.\n\nProspect: hello", "style": "said"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["text"] == "You said: hi there\nProspect said: hello"
        assert data["removed_sections"] == 1
        assert data["words_by_speaker"] == {"user": 2, "prospect": 1}

    def test_clean_rejects_unknown_style(self):
        response = client.post("/api/transcripts/clean", json={"transcript": "User: hi", "style": "fancy"})
        assert response.status_code == 422

    def test_finalize_with_iso_timestamp(self):
        messages = [
            {"type": "transcript", "role": "user", "transcript": "Hi there", "timestamp": "2024-01-01T00:00:00Z"},
        ]
        response = client.post("/api/transcripts/finalize", json={"call_session_id": "s-2", "messages": messages})
        assert response.status_code == 200
        assert response.json()["final_transcript"] == "Hi there"

    def test_finalize(self):
        messages = [
            {"type": "transcript", "role": "user", "transcript": "Hi there", "transcriptType": "final", "timestamp": 1000},
            {"type": "transcript", "role": "user", "transcript": "Hi there", "transcriptType": "final", "timestamp": 1200},
            {"type": "transcript", "role": "assistant", "transcript": "Who is this?", "transcriptType": "final", "timestamp": 2000},
            {"type": "status-update", "status": "ended"},
        ]
        response = client.post("/api/transcripts/finalize", json={"call_session_id": "s-1", "messages": messages})
        assert response.status_code == 200
        data = response.json()
        assert data["call_session_id"] == "s-1"
        assert data["status"] == "ended"
        assert data["final_transcript"] == "Hi there\n\nWho is this?"
        assert data["chunks"] == 2
        assert [p["speaker"] for p in data["paragraphs"]] == ["user", "prospect"]
        assert data["checksum"]

    def test_moments(self):
        response = client.post(
            "/api/transcripts/moments",
            json={"transcript": TRANSCRIPT, "personality": "skeptical"},
        )
        assert response.status_code == 200
        moments = response.json()["moments"]
        assert moments[0]["type"] == "objection"
        assert moments[0]["coaching"].startswith("This prospect raised an objection")

    def test_moments_requires_transcript(self):
        response = client.post("/api/transcripts/moments", json={"transcript": "   "})
        assert response.status_code == 400

    def test_objections(self):
        response = client.post(
            "/api/transcripts/objections",
            json={"message": "Honestly that's too expensive", "personality": "analytical"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["objections"][0]["type"] == "price"
        assert data["objections"][0]["coaching"]["technique"] == "ROI analysis"
        assert data["personality_guidance"]["tone"] == "Methodical and thorough"


# ============================================================================
# 2. CALLS
# ============================================================================

class TestCallEndpoints:

    def test_create_and_get_call(self):
        created = _create_call()
        assert created["status"] == "started"
        assert created["prospect_personality"] == "skeptical"

        response = client.get(f"/api/calls/{created['id']}")
        assert response.status_code == 200
        assert response.json()["id"] == created["id"]

    def test_get_missing_call(self):
        assert client.get("/api/calls/99999").status_code == 404

    def test_end_analysis_uses_heuristics_without_llm(self):
        call = _create_call()
        response = client.post(
            f"/api/calls/{call['id']}/end-analysis",
            json={"transcript": TRANSCRIPT, "duration": 61},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert data["analysis_source"] == "heuristic"
        assert data["duration_seconds"] == 61
        assert data["cleaned_transcript"].startswith("You said:")
        assert 0 <= data["overall_score"] <= 10

    def test_end_analysis_requires_transcript(self):
        call = _create_call()
        response = client.post(f"/api/calls/{call['id']}/end-analysis", json={})
        assert response.status_code == 400

    def test_end_analysis_missing_call(self):
        response = client.post("/api/calls/99999/end-analysis", json={"transcript": TRANSCRIPT})
        assert response.status_code == 404

    def test_coaching_without_transcript(self):
        call = _create_call()
        response = client.post(f"/api/calls/{call['id']}/coaching")
        assert response.status_code == 400

    def test_coaching_fallback_without_llm(self):
        call = _create_call()
        client.post(f"/api/calls/{call['id']}/end-analysis", json={"transcript": TRANSCRIPT})

        response = client.post(f"/api/calls/{call['id']}/coaching")
        assert response.status_code == 200
        data = response.json()
        assert data["call_id"] == call["id"]
        assert data["fallback_used"] is True
        assert len(data["coaching"]) == 1

    def test_replay(self):
        call = _create_call()
        client.post(f"/api/calls/{call['id']}/end-analysis", json={"transcript": TRANSCRIPT})

        response = client.get(f"/api/calls/{call['id']}/replay")
        assert response.status_code == 200
        data = response.json()
        assert [s["speaker"] for s in data["segments"]] == ["user", "prospect", "user"]
        last = data["segments"][-1]
        assert data["total_duration"] == round(last["timestamp"] + last["duration"], 3)

    def test_replay_without_transcript(self):
        call = _create_call()
        data = client.get(f"/api/calls/{call['id']}/replay").json()
        assert data["segments"] == []
        assert data["total_duration"] == 0.0


# ============================================================================
# 3. UPLOADS
# ============================================================================

class TestUploadEndpoints:

    UPLOAD_TRANSCRIPT = (
        "Hi, this is Sam from WebWorks. I noticed your site doesn't load on mobile. "
        "We're happy with it. Okay, thanks for your time."
    )

    def test_transcript_upload_uses_fallback_without_llm(self):
        response = client.post("/api/uploads", data={"transcript": self.UPLOAD_TRANSCRIPT})
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert data["fallback_used"] is True
        assert data["confidence_score"] == 50
        assert data["file_type"] == "text/plain"

        fetched = client.get(f"/api/uploads/{data['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["transcript"] == self.UPLOAD_TRANSCRIPT

    def test_requires_file_or_transcript(self):
        assert client.post("/api/uploads", data={"transcript": "  "}).status_code == 400

    def test_short_transcript(self):
        response = client.post("/api/uploads", data={"transcript": "hello?"})
        assert response.status_code == 400
        assert "too short" in response.json()["detail"]

    def test_unsupported_file_type(self):
        response = client.post("/api/uploads", files={"file": ("notes.txt", b"some notes", "text/plain")})
        assert response.status_code == 400

    def test_empty_file(self):
        response = client.post("/api/uploads", files={"file": ("call.mp3", b"", "audio/mpeg")})
        assert response.status_code == 400

    def test_audio_without_transcription_fails(self):
        # No OpenAI key: nothing can transcribe the recording
        response = client.post("/api/uploads", files={"file": ("call.mp3", b"ID3fakeaudio", "audio/mpeg")})
        assert response.status_code == 400

    def test_get_missing_upload(self):
        assert client.get("/api/uploads/99999").status_code == 404

    def test_reanalyze_requires_llm(self):
        created = client.post("/api/uploads", data={"transcript": self.UPLOAD_TRANSCRIPT}).json()

        response = client.post(f"/api/uploads/{created['id']}/reanalyze")

        assert response.status_code == 503
        fetched = client.get(f"/api/uploads/{created['id']}").json()
        assert fetched["status"] == "completed"
        assert fetched["fallback_used"] is True

    def test_reanalyze_missing_upload(self):
        assert client.post("/api/uploads/99999/reanalyze").status_code == 404


# ============================================================================
# 4. SCRIPTS
# ============================================================================

class TestScriptEndpoints:

    BRIEF = {
        "business_type": "Dental clinics",
        "product_service": "online booking software",
        "target_audience": "practice managers",
        "call_objective": "Book a 15 minute demo",
    }

    def test_generate_uses_template_without_llm(self):
        response = client.post("/api/scripts/generate", json=self.BRIEF)
        assert response.status_code == 200
        data = response.json()
        assert data["fallback_used"] is True
        assert data["script"].startswith("OPENING:")
        assert data["business_profile"]["target_audience"] == "practice managers"

    def test_generate_rejects_blank_brief_field(self):
        response = client.post("/api/scripts/generate", json={**self.BRIEF, "product_service": "  "})
        assert response.status_code == 422

    def test_analyze_uses_fallback_without_llm(self):
        response = client.post("/api/scripts/analyze", json={"script": "Hi, this is Sam from BookRight."})
        assert response.status_code == 200
        data = response.json()
        assert data["fallback_used"] is True
        assert data["analysis"]["overall_score"] == 5

    def test_analyze_requires_script(self):
        assert client.post("/api/scripts/analyze", json={"script": " "}).status_code == 400

    def test_rewrite_requires_llm(self):
        analysis = client.post("/api/scripts/analyze", json={"script": "Hi there."}).json()["analysis"]
        response = client.post("/api/scripts/rewrite", json={"original_script": "Hi there.", "analysis": analysis})
        assert response.status_code == 503

    def test_rewrite_requires_script(self):
        analysis = client.post("/api/scripts/analyze", json={"script": "Hi there."}).json()["analysis"]
        response = client.post("/api/scripts/rewrite", json={"original_script": "", "analysis": analysis})
        assert response.status_code == 400

    def test_objections_require_llm(self):
        response = client.post("/api/scripts/objections", json={**self.BRIEF, "type": "additional"})
        assert response.status_code == 503

    def test_objections_reject_unknown_batch(self):
        response = client.post("/api/scripts/objections", json={**self.BRIEF, "type": "lots"})
        assert response.status_code == 422


# ============================================================================
# 5. VOICE WEBHOOK
# ============================================================================

class TestVoiceWebhook:

    def _report(self, call_id):
        return {
            "message": {
                "type": "end-of-call-report",
                "call": {"id": "prov-9", "duration": 30, "metadata": {"callRecordId": str(call_id)}},
                "transcript": TRANSCRIPT,
            }
        }

    def test_end_of_call_report(self):
        call = _create_call()
        response = client.post("/api/webhooks/voice", json=self._report(call["id"]))
        assert response.status_code == 200
        assert response.json() == {"success": True, "call_id": call["id"], "analyzed": True}

        data = client.get(f"/api/calls/{call['id']}").json()
        assert data["provider_call_id"] == "prov-9"
        assert data["analysis_source"] == "heuristic"

    def test_other_events_are_acknowledged(self):
        response = client.post("/api/webhooks/voice", json={"message": {"type": "speech-update"}})
        assert response.status_code == 200
        assert response.json()["skipped"] == "unhandled event type"

    def test_invalid_json(self):
        response = client.post(
            "/api/webhooks/voice",
            content=b"not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400

    def test_signature_required_when_secret_set(self):
        body = json.dumps({"message": {"type": "speech-update"}}).encode("utf-8")
        with patch.object(settings, "VOICE_WEBHOOK_SECRET", "shh"):
            missing = client.post("/api/webhooks/voice", content=body)
            signed = client.post(
                "/api/webhooks/voice",
                content=body,
                headers={SIGNATURE_HEADER: compute_webhook_signature(body, "shh")},
            )
        assert missing.status_code == 403
        assert signed.status_code == 200


# ============================================================================
# 6. HEALTH
# ============================================================================

class TestHealthEndpoints:

    def test_root(self):
        data = client.get("/").json()
        assert data["status"] == "running"

    def test_health(self):
        data = client.get("/health").json()
        assert data["checks"]["database"] == "ok"
        assert data["status"] == "degraded"
        assert data["checks"]["config"]["openai_configured"] is False

    def test_health_simple(self):
        assert client.get("/health/simple").json() == {"status": "ok"}

    def test_health_all(self):
        data = client.get("/api/health").json()
        assert data["overall_status"] == "degraded"
        assert data["checks"]["database"]["status"] == "healthy"
        assert data["checks"]["openai"]["status"] == "unconfigured"

    def test_health_database(self):
        assert client.get("/api/health/database").json()["status"] == "healthy"

    def test_health_openai(self):
        assert client.get("/api/health/openai").json()["status"] == "unconfigured"
