"""
HTTP surface: routing, identity header, status codes and the ActionResult body.
"""
import pytest
from fastapi.testclient import TestClient

from evanote.config import Settings
from evanote.main import create_app
from evanote.soap_processor.base import TransportError
from evanote.transcription import DummyTranscriptionService

from conftest import TRANSCRIPT, RecordingSleep, ScriptedProcessor, success

OWNER = {"X-User-Id": "user_owner"}
OTHER = {"X-User-Id": "user_other"}


def make_client(database_url, processor):
    settings = Settings(
        _env_file=None,
        DATABASE_URL=database_url,
        SOAP_PROVIDER="mock",
        TRANSCRIPTION_PROVIDER="dummy",
        LOG_FILE="",
        LOG_LEVEL="WARNING",
    )
    app = create_app(
        settings,
        soap_processor=processor,
        transcription_service=DummyTranscriptionService(),
        sleep=RecordingSleep(),
    )
    return TestClient(app)


@pytest.fixture
def processor():
    return ScriptedProcessor(success())


@pytest.fixture
def client(database_url, processor):
    with make_client(database_url, processor) as test_client:
        assert test_client.post("/api/profiles/me", headers=OWNER, json={"full_name": "Dr. Muster"}).status_code == 200
        assert test_client.post("/api/profiles/me", headers=OTHER).status_code == 200
        yield test_client


def create_visit(client) -> str:
    patient = client.post("/api/patients", headers=OWNER, json={"first_name": "Anna", "last_name": "Beispiel"})
    assert patient.status_code == 201
    visit = client.post("/api/visits", headers=OWNER, json={"patient_id": patient.json()["data"]["id"]})
    assert visit.status_code == 201
    assert visit.json()["data"]["status"] == "draft"
    return visit.json()["data"]["id"]


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["model"] == "azure:gpt-4o-mini-eu"
    assert response.json()["transcription_model"] == "dummy:placeholder"


def test_profile_registration_is_idempotent(client):
    first = client.post("/api/profiles/me", headers=OWNER).json()["data"]
    assert first["external_user_id"] == "user_owner"
    assert first["full_name"] == "Dr. Muster"


def test_missing_identity_is_401(client):
    response = client.get("/api/patients")
    assert response.status_code == 401
    assert response.json() == {
        "success": False,
        "data": None,
        "error": "Non authentifié. Veuillez vous connecter.",
        "code": "unauthenticated",
    }

    unknown = client.get("/api/patients", headers={"X-User-Id": "nobody"})
    assert unknown.status_code == 401


def test_generate_and_read_back(client, processor):
    visit_id = create_visit(client)

    response = client.post(f"/api/visits/{visit_id}/soap", headers=OWNER, json={"raw_text": TRANSCRIPT})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["version"] == 1
    assert body["data"]["soap"]["plan"].startswith("Manuelle Therapie")

    visit = client.get(f"/api/visits/{visit_id}", headers=OWNER).json()["data"]
    assert visit["status"] == "completed"

    latest = client.get(f"/api/visits/{visit_id}/soap", headers=OWNER).json()["data"]
    assert latest["id"] == body["data"]["id"]

    transcripts = client.get(f"/api/visits/{visit_id}/transcripts", headers=OWNER).json()["data"]
    assert len(transcripts) == 1
    assert not transcripts[0]["text"].startswith("Ähm")
    assert len(processor.calls) == 1


def test_other_practitioner_gets_404(client):
    visit_id = create_visit(client)

    response = client.post(f"/api/visits/{visit_id}/soap", headers=OTHER, json={"raw_text": TRANSCRIPT})
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"
    assert client.get(f"/api/visits/{visit_id}", headers=OTHER).status_code == 404


def test_short_transcript_is_422(client):
    visit_id = create_visit(client)

    response = client.post(f"/api/visits/{visit_id}/soap", headers=OWNER, json={"raw_text": "Ähm kurz."})
    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"
    assert client.get(f"/api/visits/{visit_id}", headers=OWNER).json()["data"]["status"] == "draft"


def test_generation_failure_is_502(database_url):
    failing = ScriptedProcessor(TransportError(error=RuntimeError("upstream down")))
    with make_client(database_url, failing) as test_client:
        test_client.post("/api/profiles/me", headers=OWNER)
        visit_id = create_visit(test_client)

        response = test_client.post(f"/api/visits/{visit_id}/soap", headers=OWNER, json={"raw_text": TRANSCRIPT})
        assert response.status_code == 502
        assert response.json()["code"] == "generation_failed"
        assert len(failing.calls) == 3

        visit = test_client.get(f"/api/visits/{visit_id}", headers=OWNER).json()["data"]
        assert visit["status"] == "failed"


def test_edit_finalize_and_export(client):
    visit_id = create_visit(client)
    note = client.post(f"/api/visits/{visit_id}/soap", headers=OWNER, json={"raw_text": TRANSCRIPT}).json()["data"]

    edited = dict(note["soap"], plan="Kontrolle in einer Woche.")
    response = client.put(f"/api/notes/{note['id']}", headers=OWNER, json=edited)
    assert response.status_code == 200
    assert response.json()["data"]["soap"]["plan"] == "Kontrolle in einer Woche."

    export = client.get(f"/api/notes/{note['id']}/export", headers=OWNER, params={"format": "markdown"})
    assert export.status_code == 200
    assert export.json()["data"]["content"].startswith("## Subjektiv")
    assert export.json()["data"]["complete"] is True

    final = client.post(f"/api/notes/{note['id']}/finalize", headers=OWNER)
    assert final.json()["data"]["is_final"] is True

    locked = client.put(f"/api/notes/{note['id']}", headers=OWNER, json=note["soap"])
    assert locked.status_code == 422


def test_edit_with_extra_field_is_rejected(client):
    visit_id = create_visit(client)
    note = client.post(f"/api/visits/{visit_id}/soap", headers=OWNER, json={"raw_text": TRANSCRIPT}).json()["data"]

    response = client.put(f"/api/notes/{note['id']}", headers=OWNER, json=dict(note["soap"], extra="x"))
    assert response.status_code == 422


def test_transcribe_with_dummy_provider(client):
    visit_id = create_visit(client)
    assert client.post(f"/api/visits/{visit_id}/recording", headers=OWNER).json()["data"]["status"] == "recording"

    response = client.post(
        f"/api/visits/{visit_id}/transcripts/transcribe",
        headers=OWNER,
        json={"audio_data": "AAAA", "mime_type": "audio/webm"},
    )
    assert response.status_code == 201
    assert "rechten Knie" in response.json()["data"]["text"]

    visit = client.get(f"/api/visits/{visit_id}", headers=OWNER).json()["data"]
    assert visit["status"] == "completed"
    assert visit["started_at"] is not None


def test_invalid_status_transition_is_422(client):
    visit_id = create_visit(client)

    response = client.patch(f"/api/visits/{visit_id}/status", headers=OWNER, json={"status": "failed"})
    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


def test_patient_and_visit_listing(client):
    visit_id = create_visit(client)

    patients = client.get("/api/patients", headers=OWNER).json()["data"]
    assert [p["last_name"] for p in patients] == ["Beispiel"]
    assert client.get("/api/patients", headers=OTHER).json()["data"] == []

    visits = client.get(f"/api/patients/{patients[0]['id']}/visits", headers=OWNER).json()["data"]
    assert [v["id"] for v in visits] == [visit_id]
    assert client.get(f"/api/patients/{patients[0]['id']}/visits", headers=OTHER).status_code == 404
