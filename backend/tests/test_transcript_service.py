"""
Tests for transcript ingestion and the Deepgram batch provider.
"""
import base64

import httpx
import pytest
import sqlalchemy as sa

from evanote.config import Settings
from evanote.exceptions import ConfigurationError, TranscriptionError, ValidationError
from evanote.models import UsageMetric
from evanote.store import VisitStore
from evanote.transcript_service import TranscriptService
from evanote.transcription import DummyTranscriptionService, get_transcription_service
from evanote.transcription.deepgram import DeepgramTranscriptionService

from conftest import TRANSCRIPT

AUDIO = base64.b64encode(b"RIFF....WAVEfmt fake audio bytes").decode("ascii")

DEEPGRAM_RESPONSE = {
    "metadata": {"duration": 12.4},
    "results": {
        "channels": [
            {
                "detected_language": "de",
                "alternatives": [
                    {"transcript": "Ähm die Schulter links schmerzt beim Heben des Arms.", "confidence": 0.93}
                ],
            }
        ]
    },
}


def deepgram(handler, **kwargs) -> DeepgramTranscriptionService:
    return DeepgramTranscriptionService(
        api_key="dg-key",
        model="nova-3",
        language="de",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


async def test_deepgram_request_and_result():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["authorization"]
        seen["content_type"] = request.headers["content-type"]
        seen["params"] = dict(request.url.params)
        seen["body"] = request.content
        return httpx.Response(200, json=DEEPGRAM_RESPONSE)

    result = await deepgram(handler).transcribe(AUDIO, "audio/wav")

    assert seen["auth"] == "Token dg-key"
    assert seen["content_type"] == "audio/wav"
    assert seen["params"]["model"] == "nova-3"
    assert seen["params"]["language"] == "de"
    assert seen["body"] == base64.b64decode(AUDIO)
    assert result.text.startswith("Ähm die Schulter")
    assert result.confidence == 0.93
    assert result.duration_seconds == 12.4
    assert result.language == "de"


async def test_deepgram_rejects_long_recordings():
    service = deepgram(lambda request: httpx.Response(200, json=DEEPGRAM_RESPONSE), max_duration_seconds=10)
    with pytest.raises(ValidationError):
        await service.transcribe(AUDIO)


async def test_deepgram_rejects_invalid_audio():
    with pytest.raises(ValidationError):
        await deepgram(lambda request: httpx.Response(200, json={})).transcribe("not base64 !!")


async def test_deepgram_http_error():
    with pytest.raises(TranscriptionError):
        await deepgram(lambda request: httpx.Response(401, json={"err_msg": "bad key"})).transcribe(AUDIO)


def test_transcription_factory():
    settings = Settings(_env_file=None, DEEPGRAM_API_KEY="dg-key", DEEPGRAM_MODEL="nova-2")
    service = get_transcription_service("deepgram", settings)
    assert service.model_id == "deepgram:nova-2"
    assert isinstance(get_transcription_service("dummy", settings), DummyTranscriptionService)

    with pytest.raises(ConfigurationError):
        get_transcription_service("deepgram", Settings(_env_file=None, DEEPGRAM_API_KEY=None))
    with pytest.raises(ConfigurationError):
        get_transcription_service("whisper", settings)


async def test_save_transcript_records_stt_usage(session_factory, visit):
    service = TranscriptService(session_factory, stt_model="deepgram:nova-3")
    visits = VisitStore(session_factory)
    await visits.apply_transition(visit.visit_id, "recording")

    result = await service.save_transcript(
        visit.owner_id,
        visit.visit_id,
        TRANSCRIPT,
        metadata={"language": "de", "confidence": 0.88, "duration_seconds": 12.4, "raw_json": {"x": 1}},
    )

    assert result.success, result.error
    assert result.data["text"].startswith("der Patient")
    assert result.data["confidence"] == 0.88
    assert "raw_json" not in result.data

    async with session_factory() as session:
        usage = (await session.execute(sa.select(UsageMetric))).scalar_one()
    assert usage.stt_seconds == 12
    assert usage.stt_model == "deepgram:nova-3"
    assert usage.stt_cost_cents == 1

    # A recording visit is closed once its transcript is saved
    assert (await visits.find_owned(visit.visit_id, visit.owner_id)).status == "completed"


async def test_save_transcript_validation(session_factory, visit):
    service = TranscriptService(session_factory)

    too_short = await service.save_transcript(visit.owner_id, visit.visit_id, "äh kurz")
    assert too_short.code == "validation_error"

    bad_confidence = await service.save_transcript(
        visit.owner_id, visit.visit_id, TRANSCRIPT, metadata={"confidence": 1.5}
    )
    assert bad_confidence.code == "validation_error"

    foreign = await service.save_transcript(visit.other_owner_id, visit.visit_id, TRANSCRIPT)
    assert foreign.code == "not_found"


async def test_transcribe_and_save_with_dummy_provider(session_factory, visit):
    service = TranscriptService(session_factory, DummyTranscriptionService())

    result = await service.transcribe_and_save(visit.owner_id, visit.visit_id, AUDIO)

    assert result.success
    assert "rechten Knie" in result.data["text"]
    listed = await service.list_transcripts(visit.owner_id, visit.visit_id)
    assert len(listed.data) == 1


async def test_recording_status_sets_started_at(session_factory, visit):
    service = TranscriptService(session_factory)

    result = await service.update_recording_status(visit.owner_id, visit.visit_id)

    assert result.data["status"] == "recording"
    stored = await VisitStore(session_factory).find_owned(visit.visit_id, visit.owner_id)
    assert stored.started_at is not None
