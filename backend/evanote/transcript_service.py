from typing import Any, Dict, Optional
import uuid

from loguru import logger
from sqlalchemy.ext.asyncio import async_sessionmaker

from .exceptions import ValidationError
from .metrics import create_usage_metrics
from .results import failure_result
from .schemas import ActionResult
from .serializers import serialize_transcript
from .store import TranscriptStore, UsageStore, VisitStore
from .transcript_utils import clean_transcript, validate_transcript_length
from .transcription.base import BaseTranscriptionService
from .visit_state import VisitStatus


class TranscriptService:
    """
    Transcript ingestion for a visit.

    Text is cleaned and length-checked before it is stored. When the audio
    duration is known, an STT usage row is written as well.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        transcription_service: Optional[BaseTranscriptionService] = None,
        stt_model: Optional[str] = None,
    ):
        self.visits = VisitStore(session_factory)
        self.transcripts = TranscriptStore(session_factory)
        self.usage = UsageStore(session_factory)
        self.transcription_service = transcription_service
        self.stt_model = stt_model or (transcription_service.model_id if transcription_service else None)

    async def save_transcript(
        self,
        owner_id: uuid.UUID,
        visit_id: uuid.UUID,
        text: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ActionResult:
        """
        Clean, validate and store a transcript.

        Args:
            owner_id: Profile id of the calling practitioner
            visit_id: Visit the transcript belongs to
            text: Raw transcript
            metadata: Optional "raw_json", "language", "confidence" (0..1) and
                "duration_seconds"

        Returns:
            ActionResult with the stored transcript. A visit that was recording
            is moved to completed.
        """
        metadata = metadata or {}
        try:
            cleaned = clean_transcript(text)
            length_check = validate_transcript_length(cleaned)
            if not length_check.valid:
                raise ValidationError(length_check.error, context={"reason": length_check.reason.value})

            confidence = metadata.get("confidence")
            if confidence is not None and not 0 <= confidence <= 1:
                raise ValidationError(
                    "La confiance doit être comprise entre 0 et 1.",
                    context={"confidence": confidence},
                )

            visit = await self.visits.find_owned(visit_id, owner_id)

            transcript = await self.transcripts.add(
                visit.id,
                cleaned,
                raw_json=metadata.get("raw_json"),
                language=metadata.get("language"),
                confidence=confidence,
            )
            logger.info(f"Visit {visit.id}: transcript {transcript.id} saved ({length_check.length} chars)")

            duration = metadata.get("duration_seconds")
            if duration:
                await self.usage.record(
                    create_usage_metrics(visit.id, stt_model=self.stt_model, stt_seconds=duration)
                )

            if visit.status == VisitStatus.RECORDING.value:
                await self.visits.apply_transition(visit.id, VisitStatus.COMPLETED)

            return ActionResult.ok(serialize_transcript(transcript))
        except Exception as e:
            return failure_result(e, "save_transcript")

    async def transcribe_and_save(
        self,
        owner_id: uuid.UUID,
        visit_id: uuid.UUID,
        audio_data: str,
        mime_type: str = "audio/webm",
    ) -> ActionResult:
        """Run the configured transcription provider on base64 audio, then save_transcript."""
        try:
            if self.transcription_service is None:
                raise ValidationError("Aucun service de transcription configuré.")

            # Ownership is checked before the provider is called.
            await self.visits.find_owned(visit_id, owner_id)
            result = await self.transcription_service.transcribe(audio_data, mime_type)
        except Exception as e:
            return failure_result(e, "transcribe_and_save")

        return await self.save_transcript(
            owner_id,
            visit_id,
            result.text,
            metadata={
                "raw_json": result.raw,
                "language": result.language,
                "confidence": result.confidence,
                "duration_seconds": result.duration_seconds,
            },
        )

    async def list_transcripts(self, owner_id: uuid.UUID, visit_id: uuid.UUID) -> ActionResult:
        try:
            visit = await self.visits.find_owned(visit_id, owner_id)
            transcripts = await self.transcripts.list(visit.id)
            return ActionResult.ok([serialize_transcript(t) for t in transcripts])
        except Exception as e:
            return failure_result(e, "list_transcripts")

    async def update_recording_status(self, owner_id: uuid.UUID, visit_id: uuid.UUID) -> ActionResult:
        """Start recording: draft -> recording, sets started_at."""
        try:
            visit = await self.visits.find_owned(visit_id, owner_id)
            visit = await self.visits.apply_transition(visit.id, VisitStatus.RECORDING)
            return ActionResult.ok({"id": str(visit.id), "status": visit.status})
        except Exception as e:
            return failure_result(e, "update_recording_status")
