from typing import Any, Dict, Optional
import uuid

from loguru import logger
from sqlalchemy.ext.asyncio import async_sessionmaker

from .exceptions import (
    GenerationFailure,
    InvalidStatusTransition,
    PersistenceError,
    SchemaViolation,
    ValidationError,
)
from .metrics import create_usage_metrics
from .notification.service import VisitNotifier
from .results import failure_result
from .schemas import ActionResult, GenerationOptions, validate_soap
from .serializers import serialize_note
from .soap_formatter import (
    format_soap_as_json,
    format_soap_as_markdown,
    format_soap_for_copy,
    format_soap_with_metadata,
    validate_soap_completeness,
)
from .soap_generation import SoapGenerator
from .store import NoteStore, TranscriptStore, UsageStore, VisitStore
from .transcript_utils import clean_transcript, fingerprint, validate_transcript_length
from .visit_state import VisitStatus

EXPORT_FORMATS = ("text", "markdown", "json", "metadata")


class SoapNoteService:
    """
    Transcript to SOAP note pipeline.

    Every public method returns an ActionResult and never raises, except for
    cancellation. The steps of a generation run are not wrapped in a
    transaction: each store call commits on its own, and the visit status is
    the last thing written on success.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        generator: SoapGenerator,
        notifier: Optional[VisitNotifier] = None,
    ):
        self.generator = generator
        self.notifier = notifier
        self.visits = VisitStore(session_factory)
        self.transcripts = TranscriptStore(session_factory)
        self.notes = NoteStore(session_factory)
        self.usage = UsageStore(session_factory)

    async def _notify(self, visit_id, status: str, message: str = ""):
        if self.notifier is not None:
            await self.notifier.publish(visit_id, status, message)

    async def generate_soap_note(
        self,
        owner_id: uuid.UUID,
        visit_id: uuid.UUID,
        raw_text: str,
        options: Optional[GenerationOptions] = None,
    ) -> ActionResult:
        """
        Generate a new SOAP note version for a visit.

        Steps: ownership check, idempotency short-circuit (same transcript as
        the latest stored one and a note newer than it exists), transcript
        persistence, status -> processing, generation with retries, note
        append, usage row, status -> completed.

        Args:
            owner_id: Profile id of the calling practitioner
            visit_id: Visit to generate for
            raw_text: Transcript or typed notes
            options: Language, detail level, body region, persist_transcript, force

        Returns:
            ActionResult with the serialized note on success
        """
        options = options or GenerationOptions()
        try:
            visit = await self.visits.find_owned(visit_id, owner_id)

            if not options.force:
                existing = await self._find_idempotent_note(visit.id, raw_text)
                if existing is not None:
                    logger.info(f"Visit {visit.id}: transcript unchanged, returning note v{existing['version']}")
                    return ActionResult.ok(existing)

            cleaned = clean_transcript(raw_text)
            length_check = validate_transcript_length(cleaned)
            if not length_check.valid:
                raise ValidationError(
                    length_check.error,
                    context={"visit_id": visit.id, "reason": length_check.reason.value},
                )

            if options.persist_transcript:
                language = options.language if options.language in ("de", "fr") else None
                await self.transcripts.add(visit.id, cleaned, language=language)
                logger.info(f"Visit {visit.id}: transcript saved ({length_check.length} chars)")

            await self.visits.apply_transition(visit.id, VisitStatus.PROCESSING)
            await self._notify(visit.id, VisitStatus.PROCESSING.value, "Génération de la note SOAP en cours...")
            logger.info(f"Visit {visit.id}: generating SOAP note")

            try:
                generated = await self.generator.generate_with_retry(
                    raw_text,
                    language=options.language or visit.language_pref,
                    detail=options.detail,
                    body_region=options.body_region,
                )
            except (GenerationFailure, ValidationError) as e:
                logger.error(f"Visit {visit.id}: SOAP generation failed ({e.code})")
                await self._mark_failed(visit.id)
                return failure_result(e, "generate_soap_note")

            note = await self.notes.append_next(visit.id, generated.soap.model_dump(), generated.model)
            logger.info(f"Visit {visit.id}: stored note v{note.version} ({generated.attempts} attempt(s))")

            await self._record_usage(visit.id, generated)

            await self.visits.apply_transition(visit.id, VisitStatus.COMPLETED, settle=True)
            await self._notify(visit.id, VisitStatus.COMPLETED.value, f"Note SOAP v{note.version} générée.")

            return ActionResult.ok(serialize_note(note))
        except Exception as e:
            return failure_result(e, "generate_soap_note")

    async def regenerate_soap_note(
        self,
        owner_id: uuid.UUID,
        visit_id: uuid.UUID,
        raw_text: Optional[str] = None,
        options: Optional[GenerationOptions] = None,
    ) -> ActionResult:
        """
        Run the pipeline again for a visit.

        Without raw_text the latest stored transcript is reused and not stored
        again. Unless options.force is set, an unchanged transcript returns the
        latest note instead of generating a new version.
        """
        options = options or GenerationOptions()
        try:
            if raw_text is None:
                visit = await self.visits.find_owned(visit_id, owner_id)
                latest = await self.transcripts.latest(visit.id)
                if latest is None:
                    raise ValidationError(
                        "Aucun transcript disponible pour cette visite.",
                        context={"visit_id": visit.id},
                    )
                raw_text = latest.text
                options = options.model_copy(update={"persist_transcript": False})
        except Exception as e:
            return failure_result(e, "regenerate_soap_note")

        return await self.generate_soap_note(owner_id, visit_id, raw_text, options)

    async def finalize_note(self, owner_id: uuid.UUID, note_id: uuid.UUID) -> ActionResult:
        """Mark a note final. Finalizing an already final note succeeds without a write."""
        try:
            note = await self.notes.get_owned(note_id, owner_id)
            if not note.is_final:
                note = await self.notes.mark_final(note.id)
                logger.info(f"Note {note.id} (visit {note.visit_id}) finalized")
            return ActionResult.ok(serialize_note(note))
        except Exception as e:
            return failure_result(e, "finalize_note")

    async def update_soap_note(
        self,
        owner_id: uuid.UUID,
        note_id: uuid.UUID,
        soap: Dict[str, Any],
    ) -> ActionResult:
        """
        Replace the SOAP payload of a note after a manual edit.

        The payload goes through the same validator as generated output.
        Finalized notes cannot be edited.
        """
        try:
            try:
                validated = validate_soap(soap)
            except SchemaViolation as e:
                raise ValidationError(e.user_message, context={"field": e.field}) from e

            note = await self.notes.get_owned(note_id, owner_id)
            if note.is_final:
                raise ValidationError(
                    "Une note finalisée ne peut plus être modifiée.",
                    context={"note_id": note.id, "reason": "note_finalized"},
                )

            note = await self.notes.update_soap(note.id, validated.model_dump())
            logger.info(f"Note {note.id} (visit {note.visit_id}) edited manually")
            return ActionResult.ok(serialize_note(note))
        except Exception as e:
            return failure_result(e, "update_soap_note")

    async def get_latest_note(self, owner_id: uuid.UUID, visit_id: uuid.UUID) -> ActionResult:
        """data is None when the visit has no note yet."""
        try:
            visit = await self.visits.find_owned(visit_id, owner_id)
            note = await self.notes.latest(visit.id)
            return ActionResult.ok(serialize_note(note) if note is not None else None)
        except Exception as e:
            return failure_result(e, "get_latest_note")

    async def list_note_versions(self, owner_id: uuid.UUID, visit_id: uuid.UUID) -> ActionResult:
        try:
            visit = await self.visits.find_owned(visit_id, owner_id)
            notes = await self.notes.list_versions(visit.id)
            return ActionResult.ok([serialize_note(note) for note in notes])
        except Exception as e:
            return failure_result(e, "list_note_versions")

    async def export_note(
        self,
        owner_id: uuid.UUID,
        note_id: uuid.UUID,
        fmt: str = "text",
        language: str = "de",
    ) -> ActionResult:
        """
        Render a note for copy/paste or download.

        Args:
            fmt: "text", "markdown", "json" or "metadata" (text with a header block)
            language: Header language, "de" or "fr"
        """
        try:
            if fmt not in EXPORT_FORMATS:
                raise ValidationError(
                    "Format d'export inconnu.",
                    context={"format": fmt},
                )

            note = await self.notes.get_owned(note_id, owner_id)
            soap = note.soap

            if fmt == "markdown":
                content = format_soap_as_markdown(soap, language)
            elif fmt == "json":
                content = format_soap_as_json(soap)
            elif fmt == "metadata":
                content = format_soap_with_metadata(
                    soap,
                    model=note.model,
                    version=note.version,
                    created_at=note.created_at,
                    language=language,
                )
            else:
                content = format_soap_for_copy(soap, language=language)

            completeness = validate_soap_completeness(soap)
            return ActionResult.ok({
                "note_id": str(note.id),
                "format": fmt,
                "content": content,
                "complete": completeness.complete,
                "missing_sections": completeness.missing_sections,
            })
        except Exception as e:
            return failure_result(e, "export_note")

    async def _find_idempotent_note(self, visit_id: uuid.UUID, raw_text: str) -> Optional[Dict[str, Any]]:
        latest_transcript = await self.transcripts.latest(visit_id)
        if latest_transcript is None:
            return None
        if fingerprint(raw_text) != fingerprint(latest_transcript.text):
            return None
        latest_note = await self.notes.latest(visit_id)
        if latest_note is None or latest_note.created_at < latest_transcript.created_at:
            # The latest transcript never produced a note
            return None
        return serialize_note(latest_note)

    async def _mark_failed(self, visit_id: uuid.UUID):
        try:
            await self.visits.apply_transition(visit_id, VisitStatus.FAILED)
        except InvalidStatusTransition as e:
            # An overlapping run already stored a note and completed the visit
            logger.warning(f"Visit {visit_id}: failed status not recorded, visit is {e.current}")
            return
        except PersistenceError as e:
            logger.error(f"Visit {visit_id}: could not record failed status ({e.code})")
        await self._notify(visit_id, VisitStatus.FAILED.value, "La génération de la note SOAP a échoué.")

    async def _record_usage(self, visit_id: uuid.UUID, generated):
        metrics = create_usage_metrics(
            visit_id,
            llm_model=generated.model,
            tokens_in=generated.tokens_in,
            tokens_out=generated.tokens_out,
        )
        try:
            await self.usage.record(metrics)
        except PersistenceError as e:
            # The note is already stored; a missing accounting row does not fail the run.
            logger.error(f"Visit {visit_id}: usage metrics not recorded ({e.code})")
