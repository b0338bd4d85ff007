import uuid

from loguru import logger
from sqlalchemy.ext.asyncio import async_sessionmaker

from .exceptions import ValidationError
from .results import failure_result
from .schemas import ActionResult
from .serializers import serialize_patient, serialize_visit
from .store import PatientStore, VisitStore

LANGUAGE_PREFS = ("de", "fr", "auto")


class VisitService:
    """Patients and the visit lifecycle, scoped to the calling practitioner."""

    def __init__(self, session_factory: async_sessionmaker):
        self.patients = PatientStore(session_factory)
        self.visits = VisitStore(session_factory)

    async def create_patient(self, owner_id: uuid.UUID, first_name: str, last_name: str) -> ActionResult:
        try:
            if not first_name.strip() or not last_name.strip():
                raise ValidationError("Le prénom et le nom sont requis.")
            patient = await self.patients.create(owner_id, first_name, last_name)
            logger.info(f"Patient {patient.id} created")
            return ActionResult.ok(serialize_patient(patient))
        except Exception as e:
            return failure_result(e, "create_patient")

    async def list_patients(self, owner_id: uuid.UUID) -> ActionResult:
        try:
            patients = await self.patients.list_for_owner(owner_id)
            return ActionResult.ok([serialize_patient(p) for p in patients])
        except Exception as e:
            return failure_result(e, "list_patients")

    async def create_visit(
        self,
        owner_id: uuid.UUID,
        patient_id: uuid.UUID,
        language_pref: str = "de",
    ) -> ActionResult:
        """
        Open a new visit in draft status.

        The patient must belong to owner_id.
        """
        try:
            if language_pref not in LANGUAGE_PREFS:
                raise ValidationError("Langue invalide.", context={"language_pref": language_pref})
            await self.patients.find_owned(patient_id, owner_id)
            visit = await self.visits.create(patient_id, owner_id, language_pref)
            logger.info(f"Visit {visit.id} created for patient {patient_id}")
            return ActionResult.ok(serialize_visit(visit))
        except Exception as e:
            return failure_result(e, "create_visit")

    async def get_visit(self, owner_id: uuid.UUID, visit_id: uuid.UUID) -> ActionResult:
        try:
            visit = await self.visits.find_owned(visit_id, owner_id)
            return ActionResult.ok(serialize_visit(visit))
        except Exception as e:
            return failure_result(e, "get_visit")

    async def list_visits_for_patient(self, owner_id: uuid.UUID, patient_id: uuid.UUID) -> ActionResult:
        try:
            await self.patients.find_owned(patient_id, owner_id)
            visits = await self.visits.list_for_patient(patient_id, owner_id)
            return ActionResult.ok([serialize_visit(v) for v in visits])
        except Exception as e:
            return failure_result(e, "list_visits_for_patient")

    async def update_visit_status(
        self,
        owner_id: uuid.UUID,
        visit_id: uuid.UUID,
        status: str,
    ) -> ActionResult:
        """Move a visit to status through the state machine."""
        try:
            visit = await self.visits.find_owned(visit_id, owner_id)
            visit = await self.visits.apply_transition(visit.id, status)
            logger.info(f"Visit {visit.id} is now {visit.status}")
            return ActionResult.ok(serialize_visit(visit))
        except Exception as e:
            return failure_result(e, "update_visit_status")
