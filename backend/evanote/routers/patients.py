import uuid
from fastapi import APIRouter, Depends

from ..schemas import PatientCreateRequest
from ..visit_service import VisitService
from .dependencies import get_owner_id, get_visit_service, to_response

# Create router
router = APIRouter(
    prefix="/api/patients",
    tags=["patients"],
)


@router.post("")
async def create_patient(
    request: PatientCreateRequest,
    owner_id: uuid.UUID = Depends(get_owner_id),
    service: VisitService = Depends(get_visit_service),
):
    """
    Create a patient for the calling practitioner.
    """
    result = await service.create_patient(owner_id, request.first_name, request.last_name)
    return to_response(result, success_status=201)


@router.get("")
async def list_patients(
    owner_id: uuid.UUID = Depends(get_owner_id),
    service: VisitService = Depends(get_visit_service),
):
    """
    List the caller's patients, sorted by name.
    """
    return to_response(await service.list_patients(owner_id))


@router.get("/{patient_id}/visits")
async def list_patient_visits(
    patient_id: uuid.UUID,
    owner_id: uuid.UUID = Depends(get_owner_id),
    service: VisitService = Depends(get_visit_service),
):
    return to_response(await service.list_visits_for_patient(owner_id, patient_id))
