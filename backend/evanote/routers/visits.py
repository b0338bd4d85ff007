import uuid
from fastapi import APIRouter, Depends

from ..schemas import VisitCreateRequest, VisitStatusUpdateRequest
from ..transcript_service import TranscriptService
from ..visit_service import VisitService
from .dependencies import get_owner_id, get_transcript_service, get_visit_service, to_response

# Create router
router = APIRouter(
    prefix="/api/visits",
    tags=["visits"],
)


@router.post("")
async def create_visit(
    request: VisitCreateRequest,
    owner_id: uuid.UUID = Depends(get_owner_id),
    service: VisitService = Depends(get_visit_service),
):
    """
    Open a visit in draft status for one of the caller's patients.
    """
    result = await service.create_visit(owner_id, request.patient_id, request.language_pref)
    return to_response(result, success_status=201)


@router.get("/{visit_id}")
async def get_visit(
    visit_id: uuid.UUID,
    owner_id: uuid.UUID = Depends(get_owner_id),
    service: VisitService = Depends(get_visit_service),
):
    return to_response(await service.get_visit(owner_id, visit_id))


@router.patch("/{visit_id}/status")
async def update_visit_status(
    visit_id: uuid.UUID,
    request: VisitStatusUpdateRequest,
    owner_id: uuid.UUID = Depends(get_owner_id),
    service: VisitService = Depends(get_visit_service),
):
    """
    Change the visit status. Only transitions allowed by the state machine succeed.
    """
    return to_response(await service.update_visit_status(owner_id, visit_id, request.status))


@router.post("/{visit_id}/recording")
async def start_recording(
    visit_id: uuid.UUID,
    owner_id: uuid.UUID = Depends(get_owner_id),
    service: TranscriptService = Depends(get_transcript_service),
):
    """
    Mark the visit as recording (sets started_at on the first start).
    """
    return to_response(await service.update_recording_status(owner_id, visit_id))
