import uuid
from fastapi import APIRouter, Depends, Query

from ..schemas import SOAPGenerateRequest, SOAPRegenerateRequest, SoapNote
from ..soap_service import SoapNoteService
from .dependencies import get_owner_id, get_soap_service, to_response

# Create router
router = APIRouter(
    prefix="/api",
    tags=["soap"],
)


@router.post("/visits/{visit_id}/soap")
async def generate_soap_note(
    visit_id: uuid.UUID,
    request: SOAPGenerateRequest,
    owner_id: uuid.UUID = Depends(get_owner_id),
    service: SoapNoteService = Depends(get_soap_service),
):
    """
    Generate a SOAP note for a visit.

    Returns the latest note unchanged when the transcript matches the last
    stored one, unless options.force is set.
    """
    result = await service.generate_soap_note(owner_id, visit_id, request.raw_text, request.options)
    return to_response(result)


@router.post("/visits/{visit_id}/soap/regenerate")
async def regenerate_soap_note(
    visit_id: uuid.UUID,
    request: SOAPRegenerateRequest,
    owner_id: uuid.UUID = Depends(get_owner_id),
    service: SoapNoteService = Depends(get_soap_service),
):
    """
    Regenerate from new text, or from the latest stored transcript when raw_text is omitted.
    """
    result = await service.regenerate_soap_note(owner_id, visit_id, request.raw_text, request.options)
    return to_response(result)


@router.get("/visits/{visit_id}/soap")
async def get_latest_note(
    visit_id: uuid.UUID,
    owner_id: uuid.UUID = Depends(get_owner_id),
    service: SoapNoteService = Depends(get_soap_service),
):
    return to_response(await service.get_latest_note(owner_id, visit_id))


@router.get("/visits/{visit_id}/soap/versions")
async def list_note_versions(
    visit_id: uuid.UUID,
    owner_id: uuid.UUID = Depends(get_owner_id),
    service: SoapNoteService = Depends(get_soap_service),
):
    return to_response(await service.list_note_versions(owner_id, visit_id))


@router.put("/notes/{note_id}")
async def update_soap_note(
    note_id: uuid.UUID,
    soap: SoapNote,
    owner_id: uuid.UUID = Depends(get_owner_id),
    service: SoapNoteService = Depends(get_soap_service),
):
    """
    Save a manual edit of a note. Finalized notes are read-only.
    """
    return to_response(await service.update_soap_note(owner_id, note_id, soap.model_dump()))


@router.post("/notes/{note_id}/finalize")
async def finalize_note(
    note_id: uuid.UUID,
    owner_id: uuid.UUID = Depends(get_owner_id),
    service: SoapNoteService = Depends(get_soap_service),
):
    return to_response(await service.finalize_note(owner_id, note_id))


@router.get("/notes/{note_id}/export")
async def export_note(
    note_id: uuid.UUID,
    format: str = Query(default="text"),
    language: str = Query(default="de", pattern=r"^(de|fr)$"),
    owner_id: uuid.UUID = Depends(get_owner_id),
    service: SoapNoteService = Depends(get_soap_service),
):
    """
    Render a note as text, markdown, json or text with a metadata header.
    """
    return to_response(await service.export_note(owner_id, note_id, format, language))
