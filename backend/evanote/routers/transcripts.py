import uuid
from fastapi import APIRouter, Depends

from ..schemas import TranscriptCreateRequest, TranscriptionRequest
from ..transcript_service import TranscriptService
from .dependencies import get_owner_id, get_transcript_service, to_response

# Create router
router = APIRouter(
    prefix="/api/visits/{visit_id}/transcripts",
    tags=["transcripts"],
)


@router.post("")
async def save_transcript(
    visit_id: uuid.UUID,
    request: TranscriptCreateRequest,
    owner_id: uuid.UUID = Depends(get_owner_id),
    service: TranscriptService = Depends(get_transcript_service),
):
    """
    Store a transcript produced on the client (e.g. after a streaming session).
    """
    result = await service.save_transcript(
        owner_id,
        visit_id,
        request.text,
        metadata={
            "raw_json": request.raw_json,
            "language": request.language,
            "confidence": request.confidence,
        },
    )
    return to_response(result, success_status=201)


@router.post("/transcribe")
async def transcribe_audio(
    visit_id: uuid.UUID,
    request: TranscriptionRequest,
    owner_id: uuid.UUID = Depends(get_owner_id),
    service: TranscriptService = Depends(get_transcript_service),
):
    """
    Transcribe base64 audio with the configured provider and store the result.
    """
    result = await service.transcribe_and_save(owner_id, visit_id, request.audio_data, request.mime_type)
    return to_response(result, success_status=201)


@router.get("")
async def list_transcripts(
    visit_id: uuid.UUID,
    owner_id: uuid.UUID = Depends(get_owner_id),
    service: TranscriptService = Depends(get_transcript_service),
):
    return to_response(await service.list_transcripts(owner_id, visit_id))
