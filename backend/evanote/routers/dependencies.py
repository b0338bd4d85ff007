import uuid
from typing import Optional
from fastapi import Header, Request
from fastapi.responses import JSONResponse

from ..identity import resolve_owner_id
from ..schemas import ActionResult
from ..soap_service import SoapNoteService
from ..transcript_service import TranscriptService
from ..visit_service import VisitService

# ActionResult.code -> HTTP status
STATUS_CODES = {
    "unauthenticated": 401,
    "not_found": 404,
    "validation_error": 422,
    "generation_failed": 502,
    "schema_violation": 502,
    "transcription_failed": 502,
    "persistence_error": 500,
    "configuration_error": 500,
    "internal_error": 500,
}


def to_response(result: ActionResult, success_status: int = 200) -> JSONResponse:
    """Serialize an ActionResult with the HTTP status matching its code."""
    status_code = success_status if result.success else STATUS_CODES.get(result.code, 500)
    return JSONResponse(status_code=status_code, content=result.model_dump())


async def get_owner_id(request: Request, x_user_id: Optional[str] = Header(default=None)) -> uuid.UUID:
    return await resolve_owner_id(request.app.state.profiles, x_user_id)


def get_soap_service(request: Request) -> SoapNoteService:
    return request.app.state.soap_service


def get_visit_service(request: Request) -> VisitService:
    return request.app.state.visit_service


def get_transcript_service(request: Request) -> TranscriptService:
    return request.app.state.transcript_service
