from typing import Optional
from fastapi import APIRouter, Header, Request
from pydantic import BaseModel

from ..identity import ensure_profile
from ..results import failure_result
from ..schemas import ActionResult
from .dependencies import to_response

router = APIRouter(
    prefix="/api/profiles",
    tags=["profiles"],
)


class ProfileRequest(BaseModel):
    full_name: Optional[str] = None


@router.post("/me")
async def register_profile(
    request: Request,
    body: Optional[ProfileRequest] = None,
    x_user_id: Optional[str] = Header(default=None),
):
    """
    Create the practitioner profile for the signed-in user, or return the existing one.
    """
    try:
        profile = await ensure_profile(
            request.app.state.profiles,
            x_user_id,
            body.full_name if body else None,
        )
        result = ActionResult.ok({
            "id": str(profile.id),
            "external_user_id": profile.external_user_id,
            "full_name": profile.full_name,
        })
    except Exception as e:
        result = failure_result(e, "register_profile")
    return to_response(result)
