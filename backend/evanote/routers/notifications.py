import asyncio
import uuid
from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from loguru import logger

from ..notification.service import VisitNotifier
from ..visit_service import VisitService
from .dependencies import get_owner_id, get_visit_service, to_response

router = APIRouter(
    prefix="/api/notifications",
    tags=["notifications"],
)


async def event_generator(request: Request, channel: str, queue: asyncio.Queue):
    """Yields messages from the subscriber's queue as SSE events."""
    manager = request.app.state.sse_manager
    try:
        while True:
            # Check if client is still connected before waiting
            if await request.is_disconnected():
                logger.info(f"Subscriber of {channel} disconnected.")
                break

            message = await queue.get()
            yield f"data: {message}\n\n"  # SSE format: "data: <json_string>\n\n"
            queue.task_done()
    finally:
        # Clean up connection on generator exit/cancellation
        await manager.disconnect(channel, queue)


@router.get("/visits/{visit_id}")
async def visit_events(
    request: Request,
    visit_id: uuid.UUID,
    owner_id: uuid.UUID = Depends(get_owner_id),
    service: VisitService = Depends(get_visit_service),
):
    """Server-sent events with the status updates of one of the caller's visits."""
    result = await service.get_visit(owner_id, visit_id)
    if not result.success:
        return to_response(result)

    channel = str(visit_id)
    queue = await request.app.state.sse_manager.connect(channel)
    await queue.put(VisitNotifier.heartbeat(visit_id))

    return StreamingResponse(
        event_generator(request, channel, queue),
        media_type="text/event-stream",
        headers={
            'Cache-Control': 'no-cache',
            'Connection': 'keep-alive',
            'X-Accel-Buffering': 'no'
        }  # Disable buffering
    )
