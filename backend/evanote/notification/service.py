import json
from typing import Optional
from loguru import logger
from .sse_manager import SSEManager, sse_manager


class VisitNotifier:
    """
    Publishes visit status changes to SSE subscribers.

    Publishing is best effort: a failure is logged and never propagates into
    the pipeline that triggered it.
    """

    def __init__(self, manager: Optional[SSEManager] = None):
        self.manager = manager or sse_manager

    async def publish(self, visit_id, status: str, message: str = ""):
        """Formats and sends a visit status notification."""
        payload = {
            "type": "visit_update",
            "visit_id": str(visit_id),
            "status": status,  # e.g., "processing", "completed", "failed"
            "message": message,
        }
        try:
            await self.manager.send(str(visit_id), json.dumps(payload))
            logger.info(f"Sent visit notification for {visit_id}: Status - {status}")
        except Exception as e:
            logger.warning(f"Could not publish notification for visit {visit_id}: {e}")

    @staticmethod
    def heartbeat(visit_id) -> str:
        """Heartbeat message for a new subscriber, confirms the connection is active."""
        payload = {
            "type": "heartbeat",
            "visit_id": str(visit_id),
            "status": "connected",
            "message": "Connection established",
        }
        return json.dumps(payload)
