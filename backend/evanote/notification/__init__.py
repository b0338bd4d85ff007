"""Server-sent visit status notifications."""

from .sse_manager import SSEManager, sse_manager
from .service import VisitNotifier
