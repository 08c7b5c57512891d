import logging
from collections import deque

from gatehouse.schemas.visitor import VisitorRequest

logger = logging.getLogger(__name__)


class LoggingGateway:
    """Fallback transport: writes outbound messages to the log and keeps the latest ones."""

    def __init__(self, keep: int = 100):
        self.sent: deque[dict] = deque(maxlen=keep)

    async def send_text(self, address: str, text: str) -> None:
        self.sent.append({"to": address, "text": text})
        logger.info("message to %s: %s", address, text)

    async def send_approval_request(self, address: str, request: VisitorRequest, text: str) -> None:
        self.sent.append({"to": address, "text": text, "requestId": request.id, "photoUrl": request.photo_reference})
        logger.info("approval request %s to %s: %s", request.id, address, text)
