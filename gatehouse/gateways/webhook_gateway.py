import asyncio
import json
import logging
from urllib import error, request

from gatehouse.gateways.base import APPROVAL_FOOTER, POLL_OPTIONS, POLL_TITLE, GatewayError
from gatehouse.schemas.visitor import VisitorRequest

logger = logging.getLogger(__name__)


class WebhookGateway:
    """Hands outbound messages to an HTTP chat bridge.

    The bridge owns the chat connection and posts residents' replies back to
    ``/webhooks/messages``.
    """

    def __init__(self, url: str, token: str = "", timeout: float = 10.0):
        if not url:
            raise ValueError("CHAT_BRIDGE_URL is required for the webhook transport")
        self.url = url
        self.token = token
        self.timeout = timeout

    async def send_text(self, address: str, text: str) -> None:
        await self._post({"to": address, "text": text})

    async def send_approval_request(self, address: str, request: VisitorRequest, text: str) -> None:
        await self._post(
            {
                "to": address,
                "text": text,
                "footer": APPROVAL_FOOTER,
                "mediaUrl": request.photo_reference or None,
                "caption": f"📸 Photo of visitor: {request.visitor_name}",
                "buttons": [{"id": "approve", "text": "Approve"}, {"id": "reject", "text": "Reject"}],
                "poll": {"title": POLL_TITLE, "options": list(POLL_OPTIONS)},
                "requestId": request.id,
            }
        )

    async def _post(self, payload: dict) -> None:
        await asyncio.to_thread(self._post_sync, payload)

    def _post_sync(self, payload: dict) -> None:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        req = request.Request(
            self.url,
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers=headers,
        )
        try:
            with request.urlopen(req, timeout=self.timeout) as resp:
                resp.read()
        except error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="ignore")
            raise GatewayError(f"Chat bridge rejected message ({exc.code}): {detail}") from exc
        except (error.URLError, OSError) as exc:
            raise GatewayError(f"Chat bridge unreachable: {exc}") from exc
        logger.debug("chat bridge accepted message to %s", payload.get("to"))
