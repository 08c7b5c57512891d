import logging

from gatehouse.gateways.base import NotificationGateway
from gatehouse.schemas.visitor import VisitorRequest
from gatehouse.services.approval_engine import NotificationIntent, Outcome

logger = logging.getLogger(__name__)


def approval_request_text(request: VisitorRequest) -> str:
    return (
        "🏢 *Visitor Request Received* \n\n"
        f"👤 *Name:* {request.visitor_name}\n"
        f"🏠 *Flat:* {request.unit_number}\n"
        f"📝 *Purpose:* {request.purpose}"
    )


async def send_intent(gateway: NotificationGateway, intent: NotificationIntent | None) -> bool:
    """Deliver a reply; a failed delivery never undoes the decision that produced it."""
    if intent is None:
        return False
    try:
        await gateway.send_text(intent.recipient, intent.text)
        return True
    except Exception:
        logger.exception("failed to deliver reply to %s", intent.recipient)
        return False


async def dispatch_outcome(gateway: NotificationGateway, outcome: Outcome) -> bool:
    return await send_intent(gateway, outcome.reply)


async def send_approval_request(gateway: NotificationGateway, address: str, request: VisitorRequest) -> bool:
    try:
        await gateway.send_approval_request(address, request, approval_request_text(request))
        return True
    except Exception:
        logger.exception("failed to send approval request %s to %s", request.id, address)
        return False


def dashboard_patch(request: VisitorRequest) -> dict:
    return {
        "data": {
            "activity": [
                {
                    "id": request.id,
                    "event": f"Visitor {request.visitor_name} for flat {request.unit_number}",
                    "time": (request.decided_at or request.created_at).isoformat(),
                    "state": request.status.value,
                }
            ]
        }
    }
