import logging

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from gatehouse.core.config import get_settings
from gatehouse.gateways.base import NotificationGateway, event_from_inbound
from gatehouse.schemas.decision import InboundMessage
from gatehouse.services.approval_engine import ApprovalCorrelationEngine
from gatehouse.services.notification_service import dashboard_patch, dispatch_outcome
from gatehouse.services.registry import get_approval_engine, get_gateway
from gatehouse.socket.server import sio

router = APIRouter()
settings = get_settings()
logger = logging.getLogger(__name__)


@router.post("/messages")
async def inbound_message(
    message: InboundMessage,
    engine: ApprovalCorrelationEngine = Depends(get_approval_engine),
    gateway: NotificationGateway = Depends(get_gateway),
):
    outcome = await run_in_threadpool(engine.handle_decision, event_from_inbound(message))
    delivered = await dispatch_outcome(gateway, outcome)
    if outcome.applied:
        try:
            await sio.emit("dashboard.patch", dashboard_patch(outcome.record), namespace=settings.DASHBOARD_NAMESPACE)
        except Exception:
            logger.exception("dashboard patch failed for request %s", outcome.request_id)
    return {
        "data": {
            "outcome": outcome.kind.value,
            "requestId": outcome.request_id,
            "status": outcome.record.status.value if outcome.record else None,
            "replyDelivered": delivered,
        }
    }
