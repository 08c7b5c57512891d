import logging

from starlette.concurrency import run_in_threadpool

from gatehouse.core.config import get_settings
from gatehouse.gateways.base import decision_from_button, decision_from_poll
from gatehouse.gateways.socket_gateway import SocketGateway, resident_room
from gatehouse.schemas.decision import Decision, DecisionEvent
from gatehouse.services.notification_service import dashboard_patch, dispatch_outcome
from gatehouse.socket.manager import socket_state

settings = get_settings()
logger = logging.getLogger(__name__)


def _decision_from_payload(payload: dict) -> Decision | None:
    raw = str(payload.get("decision") or "").strip().lower()
    if raw in (Decision.approve.value, Decision.reject.value):
        return Decision(raw)
    return decision_from_button(payload.get("buttonId")) or decision_from_poll(payload.get("pollOption"))


def register_socket_events(sio):
    @sio.event(namespace=settings.DASHBOARD_NAMESPACE)
    async def connect(sid, environ, auth):
        await sio.emit(
            "dashboard.snapshot",
            {"data": {"message": "connected"}},
            to=sid,
            namespace=settings.DASHBOARD_NAMESPACE,
        )

    @sio.event(namespace=settings.RESIDENT_NAMESPACE)
    async def connect(sid, environ, auth):  # type: ignore[no-redef]
        from gatehouse.services.registry import get_normalizer_for_settings

        address = str((auth or {}).get("address") or "").strip()
        if not address:
            return False
        canonical = get_normalizer_for_settings()(address).canonical
        socket_state.bind(canonical, sid)
        await sio.enter_room(sid, resident_room(canonical), namespace=settings.RESIDENT_NAMESPACE)
        logger.info("resident %s connected sid=%s", canonical, sid)

    @sio.event(namespace=settings.RESIDENT_NAMESPACE)
    async def disconnect(sid):
        socket_state.unbind_sid(sid)

    @sio.on("visitor.decision", namespace=settings.RESIDENT_NAMESPACE)
    async def visitor_decision(sid, payload):
        from gatehouse.services.registry import get_approval_engine, get_normalizer_for_settings

        address = socket_state.get_address(sid)
        if address is None:
            return {"ok": False, "error": "not_registered"}
        payload = payload or {}
        event = DecisionEvent(
            responder_address=address,
            raw_text=str(payload.get("text") or ""),
            decision=_decision_from_payload(payload),
        )
        outcome = await run_in_threadpool(get_approval_engine().handle_decision, event)
        gateway = SocketGateway(sio, settings.RESIDENT_NAMESPACE, get_normalizer_for_settings())
        await dispatch_outcome(gateway, outcome)
        if outcome.applied:
            await sio.emit("dashboard.patch", dashboard_patch(outcome.record), namespace=settings.DASHBOARD_NAMESPACE)
        return {"ok": True, "outcome": outcome.kind.value, "requestId": outcome.request_id}
