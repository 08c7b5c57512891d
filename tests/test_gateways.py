import json
from urllib import error

import pytest

from gatehouse.core.config import get_settings
from gatehouse.gateways import GatewayError, LoggingGateway, SocketGateway, WebhookGateway
from gatehouse.gateways import webhook_gateway
from gatehouse.gateways.base import decision_from_button, decision_from_poll, event_from_inbound
from gatehouse.schemas.decision import Decision, InboundMessage
from gatehouse.schemas.visitor import VisitorStatus
from gatehouse.services import registry
from gatehouse.services.address_service import whatsapp_normalizer
from gatehouse.services.approval_engine import NO_PENDING_TEXT
from gatehouse.socket.events import _decision_from_payload, register_socket_events
from gatehouse.socket.manager import socket_state

settings = get_settings()
RESIDENT = "15551234567@s.whatsapp.net"


class FakeResponse:
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def read(self):
        return b'{"ok": true}'


class FakeSio:
    def __init__(self):
        self.emitted = []

    async def emit(self, event, data, room=None, namespace=None):
        self.emitted.append((event, data, room, namespace))


def test_button_ids_map_to_decisions():
    assert decision_from_button("approve") == Decision.approve
    assert decision_from_button(" Reject ") == Decision.reject
    assert decision_from_button("maybe") is None
    assert decision_from_button(None) is None


def test_poll_labels_map_to_decisions():
    assert decision_from_poll("✅ Yes, Allow Entry") == Decision.approve
    assert decision_from_poll("❌ No, Deny Entry") == Decision.reject
    assert decision_from_poll("Call me first") is None


def test_inbound_message_normalizes_to_event():
    message = InboundMessage.model_validate({"from": "15551234567@c.us", "body": "", "buttonId": "approve"})

    event = event_from_inbound(message)

    assert event.responder_address == "15551234567@c.us"
    assert event.decision == Decision.approve
    assert event.raw_text == ""


@pytest.mark.asyncio
async def test_logging_gateway_keeps_recent_messages(make_request):
    gateway = LoggingGateway(keep=2)
    record = make_request()

    await gateway.send_text("a", "one")
    await gateway.send_text("b", "two")
    await gateway.send_approval_request("c", record, "three")

    assert [item["to"] for item in gateway.sent] == ["b", "c"]
    assert gateway.sent[-1]["requestId"] == record.id


@pytest.mark.asyncio
async def test_webhook_gateway_posts_json(monkeypatch, make_request):
    captured = {}

    def fake_urlopen(req, timeout):
        captured["url"] = req.full_url
        captured["body"] = json.loads(req.data.decode("utf-8"))
        captured["auth"] = req.get_header("Authorization")
        captured["timeout"] = timeout
        return FakeResponse()

    monkeypatch.setattr(webhook_gateway.request, "urlopen", fake_urlopen)
    gateway = WebhookGateway("http://bridge.local/send", token="s3cret", timeout=3)

    await gateway.send_approval_request("15551234567@s.whatsapp.net", make_request(), "hello")

    assert captured["url"] == "http://bridge.local/send"
    assert captured["auth"] == "Bearer s3cret"
    assert captured["timeout"] == 3
    assert captured["body"]["to"] == "15551234567@s.whatsapp.net"
    assert captured["body"]["mediaUrl"] == "/uploads/asha.jpg"
    assert [button["id"] for button in captured["body"]["buttons"]] == ["approve", "reject"]


@pytest.mark.asyncio
async def test_webhook_gateway_wraps_transport_errors(monkeypatch):
    def unreachable(req, timeout):
        raise error.URLError("connection refused")

    monkeypatch.setattr(webhook_gateway.request, "urlopen", unreachable)

    with pytest.raises(GatewayError):
        await WebhookGateway("http://bridge.local/send").send_text("a", "b")


def test_webhook_gateway_requires_url():
    with pytest.raises(ValueError):
        WebhookGateway("")


@pytest.mark.asyncio
async def test_socket_gateway_targets_canonical_room():
    sio = FakeSio()
    gateway = SocketGateway(sio, "/realtime/resident", whatsapp_normalizer)

    await gateway.send_text("15551234567@c.us", "hi")

    event, data, room, namespace = sio.emitted[0]
    assert event == "visitor.message"
    assert data == {"text": "hi"}
    assert room == "resident:15551234567@s.whatsapp.net"
    assert namespace == "/realtime/resident"


class StubSio(FakeSio):
    """Collects handlers the way ``register_socket_events`` attaches them."""

    def __init__(self):
        super().__init__()
        self.handlers = {}
        self.rooms = []

    def event(self, namespace=None):
        def decorator(handler):
            self.handlers[(handler.__name__, namespace)] = handler
            return handler

        return decorator

    def on(self, name, namespace=None):
        def decorator(handler):
            self.handlers[(name, namespace)] = handler
            return handler

        return decorator

    async def enter_room(self, sid, room, namespace=None):
        self.rooms.append((sid, room, namespace))


@pytest.fixture
def resident_sio(engine, monkeypatch):
    monkeypatch.setattr(registry, "get_approval_engine", lambda: engine)
    sio = StubSio()
    register_socket_events(sio)
    yield sio
    socket_state.unbind_sid("sid-1")


def _resident_handler(sio, name):
    return sio.handlers[(name, settings.RESIDENT_NAMESPACE)]


def test_socket_payload_decisions():
    assert _decision_from_payload({"decision": "Approve"}) == Decision.approve
    assert _decision_from_payload({"decision": "reject"}) == Decision.reject
    assert _decision_from_payload({"buttonId": "approve"}) == Decision.approve
    assert _decision_from_payload({"pollOption": "❌ No, Deny Entry"}) == Decision.reject
    assert _decision_from_payload({"decision": "later", "text": "YES"}) is None
    assert _decision_from_payload({}) is None


@pytest.mark.asyncio
async def test_resident_connect_joins_canonical_room(resident_sio):
    connect = _resident_handler(resident_sio, "connect")

    assert await connect("sid-0", {}, None) is False
    await connect("sid-1", {}, {"address": "15551234567@c.us"})

    assert socket_state.get_address("sid-1") == RESIDENT
    assert resident_sio.rooms == [("sid-1", f"resident:{RESIDENT}", settings.RESIDENT_NAMESPACE)]


@pytest.mark.asyncio
async def test_unbound_socket_decision_is_refused(resident_sio, make_request, correlations, store):
    record = make_request()
    correlations.register(RESIDENT, record.id, record.visitor_name)

    ack = await _resident_handler(resident_sio, "visitor.decision")("stranger", {"decision": "approve"})

    assert ack == {"ok": False, "error": "not_registered"}
    assert store.get(record.id).status == VisitorStatus.pending
    assert resident_sio.emitted == []


@pytest.mark.asyncio
async def test_socket_decision_runs_engine_and_replies(resident_sio, make_request, correlations, store):
    record = make_request()
    correlations.register(RESIDENT, record.id, record.visitor_name)
    socket_state.bind(RESIDENT, "sid-1")

    ack = await _resident_handler(resident_sio, "visitor.decision")("sid-1", {"buttonId": "approve"})

    assert ack == {"ok": True, "outcome": "applied", "requestId": record.id}
    assert store.get(record.id).status == VisitorStatus.approved
    event, data, room, namespace = resident_sio.emitted[0]
    assert event == "visitor.message"
    assert data["text"].startswith("✅ Visitor Asha Rao has been approved.")
    assert room == f"resident:{RESIDENT}"
    assert namespace == settings.RESIDENT_NAMESPACE
    assert resident_sio.emitted[1][0] == "dashboard.patch"
    assert resident_sio.emitted[1][3] == settings.DASHBOARD_NAMESPACE


@pytest.mark.asyncio
async def test_socket_text_reply_without_pending_request(resident_sio, store):
    socket_state.bind(RESIDENT, "sid-1")

    ack = await _resident_handler(resident_sio, "visitor.decision")("sid-1", {"text": "YES"})

    assert ack["outcome"] == "no_pending_request"
    assert [item[0] for item in resident_sio.emitted] == ["visitor.message"]
    assert resident_sio.emitted[0][1] == {"text": NO_PENDING_TEXT}
