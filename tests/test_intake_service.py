import pytest

from gatehouse.core.exceptions import NotFound
from gatehouse.db.base import Base
from gatehouse.db.session import SessionLocal, engine as db_engine, session_scope
from gatehouse.schemas.decision import DecisionEvent
from gatehouse.schemas.visitor import VisitorRequestCreate, VisitorStatus
from gatehouse.services.address_service import whatsapp_normalizer
from gatehouse.services.approval_engine import OutcomeKind
from gatehouse.services.intake_service import NOT_NOTIFIED_MESSAGE, NOTIFIED_MESSAGE, IntakeService
from gatehouse.services.notification_service import dispatch_outcome
from gatehouse.services.unit_service import replace_flat_mapping


@pytest.fixture(autouse=True)
def units():
    Base.metadata.create_all(bind=db_engine)
    with session_scope() as db:
        replace_flat_mapping(db, {"101": "+1 555 123 4567", "102": "919812345678"})


def _intake(store, correlations, gateway):
    return IntakeService(store, correlations, gateway, whatsapp_normalizer, SessionLocal)


def _payload(flat="101"):
    return VisitorRequestCreate(
        visitorName="Asha Rao",
        visitorPhone="9845011223",
        flatNumber=flat,
        purpose="Delivery",
        photoUrl="/uploads/asha.jpg",
    )


@pytest.mark.asyncio
async def test_submit_registers_and_notifies(store, correlations, gateway):
    result = await _intake(store, correlations, gateway).submit(_payload())

    assert result.notified is True
    assert result.message == NOTIFIED_MESSAGE
    assert result.responder_address == "15551234567@s.whatsapp.net"
    assert store.get(result.record.id).status == VisitorStatus.pending
    assert correlations.get("15551234567@s.whatsapp.net").request_id == result.record.id
    assert gateway.approval_requests == [("15551234567@s.whatsapp.net", result.record.id)]


@pytest.mark.asyncio
async def test_failed_notification_keeps_request(store, correlations, failing_gateway):
    result = await _intake(store, correlations, failing_gateway).submit(_payload())

    assert result.notified is False
    assert result.message == NOT_NOTIFIED_MESSAGE
    assert store.get(result.record.id).status == VisitorStatus.pending
    assert correlations.get(result.responder_address) is not None


@pytest.mark.asyncio
async def test_unknown_flat_is_rejected_before_anything_is_stored(store, correlations, gateway):
    with pytest.raises(NotFound):
        await _intake(store, correlations, gateway).submit(_payload(flat="999"))

    assert store.list() == []
    assert len(correlations) == 0
    assert gateway.approval_requests == []


@pytest.mark.asyncio
async def test_resident_reply_round_trip(store, correlations, gateway, engine):
    result = await _intake(store, correlations, gateway).submit(_payload())

    outcome = engine.handle_decision(DecisionEvent(responder_address="15551234567@c.us", raw_text="Yes"))
    delivered = await dispatch_outcome(gateway, outcome)

    assert outcome.kind == OutcomeKind.applied
    assert outcome.request_id == result.record.id
    assert delivered is True
    assert gateway.texts[0][0] == "15551234567@c.us"
    assert "has been approved" in gateway.texts[0][1]


@pytest.mark.asyncio
async def test_undeliverable_reply_does_not_undo_decision(store, correlations, engine, failing_gateway):
    gateway = failing_gateway
    result = await _intake(store, correlations, gateway).submit(_payload())

    outcome = engine.handle_decision(DecisionEvent(responder_address=result.responder_address, raw_text="NO"))

    assert await dispatch_outcome(gateway, outcome) is False
    assert store.get(result.record.id).status == VisitorStatus.rejected
