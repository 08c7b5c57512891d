import os
import tempfile
from datetime import datetime, timedelta, timezone

_TEST_DIR = tempfile.mkdtemp(prefix="gatehouse-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DIR}/gatehouse.db"
os.environ["DATA_DIR"] = _TEST_DIR
os.environ["ENVIRONMENT"] = "test"
os.environ["NOTIFICATION_TRANSPORT"] = "log"
os.environ["ADDRESS_FORMAT"] = "whatsapp"

import pytest

from gatehouse.schemas.visitor import VisitorRequest
from gatehouse.services.address_service import whatsapp_normalizer
from gatehouse.services.approval_engine import ApprovalCorrelationEngine
from gatehouse.services.correlation_table import PendingCorrelationTable
from gatehouse.services.gatepass_service import GatepassGenerator
from gatehouse.services.record_store import VisitorRecordStore

T0 = datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc)


class FrozenClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now = self.now + timedelta(**delta)


class CountingGenerator(GatepassGenerator):
    """Gatepass generator that records which requests it built passes for."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.built: list[str] = []

    def generate(self, request: VisitorRequest):
        gatepass = super().generate(request)
        if request.gatepass is None:
            self.built.append(request.id)
        return gatepass


class RecordingGateway:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.texts: list[tuple[str, str]] = []
        self.approval_requests: list[tuple[str, str]] = []

    async def send_text(self, address: str, text: str) -> None:
        if self.fail:
            raise ConnectionError("transport down")
        self.texts.append((address, text))

    async def send_approval_request(self, address: str, request: VisitorRequest, text: str) -> None:
        if self.fail:
            raise ConnectionError("transport down")
        self.approval_requests.append((address, request.id))


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def store(tmp_path, clock):
    return VisitorRecordStore(tmp_path / "visitorData.json", clock=clock)


@pytest.fixture
def correlations(clock):
    return PendingCorrelationTable(clock=clock)


@pytest.fixture
def generator(clock):
    return CountingGenerator(clock=clock)


@pytest.fixture
def engine(store, correlations, generator):
    return ApprovalCorrelationEngine(store, correlations, generator, normalizer=whatsapp_normalizer)


@pytest.fixture
def gateway():
    return RecordingGateway()


@pytest.fixture
def make_request(store):
    def factory(unit_number: str = "101", visitor_name: str = "Asha Rao") -> VisitorRequest:
        return store.create(
            visitor_name=visitor_name,
            visitor_phone="+91 98450 11223",
            unit_number=unit_number,
            purpose="Delivery",
            photo_reference="/uploads/asha.jpg",
        )

    return factory


@pytest.fixture
def failing_gateway():
    return RecordingGateway(fail=True)
