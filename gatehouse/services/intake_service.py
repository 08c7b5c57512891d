import logging
from dataclasses import dataclass
from time import perf_counter
from typing import Callable

from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from gatehouse.db.session import session_scope
from gatehouse.gateways.base import NotificationGateway
from gatehouse.schemas.visitor import VisitorRequest, VisitorRequestCreate
from gatehouse.services.address_service import AddressNormalizer
from gatehouse.services.correlation_table import PendingCorrelationTable
from gatehouse.services.notification_service import send_approval_request
from gatehouse.services.record_store import VisitorRecordStore
from gatehouse.services.unit_service import get_unit

logger = logging.getLogger(__name__)

NOTIFIED_MESSAGE = "Request submitted and notification sent to resident"
NOT_NOTIFIED_MESSAGE = "Request submitted, but failed to notify resident. Security will contact them directly."


@dataclass(frozen=True)
class IntakeResult:
    record: VisitorRequest
    responder_address: str
    notified: bool

    @property
    def message(self) -> str:
        return NOTIFIED_MESSAGE if self.notified else NOT_NOTIFIED_MESSAGE


class IntakeService:
    def __init__(
        self,
        store: VisitorRecordStore,
        correlations: PendingCorrelationTable,
        gateway: NotificationGateway,
        normalizer: AddressNormalizer,
        session_factory: Callable[[], Session],
    ):
        self.store = store
        self.correlations = correlations
        self.gateway = gateway
        self.normalizer = normalizer
        self.session_factory = session_factory

    def _resident_phone(self, unit_number: str) -> str:
        with session_scope(self.session_factory) as db:
            return get_unit(db, unit_number).resident_phone

    def register(self, payload: VisitorRequestCreate) -> tuple[VisitorRequest, str]:
        """Persist the request and point the resident's address at it."""
        phone = self._resident_phone(payload.flatNumber)
        record = self.store.create(
            visitor_name=payload.visitorName.strip(),
            visitor_phone=payload.visitorPhone.strip(),
            unit_number=payload.flatNumber.strip(),
            purpose=payload.purpose.strip(),
            photo_reference=payload.photoUrl.strip(),
        )
        address = self.normalizer(phone).canonical
        self.correlations.register(address, record.id, record.visitor_name)
        return record, address

    async def submit(self, payload: VisitorRequestCreate) -> IntakeResult:
        started = perf_counter()
        record, address = await run_in_threadpool(self.register, payload)
        notified = await send_approval_request(self.gateway, address, record)
        logger.info(
            "visitor.request completed in %.1fms request_id=%s flat=%s notified=%s",
            (perf_counter() - started) * 1000,
            record.id,
            record.unit_number,
            notified,
        )
        return IntakeResult(record=record, responder_address=address, notified=notified)
