"""Process-wide instances of the visitor workflow components.

Routes and socket handlers receive these through FastAPI dependencies, so tests
swap them with ``app.dependency_overrides``.
"""
from datetime import timedelta
from functools import lru_cache

from gatehouse.core.config import get_settings
from gatehouse.db.session import SessionLocal
from gatehouse.gateways import LoggingGateway, NotificationGateway, SocketGateway, WebhookGateway
from gatehouse.services.address_service import AddressNormalizer, get_normalizer
from gatehouse.services.approval_engine import ApprovalCorrelationEngine
from gatehouse.services.audit_service import decision_audit_listener
from gatehouse.services.correlation_table import PendingCorrelationTable
from gatehouse.services.gatepass_service import GatepassGenerator
from gatehouse.services.intake_service import IntakeService
from gatehouse.services.record_store import VisitorRecordStore

settings = get_settings()


@lru_cache
def get_normalizer_for_settings() -> AddressNormalizer:
    return get_normalizer(settings.ADDRESS_FORMAT)


@lru_cache
def get_record_store() -> VisitorRecordStore:
    return VisitorRecordStore(
        settings.visitor_data_path,
        validity=timedelta(hours=settings.GATEPASS_VALIDITY_HOURS),
    )


@lru_cache
def get_correlation_table() -> PendingCorrelationTable:
    return PendingCorrelationTable()


@lru_cache
def get_gatepass_generator() -> GatepassGenerator:
    return GatepassGenerator(qr_template=settings.GATEPASS_QR_TEMPLATE)


@lru_cache
def get_approval_engine() -> ApprovalCorrelationEngine:
    return ApprovalCorrelationEngine(
        store=get_record_store(),
        correlations=get_correlation_table(),
        generator=get_gatepass_generator(),
        normalizer=get_normalizer_for_settings(),
        listeners=[decision_audit_listener(SessionLocal)],
    )


@lru_cache
def get_gateway() -> NotificationGateway:
    transport = settings.NOTIFICATION_TRANSPORT.strip().lower()
    if transport == "webhook":
        return WebhookGateway(
            settings.CHAT_BRIDGE_URL,
            token=settings.CHAT_BRIDGE_TOKEN,
            timeout=settings.CHAT_BRIDGE_TIMEOUT_SECONDS,
        )
    if transport == "socket":
        from gatehouse.socket.server import sio

        return SocketGateway(sio, settings.RESIDENT_NAMESPACE, get_normalizer_for_settings())
    return LoggingGateway()


@lru_cache
def get_intake_service() -> IntakeService:
    return IntakeService(
        store=get_record_store(),
        correlations=get_correlation_table(),
        gateway=get_gateway(),
        normalizer=get_normalizer_for_settings(),
        session_factory=SessionLocal,
    )
