import json
import logging
from typing import Any, Callable

from sqlalchemy.orm import Session

from gatehouse.db.models import AuditLog
from gatehouse.db.session import session_scope
from gatehouse.schemas.decision import DecisionEvent

logger = logging.getLogger(__name__)


def write_audit_log(
    db: Session,
    actor_address: str | None,
    action: str,
    resource_type: str,
    resource_id: str | None = None,
    meta: dict[str, Any] | None = None,
) -> AuditLog:
    row = AuditLog(
        actor_address=actor_address,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        meta_json=json.dumps(meta or {}, ensure_ascii=True),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def list_audit_logs(db: Session, limit: int = 200) -> list[AuditLog]:
    return db.query(AuditLog).order_by(AuditLog.created_at.desc()).limit(limit).all()


def decision_audit_listener(session_factory: Callable[[], Session]):
    """Engine listener that records every applied decision."""

    def listener(event: DecisionEvent, outcome) -> None:
        if not outcome.applied:
            return
        try:
            with session_scope(session_factory) as db:
                write_audit_log(
                    db,
                    actor_address=event.responder_address,
                    action=f"visitor.{outcome.record.status.value}",
                    resource_type="visitor_request",
                    resource_id=outcome.request_id,
                    meta={
                        "path": outcome.path.value if outcome.path else None,
                        "unit": outcome.record.unit_number,
                        "passId": outcome.record.gatepass.pass_id if outcome.record.gatepass else None,
                    },
                )
        except Exception:
            logger.exception("could not write audit log for request %s", outcome.request_id)

    return listener
