from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from gatehouse.db.session import get_db
from gatehouse.services.audit_service import list_audit_logs
from gatehouse.services.correlation_table import PendingCorrelationTable
from gatehouse.services.record_store import VisitorRecordStore
from gatehouse.services.registry import get_correlation_table, get_record_store
from gatehouse.services.unit_service import get_flat_mapping, replace_flat_mapping

router = APIRouter()


@router.get("/visitor-records")
def visitor_records(store: VisitorRecordStore = Depends(get_record_store)):
    return {"data": [record.to_record() for record in store.list()]}


@router.get("/flat-mappings")
def flat_mappings(db: Session = Depends(get_db)):
    return {"data": get_flat_mapping(db)}


@router.post("/flat-mappings")
def update_flat_mappings(mapping: dict[str, str] = Body(...), db: Session = Depends(get_db)):
    return {"data": replace_flat_mapping(db, mapping), "message": "Flat mappings updated successfully"}


@router.get("/pending-correlations")
def pending_correlations(correlations: PendingCorrelationTable = Depends(get_correlation_table)):
    return {
        "data": [
            {
                "responderAddress": entry.responder_address,
                "requestId": entry.request_id,
                "visitorName": entry.visitor_name,
                "registeredAt": entry.registered_at.isoformat(),
            }
            for entry in correlations.snapshot()
        ]
    }


@router.get("/audit-logs")
def audit_logs(limit: int = Query(default=200, ge=1, le=1000), db: Session = Depends(get_db)):
    return {
        "data": [
            {
                "id": row.id,
                "actorAddress": row.actor_address,
                "action": row.action,
                "resourceType": row.resource_type,
                "resourceId": row.resource_id,
                "meta": row.meta_json,
                "createdAt": row.created_at.isoformat(),
            }
            for row in list_audit_logs(db, limit=limit)
        ]
    }
