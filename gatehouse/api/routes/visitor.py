import logging

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from gatehouse.core.config import get_settings
from gatehouse.db.session import get_db
from gatehouse.schemas.visitor import VisitorRequestCreate
from gatehouse.services.gatepass_service import GatepassGenerator, fetch_gatepass
from gatehouse.services.intake_service import IntakeService
from gatehouse.services.notification_service import dashboard_patch
from gatehouse.services.record_store import VisitorRecordStore
from gatehouse.services.registry import get_gatepass_generator, get_intake_service, get_record_store
from gatehouse.services.unit_service import list_unit_numbers
from gatehouse.socket.server import sio

router = APIRouter()
settings = get_settings()
logger = logging.getLogger(__name__)


@router.get("/flats")
def flats(db: Session = Depends(get_db)):
    return {"data": list_unit_numbers(db)}


@router.post("/visitor-request", status_code=status.HTTP_201_CREATED)
async def visitor_request(
    payload: VisitorRequestCreate,
    response: Response,
    intake: IntakeService = Depends(get_intake_service),
):
    result = await intake.submit(payload)
    if not result.notified:
        response.status_code = status.HTTP_202_ACCEPTED

    try:
        await sio.emit("dashboard.patch", dashboard_patch(result.record), namespace=settings.DASHBOARD_NAMESPACE)
    except Exception:
        logger.exception("dashboard patch failed for request %s", result.record.id)

    return {"data": {"requestId": result.record.id, "message": result.message}}


@router.get("/check-status/{request_id}")
def check_status(request_id: str, store: VisitorRecordStore = Depends(get_record_store)):
    record = store.get(request_id)
    return {"data": {"requestId": record.id, "status": record.status.value}}


@router.get("/gatepass/{request_id}")
async def gatepass(
    request_id: str,
    store: VisitorRecordStore = Depends(get_record_store),
    generator: GatepassGenerator = Depends(get_gatepass_generator),
):
    issued = await run_in_threadpool(fetch_gatepass, store, generator, request_id)
    return {"data": issued.model_dump(mode="json", by_alias=True)}
