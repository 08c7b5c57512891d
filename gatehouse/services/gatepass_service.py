import random

from gatehouse.core.clock import Clock, utcnow
from gatehouse.core.exceptions import InvalidState
from gatehouse.schemas.visitor import Gatepass, VisitorRequest, VisitorStatus
from gatehouse.services.record_store import VisitorRecordStore

DEFAULT_QR_TEMPLATE = "/qr/{pass_id}.png"


def new_pass_id(clock: Clock = utcnow) -> str:
    # Short enough to read out at the gate; not unique under concurrent generation.
    return f"PE-{random.randint(1000, 9999)}-{clock().date().isoformat()}"


class GatepassGenerator:
    def __init__(self, clock: Clock = utcnow, qr_template: str = DEFAULT_QR_TEMPLATE):
        self.clock = clock
        self.qr_template = qr_template

    def generate(self, request: VisitorRequest) -> Gatepass:
        """Build the gatepass for an approved request.

        A request that already carries a gatepass gets that same gatepass back,
        which makes this safe to call from read-only "show my pass" paths.
        """
        if request.status != VisitorStatus.approved or request.approved_at is None or request.valid_until is None:
            raise InvalidState(f"Request {request.id} has not been approved", status_code=403)
        if request.gatepass is not None:
            return request.gatepass

        pass_id = new_pass_id(self.clock)
        return Gatepass(
            pass_id=pass_id,
            visitor_name=request.visitor_name,
            visitor_phone=request.visitor_phone,
            unit_number=request.unit_number,
            purpose=request.purpose,
            photo_reference=request.photo_reference,
            approved_at=request.approved_at,
            valid_until=request.valid_until,
            qr_payload=self.qr_template.format(pass_id=pass_id, request_id=request.id),
            generated_at=self.clock(),
        )


def fetch_gatepass(store: VisitorRecordStore, generator: GatepassGenerator, request_id: str) -> Gatepass:
    """Return the gatepass of an approved request, issuing it if the approval left none."""
    record = store.get(request_id)
    gatepass = generator.generate(record)
    if record.gatepass is not None:
        return gatepass
    try:
        return store.attach_gatepass(request_id, gatepass).gatepass
    except InvalidState:
        # Attached concurrently; the stored pass wins.
        return store.get(request_id).gatepass
