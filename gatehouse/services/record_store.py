import json
import logging
import os
import tempfile
import uuid
from contextlib import suppress
from datetime import timedelta
from pathlib import Path
from threading import RLock
from typing import Any, Callable

from pydantic import ValidationError

from gatehouse.core.clock import Clock, utcnow
from gatehouse.core.exceptions import InvalidState, NotFound, StorageUnavailable
from gatehouse.schemas.visitor import Gatepass, VisitorRequest, VisitorStatus

logger = logging.getLogger(__name__)

DEFAULT_VALIDITY = timedelta(hours=6)


class VisitorRecordStore:
    """Durable id -> visitor request mapping kept in a single JSON file.

    Every mutation re-reads the whole file, applies the change and writes the
    whole file back while holding one lock, so the status check and the write
    that depends on it cannot interleave with another caller's.
    """

    def __init__(self, path: str | Path, clock: Clock = utcnow, validity: timedelta = DEFAULT_VALIDITY):
        self.path = Path(path)
        self.clock = clock
        self.validity = validity
        self._lock = RLock()

    def create(
        self,
        *,
        visitor_name: str,
        visitor_phone: str,
        unit_number: str,
        purpose: str,
        photo_reference: str = "",
    ) -> VisitorRequest:
        with self._lock:
            data = self._read()
            request_id = str(uuid.uuid4())
            while request_id in data:
                request_id = str(uuid.uuid4())
            record = VisitorRequest(
                id=request_id,
                visitor_name=visitor_name,
                visitor_phone=visitor_phone,
                unit_number=unit_number,
                purpose=purpose,
                photo_reference=photo_reference,
                status=VisitorStatus.pending,
                created_at=self.clock(),
            )
            data[request_id] = record.to_record()
            self._write(data)
        logger.info("visitor request %s created for unit %s", request_id, unit_number)
        return record

    def get(self, request_id: str) -> VisitorRequest:
        with self._lock:
            data = self._read()
        raw = data.get(request_id)
        if raw is None:
            raise NotFound(f"Request {request_id} not found")
        return self._parse(request_id, raw)

    def set_approved(self, request_id: str) -> VisitorRequest:
        return self._mutate(request_id, self._approved)

    def approve_with_gatepass(self, request_id: str, build: Callable[[VisitorRequest], Gatepass]) -> VisitorRequest:
        """Approve a pending request and store the gatepass built for it in the same write.

        If ``build`` or the write fails, the request stays pending.
        """

        def approve(record: VisitorRequest) -> VisitorRequest:
            approved = self._approved(record)
            return approved.model_copy(update={"gatepass": build(approved)})

        return self._mutate(request_id, approve)

    def set_rejected(self, request_id: str) -> VisitorRequest:
        def reject(record: VisitorRequest) -> VisitorRequest:
            self._require_pending(record)
            return record.model_copy(update={"status": VisitorStatus.rejected, "rejected_at": self.clock()})

        return self._mutate(request_id, reject)

    def attach_gatepass(self, request_id: str, gatepass: Gatepass) -> VisitorRequest:
        def attach(record: VisitorRequest) -> VisitorRequest:
            if record.status != VisitorStatus.approved:
                raise InvalidState(f"Request {request_id} is {record.status.value}, not approved")
            if record.gatepass is not None:
                raise InvalidState(f"Request {request_id} already has gatepass {record.gatepass.pass_id}")
            return record.model_copy(update={"gatepass": gatepass})

        return self._mutate(request_id, attach)

    def list(self) -> list[VisitorRequest]:
        with self._lock:
            data = self._read()
        records: list[VisitorRequest] = []
        for request_id, raw in data.items():
            try:
                records.append(self._parse(request_id, raw))
            except StorageUnavailable:
                logger.warning("skipping unreadable visitor record %s", request_id)
        records.sort(key=lambda record: record.created_at, reverse=True)
        return records

    @staticmethod
    def _require_pending(record: VisitorRequest) -> None:
        if record.status != VisitorStatus.pending:
            raise InvalidState(f"Request {record.id} is already {record.status.value}")

    def _approved(self, record: VisitorRequest) -> VisitorRequest:
        self._require_pending(record)
        decided_at = self.clock()
        return record.model_copy(
            update={
                "status": VisitorStatus.approved,
                "approved_at": decided_at,
                "valid_until": decided_at + self.validity,
            }
        )

    def _mutate(self, request_id: str, change: Callable[[VisitorRequest], VisitorRequest]) -> VisitorRequest:
        with self._lock:
            data = self._read()
            raw = data.get(request_id)
            if raw is None:
                raise NotFound(f"Request {request_id} not found")
            updated = change(self._parse(request_id, raw))
            data[request_id] = updated.to_record()
            self._write(data)
        logger.info("visitor request %s is now %s", request_id, updated.status.value)
        return updated

    @staticmethod
    def _parse(request_id: str, raw: Any) -> VisitorRequest:
        if not isinstance(raw, dict):
            raise StorageUnavailable(f"Visitor record {request_id} is malformed")
        try:
            return VisitorRequest.model_validate({"id": request_id, **raw})
        except ValidationError as exc:
            raise StorageUnavailable(f"Visitor record {request_id} is malformed: {exc}") from exc

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            raise StorageUnavailable(f"Could not read visitor data: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageUnavailable("Visitor data file does not hold a mapping")
        return data

    def _write(self, data: dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(data, fh, indent=2, ensure_ascii=False)
                os.replace(tmp_path, self.path)
            except BaseException:
                with suppress(OSError):
                    os.unlink(tmp_path)
                raise
        except OSError as exc:
            raise StorageUnavailable(f"Could not write visitor data: {exc}") from exc
