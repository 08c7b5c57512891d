import logging
from dataclasses import dataclass
from datetime import datetime
from threading import Lock
from typing import Iterable

from gatehouse.core.clock import Clock, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingCorrelation:
    responder_address: str
    request_id: str
    visitor_name: str
    registered_at: datetime


class PendingCorrelationTable:
    """Process-lifetime map of responder address -> the one request awaiting their decision.

    Nothing here is persisted: after a restart outstanding requests can only be
    decided through the explicit "YES <id>" form.
    """

    def __init__(self, clock: Clock = utcnow):
        self.clock = clock
        self._entries: dict[str, PendingCorrelation] = {}
        self._lock = Lock()

    def register(self, responder_address: str, request_id: str, visitor_name: str) -> PendingCorrelation:
        entry = PendingCorrelation(
            responder_address=responder_address,
            request_id=request_id,
            visitor_name=visitor_name,
            registered_at=self.clock(),
        )
        with self._lock:
            previous = self._entries.get(responder_address)
            self._entries[responder_address] = entry
        if previous and previous.request_id != request_id:
            logger.warning(
                "pending request %s for %s superseded by %s",
                previous.request_id,
                responder_address,
                request_id,
            )
        return entry

    def resolve(self, candidate_addresses: Iterable[str]) -> PendingCorrelation | None:
        with self._lock:
            for address in candidate_addresses:
                entry = self._entries.get(address)
                if entry is not None:
                    return entry
        return None

    def get(self, responder_address: str) -> PendingCorrelation | None:
        with self._lock:
            return self._entries.get(responder_address)

    def remove(self, responder_address: str) -> None:
        with self._lock:
            self._entries.pop(responder_address, None)

    def remove_if(self, responder_address: str, request_id: str) -> bool:
        """Remove the entry only while it still points at request_id."""
        with self._lock:
            entry = self._entries.get(responder_address)
            if entry is None or entry.request_id != request_id:
                return False
            del self._entries[responder_address]
            return True

    def snapshot(self) -> list[PendingCorrelation]:
        with self._lock:
            entries = list(self._entries.values())
        return sorted(entries, key=lambda entry: entry.registered_at, reverse=True)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
