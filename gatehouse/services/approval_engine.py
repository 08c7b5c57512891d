import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable

from gatehouse.core.exceptions import InvalidState, NotFound, StorageUnavailable
from gatehouse.schemas.decision import Decision, DecisionEvent
from gatehouse.schemas.visitor import VisitorRequest
from gatehouse.services.address_service import AddressNormalizer, whatsapp_normalizer
from gatehouse.services.correlation_table import PendingCorrelation, PendingCorrelationTable
from gatehouse.services.gatepass_service import GatepassGenerator
from gatehouse.services.record_store import VisitorRecordStore

logger = logging.getLogger(__name__)

YES = "YES"
NO = "NO"

STALE_TEXT = "Sorry, this visitor request is no longer valid or has expired."
NO_PENDING_TEXT = "I don't have any pending visitor requests for your approval at the moment."
FAILURE_TEXT = "Sorry, there was an error processing your response. Please try again or contact support."


class OutcomeKind(str, Enum):
    applied = "applied"
    stale = "stale"
    no_pending_request = "no_pending_request"
    unrecognized = "unrecognized"
    failed = "failed"


class ResolutionPath(str, Enum):
    structured = "structured"
    text = "text"
    explicit_id = "explicit_id"


@dataclass(frozen=True)
class NotificationIntent:
    recipient: str
    text: str


@dataclass(frozen=True)
class Outcome:
    kind: OutcomeKind
    reply: NotificationIntent | None = None
    decision: Decision | None = None
    record: VisitorRequest | None = None
    request_id: str | None = None
    path: ResolutionPath | None = None

    @property
    def applied(self) -> bool:
        return self.kind == OutcomeKind.applied


OutcomeListener = Callable[[DecisionEvent, Outcome], None]


def format_deadline(record: VisitorRequest) -> str:
    if record.valid_until is None:
        return "-"
    return record.valid_until.strftime("%d %b %Y, %I:%M %p %Z").strip()


def approval_text(record: VisitorRequest) -> str:
    pass_id = record.gatepass.pass_id if record.gatepass else "-"
    return (
        f"✅ Visitor {record.visitor_name} has been approved. A gatepass has been generated for security.\n\n"
        f"Gatepass ID: {pass_id}\nValid until: {format_deadline(record)}"
    )


def rejection_text(record: VisitorRequest) -> str:
    return f"❌ Visitor {record.visitor_name} has been denied entry as requested."


def parse_word(token: str) -> Decision | None:
    word = token.strip().upper()
    if word == YES:
        return Decision.approve
    if word == NO:
        return Decision.reject
    return None


class ApprovalCorrelationEngine:
    """Matches a resident's reply to the visitor request it answers and applies it.

    Resolution order, first match wins:

    1. structured decision (button/poll) from an address with a pending correlation
    2. bare ``YES``/``NO`` text from an address with a pending correlation
    3. ``YES <request id>`` / ``NO <request id>`` naming the request explicitly
    4. anything else is unrecognized if the sender has a pending request,
       otherwise there is nothing for them to decide; both get the
       "no pending request" reply and change nothing

    At most one decision is ever applied per request: the pending check and the
    status write happen together inside the record store.
    """

    def __init__(
        self,
        store: VisitorRecordStore,
        correlations: PendingCorrelationTable,
        generator: GatepassGenerator,
        normalizer: AddressNormalizer = whatsapp_normalizer,
        listeners: Iterable[OutcomeListener] = (),
    ):
        self.store = store
        self.correlations = correlations
        self.generator = generator
        self.normalizer = normalizer
        self.listeners = list(listeners)

    def candidate_addresses(self, event: DecisionEvent) -> list[str]:
        candidates: list[str] = []
        for raw in (event.responder_address, *event.alternate_addresses):
            for address in self.normalizer(raw).candidates():
                if address not in candidates:
                    candidates.append(address)
        return candidates

    def handle_decision(self, event: DecisionEvent) -> Outcome:
        outcome = self._resolve_and_apply(event)
        logger.info(
            "decision from %s resolved as %s path=%s request_id=%s",
            event.responder_address,
            outcome.kind.value,
            outcome.path.value if outcome.path else None,
            outcome.request_id,
        )
        for listener in self.listeners:
            try:
                listener(event, outcome)
            except Exception:
                logger.exception("outcome listener %r failed", listener)
        return outcome

    def _resolve_and_apply(self, event: DecisionEvent) -> Outcome:
        candidates = self.candidate_addresses(event)
        text = (event.raw_text or "").strip()

        if event.decision is not None:
            correlation = self.correlations.resolve(candidates)
            if correlation is not None:
                return self._apply(event, correlation.request_id, event.decision, ResolutionPath.structured, correlation)

        word_decision = parse_word(text)
        if word_decision is not None:
            correlation = self.correlations.resolve(candidates)
            if correlation is not None:
                return self._apply(event, correlation.request_id, word_decision, ResolutionPath.text, correlation)
            return self._reply(event, OutcomeKind.no_pending_request, NO_PENDING_TEXT)

        tokens = text.split()
        if len(tokens) >= 2:
            explicit_decision = parse_word(tokens[0])
            if explicit_decision is not None:
                outcome = self._apply(event, tokens[1], explicit_decision, ResolutionPath.explicit_id, None)
                if outcome.applied:
                    for address in candidates:
                        self.correlations.remove(address)
                return outcome

        if event.decision is None and self.correlations.resolve(candidates) is not None:
            return self._reply(event, OutcomeKind.unrecognized, NO_PENDING_TEXT)
        return self._reply(event, OutcomeKind.no_pending_request, NO_PENDING_TEXT)

    def _apply(
        self,
        event: DecisionEvent,
        request_id: str,
        decision: Decision,
        path: ResolutionPath,
        correlation: PendingCorrelation | None,
    ) -> Outcome:
        try:
            if decision == Decision.approve:
                record = self.store.approve_with_gatepass(request_id, self.generator.generate)
            else:
                record = self.store.set_rejected(request_id)
        except (NotFound, InvalidState) as exc:
            logger.info("decision for %s is stale: %s", request_id, exc.message)
            self._release(correlation)
            return self._reply(event, OutcomeKind.stale, STALE_TEXT, decision=decision, request_id=request_id, path=path)
        except StorageUnavailable:
            # Nothing was written, so the correlation stays for the resident's retry.
            logger.exception("could not record %s for request %s", decision.value, request_id)
            return self._reply(event, OutcomeKind.failed, FAILURE_TEXT, decision=decision, request_id=request_id, path=path)

        text = approval_text(record) if decision == Decision.approve else rejection_text(record)

        self._release(correlation)
        return self._reply(event, OutcomeKind.applied, text, decision=decision, record=record, request_id=request_id, path=path)

    def _release(self, correlation: PendingCorrelation | None) -> None:
        if correlation is not None:
            self.correlations.remove_if(correlation.responder_address, correlation.request_id)

    @staticmethod
    def _reply(event: DecisionEvent, kind: OutcomeKind, text: str, **fields) -> Outcome:
        return Outcome(kind=kind, reply=NotificationIntent(recipient=event.responder_address, text=text), **fields)
