import re
from typing import Protocol

from gatehouse.core.exceptions import AppException
from gatehouse.schemas.decision import Decision, DecisionEvent, InboundMessage
from gatehouse.schemas.visitor import VisitorRequest

APPROVAL_FOOTER = "Reply YES to approve or NO to reject"
POLL_TITLE = "Do you approve this visitor?"
POLL_OPTIONS = ("✅ Yes, Allow Entry", "❌ No, Deny Entry")

BUTTON_DECISIONS = {
    "approve": Decision.approve,
    "reject": Decision.reject,
}

_LEADING_SYMBOLS = re.compile(r"^[^0-9A-Za-z]+")


class GatewayError(AppException):
    def __init__(self, message: str):
        super().__init__(message, status_code=502)


class NotificationGateway(Protocol):
    """Anything that can deliver text to a responder address."""

    async def send_text(self, address: str, text: str) -> None: ...

    async def send_approval_request(self, address: str, request: VisitorRequest, text: str) -> None: ...


def decision_from_button(button_id: str | None) -> Decision | None:
    if not button_id:
        return None
    return BUTTON_DECISIONS.get(button_id.strip().lower())


def decision_from_poll(option: str | None) -> Decision | None:
    if not option:
        return None
    label = _LEADING_SYMBOLS.sub("", option.strip()).lower()
    if label.startswith("yes"):
        return Decision.approve
    if label.startswith("no"):
        return Decision.reject
    return None


def event_from_inbound(message: InboundMessage) -> DecisionEvent:
    return DecisionEvent(
        responder_address=message.sender,
        raw_text=message.body,
        decision=decision_from_button(message.buttonId) or decision_from_poll(message.pollOption),
    )
