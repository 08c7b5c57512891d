from enum import Enum

from pydantic import BaseModel, Field


class Decision(str, Enum):
    approve = "approve"
    reject = "reject"


class DecisionEvent(BaseModel):
    """An inbound chat message normalized by a transport adapter."""

    responder_address: str
    raw_text: str = ""
    decision: Decision | None = None
    # Other encodings of responder_address the transport knows about.
    alternate_addresses: list[str] = Field(default_factory=list)


class InboundMessage(BaseModel):
    sender: str = Field(alias="from", min_length=1)
    body: str = ""
    buttonId: str | None = None
    pollOption: str | None = None
