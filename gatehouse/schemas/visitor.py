from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


def as_utc(value: datetime | None) -> datetime | None:
    # Older data files carry naive timestamps; they were always written in UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class VisitorStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class Gatepass(BaseModel):
    """Snapshot of an approved request, embedded in the record it was issued for."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    pass_id: str = Field(alias="passId")
    visitor_name: str = Field(alias="visitorName")
    visitor_phone: str = Field(alias="visitorPhone")
    unit_number: str = Field(alias="flatNumber")
    purpose: str
    photo_reference: str = Field(default="", alias="photoUrl")
    approved_at: datetime = Field(alias="approvedAt")
    valid_until: datetime = Field(alias="validUntil")
    qr_payload: str = Field(alias="qrCode")
    generated_at: datetime = Field(alias="generatedAt")

    @field_validator("approved_at", "valid_until", "generated_at")
    @classmethod
    def ensure_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class VisitorRequest(BaseModel):
    # Persisted keys follow the visitorData.json layout; unknown keys are carried through.
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    visitor_name: str = Field(alias="visitorName")
    visitor_phone: str = Field(alias="visitorPhone")
    unit_number: str = Field(alias="flatNumber")
    purpose: str
    photo_reference: str = Field(default="", alias="photoUrl")
    status: VisitorStatus = VisitorStatus.pending
    created_at: datetime = Field(alias="timestamp")
    approved_at: datetime | None = Field(default=None, alias="approvedAt")
    rejected_at: datetime | None = Field(default=None, alias="rejectedAt")
    valid_until: datetime | None = Field(default=None, alias="validUntil")
    gatepass: Gatepass | None = None

    @field_validator("created_at", "approved_at", "rejected_at", "valid_until")
    @classmethod
    def ensure_utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)

    @property
    def decided_at(self) -> datetime | None:
        return self.approved_at or self.rejected_at

    def to_record(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class VisitorRequestCreate(BaseModel):
    visitorName: str = Field(min_length=1)
    visitorPhone: str = Field(min_length=1)
    flatNumber: str = Field(min_length=1)
    purpose: str = Field(min_length=1)
    photoUrl: str = Field(min_length=1)
