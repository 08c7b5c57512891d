from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from gatehouse.core.clock import utcnow
from gatehouse.db.base import Base


class Unit(Base):
    __tablename__ = "units"

    unit_number: Mapped[str] = mapped_column(String(32), primary_key=True)
    resident_phone: Mapped[str] = mapped_column(String(32), nullable=False)
    resident_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
