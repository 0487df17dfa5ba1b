"""Calendar ORM model: PublicHoliday."""

from __future__ import annotations

import uuid
import datetime as dt
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from leaveflow.database import Base


class PublicHoliday(Base):
    """A gazetted holiday. ``description`` carries the category (e.g. "Poya")."""

    __tablename__ = "public_holidays"
    __table_args__ = (
        sa.UniqueConstraint("date", "name", name="uq_public_holiday_date_name"),
        sa.Index("ix_public_holidays_date", "date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    date: Mapped[dt.date] = mapped_column(sa.Date, nullable=False)
    name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)

    def __repr__(self) -> str:
        return f"<PublicHoliday {self.date} {self.name!r}>"
