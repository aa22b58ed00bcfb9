"""
Profile Model - One profile URL within a job and its extraction outcome.
"""

import enum
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.job import Job


class ProfileStatus(str, enum.Enum):
    """Per-item extraction status."""

    PENDING = "pending"
    PROCESSING = "processing"
    RETRYING = "retrying"
    SUCCESS = "success"
    FAILED = "failed"


# Items in these states are not picked up again within a run
SETTLED_STATUSES = frozenset(
    {ProfileStatus.SUCCESS.value, ProfileStatus.FAILED.value, ProfileStatus.RETRYING.value}
)


class Profile(Base):
    """Profile record created for each URL found in the uploaded spreadsheet."""

    __tablename__ = "profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    profile_url: Mapped[str] = mapped_column(String(1024), nullable=False)
    row_index: Mapped[int | None] = mapped_column(Integer)
    # Other non-empty cells of the source row, keyed column_<index>
    row_data: Mapped[dict[str, str] | None] = mapped_column(JSON)
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=ProfileStatus.PENDING.value,
        index=True,
    )

    # Extracted payload, present only on success. Legacy rows may hold a JSON string.
    profile_data: Mapped[Any | None] = mapped_column(JSON)

    # Failure tracking
    error_type: Mapped[str | None] = mapped_column(String(32))
    error_message: Mapped[str | None] = mapped_column(Text)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_attempt: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    extracted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Relationships
    job: Mapped["Job"] = relationship("Job", back_populates="profiles")

    @property
    def is_settled(self) -> bool:
        return self.status in SETTLED_STATUSES

    def __repr__(self) -> str:
        return f"<Profile {self.id} job={self.job_id} {self.status}>"
