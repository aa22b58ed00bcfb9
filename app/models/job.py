"""
Job Model - Batch extraction run tracking.

A job is one pass over the profile URLs of an uploaded spreadsheet.
"""

import enum
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.profile import Profile
    from app.models.user import User


class JobStatus(str, enum.Enum):
    """Job execution status."""

    PENDING = "pending"
    PROCESSING = "processing"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"


# Valid state transitions. Only processing <-> paused goes backwards.
VALID_TRANSITIONS: dict[JobStatus, list[JobStatus]] = {
    JobStatus.PENDING: [JobStatus.PROCESSING, JobStatus.FAILED],
    JobStatus.PROCESSING: [JobStatus.PAUSED, JobStatus.COMPLETED, JobStatus.FAILED],
    JobStatus.PAUSED: [JobStatus.PROCESSING, JobStatus.COMPLETED, JobStatus.FAILED],
    JobStatus.COMPLETED: [],
    JobStatus.FAILED: [],
}


class Job(Base):
    """Job entity for tracking a batch extraction run."""

    __tablename__ = "jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    file_name: Mapped[str] = mapped_column(String(512), nullable=False)
    file_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=JobStatus.PENDING.value,
        index=True,
    )

    # Counters
    total_profiles: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processed_profiles: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    successful_profiles: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_profiles: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    retrying_profiles: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    batch_size: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    error_breakdown: Mapped[dict[str, Any] | None] = mapped_column(JSON)

    # Output
    result_path: Mapped[str | None] = mapped_column(String(1024))
    error_message: Mapped[str | None] = mapped_column(Text)

    # Execution metadata
    queued_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    estimated_completion: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    processing_rate: Mapped[str | None] = mapped_column(String(64))  # e.g. "12.3 profiles/min"

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="jobs")
    profiles: Mapped[list["Profile"]] = relationship(
        "Profile", back_populates="job", cascade="all, delete-orphan"
    )

    @property
    def is_terminal(self) -> bool:
        """Check if job is in a terminal state."""
        return self.status in (JobStatus.COMPLETED.value, JobStatus.FAILED.value)

    @property
    def is_active(self) -> bool:
        return self.status in (JobStatus.PROCESSING.value, JobStatus.PAUSED.value)

    @property
    def progress_percent(self) -> int:
        if not self.total_profiles:
            return 0
        return round(self.processed_profiles / self.total_profiles * 100)

    def can_transition_to(self, new_status: JobStatus) -> bool:
        """Check if transition to new status is valid."""
        current = JobStatus(self.status)
        if new_status == current:
            return True
        return new_status in VALID_TRANSITIONS[current]

    def __repr__(self) -> str:
        return f"<Job {self.id} {self.file_name}:{self.status}>"
