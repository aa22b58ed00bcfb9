"""
Progress Tracking - Throughput rate and ETA for a running job.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone


@dataclass(frozen=True)
class ProgressSnapshot:
    """Derived progress figures written onto the job after every item."""

    rate: float  # profiles per minute
    remaining: int
    estimated_completion: datetime | None

    @property
    def rate_display(self) -> str:
        return format_rate(self.rate)


def format_rate(rate: float) -> str:
    """Human readable rate, e.g. '12.3 profiles/min'."""
    return f"{rate:.1f} profiles/min"


def compute_progress(
    processed: int,
    total_processed: int,
    total: int,
    started_at: datetime,
    now: datetime | None = None,
) -> ProgressSnapshot:
    """
    Compute rate and ETA.

    Args:
        processed: Items processed since ``started_at`` (drives the rate)
        total_processed: Items processed over the job's whole life (drives remaining)
        total: Total items in the job
        started_at: When the current run began
        now: Observation time, defaults to the current UTC time

    Returns:
        ProgressSnapshot with rate 0 when no time has elapsed, and no ETA when
        nothing remains or the rate is not positive.
    """
    now = now or datetime.now(timezone.utc)
    elapsed_minutes = (now - started_at).total_seconds() / 60

    rate = processed / elapsed_minutes if elapsed_minutes > 0 else 0.0
    remaining = total - total_processed

    eta = None
    if remaining > 0 and rate > 0:
        eta = now + timedelta(minutes=remaining / rate)

    return ProgressSnapshot(rate=rate, remaining=remaining, estimated_completion=eta)
