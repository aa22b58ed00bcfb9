"""Tests for rate and ETA computation."""

from datetime import datetime, timedelta, timezone

from app.core.progress import compute_progress, format_rate

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def test_rate_and_eta():
    snapshot = compute_progress(
        processed=10,
        total_processed=10,
        total=30,
        started_at=NOW - timedelta(minutes=5),
        now=NOW,
    )

    assert snapshot.rate == 2.0
    assert snapshot.remaining == 20
    assert snapshot.estimated_completion == NOW + timedelta(minutes=10)
    assert snapshot.rate_display == "2.0 profiles/min"


def test_zero_elapsed_gives_zero_rate_and_no_eta():
    snapshot = compute_progress(5, 5, 10, started_at=NOW, now=NOW)

    assert snapshot.rate == 0.0
    assert snapshot.estimated_completion is None


def test_nothing_remaining_has_no_eta():
    snapshot = compute_progress(10, 10, 10, started_at=NOW - timedelta(minutes=1), now=NOW)

    assert snapshot.remaining == 0
    assert snapshot.estimated_completion is None


def test_resumed_run_uses_lifetime_total_for_remaining():
    # 4 processed in this run over 2 minutes, 8 over the job's life
    snapshot = compute_progress(4, 8, 12, started_at=NOW - timedelta(minutes=2), now=NOW)

    assert snapshot.rate == 2.0
    assert snapshot.remaining == 4
    assert snapshot.estimated_completion == NOW + timedelta(minutes=2)


def test_format_rate_one_decimal():
    assert format_rate(12.345) == "12.3 profiles/min"
    assert format_rate(0) == "0.0 profiles/min"
