"""End-to-end tests through the HTTP API with the simulated provider."""

import time

import pytest
from fastapi.testclient import TestClient

from app.main import app

from tests.conftest import profile_urls


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def csv_upload(urls: list[str], name: str = "people.csv") -> dict:
    body = "\n".join(f"Person {i},{url}" for i, url in enumerate(urls))
    return {"file": (name, body.encode("utf-8"), "text/csv")}


def wait_for(client: TestClient, job_id: int, statuses: set[str], timeout: float = 10.0) -> dict:
    deadline = time.monotonic() + timeout
    while True:
        data = client.get(f"/jobs/{job_id}").json()
        if data["status"] in statuses or time.monotonic() > deadline:
            return data
        time.sleep(0.05)


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_ready_reports_queue(client):
    response = client.get("/ready")

    assert response.status_code == 200
    data = response.json()
    assert data["checks"]["database"] is True
    assert data["checks"]["job_queue"] is True


def test_upload_start_and_download(client):
    urls = profile_urls(4)

    upload = client.post("/jobs/upload", files=csv_upload(urls))
    assert upload.status_code == 201
    job_id = upload.json()["job_id"]
    assert upload.json()["total_profiles"] == 4
    assert upload.json()["status"] == "pending"

    start = client.post(f"/jobs/{job_id}/start", json={"batch_size": 2})
    assert start.status_code == 200

    data = wait_for(client, job_id, {"completed", "failed"})
    assert data["status"] == "completed"
    assert data["successful_profiles"] == 4
    assert data["progress"] == 100
    assert data["has_results"] is True
    assert data["batch_size"] == 2

    profiles = client.get(f"/jobs/{job_id}/profiles", params={"status": "success"}).json()
    assert [p["profile_url"] for p in profiles["profiles"]] == urls

    download = client.get(f"/jobs/{job_id}/download")
    assert download.status_code == 200
    assert download.content[:2] == b"PK"

    # a completed job cannot be started or stopped again
    assert client.post(f"/jobs/{job_id}/start").status_code == 409
    assert client.post(f"/jobs/{job_id}/stop").status_code == 409


def test_stats_and_exports_cover_completed_job(client):
    upload = client.post("/jobs/upload", files=csv_upload(profile_urls(2), "stats.csv"))
    job_id = upload.json()["job_id"]
    client.post(f"/jobs/{job_id}/start")
    wait_for(client, job_id, {"completed", "failed"})

    overview = client.get("/stats/overview").json()
    assert overview["successful_profiles"] >= 2

    counts = client.get("/stats/export-counts").json()
    assert counts["all"] >= 2
    assert counts["successful"] >= 2

    export = client.post("/export/successful")
    assert export.status_code == 200
    assert "profiles_successful_" in export.headers["content-disposition"]
    assert export.content[:2] == b"PK"


def test_upload_without_urls_is_rejected(client):
    files = {"file": ("names.csv", b"Alice,Engineer\nBob,Designer\n", "text/csv")}

    response = client.post("/jobs/upload", files=files)

    assert response.status_code == 400
    assert "No profile URLs" in response.json()["message"]


def test_upload_rejects_unknown_extension(client):
    files = {"file": ("notes.txt", b"https://www.linkedin.com/in/someone", "text/plain")}

    assert client.post("/jobs/upload", files=files).status_code == 400


def test_stop_pending_job(client):
    upload = client.post("/jobs/upload", files=csv_upload(profile_urls(1), "stop.csv"))
    job_id = upload.json()["job_id"]

    response = client.post(f"/jobs/{job_id}/stop")

    assert response.status_code == 200
    data = client.get(f"/jobs/{job_id}").json()
    assert data["status"] == "failed"
    assert data["error_message"] == "Stopped by user"


def test_unknown_job_is_404(client):
    response = client.get("/jobs/999999")

    assert response.status_code == 404
    assert response.json()["error_code"]


def test_download_before_completion_is_404(client):
    upload = client.post("/jobs/upload", files=csv_upload(profile_urls(1), "early.csv"))
    job_id = upload.json()["job_id"]

    assert client.get(f"/jobs/{job_id}/download").status_code == 404
