#!/usr/bin/env python3
"""
Pipeline Verification Script for Profile Batch.

This script tests the end-to-end pipeline by:
1. Checking API health
2. Uploading a spreadsheet of profile URLs
3. Starting the job
4. Polling for status until processing is complete
5. Downloading the results workbook and printing the stats overview
"""

import argparse
import csv
import sys
import tempfile
import time
from pathlib import Path

import requests

# --- Configuration ---
DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_PROFILE_COUNT = 12
POLL_INTERVAL_SECONDS = 5
MAX_POLL_ATTEMPTS = 120  # 10 minutes max wait


def build_sample_sheet(count: int) -> Path:
    """Write a CSV with one profile URL per row and a name column."""
    handle = tempfile.NamedTemporaryFile(
        "w", suffix=".csv", delete=False, newline="", encoding="utf-8"
    )
    with handle:
        writer = csv.writer(handle)
        for i in range(1, count + 1):
            writer.writerow([f"Contact {i}", f"https://www.linkedin.com/in/sample-contact-{i}"])
    return Path(handle.name)


def check_health(base_url: str, headers: dict) -> bool:
    """Check if the API is healthy."""
    print("\n--- Step 1: Checking API Health ---")
    try:
        response = requests.get(f"{base_url}/health", headers=headers, timeout=10)
        if response.status_code == 200:
            print(f"  ✅ API is healthy: {response.json()}")
            return True
        print(f"  ❌ API returned status {response.status_code}")
        return False
    except requests.exceptions.ConnectionError:
        print(f"  ❌ Could not connect to API at {base_url}")
        return False


def upload_sheet(base_url: str, headers: dict, path: Path) -> dict | None:
    """Upload the spreadsheet and create a job."""
    print(f"\n--- Step 2: Uploading {path.name} ---")
    try:
        with path.open("rb") as fh:
            response = requests.post(
                f"{base_url}/jobs/upload",
                headers=headers,
                files={"file": (path.name, fh, "text/csv")},
                timeout=60,
            )
        if response.status_code == 201:
            data = response.json()
            print(f"  ✅ Job created: job_id={data['job_id']}, profiles={data['total_profiles']}")
            return data
        print(f"  ❌ Upload failed with status {response.status_code}: {response.text}")
        return None
    except requests.exceptions.RequestException as e:
        print(f"  ❌ Request failed: {e}")
        return None


def start_job(base_url: str, headers: dict, job_id: int, batch_size: int) -> bool:
    """Queue the job for processing."""
    print(f"\n--- Step 3: Starting job {job_id} (batch size {batch_size}) ---")
    try:
        response = requests.post(
            f"{base_url}/jobs/{job_id}/start",
            headers=headers,
            json={"batch_size": batch_size},
            timeout=30,
        )
        if response.status_code == 200:
            print(f"  ✅ {response.json().get('message')}")
            return True
        print(f"  ❌ Start failed with status {response.status_code}: {response.text}")
        return False
    except requests.exceptions.RequestException as e:
        print(f"  ❌ Request failed: {e}")
        return False


def poll_status(base_url: str, headers: dict, job_id: int) -> dict | None:
    """Poll the job until it reaches a terminal state."""
    print(f"\n--- Step 4: Polling Status for job_id={job_id} ---")

    for attempt in range(1, MAX_POLL_ATTEMPTS + 1):
        try:
            response = requests.get(f"{base_url}/jobs/{job_id}", headers=headers, timeout=10)
            if response.status_code == 200:
                data = response.json()
                status = data.get("status")
                print(
                    f"  [{attempt}/{MAX_POLL_ATTEMPTS}] {status}: "
                    f"{data.get('processed_profiles')}/{data.get('total_profiles')} "
                    f"({data.get('processing_rate') or 'rate pending'})"
                )

                if status == "failed":
                    print(f"  ❌ Job failed: {data.get('error_message')}")
                    return None
                if status == "completed":
                    print(
                        f"  ✅ Completed: {data.get('successful_profiles')} successful, "
                        f"{data.get('failed_profiles')} failed"
                    )
                    return data
            else:
                print(f"  ⚠️  Status check returned {response.status_code}")
        except requests.exceptions.RequestException as e:
            print(f"  ⚠️  Request failed: {e}")

        time.sleep(POLL_INTERVAL_SECONDS)

    print(f"  ❌ Timed out after {MAX_POLL_ATTEMPTS * POLL_INTERVAL_SECONDS} seconds")
    return None


def download_results(base_url: str, headers: dict, job_id: int, output: Path) -> bool:
    """Download the results workbook."""
    print("\n--- Step 5: Downloading Results ---")
    try:
        response = requests.get(f"{base_url}/jobs/{job_id}/download", headers=headers, timeout=60)
        if response.status_code != 200:
            print(f"  ❌ Download failed: {response.status_code} - {response.text}")
            return False
        output.write_bytes(response.content)
        print(f"  ✅ Saved {len(response.content)} bytes to {output}")

        stats = requests.get(f"{base_url}/stats/overview", headers=headers, timeout=10)
        if stats.status_code == 200:
            print(f"  📊 Overview: {stats.json()}")
        return True
    except requests.exceptions.RequestException as e:
        print(f"  ❌ Request failed: {e}")
        return False


def main():
    parser = argparse.ArgumentParser(description="Verify the Profile Batch pipeline")
    parser.add_argument(
        "--base-url",
        default=DEFAULT_BASE_URL,
        help=f"API base URL (default: {DEFAULT_BASE_URL})",
    )
    parser.add_argument(
        "--profiles",
        type=int,
        default=DEFAULT_PROFILE_COUNT,
        help=f"Number of sample profile URLs (default: {DEFAULT_PROFILE_COUNT})",
    )
    parser.add_argument("--batch-size", type=int, default=10, help="Profiles per batch")
    parser.add_argument("--api-key", default=None, help="API key (not needed in development)")
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("verify_results.xlsx"),
        help="Where to save the downloaded workbook",
    )
    args = parser.parse_args()

    base_url = args.base_url.rstrip("/")
    headers = {"X-API-Key": args.api_key} if args.api_key else {}

    print("=" * 60)
    print("  Profile Batch - Pipeline Verification")
    print("=" * 60)

    if not check_health(base_url, headers):
        print("\n❌ VERIFICATION FAILED: API is not healthy")
        sys.exit(1)

    sheet = build_sample_sheet(args.profiles)
    try:
        upload = upload_sheet(base_url, headers, sheet)
    finally:
        sheet.unlink(missing_ok=True)
    if not upload:
        print("\n❌ VERIFICATION FAILED: Could not upload spreadsheet")
        sys.exit(1)

    job_id = upload["job_id"]

    if not start_job(base_url, headers, job_id, args.batch_size):
        print("\n❌ VERIFICATION FAILED: Could not start job")
        sys.exit(1)

    final = poll_status(base_url, headers, job_id)
    if not final:
        print("\n❌ VERIFICATION FAILED: Job did not complete successfully")
        sys.exit(1)

    if not download_results(base_url, headers, job_id, args.output):
        print("\n❌ VERIFICATION FAILED: Could not download results")
        sys.exit(1)

    print("\n" + "=" * 60)
    print("  ✅ PIPELINE VERIFICATION COMPLETE")
    print("=" * 60)
    print(f"\n  Job ID:       {job_id}")
    print(f"  Successful:   {final.get('successful_profiles')}")
    print(f"  Failed:       {final.get('failed_profiles')}")


if __name__ == "__main__":
    main()
