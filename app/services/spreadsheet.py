"""
Spreadsheet Service - Reads profile URLs from uploads and writes result workbooks.
"""

import asyncio
import io
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pandas as pd
import structlog
from openpyxl.utils import get_column_letter

from app.config import get_settings
from app.core.errors import InvalidUploadError

settings = get_settings()
logger = structlog.get_logger(__name__)

PROFILE_URL_PATTERN = re.compile(r"linkedin\.com/(in|pub)/", re.IGNORECASE)

MIN_COLUMN_WIDTH = 15


@dataclass(frozen=True)
class ProfileRow:
    """A profile URL found in an uploaded sheet."""

    url: str
    row_index: int
    extra: dict[str, Any] = field(default_factory=dict)


def _has_value(cell: Any) -> bool:
    if cell is None:
        return False
    if isinstance(cell, str):
        return bool(cell.strip())
    try:
        return not pd.isna(cell)
    except (TypeError, ValueError):
        return True


def read_sheet(path: Path) -> pd.DataFrame:
    """Load the first sheet of a workbook (or a CSV file) without a header row."""
    if path.suffix.lower() == ".csv":
        return pd.read_csv(path, header=None, dtype=object, skip_blank_lines=False)
    return pd.read_excel(path, sheet_name=0, header=None, dtype=object)


def parse_profile_urls(path: str | Path) -> list[ProfileRow]:
    """
    Scan every cell of the first sheet for profile URLs.

    A row may contribute more than one URL. The other non-empty cells of the
    row are kept as ``column_<index>`` extras.

    Raises:
        InvalidUploadError: If the file cannot be read
    """
    path = Path(path)
    try:
        frame = read_sheet(path)
    except Exception as e:
        raise InvalidUploadError(f"Failed to parse spreadsheet: {e}", path.name) from e

    rows: list[ProfileRow] = []
    for row_index, row in enumerate(frame.itertuples(index=False, name=None)):
        for col_index, cell in enumerate(row):
            if not isinstance(cell, str) or not PROFILE_URL_PATTERN.search(cell):
                continue

            extra = {
                f"column_{idx}": value
                for idx, value in enumerate(row)
                if idx != col_index and _has_value(value)
            }
            rows.append(ProfileRow(url=cell.strip(), row_index=row_index, extra=extra))

    return rows


def validate_spreadsheet(path: str | Path) -> None:
    """
    Check an uploaded file before accepting it.

    Raises:
        InvalidUploadError: If the file is missing, too large, of the wrong
            type, or has no worksheets
    """
    path = Path(path)
    if not path.exists():
        raise InvalidUploadError("File does not exist", path.name)

    if path.suffix.lower() not in settings.allowed_extensions:
        raise InvalidUploadError(
            f"Unsupported file type {path.suffix or '(none)'}; "
            f"allowed: {', '.join(settings.allowed_extensions)}",
            path.name,
        )

    if path.stat().st_size > settings.max_upload_size_bytes:
        raise InvalidUploadError(
            f"File size exceeds {settings.max_upload_size_mb}MB limit", path.name
        )

    if path.suffix.lower() == ".csv":
        return

    try:
        sheets = pd.ExcelFile(path).sheet_names
    except Exception as e:
        raise InvalidUploadError(f"Invalid spreadsheet: {e}", path.name) from e

    if not sheets:
        raise InvalidUploadError("No worksheets found in file", path.name)


def _autosize(worksheet: Any, columns: list[str]) -> None:
    for idx, column in enumerate(columns, start=1):
        worksheet.column_dimensions[get_column_letter(idx)].width = max(
            len(column), MIN_COLUMN_WIDTH
        )


def _write(target: Any, rows: list[dict[str, Any]], columns: list[str], sheet_name: str) -> None:
    frame = pd.DataFrame(rows, columns=columns)
    with pd.ExcelWriter(target, engine="openpyxl") as writer:
        frame.to_excel(writer, sheet_name=sheet_name, index=False)
        _autosize(writer.sheets[sheet_name], columns)


def write_results(
    rows: list[dict[str, Any]],
    columns: list[str],
    path: str | Path,
    sheet_name: str = "Results",
) -> str:
    """Write rows to an .xlsx file and return its path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    _write(path, rows, columns, sheet_name)
    return str(path)


def workbook_bytes(
    rows: list[dict[str, Any]],
    columns: list[str],
    sheet_name: str = "Profiles",
) -> bytes:
    """Render rows to an in-memory .xlsx workbook."""
    buffer = io.BytesIO()
    _write(buffer, rows, columns, sheet_name)
    return buffer.getvalue()


class SpreadsheetParser:
    """Async row extractor; parsing runs in the default executor."""

    async def parse_rows(self, path: str | Path) -> list[ProfileRow]:
        loop = asyncio.get_event_loop()
        rows = await loop.run_in_executor(None, lambda: parse_profile_urls(path))

        await logger.ainfo("spreadsheet_parsed", path=str(path), profiles=len(rows))
        return rows


class SpreadsheetWriter:
    """Async row writer; writing runs in the default executor."""

    async def write_artifact(
        self,
        rows: list[dict[str, Any]],
        columns: list[str],
        path: str | Path,
    ) -> str:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(
            None, lambda: write_results(rows, columns, path)
        )

    async def render(
        self,
        rows: list[dict[str, Any]],
        columns: list[str],
    ) -> bytes:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, lambda: workbook_bytes(rows, columns))
