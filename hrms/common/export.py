"""Report rendering: turn already-fetched rows into CSV downloads."""

from __future__ import annotations

import csv
import io
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional, Sequence

from fastapi.responses import StreamingResponse

from hrms.common.constants import REPORT_DATE_FORMAT, REPORT_TIME_FORMAT


def format_duration(minutes: Optional[int]) -> str:
    """``125`` → ``"2h 5m"``; open sessions render as ``"-"``."""
    if minutes is None:
        return "-"
    hours, mins = divmod(int(minutes), 60)
    return f"{hours}h {mins}m"


def format_hours(minutes: Optional[int]) -> float:
    """Minutes → hours rounded to two decimals."""
    if not minutes:
        return 0.0
    return round(minutes / 60, 2)


def format_date(value: Optional[date]) -> str:
    return value.strftime(REPORT_DATE_FORMAT) if value else ""


def format_time(value: Optional[datetime]) -> str:
    return value.strftime(REPORT_TIME_FORMAT) if value else "-"


def render_csv(headers: Sequence[str], rows: Iterable[Mapping[str, Any]]) -> str:
    """Render *rows* (dicts keyed by header) as CSV text with a header line."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=list(headers), extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow({h: "" if row.get(h) is None else row.get(h) for h in headers})
    return buffer.getvalue()


def csv_download(content: str, filename: str) -> StreamingResponse:
    """Wrap CSV text in an attachment response."""
    return StreamingResponse(
        iter([content]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
