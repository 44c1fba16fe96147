from __future__ import annotations

import csv
import io
import json
from collections.abc import Iterable

from jobflow.api.schemas import JobApplicationResponse
from jobflow.db.models import JobApplication

CSV_HEADERS = ["Title", "Company", "Platform", "Status", "Applied Date", "Pay Rate", "URL"]


def _csv_row(application: JobApplication) -> list[str]:
    applied = application.applied_at.date().isoformat() if application.applied_at else ""
    return [
        application.title,
        application.company,
        application.platform,
        application.status,
        applied,
        application.pay_rate or "",
        application.url or "",
    ]


def export_applications_csv(applications: Iterable[JobApplication]) -> str:
    buffer = io.StringIO()
    # Quoting only kicks in for fields holding a comma, quote or newline.
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for application in applications:
        writer.writerow(_csv_row(application))
    return buffer.getvalue()


def export_applications_json(applications: Iterable[JobApplication]) -> str:
    rows = [JobApplicationResponse.model_validate(item).model_dump(mode="json") for item in applications]
    return json.dumps(rows, indent=2)
