"""Tabular export - flatten applications to one CSV row each.

Column names are accepted by the importer, so an export can be re-imported
to reproduce equivalent records (with fresh ids).
"""

import csv
import io
from pathlib import Path
from typing import Iterable

from .schema import Application


EXPORT_COLUMNS = [
    "ID",
    "Name",
    "Code",
    "Tier",
    "Status",
    "Health",
    "Value",
    "Capability",
    "Domain",
    "Owner",
    "Description",
    "Cost",
    "LicenseCost",
    "MaintenanceCost",
    "PII",
    "GDPR",
    "TechnicalDebt",
    "DataSensitivity",
]


def _format_amount(amount: float) -> str:
    return str(int(amount)) if float(amount).is_integer() else repr(float(amount))


def flatten(app: Application) -> dict[str, str]:
    """Flatten an application into export columns."""
    return {
        "ID": app.id,
        "Name": app.name,
        "Code": app.code,
        "Tier": app.tier.value,
        "Status": app.lifecycle.status.value,
        "Health": str(app.health),
        "Value": app.value.value,
        "Capability": app.capability_id,
        "Domain": app.domain,
        "Owner": app.owner,
        "Description": app.description,
        "Cost": _format_amount(app.costs.total),
        "LicenseCost": _format_amount(app.costs.license),
        "MaintenanceCost": _format_amount(app.costs.maintenance),
        "PII": app.security.pii_risk.value,
        "GDPR": "true" if app.security.gdpr_compliant else "false",
        "TechnicalDebt": app.technical_debt.value,
        "DataSensitivity": app.data_sensitivity.value,
    }


def export_csv(apps: Iterable[Application]) -> str:
    """Serialize applications to CSV text with a header row."""
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=EXPORT_COLUMNS, lineterminator="\n")
    writer.writeheader()
    for app in apps:
        writer.writerow(flatten(app))
    return output.getvalue()


def write_export(apps: Iterable[Application], path: Path) -> int:
    """Write a CSV export to a file.

    Returns:
        Number of application rows written.
    """
    items = list(apps)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(export_csv(items), encoding="utf-8")
    return len(items)
