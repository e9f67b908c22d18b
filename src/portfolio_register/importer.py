"""Tabular import - CSV parsing, row validation and staged commit.

Each row is validated on its own. The only cross-row state is duplicate-code
detection against codes already in the store (not against other rows of the
same batch). Validation never raises for bad row content: problems are
collected as errors (block the row) or warnings (advisory only).

Row lifecycle: UPLOADED -> VALIDATED (OK | WARNING | ERROR) -> COMMITTED or
DISCARDED. ERROR rows can never be committed.
"""

import csv
import io
import logging
import math
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from .config import ImportConfig, get_config
from .schema import (
    AppTier,
    Application,
    BusinessValue,
    Costs,
    DataSensitivity,
    Lifecycle,
    LifecycleStatus,
    PiiRisk,
    SecurityProfile,
    TechnicalDebt,
    UNASSIGNED,
)
from .store import PortfolioStore

logger = logging.getLogger(__name__)


# Canonical field -> accepted column headers (matched case-insensitively).
COLUMN_ALIASES = {
    "name": ["Name"],
    "code": ["Code"],
    "tier": ["Tier"],
    "value": ["Value", "BusinessValue"],
    "health": ["Health"],
    "capability": ["Capability"],
    "owner": ["Owner"],
    "domain": ["Domain"],
    "status": ["Status", "Lifecycle"],
    "pii": ["PII"],
    "gdpr": ["GDPR"],
    "debt": ["Debt", "TechnicalDebt"],
    "license": ["License", "LicenseCost"],
    "maintenance": ["Maintenance", "MaintenanceCost"],
    "sensitivity": ["Sensitivity", "DataSensitivity"],
    "cost": ["Cost", "AnnualCost", "TotalCost"],
    "description": ["Description"],
}

TRUTHY = {"TRUE", "YES", "Y", "1"}


class CsvFormatError(Exception):
    """Raised when tabular input cannot be read at all (e.g. no header row)."""


class RowStatus(str, Enum):
    """Validation outcome of a row."""
    OK = "OK"
    WARNING = "WARNING"
    ERROR = "ERROR"


class RowState(str, Enum):
    """Position of a row in the import lifecycle."""
    UPLOADED = "UPLOADED"
    VALIDATED = "VALIDATED"
    COMMITTED = "COMMITTED"
    DISCARDED = "DISCARDED"


class RowValidation(BaseModel):
    """Validation result for one input row."""
    raw: dict[str, str] = Field(default_factory=dict)
    candidate: Optional[Application] = None
    is_valid: bool = False
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    state: RowState = RowState.VALIDATED

    @property
    def status(self) -> RowStatus:
        if not self.is_valid:
            return RowStatus.ERROR
        if self.warnings:
            return RowStatus.WARNING
        return RowStatus.OK

    @property
    def committable(self) -> bool:
        return (
            self.is_valid
            and self.candidate is not None
            and self.state == RowState.VALIDATED
        )


# =============================================================================
# Field parsing helpers
# =============================================================================


def _column(row: dict[str, str], field: str, strip: bool = True) -> str:
    """Return the first non-blank value among the aliases of a field.

    Free-text fields pass strip=False so the cell is kept verbatim.
    """
    lowered = {k.strip().lower(): v for k, v in row.items() if k}
    for alias in COLUMN_ALIASES[field]:
        value = lowered.get(alias.lower())
        if value is not None and str(value).strip():
            return str(value).strip() if strip else str(value)
    return ""


def _parse_number(value: str) -> Optional[float]:
    if not value:
        return None
    try:
        number = float(value.replace(",", ""))
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return number


def _parse_health(value: str, default: int) -> int:
    number = _parse_number(value)
    if number is None:
        return default
    return max(0, min(100, int(number)))


def _parse_cost(value: str) -> float:
    number = _parse_number(value)
    if number is None:
        return 0.0
    return max(0.0, number)


def _parse_pii(value: str) -> PiiRisk:
    parsed = PiiRisk.from_string(value)
    if parsed is not None:
        return parsed
    if value.upper() in TRUTHY:
        return PiiRisk.HIGH
    return PiiRisk.NONE


# =============================================================================
# Validator
# =============================================================================


class ImportValidator:
    """Validates raw CSV rows into candidate Application records.

    Args:
        existing_codes: Codes already present in the store.
        capabilities: Capability vocabulary; its first entry is the default
            capability for rows that name none.
        settings: Import defaults; falls back to the loaded config.
    """

    def __init__(
        self,
        existing_codes: Iterable[str] = (),
        capabilities: Optional[Iterable[str]] = None,
        settings: Optional[ImportConfig] = None,
    ):
        config = get_config()
        self.existing_codes = set(existing_codes)
        self.capabilities = list(
            config.vocabulary.capabilities if capabilities is None else capabilities
        )
        self.settings = settings or config.imports

    @classmethod
    def for_store(cls, store: PortfolioStore) -> "ImportValidator":
        """Build a validator that checks duplicates against a store."""
        return cls(existing_codes=store.codes(), capabilities=store.capabilities)

    def validate(self, raw_row: dict[str, str]) -> RowValidation:
        """Validate one row.

        Returns:
            RowValidation holding a candidate only when there are no errors.
        """
        raw = {str(k).strip(): ("" if v is None else str(v)) for k, v in raw_row.items() if k is not None}
        errors: list[str] = []
        warnings: list[str] = []

        name = _column(raw, "name", strip=False)
        code = _column(raw, "code", strip=False)
        if not name:
            errors.append("Missing Name")
        if not code:
            errors.append("Missing Code")

        status_text = _column(raw, "status")
        status = LifecycleStatus.from_string(status_text) if status_text else LifecycleStatus.ACTIVE
        if status is None:
            errors.append(f"Invalid Lifecycle Status. Must be: {LifecycleStatus.accepted()}")

        tier_text = _column(raw, "tier")
        tier = AppTier.from_string(tier_text) if tier_text else AppTier.CORE
        if tier is None:
            errors.append(f"Invalid Tier. Must be: {AppTier.accepted()}")

        value_text = _column(raw, "value")
        value = BusinessValue.from_string(value_text) if value_text else BusinessValue.STANDARD
        if value is None:
            errors.append(f"Invalid Value. Must be: {BusinessValue.accepted()}")

        owner = _column(raw, "owner", strip=False)
        if not owner:
            warnings.append("Missing Data Steward (Owner)")

        if code and code in self.existing_codes:
            warnings.append("Duplicate Code (will duplicate)")

        if errors:
            return RowValidation(raw=raw, is_valid=False, errors=errors, warnings=warnings)

        license_cost = _parse_cost(_column(raw, "license"))
        maintenance_cost = _parse_cost(_column(raw, "maintenance"))
        total_text = _column(raw, "cost")
        total = _parse_cost(total_text) if _parse_number(total_text) is not None else None

        candidate = Application(
            name=name,
            code=code,
            tier=tier,
            value=value,
            health=_parse_health(_column(raw, "health"), self.settings.default_health),
            capability_id=_column(raw, "capability", strip=False) or (self.capabilities[0] if self.capabilities else UNASSIGNED),
            domain=_column(raw, "domain", strip=False) or self.settings.default_domain,
            owner=owner or self.settings.default_owner,
            description=_column(raw, "description", strip=False),
            security=SecurityProfile(
                gdpr_compliant=_column(raw, "gdpr").upper() in TRUTHY,
                pii_risk=_parse_pii(_column(raw, "pii")),
            ),
            technical_debt=TechnicalDebt.from_string(_column(raw, "debt")) or TechnicalDebt.MEDIUM,
            lifecycle=Lifecycle(status=status),
            costs=Costs(license=license_cost, maintenance=maintenance_cost, total=total),
            data_sensitivity=DataSensitivity.from_string(_column(raw, "sensitivity")) or DataSensitivity.INTERNAL,
        )
        return RowValidation(raw=raw, candidate=candidate, is_valid=True, errors=errors, warnings=warnings)

    def validate_rows(self, rows: Iterable[dict[str, str]]) -> "ImportBatch":
        """Validate every row into a staging batch."""
        batch = ImportBatch(rows=[self.validate(row) for row in rows])
        logger.info(
            "Validated %s rows: %s ok, %s warning, %s error",
            len(batch.rows), batch.count(RowStatus.OK),
            batch.count(RowStatus.WARNING), batch.count(RowStatus.ERROR),
        )
        return batch


# =============================================================================
# Staging and commit
# =============================================================================


class ImportBatch(BaseModel):
    """Validated rows awaiting a commit/discard decision."""
    rows: list[RowValidation] = Field(default_factory=list)

    def count(self, status: RowStatus) -> int:
        return sum(1 for r in self.rows if r.status == status)

    @property
    def valid_count(self) -> int:
        return sum(1 for r in self.rows if r.is_valid)

    @property
    def invalid_count(self) -> int:
        return len(self.rows) - self.valid_count

    def discard(self, index: int) -> None:
        """Exclude a row from the commit. Committed rows stay committed."""
        row = self.rows[index]
        if row.state == RowState.VALIDATED:
            row.state = RowState.DISCARDED

    def commit(self, store: PortfolioStore) -> list[Application]:
        """Append the committable candidates to the store, in row order."""
        return commit(self.rows, store)


def commit(validated_rows: Iterable[RowValidation], store: PortfolioStore) -> list[Application]:
    """Commit OK and WARNING rows to the store.

    All candidates are staged before the store is mutated, and the store sees
    a single bulk_add, so readers see either none or all of the batch.

    Returns:
        The applications that were added.
    """
    rows = [r for r in validated_rows if r.committable]
    staged = [r.candidate for r in rows]
    store.bulk_add(staged)
    for row in rows:
        row.state = RowState.COMMITTED
    logger.info("Committed %s imported applications", len(staged))
    return staged


# =============================================================================
# CSV reading
# =============================================================================


def parse_csv(text: str) -> list[dict[str, str]]:
    """Parse CSV text with a header row into row dicts.

    Unknown columns are kept in the dict and ignored by the validator. Rows
    with no non-blank cell are skipped.

    Raises:
        CsvFormatError: If there is no header row.
    """
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    try:
        fieldnames = reader.fieldnames
    except csv.Error as exc:
        raise CsvFormatError(f"Could not read CSV: {exc}")
    if not fieldnames or not any(f and f.strip() for f in fieldnames):
        raise CsvFormatError("CSV input has no header row")

    rows = []
    try:
        for record in reader:
            row = {k.strip(): (v or "") for k, v in record.items() if k is not None}
            if any(v.strip() for v in row.values()):
                rows.append(row)
    except csv.Error as exc:
        raise CsvFormatError(f"Could not read CSV line {reader.line_num}: {exc}")
    return rows


def read_csv(path: Path) -> list[dict[str, str]]:
    """Read and parse a CSV file."""
    try:
        text = Path(path).read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        raise CsvFormatError(f"Could not read {path}: {exc}")
    return parse_csv(text)


def stage_csv(text: str, store: PortfolioStore) -> ImportBatch:
    """Parse and validate CSV text against a store without committing."""
    return ImportValidator.for_store(store).validate_rows(parse_csv(text))
