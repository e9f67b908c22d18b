"""Pydantic models for the application portfolio register.

The Application record is the aggregate root. Vocabularies (domains,
capabilities) are plain string sets held by the store; applications point at
them by name only, so dangling references are legal and resolved to a
sentinel by every consumer.
"""

import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator


UNASSIGNED = "Unassigned"
SCOPE_ALL = "ALL"


def _normalize_token(value: str) -> str:
    return value.strip().upper().replace("-", "_").replace(" ", "_")


def new_application_id() -> str:
    """Generate an opaque unique application identifier."""
    return str(uuid.uuid4())


# =============================================================================
# Enumerations
# =============================================================================


class TolerantEnum(str, Enum):
    """String enum with a forgiving parser for tabular input."""

    @classmethod
    def from_string(cls, value: Optional[str]):
        """Parse a member from a string, or return None if unrecognized."""
        if value is None:
            return None
        token = _normalize_token(str(value))
        if not token:
            return None
        for member in cls:
            if member.value == token:
                return member
        return None

    @classmethod
    def accepted(cls) -> str:
        """Comma-separated list of accepted values, for error messages."""
        return ", ".join(member.value for member in cls)


class AppTier(TolerantEnum):
    """Architectural layer; drives dependency-graph lane placement."""
    CHANNEL = "CHANNEL"
    INTEGRATION = "INTEGRATION"
    CORE = "CORE"
    INFRA = "INFRA"


class BusinessValue(TolerantEnum):
    """Business value of an application; drives classification."""
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    STANDARD = "STANDARD"
    DEPRECATED = "DEPRECATED"


class PiiRisk(TolerantEnum):
    NONE = "NONE"
    LOW = "LOW"
    HIGH = "HIGH"


class TechnicalDebt(TolerantEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class LifecycleStatus(TolerantEnum):
    ACTIVE = "ACTIVE"
    PHASE_OUT = "PHASE_OUT"
    EOL = "EOL"


class DataSensitivity(TolerantEnum):
    PUBLIC = "PUBLIC"
    INTERNAL = "INTERNAL"
    CONFIDENTIAL = "CONFIDENTIAL"
    RESTRICTED = "RESTRICTED"


class DispositionLabel(str, Enum):
    """TIME-model strategic disposition."""
    INVEST = "INVEST"
    TOLERATE = "TOLERATE"
    MIGRATE = "MIGRATE"
    ELIMINATE = "ELIMINATE"


# Tier display order, left to right.
TIER_ORDER = [AppTier.CHANNEL, AppTier.INTEGRATION, AppTier.CORE, AppTier.INFRA]


# =============================================================================
# Value objects
# =============================================================================


class SecurityProfile(BaseModel):
    """Security and compliance attributes."""
    gdpr_compliant: bool = False
    pii_risk: PiiRisk = PiiRisk.NONE

    class Config:
        validate_assignment = True


class Lifecycle(BaseModel):
    """Time-based lifecycle state."""
    status: LifecycleStatus = LifecycleStatus.ACTIVE

    class Config:
        validate_assignment = True


class Costs(BaseModel):
    """Annual cost breakdown.

    total is stored, not recomputed on edits. When a Costs value is built
    without an explicit total it is derived as license + maintenance.
    """
    license: float = Field(0.0, ge=0)
    maintenance: float = Field(0.0, ge=0)
    total: Optional[float] = Field(None, ge=0)

    class Config:
        validate_assignment = True

    @model_validator(mode="after")
    def _derive_total(self) -> "Costs":
        if self.total is None:
            # object.__setattr__ avoids re-entering assignment validation
            object.__setattr__(self, "total", self.license + self.maintenance)
        return self


# =============================================================================
# Aggregate root
# =============================================================================


class Application(BaseModel):
    """An application in the portfolio.

    capability_id and domain are soft references into the store's
    vocabularies. upstream_ids / downstream_ids are not kept symmetric and may
    point at deleted applications.
    """

    id: str = Field(default_factory=new_application_id, frozen=True)
    name: str
    code: str
    tier: AppTier = AppTier.CORE
    value: BusinessValue = BusinessValue.STANDARD
    health: int = Field(50, ge=0, le=100)
    capability_id: str = ""
    domain: str = ""
    owner: str = ""
    description: str = ""
    security: SecurityProfile = Field(default_factory=SecurityProfile)
    technical_debt: TechnicalDebt = TechnicalDebt.MEDIUM
    lifecycle: Lifecycle = Field(default_factory=Lifecycle)
    costs: Costs = Field(default_factory=Costs)
    data_sensitivity: DataSensitivity = DataSensitivity.INTERNAL
    upstream_ids: list[str] = Field(default_factory=list)
    downstream_ids: list[str] = Field(default_factory=list)

    class Config:
        validate_assignment = True


# =============================================================================
# Derived models
# =============================================================================


class Disposition(BaseModel):
    """Derived strategic recommendation. Never stored on the Application."""
    label: DispositionLabel
    rationale: str


class EnrichedApplication(BaseModel):
    """An application decorated with its disposition at read time."""
    application: Application
    disposition: Disposition
    tone: str = "gray"


class PortfolioSnapshot(BaseModel):
    """Minimal projection handed to the advisory collaborator."""
    name: str
    tier: AppTier
    health: int
    value: BusinessValue
    pii: PiiRisk
