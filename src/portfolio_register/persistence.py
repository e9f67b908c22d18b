"""JSON persistence for a portfolio store.

The register itself is in-memory; this module writes and reads the same
entity model so the CLI can keep a portfolio between invocations.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from .schema import Application
from .store import PortfolioStore

logger = logging.getLogger(__name__)


class PortfolioFileError(Exception):
    """Raised when a portfolio document cannot be read or is invalid."""


class PortfolioDocument(BaseModel):
    """On-disk form of a portfolio."""
    version: str = Field(default="1.0.0", description="Document schema version")
    saved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    capabilities: list[str] = Field(default_factory=list)
    domains: list[str] = Field(default_factory=list)
    applications: list[Application] = Field(default_factory=list)


def save_portfolio(store: PortfolioStore, path: Path) -> None:
    """Write the store's applications and vocabularies to a JSON file."""
    doc = PortfolioDocument(
        capabilities=store.capabilities,
        domains=store.domains,
        applications=store.applications,
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(doc.model_dump_json(indent=2), encoding="utf-8")
    logger.info("Portfolio saved to %s (%s applications)", path, len(store))


def load_portfolio(path: Path) -> PortfolioStore:
    """Load a store from a JSON file.

    Raises:
        PortfolioFileError: If the file is unreadable or fails validation.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise PortfolioFileError(f"Could not read {path}: {exc}")
    except json.JSONDecodeError as exc:
        raise PortfolioFileError(f"{path} is not valid JSON: {exc}")

    try:
        doc = PortfolioDocument.model_validate(data)
    except ValidationError as exc:
        raise PortfolioFileError(f"{path} failed schema validation: {exc}")

    return PortfolioStore(
        applications=doc.applications,
        capabilities=doc.capabilities,
        domains=doc.domains,
    )
