"""Portfolio store - the authoritative in-memory set of applications.

Owns the application list and the two controlled vocabularies. All mutation
goes through the methods here; consumers receive the store by reference.
"""

import logging
from typing import Any, Iterable, Iterator, Optional

from .classifier import classify, tone_for
from .config import get_config
from .schema import (
    Application,
    EnrichedApplication,
    PortfolioSnapshot,
    TolerantEnum,
    UNASSIGNED,
)

logger = logging.getLogger(__name__)

DEPENDENCY_FIELDS = {
    "upstream": "upstream_ids",
    "downstream": "downstream_ids",
}


class ApplicationNotFoundError(KeyError):
    """Raised in strict mode when an update/delete targets an unknown id."""


class PortfolioStore:
    """In-memory collection of applications plus domain/capability vocabularies.

    Update and delete on an unknown id are silent no-ops returning False,
    unless strict_not_found is enabled, in which case they raise
    ApplicationNotFoundError. Update after delete is never a re-insertion.
    """

    def __init__(
        self,
        applications: Optional[Iterable[Application]] = None,
        capabilities: Optional[Iterable[str]] = None,
        domains: Optional[Iterable[str]] = None,
        strict_not_found: Optional[bool] = None,
    ):
        config = get_config()
        self._apps: list[Application] = list(applications or [])
        self._capabilities = _sorted_unique(
            config.vocabulary.capabilities if capabilities is None else capabilities
        )
        self._domains = _sorted_unique(
            config.vocabulary.domains if domains is None else domains
        )
        self.strict_not_found = (
            config.store.strict_not_found if strict_not_found is None else strict_not_found
        )

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._apps)

    def __iter__(self) -> Iterator[Application]:
        return iter(list(self._apps))

    def __contains__(self, app_id: object) -> bool:
        return any(a.id == app_id for a in self._apps)

    @property
    def applications(self) -> list[Application]:
        """Applications in insertion order (a new list, same records)."""
        return list(self._apps)

    @property
    def capabilities(self) -> list[str]:
        return list(self._capabilities)

    @property
    def domains(self) -> list[str]:
        return list(self._domains)

    def get(self, app_id: str) -> Optional[Application]:
        """Return the application with the given id, or None."""
        return next((a for a in self._apps if a.id == app_id), None)

    def codes(self) -> list[str]:
        """Codes of all stored applications (duplicates included)."""
        return [a.code for a in self._apps]

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def add(self, app: Application) -> None:
        """Append an application. The caller supplies a unique id."""
        self._apps.append(app)
        logger.debug("Added application %s (%s)", app.code, app.id)

    def bulk_add(self, apps: Iterable[Application]) -> None:
        """Append a batch of applications in order.

        The batch is fully materialized before the store is touched, so
        readers never observe a partial batch.
        """
        staged = list(apps)
        self._apps.extend(staged)
        logger.debug("Bulk added %s applications", len(staged))

    def update(self, app: Application) -> bool:
        """Replace the record with the same id.

        Returns:
            True if a record was replaced, False if the id is unknown.
        """
        for index, existing in enumerate(self._apps):
            if existing.id == app.id:
                self._apps[index] = app
                logger.debug("Updated application %s", app.id)
                return True
        return self._not_found("update", app.id)

    def delete(self, app_id: str) -> bool:
        """Hard-delete an application.

        Dependency lists on other applications are left untouched; graph
        consumers filter the dangling ids.

        Returns:
            True if a record was removed, False if the id is unknown.
        """
        for index, existing in enumerate(self._apps):
            if existing.id == app_id:
                del self._apps[index]
                logger.debug("Deleted application %s", app_id)
                return True
        return self._not_found("delete", app_id)

    def edit(self, app_id: str, changes: dict[str, Any]) -> Optional[Application]:
        """Apply field-level edits to an application.

        Keys may be dotted paths into value objects, e.g. ``costs.total`` or
        ``security.pii_risk``. Every change is resolved and validated against
        a merged copy first; the record is only touched when all of them
        pass, so a failing edit leaves it unchanged.

        Returns:
            The edited application, or None if the id is unknown.
        """
        app = self.get(app_id)
        if app is None:
            self._not_found("edit", app_id)
            return None

        data = app.model_dump()
        touched = set()
        for path, value in changes.items():
            if path == "id":
                raise ValueError("Application id is immutable")
            *parents, attr = path.split(".")
            model, target = type(app), data
            for parent in parents:
                if parent not in getattr(model, "model_fields", {}):
                    raise ValueError(f"Unknown field: {path}")
                model = model.model_fields[parent].annotation
                target = target[parent]
            fields = getattr(model, "model_fields", {})
            if attr not in fields:
                raise ValueError(f"Unknown field: {path}")
            field_type = fields[attr].annotation
            if isinstance(value, str) and isinstance(field_type, type) and issubclass(field_type, TolerantEnum):
                parsed = field_type.from_string(value)
                if parsed is None:
                    raise ValueError(f"Invalid {path}. Must be: {field_type.accepted()}")
                value = parsed
            target[attr] = value
            touched.add(path.split(".", 1)[0])

        candidate = Application.model_validate(data)
        for name in touched:
            setattr(app, name, getattr(candidate, name))

        logger.debug("Edited application %s: %s", app_id, ", ".join(changes))
        return app

    def create_application(self, name: str, code: str, **fields: Any) -> Application:
        """Create and add a new application with a fresh id.

        Capability and domain default to the first vocabulary entry, or to
        "Unassigned" when the vocabulary is empty.
        """
        fields.setdefault("capability_id", self._capabilities[0] if self._capabilities else UNASSIGNED)
        fields.setdefault("domain", self._domains[0] if self._domains else UNASSIGNED)
        app = Application(name=name, code=code, **fields)
        self.add(app)
        return app

    def toggle_dependency(self, app_id: str, target_id: str, direction: str = "downstream") -> bool:
        """Add target_id to a dependency list if absent, remove it if present.

        The reverse list on the target is not touched. Self-references are
        ignored.

        Returns:
            True if the dependency is present after the call.
        """
        if direction not in DEPENDENCY_FIELDS:
            raise ValueError(f"direction must be one of: {', '.join(DEPENDENCY_FIELDS)}")

        app = self.get(app_id)
        if app is None:
            self._not_found("link", app_id)
            return False
        if target_id == app_id:
            logger.debug("Ignoring self-reference on %s", app_id)
            return False

        field_name = DEPENDENCY_FIELDS[direction]
        current = getattr(app, field_name)
        if target_id in current:
            setattr(app, field_name, [x for x in current if x != target_id])
            return False
        setattr(app, field_name, current + [target_id])
        return True

    # -------------------------------------------------------------------------
    # Vocabularies
    # -------------------------------------------------------------------------

    def add_capability(self, capability: str) -> None:
        """Add a capability; blank values are ignored."""
        self._capabilities = _sorted_unique(self._capabilities + [capability.strip()])

    def remove_capability(self, capability: str) -> None:
        self._capabilities = [c for c in self._capabilities if c != capability]

    def add_domain(self, domain: str) -> None:
        self._domains = _sorted_unique(self._domains + [domain.strip()])

    def remove_domain(self, domain: str) -> None:
        self._domains = [d for d in self._domains if d != domain]

    # -------------------------------------------------------------------------
    # Derived views
    # -------------------------------------------------------------------------

    def enriched(self) -> list[EnrichedApplication]:
        """Every application paired with its disposition, computed now."""
        rows = []
        for app in self._apps:
            disposition = classify(app.value, app.health)
            rows.append(EnrichedApplication(
                application=app,
                disposition=disposition,
                tone=tone_for(disposition),
            ))
        return rows

    def enriched_one(self, app_id: str) -> Optional[EnrichedApplication]:
        """Enriched view of a single application, or None."""
        app = self.get(app_id)
        if app is None:
            return None
        disposition = classify(app.value, app.health)
        return EnrichedApplication(application=app, disposition=disposition, tone=tone_for(disposition))

    def snapshot(self) -> list[PortfolioSnapshot]:
        """Detached minimal projection for the advisory collaborator."""
        return [
            PortfolioSnapshot(
                name=a.name,
                tier=a.tier,
                health=a.health,
                value=a.value,
                pii=a.security.pii_risk,
            )
            for a in self._apps
        ]

    def _not_found(self, operation: str, app_id: str) -> bool:
        if self.strict_not_found:
            raise ApplicationNotFoundError(f"Cannot {operation}: application not found: {app_id}")
        logger.debug("Ignoring %s of unknown application %s", operation, app_id)
        return False


def _sorted_unique(values: Iterable[str]) -> list[str]:
    return sorted(set(v for v in values if v))
