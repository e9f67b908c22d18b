"""Grouping and aggregation over the enriched portfolio.

Groups applications by capability and by domain, totals their spend and flags
capability redundancy. Grouping keys are taken as-is from the records; there
is no cross-check against the store's vocabularies, and empty references fall
back to "Unassigned". Keys keep first-seen order.
"""

from dataclasses import dataclass, field
from typing import Iterable, Union

from .schema import (
    AppTier,
    Application,
    DispositionLabel,
    EnrichedApplication,
    TIER_ORDER,
    UNASSIGNED,
)
from .classifier import classify


# A capability served by more than this many applications is flagged.
REDUNDANCY_THRESHOLD = 3

PortfolioItem = Union[Application, EnrichedApplication]


def _application(item: PortfolioItem) -> Application:
    if isinstance(item, EnrichedApplication):
        return item.application
    return item


@dataclass
class CapabilityGroup:
    """Applications serving one capability."""
    capability: str
    members: list = field(default_factory=list)
    total_cost: float = 0.0

    @property
    def count(self) -> int:
        return len(self.members)

    @property
    def is_redundant(self) -> bool:
        return self.count > REDUNDANCY_THRESHOLD


@dataclass
class DomainGroup:
    """Applications of one domain, sub-grouped by capability."""
    domain: str
    capabilities: dict[str, CapabilityGroup] = field(default_factory=dict)
    total_cost: float = 0.0

    @property
    def count(self) -> int:
        return sum(group.count for group in self.capabilities.values())

    @property
    def redundant_capabilities(self) -> list[str]:
        return [name for name, group in self.capabilities.items() if group.is_redundant]


@dataclass
class PortfolioSummary:
    """Headline figures for the whole portfolio."""
    application_count: int = 0
    total_cost: float = 0.0
    by_disposition: dict[str, int] = field(default_factory=dict)
    by_tier: dict[str, int] = field(default_factory=dict)
    redundant_capabilities: int = 0


def group_by_capability(apps: Iterable[PortfolioItem]) -> dict[str, CapabilityGroup]:
    """Group applications by capability.

    Args:
        apps: Applications or enriched applications; members keep the type
            they were passed in as.

    Returns:
        Mapping of capability name to its group, in first-seen order.
    """
    groups: dict[str, CapabilityGroup] = {}
    for item in apps:
        app = _application(item)
        key = app.capability_id or UNASSIGNED
        group = groups.get(key)
        if group is None:
            group = groups[key] = CapabilityGroup(capability=key)
        group.members.append(item)
        group.total_cost += app.costs.total
    return groups


def group_by_domain(apps: Iterable[PortfolioItem]) -> dict[str, DomainGroup]:
    """Group applications by domain, then by capability within each domain.

    The domain total is the spend of every application in the domain,
    regardless of capability.
    """
    members: dict[str, list] = {}
    for item in apps:
        key = _application(item).domain or UNASSIGNED
        members.setdefault(key, []).append(item)

    result = {}
    for domain, items in members.items():
        result[domain] = DomainGroup(
            domain=domain,
            capabilities=group_by_capability(items),
            total_cost=sum(_application(i).costs.total for i in items),
        )
    return result


def summarize(apps: Iterable[PortfolioItem]) -> PortfolioSummary:
    """Compute portfolio-wide counts and spend."""
    items = list(apps)
    summary = PortfolioSummary(
        by_disposition={label.value: 0 for label in DispositionLabel},
        by_tier={tier.value: 0 for tier in TIER_ORDER},
    )

    for item in items:
        app = _application(item)
        if isinstance(item, EnrichedApplication):
            label = item.disposition.label
        else:
            label = classify(app.value, app.health).label
        summary.application_count += 1
        summary.total_cost += app.costs.total
        summary.by_disposition[label.value] += 1
        summary.by_tier[AppTier(app.tier).value] += 1

    summary.redundant_capabilities = sum(
        1 for group in group_by_capability(items).values() if group.is_redundant
    )
    return summary
