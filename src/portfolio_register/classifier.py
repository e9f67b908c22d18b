"""Disposition classifier - TIME model placement.

Maps (business value, health) to one of INVEST / TOLERATE / MIGRATE /
ELIMINATE. Pure and total: every enum/health combination has an answer.
"""

from .schema import BusinessValue, Disposition, DispositionLabel


# Health at or above this value counts as "high health".
HEALTH_THRESHOLD = 70

HIGH_VALUE = frozenset({BusinessValue.CRITICAL, BusinessValue.HIGH})

# Display tone the views pair with each label.
DISPOSITION_TONES = {
    DispositionLabel.INVEST: "green",
    DispositionLabel.MIGRATE: "red",
    DispositionLabel.TOLERATE: "blue",
    DispositionLabel.ELIMINATE: "gray",
}


def classify(value: BusinessValue, health: int) -> Disposition:
    """Classify an application by business value and technical health.

    Rules, in precedence order:
        1. High value, healthy        -> INVEST
        2. High value, unhealthy      -> MIGRATE
        3. Standard value, healthy    -> TOLERATE
        4. Everything else            -> ELIMINATE

    Args:
        value: Business value of the application.
        health: Technical health score, 0-100.

    Returns:
        The derived Disposition with a short rationale tag.
    """
    healthy = health >= HEALTH_THRESHOLD

    if value in HIGH_VALUE and healthy:
        return Disposition(label=DispositionLabel.INVEST, rationale="high-value/high-health")
    if value in HIGH_VALUE:
        return Disposition(label=DispositionLabel.MIGRATE, rationale="high-value/low-health")
    if value == BusinessValue.STANDARD and healthy:
        return Disposition(label=DispositionLabel.TOLERATE, rationale="standard-value/high-health")
    if value == BusinessValue.DEPRECATED:
        return Disposition(label=DispositionLabel.ELIMINATE, rationale="deprecated")
    return Disposition(label=DispositionLabel.ELIMINATE, rationale="standard-value/low-health")


def tone_for(disposition: Disposition) -> str:
    """Return the display tone for a disposition."""
    return DISPOSITION_TONES[disposition.label]
