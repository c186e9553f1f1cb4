"""Risk classification from health factors."""
from __future__ import annotations

from .models import RiskLevel


def classify(health_factor: float, warn: float, crit: float) -> RiskLevel:
    """Map a health factor to a risk tier.

    Thresholds are exclusive lower bounds of the riskier tier, so a value
    equal to a threshold lands on the safer side. Misordered thresholds are
    not corrected here.
    """
    if health_factor < crit:
        return RiskLevel.CRITICAL
    if health_factor < warn:
        return RiskLevel.WARNING
    return RiskLevel.SAFE
