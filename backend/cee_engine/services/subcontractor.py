"""Subcontractor payment estimator — units × rate per unit."""
from dataclasses import dataclass
from typing import Any, Optional

from cee_engine.config import INSULATION_UNIT_LABEL, LIGHTING_UNIT_LABEL
from cee_engine.models.catalog_schema import RenovationCategory
from cee_engine.services.numeric import sanitize_number


@dataclass
class SubcontractorEstimate:
    base_units: float
    rate: Optional[float]
    unit_label: str
    estimated_cost: float


def parse_subcontractor_rate(pricing_details: Any) -> Optional[float]:
    """
    Rate per unit from a subcontractor's stored pricing.

    Accepts a number or a string such as '12,50' or '12.5 €/m²'.
    Returns None when nothing numeric can be read.
    """
    return sanitize_number(pricing_details, None)


def default_unit_label(category: Optional[RenovationCategory]) -> str:
    if category == RenovationCategory.LIGHTING:
        return LIGHTING_UNIT_LABEL
    return INSULATION_UNIT_LABEL


def estimate_subcontractor_payment(
    category: Optional[RenovationCategory],
    quantity: Any,
    pricing_details: Any = None,
    base_units_override: Any = None,
    stored_units: Any = None,
    stored_rate: Any = None,
    stored_amount: Any = None,
    unit_label: Optional[str] = None,
) -> SubcontractorEstimate:
    """
    Resolve units, rate and label, then estimate the payment.

    Units: manual override, else stored payment units, else the category
    quantity (treated surface or luminaire count).
    Rate: parsed pricing details; a missing or non-positive figure falls back
    on the stored rate, then on stored amount / units.
    """
    label = (unit_label or "").strip() or default_unit_label(category)

    units = 0.0
    for candidate in (base_units_override, stored_units, quantity):
        value = sanitize_number(candidate)
        if value > 0:
            units = value
            break

    rate = parse_subcontractor_rate(pricing_details)
    if rate is None or rate <= 0:
        fallback_rate = sanitize_number(stored_rate)
        fallback_amount = sanitize_number(stored_amount)
        if fallback_rate > 0:
            rate = fallback_rate
        elif units > 0 and fallback_amount > 0:
            rate = fallback_amount / units

    estimated_cost = units * rate if rate is not None and rate > 0 and units > 0 else 0.0
    return SubcontractorEstimate(
        base_units=units,
        rate=rate,
        unit_label=label,
        estimated_cost=estimated_cost,
    )
