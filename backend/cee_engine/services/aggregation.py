"""Project-level CEE totals and energy breakdown by product category."""
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional

from cee_engine.config import MWH_DIVISOR, UNCATEGORISED_LABEL
from cee_engine.models.catalog_schema import Delegate, ProjectEnergySource, ProjectProductLine
from cee_engine.services.valorisation_engine import (
    PrimeCeeResult,
    ProductValorisation,
    compute_product_valorisation,
    get_kwh_cumac,
    is_product_excluded,
    resolve_multiplier,
)

logger = logging.getLogger("cee-engine.aggregation")


@dataclass
class ProjectCeeTotals:
    total_prime: float = 0.0
    valorisation_total_mwh: float = 0.0
    valorisation_total_eur: float = 0.0
    # False = nothing computed yet, as opposed to a genuine zero valorisation
    has_computed_totals: bool = False


@dataclass
class ProjectValorisation:
    products: List[ProductValorisation]
    totals: ProjectCeeTotals


@dataclass
class EnergyBreakdownEntry:
    category: str
    mwh: float


@dataclass
class EnergyBreakdown:
    total_mwh: float = 0.0
    breakdown: List[EnergyBreakdownEntry] = field(default_factory=list)


def aggregate(results: Iterable[Optional[PrimeCeeResult]]) -> ProjectCeeTotals:
    """Sum the non-None line results; None entries contribute zero."""
    totals = ProjectCeeTotals()
    for result in results:
        if result is None:
            continue
        totals.total_prime += result.total_prime
        totals.valorisation_total_mwh += result.valorisation_total_mwh
        totals.valorisation_total_eur += result.valorisation_total_eur
        totals.has_computed_totals = True
    return totals


def compute_project_valorisation(
    lines: List[ProjectProductLine],
    building_type: Optional[str],
    delegate: Optional[Delegate] = None,
    bonification: Any = None,
    coefficient: Any = None,
) -> ProjectValorisation:
    products = [
        compute_product_valorisation(line, building_type, delegate, bonification, coefficient)
        for line in lines
    ]
    totals = aggregate(p.result for p in products)

    missing = sum(1 for p in products if p.missing_kwh or p.missing_dynamic_params)
    if missing:
        logger.info(f"CEE valorisation: {missing}/{len(products)} lines without a computable prime")
    return ProjectValorisation(products=products, totals=totals)


def _bucket(category: Optional[str]) -> str:
    trimmed = (category or "").strip()
    return trimmed or UNCATEGORISED_LABEL


def aggregate_energy_by_category(projects: Iterable[ProjectEnergySource]) -> EnergyBreakdown:
    """
    MWh cumac per product category across projects (dashboard breakdown).

        mwh = kwh_cumac / 1000 × multiplier

    Projects without a building type, ECO products and lines missing either
    kWh cumac or multiplier are skipped. Categories are rounded to 2 decimals,
    zero buckets dropped, largest first.
    """
    totals: dict = {}
    for project in projects:
        if not (project.building_type or "").strip():
            continue
        for line in project.product_lines:
            product = line.product
            if is_product_excluded(product):
                continue
            kwh = get_kwh_cumac(product.kwh_cumac_values, project.building_type)
            if kwh is None:
                continue
            multiplier = resolve_multiplier(line).value
            if multiplier is None:
                continue
            bucket = _bucket(product.category)
            totals[bucket] = totals.get(bucket, 0.0) + kwh / MWH_DIVISOR * multiplier

    breakdown = [
        EnergyBreakdownEntry(category=category, mwh=round(value, 2))
        for category, value in totals.items()
    ]
    breakdown = [entry for entry in breakdown if entry.mwh > 0]
    breakdown.sort(key=lambda e: e.mwh, reverse=True)
    return EnergyBreakdown(total_mwh=round(sum(totals.values()), 2), breakdown=breakdown)
