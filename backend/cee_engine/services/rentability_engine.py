"""
Unified rentability calculator — one formula for insulation and lighting sites.

    ca           = max(0, prime_cee) + travaux_revenue
    total_costs  = labor + material + commission + additional_costs_ttc
                   + subcontractor_estimated_cost
    margin_total = ca - total_costs

Figures are kept at full precision; callers round for display.
"""
import logging
import unicodedata
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from cee_engine.config import INSULATION_UNIT_LABEL, LIGHTING_UNIT_LABEL
from cee_engine.models.catalog_schema import RenovationCategory, parse_category
from cee_engine.models.rentability_schema import MeasurementMode, RentabilityInput, TravauxOption
from cee_engine.services.numeric import safe_ratio
from cee_engine.services.subcontractor import estimate_subcontractor_payment

logger = logging.getLogger("cee-engine.rentability")

_NON_ALNUM = re.compile(r"[^0-9a-z]+")


@dataclass
class CostBreakdown:
    labor: float = 0.0
    material: float = 0.0
    commission: float = 0.0
    subcontractor: float = 0.0
    additional: float = 0.0


@dataclass
class RentabilityResult:
    ca: float
    total_costs: float
    margin_total: float
    margin_rate: float
    margin_per_unit: float
    base_units: float
    unit_label: str
    measurement_mode: str
    additional_costs_total: float
    subcontractor_estimated_cost: float
    subcontractor_base_units: float
    subcontractor_rate: float
    prime_cee: float = 0.0
    travaux_revenue: float = 0.0
    cost_breakdown: CostBreakdown = field(default_factory=CostBreakdown)


def is_led_product(product_name: Optional[str]) -> bool:
    """True when the product name mentions LEDs or luminaires."""
    if not product_name:
        return False
    decomposed = unicodedata.normalize("NFD", product_name.lower())
    ascii_only = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    normalized = _NON_ALNUM.sub(" ", ascii_only)
    return "led" in normalized or "luminaire" in normalized


def _measurement_mode(inp: RentabilityInput) -> MeasurementMode:
    if inp.category == RenovationCategory.LIGHTING or is_led_product(inp.product_name):
        return MeasurementMode.LUMINAIRE
    return MeasurementMode.SURFACE


def _base_units(inp: RentabilityInput, mode: MeasurementMode) -> float:
    if mode == MeasurementMode.LUMINAIRE:
        candidates = (inp.nb_luminaires, inp.surface_facturee)
    else:
        # Executed surface first, billed surface as fallback
        candidates = (inp.surface_posee, inp.surface_facturee)
    for value in candidates:
        if value > 0:
            return value
    return 0.0


def _travaux_revenue(inp: RentabilityInput) -> float:
    """Client amount for non-subsidised works; any option other than NA counts in full."""
    if not inp.travaux_enabled or inp.travaux_option == TravauxOption.NA:
        return 0.0
    return max(0.0, inp.travaux_amount)


def _total_or_per_unit(total: float, per_unit: float, units: float) -> float:
    if total > 0:
        return total
    return max(0.0, per_unit) * units


def calculate_rentability(inp: RentabilityInput) -> RentabilityResult:
    mode = _measurement_mode(inp)
    base_units = _base_units(inp, mode)
    default_label = LIGHTING_UNIT_LABEL if mode == MeasurementMode.LUMINAIRE else INSULATION_UNIT_LABEL
    unit_label = (inp.unit_label or "").strip() or default_label

    prime_cee = max(0.0, inp.prime_cee)
    travaux_revenue = _travaux_revenue(inp)
    ca = prime_cee + travaux_revenue

    labor = _total_or_per_unit(inp.labor_cost_total, inp.labor_cost_per_unit, base_units)
    material = _total_or_per_unit(inp.material_cost_total, inp.material_cost_per_unit, base_units)
    commission = max(0.0, inp.commission_per_unit) * base_units if inp.commission_enabled else 0.0
    additional_costs_total = sum(cost.amount_ttc for cost in inp.additional_costs)

    subcontractor = estimate_subcontractor_payment(
        RenovationCategory.LIGHTING if mode == MeasurementMode.LUMINAIRE else RenovationCategory.INSULATION,
        quantity=base_units,
        pricing_details=inp.subcontractor_pricing_details,
        base_units_override=inp.subcontractor_base_units,
        stored_units=inp.subcontractor_payment_units,
        stored_rate=inp.subcontractor_payment_rate,
        stored_amount=inp.subcontractor_payment_amount,
        unit_label=inp.subcontractor_unit_label,
    )

    total_costs = (
        labor
        + material
        + commission
        + additional_costs_total
        + subcontractor.estimated_cost
    )
    margin_total = ca - total_costs

    logger.debug(
        f"Rentability [{mode.value}]: ca={ca:.2f} costs={total_costs:.2f} "
        f"units={base_units} {unit_label}"
    )

    return RentabilityResult(
        ca=ca,
        total_costs=total_costs,
        margin_total=margin_total,
        margin_rate=safe_ratio(margin_total, ca),
        margin_per_unit=safe_ratio(margin_total, base_units),
        base_units=base_units,
        unit_label=unit_label,
        measurement_mode=mode.value,
        additional_costs_total=additional_costs_total,
        subcontractor_estimated_cost=subcontractor.estimated_cost,
        subcontractor_base_units=subcontractor.base_units,
        subcontractor_rate=subcontractor.rate if subcontractor.rate and subcontractor.rate > 0 else 0.0,
        prime_cee=prime_cee,
        travaux_revenue=travaux_revenue,
        cost_breakdown=CostBreakdown(
            labor=labor,
            material=material,
            commission=commission,
            subcontractor=subcontractor.estimated_cost,
            additional=additional_costs_total,
        ),
    )


# ─── Stored site record → input bundle ───────────────────────────────────────

def _first(site: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = site.get(key)
        if value is not None:
            return value
    return None


def build_rentability_input_from_site(site: Dict[str, Any]) -> RentabilityInput:
    """
    Map a stored site record (French column names, legacy aliases included)
    onto a ``RentabilityInput``.
    """
    product_name = site.get("product_name")
    category = parse_category(_first(site, "project_category", "category"))
    if category is None and is_led_product(product_name):
        category = RenovationCategory.LIGHTING

    return RentabilityInput(
        category=category,
        product_name=product_name,
        surface_posee=_first(site, "surface_posee_m2", "isolation_utilisee_m2"),
        surface_facturee=_first(site, "surface_facturee_m2", "surface_facturee"),
        nb_luminaires=site.get("nb_luminaires"),
        labor_cost_per_unit=_first(site, "cout_mo_par_m2", "cout_main_oeuvre_m2_ht"),
        labor_cost_total=site.get("cout_total_mo"),
        material_cost_per_unit=_first(site, "cout_materiaux_par_m2", "cout_isolation_m2", "cout_isolant_par_m2"),
        material_cost_total=_first(site, "cout_total_materiaux", "cout_total_materiaux_eclairage"),
        commission_enabled=_first(
            site, "commission_eur_per_m2_enabled", "commission_eur_per_led_enabled", "commission_commerciale_ht"
        ),
        commission_per_unit=_first(
            site,
            "commission_commerciale_par_m2",
            "commission_eur_per_m2",
            "commission_eur_per_led",
            "commission_commerciale_ht_montant",
        ),
        additional_costs=site.get("additional_costs"),
        valorisation_cee=site.get("valorisation_cee"),
        project_prime_cee=site.get("project_prime_cee"),
        project_prime_cee_total_cents=site.get("project_prime_cee_total_cents"),
        travaux_enabled=site.get("travaux_non_subventionnes_enabled"),
        travaux_option=site.get("travaux_non_subventionnes"),
        travaux_amount=site.get("travaux_non_subventionnes_montant"),
        subcontractor_pricing_details=site.get("subcontractor_pricing_details"),
        subcontractor_base_units=site.get("subcontractor_base_units"),
        subcontractor_unit_label=site.get("subcontractor_payment_unit_label"),
        subcontractor_payment_units=site.get("subcontractor_payment_units"),
        subcontractor_payment_rate=site.get("subcontractor_payment_rate"),
        subcontractor_payment_amount=site.get("subcontractor_payment_amount"),
    )
