"""
Category rentability engine — compact per-category snapshots (HT and TTC).

Insulation:
    ca             = prime_cee + travaux_non_subv_client
    cout_chantier  = surface × mo_ht_per_m2 + material_total_ht + commission_ht + frais
    marge_par_unite = marge_totale / surface_facturee_m2

Lighting:
    ca             = prime_cee + travaux_non_subv_client
    cout_chantier  = cout_total_mo + cout_total_materiaux_eclairage + commission_ht + frais
    marge_par_unite = marge_totale / nb_luminaires

HT and TTC differ only in ``frais``: Σ amount_ht vs Σ amount_ttc of the
additional costs. Labor, material and commission carry no VAT rate and stay
tax-exclusive in both views.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Tuple, Union

from cee_engine.config import INSULATION_SITE_FIELDS, LIGHTING_SITE_FIELDS
from cee_engine.models.catalog_schema import AdditionalCost, RenovationCategory, parse_category
from cee_engine.models.rentability_schema import (
    InsulationInput,
    LightingInput,
    SiteFinancials,
    ViewMode,
)
from cee_engine.services.numeric import safe_ratio

logger = logging.getLogger("cee-engine.category")


@dataclass
class CategorySnapshot:
    category: str
    view: str
    ca: float
    cout_chantier: float
    marge_totale: float
    marge_par_unite: float
    frais_additionnels: float


def _frais(costs: List[AdditionalCost], view: ViewMode) -> float:
    if view == ViewMode.TTC:
        return sum(cost.amount_ttc for cost in costs)
    return sum(cost.amount_ht for cost in costs)


# ─── Insulation ─────────────────────────────────────────────────────────────

def _calc_insulation(inp: InsulationInput, view: ViewMode) -> CategorySnapshot:
    frais = _frais(inp.frais_additionnels, view)
    labor_surface = inp.surface_posee_m2 if inp.use_surface_posee_for_mo else inp.surface_facturee_m2
    ca = inp.prime_cee + inp.travaux_non_subv_client
    cout_chantier = (
        labor_surface * inp.mo_ht_per_m2
        + inp.material_total_ht
        + inp.commission_ht
        + frais
    )
    marge_totale = ca - cout_chantier
    return CategorySnapshot(
        category=RenovationCategory.INSULATION.value,
        view=view.value,
        ca=ca,
        cout_chantier=cout_chantier,
        marge_totale=marge_totale,
        marge_par_unite=safe_ratio(marge_totale, inp.surface_facturee_m2),
        frais_additionnels=frais,
    )


def calc_insulation_ht(inp: InsulationInput) -> CategorySnapshot:
    return _calc_insulation(inp, ViewMode.HT)


def calc_insulation_ttc(inp: InsulationInput) -> CategorySnapshot:
    return _calc_insulation(inp, ViewMode.TTC)


# ─── Lighting ───────────────────────────────────────────────────────────────

def _calc_lighting(inp: LightingInput, view: ViewMode) -> CategorySnapshot:
    frais = _frais(inp.frais_additionnels, view)
    ca = inp.prime_cee + inp.travaux_non_subv_client
    cout_chantier = (
        inp.cout_total_mo
        + inp.cout_total_materiaux_eclairage
        + inp.commission_ht
        + frais
    )
    marge_totale = ca - cout_chantier
    return CategorySnapshot(
        category=RenovationCategory.LIGHTING.value,
        view=view.value,
        ca=ca,
        cout_chantier=cout_chantier,
        marge_totale=marge_totale,
        marge_par_unite=safe_ratio(marge_totale, inp.nb_luminaires),
        frais_additionnels=frais,
    )


def calc_lighting_ht(inp: LightingInput) -> CategorySnapshot:
    return _calc_lighting(inp, ViewMode.HT)


def calc_lighting_ttc(inp: LightingInput) -> CategorySnapshot:
    return _calc_lighting(inp, ViewMode.TTC)


# ─── Dispatch ───────────────────────────────────────────────────────────────

def insulation_input_from_site(site: SiteFinancials) -> InsulationInput:
    """Read only the insulation side of ``site``."""
    material_total = site.cout_total_materiaux
    if material_total <= 0 and site.cout_materiaux_par_m2 > 0:
        # Per-m² material cost is expressed over the billed surface
        material_total = site.cout_materiaux_par_m2 * site.surface_facturee_m2
    elif material_total <= 0:
        # Insulant is bought for the executed surface
        surface = site.surface_posee_m2 if site.surface_posee_m2 > 0 else site.surface_facturee_m2
        material_total = max(0.0, site.cout_isolant_par_m2) * surface
    return InsulationInput(
        prime_cee=site.prime_cee,
        travaux_non_subv_client=site.travaux_client,
        surface_facturee_m2=site.surface_facturee_m2,
        surface_posee_m2=site.surface_posee_m2,
        mo_ht_per_m2=site.cout_mo_par_m2,
        material_total_ht=material_total,
        commission_enabled=site.commission_eur_per_m2_enabled,
        commission_per_unit=site.commission_commerciale_par_m2,
        frais_additionnels=site.additional_costs,
        use_surface_posee_for_mo=site.use_surface_posee_for_mo,
    )


def lighting_input_from_site(site: SiteFinancials) -> LightingInput:
    """Read only the lighting side of ``site``."""
    return LightingInput(
        prime_cee=site.prime_cee,
        travaux_non_subv_client=site.travaux_client,
        nb_luminaires=site.nb_luminaires,
        cout_total_mo=site.cout_total_mo,
        cout_total_materiaux_eclairage=site.cout_total_materiaux_eclairage,
        commission_enabled=site.commission_eur_per_led_enabled,
        commission_per_unit=site.commission_eur_per_led,
        frais_additionnels=site.additional_costs,
    )


_CALCULATORS: Dict[Tuple[RenovationCategory, ViewMode], Callable[[SiteFinancials], CategorySnapshot]] = {
    (RenovationCategory.INSULATION, ViewMode.HT): lambda s: calc_insulation_ht(insulation_input_from_site(s)),
    (RenovationCategory.INSULATION, ViewMode.TTC): lambda s: calc_insulation_ttc(insulation_input_from_site(s)),
    (RenovationCategory.LIGHTING, ViewMode.HT): lambda s: calc_lighting_ht(lighting_input_from_site(s)),
    (RenovationCategory.LIGHTING, ViewMode.TTC): lambda s: calc_lighting_ttc(lighting_input_from_site(s)),
}


def resolve_category(category: Union[RenovationCategory, str, None]) -> RenovationCategory:
    """Unrecognised or missing categories fall back to Insulation."""
    return parse_category(category) or RenovationCategory.INSULATION


def _resolve_view(view: Union[ViewMode, str, None]) -> ViewMode:
    if isinstance(view, ViewMode):
        return view
    if isinstance(view, str) and view.strip().lower() == ViewMode.TTC.value:
        return ViewMode.TTC
    return ViewMode.HT


def compute_category_snapshot(
    category: Union[RenovationCategory, str, None],
    site: SiteFinancials,
    view: Union[ViewMode, str, None] = ViewMode.HT,
) -> CategorySnapshot:
    """Single dispatch point: the other category's fields are never read."""
    key = (resolve_category(category), _resolve_view(view))
    return _CALCULATORS[key](site)


def build_site_snapshot(
    category: Union[RenovationCategory, str, None],
    site: SiteFinancials,
) -> Dict[str, Any]:
    """
    Payload the host persists for dashboard reads.

    Active-category raw fields are copied, every field of the other category
    is written as None, and ``ca_ttc`` / ``cout_chantier_ttc`` /
    ``marge_totale_ttc`` are taken verbatim from the TTC snapshot. A lighting
    save also carries its materials total in ``cout_total_materiaux``.
    """
    active = resolve_category(category)
    ttc = compute_category_snapshot(active, site, ViewMode.TTC)

    if active == RenovationCategory.INSULATION:
        kept, cleared = INSULATION_SITE_FIELDS, LIGHTING_SITE_FIELDS
    else:
        kept, cleared = LIGHTING_SITE_FIELDS, INSULATION_SITE_FIELDS

    payload: Dict[str, Any] = {"category": active.value}
    payload.update({name: getattr(site, name) for name in kept})
    payload.update({name: None for name in cleared})
    if active == RenovationCategory.LIGHTING:
        # Dashboards read material cost from the shared column
        payload["cout_total_materiaux"] = site.cout_total_materiaux_eclairage
    payload["additional_costs"] = [cost.model_dump() for cost in site.additional_costs]
    payload["frais_additionnels_total"] = ttc.frais_additionnels
    payload["ca_ttc"] = ttc.ca
    payload["cout_chantier_ttc"] = ttc.cout_chantier
    payload["marge_totale_ttc"] = ttc.marge_totale

    logger.debug(f"Site snapshot [{active.value}]: cleared {len(cleared)} fields")
    return payload
