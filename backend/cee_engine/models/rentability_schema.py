"""
Input bundles for the rentability calculators.

All numeric fields are sanitized on the way in (see ``SanitizedModel``); the
calculators can therefore read every figure as a finite float.
"""
from enum import Enum
from typing import Any, List, Optional, Union

from pydantic import Field, field_validator

from cee_engine.config import TRAVAUX_OPTION_ALIASES, TRAVAUX_OPTIONS
from cee_engine.models.catalog_schema import (
    AdditionalCost,
    RenovationCategory,
    SanitizedModel,
    normalize_key,
    parse_category,
)


class TravauxOption(str, Enum):
    """Who bears the non-subsidised works (travaux non subventionnés)."""
    NA = "NA"
    CLIENT = "CLIENT"
    MARGE = "MARGE"
    PARTAGE = "PARTAGE"


class MeasurementMode(str, Enum):
    SURFACE = "surface"
    LUMINAIRE = "luminaire"


class ViewMode(str, Enum):
    HT = "ht"
    TTC = "ttc"


def normalize_travaux_option(raw: Any) -> TravauxOption:
    if isinstance(raw, TravauxOption):
        return raw
    if not isinstance(raw, str):
        return TravauxOption.NA
    key = normalize_key(raw).upper()
    key = TRAVAUX_OPTION_ALIASES.get(key, key)
    return TravauxOption(key) if key in TRAVAUX_OPTIONS else TravauxOption.NA


def resolve_prime_cee(
    valorisation_cee: float,
    project_prime_cee: float,
    project_prime_cee_total_cents: Optional[float] = None,
) -> float:
    """Explicit stored valorisation first, then the project prime, then the cents figure."""
    candidates = [valorisation_cee, project_prime_cee]
    if project_prime_cee_total_cents is not None:
        candidates.append(project_prime_cee_total_cents / 100)
    for candidate in candidates:
        if candidate > 0:
            return candidate
    return 0.0


def _cost_list(value: Any) -> Any:
    if not isinstance(value, list):
        return []
    return [cost for cost in value if cost is not None]


class RentabilityInput(SanitizedModel):
    """Normalized bundle consumed by ``calculate_rentability``."""

    category: Optional[RenovationCategory] = None
    product_name: Optional[str] = None
    unit_label: Optional[str] = None

    # Physical quantities
    surface_posee: float = 0.0          # executed surface (m²)
    surface_facturee: float = 0.0       # billed surface (m²)
    nb_luminaires: float = 0.0

    # Cost drivers (tax-exclusive)
    labor_cost_per_unit: float = 0.0
    labor_cost_total: float = 0.0
    material_cost_per_unit: float = 0.0
    material_cost_total: float = 0.0
    commission_enabled: bool = False
    commission_per_unit: float = 0.0
    additional_costs: List[AdditionalCost] = Field(default_factory=list)

    # Revenue drivers
    valorisation_cee: float = 0.0
    project_prime_cee: float = 0.0
    project_prime_cee_total_cents: Optional[float] = None
    travaux_enabled: bool = True
    travaux_option: TravauxOption = TravauxOption.NA
    travaux_amount: float = 0.0

    # Subcontractor terms
    subcontractor_pricing_details: Optional[Union[float, str]] = None
    subcontractor_base_units: float = 0.0
    subcontractor_unit_label: Optional[str] = None
    subcontractor_payment_units: float = 0.0
    subcontractor_payment_rate: float = 0.0
    subcontractor_payment_amount: float = 0.0

    @field_validator("category", mode="before")
    @classmethod
    def parse_category_value(cls, value: Any) -> Any:
        return parse_category(value)

    @field_validator("travaux_option", mode="before")
    @classmethod
    def parse_travaux_option(cls, value: Any) -> Any:
        return normalize_travaux_option(value)

    @field_validator("additional_costs", mode="before")
    @classmethod
    def drop_empty_costs(cls, value: Any) -> Any:
        return _cost_list(value)

    @property
    def prime_cee(self) -> float:
        return resolve_prime_cee(
            self.valorisation_cee, self.project_prime_cee, self.project_prime_cee_total_cents
        )


class InsulationInput(SanitizedModel):
    prime_cee: float = 0.0
    travaux_non_subv_client: float = 0.0
    surface_facturee_m2: float = 0.0
    surface_posee_m2: float = 0.0
    mo_ht_per_m2: float = 0.0
    material_total_ht: float = 0.0
    commission_enabled: bool = False
    commission_per_unit: float = 0.0
    frais_additionnels: List[AdditionalCost] = Field(default_factory=list)
    use_surface_posee_for_mo: bool = False

    @field_validator("frais_additionnels", mode="before")
    @classmethod
    def drop_empty_costs(cls, value: Any) -> Any:
        return _cost_list(value)

    @property
    def commission_ht(self) -> float:
        if not self.commission_enabled:
            return 0.0
        return self.commission_per_unit * self.surface_facturee_m2


class LightingInput(SanitizedModel):
    prime_cee: float = 0.0
    travaux_non_subv_client: float = 0.0
    nb_luminaires: float = 0.0
    cout_total_mo: float = 0.0
    cout_total_materiaux_eclairage: float = 0.0
    commission_enabled: bool = False
    commission_per_unit: float = 0.0
    frais_additionnels: List[AdditionalCost] = Field(default_factory=list)

    @field_validator("frais_additionnels", mode="before")
    @classmethod
    def drop_empty_costs(cls, value: Any) -> Any:
        return _cost_list(value)

    @property
    def commission_ht(self) -> float:
        if not self.commission_enabled:
            return 0.0
        return self.commission_per_unit * self.nb_luminaires


class SiteFinancials(SanitizedModel):
    """
    Raw financial fields of a site as the host stores them (both categories).

    Only the fields of the active category are read by the category engine;
    the others are ignored and written back as null by ``build_site_snapshot``.
    """

    valorisation_cee: float = 0.0
    project_prime_cee: float = 0.0
    project_prime_cee_total_cents: Optional[float] = None

    travaux_non_subventionnes_enabled: bool = True
    travaux_non_subventionnes: TravauxOption = TravauxOption.NA
    travaux_non_subventionnes_montant: float = 0.0

    # Insulation
    surface_facturee_m2: float = 0.0
    surface_posee_m2: float = 0.0
    cout_mo_par_m2: float = 0.0
    cout_isolant_par_m2: float = 0.0
    cout_materiaux_par_m2: float = 0.0
    cout_total_materiaux: float = 0.0
    commission_commerciale_par_m2: float = 0.0
    commission_eur_per_m2_enabled: bool = False
    use_surface_posee_for_mo: bool = False

    # Lighting
    nb_luminaires: float = 0.0
    cout_total_mo: float = 0.0
    cout_total_materiaux_eclairage: float = 0.0
    commission_eur_per_led: float = 0.0
    commission_eur_per_led_enabled: bool = False

    additional_costs: List[AdditionalCost] = Field(default_factory=list)

    @field_validator("travaux_non_subventionnes", mode="before")
    @classmethod
    def parse_travaux_option(cls, value: Any) -> Any:
        return normalize_travaux_option(value)

    @field_validator("additional_costs", mode="before")
    @classmethod
    def drop_empty_costs(cls, value: Any) -> Any:
        return _cost_list(value)

    @property
    def prime_cee(self) -> float:
        return resolve_prime_cee(
            self.valorisation_cee, self.project_prime_cee, self.project_prime_cee_total_cents
        )

    @property
    def travaux_client(self) -> float:
        """Client amount for non-subsidised works, counted only when enabled and not NA."""
        if self.travaux_non_subventionnes_enabled and self.travaux_non_subventionnes != TravauxOption.NA:
            return max(0.0, self.travaux_non_subventionnes_montant)
        return 0.0
