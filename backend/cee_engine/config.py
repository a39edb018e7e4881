"""
Engine configuration — single source of truth for regulatory constants,
category defaults and persisted field lists.

Import from here in all services rather than hardcoding values.
"""
from __future__ import annotations

# ── VAT ───────────────────────────────────────────────────────────────────────

# Rates accepted on additional cost lines (percent)
ALLOWED_TVA_RATES: tuple[float, ...] = (0.0, 5.5, 8.5, 10.0, 20.0)

# Fallback when a stored rate is missing or outside the whitelist
DEFAULT_TVA_RATE: float = 8.5


# ── CEE valorisation ──────────────────────────────────────────────────────────

# Regulatory zone/building multiplier applied to raw kWh cumac
DEFAULT_BONIFICATION: float = 2.0

# Formula coefficient applied on top of the bonification
DEFAULT_COEFFICIENT: float = 1.0

# kWh → MWh
MWH_DIVISOR: float = 1000.0

# Products whose category or code starts with one of these never produce a prime
EXCLUDED_PRODUCT_PREFIXES: tuple[str, ...] = ("ECO",)

# Legacy multiplier key meaning "use the line quantity"
LEGACY_QUANTITY_KEY: str = "__quantity__"

# Default dynamic field carrying the valorisation multiplier, per category
CATEGORY_MULTIPLIER_KEYS: dict[str, str] = {
    "insulation": "surface_isolee",
    "lighting": "nombre_luminaire",
}

CATEGORY_MULTIPLIER_LABELS: dict[str, str] = {
    "insulation": "Surface isolée",
    "lighting": "Nombre de luminaires",
}

# Dynamic field keys accepted in place of a canonical multiplier key
MULTIPLIER_KEY_ALIASES: dict[str, tuple[str, ...]] = {
    "surface_isolee": ("surface_isolee_m2", "surface_isolée"),
    "nombre_luminaire": (
        "nombre_luminaires",
        "nombre_de_luminaire",
        "nombre_de_luminaires",
        "nombre_led",
        "nombre_leds",
        "nombre_de_led",
    ),
}

# Label used when the engine must fall back on the line quantity
QUANTITY_LABEL: str = "Quantité"

# Category bucket for products without a category in energy breakdowns
UNCATEGORISED_LABEL: str = "Autres"


# ── Rentability ───────────────────────────────────────────────────────────────

INSULATION_UNIT_LABEL: str = "m²"
LIGHTING_UNIT_LABEL: str = "luminaire"

# Non-subsidised works options (travaux non subventionnés)
TRAVAUX_OPTIONS: tuple[str, ...] = ("NA", "CLIENT", "MARGE", "PARTAGE")
TRAVAUX_OPTION_ALIASES: dict[str, str] = {"MOITIE": "PARTAGE"}


# ── Persisted site snapshot ───────────────────────────────────────────────────
# Raw fields that belong to a single category. When a site is saved under one
# category, every field of the other category is written as null (a lighting
# save still fills cout_total_materiaux with its materials total).

INSULATION_SITE_FIELDS: tuple[str, ...] = (
    "surface_facturee_m2",
    "surface_posee_m2",
    "cout_mo_par_m2",
    "cout_isolant_par_m2",
    "cout_materiaux_par_m2",
    "cout_total_materiaux",
    "commission_commerciale_par_m2",
)

LIGHTING_SITE_FIELDS: tuple[str, ...] = (
    "nb_luminaires",
    "cout_total_mo",
    "cout_total_materiaux_eclairage",
    "commission_eur_per_led",
)


# ── Host conventions ──────────────────────────────────────────────────────────

# Absolute difference below which the host treats two figures as unchanged
# and skips the write. Never applied inside the formulas.
HOST_EQUALITY_TOLERANCE: float = 0.005
