"""
CEE valorisation engine — per-line energy-savings certificate value.

For one project product line:
  1. resolve the multiplier (treated surface, installed luminaires, or the
     line quantity) from the line's dynamic fields;
  2. look up the product's kWh cumac for the project's building type;
  3. convert into MWh and € through the delegate's purchase price:

     valorisation_per_unit_mwh = kwh_cumac × bonification × coefficient / 1000
     valorisation_total_mwh    = valorisation_per_unit_mwh × multiplier
     valorisation_per_unit_eur = valorisation_per_unit_mwh × price_eur_per_mwh
     valorisation_total_eur    = valorisation_total_mwh × price_eur_per_mwh

Missing catalog data never raises: the line result is None and the
``missing_kwh`` / ``missing_dynamic_params`` flags say why.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from cee_engine.config import (
    CATEGORY_MULTIPLIER_KEYS,
    CATEGORY_MULTIPLIER_LABELS,
    DEFAULT_BONIFICATION,
    DEFAULT_COEFFICIENT,
    EXCLUDED_PRODUCT_PREFIXES,
    LEGACY_QUANTITY_KEY,
    MULTIPLIER_KEY_ALIASES,
    MWH_DIVISOR,
    QUANTITY_LABEL,
)
from cee_engine.models.catalog_schema import (
    Delegate,
    DynamicFieldSchema,
    ProductCatalogEntry,
    ProjectProductLine,
    KwhCumacEntry,
    normalize_key,
    parse_category,
)
from cee_engine.services.numeric import to_positive

logger = logging.getLogger("cee-engine.valorisation")


@dataclass
class PrimeCeeResult:
    valorisation_per_unit_mwh: float
    valorisation_per_unit_eur: float
    valorisation_total_mwh: float
    valorisation_total_eur: float
    total_prime: float


@dataclass
class MultiplierResolution:
    value: Optional[float]   # None when no positive value was found
    label: str
    key: Optional[str] = None  # None = line quantity


@dataclass
class ProductValorisation:
    """Outcome for one product line; ``result`` is None when data is missing."""
    project_product_id: Optional[str]
    product_id: str
    product_code: Optional[str]
    product_name: Optional[str]
    multiplier: Optional[float]
    multiplier_label: str
    kwh_cumac: Optional[float]
    result: Optional[PrimeCeeResult]
    missing_dynamic_params: bool = False
    missing_kwh: bool = False
    excluded: bool = False


# ─── Configuration lookups ──────────────────────────────────────────────────

def _category_key(category: Optional[str]) -> Optional[str]:
    parsed = parse_category(category)
    return parsed.value.lower() if parsed else None


def resolve_multiplier_key(product: ProductCatalogEntry) -> Optional[str]:
    """
    Dynamic field carrying the multiplier for ``product``.

    The product's own CEE configuration wins; the legacy "quantity" markers map
    to the category default. Returns None when the line quantity must be used.
    """
    default_key = CATEGORY_MULTIPLIER_KEYS.get(_category_key(product.category))
    raw = (product.cee_config.multiplier_field_key or "").strip()
    if not raw:
        return default_key
    if raw == LEGACY_QUANTITY_KEY or raw.lower() == "quantity":
        return default_key
    return raw


def resolve_bonification(value: Any) -> float:
    return to_positive(value) or DEFAULT_BONIFICATION


def resolve_coefficient(value: Any) -> float:
    return to_positive(value) or DEFAULT_COEFFICIENT


def is_product_excluded(product: ProductCatalogEntry) -> bool:
    """Products whose category or code starts with ECO never produce a prime."""
    category = (product.category or "").strip().upper()
    code = (product.code or "").strip().upper()
    return any(
        category.startswith(prefix) or code.startswith(prefix)
        for prefix in EXCLUDED_PRODUCT_PREFIXES
    )


def get_kwh_cumac(entries: List[KwhCumacEntry], building_type: Optional[str]) -> Optional[float]:
    """kWh cumac for ``building_type`` (trimmed, case-insensitive); None when absent or not positive."""
    target = (building_type or "").strip().lower()
    if not target:
        return None
    for entry in entries:
        if (entry.building_type or "").strip().lower() == target:
            return to_positive(entry.kwh_cumac)
    return None


def format_multiplier_label(label: str, coefficient: Optional[float]) -> str:
    """'Surface isolée' with coefficient 1.5 -> 'Surface isolée × 1.5'."""
    if not coefficient or coefficient == 1:
        return label
    if float(coefficient).is_integer():
        text = str(int(coefficient))
    else:
        text = f"{coefficient:.2f}".rstrip("0").rstrip(".")
    return f"{label} × {text}"


# ─── Multiplier resolution ──────────────────────────────────────────────────

def _key_group(key: str) -> Tuple[str, ...]:
    """The normalized key followed by every alias of its canonical key."""
    target = normalize_key(key)
    for canonical, aliases in MULTIPLIER_KEY_ALIASES.items():
        group = [normalize_key(canonical)] + [normalize_key(a) for a in aliases]
        if target in group:
            return tuple([target] + [g for g in group if g != target])
    return (target,)


def _schema_field_for(schema: List[DynamicFieldSchema], group: Tuple[str, ...]) -> Optional[DynamicFieldSchema]:
    for schema_field in schema:
        if normalize_key(schema_field.name) in group:
            return schema_field
    for schema_field in schema:
        if schema_field.label and normalize_key(schema_field.label) in group:
            return schema_field
    return None


def _lookup_param(params: Dict[str, Any], group: Tuple[str, ...], schema_field: Optional[DynamicFieldSchema]) -> Optional[float]:
    normalized = {normalize_key(str(k)): v for k, v in params.items()}
    for candidate in group:
        if candidate in normalized:
            value = to_positive(normalized[candidate])
            if value is not None:
                return value
    # Label match: the key names the field's display label, the value sits under its name
    if schema_field is not None:
        return to_positive(normalized.get(normalize_key(schema_field.name)))
    return None


def _label_for(key: str, product: ProductCatalogEntry, schema_field: Optional[DynamicFieldSchema]) -> str:
    if schema_field is not None:
        return schema_field.label or schema_field.name
    category = _category_key(product.category)
    if category and CATEGORY_MULTIPLIER_KEYS.get(category) == key:
        return CATEGORY_MULTIPLIER_LABELS[category]
    return key


def resolve_multiplier(line: ProjectProductLine) -> MultiplierResolution:
    """Raw multiplier value (before the product coefficient) and its display label."""
    product = line.product
    key = resolve_multiplier_key(product)
    if key is None:
        return MultiplierResolution(value=to_positive(line.quantity), label=QUANTITY_LABEL)

    group = _key_group(key)
    schema_field = _schema_field_for(product.params_schema, group)
    value = _lookup_param(line.dynamic_params, group, schema_field)
    return MultiplierResolution(value=value, label=_label_for(key, product, schema_field), key=key)


# ─── Valorisation ───────────────────────────────────────────────────────────

def compute_product_valorisation(
    line: ProjectProductLine,
    building_type: Optional[str],
    delegate: Optional[Delegate] = None,
    bonification: Any = None,
    coefficient: Any = None,
) -> ProductValorisation:
    product = line.product
    outcome = ProductValorisation(
        project_product_id=line.id,
        product_id=product.id,
        product_code=product.code,
        product_name=product.name,
        multiplier=None,
        multiplier_label=QUANTITY_LABEL,
        kwh_cumac=None,
        result=None,
    )

    if is_product_excluded(product):
        outcome.excluded = True
        return outcome

    resolution = resolve_multiplier(line)
    product_coefficient = to_positive(product.cee_config.multiplier_coefficient)
    outcome.multiplier_label = resolution.label
    if resolution.value is None:
        outcome.missing_dynamic_params = True
        logger.debug(
            f"Product {product.id}: no positive value for multiplier field "
            f"'{resolution.key or QUANTITY_LABEL}'"
        )
    else:
        outcome.multiplier = resolution.value * (product_coefficient or 1.0)
        outcome.multiplier_label = format_multiplier_label(resolution.label, product_coefficient)

    outcome.kwh_cumac = get_kwh_cumac(product.kwh_cumac_values, building_type)
    if outcome.kwh_cumac is None:
        outcome.missing_kwh = True
        logger.debug(f"Product {product.id}: no kWh cumac for building type {building_type!r}")

    if outcome.multiplier is None or outcome.kwh_cumac is None:
        return outcome

    price = delegate.price_eur_per_mwh if delegate is not None else 0.0
    price = max(price, 0.0)

    per_unit_mwh = (
        outcome.kwh_cumac * resolve_bonification(bonification) * resolve_coefficient(coefficient) / MWH_DIVISOR
    )
    total_mwh = per_unit_mwh * outcome.multiplier
    total_eur = total_mwh * price
    outcome.result = PrimeCeeResult(
        valorisation_per_unit_mwh=per_unit_mwh,
        valorisation_per_unit_eur=per_unit_mwh * price,
        valorisation_total_mwh=total_mwh,
        valorisation_total_eur=total_eur,
        total_prime=total_eur,
    )
    return outcome
