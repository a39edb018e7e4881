import re
import unicodedata
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    computed_field,
    field_validator,
)

from cee_engine.config import DEFAULT_TVA_RATE
from cee_engine.services.numeric import compute_ttc, normalize_tva_rate, sanitize_number, to_boolean

_KEY_SEPARATORS = re.compile(r"[-\s]+")


def normalize_key(value: str) -> str:
    """'Surface isolée' -> 'surface_isolee'; 'Nombre-de LED' -> 'nombre_de_led'."""
    decomposed = unicodedata.normalize("NFD", value)
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    stripped = stripped.replace("œ", "oe").replace("æ", "ae")
    return _KEY_SEPARATORS.sub("_", stripped.strip()).lower()


class RenovationCategory(str, Enum):
    INSULATION = "Insulation"
    LIGHTING = "Lighting"


_CATEGORY_SYNONYMS: Dict[str, RenovationCategory] = {
    "insulation": RenovationCategory.INSULATION,
    "isolation": RenovationCategory.INSULATION,
    "lighting": RenovationCategory.LIGHTING,
    "eclairage": RenovationCategory.LIGHTING,
}


def parse_category(raw: Any) -> Optional[RenovationCategory]:
    """Map a host category string ('isolation', 'Éclairage', 'Lighting'…) onto the closed variant."""
    if isinstance(raw, RenovationCategory):
        return raw
    if not isinstance(raw, str):
        return None
    key = normalize_key(raw)
    if not key:
        return None
    for prefix, category in _CATEGORY_SYNONYMS.items():
        if key == prefix or key.startswith(prefix + "_"):
            return category
    return None


class SanitizedModel(BaseModel):
    """
    Base for every engine input model.

    Numeric fields are routed through ``sanitize_number`` before pydantic sees
    them, so '12,5', '' or None never fail validation: they degrade to the
    field default (0 for plain floats, None for optional ones).
    """

    model_config = ConfigDict(validate_assignment=True)

    @field_validator("*", mode="before")
    @classmethod
    def coerce_scalars(cls, value: Any, info: ValidationInfo) -> Any:
        field = cls.model_fields.get(info.field_name)
        if field is None:
            return value
        annotation = field.annotation
        if annotation is float:
            default = field.default
            if isinstance(default, bool) or not isinstance(default, (int, float)):
                default = 0.0
            return sanitize_number(value, float(default))
        if annotation == Optional[float]:
            return sanitize_number(value, None)
        if annotation is bool:
            if value is None and isinstance(field.default, bool):
                return field.default
            return to_boolean(value)
        if annotation is str and value is None:
            return field.default if isinstance(field.default, str) else ""
        return value


# ---------------------------------------------------------------------------
# Product catalog
# ---------------------------------------------------------------------------

class DynamicFieldSchema(BaseModel):
    """One entry of a product's dynamic-field schema."""
    name: str
    label: Optional[str] = None
    unit: Optional[str] = None


class KwhCumacEntry(SanitizedModel):
    building_type: Optional[str] = None
    kwh_cumac: Optional[float] = None


class ProductCeeConfig(SanitizedModel):
    """Which dynamic field (and scaling factor) acts as the valorisation multiplier."""
    multiplier_field_key: Optional[str] = Field(
        None,
        validation_alias=AliasChoices(
            "multiplier_field_key", "multiplierFieldKey", "prime_multiplier_param", "primeMultiplierParam"
        ),
    )
    multiplier_coefficient: Optional[float] = Field(
        None,
        validation_alias=AliasChoices(
            "multiplier_coefficient",
            "multiplierCoefficient",
            "prime_multiplier_coefficient",
            "primeMultiplierCoefficient",
        ),
    )


class ProductCatalogEntry(BaseModel):
    id: str
    code: Optional[str] = None
    name: Optional[str] = None
    category: Optional[str] = None
    params_schema: List[DynamicFieldSchema] = Field(default_factory=list)
    kwh_cumac_values: List[KwhCumacEntry] = Field(default_factory=list)
    cee_config: ProductCeeConfig = Field(default_factory=ProductCeeConfig)

    @field_validator("params_schema", mode="before")
    @classmethod
    def unwrap_schema(cls, value: Any) -> Any:
        # Stored either as a bare list or as {"fields": [...]}
        if isinstance(value, dict):
            value = value.get("fields")
        if not isinstance(value, list):
            return []
        return [f for f in value if isinstance(f, dict) and isinstance(f.get("name"), str)]

    @field_validator("kwh_cumac_values", mode="before")
    @classmethod
    def drop_empty_kwh(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return []
        return [entry for entry in value if entry is not None]

    @field_validator("cee_config", mode="before")
    @classmethod
    def default_cee_config(cls, value: Any) -> Any:
        return value if value is not None else {}


class ProjectProductLine(SanitizedModel):
    """A product placed on a project, with its free-form dynamic field values."""
    id: Optional[str] = None
    product: ProductCatalogEntry
    quantity: Optional[float] = None
    dynamic_params: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("dynamic_params", mode="before")
    @classmethod
    def params_as_dict(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}


class Delegate(SanitizedModel):
    """CEE-obligated counterparty buying certificates at a €/MWh price."""
    id: Optional[str] = None
    name: Optional[str] = None
    price_eur_per_mwh: float = 0.0


class ProjectEnergySource(BaseModel):
    id: Optional[str] = None
    building_type: Optional[str] = None
    product_lines: List[ProjectProductLine] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Additional costs
# ---------------------------------------------------------------------------

class AdditionalCost(SanitizedModel):
    """
    Extra taxed expense on a site.

    ``amount_ttc`` is derived, never stored: it is recomputed from
    ``amount_ht`` and ``tva_rate`` on every read, so it stays consistent after
    any assignment. An ``amount_ttc`` supplied on input is ignored.
    """
    label: str = ""
    amount_ht: float = 0.0
    tva_rate: float = DEFAULT_TVA_RATE
    attachment: Optional[str] = None

    @field_validator("tva_rate", mode="after")
    @classmethod
    def whitelisted_rate(cls, value: float) -> float:
        return normalize_tva_rate(value, DEFAULT_TVA_RATE)

    @field_validator("attachment", mode="before")
    @classmethod
    def blank_attachment(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return None

    @computed_field
    @property
    def amount_ttc(self) -> float:
        return compute_ttc(self.amount_ht, self.tva_rate)
