"""
test_valorisation_engine.py — Unit tests for per-line CEE valorisation.

Tests cover:
  - The reference worked example (1000 kWh cumac, bonification 2, 50 m², 10 €/MWh)
  - Multiplier resolution: category default, aliases, display-label lookup,
    legacy quantity markers, product coefficient
  - kWh cumac lookup (trimmed, case-insensitive) and the missing_kwh flag
  - missing_dynamic_params flag and diagnostic label
  - ECO exclusion, missing delegate, bonification/coefficient defaults
"""

import pytest

from cee_engine.models.catalog_schema import KwhCumacEntry, ProductCatalogEntry, ProjectProductLine
from cee_engine.services.valorisation_engine import (
    compute_product_valorisation,
    format_multiplier_label,
    get_kwh_cumac,
    is_product_excluded,
    resolve_bonification,
    resolve_multiplier,
    resolve_multiplier_key,
)


# ===========================================================================
# Class 1: Worked example
# ===========================================================================

class TestWorkedExample:
    """kwh=1000, bonification=2, coefficient=1, multiplier=50, price=10 €/MWh."""

    def test_reference_figures(self, insulation_line, delegate):
        """
        per_unit_mwh = 1000 × 2 × 1 / 1000 = 2
        total_mwh    = 2 × 50              = 100
        per_unit_eur = 2 × 10              = 20
        total_eur    = 100 × 10            = 1000
        """
        outcome = compute_product_valorisation(
            insulation_line, "Résidentiel", delegate, bonification=2, coefficient=1
        )
        result = outcome.result
        assert result is not None
        assert abs(result.valorisation_per_unit_mwh - 2.0) < 1e-9
        assert abs(result.valorisation_total_mwh - 100.0) < 1e-9
        assert abs(result.valorisation_per_unit_eur - 20.0) < 1e-9
        assert abs(result.valorisation_total_eur - 1000.0) < 1e-9
        assert result.total_prime == result.valorisation_total_eur
        assert outcome.missing_kwh is False
        assert outcome.missing_dynamic_params is False

    def test_defaults_match_explicit_values(self, insulation_line, delegate):
        """bonification defaults to 2 and coefficient to 1."""
        outcome = compute_product_valorisation(insulation_line, "Résidentiel", delegate)
        assert abs(outcome.result.total_prime - 1000.0) < 1e-9

    def test_identifiers_and_label_carried(self, insulation_line, delegate):
        outcome = compute_product_valorisation(insulation_line, "Résidentiel", delegate)
        assert outcome.project_product_id == "line-1"
        assert outcome.product_id == "prod-iso"
        assert outcome.product_code == "BAR-EN-101"
        assert outcome.multiplier == 50
        assert outcome.multiplier_label == "Surface isolée"
        assert outcome.kwh_cumac == 1000


# ===========================================================================
# Class 2: Missing data
# ===========================================================================

class TestMissingData:

    def test_unknown_building_type_flags_missing_kwh(self, insulation_line, delegate):
        outcome = compute_product_valorisation(insulation_line, "Industriel", delegate)
        assert outcome.result is None
        assert outcome.missing_kwh is True
        assert outcome.missing_dynamic_params is False
        # The rest of the line survives for diagnostics
        assert outcome.multiplier == 50

    def test_no_building_type_flags_missing_kwh(self, insulation_line, delegate):
        outcome = compute_product_valorisation(insulation_line, None, delegate)
        assert outcome.result is None
        assert outcome.missing_kwh is True

    def test_missing_dynamic_param(self, insulation_product, delegate):
        line = ProjectProductLine(product=insulation_product, dynamic_params={})
        outcome = compute_product_valorisation(line, "Résidentiel", delegate)
        assert outcome.result is None
        assert outcome.missing_dynamic_params is True
        assert outcome.multiplier is None
        assert outcome.multiplier_label == "Surface isolée"

    def test_non_positive_param_counts_as_missing(self, insulation_product, delegate):
        line = ProjectProductLine(product=insulation_product, dynamic_params={"surface_isolee": "0"})
        outcome = compute_product_valorisation(line, "Résidentiel", delegate)
        assert outcome.missing_dynamic_params is True

    def test_both_flags_at_once(self, insulation_product):
        line = ProjectProductLine(product=insulation_product, dynamic_params={"surface_isolee": "abc"})
        outcome = compute_product_valorisation(line, "Maison", None)
        assert outcome.result is None
        assert outcome.missing_dynamic_params is True
        assert outcome.missing_kwh is True

    def test_without_delegate_energy_is_computed_but_worth_zero(self, insulation_line):
        outcome = compute_product_valorisation(insulation_line, "Résidentiel", None)
        assert abs(outcome.result.valorisation_total_mwh - 100.0) < 1e-9
        assert outcome.result.valorisation_total_eur == 0.0
        assert outcome.result.total_prime == 0.0


# ===========================================================================
# Class 3: Multiplier resolution
# ===========================================================================

class TestMultiplierResolution:

    def test_category_default_keys(self, insulation_product, lighting_product):
        assert resolve_multiplier_key(insulation_product) == "surface_isolee"
        assert resolve_multiplier_key(lighting_product) == "nombre_luminaire"

    def test_legacy_quantity_marker_maps_to_category_default(self):
        product = ProductCatalogEntry(
            id="p", category="isolation", cee_config={"multiplierFieldKey": "__quantity__"}
        )
        assert resolve_multiplier_key(product) == "surface_isolee"

    def test_uncategorised_product_uses_line_quantity(self):
        product = ProductCatalogEntry(id="p", category="Chauffage")
        line = ProjectProductLine(product=product, quantity="4")
        resolution = resolve_multiplier(line)
        assert resolution.value == 4.0
        assert resolution.label == "Quantité"
        assert resolution.key is None

    def test_lighting_alias_key(self, lighting_product):
        """'Nombre LED' normalises to nombre_led, an alias of nombre_luminaire."""
        line = ProjectProductLine(product=lighting_product, dynamic_params={"Nombre LED": 12})
        resolution = resolve_multiplier(line)
        assert resolution.value == 12
        assert resolution.label == "Nombre de luminaires"

    def test_accent_and_case_insensitive_key(self, insulation_product):
        line = ProjectProductLine(product=insulation_product, dynamic_params={"Surface-Isolée": "42,5"})
        assert resolve_multiplier(line).value == 42.5

    def test_lookup_through_display_label(self):
        """The configured key names the field label; the value sits under the field name."""
        product = ProductCatalogEntry(
            id="p",
            category="Insulation",
            params_schema=[{"name": "surf_iso", "label": "Surface isolée"}],
            cee_config={"multiplier_field_key": "Surface isolée"},
        )
        line = ProjectProductLine(product=product, dynamic_params={"surf_iso": 30})
        resolution = resolve_multiplier(line)
        assert resolution.value == 30
        assert resolution.label == "Surface isolée"

    def test_product_coefficient_scales_multiplier(self, delegate):
        """50 m² × 1.5 = 75 -> total_mwh = 2 × 75 = 150"""
        product = ProductCatalogEntry(
            id="p",
            category="Insulation",
            params_schema=[{"name": "surface_isolee", "label": "Surface isolée"}],
            kwh_cumac_values=[{"building_type": "Résidentiel", "kwh_cumac": 1000}],
            cee_config={"multiplier_coefficient": 1.5},
        )
        line = ProjectProductLine(product=product, dynamic_params={"surface_isolee": 50})
        outcome = compute_product_valorisation(line, "Résidentiel", delegate)
        assert outcome.multiplier == 75
        assert outcome.multiplier_label == "Surface isolée × 1.5"
        assert abs(outcome.result.valorisation_total_mwh - 150.0) < 1e-9


# ===========================================================================
# Class 4: Lookups and helpers
# ===========================================================================

class TestLookups:

    def test_kwh_lookup_trimmed_case_insensitive(self):
        entries = [KwhCumacEntry(building_type="Résidentiel", kwh_cumac=1000)]
        assert get_kwh_cumac(entries, "  résidentiel ") == 1000

    def test_kwh_lookup_non_positive_is_missing(self):
        entries = [KwhCumacEntry(building_type="Tertiaire", kwh_cumac=0)]
        assert get_kwh_cumac(entries, "Tertiaire") is None

    def test_kwh_lookup_blank_building_type(self):
        entries = [KwhCumacEntry(building_type="Tertiaire", kwh_cumac=10)]
        assert get_kwh_cumac(entries, "   ") is None

    @pytest.mark.parametrize("value, expected", [(None, 2.0), (0, 2.0), (-1, 2.0), ("abc", 2.0), ("3", 3.0)])
    def test_bonification_default(self, value, expected):
        assert resolve_bonification(value) == expected

    def test_custom_bonification_changes_per_unit(self, insulation_line, delegate):
        """1000 × 3 × 1 / 1000 = 3 MWh per unit"""
        outcome = compute_product_valorisation(insulation_line, "Résidentiel", delegate, bonification="3")
        assert abs(outcome.result.valorisation_per_unit_mwh - 3.0) < 1e-9

    def test_format_multiplier_label(self):
        assert format_multiplier_label("Surface", None) == "Surface"
        assert format_multiplier_label("Surface", 1) == "Surface"
        assert format_multiplier_label("Surface", 2) == "Surface × 2"
        assert format_multiplier_label("Surface", 1.25) == "Surface × 1.25"


class TestExclusion:

    def test_eco_product_excluded(self, eco_product):
        assert is_product_excluded(eco_product)

    def test_eco_code_prefix_excluded(self):
        assert is_product_excluded(ProductCatalogEntry(id="p", code="eco-123", category="Insulation"))

    def test_regular_product_not_excluded(self, insulation_product):
        assert not is_product_excluded(insulation_product)

    def test_excluded_line_has_no_result_and_no_warnings(self, eco_product, delegate):
        line = ProjectProductLine(product=eco_product, quantity=10)
        outcome = compute_product_valorisation(line, "Résidentiel", delegate)
        assert outcome.excluded is True
        assert outcome.result is None
        assert outcome.missing_kwh is False
        assert outcome.missing_dynamic_params is False
