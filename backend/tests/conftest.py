"""
conftest.py — Shared pytest fixtures for the CEE engine test suite.

No database or external service fixtures are defined here.  All tests in this
suite are pure unit tests that exercise the calculation functions in isolation
(the API tests use FastAPI's in-process TestClient).

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``cee_engine.*`` imports resolve correctly regardless of where pytest is invoked.
"""

import sys
import os
import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any cee_engine imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)


# ---------------------------------------------------------------------------
# Catalog fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def insulation_product():
    """
    Attic insulation product (BAR-EN-101 style).

    kWh cumac: 1000 for 'Résidentiel', 750 for 'Tertiaire'.
    Multiplier field: surface_isolee ('Surface isolée', m²).
    """
    from cee_engine.models.catalog_schema import ProductCatalogEntry
    return ProductCatalogEntry(
        id="prod-iso",
        code="BAR-EN-101",
        name="Isolation combles perdus",
        category="Insulation",
        params_schema=[
            {"name": "surface_isolee", "label": "Surface isolée", "unit": "m²"},
            {"name": "epaisseur", "label": "Épaisseur", "unit": "mm"},
        ],
        kwh_cumac_values=[
            {"building_type": "Résidentiel", "kwh_cumac": 1000},
            {"building_type": "Tertiaire", "kwh_cumac": 750},
        ],
    )


@pytest.fixture(scope="session")
def lighting_product():
    """
    LED lighting product; multiplier field nombre_luminaire, 400 kWh cumac
    per luminaire for 'Tertiaire'.
    """
    from cee_engine.models.catalog_schema import ProductCatalogEntry
    return ProductCatalogEntry(
        id="prod-led",
        code="BAT-EQ-127",
        name="Luminaire LED",
        category="Lighting",
        params_schema={"fields": [{"name": "nombre_luminaire", "label": "Nombre de luminaires"}]},
        kwh_cumac_values=[{"building_type": "Tertiaire", "kwh_cumac": 400}],
    )


@pytest.fixture(scope="session")
def eco_product():
    """ECO-prefixed product: never valorised."""
    from cee_engine.models.catalog_schema import ProductCatalogEntry
    return ProductCatalogEntry(
        id="prod-eco",
        code="ECO-PACK",
        name="Pack éco",
        category="ECO",
        kwh_cumac_values=[{"building_type": "Résidentiel", "kwh_cumac": 5000}],
    )


@pytest.fixture(scope="session")
def delegate():
    """Delegate buying certificates at 10 €/MWh."""
    from cee_engine.models.catalog_schema import Delegate
    return Delegate(id="del-1", name="Obligé SA", price_eur_per_mwh=10)


@pytest.fixture
def insulation_line(insulation_product):
    """50 m² of attic insulation."""
    from cee_engine.models.catalog_schema import ProjectProductLine
    return ProjectProductLine(
        id="line-1",
        product=insulation_product,
        quantity=1,
        dynamic_params={"surface_isolee": 50},
    )


# ---------------------------------------------------------------------------
# Site fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def insulation_site():
    """
    Insulation site with one 100 € HT additional cost at 20 % VAT.

      prime 5000, travaux CLIENT 500
      100 m² billed × 12 €/m² labor, materials 800, commission 2 €/m² (enabled)
    """
    from cee_engine.models.rentability_schema import SiteFinancials
    return SiteFinancials(
        valorisation_cee=5000,
        travaux_non_subventionnes="CLIENT",
        travaux_non_subventionnes_montant=500,
        surface_facturee_m2=100,
        surface_posee_m2=90,
        cout_mo_par_m2=12,
        cout_total_materiaux=800,
        commission_commerciale_par_m2=2,
        commission_eur_per_m2_enabled=True,
        additional_costs=[{"label": "Benne", "amount_ht": 100, "tva_rate": 20}],
    )


@pytest.fixture
def lighting_site():
    """
    Lighting site: prime 3000, 40 luminaires, labor 600, materials 900,
    commission 5 €/luminaire (enabled), one 200 € HT cost at 10 % VAT.
    Stale insulation values are left on the record on purpose.
    """
    from cee_engine.models.rentability_schema import SiteFinancials
    return SiteFinancials(
        valorisation_cee=3000,
        nb_luminaires=40,
        cout_total_mo=600,
        cout_total_materiaux_eclairage=900,
        commission_eur_per_led=5,
        commission_eur_per_led_enabled=True,
        surface_facturee_m2=250,
        cout_mo_par_m2=30,
        additional_costs=[{"label": "Nacelle", "amount_ht": 200, "tva_rate": 10}],
    )
