"""Rentability & CEE valorisation routes — stateless calculation endpoints."""
import logging
from dataclasses import asdict
from typing import Any, List, Optional
from fastapi import APIRouter
from pydantic import BaseModel, Field

from cee_engine.models.catalog_schema import Delegate, ProjectEnergySource, ProjectProductLine
from cee_engine.models.rentability_schema import RentabilityInput, SiteFinancials
from cee_engine.services.aggregation import aggregate_energy_by_category, compute_project_valorisation
from cee_engine.services.category_engine import build_site_snapshot, compute_category_snapshot
from cee_engine.services.rentability_engine import calculate_rentability

router = APIRouter(tags=["Rentability"])
logger = logging.getLogger("cee-engine.api")


class CategorySnapshotRequest(BaseModel):
    category: Optional[str] = None          # Insulation | Lighting (unrecognised -> Insulation)
    view: str = "ht"                        # ht | ttc
    site: SiteFinancials = Field(default_factory=SiteFinancials)


class SiteSnapshotRequest(BaseModel):
    category: Optional[str] = None
    site: SiteFinancials = Field(default_factory=SiteFinancials)


class ValorisationRequest(BaseModel):
    project_id: Optional[str] = None
    building_type: Optional[str] = None
    delegate: Optional[Delegate] = None
    bonification: Any = None                # non-positive / unparsable -> 2
    coefficient: Any = None                 # non-positive / unparsable -> 1
    lines: List[ProjectProductLine] = Field(default_factory=list)


class EnergyBreakdownRequest(BaseModel):
    projects: List[ProjectEnergySource] = Field(default_factory=list)


@router.post("/api/rentability/unified")
async def unified_rentability(req: RentabilityInput):
    """Revenue, costs, margin and subcontractor estimate for one site."""
    return asdict(calculate_rentability(req))


@router.post("/api/rentability/category")
async def category_snapshot(req: CategorySnapshotRequest):
    snapshot = compute_category_snapshot(req.category, req.site, req.view)
    logger.info(
        f"Category snapshot computed ({snapshot.view})",
        extra={"category": snapshot.category},
    )
    return asdict(snapshot)


@router.post("/api/rentability/site-snapshot")
async def site_snapshot(req: SiteSnapshotRequest):
    """Payload to persist: active-category fields, the other side nulled, TTC totals."""
    return build_site_snapshot(req.category, req.site)


@router.post("/api/cee/valorisation")
async def cee_valorisation(req: ValorisationRequest):
    result = compute_project_valorisation(
        req.lines,
        req.building_type,
        delegate=req.delegate,
        bonification=req.bonification,
        coefficient=req.coefficient,
    )
    logger.info(
        f"Valorisation computed for {len(result.products)} lines: "
        f"{result.totals.total_prime:.2f} EUR",
        extra={"project_id": req.project_id},
    )
    return asdict(result)


@router.post("/api/cee/energy-breakdown")
async def energy_breakdown(req: EnergyBreakdownRequest):
    return asdict(aggregate_energy_by_category(req.projects))
