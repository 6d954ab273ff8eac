"""
Crop Plan Router.
Provides endpoints for coverage groups, pass summaries and season summaries.
"""
from typing import Optional
from fastapi import APIRouter, HTTPException
from fastapi.encoders import jsonable_encoder
import logging

from app.schemas.crop_plan_schemas import (
    CropPlanCalculateRequest,
    CoverageGroupsRequest,
    CoverageGroupsResponse,
    CropPlanSchema,
    PassSummarySchema,
    PriceBookSchema,
    ProductSchema,
    SeasonSummaryResponse,
)
from app.services.crop_plan_calculator import (
    TimingNotFoundError,
    crop_plan_calculator,
    get_timing,
)
from app.services.crop_plan_models import (
    CropPlan,
    NutrientAnalysis,
    PriceBookContext,
    PriceBookEntry,
    PriceSource,
    Product,
    SeedTreatment,
    Tier,
    TierLabel,
    Timing,
    Treatment,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/crop-plan", tags=["crop-plan"])


def _enum_value(value):
    return value.value if value is not None else None


def product_schema_to_data(product: ProductSchema) -> Product:
    analysis = None
    if product.analysis is not None:
        analysis = NutrientAnalysis(
            n=product.analysis.n,
            p=product.analysis.p,
            k=product.analysis.k,
            s=product.analysis.s,
        )
    return Product(
        id=product.id,
        name=product.name,
        form=product.form.value,
        price=product.price,
        price_unit=product.price_unit,
        density_lbs_per_gal=product.density_lbs_per_gal,
        analysis=analysis,
        is_bid_eligible=product.is_bid_eligible,
        commodity_spec_id=product.commodity_spec_id,
        container_size=product.container_size,
        container_unit=product.container_unit,
    )


def plan_schema_to_data(plan: CropPlanSchema) -> CropPlan:
    return CropPlan(
        id=plan.id,
        name=plan.name,
        total_acres=plan.total_acres,
        crop_type=plan.crop_type,
        tiers=tuple(Tier(id=t.id, name=t.name, percentage=t.percentage) for t in plan.tiers),
        timings=tuple(
            Timing(
                id=t.id,
                name=t.name,
                order=t.order,
                timing_bucket=_enum_value(t.timing_bucket),
                growth_stage_start=t.growth_stage_start,
                growth_stage_end=t.growth_stage_end,
            )
            for t in plan.timings
        ),
        treatments=tuple(
            Treatment(
                id=t.id,
                timing_id=t.timing_id,
                product_id=t.product_id,
                rate=t.rate,
                rate_unit=t.rate_unit,
                acres_percentage=t.acres_percentage,
                tier_id=t.tier_id,
                tier_auto=TierLabel(t.tier_auto.value) if t.tier_auto else None,
                tier_override=TierLabel(t.tier_override.value) if t.tier_override else None,
                role=t.role,
            )
            for t in plan.treatments
        ),
        seed_treatments=tuple(
            SeedTreatment(
                id=st.id,
                product_id=st.product_id,
                rate_per_cwt=st.rate_per_cwt,
                rate_unit=st.rate_unit,
                planting_rate_lbs_per_acre=st.planting_rate_lbs_per_acre,
            )
            for st in plan.seed_treatments
        ),
    )


def price_book_schema_to_context(price_book: Optional[PriceBookSchema]) -> Optional[PriceBookContext]:
    if price_book is None:
        return None
    entries = tuple(
        PriceBookEntry(
            id=e.id,
            price=e.price,
            season_year=e.season_year,
            product_id=e.product_id,
            commodity_spec_id=e.commodity_spec_id,
            price_unit=e.price_unit,
            source=PriceSource(e.source.value),
            vendor_id=e.vendor_id,
        )
        for e in price_book.entries
    )
    return PriceBookContext(entries=entries, season_year=price_book.season_year)


def _catalog(request: CropPlanCalculateRequest):
    return [product_schema_to_data(p) for p in request.products]


@router.post("/coverage-groups", response_model=CoverageGroupsResponse)
def calculate_coverage_groups(request: CoverageGroupsRequest):
    """
    Bucket treatments into coverage groups.

    With timing_id only that pass is grouped; otherwise every treatment of the plan.
    """
    plan = plan_schema_to_data(request.plan)

    if request.timing_id:
        try:
            get_timing(plan, request.timing_id)
        except TimingNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        treatments = plan.treatments_for(request.timing_id)
    else:
        treatments = plan.treatments

    groups = crop_plan_calculator.build_coverage_groups(
        treatments, plan, _catalog(request), price_book_schema_to_context(request.price_book)
    )
    return {"items": jsonable_encoder(groups), "total": len(groups)}


@router.post("/pass-summary/{timing_id}", response_model=PassSummarySchema)
def calculate_pass_summary(timing_id: str, request: CropPlanCalculateRequest):
    """Summarize one pass: cost, coverage, nutrients and pattern."""
    plan = plan_schema_to_data(request.plan)
    try:
        timing = get_timing(plan, timing_id)
    except TimingNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    summary = crop_plan_calculator.build_pass_summary(
        timing, plan, _catalog(request), price_book_schema_to_context(request.price_book)
    )
    return jsonable_encoder(summary)


@router.post("/season-summary", response_model=SeasonSummaryResponse)
def calculate_season_summary(request: CropPlanCalculateRequest):
    """Roll all passes into season totals and score program intensity."""
    plan = plan_schema_to_data(request.plan)
    summary = crop_plan_calculator.build_season_summary(
        plan,
        _catalog(request),
        price_book_schema_to_context(request.price_book),
        request.farm_avg_cost_per_acre,
    )
    if summary.skipped_treatments:
        logger.info(
            f"Season summary for plan {plan.id} excluded {len(summary.skipped_treatments)} treatment(s) with missing references"
        )
    return jsonable_encoder(summary)


@router.get("/late-growth-stages")
def get_late_growth_stages():
    """Growth stages counted as late season, by crop type."""
    stages = crop_plan_calculator.late_growth_stages
    return {"crops": {crop_type: list(late) for crop_type, late in stages.items()}}
