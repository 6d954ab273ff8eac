"""
Pydantic schemas for the Crop Plan module.
Includes request schemas for plans, catalogs and price books, and response
schemas for coverage groups, pass summaries and season summaries.
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from enum import Enum


# ==================== ENUMS ====================

class ProductFormEnum(str, Enum):
    """Physical form of a product."""
    LIQUID = "liquid"
    DRY = "dry"


class TierLabelEnum(str, Enum):
    """Coverage tier labels."""
    CORE = "core"
    SELECTIVE = "selective"
    TRIAL = "trial"


class TimingBucketEnum(str, Enum):
    """Coarse placement of a pass in the season."""
    PRE_PLANT = "PRE_PLANT"
    AT_PLANTING = "AT_PLANTING"
    IN_SEASON = "IN_SEASON"
    POST_HARVEST = "POST_HARVEST"


class PriceSourceEnum(str, Enum):
    """Origin of a price-book price."""
    MANUAL_OVERRIDE = "manual_override"
    MANUAL = "manual"
    AWARDED = "awarded"
    ESTIMATED = "estimated"


class PassPatternEnum(str, Enum):
    UNIFORM = "uniform"
    SELECTIVE = "selective"
    TRIAL = "trial"


class BalanceStatusEnum(str, Enum):
    BALANCED = "balanced"
    HEAVY_EARLY = "heavy-early"
    HEAVY_LATE = "heavy-late"
    SKEWED = "skewed"


# ==================== CATALOG SCHEMAS ====================

class NutrientAnalysisSchema(BaseModel):
    """Guaranteed analysis in percent by weight."""
    n: float = Field(default=0.0, ge=0, le=100, description="N %")
    p: float = Field(default=0.0, ge=0, le=100, description="P %")
    k: float = Field(default=0.0, ge=0, le=100, description="K %")
    s: float = Field(default=0.0, ge=0, le=100, description="S %")


class ProductSchema(BaseModel):
    """Product from the catalog."""
    id: str = Field(..., min_length=1, max_length=100)
    name: str = Field(default="", max_length=200)
    form: ProductFormEnum = Field(default=ProductFormEnum.DRY)
    price: float = Field(default=0.0, description="Catalog price per price_unit")
    price_unit: str = Field(default="lbs", max_length=20, description="gal, lbs, ton, g, jug, bag, case, tote")
    density_lbs_per_gal: Optional[float] = Field(None, ge=0, description="Liquid density lbs/gal (default 10)")
    analysis: Optional[NutrientAnalysisSchema] = None
    is_bid_eligible: bool = Field(default=False, description="Price may come from the price book")
    commodity_spec_id: Optional[str] = Field(None, max_length=100)
    container_size: Optional[float] = Field(None, ge=0, description="Contents per container")
    container_unit: Optional[str] = Field(None, max_length=20, description="g, lbs, oz or gal")


class PriceBookEntrySchema(BaseModel):
    """Negotiated or awarded price for a season."""
    id: str = Field(..., min_length=1, max_length=100)
    season_year: Optional[int] = None
    product_id: Optional[str] = Field(None, max_length=100)
    commodity_spec_id: Optional[str] = Field(None, max_length=100)
    price: float
    price_unit: str = Field(default="ton", max_length=20, description="ton, gal or lbs")
    source: PriceSourceEnum = Field(default=PriceSourceEnum.ESTIMATED)
    vendor_id: Optional[str] = Field(None, max_length=100)


class PriceBookSchema(BaseModel):
    """Price book entries for one season."""
    season_year: Optional[int] = None
    entries: List[PriceBookEntrySchema] = Field(default_factory=list)


# ==================== CROP PLAN SCHEMAS ====================

class TierSchema(BaseModel):
    """Legacy percentage tier."""
    id: str = Field(..., min_length=1, max_length=100)
    name: str = Field(default="", max_length=100)
    percentage: float = Field(default=100.0, ge=0, le=100)


class TimingSchema(BaseModel):
    """One application pass."""
    id: str = Field(..., min_length=1, max_length=100)
    name: str = Field(default="", max_length=100)
    order: int = 0
    timing_bucket: Optional[TimingBucketEnum] = None
    growth_stage_start: Optional[str] = Field(None, max_length=20)
    growth_stage_end: Optional[str] = Field(None, max_length=20)


class TreatmentSchema(BaseModel):
    """Planned product application within a pass."""
    id: str = Field(..., min_length=1, max_length=100)
    timing_id: str = Field(..., min_length=1, max_length=100)
    product_id: str = Field(..., min_length=1, max_length=100)
    rate: float = Field(default=0.0, description="Rate per treated acre")
    rate_unit: str = Field(default="gal", max_length=20, description="oz, qt, gal, lbs, g, ton")
    acres_percentage: Optional[float] = Field(None, ge=0, le=100, description="Share of field acres treated")
    tier_id: Optional[str] = Field(None, max_length=100)
    tier_auto: Optional[TierLabelEnum] = None
    tier_override: Optional[TierLabelEnum] = None
    role: Optional[str] = Field(None, max_length=100)


class SeedTreatmentSchema(BaseModel):
    """Seed treatment applied per hundredweight of seed."""
    id: str = Field(..., min_length=1, max_length=100)
    product_id: str = Field(..., min_length=1, max_length=100)
    rate_per_cwt: float = Field(default=0.0, ge=0)
    rate_unit: str = Field(default="oz", max_length=5, description="oz or g")
    planting_rate_lbs_per_acre: float = Field(default=0.0, ge=0)


class CropPlanSchema(BaseModel):
    """Crop plan for one season."""
    id: str = Field(..., min_length=1, max_length=100)
    name: str = Field(default="", max_length=100)
    crop_type: Optional[str] = Field(None, max_length=50, description="corn, soybeans, wheat, ...")
    total_acres: float = Field(default=0.0, ge=0)
    tiers: List[TierSchema] = Field(default_factory=list)
    timings: List[TimingSchema] = Field(default_factory=list)
    treatments: List[TreatmentSchema] = Field(default_factory=list)
    seed_treatments: List[SeedTreatmentSchema] = Field(default_factory=list)


class CropPlanCalculateRequest(BaseModel):
    """Request schema for crop plan calculations."""
    plan: CropPlanSchema
    products: List[ProductSchema] = Field(default_factory=list)
    price_book: Optional[PriceBookSchema] = Field(None, description="Use price-book pricing when provided")
    farm_avg_cost_per_acre: Optional[float] = Field(None, description="Baseline $/acre for intensity scoring")


class CoverageGroupsRequest(CropPlanCalculateRequest):
    """Coverage groups for one pass, or for every treatment when timing_id is omitted."""
    timing_id: Optional[str] = None


# ==================== RESULT SCHEMAS ====================

class NutrientTotalsSchema(BaseModel):
    """Pounds of nutrient per acre."""
    n: float
    p: float
    k: float
    s: float


class SkippedTreatmentSchema(BaseModel):
    """Treatment excluded from totals because a reference is missing."""
    treatment_id: str
    reason: str


class CoverageGroupSchema(BaseModel):
    """Treatments sharing a coverage bucket."""
    acres_percentage: int
    tier_label: str
    treatments: List[TreatmentSchema]
    cost_per_treated_acre: float
    cost_per_field_acre: float
    acres_treated: float
    nutrients: NutrientTotalsSchema


class CoverageGroupsResponse(BaseModel):
    """List of coverage groups."""
    items: List[CoverageGroupSchema]
    total: int


class PassSummarySchema(BaseModel):
    """Summary of one pass."""
    timing: TimingSchema
    treatments: List[TreatmentSchema]
    total_cost: float
    avg_acres_percentage: float
    nutrients: NutrientTotalsSchema
    coverage_groups: List[CoverageGroupSchema]
    pass_pattern: PassPatternEnum
    dominant_acres: float
    cost_per_treated_acre: float
    cost_per_field_acre: float
    skipped_treatments: List[SkippedTreatmentSchema] = Field(default_factory=list)


class IntensityBreakdownSchema(BaseModel):
    """Pressure signals behind the program intensity score (each 0-1)."""
    pass_score: float
    selectivity_score: float
    late_score: float
    cost_score: float


class NutrientTimingSchema(BaseModel):
    """Nutrients delivered in each third of the pass sequence."""
    early: NutrientTotalsSchema
    mid: NutrientTotalsSchema
    late: NutrientTotalsSchema


class SeasonSummaryResponse(BaseModel):
    """Response schema for a season summary."""
    total_cost: float
    cost_per_acre: float
    program_intensity: int = Field(..., ge=1, le=5)
    intensity_label: str
    intensity_score: float
    intensity_breakdown: IntensityBreakdownSchema
    status: BalanceStatusEnum
    nutrients: NutrientTotalsSchema
    nutrient_timing: NutrientTimingSchema
    pass_summaries: List[PassSummarySchema]
    seed_treatment_cost: float
    seed_treatment_cost_per_acre: float
    skipped_treatments: List[SkippedTreatmentSchema]
