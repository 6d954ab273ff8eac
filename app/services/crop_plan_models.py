"""
Value objects for the crop plan engine.

Inputs (plan, catalog, price book) and derived results (coverage groups,
pass and season summaries) are frozen dataclasses so the same inputs always
produce equal outputs and results can be memoized or serialized with
dataclasses.asdict().
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Mapping, Optional, Sequence, Tuple, Union


class TierLabel(str, Enum):
    CORE = "core"
    SELECTIVE = "selective"
    TRIAL = "trial"


class PassPattern(str, Enum):
    UNIFORM = "uniform"
    SELECTIVE = "selective"
    TRIAL = "trial"


class BalanceStatus(str, Enum):
    BALANCED = "balanced"
    HEAVY_EARLY = "heavy-early"
    HEAVY_LATE = "heavy-late"
    SKEWED = "skewed"


class SkipReason(str, Enum):
    MISSING_PRODUCT = "missing_product"
    MISSING_TIER = "missing_tier"
    MISSING_TIMING = "missing_timing"


class PriceSource(str, Enum):
    MANUAL_OVERRIDE = "manual_override"
    MANUAL = "manual"
    AWARDED = "awarded"
    ESTIMATED = "estimated"


# Higher wins when several price-book entries match one product.
PRICE_SOURCE_PRIORITY = {
    PriceSource.MANUAL_OVERRIDE: 4,
    PriceSource.MANUAL: 3,
    PriceSource.AWARDED: 2,
    PriceSource.ESTIMATED: 1,
}


# ==================== PLAN INPUTS ====================

@dataclass(frozen=True)
class NutrientAnalysis:
    """Guaranteed analysis in percent by weight."""
    n: float = 0.0
    p: float = 0.0
    k: float = 0.0
    s: float = 0.0


@dataclass(frozen=True)
class Product:
    id: str
    name: str = ""
    form: str = "dry"  # liquid | dry
    price: float = 0.0
    price_unit: str = "lbs"  # gal, lbs, ton, g, jug, bag, case, tote
    density_lbs_per_gal: Optional[float] = None
    analysis: Optional[NutrientAnalysis] = None
    is_bid_eligible: bool = False
    commodity_spec_id: Optional[str] = None
    # Container pricing, e.g. $900/jug holding 1800 g
    container_size: Optional[float] = None
    container_unit: Optional[str] = None  # g, lbs, oz

    @property
    def is_liquid(self) -> bool:
        return self.form == "liquid"


@dataclass(frozen=True)
class Tier:
    id: str
    name: str = ""
    percentage: float = 100.0


@dataclass(frozen=True)
class Timing:
    """One application pass in the season sequence."""
    id: str
    name: str = ""
    order: int = 0
    timing_bucket: Optional[str] = None  # PRE_PLANT, AT_PLANTING, IN_SEASON, POST_HARVEST
    growth_stage_start: Optional[str] = None
    growth_stage_end: Optional[str] = None


@dataclass(frozen=True)
class Treatment:
    id: str
    timing_id: str
    product_id: str
    rate: float = 0.0
    rate_unit: str = "gal"
    acres_percentage: Optional[float] = None
    tier_id: Optional[str] = None  # legacy fallback for coverage
    tier_auto: Optional[TierLabel] = None
    tier_override: Optional[TierLabel] = None
    role: Optional[str] = None


@dataclass(frozen=True)
class SeedTreatment:
    id: str
    product_id: str
    rate_per_cwt: float = 0.0
    rate_unit: str = "oz"  # oz | g
    planting_rate_lbs_per_acre: float = 0.0


@dataclass(frozen=True)
class CropPlan:
    id: str
    name: str = ""
    total_acres: float = 0.0
    crop_type: Optional[str] = None
    tiers: Tuple[Tier, ...] = ()
    timings: Tuple[Timing, ...] = ()
    treatments: Tuple[Treatment, ...] = ()
    seed_treatments: Tuple[SeedTreatment, ...] = ()

    def find_tier(self, tier_id: Optional[str]) -> Optional[Tier]:
        return next((t for t in self.tiers if t.id == tier_id), None)

    def treatments_for(self, timing_id: str) -> Tuple[Treatment, ...]:
        return tuple(t for t in self.treatments if t.timing_id == timing_id)


@dataclass(frozen=True)
class PriceBookEntry:
    id: str
    price: float
    season_year: Optional[int] = None
    product_id: Optional[str] = None
    commodity_spec_id: Optional[str] = None
    price_unit: str = "ton"  # ton | gal | lbs
    source: PriceSource = PriceSource.ESTIMATED
    vendor_id: Optional[str] = None


@dataclass(frozen=True)
class PriceBookContext:
    entries: Tuple[PriceBookEntry, ...] = ()
    season_year: Optional[int] = None


ProductCatalog = Union[Mapping[str, Product], Sequence[Product]]


def index_products(products: ProductCatalog) -> Dict[str, Product]:
    """Accept a catalog keyed by id or a plain sequence of products."""
    if isinstance(products, Mapping):
        return dict(products)
    return {p.id: p for p in products}


# ==================== DERIVED RESULTS ====================

@dataclass(frozen=True)
class NutrientTotals:
    n: float = 0.0
    p: float = 0.0
    k: float = 0.0
    s: float = 0.0

    def __add__(self, other: "NutrientTotals") -> "NutrientTotals":
        return NutrientTotals(
            n=self.n + other.n,
            p=self.p + other.p,
            k=self.k + other.k,
            s=self.s + other.s,
        )

    def scaled(self, factor: float) -> "NutrientTotals":
        return NutrientTotals(
            n=self.n * factor,
            p=self.p * factor,
            k=self.k * factor,
            s=self.s * factor,
        )


@dataclass(frozen=True)
class SkippedTreatment:
    treatment_id: str
    reason: SkipReason


@dataclass(frozen=True)
class CoverageGroup:
    acres_percentage: int
    tier_label: str  # Core | Selective | Trial
    treatments: Tuple[Treatment, ...]
    cost_per_treated_acre: float
    cost_per_field_acre: float
    acres_treated: float
    nutrients: NutrientTotals = field(default_factory=NutrientTotals)


@dataclass(frozen=True)
class PassSummary:
    timing: Timing
    treatments: Tuple[Treatment, ...]
    total_cost: float
    avg_acres_percentage: float
    nutrients: NutrientTotals
    coverage_groups: Tuple[CoverageGroup, ...]
    pass_pattern: PassPattern
    dominant_acres: float
    cost_per_treated_acre: float
    cost_per_field_acre: float
    skipped_treatments: Tuple[SkippedTreatment, ...] = ()

    @property
    def is_active(self) -> bool:
        return len(self.treatments) > 0


@dataclass(frozen=True)
class IntensityBreakdown:
    pass_score: float
    selectivity_score: float
    late_score: float
    cost_score: float


@dataclass(frozen=True)
class ProgramIntensity:
    score: float
    rating: int
    label: str
    breakdown: IntensityBreakdown


@dataclass(frozen=True)
class NutrientTiming:
    early: NutrientTotals = field(default_factory=NutrientTotals)
    mid: NutrientTotals = field(default_factory=NutrientTotals)
    late: NutrientTotals = field(default_factory=NutrientTotals)


@dataclass(frozen=True)
class SeasonSummary:
    total_cost: float
    cost_per_acre: float
    program_intensity: int  # 1-5 rating
    intensity_label: str
    intensity_score: float
    intensity_breakdown: IntensityBreakdown
    status: BalanceStatus
    nutrients: NutrientTotals
    nutrient_timing: NutrientTiming
    pass_summaries: Tuple[PassSummary, ...] = ()
    seed_treatment_cost: float = 0.0
    seed_treatment_cost_per_acre: float = 0.0
    skipped_treatments: Tuple[SkippedTreatment, ...] = ()
