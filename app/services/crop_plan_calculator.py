"""
Crop Plan Calculator Service.

Turns a tiered, partial-acreage treatment plan into:
- Coverage groups per pass (tolerance-banded acreage buckets)
- Pass summaries (cost, coverage-weighted nutrients, pass pattern)
- Program intensity (pass count, selectivity, late-season and cost pressure)
- Season summary (totals, early/mid/late nutrient timing, cost balance)

All calculations are pure: the same plan, catalog and price book always
produce equal results. Treatments that reference a missing product, tier or
timing are left out of every total and reported in skipped_treatments.
"""
from typing import Dict, List, Optional, Sequence, Tuple
import json
import logging
import os

from app.services.crop_plan_coverage import (
    bucket_coverage,
    classify_coverage,
    effective_coverage,
    has_missing_tier,
    tier_display_label,
)
from app.services.crop_plan_models import (
    BalanceStatus,
    CoverageGroup,
    CropPlan,
    IntensityBreakdown,
    NutrientTiming,
    NutrientTotals,
    PassPattern,
    PassSummary,
    PriceBookContext,
    Product,
    ProductCatalog,
    ProgramIntensity,
    SeasonSummary,
    SkippedTreatment,
    SkipReason,
    Timing,
    Treatment,
    index_products,
)
from app.services.crop_plan_nutrients import treatment_nutrients
from app.services.crop_plan_pricing import CostEngine, resolver_for, seed_treatment_cost_per_acre
from app.services.crop_plan_rules import (
    DEFAULT_CROP_TYPE,
    DEFAULT_ENGINE_CONFIG,
    DEFAULT_LATE_GROWTH_STAGES,
    GENERIC_CROP_TYPE,
    EngineConfig,
)
from app.services.unit_conversion import finite_or_zero

logger = logging.getLogger(__name__)

LATE_GROWTH_STAGES_PATH = os.path.join(
    os.path.dirname(__file__), "..", "data", "late_growth_stages.json"
)

_late_growth_stages_cache = None


class CropPlanError(Exception):
    """Base error for crop plan lookups."""
    pass


class TimingNotFoundError(CropPlanError):
    """Raised when a timing id is not part of the plan."""

    def __init__(self, timing_id: str):
        super().__init__(f"Timing '{timing_id}' not found in crop plan")
        self.timing_id = timing_id


def clear_late_growth_stages_cache():
    """Clear the cache to reload late growth stages on next call."""
    global _late_growth_stages_cache
    _late_growth_stages_cache = None


def load_late_growth_stages() -> Dict[str, Tuple[str, ...]]:
    """Load late-season growth stages by crop type from JSON file."""
    global _late_growth_stages_cache
    if _late_growth_stages_cache is not None:
        return _late_growth_stages_cache

    try:
        with open(LATE_GROWTH_STAGES_PATH, "r", encoding="utf-8") as f:
            data = json.load(f)
        stages = {
            crop_type: tuple(crop.get("late_stages", []))
            for crop_type, crop in data.get("crops", {}).items()
        }
    except Exception as e:
        logger.error(f"Error loading late growth stages: {e}")
        return dict(DEFAULT_LATE_GROWTH_STAGES)

    if GENERIC_CROP_TYPE not in stages:
        stages[GENERIC_CROP_TYPE] = DEFAULT_LATE_GROWTH_STAGES[GENERIC_CROP_TYPE]
    _late_growth_stages_cache = stages
    return stages


def get_timing(plan: CropPlan, timing_id: str) -> Timing:
    timing = next((t for t in plan.timings if t.id == timing_id), None)
    if timing is None:
        raise TimingNotFoundError(timing_id)
    return timing


class CropPlanCalculator:
    """
    Calculator for crop plan economics and program intensity.

    Methodology:
    1. Resolve each treatment's coverage (explicit %, tier %, or 100)
    2. Cost per treated acre from catalog or price book
    3. Nutrients per treated acre from product analysis
    4. Bucket treatments of a pass into coverage groups
    5. Roll passes into the season and score program intensity
    """

    def __init__(self, config: EngineConfig = DEFAULT_ENGINE_CONFIG):
        self.config = config
        self.late_growth_stages = load_late_growth_stages()

    # ---------------------------------------------------------------- inputs

    def _resolve_treatments(
        self,
        treatments: Sequence[Treatment],
        plan: CropPlan,
        catalog: Dict[str, Product],
    ) -> Tuple[List[Tuple[Treatment, Product, float]], List[SkippedTreatment]]:
        """Split treatments into (treatment, product, coverage) rows and skipped references."""
        resolved = []
        skipped = []
        for treatment in treatments:
            product = catalog.get(treatment.product_id)
            if product is None:
                logger.debug(f"Treatment {treatment.id} skipped: product '{treatment.product_id}' not in catalog")
                skipped.append(SkippedTreatment(treatment.id, SkipReason.MISSING_PRODUCT))
                continue
            if has_missing_tier(treatment, plan):
                logger.debug(f"Treatment {treatment.id} skipped: tier '{treatment.tier_id}' not in plan")
                skipped.append(SkippedTreatment(treatment.id, SkipReason.MISSING_TIER))
                continue
            resolved.append((treatment, product, effective_coverage(treatment, plan)))
        return resolved, skipped

    def _cost_engine(self, price_book: Optional[PriceBookContext]) -> CostEngine:
        return CostEngine(resolver_for(price_book), self.config.default_density_lbs_per_gal)

    # -------------------------------------------------------- coverage groups

    def _group_rows(
        self,
        rows: List[Tuple[Treatment, Product, float]],
        plan: CropPlan,
        engine: CostEngine,
    ) -> Tuple[CoverageGroup, ...]:
        total_acres = finite_or_zero(plan.total_acres)
        buckets: Dict[int, List[Tuple[Treatment, float, NutrientTotals]]] = {}

        for treatment, product, pct in rows:
            bucket = bucket_coverage(pct, self.config)
            cost = engine.cost_per_acre(treatment, product)
            nutrients = treatment_nutrients(treatment, product, self.config.default_density_lbs_per_gal)
            buckets.setdefault(bucket, []).append((treatment, cost, nutrients))

        groups = []
        for bucket, members in buckets.items():
            # stacked cost of co-applied products, not an average
            cost_per_treated_acre = sum(cost for _, cost, _ in members)
            nutrients = NutrientTotals()
            for _, _, member_nutrients in members:
                nutrients = nutrients + member_nutrients
            by_cost = sorted(members, key=lambda m: m[1], reverse=True)
            groups.append(CoverageGroup(
                acres_percentage=bucket,
                tier_label=tier_display_label(classify_coverage(bucket, self.config)),
                treatments=tuple(t for t, _, _ in by_cost),
                cost_per_treated_acre=cost_per_treated_acre,
                cost_per_field_acre=cost_per_treated_acre * (bucket / 100),
                acres_treated=total_acres * (bucket / 100),
                nutrients=nutrients,
            ))

        groups.sort(key=lambda g: g.acres_percentage, reverse=True)
        return tuple(groups)

    def build_coverage_groups(
        self,
        treatments: Sequence[Treatment],
        plan: CropPlan,
        products: ProductCatalog,
        price_book: Optional[PriceBookContext] = None,
    ) -> Tuple[CoverageGroup, ...]:
        rows, _ = self._resolve_treatments(treatments, plan, index_products(products))
        return self._group_rows(rows, plan, self._cost_engine(price_book))

    def determine_pass_pattern(self, coverage_groups: Sequence[CoverageGroup]) -> PassPattern:
        if not coverage_groups:
            return PassPattern.UNIFORM

        config = self.config
        values = [g.acres_percentage for g in coverage_groups]
        spread = max(values) - min(values)
        if len(coverage_groups) == 1 and spread <= config.pattern_spread_tolerance:
            if values[0] <= config.trial_max_pct:
                return PassPattern.TRIAL
            return PassPattern.UNIFORM

        total = sum(len(g.treatments) for g in coverage_groups)
        trial = sum(len(g.treatments) for g in coverage_groups if g.acres_percentage <= config.trial_max_pct)
        if total > 0 and trial / total > config.trial_majority_share:
            return PassPattern.TRIAL
        return PassPattern.SELECTIVE

    # --------------------------------------------------------------- passes

    def _pass_summary(
        self,
        timing: Timing,
        plan: CropPlan,
        catalog: Dict[str, Product],
        engine: CostEngine,
    ) -> PassSummary:
        rows, skipped = self._resolve_treatments(plan.treatments_for(timing.id), plan, catalog)
        total_acres = finite_or_zero(plan.total_acres)

        total_cost = 0.0
        total_pct = 0.0
        nutrients = NutrientTotals()
        for treatment, product, pct in rows:
            weight = pct / 100
            total_cost += engine.cost_per_acre(treatment, product) * total_acres * weight
            total_pct += pct
            delivered = treatment_nutrients(treatment, product, self.config.default_density_lbs_per_gal)
            nutrients = nutrients + delivered.scaled(weight)

        groups = self._group_rows(rows, plan, engine)

        dominant = None
        for group in groups:
            if dominant is None or len(group.treatments) > len(dominant.treatments):
                dominant = group

        return PassSummary(
            timing=timing,
            treatments=tuple(t for t, _, _ in rows),
            total_cost=total_cost,
            avg_acres_percentage=total_pct / len(rows) if rows else 0.0,
            nutrients=nutrients,
            coverage_groups=groups,
            pass_pattern=self.determine_pass_pattern(groups),
            dominant_acres=dominant.acres_percentage if dominant is not None else 100,
            cost_per_treated_acre=sum(g.cost_per_treated_acre for g in groups),
            cost_per_field_acre=sum(g.cost_per_field_acre for g in groups),
            skipped_treatments=tuple(skipped),
        )

    def build_pass_summary(
        self,
        timing: Timing,
        plan: CropPlan,
        products: ProductCatalog,
        price_book: Optional[PriceBookContext] = None,
    ) -> PassSummary:
        return self._pass_summary(timing, plan, index_products(products), self._cost_engine(price_book))

    # ------------------------------------------------------------ intensity

    def late_stages_for(self, crop_type: Optional[str]) -> Tuple[str, ...]:
        crop_type = crop_type or DEFAULT_CROP_TYPE
        stages = self.late_growth_stages
        return tuple(stages.get(crop_type, stages.get(GENERIC_CROP_TYPE, ())))

    def is_late_season_timing(self, timing: Timing, crop_type: Optional[str]) -> bool:
        late = self.late_stages_for(crop_type)
        return (timing.growth_stage_start or "") in late or (timing.growth_stage_end or "") in late

    def intensity_rating(self, score: float) -> int:
        for index, cut in enumerate(self.config.rating_cut_points):
            if score <= cut:
                return index + 1
        return len(self.config.rating_cut_points) + 1

    def calculate_program_intensity(
        self,
        plan: CropPlan,
        pass_summaries: Sequence[PassSummary],
        crop_cost_per_acre: float,
        farm_avg_cost_per_acre: Optional[float] = None,
    ) -> ProgramIntensity:
        config = self.config
        active = [p for p in pass_summaries if p.is_active]

        # How many times do we cross the field?
        pass_score = min(len(active) / config.reference_pass_count, 1.0)

        # How much of the field is managed differently?
        load = sum(
            config.selectivity_load(classify_coverage(p.avg_acres_percentage, config).value)
            for p in active
        )
        selectivity_score = min(load / config.reference_pass_count, 1.0)

        # How late into the season are decisions still made?
        late_passes = sum(1 for p in active if self.is_late_season_timing(p.timing, plan.crop_type))
        late_score = min(late_passes / config.late_pass_reference, 1.0)

        # Only above-average cost adds pressure.
        if farm_avg_cost_per_acre is None:
            baseline = config.default_farm_avg_cost_per_acre
        else:
            baseline = finite_or_zero(farm_avg_cost_per_acre)
        deviation = 0.0
        if baseline > 0:
            deviation = (finite_or_zero(crop_cost_per_acre) - baseline) / baseline
        cost_score = max(0.0, min(deviation, config.cost_deviation_cap))

        score = (
            config.pass_weight * pass_score
            + config.selectivity_weight * selectivity_score
            + config.late_weight * late_score
            + config.cost_weight * cost_score
        )
        rating = self.intensity_rating(score)

        return ProgramIntensity(
            score=score,
            rating=rating,
            label=config.intensity_labels[rating - 1],
            breakdown=IntensityBreakdown(
                pass_score=pass_score,
                selectivity_score=selectivity_score,
                late_score=late_score,
                cost_score=cost_score,
            ),
        )

    # --------------------------------------------------------------- season

    def balance_status(self, early_ratio: float, late_ratio: float) -> BalanceStatus:
        config = self.config
        if early_ratio > config.heavy_share_threshold:
            return BalanceStatus.HEAVY_EARLY
        if late_ratio > config.heavy_share_threshold:
            return BalanceStatus.HEAVY_LATE
        if abs(early_ratio - late_ratio) > config.skew_threshold:
            return BalanceStatus.SKEWED
        return BalanceStatus.BALANCED

    def seed_treatment_cost(
        self, plan: CropPlan, catalog: Dict[str, Product]
    ) -> Tuple[float, List[SkippedTreatment]]:
        total = 0.0
        skipped = []
        total_acres = finite_or_zero(plan.total_acres)
        for seed_treatment in plan.seed_treatments:
            product = catalog.get(seed_treatment.product_id)
            if product is None:
                logger.debug(f"Seed treatment {seed_treatment.id} skipped: product '{seed_treatment.product_id}' not in catalog")
                skipped.append(SkippedTreatment(seed_treatment.id, SkipReason.MISSING_PRODUCT))
                continue
            total += seed_treatment_cost_per_acre(seed_treatment, product) * total_acres
        return total, skipped

    def build_season_summary(
        self,
        plan: CropPlan,
        products: ProductCatalog,
        price_book: Optional[PriceBookContext] = None,
        farm_avg_cost_per_acre: Optional[float] = None,
    ) -> SeasonSummary:
        catalog = index_products(products)
        engine = self._cost_engine(price_book)
        passes = [self._pass_summary(timing, plan, catalog, engine) for timing in plan.timings]

        skipped: List[SkippedTreatment] = []
        for summary in passes:
            skipped.extend(summary.skipped_treatments)
        timing_ids = {t.id for t in plan.timings}
        for treatment in plan.treatments:
            if treatment.timing_id not in timing_ids:
                logger.debug(f"Treatment {treatment.id} skipped: timing '{treatment.timing_id}' not in plan")
                skipped.append(SkippedTreatment(treatment.id, SkipReason.MISSING_TIMING))

        total_cost = 0.0
        nutrients = NutrientTotals()
        for summary in passes:
            total_cost += summary.total_cost
            nutrients = nutrients + summary.nutrients

        total_acres = finite_or_zero(plan.total_acres)
        cost_per_acre = total_cost / total_acres if total_acres > 0 else 0.0

        intensity = self.calculate_program_intensity(plan, passes, cost_per_acre, farm_avg_cost_per_acre)

        # Thirds by position in the pass sequence, not by calendar date
        count = len(passes)
        early_end = count // 3
        mid_end = (2 * count) // 3
        early = sum((p.nutrients for p in passes[:early_end]), NutrientTotals())
        mid = sum((p.nutrients for p in passes[early_end:mid_end]), NutrientTotals())
        late = sum((p.nutrients for p in passes[mid_end:]), NutrientTotals())

        early_cost = sum(p.total_cost for p in passes[:early_end])
        late_cost = sum(p.total_cost for p in passes[mid_end:])
        early_ratio = early_cost / total_cost if total_cost > 0 else 0.0
        late_ratio = late_cost / total_cost if total_cost > 0 else 0.0

        seed_cost, seed_skipped = self.seed_treatment_cost(plan, catalog)
        skipped.extend(seed_skipped)

        if skipped:
            logger.debug(f"Crop plan {plan.id}: {len(skipped)} treatment(s) excluded from totals")

        return SeasonSummary(
            total_cost=total_cost,
            cost_per_acre=cost_per_acre,
            program_intensity=intensity.rating,
            intensity_label=intensity.label,
            intensity_score=intensity.score,
            intensity_breakdown=intensity.breakdown,
            status=self.balance_status(early_ratio, late_ratio),
            nutrients=nutrients,
            nutrient_timing=NutrientTiming(early=early, mid=mid, late=late),
            pass_summaries=tuple(passes),
            seed_treatment_cost=seed_cost,
            seed_treatment_cost_per_acre=seed_cost / total_acres if total_acres > 0 else 0.0,
            skipped_treatments=tuple(skipped),
        )


# Singleton instance
crop_plan_calculator = CropPlanCalculator()


def build_coverage_groups(
    treatments: Sequence[Treatment],
    plan: CropPlan,
    products: ProductCatalog,
    price_book: Optional[PriceBookContext] = None,
) -> Tuple[CoverageGroup, ...]:
    return crop_plan_calculator.build_coverage_groups(treatments, plan, products, price_book)


def build_pass_summary(
    timing: Timing,
    plan: CropPlan,
    products: ProductCatalog,
    price_book: Optional[PriceBookContext] = None,
) -> PassSummary:
    return crop_plan_calculator.build_pass_summary(timing, plan, products, price_book)


def build_season_summary(
    plan: CropPlan,
    products: ProductCatalog,
    price_book: Optional[PriceBookContext] = None,
    farm_avg_cost_per_acre: Optional[float] = None,
) -> SeasonSummary:
    return crop_plan_calculator.build_season_summary(plan, products, price_book, farm_avg_cost_per_acre)
