"""
Coverage resolution for crop plan treatments.

Coverage is the share of a crop's total acres a treatment is applied to.
Resolution order: explicit treatment percentage, then the legacy tier's
percentage, then whole-field (100).
"""
import math
from typing import Optional

from app.services.crop_plan_models import CropPlan, TierLabel, Treatment
from app.services.crop_plan_rules import DEFAULT_ENGINE_CONFIG, EngineConfig
from app.services.unit_conversion import finite_or_zero

FULL_COVERAGE_PCT = 100.0


def classify_coverage(pct: float, config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> TierLabel:
    """
    Shared 80/40 split used both for treatment tier labels and for the
    selectivity load of a pass. Lower edges are inclusive.
    """
    if pct >= config.core_min_pct:
        return TierLabel.CORE
    if pct >= config.selective_min_pct:
        return TierLabel.SELECTIVE
    return TierLabel.TRIAL


def auto_tier_label(pct: float, config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> TierLabel:
    return classify_coverage(finite_or_zero(pct), config)


def tier_display_label(label: TierLabel) -> str:
    value = TierLabel(label).value
    return value[:1].upper() + value[1:]


def has_missing_tier(treatment: Treatment, plan: CropPlan) -> bool:
    """True when coverage would come from a tier id the plan does not define."""
    if treatment.acres_percentage is not None or not treatment.tier_id:
        return False
    return plan.find_tier(treatment.tier_id) is None


def effective_coverage(treatment: Treatment, plan: CropPlan) -> float:
    if treatment.acres_percentage is not None:
        return finite_or_zero(treatment.acres_percentage)
    tier = plan.find_tier(treatment.tier_id) if treatment.tier_id else None
    if tier is not None:
        return finite_or_zero(tier.percentage)
    return FULL_COVERAGE_PCT


def effective_tier_label(
    treatment: Treatment,
    plan: Optional[CropPlan] = None,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> TierLabel:
    """User override, then the stored auto label, then a label computed from coverage."""
    if treatment.tier_override is not None:
        return TierLabel(treatment.tier_override)
    if treatment.tier_auto is not None:
        return TierLabel(treatment.tier_auto)
    if plan is not None:
        pct = effective_coverage(treatment, plan)
    elif treatment.acres_percentage is not None:
        pct = treatment.acres_percentage
    else:
        pct = FULL_COVERAGE_PCT
    return auto_tier_label(pct, config)


def bucket_coverage(pct: float, config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> int:
    """
    Bucket a coverage percentage for grouping.

    Tolerance bands rather than plain rounding: 58% and 62% both report as
    the 60% group, while near-full coverage stays distinct as 100.
    """
    pct = finite_or_zero(pct)
    if pct >= config.full_coverage_bucket_min:
        return 100
    for low, high, bucket in config.coverage_bucket_bands:
        if low <= pct <= high:
            return bucket
    step = config.bucket_rounding_step
    # half-up rounding to the nearest step
    return int(math.floor(pct / step + 0.5) * step)
