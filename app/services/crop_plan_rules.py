"""
Deterministic planning rules and thresholds for the crop plan engine.

This module centralizes constants so allocation, grouping and scoring logic
can remain deterministic, auditable, and consistent across services and tests.
"""
from dataclasses import dataclass
from typing import Dict, Tuple

# Coverage tiers (percent of field acres)
CORE_MIN_PCT = 80.0
SELECTIVE_MIN_PCT = 40.0

# Coverage bucketing: near-full coverage collapses to 100, the two common
# partial bands absorb operator-entry variance, everything else rounds to 10.
FULL_COVERAGE_BUCKET_MIN = 95.0
COVERAGE_BUCKET_BANDS: Tuple[Tuple[float, float, int], ...] = (
    (55.0, 70.0, 60),
    (20.0, 30.0, 25),
)
BUCKET_ROUNDING_STEP = 10

# Pass pattern
PATTERN_SPREAD_TOLERANCE = 10.0
TRIAL_MAX_PCT = 30.0
TRIAL_MAJORITY_SHARE = 0.5

# Program intensity
REFERENCE_PASS_COUNT = 8
LATE_PASS_REFERENCE = 2
COST_DEVIATION_CAP = 0.3

INTENSITY_WEIGHTS = {
    "pass": 0.4,
    "selectivity": 0.3,
    "late": 0.2,
    "cost": 0.1,
}

SELECTIVITY_LOAD = {
    "trial": 1.0,
    "selective": 0.7,
    "core": 0.0,
}

RATING_CUT_POINTS: Tuple[float, ...] = (0.2, 0.4, 0.6, 0.8)
INTENSITY_LABELS: Tuple[str, ...] = ("Low", "Moderate", "Managed", "High", "Very High")

# Season balance
HEAVY_SHARE_THRESHOLD = 0.6
SKEW_THRESHOLD = 0.4

# Defaults for missing inputs
DEFAULT_DENSITY_LBS_PER_GAL = 10.0
DEFAULT_FARM_AVG_COST_PER_ACRE = 100.0


@dataclass(frozen=True)
class EngineConfig:
    core_min_pct: float = CORE_MIN_PCT
    selective_min_pct: float = SELECTIVE_MIN_PCT
    full_coverage_bucket_min: float = FULL_COVERAGE_BUCKET_MIN
    coverage_bucket_bands: Tuple[Tuple[float, float, int], ...] = COVERAGE_BUCKET_BANDS
    bucket_rounding_step: int = BUCKET_ROUNDING_STEP
    pattern_spread_tolerance: float = PATTERN_SPREAD_TOLERANCE
    trial_max_pct: float = TRIAL_MAX_PCT
    trial_majority_share: float = TRIAL_MAJORITY_SHARE
    reference_pass_count: int = REFERENCE_PASS_COUNT
    late_pass_reference: int = LATE_PASS_REFERENCE
    cost_deviation_cap: float = COST_DEVIATION_CAP
    pass_weight: float = INTENSITY_WEIGHTS["pass"]
    selectivity_weight: float = INTENSITY_WEIGHTS["selectivity"]
    late_weight: float = INTENSITY_WEIGHTS["late"]
    cost_weight: float = INTENSITY_WEIGHTS["cost"]
    trial_load: float = SELECTIVITY_LOAD["trial"]
    selective_load: float = SELECTIVITY_LOAD["selective"]
    core_load: float = SELECTIVITY_LOAD["core"]
    rating_cut_points: Tuple[float, ...] = RATING_CUT_POINTS
    intensity_labels: Tuple[str, ...] = INTENSITY_LABELS
    heavy_share_threshold: float = HEAVY_SHARE_THRESHOLD
    skew_threshold: float = SKEW_THRESHOLD
    default_density_lbs_per_gal: float = DEFAULT_DENSITY_LBS_PER_GAL
    default_farm_avg_cost_per_acre: float = DEFAULT_FARM_AVG_COST_PER_ACRE

    def selectivity_load(self, tier: str) -> float:
        return {
            "trial": self.trial_load,
            "selective": self.selective_load,
            "core": self.core_load,
        }.get(tier, 0.0)


DEFAULT_ENGINE_CONFIG = EngineConfig()


# Late-season growth stages by crop type, used when the data file is missing.
DEFAULT_LATE_GROWTH_STAGES: Dict[str, Tuple[str, ...]] = {
    "corn": ("R1", "R2", "R3", "R4", "R5", "R6"),
    "soybeans": ("R1", "R2", "R3", "R4", "R5", "R6", "R7", "R8"),
    "wheat": ("Heading", "Flowering", "Grain Fill", "Maturity"),
    "small_grains": ("Heading", "Flowering", "Grain Fill", "Maturity"),
    "edible_beans": ("R1", "R2", "R3", "R4", "R5"),
    "other": ("Late",),
}

DEFAULT_CROP_TYPE = "corn"
GENERIC_CROP_TYPE = "other"
