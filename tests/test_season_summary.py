"""
Tests for season aggregation.

1. Totals and cost per acre (zero acreage guarded)
2. Idempotence
3. Missing references: excluded from totals, reported as skipped
4. Early/mid/late thirds and cost balance status
5. Seed treatment cost reported separately
6. Price book flows through every pass
"""
import pytest
from app.services.crop_plan_calculator import CropPlanCalculator, build_season_summary
from app.services.crop_plan_models import (
    BalanceStatus,
    CropPlan,
    NutrientAnalysis,
    PriceBookContext,
    PriceBookEntry,
    PriceSource,
    Product,
    SeedTreatment,
    SkipReason,
    Timing,
    Treatment,
)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def products():
    return [
        Product(id="uan", name="UAN 28%", form="liquid", price=10, price_unit="gal",
                density_lbs_per_gal=10, analysis=NutrientAnalysis(n=28), is_bid_eligible=True),
        Product(id="urea", name="Urea", form="dry", price=600, price_unit="ton", analysis=NutrientAnalysis(n=46)),
        Product(id="st", name="Seed Treatment", form="liquid", price=128, price_unit="gal"),
    ]


@pytest.fixture
def single_pass_plan():
    return CropPlan(
        id="corn-2025",
        total_acres=1000,
        crop_type="corn",
        timings=(Timing(id="p1", name="Pre-plant", order=1),),
        treatments=(Treatment(id="a", timing_id="p1", product_id="uan", rate=2, rate_unit="gal", acres_percentage=100),),
    )


def three_pass_plan(rates, total_acres=100):
    """One UAN treatment per pass; the rate in gallons sets the pass cost at $10/gal."""
    timings = tuple(Timing(id=f"p{i}", order=i) for i in range(len(rates)))
    treatments = tuple(
        Treatment(id=f"t{i}", timing_id=f"p{i}", product_id="uan", rate=rate, rate_unit="gal")
        for i, rate in enumerate(rates)
    )
    return CropPlan(id="plan", total_acres=total_acres, timings=timings, treatments=treatments)


# =============================================================================
# Totals
# =============================================================================

class TestSeasonTotals:

    def test_single_full_field_treatment(self, single_pass_plan, products):
        summary = build_season_summary(single_pass_plan, products)
        assert summary.pass_summaries[0].total_cost == 20000
        assert summary.total_cost == 20000
        assert summary.cost_per_acre == 20

    def test_zero_acres(self, single_pass_plan, products):
        plan = CropPlan(
            id="empty-field",
            total_acres=0,
            timings=single_pass_plan.timings,
            treatments=single_pass_plan.treatments,
        )
        summary = build_season_summary(plan, products)
        assert summary.total_cost == 0
        assert summary.cost_per_acre == 0
        assert summary.seed_treatment_cost_per_acre == 0

    def test_nutrients_are_coverage_weighted(self, products):
        plan = CropPlan(
            id="p",
            total_acres=100,
            timings=(Timing(id="p1"),),
            treatments=(
                Treatment(id="a", timing_id="p1", product_id="urea", rate=100, rate_unit="lbs", acres_percentage=100),
                Treatment(id="b", timing_id="p1", product_id="urea", rate=100, rate_unit="lbs", acres_percentage=50),
            ),
        )
        summary = build_season_summary(plan, products)
        assert summary.nutrients.n == pytest.approx(46 + 23)

    def test_idempotent(self, single_pass_plan, products):
        first = build_season_summary(single_pass_plan, products)
        second = build_season_summary(single_pass_plan, products)
        assert first == second

    def test_no_timings(self, products):
        summary = build_season_summary(CropPlan(id="p", total_acres=500), products)
        assert summary.total_cost == 0
        assert summary.pass_summaries == ()
        assert summary.intensity_score == 0
        assert summary.program_intensity == 1
        assert summary.intensity_label == "Low"
        assert summary.status == BalanceStatus.BALANCED


# =============================================================================
# Missing references
# =============================================================================

class TestMissingReferences:

    def test_dangling_product_contributes_nothing(self, single_pass_plan, products):
        with_dangling = CropPlan(
            id=single_pass_plan.id,
            total_acres=single_pass_plan.total_acres,
            crop_type=single_pass_plan.crop_type,
            timings=single_pass_plan.timings,
            treatments=single_pass_plan.treatments + (
                Treatment(id="ghost", timing_id="p1", product_id="discontinued", rate=5, acres_percentage=100),
            ),
        )
        valid = build_season_summary(single_pass_plan, products)
        summary = build_season_summary(with_dangling, products)

        assert summary.total_cost == valid.total_cost
        assert summary.nutrients == valid.nutrients
        assert summary.pass_summaries[0].coverage_groups == valid.pass_summaries[0].coverage_groups
        assert [(s.treatment_id, s.reason) for s in summary.skipped_treatments] == [
            ("ghost", SkipReason.MISSING_PRODUCT),
        ]

    def test_missing_timing_reported(self, single_pass_plan, products):
        plan = CropPlan(
            id=single_pass_plan.id,
            total_acres=single_pass_plan.total_acres,
            timings=single_pass_plan.timings,
            treatments=single_pass_plan.treatments + (
                Treatment(id="orphan", timing_id="deleted-pass", product_id="uan", rate=2),
            ),
        )
        summary = build_season_summary(plan, products)
        assert summary.total_cost == 20000
        assert [(s.treatment_id, s.reason) for s in summary.skipped_treatments] == [
            ("orphan", SkipReason.MISSING_TIMING),
        ]

    def test_missing_seed_treatment_product_reported(self, single_pass_plan, products):
        plan = CropPlan(
            id=single_pass_plan.id,
            total_acres=single_pass_plan.total_acres,
            timings=single_pass_plan.timings,
            treatments=single_pass_plan.treatments,
            seed_treatments=(SeedTreatment(id="seed-1", product_id="gone", rate_per_cwt=2, planting_rate_lbs_per_acre=50),),
        )
        summary = build_season_summary(plan, products)
        assert summary.seed_treatment_cost == 0
        assert [s.treatment_id for s in summary.skipped_treatments] == ["seed-1"]


# =============================================================================
# Thirds and balance
# =============================================================================

class TestNutrientTimingAndBalance:

    def test_thirds_by_position(self, products):
        # $/ac per pass: 70, 20, 10
        summary = build_season_summary(three_pass_plan([7, 2, 1]), products)
        assert summary.nutrient_timing.early.n == pytest.approx(7 * 10 * 0.28)
        assert summary.nutrient_timing.mid.n == pytest.approx(2 * 10 * 0.28)
        assert summary.nutrient_timing.late.n == pytest.approx(1 * 10 * 0.28)
        assert summary.status == BalanceStatus.HEAVY_EARLY

    def test_heavy_late(self, products):
        summary = build_season_summary(three_pass_plan([1, 2, 7]), products)
        assert summary.status == BalanceStatus.HEAVY_LATE

    def test_skewed(self, products):
        summary = build_season_summary(three_pass_plan([5.5, 3.5, 1]), products)
        assert summary.status == BalanceStatus.SKEWED

    def test_balanced(self, products):
        summary = build_season_summary(three_pass_plan([4, 2, 4]), products)
        assert summary.status == BalanceStatus.BALANCED

    def test_two_passes_have_no_early_third(self, products):
        summary = build_season_summary(three_pass_plan([3, 1]), products)
        assert summary.nutrient_timing.early.n == 0
        assert summary.nutrient_timing.mid.n == pytest.approx(3 * 10 * 0.28)
        assert summary.nutrient_timing.late.n == pytest.approx(1 * 10 * 0.28)

    def test_balance_thresholds(self):
        calculator = CropPlanCalculator()
        assert calculator.balance_status(0.6, 0.1) == BalanceStatus.SKEWED
        assert calculator.balance_status(0.61, 0.1) == BalanceStatus.HEAVY_EARLY
        assert calculator.balance_status(0.3, 0.61) == BalanceStatus.HEAVY_LATE
        assert calculator.balance_status(0.4, 0.4) == BalanceStatus.BALANCED


# =============================================================================
# Seed treatments and price book
# =============================================================================

class TestSeedTreatmentsAndPriceBook:

    def test_seed_treatment_cost_is_separate(self, single_pass_plan, products):
        plan = CropPlan(
            id=single_pass_plan.id,
            total_acres=single_pass_plan.total_acres,
            timings=single_pass_plan.timings,
            treatments=single_pass_plan.treatments,
            seed_treatments=(SeedTreatment(id="seed-1", product_id="st", rate_per_cwt=2, rate_unit="oz",
                                           planting_rate_lbs_per_acre=50),),
        )
        summary = build_season_summary(plan, products)
        assert summary.seed_treatment_cost == pytest.approx(1000)
        assert summary.seed_treatment_cost_per_acre == pytest.approx(1)
        assert summary.total_cost == 20000

    def test_price_book_applies_to_season(self, single_pass_plan, products):
        price_book = PriceBookContext(
            entries=(PriceBookEntry(id="pb1", season_year=2025, product_id="uan", price=8, price_unit="gal",
                                    source=PriceSource.AWARDED),),
            season_year=2025,
        )
        summary = build_season_summary(single_pass_plan, products, price_book)
        assert summary.total_cost == 16000
        assert summary.cost_per_acre == 16

    def test_farm_average_baseline(self, single_pass_plan, products):
        summary = build_season_summary(single_pass_plan, products, farm_avg_cost_per_acre=10)
        # $20/ac against a $10/ac baseline saturates the cost factor
        assert summary.intensity_breakdown.cost_score == pytest.approx(0.3)
