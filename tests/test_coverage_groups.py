"""
Tests for coverage groups, pass pattern and pass summaries.

Pass p1 on 1000 acres:
  a: UAN 2 gal/ac @ $10 on 100%      -> bucket 100, $20/treated ac
  b: fungicide 0.5 gal/ac @ $40 on 58% -> bucket 60, $20/treated ac
  c: fungicide 0.25 gal/ac @ $40 on 62% -> bucket 60, $10/treated ac
"""
import pytest
from app.services.crop_plan_calculator import CropPlanCalculator, build_coverage_groups, build_pass_summary
from app.services.crop_plan_models import (
    CoverageGroup,
    CropPlan,
    NutrientAnalysis,
    PassPattern,
    Product,
    SkipReason,
    Tier,
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
                density_lbs_per_gal=10, analysis=NutrientAnalysis(n=28)),
        Product(id="fung", name="Fungicide", form="liquid", price=40, price_unit="gal"),
    ]


@pytest.fixture
def timing():
    return Timing(id="p1", name="Sidedress", order=1, growth_stage_start="V6", growth_stage_end="V8")


@pytest.fixture
def treatments():
    return (
        Treatment(id="a", timing_id="p1", product_id="uan", rate=2, rate_unit="gal", acres_percentage=100),
        Treatment(id="c", timing_id="p1", product_id="fung", rate=0.25, rate_unit="gal", acres_percentage=62),
        Treatment(id="b", timing_id="p1", product_id="fung", rate=0.5, rate_unit="gal", acres_percentage=58),
    )


@pytest.fixture
def plan(timing, treatments):
    return CropPlan(id="corn-2025", total_acres=1000, crop_type="corn", timings=(timing,), treatments=treatments)


@pytest.fixture
def calculator():
    return CropPlanCalculator()


def make_group(pct, count):
    members = tuple(
        Treatment(id=f"t{pct}-{i}", timing_id="p1", product_id="x", acres_percentage=pct)
        for i in range(count)
    )
    return CoverageGroup(
        acres_percentage=pct,
        tier_label="Core",
        treatments=members,
        cost_per_treated_acre=0.0,
        cost_per_field_acre=0.0,
        acres_treated=0.0,
    )


# =============================================================================
# Coverage groups
# =============================================================================

class TestBuildCoverageGroups:

    def test_groups_sorted_by_bucket_descending(self, plan, products):
        groups = build_coverage_groups(plan.treatments, plan, products)
        assert [g.acres_percentage for g in groups] == [100, 60]
        assert [g.tier_label for g in groups] == ["Core", "Selective"]

    def test_group_economics(self, plan, products):
        full, partial = build_coverage_groups(plan.treatments, plan, products)

        assert full.cost_per_treated_acre == 20
        assert full.cost_per_field_acre == 20
        assert full.acres_treated == 1000

        assert partial.cost_per_treated_acre == pytest.approx(30)
        assert partial.cost_per_field_acre == pytest.approx(18)
        assert partial.acres_treated == pytest.approx(600)

    def test_members_sorted_by_cost_descending(self, plan, products):
        _, partial = build_coverage_groups(plan.treatments, plan, products)
        assert [t.id for t in partial.treatments] == ["b", "c"]

    def test_group_nutrients_are_raw_sums(self, plan, products):
        full, partial = build_coverage_groups(plan.treatments, plan, products)
        assert full.nutrients.n == pytest.approx(5.6)
        assert partial.nutrients.n == 0

    def test_dangling_product_excluded(self, plan, products):
        dangling = Treatment(id="d", timing_id="p1", product_id="gone", rate=1, acres_percentage=25)
        groups = build_coverage_groups(plan.treatments + (dangling,), plan, products)
        assert [g.acres_percentage for g in groups] == [100, 60]

    def test_dangling_tier_excluded(self, plan, products):
        dangling = Treatment(id="d", timing_id="p1", product_id="uan", rate=1, tier_id="t-gone")
        assert build_coverage_groups((dangling,), plan, products) == ()

    def test_tier_coverage_is_bucketed(self, products, timing):
        plan = CropPlan(
            id="beans", total_acres=400, timings=(timing,),
            tiers=(Tier(id="t-25", name="Trial", percentage=22),),
        )
        treatment = Treatment(id="a", timing_id="p1", product_id="uan", rate=1, rate_unit="gal", tier_id="t-25")
        (group,) = build_coverage_groups((treatment,), plan, products)
        assert group.acres_percentage == 25
        assert group.tier_label == "Trial"
        assert group.acres_treated == 100

    def test_catalog_as_mapping(self, plan, products):
        catalog = {p.id: p for p in products}
        assert build_coverage_groups(plan.treatments, plan, catalog) == build_coverage_groups(
            plan.treatments, plan, products
        )


# =============================================================================
# Pass pattern
# =============================================================================

class TestDeterminePassPattern:

    def test_no_groups_is_uniform(self, calculator):
        assert calculator.determine_pass_pattern(()) == PassPattern.UNIFORM

    def test_single_full_group_is_uniform(self, calculator):
        assert calculator.determine_pass_pattern((make_group(100, 3),)) == PassPattern.UNIFORM

    def test_single_small_group_is_trial(self, calculator):
        assert calculator.determine_pass_pattern((make_group(30, 1),)) == PassPattern.TRIAL

    def test_single_partial_group_is_uniform(self, calculator):
        assert calculator.determine_pass_pattern((make_group(60, 2),)) == PassPattern.UNIFORM

    def test_majority_of_treatments_in_trial_groups(self, calculator):
        groups = (make_group(100, 1), make_group(25, 2))
        assert calculator.determine_pass_pattern(groups) == PassPattern.TRIAL

    def test_exactly_half_trial_is_selective(self, calculator):
        groups = (make_group(100, 1), make_group(25, 1))
        assert calculator.determine_pass_pattern(groups) == PassPattern.SELECTIVE

    def test_mixed_bands_are_selective(self, calculator):
        groups = (make_group(100, 2), make_group(60, 2), make_group(10, 1))
        assert calculator.determine_pass_pattern(groups) == PassPattern.SELECTIVE


# =============================================================================
# Pass summary
# =============================================================================

class TestBuildPassSummary:

    def test_totals(self, plan, products, timing):
        summary = build_pass_summary(timing, plan, products)
        # 20*1000 + 20*580 + 10*620
        assert summary.total_cost == pytest.approx(37800)
        assert summary.avg_acres_percentage == pytest.approx(220 / 3)
        assert summary.cost_per_treated_acre == pytest.approx(50)
        assert summary.cost_per_field_acre == pytest.approx(38)
        assert summary.is_active

    def test_nutrients_weighted_by_coverage(self, products, timing):
        plan = CropPlan(
            id="p", total_acres=100, timings=(timing,),
            treatments=(Treatment(id="a", timing_id="p1", product_id="uan", rate=2, rate_unit="gal",
                                  acres_percentage=50),),
        )
        summary = build_pass_summary(timing, plan, products)
        assert summary.nutrients.n == pytest.approx(2.8)

    def test_pattern_and_dominant_group(self, plan, products, timing):
        summary = build_pass_summary(timing, plan, products)
        assert summary.pass_pattern == PassPattern.SELECTIVE
        assert summary.dominant_acres == 60

    def test_dominant_tie_keeps_highest_bucket(self, products, timing):
        plan = CropPlan(
            id="p", total_acres=100, timings=(timing,),
            treatments=(
                Treatment(id="a", timing_id="p1", product_id="uan", rate=1, acres_percentage=40),
                Treatment(id="b", timing_id="p1", product_id="uan", rate=1, acres_percentage=100),
            ),
        )
        assert build_pass_summary(timing, plan, products).dominant_acres == 100

    def test_empty_pass(self, products, timing):
        plan = CropPlan(id="p", total_acres=100, timings=(timing,))
        summary = build_pass_summary(timing, plan, products)
        assert summary.total_cost == 0
        assert summary.avg_acres_percentage == 0
        assert summary.coverage_groups == ()
        assert summary.pass_pattern == PassPattern.UNIFORM
        assert summary.dominant_acres == 100
        assert not summary.is_active

    def test_skipped_treatments_reported(self, plan, products, timing):
        plan = CropPlan(
            id=plan.id, total_acres=plan.total_acres, timings=plan.timings,
            treatments=plan.treatments + (
                Treatment(id="d", timing_id="p1", product_id="gone", rate=1),
                Treatment(id="e", timing_id="p1", product_id="uan", rate=1, tier_id="t-gone"),
            ),
        )
        summary = build_pass_summary(timing, plan, products)
        assert summary.total_cost == pytest.approx(37800)
        assert [t.id for t in summary.treatments] == ["a", "c", "b"]
        assert [(s.treatment_id, s.reason) for s in summary.skipped_treatments] == [
            ("d", SkipReason.MISSING_PRODUCT),
            ("e", SkipReason.MISSING_TIER),
        ]
