"""Nutrient delivery per treated acre from product guaranteed analysis."""
from typing import Optional

from app.services.crop_plan_models import NutrientTotals, Product, Treatment
from app.services.crop_plan_rules import DEFAULT_DENSITY_LBS_PER_GAL
from app.services.unit_conversion import convert_to_gallons, convert_to_pounds, finite_or_zero


def pounds_per_acre(
    treatment: Treatment,
    product: Product,
    default_density: float = DEFAULT_DENSITY_LBS_PER_GAL,
) -> float:
    """Product mass applied per treated acre (liquids via density)."""
    if product.is_liquid:
        gallons = convert_to_gallons(treatment.rate, treatment.rate_unit)
        density = finite_or_zero(product.density_lbs_per_gal) or default_density
        return gallons * density
    return convert_to_pounds(treatment.rate, treatment.rate_unit)


def treatment_nutrients(
    treatment: Treatment,
    product: Optional[Product],
    default_density: float = DEFAULT_DENSITY_LBS_PER_GAL,
) -> NutrientTotals:
    """
    Pounds of N, P, K and S delivered per treated acre.

    Products without an analysis deliver nothing. Price overrides never
    affect nutrients.
    """
    if product is None or product.analysis is None:
        return NutrientTotals()

    lbs = pounds_per_acre(treatment, product, default_density)
    analysis = product.analysis
    return NutrientTotals(
        n=(lbs * finite_or_zero(analysis.n)) / 100,
        p=(lbs * finite_or_zero(analysis.p)) / 100,
        k=(lbs * finite_or_zero(analysis.k)) / 100,
        s=(lbs * finite_or_zero(analysis.s)) / 100,
    )
