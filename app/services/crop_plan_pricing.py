"""
Crop Plan Cost Engine.

Computes cost per covered acre for a treatment. One engine serves both
pricing modes: the price source is an injected resolver that either yields
nothing (catalog pricing) or a negotiated price from the season price book.

Fallback chain for price-book pricing:
1. Product must be bid-eligible
2. Entry for the season matching the commodity spec or the product id
3. Otherwise the catalog price on the product
"""
from dataclasses import dataclass
from typing import Iterable, Optional
import logging

from app.services.crop_plan_models import (
    PRICE_SOURCE_PRIORITY,
    PriceBookContext,
    PriceBookEntry,
    PriceSource,
    Product,
    SeedTreatment,
    Treatment,
)
from app.services.crop_plan_rules import DEFAULT_DENSITY_LBS_PER_GAL
from app.services.unit_conversion import (
    GRAMS_PER_OUNCE,
    GRAMS_PER_POUND,
    OZ_PER_GALLON,
    convert_to_gallons,
    convert_to_pounds,
    finite_or_zero,
    price_per_pound,
)

logger = logging.getLogger(__name__)

CONTAINER_PRICE_UNITS = {"jug", "bag", "case", "tote"}


@dataclass(frozen=True)
class ResolvedPrice:
    """A price that replaces the catalog price, in its own unit."""
    price: float
    price_unit: str = "ton"
    source: Optional[PriceSource] = None


def _source_rank(entry: PriceBookEntry) -> int:
    try:
        return PRICE_SOURCE_PRIORITY[PriceSource(entry.source)]
    except ValueError:
        return 0


def find_price_book_entry(
    entries: Iterable[PriceBookEntry],
    season_year: Optional[int],
    product: Product,
) -> Optional[PriceBookEntry]:
    """
    Find the price-book entry that applies to a product for a season.

    An entry matches when its season equals season_year and it references
    either the product's commodity spec or the product itself. Among several
    matches the highest source wins (manual_override > manual > awarded >
    estimated); ties keep the first entry.
    """
    best = None
    for entry in entries:
        if entry.season_year != season_year:
            continue
        spec_match = bool(product.commodity_spec_id) and entry.commodity_spec_id == product.commodity_spec_id
        if not (spec_match or entry.product_id == product.id):
            continue
        if best is None or _source_rank(entry) > _source_rank(best):
            best = entry
    return best


class CatalogPriceResolver:
    """Never overrides: every product is costed from its catalog price."""

    def resolve(self, product: Product) -> Optional[ResolvedPrice]:
        return None


class PriceBookPriceResolver:
    """Resolves bid-eligible products against a season price book."""

    def __init__(self, entries: Iterable[PriceBookEntry], season_year: Optional[int]):
        self.entries = tuple(entries)
        self.season_year = season_year

    @classmethod
    def from_context(cls, context: PriceBookContext) -> "PriceBookPriceResolver":
        return cls(context.entries, context.season_year)

    def resolve(self, product: Product) -> Optional[ResolvedPrice]:
        if not product.is_bid_eligible:
            return None
        entry = find_price_book_entry(self.entries, self.season_year, product)
        if entry is None:
            return None
        return ResolvedPrice(
            price=finite_or_zero(entry.price),
            price_unit=entry.price_unit or "ton",
            source=entry.source,
        )


def resolver_for(price_book: Optional[PriceBookContext]):
    if price_book is None:
        return CatalogPriceResolver()
    return PriceBookPriceResolver.from_context(price_book)


class CostEngine:
    """
    Cost per treated acre for a treatment.

    The resolver decides where the price comes from; conversion rules are
    shared so catalog and price-book costs cannot drift apart.
    """

    def __init__(self, resolver=None, default_density: float = DEFAULT_DENSITY_LBS_PER_GAL):
        self.resolver = resolver or CatalogPriceResolver()
        self.default_density = default_density

    def density(self, product: Product) -> float:
        return finite_or_zero(product.density_lbs_per_gal) or self.default_density

    def cost_per_acre(self, treatment: Treatment, product: Optional[Product]) -> float:
        if product is None:
            return 0.0
        resolved = self.resolver.resolve(product)
        if resolved is not None:
            return self.resolved_cost_per_acre(treatment, product, resolved)
        return self.catalog_cost_per_acre(treatment, product)

    def resolved_cost_per_acre(
        self, treatment: Treatment, product: Product, resolved: ResolvedPrice
    ) -> float:
        """Cost from an overriding price, converted into the product's accounting."""
        if product.is_liquid:
            gallons_per_acre = convert_to_gallons(treatment.rate, treatment.rate_unit)
            if resolved.price_unit == "gal":
                return gallons_per_acre * resolved.price
            lbs_per_acre = gallons_per_acre * self.density(product)
            return lbs_per_acre * price_per_pound(resolved.price, resolved.price_unit)

        pounds_per_acre = convert_to_pounds(treatment.rate, treatment.rate_unit)
        return pounds_per_acre * price_per_pound(resolved.price, resolved.price_unit)

    def catalog_cost_per_acre(self, treatment: Treatment, product: Product) -> float:
        price = finite_or_zero(product.price)

        if (
            product.container_size
            and product.container_unit
            and product.price_unit in CONTAINER_PRICE_UNITS
        ):
            return self._container_cost_per_acre(treatment, product, price)

        if product.price_unit == "g":
            if treatment.rate_unit == "g":
                return finite_or_zero(treatment.rate) * price
            grams_per_acre = convert_to_pounds(treatment.rate, treatment.rate_unit) * GRAMS_PER_POUND
            return grams_per_acre * price

        if product.is_liquid:
            return convert_to_gallons(treatment.rate, treatment.rate_unit) * price

        pounds_per_acre = convert_to_pounds(treatment.rate, treatment.rate_unit)
        return pounds_per_acre * price_per_pound(price, product.price_unit)

    def _container_cost_per_acre(self, treatment: Treatment, product: Product, price: float) -> float:
        size = finite_or_zero(product.container_size)
        unit = product.container_unit
        if size == 0:
            return 0.0

        if unit == "gal":
            return convert_to_gallons(treatment.rate, treatment.rate_unit) * (price / size)

        if unit == "g":
            price_per_gram = price / size
        elif unit == "lbs":
            price_per_gram = price / (size * GRAMS_PER_POUND)
        elif unit == "oz":
            price_per_gram = price / (size * GRAMS_PER_OUNCE)
        else:
            logger.debug(f"Unsupported container unit '{unit}' for product {product.id}")
            return 0.0

        if treatment.rate_unit == "g":
            return finite_or_zero(treatment.rate) * price_per_gram
        pounds_per_acre = convert_to_pounds(treatment.rate, treatment.rate_unit)
        return pounds_per_acre * (price_per_gram * GRAMS_PER_POUND)


def cost_per_acre(
    treatment: Treatment,
    product: Optional[Product],
    default_density: float = DEFAULT_DENSITY_LBS_PER_GAL,
) -> float:
    """Catalog-price cost per treated acre."""
    return CostEngine(default_density=default_density).cost_per_acre(treatment, product)


def cost_per_acre_with_price_book(
    treatment: Treatment,
    product: Optional[Product],
    price_book: Iterable[PriceBookEntry],
    season_year: Optional[int],
    default_density: float = DEFAULT_DENSITY_LBS_PER_GAL,
) -> float:
    """Price-book-aware cost per treated acre, falling back to catalog price."""
    engine = CostEngine(PriceBookPriceResolver(price_book, season_year), default_density)
    return engine.cost_per_acre(treatment, product)


def seed_treatment_cost_per_acre(seed_treatment: SeedTreatment, product: Optional[Product]) -> float:
    """
    Seed treatment cost per planted acre.

    Rates are per hundredweight of seed; product volume is tracked in gallons
    and costed at the catalog price.
    """
    if product is None:
        return 0.0
    cwt_per_acre = finite_or_zero(seed_treatment.planting_rate_lbs_per_acre) / 100
    rate = finite_or_zero(seed_treatment.rate_per_cwt)
    if seed_treatment.rate_unit == "oz":
        product_per_acre = (rate * cwt_per_acre) / OZ_PER_GALLON
    else:
        product_per_acre = (rate * cwt_per_acre) / GRAMS_PER_POUND / OZ_PER_GALLON
    return product_per_acre * finite_or_zero(product.price)
