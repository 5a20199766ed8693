"""
Delivery price table for carriers per destination country.

Prices are customer prices in EUR. Each tier covers an inclusive weight
band; bands that share a boundary are resolved in table order, so a 2 kg
parcel by Slovenská pošta costs the "Do 2 kg" price. Parcels heavier than
15 kg have no tier and are quoted individually (price None).
"""
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from eshop.models.order import DeliveryMethod


@dataclass(frozen=True)
class DeliveryTier:
    """One carrier price tier."""
    provider: str
    weight_range: str
    base_price: Decimal
    customer_price: Decimal
    max_dimensions: str
    description: str


@dataclass(frozen=True)
class CountryDeliveryOptions:
    country: str
    providers: Tuple[DeliveryTier, ...]
    notes: str


_PARCEL_DIMENSIONS = "Max 150 cm pre akýkoľvek rozmer alebo 300 cm (dĺžka + obvod)"

DELIVERY_PRICING: Tuple[CountryDeliveryOptions, ...] = (
    CountryDeliveryOptions(
        country="Slovensko",
        providers=(
            DeliveryTier(
                "Slovenská pošta", "Do 2 kg", Decimal("2.50"), Decimal("3.50"),
                "23,5 x 12 cm (obálka) alebo 25 x 35 x 3 cm (ploché/zvinuté)", "doporučený list",
            ),
            DeliveryTier(
                "Slovenská pošta", "2kg-5kg", Decimal("3.90"), Decimal("5.00"),
                _PARCEL_DIMENSIONS, "balík",
            ),
            DeliveryTier(
                "Slovenská pošta", "5kg-10kg", Decimal("4.30"), Decimal("6.00"),
                _PARCEL_DIMENSIONS, "balík",
            ),
            DeliveryTier(
                "Slovenská pošta", "10kg-15kg", Decimal("7.50"), Decimal("10.00"),
                "Max 200 cm pre akýkoľvek rozmer alebo 300 cm (dĺžka + obvod)", "Express kuriér",
            ),
            DeliveryTier(
                "Packeta Slovensko", "Do 5 kg", Decimal("3.40"), Decimal("4.50"),
                "50 x 40 x 30 cm", "balík",
            ),
            DeliveryTier(
                "Packeta Slovensko", "5kg-15kg", Decimal("5.60"), Decimal("7.50"),
                "60 x 50 x 40 cm", "balík",
            ),
        ),
        notes=(
            "Parcels up to 2 kg go by Slovenská pošta, otherwise Packeta is preferred. "
            "Parcels over 15 kg are quoted individually."
        ),
    ),
    CountryDeliveryOptions(
        country="Česko",
        providers=(
            DeliveryTier(
                "Packeta Česko", "Do 5 kg", Decimal("4.10"), Decimal("5.00"),
                "50 x 40 x 30 cm", "balík",
            ),
            DeliveryTier(
                "Packeta Česko", "5kg-15kg", Decimal("7.70"), Decimal("9.50"),
                "60 x 50 x 40 cm", "balík",
            ),
        ),
        notes="Czech deliveries go by Packeta only. Parcels over 15 kg are quoted individually.",
    ),
)

COUNTRY_ALIASES: Dict[str, str] = {
    "sk": "Slovensko",
    "slovakia": "Slovensko",
    "slovensko": "Slovensko",
    "cz": "Česko",
    "czechia": "Česko",
    "czech republic": "Česko",
    "česko": "Česko",
}

# Carrier name prefix serving each shipping method
METHOD_PROVIDERS: Dict[DeliveryMethod, str] = {
    DeliveryMethod.POST: "Slovenská pošta",
    DeliveryMethod.PACKETA: "Packeta",
}

_UP_TO_RE = re.compile(r"Do\s*(\d+(?:[.,]\d+)?)")
_BAND_RE = re.compile(r"(\d+(?:[.,]\d+)?)kg-(\d+(?:[.,]\d+)?)kg")


def normalize_country(country: Optional[str]) -> Optional[str]:
    if not country:
        return None
    return COUNTRY_ALIASES.get(country.strip().lower(), country.strip())


def get_country_options(country: Optional[str]) -> Optional[CountryDeliveryOptions]:
    name = normalize_country(country)
    for options in DELIVERY_PRICING:
        if options.country == name:
            return options
    return None


def get_delivery_options(country: Optional[str]) -> List[DeliveryTier]:
    """All tiers for a country; empty for countries we do not ship to."""
    options = get_country_options(country)
    return list(options.providers) if options else []


def parse_weight_range(weight_range: str) -> Tuple[float, float]:
    """
    Inclusive (min, max) kilograms of a tier label.

    Examples:
        >>> parse_weight_range("Do 2 kg")
        (0.0, 2.0)
        >>> parse_weight_range("5kg-10kg")
        (5.0, 10.0)
    """
    if "Do" in weight_range:
        match = _UP_TO_RE.search(weight_range)
        return 0.0, float(match.group(1).replace(",", ".")) if match else 0.0

    match = _BAND_RE.search(weight_range)
    if match:
        return float(match.group(1).replace(",", ".")), float(match.group(2).replace(",", "."))

    return 0.0, 0.0


def get_delivery_price(
    country: Optional[str],
    weight_kg: float,
    provider: Optional[str] = None
) -> Optional[Decimal]:
    """
    Customer price of the first tier whose band contains ``weight_kg``.

    ``provider`` narrows the search to carriers whose name contains it.
    Returns None when no tier matches.
    """
    options = get_delivery_options(country)
    if provider:
        options = [opt for opt in options if provider in opt.provider]

    for opt in options:
        low, high = parse_weight_range(opt.weight_range)
        if low <= weight_kg <= high:
            return opt.customer_price
    return None


def price_for_method(
    method: DeliveryMethod,
    country: Optional[str],
    weight_kg: float
) -> Optional[Decimal]:
    """Delivery price for a checkout method; personal pickup is free."""
    method = DeliveryMethod(method)
    if method == DeliveryMethod.PERSONAL:
        return Decimal("0")
    return get_delivery_price(country, weight_kg, METHOD_PROVIDERS[method])
