"""Vehicle catalog and price calculation.

The price table and brand lists are configuration data passed in by the
caller; nothing here branches on a specific vehicle type.
"""

import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from inspection_booking.config import PricingConfig
from inspection_booking.schemas.booking_schema import VehicleType

logger = logging.getLogger(__name__)

VEHICLE_CATALOG: dict[str, dict] = {
    "car": {
        "name": "Passenger car",
        "brand_group": "cars",
        "supports_4x4": True,
    },
    "bus": {
        "name": "Minibus up to 3.5t",
        "brand_group": "buses",
        "supports_4x4": True,
    },
    "motorcycle": {
        "name": "Motorcycle",
        "brand_group": "motorcycles",
        "supports_4x4": False,
    },
    "taxi": {
        "name": "Taxi",
        "brand_group": "cars",
        "supports_4x4": True,
    },
    "caravan": {
        "name": "Caravan",
        "brand_group": None,
        "supports_4x4": False,
    },
    "trailer": {
        "name": "Trailer",
        "brand_group": None,
        "supports_4x4": False,
    },
    "lpg": {
        "name": "LPG installation inspection",
        "brand_group": None,
        "supports_4x4": False,
    },
}

DEFAULT_BRAND_GROUPS: dict[str, list[str]] = {
    "cars": [
        "Alfa Romeo", "Audi", "BMW", "Citroen", "Dacia", "Fiat", "Ford", "Honda",
        "Hyundai", "Kia", "Mazda", "Mercedes-Benz", "Nissan", "Opel", "Peugeot",
        "Renault", "Seat", "Skoda", "Toyota", "VW", "Volvo", "Other",
    ],
    "buses": [
        "Citroen", "Fiat", "Ford", "Iveco", "Mercedes-Benz", "Opel", "Peugeot",
        "Renault", "VW", "Other",
    ],
    "motorcycles": [
        "Aprilia", "BMW", "Ducati", "Harley-Davidson", "Honda", "Kawasaki", "KTM",
        "Piaggio", "Suzuki", "Triumph", "Vespa", "Yamaha", "Other",
    ],
}


@dataclass(frozen=True)
class PriceBreakdown:
    """Base price, applied discount and the amount the customer pays."""
    base_price: int
    discount: int
    final_price: int


def calculate_price(
    vehicle_type: VehicleType | str,
    pricing: PricingConfig,
    is_online: bool = True,
) -> PriceBreakdown:
    """Price for one inspection: ``base - (online_discount if online else 0)``."""
    key = VehicleType(vehicle_type).value
    base = pricing.prices[key]
    discount = pricing.online_discount if is_online else 0
    return PriceBreakdown(base_price=base, discount=discount, final_price=base - discount)


def get_vehicle_details(vehicle_type: VehicleType | str) -> Optional[dict]:
    key = VehicleType(vehicle_type).value
    info = VEHICLE_CATALOG.get(key)
    if info is None:
        return None
    return {"id": key, **info}


def get_vehicle_brands(
    vehicle_type: VehicleType | str,
    brand_groups: Optional[Mapping[str, list[str]]] = None,
) -> list[str]:
    """Brand choices for the vehicle type, empty when the type has no brands."""
    groups = DEFAULT_BRAND_GROUPS if brand_groups is None else brand_groups
    details = get_vehicle_details(vehicle_type)
    if details is None or details["brand_group"] is None:
        return []
    return list(groups.get(details["brand_group"], []))


def should_show_brands(vehicle_type: VehicleType | str) -> bool:
    details = get_vehicle_details(vehicle_type)
    return bool(details and details["brand_group"])


def should_show_4x4(vehicle_type: VehicleType | str) -> bool:
    details = get_vehicle_details(vehicle_type)
    return bool(details and details["supports_4x4"])


def get_price_list(pricing: PricingConfig, is_online: bool = True) -> list[dict]:
    """All vehicle types with their display name and price breakdown."""
    return [
        {
            "id": vehicle,
            "name": info["name"],
            "price": calculate_price(vehicle, pricing, is_online).final_price,
        }
        for vehicle, info in VEHICLE_CATALOG.items()
    ]
