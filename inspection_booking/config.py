"""
Centralized configuration with environment variable overrides.

Business hours, working days, the booking horizon and the price list are
configurable here. Scheduling and pricing logic receive these values as
arguments and never read the environment themselves.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from datetime import date

from dotenv import load_dotenv

from inspection_booking.logging_context import make_log_handler

load_dotenv()

logger = logging.getLogger(__name__)

_HHMM_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

VEHICLE_TYPE_KEYS = ("car", "bus", "motorcycle", "taxi", "caravan", "trailer", "lpg")

# Integer currency units (EUR)
DEFAULT_PRICES: dict[str, int] = {
    "car": 46,
    "bus": 56,
    "motorcycle": 31,
    "taxi": 31,
    "caravan": 31,
    "trailer": 31,
    "lpg": 51,
}


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_int_list(env_var: str, default: str) -> tuple[int, ...]:
    """Parse a comma-separated list of integers, e.g. ``"1,2,3,4,5"``."""
    raw = os.getenv(env_var, default)
    try:
        return tuple(int(part) for part in raw.split(",") if part.strip())
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer list for {env_var}: {raw!r}"
        ) from None


def _safe_date_list(env_var: str, default: str = "") -> tuple[date, ...]:
    """Parse a comma-separated list of ISO dates."""
    raw = os.getenv(env_var, default)
    try:
        return tuple(date.fromisoformat(part.strip()) for part in raw.split(",") if part.strip())
    except ValueError:
        raise ValueError(
            f"Invalid date list for {env_var}: {raw!r} (expected YYYY-MM-DD,YYYY-MM-DD)"
        ) from None


def _prices_from_env() -> dict[str, int]:
    return {
        vehicle: _safe_int(f"PRICE_{vehicle.upper()}", str(price))
        for vehicle, price in DEFAULT_PRICES.items()
    }


@dataclass(frozen=True)
class SchedulingConfig:
    """Business hours and calendar rules for slot generation."""

    business_start: str = os.getenv("BUSINESS_HOURS_START", "08:30")
    business_end: str = os.getenv("BUSINESS_HOURS_END", "17:30")
    # Weekday indices with Sunday=0, Monday=1 ... Saturday=6
    working_days: tuple[int, ...] = _safe_int_list("WORKING_DAYS", "1,2,3,4,5")
    slot_duration_minutes: int = _safe_int("SLOT_DURATION_MINUTES", "30")
    booking_window_weeks: int = _safe_int("BOOKING_WINDOW_WEEKS", "8")
    closed_days: tuple[date, ...] = _safe_date_list("CLOSED_DAYS")


@dataclass(frozen=True)
class PricingConfig:
    """Vehicle-type price table plus the online-booking discount."""

    prices: dict[str, int] = field(default_factory=_prices_from_env)
    online_discount: int = _safe_int("ONLINE_DISCOUNT", "5")


@dataclass(frozen=True)
class BookingRulesConfig:
    """Input limits and the customer-facing confirmation number format."""

    plate_max_length: int = _safe_int("PLATE_MAX_LENGTH", "8")
    notes_max_length: int = _safe_int("NOTES_MAX_LENGTH", "500")
    confirmation_prefix: str = os.getenv("CONFIRMATION_PREFIX", "AC")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    scheduling: SchedulingConfig = field(default_factory=SchedulingConfig)
    pricing: PricingConfig = field(default_factory=PricingConfig)
    rules: BookingRulesConfig = field(default_factory=BookingRulesConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    store_path: str = os.getenv("BOOKING_DB_PATH", ":memory:")


def _hhmm_to_minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    scheduling = config.scheduling
    for env_name, value in [
        ("BUSINESS_HOURS_START", scheduling.business_start),
        ("BUSINESS_HOURS_END", scheduling.business_end),
    ]:
        if not _HHMM_PATTERN.match(value):
            raise ValueError(f"{env_name} must be in HH:MM format, got {value!r}")

    if _hhmm_to_minutes(scheduling.business_start) >= _hhmm_to_minutes(scheduling.business_end):
        raise ValueError(
            "BUSINESS_HOURS_START must be before BUSINESS_HOURS_END, "
            f"got {scheduling.business_start} - {scheduling.business_end}"
        )
    if scheduling.slot_duration_minutes < 1:
        raise ValueError(
            f"SLOT_DURATION_MINUTES must be >= 1, got {scheduling.slot_duration_minutes}"
        )
    if not scheduling.working_days:
        raise ValueError("WORKING_DAYS must contain at least one weekday index")
    for day in scheduling.working_days:
        if not 0 <= day <= 6:
            raise ValueError(f"WORKING_DAYS entries must be between 0 and 6, got {day}")
    if scheduling.booking_window_weeks < 1:
        raise ValueError(
            f"BOOKING_WINDOW_WEEKS must be >= 1, got {scheduling.booking_window_weeks}"
        )

    pricing = config.pricing
    missing = [vehicle for vehicle in VEHICLE_TYPE_KEYS if vehicle not in pricing.prices]
    if missing:
        raise ValueError(f"Price table is missing vehicle types: {', '.join(missing)}")
    for vehicle, price in pricing.prices.items():
        if price < 0:
            raise ValueError(f"PRICE_{vehicle.upper()} must be >= 0, got {price}")
    if pricing.online_discount < 0:
        raise ValueError(f"ONLINE_DISCOUNT must be >= 0, got {pricing.online_discount}")
    cheapest = min(pricing.prices.values())
    if pricing.online_discount > cheapest:
        raise ValueError(
            f"ONLINE_DISCOUNT ({pricing.online_discount}) must not exceed "
            f"the cheapest base price ({cheapest})"
        )

    if config.rules.plate_max_length < 4:
        raise ValueError(
            f"PLATE_MAX_LENGTH must be >= 4, got {config.rules.plate_max_length}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        handlers=[make_log_handler()],
    )
    logger.info(
        "Configuration loaded: hours %s-%s, %d-minute slots, %d-week window",
        config.scheduling.business_start,
        config.scheduling.business_end,
        config.scheduling.slot_duration_minutes,
        config.scheduling.booking_window_weeks,
    )
    return config


# Singleton instance
settings = load_config()
