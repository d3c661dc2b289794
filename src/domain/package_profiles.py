"""Packaging tables.

``DIMENSION_FALLBACK_BY_PROFILE`` supplies dimensions for catalog products
whose own dimensions are unknown. ``PACKAGE_PROFILES`` are the boxes an
operator can pick for an order from the back-office.
"""

from enum import StrEnum

from pydantic import BaseModel

from src.domain.shipping import Dimensions

CUSTOM_PROFILE = "CUSTOM"

DEFAULT_DIMENSIONS = Dimensions(length_cm=25, width_cm=20, height_cm=15)

DIMENSION_FALLBACK_BY_PROFILE: dict[str, Dimensions] = {
    "SMALL_BOX": Dimensions(length_cm=15, width_cm=10, height_cm=8),
    "BOX_S": Dimensions(length_cm=15, width_cm=10, height_cm=8),
    "MEDIUM_BOX": Dimensions(length_cm=25, width_cm=20, height_cm=15),
    "BOX_M": Dimensions(length_cm=25, width_cm=20, height_cm=15),
    "ENVELOPE": Dimensions(length_cm=24, width_cm=16, height_cm=2),
    CUSTOM_PROFILE: DEFAULT_DIMENSIONS,
}


def profile_key(raw: str | None) -> str:
    """Blank or missing profiles resolve to ``CUSTOM``."""
    if isinstance(raw, str) and raw.strip():
        return raw.strip()
    return CUSTOM_PROFILE


def fallback_dimensions_for(profile: str | None) -> Dimensions:
    return DIMENSION_FALLBACK_BY_PROFILE.get(
        profile_key(profile), DIMENSION_FALLBACK_BY_PROFILE[CUSTOM_PROFILE]
    )


class PackageProfileKey(StrEnum):
    ENVELOPE = "ENVELOPE"
    BOX_S = "BOX_S"
    BOX_M = "BOX_M"
    CUSTOM = "CUSTOM"


class PackageProfile(BaseModel):
    label: str
    length_cm: float
    width_cm: float
    height_cm: float
    weight_g: float  # empty packaging weight


PACKAGE_PROFILES: dict[PackageProfileKey, PackageProfile] = {
    PackageProfileKey.ENVELOPE: PackageProfile(
        label="Sobre", length_cm=32, width_cm=23, height_cm=1, weight_g=50
    ),
    PackageProfileKey.BOX_S: PackageProfile(
        label="Caja Pequeña", length_cm=25, width_cm=20, height_cm=15, weight_g=150
    ),
    PackageProfileKey.BOX_M: PackageProfile(
        label="Caja Mediana", length_cm=35, width_cm=30, height_cm=25, weight_g=300
    ),
    PackageProfileKey.CUSTOM: PackageProfile(
        label="Personalizado", length_cm=20, width_cm=20, height_cm=10, weight_g=100
    ),
}

# Profiles an operator may select directly; CUSTOM goes through explicit dimensions.
SELECTABLE_PROFILES = (
    PackageProfileKey.ENVELOPE,
    PackageProfileKey.BOX_S,
    PackageProfileKey.BOX_M,
)

MAX_SIDE_CM = 200
MAX_WEIGHT_G = 50_000


def validate_package_dimensions(
    length_cm: float, width_cm: float, height_cm: float, weight_g: float
) -> str | None:
    """Return an error message for out-of-range packages, ``None`` when valid."""
    if length_cm <= 0 or width_cm <= 0 or height_cm <= 0:
        return "Dimensions must be greater than 0"
    if length_cm > MAX_SIDE_CM or width_cm > MAX_SIDE_CM or height_cm > MAX_SIDE_CM:
        return f"Dimensions cannot exceed {MAX_SIDE_CM} cm"
    if weight_g <= 0:
        return "Weight must be greater than 0"
    if weight_g > MAX_WEIGHT_G:
        return f"Weight cannot exceed {MAX_WEIGHT_G // 1000} kg ({MAX_WEIGHT_G} g)"
    return None
