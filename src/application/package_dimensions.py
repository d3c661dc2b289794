"""Package dimension estimation.

A single parcel must physically contain the largest item, so every side is
the maximum of that side across items rather than a sum.
"""

from collections.abc import Mapping, Sequence
from enum import StrEnum

from src.domain.order import OrderLineItem, ProductDimensions
from src.domain.package_profiles import (
    CUSTOM_PROFILE,
    DEFAULT_DIMENSIONS,
    fallback_dimensions_for,
    profile_key,
)
from src.domain.shipping import DimensionEstimate, Dimensions, DimsSource


class FallbackStrategy(StrEnum):
    # Items without usable dimensions contribute nothing; default used only if nothing did.
    GLOBAL_DEFAULT = "global_default"
    # Items with a product but without usable dimensions contribute their profile's box.
    PROFILE = "profile"


def _source(has_product_dims: bool, has_fallbacks: bool) -> DimsSource:
    if has_product_dims and not has_fallbacks:
        return DimsSource.products
    if has_fallbacks and not has_product_dims:
        return DimsSource.fallback
    return DimsSource.mixed


def _default_estimate(
    default: Dimensions, missing: int, profile_used: str | None
) -> DimensionEstimate:
    return DimensionEstimate(
        length_cm=default.length_cm,
        width_cm=default.width_cm,
        height_cm=default.height_cm,
        source=DimsSource.fallback,
        missing_fields_count=missing,
        profile_used=profile_used,
    )


def estimate_package_dimensions(
    items: Sequence[OrderLineItem],
    products_map: Mapping[str, ProductDimensions],
    default_dimensions: Dimensions = DEFAULT_DIMENSIONS,
    strategy: FallbackStrategy = FallbackStrategy.GLOBAL_DEFAULT,
) -> DimensionEstimate:
    """Estimate the parcel's length/width/height for ``items``.

    ``missing_fields_count`` counts items whose dimensions had to be
    replaced: lines without a product and products whose triple is missing
    or has a non-positive side. It is telemetry only.

    With ``FallbackStrategy.PROFILE`` the first profile used for a fallback is
    reported in ``profile_used``; when nothing contributed any dimension the
    default box is used and ``profile_used`` is ``CUSTOM``.
    """
    use_profiles = strategy is FallbackStrategy.PROFILE

    if not items:
        return _default_estimate(
            default_dimensions, 0, CUSTOM_PROFILE if use_profiles else None
        )

    max_length = max_width = max_height = 0.0
    missing = 0
    has_product_dims = False
    has_fallbacks = False
    profile_used: str | None = None

    for item in items:
        if item.product_id is None:
            missing += 1
            has_fallbacks = True
            continue

        product = products_map.get(item.product_id)
        triple = product.usable_triple() if product is not None else None
        if triple is not None:
            length, width, height = triple
            has_product_dims = True
        else:
            missing += 1
            has_fallbacks = True
            if not use_profiles:
                continue
            raw_profile = product.shipping_profile if product is not None else None
            fallback = fallback_dimensions_for(raw_profile)
            if profile_used is None:
                profile_used = profile_key(raw_profile)
            length, width, height = fallback.length_cm, fallback.width_cm, fallback.height_cm

        max_length = max(max_length, length)
        max_width = max(max_width, width)
        max_height = max(max_height, height)

    if max_length <= 0 or max_width <= 0 or max_height <= 0:
        return _default_estimate(
            default_dimensions, missing, CUSTOM_PROFILE if use_profiles else None
        )

    return DimensionEstimate(
        length_cm=max_length,
        width_cm=max_width,
        height_cm=max_height,
        source=_source(has_product_dims, has_fallbacks),
        missing_fields_count=missing,
        profile_used=profile_used,
    )
