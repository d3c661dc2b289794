"""Complete parcel description for rate quoting and label creation.

A) mass weight: fixed tare plus per-item catalog weight (or a default)
B) dimensions: max across products, per-product profile box as fallback
C) volumetric weight L*W*H/5000 and billable weight max(mass, volumetric)
"""

import math
from collections.abc import Mapping, Sequence

from src.application.package_dimensions import (
    FallbackStrategy,
    estimate_package_dimensions,
)
from src.domain.order import OrderLineItem, ProductShippingAttributes
from src.domain.package_profiles import DEFAULT_DIMENSIONS
from src.domain.shipping import (
    Dimensions,
    DimsSource,
    ShippingPackageResult,
    ShippingPackageSelection,
)

TARE_WEIGHT_G = 1200
VOLUMETRIC_FACTOR = 5000
DEFAULT_ITEM_WEIGHT_G = 100

# Floors applied to a stored operator package before it is quoted
MIN_SELECTED_WEIGHT_G = 50
MIN_SELECTED_SIDE_CM = 1


def compute_mass_weight_g(
    items: Sequence[OrderLineItem],
    products_map: Mapping[str, ProductShippingAttributes],
    default_item_weight_g: float = DEFAULT_ITEM_WEIGHT_G,
) -> tuple[float, int]:
    """Return ``(mass_weight_g, missing_weight_fields_count)``.

    The count is in units, not lines: a line of 3 without a usable weight adds 3.
    """
    items_weight_g = 0.0
    missing = 0
    for item in items:
        product = products_map.get(item.product_id) if item.product_id else None
        weight_g = product.usable_weight_g() if product is not None else None
        if weight_g is None:
            weight_g = default_item_weight_g
            missing += item.qty
        items_weight_g += weight_g * item.qty
    return TARE_WEIGHT_G + items_weight_g, missing


def compute_shipping_package(
    items: Sequence[OrderLineItem],
    products_map: Mapping[str, ProductShippingAttributes],
    default_item_weight_g: float = DEFAULT_ITEM_WEIGHT_G,
) -> ShippingPackageResult:
    """Describe the single parcel that will carry ``items``.

    Never raises: the tare weight and the default box are non-zero floors.
    """
    mass_weight_g, missing_weight = compute_mass_weight_g(
        items, products_map, default_item_weight_g
    )

    estimate = estimate_package_dimensions(
        items,
        {pid: attrs.dimensions() for pid, attrs in products_map.items()},
        default_dimensions=DEFAULT_DIMENSIONS,
        strategy=FallbackStrategy.PROFILE,
    )
    dims = estimate.dimensions

    volumetric_weight_kg = dims.volume_cm3 / VOLUMETRIC_FACTOR
    billable_weight_kg = max(mass_weight_g / 1000, volumetric_weight_kg)

    return ShippingPackageResult(
        mass_weight_g=mass_weight_g,
        tare_weight_g=TARE_WEIGHT_G,
        missing_weight_fields_count=missing_weight,
        missing_fields_count=estimate.missing_fields_count,
        dims_cm=dims,
        dims_source=estimate.source,
        profile_used=estimate.profile_used,
        volumetric_weight_kg=volumetric_weight_kg,
        billable_weight_kg=billable_weight_kg,
        volumetric_factor=VOLUMETRIC_FACTOR,
        weight_g=round(billable_weight_kg * 1000),
        # Round fractional catalog sides up so the parcel still fits the item
        length_cm=math.ceil(dims.length_cm),
        width_cm=math.ceil(dims.width_cm),
        height_cm=math.ceil(dims.height_cm),
    )


def package_from_selection(selection: ShippingPackageSelection) -> ShippingPackageResult:
    """Describe the parcel an operator picked with ``set_shipping_package``.

    The stored weight is the whole parcel, so no tare is added. Weight is
    floored at 50 g and each side at 1 cm; billable weight still follows the
    volumetric rule.
    """
    weight_g = max(selection.weight_g, MIN_SELECTED_WEIGHT_G)
    dims = Dimensions(
        length_cm=max(selection.length_cm, MIN_SELECTED_SIDE_CM),
        width_cm=max(selection.width_cm, MIN_SELECTED_SIDE_CM),
        height_cm=max(selection.height_cm, MIN_SELECTED_SIDE_CM),
    )
    volumetric_weight_kg = dims.volume_cm3 / VOLUMETRIC_FACTOR
    billable_weight_kg = max(weight_g / 1000, volumetric_weight_kg)

    return ShippingPackageResult(
        mass_weight_g=weight_g,
        tare_weight_g=0,
        missing_weight_fields_count=0,
        missing_fields_count=0,
        dims_cm=dims,
        dims_source=DimsSource.selected,
        profile_used=selection.profile,
        volumetric_weight_kg=volumetric_weight_kg,
        billable_weight_kg=billable_weight_kg,
        volumetric_factor=VOLUMETRIC_FACTOR,
        weight_g=round(billable_weight_kg * 1000),
        length_cm=math.ceil(dims.length_cm),
        width_cm=math.ceil(dims.width_cm),
        height_cm=math.ceil(dims.height_cm),
    )
