"""Map the freeform ``orders.metadata`` JSON to typed views and back.

Reads are lenient: every legacy key variant is tolerated and a malformed
sub-object simply maps to ``None``. Writes go through the builders below so
that only well-formed sub-objects reach storage.
"""

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from src.application.address_resolver import resolve_shipping_address
from src.application.shipping_pricing import normalize_shipping_pricing
from src.domain.carrier import CarrierRate
from src.domain.shipping import (
    RateUsed,
    ShippingMetadataView,
    ShippingPackageSelection,
    ShippingPricing,
)
from src.shared.numbers import to_cents


def _mapping(value: object) -> Mapping:
    return value if isinstance(value, Mapping) else {}


def _parse_rate_used(raw: Mapping) -> RateUsed | None:
    if not raw:
        return None
    data = dict(raw)
    for field in ("carrier_cents", "price_cents", "customer_total_cents", "eta_min_days", "eta_max_days"):
        data[field] = to_cents(raw.get(field))
    try:
        return RateUsed.model_validate(data)
    except ValidationError:
        return None


def _parse_package(raw: Mapping) -> ShippingPackageSelection | None:
    if not raw:
        return None
    try:
        return ShippingPackageSelection.model_validate(raw)
    except ValidationError:
        return None


def parse_shipping_metadata(raw: Mapping | None) -> ShippingMetadataView:
    """Project ``raw`` metadata onto ``ShippingMetadataView``; never raises."""
    meta = _mapping(raw)
    shipping = _mapping(meta.get("shipping"))
    pricing_raw = meta.get("shipping_pricing") or shipping.get("pricing")
    last_write = shipping.get("_last_write")

    return ShippingMetadataView(
        address=resolve_shipping_address(meta),
        pricing=normalize_shipping_pricing(_mapping(pricing_raw)),
        rate_used=_parse_rate_used(_mapping(shipping.get("rate_used"))),
        package=_parse_package(_mapping(meta.get("shipping_package"))),
        last_write=dict(last_write) if isinstance(last_write, Mapping) else None,
    )


def build_rate_selection(
    rate: CarrierRate,
    customer_total_cents: int | None,
    selection_source: str = "admin",
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Return the ``(shipping_pricing, rate_used)`` sub-objects for an accepted rate.

    Without an explicit customer total the carrier price is charged as is.
    """
    total = customer_total_cents if customer_total_cents is not None else rate.price_cents
    pricing = ShippingPricing(
        carrier_cents=rate.price_cents,
        packaging_cents=max(0, total - rate.price_cents),
        total_cents=total,
        customer_total_cents=total,
        customer_eta_min_days=rate.eta_min_days,
        customer_eta_max_days=rate.eta_max_days,
    )
    rate_used = RateUsed(
        external_rate_id=rate.external_rate_id,
        provider=rate.provider,
        service=rate.service,
        eta_min_days=rate.eta_min_days,
        eta_max_days=rate.eta_max_days,
        carrier_cents=rate.price_cents,
        price_cents=total,
        customer_total_cents=total,
        selection_source=selection_source,
    )
    return (
        pricing.model_dump(exclude_none=True),
        rate_used.model_dump(exclude_none=True),
    )


def metadata_snapshot(metadata: Mapping | None) -> dict[str, Any]:
    """The pricing-related fields worth logging around a metadata write."""
    meta = _mapping(metadata)
    shipping = _mapping(meta.get("shipping"))
    rate_used = _mapping(shipping.get("rate_used"))
    pricing = _mapping(meta.get("shipping_pricing"))
    last_write = _mapping(shipping.get("_last_write"))
    return {
        "rate_used": {
            "price_cents": rate_used.get("price_cents"),
            "carrier_cents": rate_used.get("carrier_cents"),
            "customer_total_cents": rate_used.get("customer_total_cents"),
        }
        if rate_used
        else None,
        "shipping_pricing": {
            "total_cents": pricing.get("total_cents"),
            "carrier_cents": pricing.get("carrier_cents"),
        }
        if pricing
        else None,
        "_last_write": dict(last_write) if last_write else None,
    }
