from collections.abc import Mapping

from loguru import logger

from src.domain.shipping import RateUsedValidationResult
from src.shared.logs import sanitize_for_log, sanitize_mapping_for_log
from src.shared.numbers import has_positive_number


def _sub_mapping(source: Mapping | None, key: str) -> Mapping | None:
    value = source.get(key) if source else None
    return value if isinstance(value, Mapping) else None


def validate_rate_used_persistence(
    raw_db_metadata: Mapping | None, order_id: str, route_name: str
) -> RateUsedValidationResult:
    """Check that a write did not leave ``shipping.rate_used`` without cents.

    Must be given the metadata exactly as read back from storage, not a
    normalized copy. Canonical pricing (``shipping_pricing.total_cents`` or
    ``carrier_cents``) holding a positive number while neither
    ``rate_used.price_cents`` nor ``rate_used.carrier_cents`` does is a
    discrepancy: it is logged for operators and reported, never repaired here.
    """
    if not isinstance(raw_db_metadata, Mapping):
        return RateUsedValidationResult(
            is_valid=False,
            has_canonical_pricing=False,
            rate_used_has_numbers=False,
            discrepancy=False,
        )

    pricing = _sub_mapping(raw_db_metadata, "shipping_pricing")
    shipping = _sub_mapping(raw_db_metadata, "shipping")
    rate_used = _sub_mapping(shipping, "rate_used")

    pricing_total = pricing.get("total_cents") if pricing else None
    pricing_carrier = pricing.get("carrier_cents") if pricing else None
    rate_used_price = rate_used.get("price_cents") if rate_used else None
    rate_used_carrier = rate_used.get("carrier_cents") if rate_used else None

    has_canonical = has_positive_number(pricing_total) or has_positive_number(
        pricing_carrier
    )
    rate_used_has_numbers = has_positive_number(rate_used_price) or has_positive_number(
        rate_used_carrier
    )
    discrepancy = has_canonical and not rate_used_has_numbers

    if discrepancy:
        logger.bind(
            **sanitize_mapping_for_log(
                {
                    "order_id": order_id,
                    "route": route_name,
                    "shipping_pricing": {
                        "total_cents": pricing_total,
                        "carrier_cents": pricing_carrier,
                    },
                    "rate_used": {
                        "price_cents": rate_used_price,
                        "carrier_cents": rate_used_carrier,
                    },
                    "raw_db_shipping": shipping,
                    "raw_db_shipping_pricing": pricing,
                }
            )
        ).error(
            f"[{sanitize_for_log(route_name)}] CRITICAL CANARY: shipping_pricing has "
            f"cents but rate_used.*_cents is null/missing for order {sanitize_for_log(order_id)}"
        )

    return RateUsedValidationResult(
        is_valid=not discrepancy,
        has_canonical_pricing=has_canonical,
        rate_used_has_numbers=rate_used_has_numbers,
        discrepancy=discrepancy,
    )
