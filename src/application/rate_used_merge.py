"""Keep ``shipping.rate_used`` cents in step with ``shipping_pricing``.

Writers that rebuild ``metadata.shipping`` from a partial view tend to drop
the mirror cents. These helpers run right before a write and refill them
from the incoming write, the freshly read row or canonical pricing.
"""

from collections.abc import Mapping
from typing import Any

from src.shared.numbers import has_positive_number, to_cents

CENTS_FIELDS = ("price_cents", "carrier_cents", "customer_total_cents")

# Routes whose rate_used is an intentional replacement, not a partial echo
EXPLICIT_OVERWRITE_ROUTES = frozenset({"apply-rate"})


def _as_dict(value: object) -> dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}


def _coalesce(*values: object) -> object:
    for value in values:
        if value is not None:
            return value
    return None


def _canonical_cents(pricing: Mapping | None) -> dict[str, int | None]:
    pricing = pricing or {}
    total = to_cents(pricing.get("total_cents"))
    carrier = to_cents(pricing.get("carrier_cents"))
    customer_total = to_cents(pricing.get("customer_total_cents"))
    return {
        "price_cents": total,
        "carrier_cents": carrier,
        "customer_total_cents": customer_total if customer_total is not None else total,
    }


def _has_cents(rate_used: Mapping) -> bool:
    return has_positive_number(rate_used.get("price_cents")) or has_positive_number(
        rate_used.get("carrier_cents")
    )


def merge_rate_used_preserve_cents(
    existing: Mapping | None,
    incoming: Mapping | None,
    shipping_pricing: Mapping | None,
) -> dict[str, Any]:
    """Merge two ``rate_used`` objects; each cents field is incoming, else existing, else canonical."""
    existing_rate = _as_dict(existing)
    incoming_rate = _as_dict(incoming)
    canonical = _canonical_cents(shipping_pricing)

    merged = {**existing_rate, **incoming_rate}
    for field in CENTS_FIELDS:
        merged[field] = _coalesce(
            incoming_rate.get(field), existing_rate.get(field), canonical[field]
        )
    return merged


class CentsPreservingRateUsed:
    """``IRateUsedPreserver`` that never lets mirror cents regress to null."""

    def preserve_rate_used(
        self, fresh: Mapping | None, incoming: Mapping
    ) -> dict[str, Any]:
        incoming_meta = dict(incoming)
        incoming_shipping = _as_dict(incoming_meta.get("shipping"))
        incoming_rate = _as_dict(incoming_shipping.get("rate_used"))
        fresh_rate = _as_dict(_as_dict(_as_dict(fresh).get("shipping")).get("rate_used"))

        pricing = incoming_meta.get("shipping_pricing") or incoming_shipping.get("pricing")
        canonical = _canonical_cents(pricing if isinstance(pricing, Mapping) else None)
        has_canonical = (
            canonical["price_cents"] is not None or canonical["carrier_cents"] is not None
        )

        last_write = _as_dict(incoming_shipping.get("_last_write"))
        explicit_overwrite = (
            last_write.get("route") in EXPLICIT_OVERWRITE_ROUTES
            or last_write.get("canonical_detected") is True
        )
        incoming_has_numbers = _has_cents(incoming_rate)
        matches_canonical = (
            incoming_has_numbers
            and has_canonical
            and incoming_rate.get("price_cents") == canonical["price_cents"]
            and incoming_rate.get("carrier_cents") == canonical["carrier_cents"]
        )

        if explicit_overwrite or matches_canonical:
            rate_used = {
                **incoming_rate,
                **{k: v for k, v in canonical.items() if v is not None},
            }
        elif incoming_has_numbers:
            rate_used = dict(incoming_rate)
            for field in CENTS_FIELDS:
                if rate_used.get(field) is None and canonical[field] is not None:
                    rate_used[field] = canonical[field]
        elif _has_cents(fresh_rate):
            rate_used = {
                **fresh_rate,
                **incoming_rate,
                **{
                    field: _coalesce(fresh_rate.get(field), incoming_rate.get(field))
                    for field in CENTS_FIELDS
                },
            }
        elif has_canonical:
            rate_used = merge_rate_used_preserve_cents(fresh_rate, incoming_rate, pricing)
        elif not incoming_rate and not fresh_rate:
            return incoming_meta
        else:
            rate_used = {**fresh_rate, **incoming_rate}

        return {**incoming_meta, "shipping": {**incoming_shipping, "rate_used": rate_used}}
