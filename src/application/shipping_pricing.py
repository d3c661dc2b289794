from collections.abc import Mapping

from src.domain.shipping import ShippingPricing
from src.shared.numbers import to_cents

MISMATCH_REASON = "mismatch_total_vs_components"


def normalize_shipping_pricing(raw: Mapping | None) -> ShippingPricing | None:
    """Reconcile a stored ``shipping_pricing`` object.

    ``total = carrier + packaging + margin`` must hold. When the stored total
    and components disagree, the total wins if packaging or margin is present
    (carrier is derived), otherwise carrier wins (total is derived). Any fix
    sets ``corrected``.
    """
    if not isinstance(raw, Mapping) or not raw:
        return None

    packaging = max(0, to_cents(raw.get("packaging_cents")) or 0)
    margin = max(0, to_cents(raw.get("margin_cents")) or 0)
    total = to_cents(raw.get("total_cents"))
    if total is None:
        total = to_cents(raw.get("customer_total_cents"))
    carrier = to_cents(raw.get("carrier_cents"))

    resolved_carrier = carrier if carrier is not None else 0
    resolved_total = total if total is not None else resolved_carrier + packaging + margin
    corrected = False

    if total is not None and total >= 0 and (packaging > 0 or margin > 0):
        expected_carrier = max(0, total - packaging - margin)
        if carrier != expected_carrier:
            resolved_carrier = expected_carrier
            corrected = True
    elif carrier is not None:
        expected_total = carrier + packaging + margin
        if total != expected_total:
            resolved_total = expected_total
            corrected = True

    if resolved_total != resolved_carrier + packaging + margin:
        resolved_total = resolved_carrier + packaging + margin
        corrected = True

    return ShippingPricing(
        carrier_cents=resolved_carrier,
        packaging_cents=packaging,
        margin_cents=margin,
        total_cents=resolved_total,
        customer_total_cents=resolved_total,
        customer_eta_min_days=to_cents(raw.get("customer_eta_min_days")),
        customer_eta_max_days=to_cents(raw.get("customer_eta_max_days")),
        corrected=corrected or bool(raw.get("corrected")),
        correction_reason=MISMATCH_REASON if corrected else raw.get("correction_reason"),
    )
