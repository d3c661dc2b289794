"""Build aggregator quotation requests from a package and two addresses.

Checkout quoting and admin re-quoting both go through here so they send
identical payloads for the same order.
"""

from pydantic import BaseModel

from src.application.address_resolver import normalize_mx_address
from src.domain.carrier import (
    AddressDiagnostic,
    AreaLevel3Source,
    PackageDiagnostic,
    Parcel,
    QuotationAddress,
    QuotationDiagnostic,
    QuotationPayload,
)
from src.domain.shipping import NormalizedShippingAddress, ShippingPackageResult

MAX_LINE_LENGTH = 45  # aggregator limit for street/neighborhood lines
MIN_BILLABLE_WEIGHT_G = 1000
DEFAULT_DECLARED_VALUE = 100


class OriginAddress(BaseModel):
    """Warehouse address; ``area_level3`` overrides the derived neighborhood."""

    name: str
    postal_code: str
    state: str
    city: str
    country: str = "MX"
    address1: str = ""
    address2: str | None = None
    area_level3: str | None = None
    phone: str | None = None
    email: str | None = None


def _clip(text: str | None) -> str | None:
    return text[:MAX_LINE_LENGTH] if text else None


def _neighborhood(
    configured: str | None, alcaldia: str | None, address2: str | None, address1: str
) -> tuple[str | None, AreaLevel3Source]:
    if configured:
        return _clip(configured), AreaLevel3Source.config
    if alcaldia:
        return _clip(alcaldia), AreaLevel3Source.alcaldia
    if address2:
        return _clip(address2), AreaLevel3Source.address2
    if address1:
        return _clip(address1.split(",")[0]), AreaLevel3Source.address1
    return None, AreaLevel3Source.none


def _diagnostic(address: QuotationAddress, source: AreaLevel3Source) -> AddressDiagnostic:
    return AddressDiagnostic(
        postal_code_present=bool(address.zip),
        city=address.city or "[missing]",
        state=address.state or "[missing]",
        country_code=address.country,
        street1_len=len(address.address1 or ""),
        area_level3_len=len(address.neighborhood or ""),
        area_level3_source=source,
    )


def build_rates_request(
    origin: OriginAddress,
    destination: NormalizedShippingAddress,
    package: ShippingPackageResult,
    order_id: str,
    declared_value: float | None = None,
    min_billable_weight_g: int = MIN_BILLABLE_WEIGHT_G,
) -> tuple[QuotationPayload, QuotationDiagnostic]:
    """Return the quotation payload for ``package`` and a loggable diagnostic.

    The parcel weight is the package's billable weight, raised to
    ``min_billable_weight_g`` because the aggregator charges at least that.
    """
    normalized_origin = normalize_mx_address(origin.state, origin.city, origin.postal_code)
    origin_address1 = origin.address1.strip()
    origin_address2 = origin.address2.strip() if origin.address2 else None
    origin_neighborhood, origin_source = _neighborhood(
        origin.area_level3, normalized_origin.alcaldia, origin_address2, origin_address1
    )

    normalized_dest = normalize_mx_address(
        destination.state, destination.city, destination.postal_code
    )
    dest_address1 = destination.address1.strip()
    dest_address2 = destination.address2.strip() if destination.address2 else None
    # The colonia beats a CDMX borough for the destination
    dest_neighborhood, dest_source = _neighborhood(
        None,
        None if dest_address2 else normalized_dest.alcaldia,
        dest_address2,
        dest_address1,
    )

    weight_g = max(package.weight_g, min_billable_weight_g)

    address_from = QuotationAddress(
        state=normalized_origin.state,
        province=normalized_origin.state,
        city=normalized_origin.city,
        country=origin.country or "MX",
        zip=normalized_origin.postal_code,
        neighborhood=origin_neighborhood,
        name=origin.name,
        phone=origin.phone,
        email=origin.email,
        address1=_clip(origin_address1),
        address2=_clip(origin_address2),
    )
    address_to = QuotationAddress(
        state=normalized_dest.state,
        province=normalized_dest.state,
        city=normalized_dest.city,
        country=destination.country or "MX",
        zip=normalized_dest.postal_code,
        neighborhood=dest_neighborhood,
        name=destination.name,
        phone=destination.phone,
        email=destination.email,
        address1=_clip(dest_address1),
        address2=_clip(dest_address2),
    )
    parcel = Parcel(
        weight=weight_g / 1000,
        length=max(package.length_cm, 1),
        width=max(package.width_cm, 1),
        height=max(package.height_cm, 1),
    )

    payload = QuotationPayload(
        address_from=address_from,
        address_to=address_to,
        parcels=[parcel],
        declared_value=declared_value or DEFAULT_DECLARED_VALUE,
        order_id=order_id,
    )
    diagnostic = QuotationDiagnostic(
        origin=_diagnostic(address_from, origin_source),
        destination=_diagnostic(address_to, dest_source),
        pkg=PackageDiagnostic(
            length_cm=parcel.length,
            width_cm=parcel.width,
            height_cm=parcel.height,
            weight_g=weight_g,
            was_clamped=package.weight_g < min_billable_weight_g,
            min_billable_weight_g=min_billable_weight_g,
        ),
    )
    return payload, diagnostic
