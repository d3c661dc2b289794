"""Read the destination address back out of an order's metadata.

The address has been stored under three keys over time and with Spanish and
English field names; the resolver reads all of them and returns the first
one that is complete.
"""

import unicodedata
from collections.abc import Mapping

from pydantic import BaseModel

from src.domain.order import OrderRecord
from src.domain.shipping import (
    NormalizedShippingAddress,
    ResolvedShippingAddress,
    ShippingAddressSource,
)

DEFAULT_COUNTRY = "MX"

_POSTAL_CODE_KEYS = ("postal_code", "postalCode", "cp")
_STATE_KEYS = ("state", "estado")
_CITY_KEYS = ("city", "ciudad", "municipality", "municipio", "alcaldia")
_ADDRESS1_KEYS = ("address1", "street1", "address", "direccion", "street")
_ADDRESS2_KEYS = ("address2", "neighborhood", "colonia", "address_line2", "street2")
_COUNTRY_KEYS = ("country", "country_code", "countryCode")
_NAME_KEYS = ("name", "nombre")
_PHONE_KEYS = ("phone", "telefono")
_EMAIL_KEYS = ("email",)


def _first_text(source: Mapping, keys: tuple[str, ...]) -> str:
    # First truthy alias wins, even if it trims down to nothing.
    for key in keys:
        value = source.get(key)
        if value:
            return value.strip() if isinstance(value, str) else ""
    return ""


def _normalize_candidate(
    candidate: Mapping, meta: Mapping, require_name: bool
) -> NormalizedShippingAddress | None:
    postal_code = _first_text(candidate, _POSTAL_CODE_KEYS)
    state = _first_text(candidate, _STATE_KEYS)
    city = _first_text(candidate, _CITY_KEYS)
    address1 = _first_text(candidate, _ADDRESS1_KEYS)
    address2 = _first_text(candidate, _ADDRESS2_KEYS)
    country = _first_text(candidate, _COUNTRY_KEYS) or DEFAULT_COUNTRY
    name = _first_text(candidate, _NAME_KEYS) or _first_text(meta, ("contact_name",))
    phone = _first_text(candidate, _PHONE_KEYS) or _first_text(meta, ("contact_phone",))
    email = _first_text(candidate, _EMAIL_KEYS) or _first_text(meta, ("contact_email",))

    if not (postal_code and state and city and address1):
        return None
    if require_name and not name:
        return None

    return NormalizedShippingAddress(
        name=name or None,
        phone=phone or None,
        email=email or None,
        address1=address1,
        address2=address2 or None,
        city=city,
        state=state,
        postal_code=postal_code,
        country=country,
    )


def _metadata_of(order_or_metadata: object) -> Mapping | None:
    if isinstance(order_or_metadata, OrderRecord):
        return order_or_metadata.metadata
    if not isinstance(order_or_metadata, Mapping):
        return None
    if "metadata" in order_or_metadata:
        meta = order_or_metadata["metadata"]
        return meta if isinstance(meta, Mapping) else {}
    return order_or_metadata


def resolve_shipping_address(
    order_or_metadata: object, require_name: bool = False
) -> ResolvedShippingAddress | None:
    """Return the first complete address in ``order_or_metadata`` and where it came from.

    Accepts an ``OrderRecord``, an order-shaped mapping with a ``metadata`` key
    or the metadata mapping itself. Candidates are tried in this order:
    ``shipping_address``, ``shipping.shipping_address``, ``shippingAddress``.
    A candidate needs postal code, state, city and street line; with
    ``require_name`` it also needs a recipient name, which may come from the
    metadata's ``contact_name``. Returns ``None`` when nothing validates.
    """
    meta = _metadata_of(order_or_metadata)
    if meta is None:
        return None

    shipping = meta.get("shipping")
    if not isinstance(shipping, Mapping):
        shipping = {}

    candidates = (
        (ShippingAddressSource.shipping_address, meta.get("shipping_address")),
        (ShippingAddressSource.nested_shipping_address, shipping.get("shipping_address")),
        (ShippingAddressSource.camel_shipping_address, meta.get("shippingAddress")),
    )
    for source_key, value in candidates:
        if not isinstance(value, Mapping):
            continue
        address = _normalize_candidate(value, meta, require_name)
        if address is not None:
            return ResolvedShippingAddress(address=address, source_key=source_key)

    return None


# ---------------------------------------------------------------------------
# Carrier-facing normalization for Mexican addresses
# ---------------------------------------------------------------------------

CDMX = "Ciudad de Mexico"
_CDMX_VARIANTS = frozenset(
    {"ciudad de mexico", "cdmx", "df", "distrito federal", "mexico city"}
)


class MxAddress(BaseModel):
    state: str
    city: str
    postal_code: str
    alcaldia: str | None = None  # original city when it was a CDMX borough


def remove_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).strip()


def _comparable(text: str) -> str:
    return remove_accents(text.strip().lower())


def normalize_mx_address(state: str, city: str, postal_code: str) -> MxAddress:
    """Normalize city/state the way the aggregator accepts them.

    Any CDMX spelling becomes ``Ciudad de Mexico`` for both city and state. A
    city that is really a borough of CDMX (state CDMX, city something else)
    is returned as ``alcaldia`` so callers can move it to the neighborhood.
    Other addresses only lose their accents.
    """
    state = state.strip()
    city = city.strip()
    postal_code = postal_code.strip()

    state_is_cdmx = _comparable(state) in _CDMX_VARIANTS
    city_is_cdmx = _comparable(city) in _CDMX_VARIANTS

    if state_is_cdmx or city_is_cdmx:
        alcaldia = city if state_is_cdmx and not city_is_cdmx and city else None
        return MxAddress(state=CDMX, city=CDMX, postal_code=postal_code, alcaldia=alcaldia)

    return MxAddress(
        state=remove_accents(state), city=remove_accents(city), postal_code=postal_code
    )
