"""Tests for resolving the shipping address out of order metadata."""

from src.application.address_resolver import (
    normalize_mx_address,
    resolve_shipping_address,
)
from src.domain.order import OrderRecord
from src.domain.shipping import ShippingAddressSource


def _address(**overrides) -> dict:
    """Helper: a complete address in the current key shape."""
    base = {
        "name": "Dra. Ana López",
        "phone": "5512345678",
        "address1": "Av. Insurgentes Sur 1234",
        "address2": "Del Valle",
        "city": "Benito Juárez",
        "state": "Ciudad de México",
        "postal_code": "03100",
    }
    return {**base, **overrides}


# ---------------------------------------------------------------------------
# Candidate priority
# ---------------------------------------------------------------------------


def test_top_level_shipping_address_wins_over_nested() -> None:
    """Both candidates valid: the top-level ``shipping_address`` is returned."""
    metadata = {
        "shipping_address": _address(postal_code="03100"),
        "shipping": {"shipping_address": _address(postal_code="64000")},
    }

    resolved = resolve_shipping_address(metadata)

    assert resolved is not None
    assert resolved.source_key == ShippingAddressSource.shipping_address
    assert resolved.source_key == "shipping_address"
    assert resolved.address.postal_code == "03100"


def test_candidate_missing_postal_code_is_skipped() -> None:
    """An incomplete first candidate falls through to the next one."""
    metadata = {
        "shipping_address": _address(postal_code=None),
        "shipping": {"shipping_address": _address(postal_code="64000")},
    }

    resolved = resolve_shipping_address(metadata)

    assert resolved is not None
    assert resolved.source_key == "shipping.shipping_address"
    assert resolved.address.postal_code == "64000"


def test_returns_none_when_no_candidate_validates() -> None:
    """Every candidate incomplete: no address."""
    metadata = {
        "shipping_address": _address(postal_code=""),
        "shipping": {"shipping_address": _address(city="   ")},
        "shippingAddress": _address(address1=None),
    }

    assert resolve_shipping_address(metadata) is None


def test_camel_case_legacy_key_is_read() -> None:
    """Oldest shape, with Spanish aliases, still resolves."""
    metadata = {
        "shippingAddress": {
            "direccion": "  Calle 5 de Mayo 10 ",
            "colonia": "Centro",
            "municipio": "Monterrey",
            "estado": "Nuevo León",
            "cp": "64000",
        }
    }

    resolved = resolve_shipping_address(metadata)

    assert resolved is not None
    assert resolved.source_key == ShippingAddressSource.camel_shipping_address
    assert resolved.address.address1 == "Calle 5 de Mayo 10"
    assert resolved.address.address2 == "Centro"
    assert resolved.address.city == "Monterrey"
    assert resolved.address.country == "MX"
    assert resolved.address.name is None


# ---------------------------------------------------------------------------
# Input shapes and name policy
# ---------------------------------------------------------------------------


def test_accepts_order_record_and_order_mapping() -> None:
    """OrderRecord and ``{"metadata": ...}`` resolve like the bare metadata."""
    metadata = {"shipping_address": _address()}

    from_record = resolve_shipping_address(OrderRecord(id="o-1", metadata=metadata))
    from_mapping = resolve_shipping_address({"id": "o-1", "metadata": metadata})

    assert from_record is not None and from_mapping is not None
    assert from_record.address == from_mapping.address


def test_non_mapping_input_returns_none() -> None:
    """Garbage in: ``None`` out, no exception."""
    assert resolve_shipping_address(None) is None
    assert resolve_shipping_address("shipping_address") is None
    assert resolve_shipping_address({"metadata": None}) is None
    assert resolve_shipping_address({"shipping_address": "Calle 1"}) is None


def test_require_name_rejects_nameless_candidate() -> None:
    """With ``require_name`` a candidate without any name is rejected."""
    metadata = {"shipping_address": _address(name=None)}

    assert resolve_shipping_address(metadata) is not None
    assert resolve_shipping_address(metadata, require_name=True) is None


def test_require_name_falls_back_to_contact_name() -> None:
    """The parent metadata's contact fields fill a nameless address."""
    metadata = {
        "contact_name": "Clínica Sonrisas",
        "contact_email": "compras@sonrisas.mx",
        "shipping_address": _address(name=None, phone=None),
    }

    resolved = resolve_shipping_address(metadata, require_name=True)

    assert resolved is not None
    assert resolved.address.name == "Clínica Sonrisas"
    assert resolved.address.email == "compras@sonrisas.mx"
    assert resolved.address.phone is None


# ---------------------------------------------------------------------------
# Mexican address normalization
# ---------------------------------------------------------------------------


def test_cdmx_borough_moves_to_alcaldia() -> None:
    """State CDMX with a borough as city: both become CDMX, borough kept aside."""
    result = normalize_mx_address(" Ciudad de México ", "Tlalpan", " 14000 ")

    assert result.state == "Ciudad de Mexico"
    assert result.city == "Ciudad de Mexico"
    assert result.postal_code == "14000"
    assert result.alcaldia == "Tlalpan"


def test_cdmx_city_variant_has_no_alcaldia() -> None:
    """City already a CDMX spelling: no borough to keep."""
    result = normalize_mx_address("Ciudad de México", "CDMX", "03100")

    assert result.city == "Ciudad de Mexico"
    assert result.alcaldia is None


def test_non_cdmx_address_only_loses_accents() -> None:
    """Elsewhere, accents are stripped and casing kept."""
    result = normalize_mx_address("Nuevo León", "San Nicolás", "66400")

    assert result.state == "Nuevo Leon"
    assert result.city == "San Nicolas"
    assert result.alcaldia is None
