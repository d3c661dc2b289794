"""Value objects produced by the package calculator, the address resolver and
the pricing/rate readers."""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class DimsSource(StrEnum):
    products = "products"
    fallback = "fallback"
    mixed = "mixed"
    selected = "selected"  # operator-chosen package, not derived from the catalog


class Dimensions(BaseModel):
    length_cm: float = Field(..., gt=0)
    width_cm: float = Field(..., gt=0)
    height_cm: float = Field(..., gt=0)

    @property
    def volume_cm3(self) -> float:
        return self.length_cm * self.width_cm * self.height_cm


class DimensionEstimate(BaseModel):
    length_cm: float
    width_cm: float
    height_cm: float
    source: DimsSource
    missing_fields_count: int = 0
    profile_used: str | None = None  # only set by the profile-keyed strategy

    @property
    def dimensions(self) -> Dimensions:
        return Dimensions(
            length_cm=self.length_cm, width_cm=self.width_cm, height_cm=self.height_cm
        )


class ShippingPackageResult(BaseModel):
    """Physical description of the single parcel for an order."""

    mass_weight_g: float
    tare_weight_g: int
    missing_weight_fields_count: int
    missing_fields_count: int  # items that fell back for dimensions
    dims_cm: Dimensions
    dims_source: DimsSource
    profile_used: str | None = None
    volumetric_weight_kg: float
    billable_weight_kg: float
    volumetric_factor: int

    # Flat integer fields kept for the carrier client
    weight_g: int
    length_cm: int
    width_cm: int
    height_cm: int


class ShippingAddressSource(StrEnum):
    shipping_address = "shipping_address"
    nested_shipping_address = "shipping.shipping_address"
    camel_shipping_address = "shippingAddress"


class NormalizedShippingAddress(BaseModel):
    name: str | None = None
    phone: str | None = None
    email: str | None = None
    address1: str
    address2: str | None = None
    city: str
    state: str
    postal_code: str
    country: str = "MX"


class ResolvedShippingAddress(BaseModel):
    address: NormalizedShippingAddress
    source_key: ShippingAddressSource


class ShippingPricing(BaseModel):
    """Canonical customer-facing shipping price (``metadata.shipping_pricing``)."""

    carrier_cents: int = 0
    packaging_cents: int = 0
    margin_cents: int = 0
    total_cents: int = 0
    customer_total_cents: int = 0
    customer_eta_min_days: int | None = None
    customer_eta_max_days: int | None = None
    corrected: bool = False
    correction_reason: str | None = None


class RateUsed(BaseModel):
    """Mirror of the accepted rate (``metadata.shipping.rate_used``)."""

    model_config = ConfigDict(extra="allow")

    external_rate_id: str | None = None
    provider: str | None = None
    service: str | None = None
    eta_min_days: int | None = None
    eta_max_days: int | None = None
    carrier_cents: int | None = None
    price_cents: int | None = None
    customer_total_cents: int | None = None
    selection_source: str | None = None  # "checkout" | "admin"


class RateUsedValidationResult(BaseModel):
    is_valid: bool
    has_canonical_pricing: bool
    rate_used_has_numbers: bool
    discrepancy: bool


class ShippingPackageSelection(BaseModel):
    """Package chosen by an operator (``metadata.shipping_package``)."""

    mode: str  # "profile" | "custom"
    profile: str | None = None
    length_cm: float
    width_cm: float
    height_cm: float
    weight_g: float


class ShippingMetadataView(BaseModel):
    """Typed, read-only projection of the freeform order metadata."""

    address: ResolvedShippingAddress | None = None
    pricing: ShippingPricing | None = None
    rate_used: RateUsed | None = None
    package: ShippingPackageSelection | None = None
    last_write: dict[str, Any] | None = None
