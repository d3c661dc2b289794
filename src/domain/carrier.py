"""DTOs for the shipping aggregator quotation and label APIs."""

from enum import StrEnum

from pydantic import BaseModel, Field


class AreaLevel3Source(StrEnum):
    config = "config"
    alcaldia = "alcaldia"
    address2 = "address2"
    address1 = "address1"
    none = "none"


class QuotationAddress(BaseModel):
    state: str
    province: str  # alias of state expected by the aggregator
    city: str
    country: str = "MX"
    zip: str
    neighborhood: str | None = None  # area_level3 (colonia)
    name: str | None = None
    phone: str | None = None
    email: str | None = None
    address1: str | None = None
    address2: str | None = None


class Parcel(BaseModel):
    weight: float  # kilograms
    distance_unit: str = "CM"
    mass_unit: str = "KG"
    height: int = Field(..., ge=1)
    width: int = Field(..., ge=1)
    length: int = Field(..., ge=1)


class QuotationPayload(BaseModel):
    address_from: QuotationAddress
    address_to: QuotationAddress
    parcels: list[Parcel]
    declared_value: float = 100
    order_id: str


class AddressDiagnostic(BaseModel):
    postal_code_present: bool
    city: str
    state: str
    country_code: str
    street1_len: int
    area_level3_len: int
    area_level3_source: AreaLevel3Source


class PackageDiagnostic(BaseModel):
    length_cm: int
    width_cm: int
    height_cm: int
    weight_g: int  # after the minimum billable clamp
    was_clamped: bool
    min_billable_weight_g: int


class QuotationDiagnostic(BaseModel):
    """PII-free summary of a quotation request, safe to log."""

    origin: AddressDiagnostic
    destination: AddressDiagnostic
    pkg: PackageDiagnostic


class CarrierRate(BaseModel):
    external_rate_id: str
    provider: str
    service: str
    price_cents: int = Field(..., ge=0)
    currency: str = "MXN"
    eta_min_days: int | None = None
    eta_max_days: int | None = None


class LabelResult(BaseModel):
    shipment_id: str | None = None
    tracking_number: str | None = None
    label_url: str | None = None
    carrier: str | None = None
