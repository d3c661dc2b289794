from typing import Any

from pydantic import BaseModel, Field, field_validator


class OrderLineItem(BaseModel):
    """One line of an order as far as packing is concerned."""

    product_id: str | None = None  # None for custom/ad-hoc lines
    qty: int = 1

    @field_validator("product_id", mode="before")
    @classmethod
    def _blank_product_id_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("qty", mode="before")
    @classmethod
    def _qty_at_least_one(cls, value: Any) -> Any:
        # Stored rows occasionally carry 0/null quantities; a shipped line is at least one unit.
        if value is None or isinstance(value, bool):
            return 1
        try:
            qty = int(value)
        except (TypeError, ValueError):
            return 1
        return qty if qty >= 1 else 1


class ProductDimensions(BaseModel):
    """Per-product dimension data, as the dimension estimator consumes it."""

    length_cm: float | None = None
    width_cm: float | None = None
    height_cm: float | None = None
    shipping_profile: str | None = None

    def usable_triple(self) -> tuple[float, float, float] | None:
        """Return the triple only when all three sides are present and > 0."""
        sides = (self.length_cm, self.width_cm, self.height_cm)
        if all(side is not None and side > 0 for side in sides):
            return sides  # type: ignore[return-value]
        return None


class ProductShippingAttributes(BaseModel):
    """Shipping columns of a catalog product, keyed by product id by the caller."""

    shipping_weight_g: float | None = None
    shipping_length_cm: float | None = None
    shipping_width_cm: float | None = None
    shipping_height_cm: float | None = None
    shipping_profile: str | None = None

    def usable_weight_g(self) -> float | None:
        weight = self.shipping_weight_g
        return weight if weight is not None and weight > 0 else None

    def dimensions(self) -> ProductDimensions:
        return ProductDimensions(
            length_cm=self.shipping_length_cm,
            width_cm=self.shipping_width_cm,
            height_cm=self.shipping_height_cm,
            shipping_profile=self.shipping_profile,
        )


class OrderRecord(BaseModel):
    """The slice of an ``orders`` row this package reads and writes."""

    id: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    updated_at: str | None = None  # also the optimistic-concurrency token
    shipping_tracking_number: str | None = None
    shipping_label_url: str | None = None

    @field_validator("metadata", mode="before")
    @classmethod
    def _metadata_defaults_to_empty(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    @property
    def has_label(self) -> bool:
        return bool(self.shipping_tracking_number or self.shipping_label_url)
