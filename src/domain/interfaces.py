from typing import Any, Protocol

from .carrier import CarrierRate, LabelResult, QuotationPayload
from .order import OrderLineItem, OrderRecord, ProductShippingAttributes


class IOrderRepository(Protocol):
    def get_order(self, order_id: str) -> OrderRecord: ...

    def get_order_items(self, order_id: str) -> list[OrderLineItem]: ...

    def get_products_shipping(
        self, product_ids: list[str]
    ) -> dict[str, ProductShippingAttributes]: ...

    def update_metadata(
        self,
        order_id: str,
        metadata: dict[str, Any],
        expected_updated_at: str | None,
        extra_fields: dict[str, Any] | None = None,
    ) -> OrderRecord:
        """Write ``metadata`` only if the row's ``updated_at`` still equals
        ``expected_updated_at``; raise ``ConcurrentMetadataUpdateError`` otherwise."""
        ...


class IRateUsedPreserver(Protocol):
    def preserve_rate_used(
        self, fresh: dict[str, Any] | None, incoming: dict[str, Any]
    ) -> dict[str, Any]:
        """Return ``incoming`` with mirror cents that cannot regress to null."""
        ...


class ICarrierClient(Protocol):
    def quote(self, payload: QuotationPayload) -> list[CarrierRate]: ...

    def create_label(self, rate_id: str, payload: QuotationPayload) -> LabelResult: ...
