from datetime import UTC, datetime
from typing import Any

import httpx
from loguru import logger

from src.domain.errors import ConcurrentMetadataUpdateError, OrderNotFoundError
from src.domain.order import OrderLineItem, OrderRecord, ProductShippingAttributes
from src.shared.decorators import log_errors


class StorageAPIError(Exception):
    """Raised when the storage REST API returns a non-2xx response."""


class OrderRepository:
    """Reads orders/products and writes order metadata through the PostgREST API."""

    ORDER_COLUMNS = "id,metadata,updated_at,shipping_tracking_number,shipping_label_url"
    PRODUCT_COLUMNS = (
        "id,shipping_weight_g,shipping_length_cm,shipping_width_cm,"
        "shipping_height_cm,shipping_profile"
    )

    def __init__(self, client: httpx.Client, base_url: str, service_key: str) -> None:
        self._client = client
        self._rest_url = base_url.rstrip("/") + "/rest/v1"
        self._headers = {
            "apikey": service_key,
            "Authorization": f"Bearer {service_key}",
            "Content-Type": "application/json",
        }

    @log_errors
    def _request(
        self,
        method: str,
        table: str,
        params: dict[str, str],
        json: dict | None = None,
        headers: dict[str, str] | None = None,
    ) -> list[dict]:
        response = self._client.request(
            method,
            f"{self._rest_url}/{table}",
            params=params,
            json=json,
            headers={**self._headers, **(headers or {})},
        )
        if not response.is_success:
            raise StorageAPIError(
                f"Storage API error {response.status_code} on {table}: {response.text}"
            )
        body = response.json()
        return body if isinstance(body, list) else [body]

    def get_order(self, order_id: str) -> OrderRecord:
        """Return the order row.

        Raises:
            OrderNotFoundError: if no row has ``order_id``.
        """
        rows = self._request(
            "GET", "orders", {"id": f"eq.{order_id}", "select": self.ORDER_COLUMNS}
        )
        if not rows:
            raise OrderNotFoundError(f"Order {order_id} not found")
        return OrderRecord.model_validate(rows[0])

    def get_order_items(self, order_id: str) -> list[OrderLineItem]:
        rows = self._request(
            "GET", "order_items", {"order_id": f"eq.{order_id}", "select": "product_id,qty"}
        )
        return [OrderLineItem.model_validate(row) for row in rows]

    def get_products_shipping(
        self, product_ids: list[str]
    ) -> dict[str, ProductShippingAttributes]:
        """Bulk-fetch shipping attributes; unknown ids are simply absent from the result."""
        unique_ids = sorted({pid for pid in product_ids if pid})
        if not unique_ids:
            return {}
        rows = self._request(
            "GET",
            "products",
            {"id": f"in.({','.join(unique_ids)})", "select": self.PRODUCT_COLUMNS},
        )
        return {
            str(row["id"]): ProductShippingAttributes.model_validate(row) for row in rows
        }

    def update_metadata(
        self,
        order_id: str,
        metadata: dict[str, Any],
        expected_updated_at: str | None,
        extra_fields: dict[str, Any] | None = None,
    ) -> OrderRecord:
        """Conditionally replace the metadata of ``order_id``.

        The PATCH is filtered on ``updated_at`` as well as ``id``; if another
        writer bumped ``updated_at`` since ``expected_updated_at`` was read, no
        row matches and nothing is written.

        Raises:
            ConcurrentMetadataUpdateError: if the row changed since it was read.
        """
        params = {"id": f"eq.{order_id}", "select": self.ORDER_COLUMNS}
        params["updated_at"] = (
            f"eq.{expected_updated_at}" if expected_updated_at is not None else "is.null"
        )
        body = {
            **(extra_fields or {}),
            "metadata": metadata,
            "updated_at": datetime.now(UTC).isoformat(),
        }
        rows = self._request(
            "PATCH", "orders", params, json=body, headers={"Prefer": "return=representation"}
        )
        if not rows:
            raise ConcurrentMetadataUpdateError(order_id, expected_updated_at)

        logger.debug(f"Order {order_id} metadata written")
        return OrderRecord.model_validate(rows[0])
