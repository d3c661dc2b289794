import httpx
from loguru import logger

from src.domain.carrier import CarrierRate, LabelResult, QuotationPayload
from src.shared.decorators import log_errors


class AggregatorAPIError(Exception):
    """Raised when the shipping aggregator returns a non-2xx or an error body."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _to_int(value: object) -> int | None:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


class ShippingAggregatorClient:
    """Thin httpx wrapper for the aggregator's quotation and shipment endpoints.

    No retries happen here; a failed call surfaces to the caller.
    """

    QUOTATIONS_PATH = "/api/v1/quotations"
    SHIPMENTS_PATH = "/api/v1/shipments"

    def __init__(self, client: httpx.Client, base_url: str, api_key: str) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def _post(self, path: str, payload: dict) -> dict:
        response = self._client.post(
            self._base_url + path, headers=self._headers, json=payload
        )
        if not response.is_success:
            raise AggregatorAPIError(
                f"Aggregator API error {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        body: dict = response.json()
        if errors := body.get("errors"):
            raise AggregatorAPIError(f"Aggregator returned errors: {errors}")
        return body

    @log_errors
    def quote(self, payload: QuotationPayload) -> list[CarrierRate]:
        """POST a quotation and return the successful rates, cheapest first.

        Raises:
            AggregatorAPIError: on non-2xx responses or an ``errors`` body.
        """
        body = self._post(
            self.QUOTATIONS_PATH, {"quotation": payload.model_dump(mode="json")}
        )

        rates: list[CarrierRate] = []
        for raw in body.get("rates", []):
            if raw.get("success") is False or raw.get("total") in (None, ""):
                continue
            try:
                price_cents = round(float(raw["total"]) * 100)
            except (TypeError, ValueError):
                logger.warning(f"[Aggregator] Skipping rate {raw.get('id')} with bad total")
                continue
            days = _to_int(raw.get("days"))
            rates.append(
                CarrierRate(
                    external_rate_id=str(raw["id"]),
                    provider=raw.get("provider_name") or "unknown",
                    service=raw.get("provider_service_name") or "unknown",
                    price_cents=price_cents,
                    currency=raw.get("currency_code") or "MXN",
                    eta_min_days=days,
                    eta_max_days=days,
                )
            )

        logger.info(
            f"[Aggregator] Quotation for {payload.order_id} returned {len(rates)} rate(s)"
        )
        return sorted(
            rates,
            key=lambda r: (r.price_cents, r.eta_min_days if r.eta_min_days is not None else 10**6),
        )

    @log_errors
    def create_label(self, rate_id: str, payload: QuotationPayload) -> LabelResult:
        """Buy the label for ``rate_id``.

        Raises:
            AggregatorAPIError: on non-2xx responses or an ``errors`` body.
        """
        shipment = {
            "rate_id": rate_id,
            "address_from": payload.address_from.model_dump(mode="json", exclude_none=True),
            "address_to": payload.address_to.model_dump(mode="json", exclude_none=True),
            "parcels": [p.model_dump(mode="json") for p in payload.parcels],
            "reference": payload.order_id,
        }
        body = self._post(self.SHIPMENTS_PATH, {"shipment": shipment})

        data = body.get("data") or {}
        attributes = data.get("attributes") or {}
        result = LabelResult(
            shipment_id=str(data["id"]) if data.get("id") is not None else None,
            tracking_number=attributes.get("master_tracking_number")
            or attributes.get("tracking_number"),
            label_url=attributes.get("label_url"),
            carrier=attributes.get("carrier_name"),
        )
        logger.info(
            f"[Aggregator] Label created for {payload.order_id} (shipment {result.shipment_id})"
        )
        return result
