from typing import Any

from loguru import logger
from pydantic import BaseModel

from src.application.address_resolver import resolve_shipping_address
from src.application.carrier_request import (
    MIN_BILLABLE_WEIGHT_G,
    OriginAddress,
    build_rates_request,
)
from src.application.metadata_mapper import build_rate_selection, parse_shipping_metadata
from src.application.metadata_writer import MetadataWriteOutcome, MetadataWriter
from src.application.package_calculator import (
    DEFAULT_ITEM_WEIGHT_G,
    compute_shipping_package,
    package_from_selection,
)
from src.domain.carrier import CarrierRate, LabelResult, QuotationPayload
from src.domain.errors import (
    InvalidShippingPackageError,
    LabelAlreadyCreatedError,
    RateNotSelectedError,
    ShippingAddressMissingError,
)
from src.domain.interfaces import ICarrierClient, IOrderRepository
from src.domain.order import OrderRecord
from src.domain.package_profiles import (
    PACKAGE_PROFILES,
    SELECTABLE_PROFILES,
    PackageProfileKey,
    validate_package_dimensions,
)
from src.domain.shipping import ShippingPackageResult, ShippingPackageSelection
from src.shared.logs import sanitize_for_log


class CustomPackage(BaseModel):
    length_cm: float
    width_cm: float
    height_cm: float
    weight_g: float


class RateQuote(BaseModel):
    package: ShippingPackageResult
    rates: list[CarrierRate]


class ShippingService:
    """Shipping operations on a stored order: package, quotes, rate selection and labels."""

    def __init__(
        self,
        repository: IOrderRepository,
        carrier: ICarrierClient,
        writer: MetadataWriter,
        origin: OriginAddress,
        default_item_weight_g: float = DEFAULT_ITEM_WEIGHT_G,
        min_billable_weight_g: int = MIN_BILLABLE_WEIGHT_G,
    ) -> None:
        self._repository = repository
        self._carrier = carrier
        self._writer = writer
        self._origin = origin
        self._default_item_weight_g = default_item_weight_g
        self._min_billable_weight_g = min_billable_weight_g

    def compute_package(self, order_id: str) -> ShippingPackageResult:
        """Compute the parcel for ``order_id`` from its items and the catalog."""
        items = self._repository.get_order_items(order_id)
        products = self._repository.get_products_shipping(
            [item.product_id for item in items if item.product_id]
        )
        package = compute_shipping_package(items, products, self._default_item_weight_g)
        if package.missing_weight_fields_count or package.missing_fields_count:
            logger.warning(
                f"Order {sanitize_for_log(order_id)}: "
                f"{package.missing_weight_fields_count} unit(s) without "
                f"weight, {package.missing_fields_count} item(s) without dimensions "
                f"(dims_source={package.dims_source})"
            )
        return package

    def _package_for(self, order: OrderRecord) -> ShippingPackageResult:
        """The operator's stored package when there is one, else the computed parcel."""
        selection = parse_shipping_metadata(order.metadata).package
        if selection is not None:
            return package_from_selection(selection)
        return self.compute_package(order.id)

    def _quotation_payload(
        self, order: OrderRecord, require_name: bool
    ) -> tuple[QuotationPayload, ShippingPackageResult]:
        resolved = resolve_shipping_address(order, require_name=require_name)
        if resolved is None:
            raise ShippingAddressMissingError(
                f"Order {order.id} has no complete shipping address"
            )
        package = self._package_for(order)
        payload, diagnostic = build_rates_request(
            self._origin,
            resolved.address,
            package,
            order_id=order.id,
            min_billable_weight_g=self._min_billable_weight_g,
        )
        logger.debug(
            f"Order {sanitize_for_log(order.id)} quotation built from {resolved.source_key} "
            f"with {package.dims_source} package: "
            f"{diagnostic.model_dump_json()}"
        )
        return payload, package

    def quote_rates(self, order_id: str) -> RateQuote:
        """Quote carrier rates for ``order_id``.

        The operator's stored ``shipping_package`` is quoted when present,
        otherwise the parcel computed from the catalog.

        Raises:
            ShippingAddressMissingError: if no complete address is stored.
            AggregatorAPIError: if the aggregator call fails.
        """
        order = self._repository.get_order(order_id)
        payload, package = self._quotation_payload(order, require_name=False)
        return RateQuote(package=package, rates=self._carrier.quote(payload))

    def apply_rate(
        self,
        order_id: str,
        rate: CarrierRate,
        customer_total_cents: int | None = None,
    ) -> MetadataWriteOutcome:
        """Make ``rate`` the order's accepted rate, in both pricing representations.

        Raises:
            LabelAlreadyCreatedError: if the order already has a label.
        """
        self._ensure_no_label(self._repository.get_order(order_id), "rate")
        pricing, rate_used = build_rate_selection(rate, customer_total_cents)

        def mutate(metadata: dict[str, Any]) -> dict[str, Any]:
            shipping = dict(metadata.get("shipping") or {})
            shipping.update(
                rate={
                    "external_id": rate.external_rate_id,
                    "provider": rate.provider,
                    "service": rate.service,
                    "eta_min_days": rate.eta_min_days,
                    "eta_max_days": rate.eta_max_days,
                },
                rate_id=rate.external_rate_id,
                rate_used=rate_used,
                price_cents=pricing["total_cents"],
                _last_write={"route": "apply-rate", "canonical_detected": True},
            )
            return {**metadata, "shipping": shipping, "shipping_pricing": pricing}

        outcome = self._writer.merge(
            order_id,
            "apply-rate",
            mutate,
            extra_fields={
                "shipping_rate_ext_id": rate.external_rate_id,
                "shipping_service_name": rate.service,
                "shipping_price_cents": rate.price_cents,
                "shipping_status": "rate_selected",
            },
        )
        logger.info(
            f"Order {sanitize_for_log(order_id)}: rate {rate.provider}/{rate.service} applied "
            f"({pricing['total_cents']} cents)"
        )
        return outcome

    def set_shipping_package(
        self,
        order_id: str,
        profile: str | None = None,
        custom: CustomPackage | None = None,
    ) -> MetadataWriteOutcome:
        """Record the operator's package choice: a named profile or custom dimensions.

        Raises:
            InvalidShippingPackageError: if both or neither of ``profile`` and
                ``custom`` are given, the profile is not selectable, or the
                custom package is out of range.
            LabelAlreadyCreatedError: if the order already has a label.
        """
        selection = self._package_selection(profile, custom)
        self._ensure_no_label(self._repository.get_order(order_id), "package")

        def mutate(metadata: dict[str, Any]) -> dict[str, Any]:
            return {**metadata, "shipping_package": selection.model_dump()}

        return self._writer.merge(order_id, "set-shipping-package", mutate)

    def create_label(self, order_id: str) -> LabelResult:
        """Buy the label for the order's accepted rate and store tracking data.

        Raises:
            RateNotSelectedError: if the order has no accepted rate.
            ShippingAddressMissingError: if the address lacks a recipient name.
            LabelAlreadyCreatedError: if a label already exists.
        """
        order = self._repository.get_order(order_id)
        self._ensure_no_label(order, "label")
        rate_used = parse_shipping_metadata(order.metadata).rate_used
        if rate_used is None or not rate_used.external_rate_id:
            raise RateNotSelectedError(f"Order {order_id} has no accepted rate")

        payload, _ = self._quotation_payload(order, require_name=True)
        label = self._carrier.create_label(rate_used.external_rate_id, payload)

        def mutate(metadata: dict[str, Any]) -> dict[str, Any]:
            shipping = dict(metadata.get("shipping") or {})
            shipping["label"] = label.model_dump(exclude_none=True)
            return {**metadata, "shipping": shipping}

        self._writer.merge(
            order_id,
            "create-label",
            mutate,
            extra_fields={
                "shipping_tracking_number": label.tracking_number,
                "shipping_label_url": label.label_url,
                "shipping_status": "label_created",
            },
        )
        return label

    @staticmethod
    def _ensure_no_label(order: OrderRecord, what: str) -> None:
        if order.has_label:
            raise LabelAlreadyCreatedError(
                f"Order {order.id} already has a label; cancel it before changing the {what}"
            )

    @staticmethod
    def _package_selection(
        profile: str | None, custom: CustomPackage | None
    ) -> ShippingPackageSelection:
        if (profile is None) == (custom is None):
            raise InvalidShippingPackageError("Provide exactly one of profile or custom")

        if profile is not None:
            if profile not in {p.value for p in SELECTABLE_PROFILES}:
                allowed = ", ".join(p.value for p in SELECTABLE_PROFILES)
                raise InvalidShippingPackageError(
                    f"Invalid profile {profile!r}; expected one of {allowed}"
                )
            data = PACKAGE_PROFILES[PackageProfileKey(profile)]
            return ShippingPackageSelection(
                mode="profile",
                profile=profile,
                length_cm=data.length_cm,
                width_cm=data.width_cm,
                height_cm=data.height_cm,
                weight_g=data.weight_g,
            )

        error = validate_package_dimensions(
            custom.length_cm, custom.width_cm, custom.height_cm, custom.weight_g
        )
        if error:
            raise InvalidShippingPackageError(error)
        return ShippingPackageSelection(mode="custom", **custom.model_dump())
