from loguru import logger

from src.application.rate_used_guard import validate_rate_used_persistence
from src.application.shipping_service import ShippingService
from src.domain.errors import ShippingCoreError
from src.domain.interfaces import IOrderRepository
from src.shared.logs import sanitize_for_log


class Executor:
    """Runs the operator commands: package preview, quoting and persistence audit."""

    def __init__(self, shipping_service: ShippingService, repository: IOrderRepository) -> None:
        self._shipping_service = shipping_service
        self._repository = repository

    def package(self, order_id: str) -> None:
        package = self._shipping_service.compute_package(order_id)
        logger.info(
            f"{order_id} | {package.length_cm}x{package.width_cm}x{package.height_cm} cm "
            f"({package.dims_source}) | mass {package.mass_weight_g:.0f} g | "
            f"volumetric {package.volumetric_weight_kg:.2f} kg | "
            f"billable {package.billable_weight_kg:.2f} kg"
        )

    def quote(self, order_id: str) -> None:
        quote = self._shipping_service.quote_rates(order_id)
        logger.info(
            f"{order_id}: {len(quote.rates)} rate(s) for {quote.package.weight_g} g"
        )
        for rate in quote.rates:
            logger.info(
                f"  {rate.provider} {rate.service} | {rate.price_cents / 100:.2f} "
                f"{rate.currency} | {rate.eta_min_days}-{rate.eta_max_days} days | {rate.external_rate_id}"
            )

    def audit(self, order_ids: list[str]) -> int:
        """Check stored metadata of each order; return the number of discrepancies."""
        discrepancies = 0
        for order_id in order_ids:
            try:
                order = self._repository.get_order(order_id)
            except ShippingCoreError as exc:
                logger.warning(f"{sanitize_for_log(order_id)}: skipped: {exc}")
                continue
            result = validate_rate_used_persistence(order.metadata, order.id, "audit")
            if result.discrepancy:
                discrepancies += 1
            logger.info(
                f"{order_id}: canonical={result.has_canonical_pricing} "
                f"mirror={result.rate_used_has_numbers} valid={result.is_valid}"
            )
        logger.info(f"Audit done: {discrepancies}/{len(order_ids)} order(s) with discrepancies")
        return discrepancies
