class ShippingCoreError(Exception):
    """Base class for errors raised by the shipping services."""


class OrderNotFoundError(ShippingCoreError):
    """Raised when an order id does not match any stored order."""


class ConcurrentMetadataUpdateError(ShippingCoreError):
    """Raised when the row changed between the fresh read and the conditional write."""

    def __init__(self, order_id: str, expected_updated_at: str | None) -> None:
        super().__init__(
            f"Order {order_id} metadata changed since updated_at={expected_updated_at}"
        )
        self.order_id = order_id
        self.expected_updated_at = expected_updated_at


class LabelAlreadyCreatedError(ShippingCoreError):
    """Raised when a change would invalidate an existing shipping label."""


class InvalidShippingPackageError(ShippingCoreError):
    """Raised when an operator-selected package is malformed or out of range."""


class ShippingAddressMissingError(ShippingCoreError):
    """Raised when no metadata candidate yields a usable shipping address."""


class RateNotSelectedError(ShippingCoreError):
    """Raised when a label is requested for an order without an accepted rate."""
