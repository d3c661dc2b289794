"""Tests for MetadataWriter: fresh-read merging, conditional writes and the post-write audit."""

from datetime import UTC, datetime
from typing import Any
from unittest.mock import MagicMock

import pytest
from loguru import logger

from src.application.metadata_writer import MetadataWriter
from src.application.rate_used_merge import CentsPreservingRateUsed
from src.domain.errors import ConcurrentMetadataUpdateError
from src.domain.order import OrderRecord
from src.infrastructure.order_repository import OrderRepository

FIXED_NOW = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)


class InMemoryOrders:
    """Order storage that enforces the ``updated_at`` precondition like the REST API."""

    def __init__(self, metadata: dict[str, Any]) -> None:
        self.record = OrderRecord(id="order-1", metadata=metadata, updated_at="v1")
        self.writes: list[dict[str, Any]] = []
        self.before_write: list = []  # callables run once, just before the next write
        self._version = 1

    def get_order(self, order_id: str) -> OrderRecord:
        return self.record.model_copy(deep=True)

    def concurrent_write(self, metadata: dict[str, Any]) -> None:
        self._version += 1
        self.record = OrderRecord(
            id=self.record.id, metadata=metadata, updated_at=f"v{self._version}"
        )

    def update_metadata(self, order_id, metadata, expected_updated_at, extra_fields=None):
        if self.before_write:
            self.before_write.pop(0)()
        if expected_updated_at != self.record.updated_at:
            raise ConcurrentMetadataUpdateError(order_id, expected_updated_at)
        self.writes.append({"metadata": metadata, "extra_fields": extra_fields})
        self.concurrent_write(metadata)
        return self.record


def _make_writer(orders, max_attempts: int = 3) -> MetadataWriter:
    """Helper: writer with the cents preserver and a fixed clock."""
    return MetadataWriter(
        orders, CentsPreservingRateUsed(), max_attempts=max_attempts, clock=lambda: FIXED_NOW
    )


def _set_notes(text: str):
    def mutate(metadata: dict[str, Any]) -> dict[str, Any]:
        return {**metadata, "notes": text}

    return mutate


# ---------------------------------------------------------------------------
# Merge semantics
# ---------------------------------------------------------------------------


def test_merge_keeps_keys_written_by_others() -> None:
    """Keys outside the mutated one survive the write."""
    orders = InMemoryOrders({"contact_name": "Clínica Norte", "shipping": {"rate_id": "r-1"}})

    outcome = _make_writer(orders).merge("order-1", "notes", _set_notes("fragile"))

    stored = orders.record.metadata
    assert stored["notes"] == "fragile"
    assert stored["contact_name"] == "Clínica Norte"
    assert stored["shipping"]["rate_id"] == "r-1"
    assert outcome.attempts == 1
    assert outcome.order.metadata == stored


def test_last_write_stamp_is_recorded() -> None:
    """Every write stamps ``shipping._last_write`` with the route and time."""
    orders = InMemoryOrders({})

    _make_writer(orders).merge("order-1", "set-shipping-package", _set_notes("x"))

    assert orders.record.metadata["shipping"]["_last_write"] == {
        "route": "set-shipping-package",
        "at": FIXED_NOW.isoformat(),
    }


def test_last_write_stamp_keeps_flags_of_same_route() -> None:
    """Flags set by the mutation for the same route are kept in the stamp."""
    orders = InMemoryOrders({})

    def mutate(metadata: dict[str, Any]) -> dict[str, Any]:
        return {**metadata, "shipping": {"_last_write": {"route": "apply-rate", "canonical_detected": True}}}

    _make_writer(orders).merge("order-1", "apply-rate", mutate)

    stamp = orders.record.metadata["shipping"]["_last_write"]
    assert stamp["canonical_detected"] is True
    assert stamp["route"] == "apply-rate"


def test_extra_fields_are_forwarded() -> None:
    """Plain columns travel with the metadata in the same update."""
    orders = InMemoryOrders({})

    _make_writer(orders).merge(
        "order-1", "create-label", _set_notes("x"), extra_fields={"shipping_status": "label_created"}
    )

    assert orders.writes[0]["extra_fields"] == {"shipping_status": "label_created"}


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


def test_lost_race_rereads_and_keeps_the_other_writers_change() -> None:
    """A concurrent pricing write between read and write is merged in, not clobbered."""
    orders = InMemoryOrders({"shipping": {}})
    orders.before_write.append(
        lambda: orders.concurrent_write(
            {
                "shipping_pricing": {"total_cents": 5000, "carrier_cents": 4500},
                "shipping": {"rate_used": {"price_cents": 5000, "carrier_cents": 4500}},
            }
        )
    )

    outcome = _make_writer(orders).merge("order-1", "notes", _set_notes("fragile"))

    stored = orders.record.metadata
    assert outcome.attempts == 2
    assert stored["notes"] == "fragile"
    assert stored["shipping_pricing"]["total_cents"] == 5000
    assert stored["shipping"]["rate_used"]["price_cents"] == 5000
    assert outcome.validation.discrepancy is False


def test_gives_up_after_max_attempts() -> None:
    """Losing every attempt re-raises the concurrency error."""
    repository = MagicMock(spec=OrderRepository)
    repository.get_order.return_value = OrderRecord(id="order-1", metadata={}, updated_at="v1")
    repository.update_metadata.side_effect = ConcurrentMetadataUpdateError("order-1", "v1")

    with pytest.raises(ConcurrentMetadataUpdateError):
        _make_writer(repository, max_attempts=2).merge("order-1", "notes", _set_notes("x"))

    assert repository.update_metadata.call_count == 2
    assert repository.get_order.call_count == 2


def test_write_is_conditioned_on_fresh_updated_at() -> None:
    """The token passed to storage is the ``updated_at`` of the fresh read."""
    repository = MagicMock(spec=OrderRepository)
    repository.get_order.return_value = OrderRecord(
        id="order-1", metadata={}, updated_at="2025-03-01T11:59:00+00:00"
    )

    _make_writer(repository).merge("order-1", "notes", _set_notes("x"))

    args = repository.update_metadata.call_args.args
    assert args[0] == "order-1"
    assert args[2] == "2025-03-01T11:59:00+00:00"


# ---------------------------------------------------------------------------
# Post-write audit
# ---------------------------------------------------------------------------


def test_preserver_keeps_cents_dropped_by_mutation() -> None:
    """A mutation that rebuilds ``shipping`` without cents leaves stored cents intact."""
    orders = InMemoryOrders(
        {
            "shipping_pricing": {"total_cents": 5000, "carrier_cents": 4500},
            "shipping": {"rate_used": {"price_cents": 5000, "carrier_cents": 4500, "provider": "dhl"}},
        }
    )

    def rebuild_shipping(metadata: dict[str, Any]) -> dict[str, Any]:
        return {**metadata, "shipping": {"rate_used": {"provider": "dhl"}}}

    outcome = _make_writer(orders).merge("order-1", "requote", rebuild_shipping)

    assert orders.record.metadata["shipping"]["rate_used"]["price_cents"] == 5000
    assert outcome.validation.is_valid is True


def test_post_write_discrepancy_is_reported() -> None:
    """Storage returning canonical cents without a mirror is flagged, not raised."""
    repository = MagicMock(spec=OrderRepository)
    repository.get_order.side_effect = [
        OrderRecord(id="order-1", metadata={}, updated_at="v1"),
        OrderRecord(
            id="order-1",
            metadata={"shipping_pricing": {"total_cents": 5000}, "shipping": {}},
            updated_at="v2",
        ),
    ]

    outcome = _make_writer(repository).merge("order-1", "notes", _set_notes("x"))

    assert outcome.validation.discrepancy is True
    assert outcome.order.updated_at == "v2"


def test_in_place_mutation_does_not_leak_into_fresh_snapshot() -> None:
    """Nulling cents in place still leaves the stored cents to fall back on."""
    orders = InMemoryOrders(
        {"shipping": {"rate_used": {"price_cents": 5000, "carrier_cents": 4500, "provider": "dhl"}}}
    )

    def null_cents_in_place(metadata: dict[str, Any]) -> dict[str, Any]:
        metadata["shipping"]["rate_used"]["price_cents"] = None
        metadata["shipping"]["rate_used"]["carrier_cents"] = None
        return metadata

    _make_writer(orders).merge("order-1", "requote", null_cents_in_place)

    rate_used = orders.record.metadata["shipping"]["rate_used"]
    assert rate_used["price_cents"] == 5000
    assert rate_used["carrier_cents"] == 4500
    assert rate_used["provider"] == "dhl"


def test_each_lost_race_is_logged() -> None:
    """One warning per conflicting attempt, numbered against the maximum."""
    messages: list[str] = []
    sink_id = logger.add(lambda message: messages.append(message.record["message"]), level="WARNING")
    repository = MagicMock(spec=OrderRepository)
    repository.get_order.return_value = OrderRecord(id="order-1", metadata={}, updated_at="v1")
    repository.update_metadata.side_effect = ConcurrentMetadataUpdateError("order-1", "v1")

    try:
        with pytest.raises(ConcurrentMetadataUpdateError):
            _make_writer(repository, max_attempts=3).merge("order-1", "notes", _set_notes("x"))
    finally:
        logger.remove(sink_id)

    lost = [m for m in messages if "changed during write" in m]
    assert len(lost) == 3
    assert lost[-1].endswith("(attempt 3/3)")
