"""Read-modify-write of ``orders.metadata``.

Every writer merges its own sub-key into metadata re-read immediately
before the write, never into a copy read at the start of the request. The
write is conditional on the ``updated_at`` seen in that re-read, so a
concurrent writer's change makes the update fail instead of being
overwritten; the writer then re-reads and tries again.
"""

import copy
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from loguru import logger
from pydantic import BaseModel
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
)

from src.application.metadata_mapper import metadata_snapshot
from src.application.rate_used_guard import validate_rate_used_persistence
from src.domain.errors import ConcurrentMetadataUpdateError
from src.domain.interfaces import IOrderRepository, IRateUsedPreserver
from src.domain.order import OrderRecord
from src.domain.shipping import RateUsedValidationResult
from src.shared.logs import sanitize_for_log

MetadataMutation = Callable[[dict[str, Any]], dict[str, Any]]


class MetadataWriteOutcome(BaseModel):
    order: OrderRecord
    validation: RateUsedValidationResult
    attempts: int


class MetadataWriter:
    """Applies metadata mutations with a fresh read, a conditional write and a post-write audit."""

    def __init__(
        self,
        repository: IOrderRepository,
        rate_used_preserver: IRateUsedPreserver,
        max_attempts: int = 3,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self._repository = repository
        self._preserver = rate_used_preserver
        self._max_attempts = max(1, max_attempts)
        self._clock = clock

    def merge(
        self,
        order_id: str,
        route_name: str,
        mutate: MetadataMutation,
        extra_fields: dict[str, Any] | None = None,
    ) -> MetadataWriteOutcome:
        """Apply ``mutate`` to the current metadata of ``order_id`` and persist it.

        ``mutate`` receives a deep copy of the freshly read metadata and
        returns the metadata to write; it is called once per attempt and must
        not have side effects. ``extra_fields`` are plain columns written in
        the same update.

        Raises:
            ConcurrentMetadataUpdateError: if every attempt lost the race.
            OrderNotFoundError: if the order disappears.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self._max_attempts),
            retry=retry_if_exception_type(ConcurrentMetadataUpdateError),
            after=self._log_lost_race(order_id, route_name),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                written, validation = self._write_once(
                    order_id, route_name, mutate, extra_fields
                )
        return MetadataWriteOutcome(
            order=written,
            validation=validation,
            attempts=attempt.retry_state.attempt_number,
        )

    def _write_once(
        self,
        order_id: str,
        route_name: str,
        mutate: MetadataMutation,
        extra_fields: dict[str, Any] | None,
    ) -> tuple[OrderRecord, RateUsedValidationResult]:
        fresh = self._repository.get_order(order_id)
        incoming = mutate(copy.deepcopy(fresh.metadata))
        final = self._preserver.preserve_rate_used(fresh.metadata, incoming)
        final = self._stamp_last_write(final, route_name)

        self._log_pre_write(route_name, fresh, final)
        self._repository.update_metadata(order_id, final, fresh.updated_at, extra_fields)

        # Audit what storage actually holds, not what we sent
        written = self._repository.get_order(order_id)
        return written, self._log_post_write(route_name, written)

    def _log_lost_race(
        self, order_id: str, route_name: str
    ) -> Callable[[RetryCallState], None]:
        def log(retry_state: RetryCallState) -> None:
            logger.warning(
                f"[{route_name}] Order {sanitize_for_log(order_id)} changed during "
                f"write (attempt {retry_state.attempt_number}/{self._max_attempts})"
            )

        return log

    def _stamp_last_write(self, metadata: dict[str, Any], route_name: str) -> dict[str, Any]:
        shipping = metadata.get("shipping")
        shipping = dict(shipping) if isinstance(shipping, dict) else {}
        previous = shipping.get("_last_write")
        stamp = {"route": route_name, "at": self._clock().isoformat()}
        if isinstance(previous, dict) and previous.get("route") == route_name:
            stamp = {**previous, **stamp}
        shipping["_last_write"] = stamp
        return {**metadata, "shipping": shipping}

    @staticmethod
    def _log_pre_write(route_name: str, fresh: OrderRecord, final: dict[str, Any]) -> None:
        logger.bind(
            order_id=sanitize_for_log(fresh.id),
            fresh_updated_at=sanitize_for_log(fresh.updated_at),
            fresh=sanitize_for_log(metadata_snapshot(fresh.metadata)),
            incoming=sanitize_for_log(metadata_snapshot(final)),
        ).debug(f"[{route_name}] PRE-WRITE")

    @staticmethod
    def _log_post_write(route_name: str, written: OrderRecord) -> RateUsedValidationResult:
        logger.bind(
            order_id=sanitize_for_log(written.id),
            updated_at=sanitize_for_log(written.updated_at),
            post_write=sanitize_for_log(metadata_snapshot(written.metadata)),
        ).debug(f"[{route_name}] POST-WRITE")
        return validate_rate_used_persistence(written.metadata, written.id, route_name)
