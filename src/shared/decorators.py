from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from loguru import logger

from src.shared.logs import sanitize_for_log

P = ParamSpec("P")
R = TypeVar("R")


def log_errors(func: Callable[P, R]) -> Callable[P, R]:
    """Log any exception escaping an external call, then re-raise it.

    Used on the storage and carrier adapters. The exception text frequently
    echoes remote payloads, so it is sanitized before it reaches the sink.

    Usage::

        @log_errors
        def quote(self, payload: QuotationPayload) -> list[CarrierRate]: ...
    """

    @wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return func(*args, **kwargs)
        except Exception as exc:
            logger.error(
                f"[{func.__qualname__}] {type(exc).__name__}: {sanitize_for_log(exc)}"
            )
            raise

    return wrapper
