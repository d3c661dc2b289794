import json
import re
import sys
from collections.abc import Mapping

from loguru import logger

MAX_LOG_VALUE_LENGTH = 1000

_LINE_BREAKS = re.compile(r"[\r\n\t]")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def sanitize_for_log(value: object, max_length: int = MAX_LOG_VALUE_LENGTH) -> str:
    """Render ``value`` as a single safe log token.

    Mappings and lists are JSON-encoded, the result is truncated to
    ``max_length`` characters, line breaks and tabs become spaces and any
    other control character is dropped.
    """
    if value is None:
        return "None"
    if isinstance(value, str):
        text = value
    elif isinstance(value, (Mapping, list, tuple)):
        try:
            text = json.dumps(value, default=str, ensure_ascii=False)
        except (TypeError, ValueError):
            text = str(value)
    else:
        text = str(value)

    if len(text) > max_length:
        text = text[:max_length] + "...[truncated]"

    text = _LINE_BREAKS.sub(" ", text)
    return _CONTROL_CHARS.sub("", text)


def sanitize_mapping_for_log(
    values: Mapping[str, object], max_length: int = MAX_LOG_VALUE_LENGTH
) -> dict[str, str]:
    return {key: sanitize_for_log(val, max_length) for key, val in values.items()}


def configure_logging(level: str = "INFO") -> None:
    """Replace loguru's default sink with one at ``level`` that shows bound extras."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
            "{name}:{function} - <level>{message}</level> | {extra}"
        ),
    )
