"""Canonical parameter encoding: merge, filter, byte-order sort, join."""

import json
import logging
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote_plus

from pydantic import BaseModel

from paykernel.common.constants import BIZ_CONTENT_FIELD


logger = logging.getLogger(__name__)


def _json_default(value: Any):
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, exclude_none=True)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_json_string(value: Any) -> str:
    """
    Serialize business parameters to compact JSON.

    Key order is kept as given; non-ASCII text is emitted unescaped.
    pydantic models anywhere in the value are dumped by alias with
    ``None`` fields omitted.
    """
    return json.dumps(
        value,
        ensure_ascii=False,
        separators=(",", ":"),
        default=_json_default,
    )


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


def _byte_order(key: str) -> bytes:
    return key.encode("utf-8")


def canonicalize(
    system_params: Optional[Mapping[str, Any]],
    biz_params: Optional[Mapping[str, Any]],
    text_params: Optional[Mapping[str, Any]],
) -> Dict[str, str]:
    """
    Merge the three parameter sets into one sorted mapping.

    Business parameters are folded into a single ``biz_content`` JSON entry;
    text parameters are merged last and win on key collisions. Entries with
    an empty key or value are dropped.

    Args:
        system_params: Protocol-level parameters (app_id, timestamp, ...)
        biz_params: Business payload, serialized as one JSON blob
        text_params: Extra flat parameters (notify_url, ...)

    Returns:
        New dict whose iteration order is the keys in UTF-8 byte order
    """
    merged: Dict[str, Any] = dict(system_params or {})
    if biz_params:
        merged[BIZ_CONTENT_FIELD] = to_json_string(biz_params)
    if text_params:
        merged.update(text_params)

    result = {}
    for key in sorted((k for k in merged if not _is_empty(k)), key=_byte_order):
        value = merged[key]
        if _is_empty(value):
            continue
        result[key] = value if isinstance(value, str) else str(value)
    return result


def sort_params(params: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """Filter and byte-order sort a single flat mapping."""
    return canonicalize(params, None, None)


def url_encode(value: str) -> str:
    """Form-urlencode a value the way the gateway does: space as +, only
    ``A-Za-z0-9.-*_`` left as-is."""
    return quote_plus(value, safe="*").replace("~", "%7E")


def build_query_string(sorted_map: Mapping[str, str]) -> str:
    """Join ``key=urlencode(value)`` pairs with ``&`` keeping the given order."""
    return "&".join(
        f"{key}={url_encode(value)}"
        for key, value in sorted_map.items()
        if not _is_empty(key) and not _is_empty(value)
    )


def build_sign_content(sorted_map: Mapping[str, str]) -> str:
    """Join raw ``key=value`` pairs with ``&``; this is the exact signer input."""
    content = "&".join(
        f"{key}={value}"
        for key, value in sorted_map.items()
        if not _is_empty(key) and not _is_empty(value)
    )
    logger.debug("Built sign content over %d parameters", len(sorted_map))
    return content
