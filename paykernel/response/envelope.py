"""Decode gateway responses and locate the payload node."""

import json
import logging
from typing import Any, Dict

from paykernel.common.constants import (
    BODY_FIELD,
    ERROR_RESPONSE,
    METHOD_FIELD,
    RESPONSE_SUFFIX,
)
from paykernel.common.errors import ProtocolMismatchError


logger = logging.getLogger(__name__)


def response_node_name(method: str) -> str:
    """``alipay.trade.query`` -> ``alipay_trade_query_response``"""
    return method.replace(".", "_") + RESPONSE_SUFFIX


def _reject_duplicate_keys(pairs):
    obj = {}
    for key, value in pairs:
        if key in obj:
            raise ProtocolMismatchError(f"Duplicate key {key!r} in response body")
        obj[key] = value
    return obj


def to_json_map(raw_body: str, method: str) -> Dict[str, Any]:
    """
    Decode a response body and tag it with the raw text and API method.

    The raw text is kept because signatures are checked over the original
    bytes, never over a re-serialization. Objects with duplicate keys are
    rejected so the decoded view and the signed text cannot disagree.

    Raises:
        ProtocolMismatchError: If the body is not a JSON object or repeats a key
    """
    try:
        envelope = json.loads(raw_body, object_pairs_hook=_reject_duplicate_keys)
    except ValueError as e:
        raise ProtocolMismatchError(f"Response body is not valid JSON: {e}") from e
    if not isinstance(envelope, dict):
        raise ProtocolMismatchError("Response body is not a JSON object")
    envelope[BODY_FIELD] = raw_body
    envelope[METHOD_FIELD] = method
    return envelope


def extract_response_model(envelope: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return the success node of an envelope, or its ``error_response`` node.

    The returned node is a copy carrying the raw body under ``http_body``.

    Raises:
        ProtocolMismatchError: If neither node exists
    """
    response_node = response_node_name(envelope[METHOD_FIELD])

    for node_name in (response_node, ERROR_RESPONSE):
        if node_name in envelope:
            node = envelope[node_name]
            if not isinstance(node, dict):
                raise ProtocolMismatchError(f"Response node {node_name} is not a JSON object")
            model = dict(node)
            model[BODY_FIELD] = envelope.get(BODY_FIELD)
            if node_name == ERROR_RESPONSE:
                logger.debug("Gateway returned %s for %s", ERROR_RESPONSE, envelope[METHOD_FIELD])
            return model

    raise ProtocolMismatchError(
        f"Unexpected response shape: neither {response_node} nor {ERROR_RESPONSE} node found"
    )
