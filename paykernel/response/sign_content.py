"""Extract the signed substring of a raw response body."""

import json
import re
from typing import Dict, Optional, Tuple

from paykernel.common.constants import ERROR_RESPONSE
from paykernel.response.envelope import response_node_name


_decoder = json.JSONDecoder()
_whitespace = re.compile(r"\s*")


def _skip(body: str, pos: int) -> int:
    return _whitespace.match(body, pos).end()


class SignContentExtractor:
    """
    Find the exact text the gateway signed.

    The gateway signs the JSON text of the payload node as it appears in
    the body. Re-serializing the parsed node would change whitespace, key
    order or escaping, so the value is cut out of the raw text instead.
    Only top-level members count, the same members the decoded envelope
    exposes.
    """

    def get_sign_source_data(self, body: str, method: str) -> Optional[str]:
        """
        Args:
            body: Raw response body
            method: API method name

        Returns:
            Raw JSON text of the success node (or error node), or None when
            neither is a top-level member or the body is not a well-formed
            object with unique top-level keys
        """
        try:
            spans = self._top_level_spans(body)
        except ValueError:
            return None
        if spans is None:
            return None
        for node_name in (response_node_name(method), ERROR_RESPONSE):
            if node_name in spans:
                start, end = spans[node_name]
                return body[start:end]
        return None

    def _top_level_spans(self, body: str) -> Optional[Dict[str, Tuple[int, int]]]:
        """Map each top-level key to the (start, end) offsets of its raw value."""
        pos = _skip(body, 0)
        if body[pos:pos + 1] != "{":
            return None
        pos = _skip(body, pos + 1)
        spans: Dict[str, Tuple[int, int]] = {}
        if body[pos:pos + 1] == "}":
            return spans

        while True:
            key, pos = _decoder.raw_decode(body, pos)
            if not isinstance(key, str):
                return None
            pos = _skip(body, pos)
            if body[pos:pos + 1] != ":":
                return None
            start = _skip(body, pos + 1)
            _, end = _decoder.raw_decode(body, start)
            if key in spans:
                return None
            spans[key] = (start, end)

            pos = _skip(body, end)
            delimiter = body[pos:pos + 1]
            if delimiter == "}":
                return spans
            if delimiter != ",":
                return None
            pos = _skip(body, pos + 1)
