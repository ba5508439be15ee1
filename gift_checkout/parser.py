"""
Response parser for UCP MCP replies.

Merchant endpoints answer ``tools/call`` with one of a few shapes. We
classify the reply first, then decode it according to its kind:

- ``TOOL_TEXT``: ``result.content[0].text`` holds a JSON-encoded checkout,
  or occasionally plain text, which is passed through as an opaque body.
- ``RPC_ERROR``: a top-level JSON-RPC ``error`` object.
- ``MALFORMED``: anything else. Never turned into a partial result.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Optional

from gift_checkout.errors import ACCESS_DISABLED_CODE, ACCESS_DISABLED_DETAIL, ProtocolError
from gift_checkout.models import NormalizedCheckoutResult


# Different remote versions have used each of these for the continuation link.
CONTINUATION_URL_FIELDS = ("continue_url", "checkoutUrl", "web_url")

logger = logging.getLogger(__name__)


class ReplyKind(str, Enum):
    TOOL_TEXT = "tool_text"
    RPC_ERROR = "rpc_error"
    MALFORMED = "malformed"


def _tool_text(raw: dict) -> Optional[str]:
    result = raw.get("result")
    if not isinstance(result, dict):
        return None
    content = result.get("content")
    if not isinstance(content, list) or not content:
        return None
    first = content[0]
    if not isinstance(first, dict):
        return None
    text = first.get("text")
    return text if isinstance(text, str) and text else None


def classify_reply(raw: Any) -> ReplyKind:
    if not isinstance(raw, dict):
        return ReplyKind.MALFORMED
    if _tool_text(raw) is not None:
        return ReplyKind.TOOL_TEXT
    if isinstance(raw.get("error"), dict):
        return ReplyKind.RPC_ERROR
    return ReplyKind.MALFORMED


def _stringify_detail(data: Any) -> Optional[str]:
    if data is None or data == "":
        return None
    if isinstance(data, str):
        return data
    return json.dumps(data)


def is_access_disabled(data: Any) -> bool:
    if isinstance(data, str):
        return data == ACCESS_DISABLED_DETAIL
    if isinstance(data, dict):
        return data.get("code") == ACCESS_DISABLED_CODE
    return False


def protocol_error_from(error: dict, status_code: Optional[int] = None) -> ProtocolError:
    data = error.get("data")
    return ProtocolError(
        message=str(error.get("message") or "checkout protocol error"),
        code=error.get("code"),
        raw_detail=_stringify_detail(data),
        is_access_disabled=is_access_disabled(data),
        status_code=status_code,
    )


def decode_tool_text(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return text


def continuation_url(body: dict) -> Optional[str]:
    for field in CONTINUATION_URL_FIELDS:
        value = body.get(field)
        if value and isinstance(value, str):
            return value
    return None


def _as_text(value: Any) -> Optional[str]:
    # merchants are free to send numeric ids
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value)


def normalize_body(body: Any) -> NormalizedCheckoutResult:
    if not isinstance(body, dict):
        return NormalizedCheckoutResult(body=body)
    order = body.get("order")
    messages = body.get("messages")
    return NormalizedCheckoutResult(
        continuation_url=continuation_url(body),
        checkout_id=_as_text(body.get("id")),
        status=_as_text(body.get("status")),
        order_id=_as_text(order.get("id")) if isinstance(order, dict) else None,
        messages=messages if isinstance(messages, list) else [],
        body=body,
    )


def parse_checkout_reply(raw: Any, status_code: Optional[int] = None) -> NormalizedCheckoutResult:
    """
    Normalize a JSON-RPC reply from a merchant's MCP endpoint.

    Raises:
        ProtocolError: the reply carried an error, or was not a reply at all.
    """
    kind = classify_reply(raw)

    if kind is ReplyKind.TOOL_TEXT:
        text = _tool_text(raw)
        if raw["result"].get("isError"):
            raise ProtocolError(
                message="checkout tool reported an error",
                raw_detail=text,
                is_access_disabled=text.strip() == ACCESS_DISABLED_DETAIL,
                status_code=status_code,
            )
        return normalize_body(decode_tool_text(text))

    if kind is ReplyKind.RPC_ERROR:
        raise protocol_error_from(raw["error"], status_code=status_code)

    logger.warning("Unrecognised checkout reply shape: %.200r", raw)
    raise ProtocolError(
        message="malformed checkout reply",
        raw_detail=_stringify_detail(raw),
        status_code=status_code,
    )
