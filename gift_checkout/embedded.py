"""
Embedded Checkout (EP binding) URL builder.

Takes the ``continue_url`` from a ``requires_escalation`` checkout and adds
the ``ec_*`` query parameters so the checkout can be iframed by the host.
Only fulfillment address changes are delegated back to the host; payment
stays inside the embedded checkout.
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from gift_checkout.errors import InvalidInput, Unconfigured
from gift_checkout.models import EmbeddedUrlParams
from gift_checkout.tokens import TokenManager


logger = logging.getLogger(__name__)


def _validated(continuation_url: str):
    if not continuation_url or not isinstance(continuation_url, str):
        raise InvalidInput("continue_url is required")
    try:
        parts = urlsplit(continuation_url.strip())
    except ValueError as exc:
        raise InvalidInput(f"continue_url is not a valid URL: {exc}") from exc
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise InvalidInput("continue_url is not a valid URL")
    return parts


def with_embedded_params(continuation_url: str, params: EmbeddedUrlParams) -> str:
    parts = _validated(continuation_url)
    added = params.model_dump()
    # later values replace earlier ones with the same name
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in added]
    query.extend(added.items())
    return urlunsplit(parts._replace(query=urlencode(query)))


class EmbeddedCheckoutUrlBuilder:
    def __init__(self, token_manager: TokenManager):
        self.token_manager = token_manager

    async def build(self, continuation_url: str) -> str:
        _validated(continuation_url)
        token = await self.token_manager.get_token()
        if not token:
            raise Unconfigured("Catalog API credentials are not configured")
        url = with_embedded_params(continuation_url, EmbeddedUrlParams(ec_auth=token))
        logger.info("[ECP] Built embedded URL for %s", urlsplit(continuation_url).netloc)
        return url
