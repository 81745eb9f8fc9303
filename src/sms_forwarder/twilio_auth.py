from __future__ import annotations

import logging
from collections.abc import Mapping

from twilio.request_validator import RequestValidator

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Twilio-Signature"


class AuthenticationError(Exception):
    """Inbound webhook is not signed by Twilio with our auth token."""


def webhook_url(
    protocol: str,
    host: str,
    path: str,
    query: str = "",
) -> str:
    """
    Rebuild the public URL Twilio signed.

    TLS usually terminates at a proxy, so the scheme comes from settings
    rather than from the request we see.
    """
    url = f"{protocol}://{host}{path}"
    if query:
        url = f"{url}?{query}"
    return url


def verify_twilio_request(
    auth_token: str,
    url: str,
    params: Mapping[str, str],
    signature: str | None,
) -> None:
    """Raise AuthenticationError unless `signature` matches url + form params."""
    if not signature:
        raise AuthenticationError(f"missing {SIGNATURE_HEADER} header")

    validator = RequestValidator(auth_token)
    if not validator.validate(url, dict(params), signature):
        logger.warning("Rejected webhook with invalid signature for %s", url)
        raise AuthenticationError("signature mismatch")
