"""
Token response normalization.

Twitch returns ``scope`` in its token response as a JSON array instead of the
space-separated string required by RFC 6749. Generic OAuth2 token parsing
expects the string form, so the response is rewritten before it is handed on.
"""

import json
import logging

logger = logging.getLogger(__name__)


def _scope_text(value) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def normalize_scope(response_text: str) -> str:
    """
    Rewrite an array-typed ``scope`` field to a space-joined string.

    Responses whose scope is already a string, or absent, and bodies that are
    not a JSON object are returned unchanged. Parse failures are not fatal:
    the original text is returned and token extraction is attempted on it.

    Args:
        response_text: Raw token endpoint response body

    Returns:
        The normalized response text
    """
    try:
        payload = json.loads(response_text)
    except (TypeError, ValueError) as e:
        logger.debug(f"Token response is not JSON, leaving it untouched: {e}")
        return response_text

    if not isinstance(payload, dict) or "scope" not in payload:
        return response_text

    scope = payload["scope"]
    if not isinstance(scope, list):
        return response_text

    normalized = {**payload, "scope": " ".join(_scope_text(item) for item in scope)}
    logger.debug(f"Converted scope array to string: {normalized['scope']!r}")
    return json.dumps(normalized, ensure_ascii=False, separators=(",", ":"))


def scope_compliance_hook(response):
    """
    Authlib ``access_token_response`` compliance hook.

    Rewrites the HTTP response body in place so Authlib parses a token
    response with a string scope.
    """
    text = response.text
    normalized = normalize_scope(text)
    if normalized != text:
        response._content = normalized.encode("utf-8")
    return response
