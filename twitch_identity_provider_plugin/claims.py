"""
OIDC claims request for the Twitch authorization endpoint.

Twitch omits email, email_verified, picture and preferred_username from both
the ID token and the userinfo response unless they are requested through the
``claims`` authorization parameter. Scope-based claim requests are ignored.
"""

import json
import logging

from authlib.common.urls import add_params_to_uri

from .exceptions import EncodingError

logger = logging.getLogger(__name__)

OPTIONAL_CLAIMS = ("email", "email_verified", "picture", "preferred_username")

CLAIMS_REQUEST = {
    "id_token": {claim: None for claim in OPTIONAL_CLAIMS},
    "userinfo": {claim: None for claim in OPTIONAL_CLAIMS},
}


def claims_parameter() -> str:
    """Return the claims request as compact JSON text."""
    return json.dumps(CLAIMS_REQUEST, separators=(",", ":"))


def augment_authorization_url(url: str) -> str:
    """
    Append the ``claims`` query parameter to an authorization URL.

    Args:
        url: Authorization request URL already carrying client_id,
            redirect_uri, response_type, state and scope

    Returns:
        The URL with the URL-encoded claims request appended

    Raises:
        EncodingError: If the claims request cannot be encoded
    """
    try:
        augmented = add_params_to_uri(url, [("claims", claims_parameter())])
    except (TypeError, ValueError, UnicodeError) as e:
        logger.error(f"Could not encode claims parameter: {e}")
        raise EncodingError("Could not create authorization URL for Twitch provider", e) from e

    logger.debug(f"Authorization URL with claims: {augmented}")
    return augmented
