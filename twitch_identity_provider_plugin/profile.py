"""
Mapping of the Twitch userinfo payload onto a canonical identity.
"""

import json
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)

PROVIDER_ID = "twitch"


def _frozen(data=None) -> Mapping:
    return MappingProxyType(dict(data or {}))


@dataclass(frozen=True)
class CanonicalIdentity:
    """
    The broker's provider-independent view of an authenticated Twitch user.

    Created once per successful authentication and handed to the host for
    account linking. ``attributes`` holds the textual value of every claim of
    the raw profile; ``profile`` keeps the raw payload for JSON path lookups.
    """

    id: Optional[str]
    username: Optional[str]
    email: Optional[str] = None
    email_verified: Optional[bool] = None
    picture: Optional[str] = None
    provider: str = PROVIDER_ID
    attributes: Mapping[str, str] = field(default_factory=_frozen)
    profile: Mapping[str, Any] = field(default_factory=_frozen)
    context_data: Mapping[str, Any] = field(default_factory=_frozen)


def text_value(value) -> Optional[str]:
    """Textual form of a JSON value, or None for null and empty strings."""
    if value is None:
        return None
    if isinstance(value, str):
        return value or None
    return json.dumps(value, ensure_ascii=False)


def get_json_property(profile: Mapping, name: str) -> Optional[str]:
    return text_value(profile.get(name))


def get_boolean_property(profile: Mapping, name: str) -> Optional[bool]:
    value = profile.get(name)
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip() == "true"
    if isinstance(value, (int, float)):
        return value != 0
    return False


def extract_identity_from_profile(
    profile: Mapping[str, Any],
    provider_alias: str = PROVIDER_ID,
) -> CanonicalIdentity:
    """
    Build a CanonicalIdentity from a Twitch userinfo payload.

    A missing ``sub`` is not rejected here; the resulting identity has no id
    and is refused by account linking.

    Args:
        profile: Decoded userinfo JSON object
        provider_alias: Alias of the configured provider instance

    Returns:
        The canonical identity
    """
    logger.info("Extracting identity from Twitch profile")
    logger.debug(f"Raw profile data: {profile}")

    subject_id = get_json_property(profile, "sub")
    username = get_json_property(profile, "preferred_username")
    logger.info(f"Subject ID: {subject_id}, username: {username}")

    attributes = {}
    email = get_json_property(profile, "email")
    email_verified = None
    if email is not None:
        email_verified = get_boolean_property(profile, "email_verified")
        if email_verified is not None:
            attributes["email_verified"] = "true" if email_verified else "false"
    else:
        logger.info("No email found in profile")

    picture = get_json_property(profile, "picture")
    if picture is not None:
        attributes["picture"] = picture

    # Generic pass so attribute mappers can reference any claim by name.
    # email_verified and picture are only ever set by the steps above.
    for name, value in profile.items():
        if value is None or name in ("email_verified", "picture"):
            continue
        if not isinstance(value, str):
            value = json.dumps(value, ensure_ascii=False)
        attributes.setdefault(name, value)

    return CanonicalIdentity(
        id=subject_id,
        username=username,
        email=email,
        email_verified=email_verified,
        picture=picture,
        provider=provider_alias,
        attributes=_frozen(attributes),
        profile=_frozen(profile),
    )
