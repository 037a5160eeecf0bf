"""
Identity provider mappers for Twitch.

Two mappers are available to broker administrators:

- TwitchUserAttributeMapper copies a Twitch profile field onto a local user
  attribute on every login
- TwitchUsernameMapper derives the username from a template, on first
  import only so usernames stay stable across sessions
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional

from .config import DEFAULT_USERNAME_TEMPLATE, MapperConfig
from .profile import PROVIDER_ID, CanonicalIdentity, text_value
from .user_provisioning import LocalUser

logger = logging.getLogger(__name__)

STRING_TYPE = "String"

TWITCH_ATTRIBUTE_HELP_TEXT = (
    "Available Twitch profile attributes: sub, preferred_username, email, "
    "email_verified, picture, aud, exp, iat, iss"
)

PLACEHOLDER_PATTERN = re.compile(r"\$\{[^}]+\}")
PATH_SEGMENT_PATTERN = re.compile(r"^(.*?)\[(\d+)\]$")


@dataclass
class ProviderConfigProperty:
    """An administrator-configurable mapper field."""

    name: str
    label: str
    help_text: str
    type: str = STRING_TYPE
    default_value: Optional[str] = None


class IdentityProviderMapper:
    """Lifecycle hooks invoked by account linking."""

    id: str = ""
    display_category = "Twitch Mapper"
    display_type: str = ""
    help_text: str = ""
    compatible_providers = (PROVIDER_ID,)
    config_properties: List[ProviderConfigProperty] = []

    def preprocess_federated_identity(self, identity: CanonicalIdentity):
        pass

    def import_new_user(self, user: LocalUser, identity: CanonicalIdentity):
        pass

    def update_brokered_user(self, user: LocalUser, identity: CanonicalIdentity):
        pass


def _split_path(path: str) -> List[str]:
    # Dots escaped with a backslash belong to the field name
    return [part.replace("\\.", ".") for part in re.split(r"(?<!\\)\.", path)]


def get_json_value(profile, path: str) -> Any:
    """
    Look up a value in a JSON profile.

    Supports nested fields (``a.b``), list indices (``a[0]``) and escaped dots
    in field names (``a\\.b``).
    """
    current = profile
    for segment in _split_path(path):
        index = None
        match = PATH_SEGMENT_PATTERN.match(segment)
        if match:
            segment, index = match.group(1), int(match.group(2))

        if not isinstance(current, Mapping) or segment not in current:
            return None
        current = current[segment]

        if index is not None:
            if not isinstance(current, list) or index >= len(current):
                return None
            current = current[index]
    return current


class TwitchUserAttributeMapper(IdentityProviderMapper):
    """Map a field of the Twitch profile onto a local user attribute."""

    id = "twitch-user-attribute-mapper"
    display_type = "Twitch User Attribute Mapper"
    help_text = "Maps attributes from the Twitch profile to user attributes. " + TWITCH_ATTRIBUTE_HELP_TEXT

    ATTRIBUTE_NAME = "jsonField"
    USER_ATTRIBUTE = "userAttribute"

    config_properties = [
        ProviderConfigProperty(
            name=ATTRIBUTE_NAME,
            label="Attribute Name",
            help_text="Name of the attribute to search for in the Twitch profile JSON. "
            + TWITCH_ATTRIBUTE_HELP_TEXT,
        ),
        ProviderConfigProperty(
            name=USER_ATTRIBUTE,
            label="User Attribute Name",
            help_text="Name of the user attribute to store the Twitch profile attribute value.",
        ),
    ]

    def __init__(self, json_field: str, user_attribute: str):
        self.json_field = json_field
        self.user_attribute = user_attribute

    def _value(self, identity: CanonicalIdentity) -> Any:
        value = get_json_value(identity.profile, self.json_field)
        if value is None:
            value = identity.attributes.get(self.json_field)
        return value

    def _apply(self, user: LocalUser, value: Any) -> bool:
        if isinstance(value, list):
            values = [text for text in (text_value(item) for item in value) if text is not None]
            if values:
                user.set_attribute(self.user_attribute, values)
                return True
            return False

        text = text_value(value)
        if text is None:
            return False

        if self.user_attribute == "email":
            user.email = text
        elif self.user_attribute == "firstName":
            user.first_name = text
        elif self.user_attribute == "lastName":
            user.last_name = text
        else:
            user.set_single_attribute(self.user_attribute, text)
        return True

    def import_new_user(self, user: LocalUser, identity: CanonicalIdentity):
        if not self.user_attribute:
            logger.warning(f"Mapper {self.id} has no user attribute configured")
            return
        self._apply(user, self._value(identity))

    def update_brokered_user(self, user: LocalUser, identity: CanonicalIdentity):
        if not self.user_attribute:
            logger.warning(f"Mapper {self.id} has no user attribute configured")
            return
        if not self._apply(user, self._value(identity)):
            if self.user_attribute not in ("email", "firstName", "lastName"):
                user.remove_attribute(self.user_attribute)


def format_username(template: str, identity: CanonicalIdentity) -> str:
    """
    Substitute ``${name}`` placeholders in a username template.

    ``${email}``, ``${sub}`` and ``${username}`` come from the identity
    fields, any other name from the attribute bag (string values only).
    Placeholders left after substitution are removed.
    """
    result = template

    if identity.email is not None:
        result = result.replace("${email}", identity.email)
    if identity.id is not None:
        result = result.replace("${sub}", identity.id)
    if identity.username is not None:
        result = result.replace("${username}", identity.username)

    # Keys already consumed above are harmless to process again
    for key, value in identity.attributes.items():
        if isinstance(value, str):
            result = result.replace("${" + key + "}", value)

    return PLACEHOLDER_PATTERN.sub("", result)


class TwitchUsernameMapper(IdentityProviderMapper):
    """Format the username of newly imported users from a template."""

    id = "twitch-username-mapper"
    display_type = "Twitch Username"
    help_text = "Format the username based on a template using Twitch profile attributes."

    TEMPLATE = "template"

    config_properties = [
        ProviderConfigProperty(
            name=TEMPLATE,
            label="Template",
            help_text="Template to create the username. You can use ${email}, ${sub}, "
            "or any other Twitch profile attribute like ${email_verified}, ${picture}, "
            "${aud}, ${exp}, ${iat}, ${iss}. Default is ${email}.",
            default_value=DEFAULT_USERNAME_TEMPLATE,
        ),
    ]

    def __init__(self, template: Optional[str] = None):
        self.template = template if template is not None else DEFAULT_USERNAME_TEMPLATE

    def import_new_user(self, user: LocalUser, identity: CanonicalIdentity):
        username = format_username(self.template, identity)
        if username:
            logger.info(f"Setting username of new user to {username}")
            user.username = username

    # Usernames are not updated on subsequent logins


MAPPER_TYPES = {
    TwitchUserAttributeMapper.id: TwitchUserAttributeMapper,
    TwitchUsernameMapper.id: TwitchUsernameMapper,
}


def build_mappers(config: MapperConfig) -> List[IdentityProviderMapper]:
    """Instantiate the mappers described by the mapper configuration."""
    mappers = []
    if config.username_template is not None:
        mappers.append(TwitchUsernameMapper(config.username_template))
    for mapping in config.attribute_mappings:
        mappers.append(TwitchUserAttributeMapper(mapping.json_field, mapping.user_attribute))
    return mappers
