"""
twitch-identity-provider-plugin

An identity broker plugin that authenticates users with Twitch.

Twitch's OpenID Connect implementation needs two fixes before generic OAuth2
handling works:
- email, email_verified, picture and preferred_username must be requested
  through the ``claims`` authorization parameter
- the token response returns ``scope`` as an array

This plugin provides:
- The ``twitch`` identity provider with both fixes applied
- Extraction of a canonical identity from the Twitch userinfo response
- Attribute and username mappers for imported users
- JWT token generation after successful authentication
"""

__version__ = "0.1.0"

from .plugin import TwitchIdentityProviderPlugin
from .blueprint import twitch_bp
from .identity_provider import TwitchIdentityProvider, TwitchIdentityProviderFactory
from .profile import CanonicalIdentity

__all__ = [
    "TwitchIdentityProviderPlugin",
    "TwitchIdentityProvider",
    "TwitchIdentityProviderFactory",
    "CanonicalIdentity",
    "twitch_bp",
    "__version__",
]
