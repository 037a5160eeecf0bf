"""
Configuration management for the Twitch identity provider.

This module handles loading and validating the provider, mapper and JWT
configuration used by the plugin.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urlparse

from .exceptions import ConfigurationError

# Fixed Twitch endpoints
AUTH_URL = "https://id.twitch.tv/oauth2/authorize"
TOKEN_URL = "https://id.twitch.tv/oauth2/token"
PROFILE_URL = "https://id.twitch.tv/oauth2/userinfo"

# Minimal scope set required for email access
DEFAULT_SCOPE = "openid user:read:email"

DEFAULT_USERNAME_TEMPLATE = "${email}"


@dataclass
class TwitchProviderConfig:
    """Twitch Identity Provider configuration."""

    # Provider instance alias in the broker
    alias: str = "twitch"

    # OAuth2 endpoints, blank means the fixed Twitch endpoint
    authorization_url: str = ""
    token_url: str = ""
    userinfo_url: str = ""

    # Client credentials
    client_id: str = ""
    client_secret: str = ""

    default_scope: str = ""

    # Callback URL (constructed from base URL)
    redirect_uri: str = ""

    # Timeout for the userinfo request, in seconds
    http_timeout: float = 10.0

    def __post_init__(self):
        if not self.authorization_url:
            self.authorization_url = AUTH_URL
        if not self.token_url:
            self.token_url = TOKEN_URL
        if not self.userinfo_url:
            self.userinfo_url = PROFILE_URL
        if not self.default_scope:
            self.default_scope = DEFAULT_SCOPE

    @classmethod
    def from_env(cls) -> "TwitchProviderConfig":
        """Create configuration from environment variables."""
        base_url = os.environ.get("BROKER_BASE_URL", "http://localhost:5000")

        return cls(
            alias=os.environ.get("TWITCH_PROVIDER_ALIAS", "twitch"),
            authorization_url=os.environ.get("TWITCH_AUTHORIZATION_URL", ""),
            token_url=os.environ.get("TWITCH_TOKEN_URL", ""),
            userinfo_url=os.environ.get("TWITCH_USERINFO_URL", ""),
            client_id=os.environ.get("TWITCH_CLIENT_ID", ""),
            client_secret=os.environ.get("TWITCH_CLIENT_SECRET", ""),
            default_scope=os.environ.get("TWITCH_SCOPE", ""),
            redirect_uri=os.environ.get(
                "TWITCH_REDIRECT_URI",
                f"{base_url}/auth/callback"
            ),
            http_timeout=float(os.environ.get("TWITCH_HTTP_TIMEOUT", "10")),
        )

    def validate(self) -> List[str]:
        """Return a list of configuration problems (empty if valid)."""
        errors = []
        if not self.client_id:
            errors.append("TWITCH_CLIENT_ID not configured")
        if not self.client_secret:
            errors.append("TWITCH_CLIENT_SECRET not configured")
        for name in ("authorization_url", "token_url", "userinfo_url"):
            url = getattr(self, name)
            if urlparse(url).scheme != "https":
                errors.append(f"{name} must be an https URL: {url}")
        return errors

    def require_valid(self):
        """Raise ConfigurationError if the configuration has problems."""
        errors = self.validate()
        if errors:
            raise ConfigurationError("Invalid Twitch provider configuration: " + "; ".join(errors))


@dataclass
class AttributeMapping:
    """Map one Twitch profile field onto a local user attribute."""

    json_field: str
    user_attribute: str


def parse_attribute_map(value: str) -> List[AttributeMapping]:
    """
    Parse an attribute map string.

    Format: "picture:avatar,email_verified:emailVerified"
    """
    mappings = []
    for mapping in value.split(","):
        if ":" in mapping:
            key, attribute = mapping.split(":", 1)
            if key.strip() and attribute.strip():
                mappings.append(AttributeMapping(key.strip(), attribute.strip()))
    return mappings


@dataclass
class MapperConfig:
    """Identity provider mapper configuration."""

    # Template applied on first import, None disables the username mapper
    username_template: Optional[str] = DEFAULT_USERNAME_TEMPLATE

    attribute_mappings: List[AttributeMapping] = field(default_factory=list)

    @classmethod
    def from_env(cls) -> "MapperConfig":
        """Create configuration from environment variables."""
        template = os.environ.get("TWITCH_USERNAME_TEMPLATE", DEFAULT_USERNAME_TEMPLATE)
        return cls(
            username_template=template or None,
            attribute_mappings=parse_attribute_map(
                os.environ.get("TWITCH_ATTRIBUTE_MAP", "")
            ),
        )


@dataclass
class JwtConfig:
    """JWT token configuration."""

    private_key_file: str = "/app/jwt/jwt_key"
    public_key_file: str = "/app/jwt/jwt_key.pub"
    algorithm: str = "RS256"
    issuer: str = "identity-broker"
    audience: str = "identity-broker"
    token_expiry_hours: int = 24

    @classmethod
    def from_env(cls) -> "JwtConfig":
        """Create configuration from environment variables."""
        return cls(
            private_key_file=os.environ.get(
                "JWT_PRIVATE_KEY_FILE", "/app/jwt/jwt_key"
            ),
            public_key_file=os.environ.get(
                "JWT_PUBLIC_KEY_FILE", "/app/jwt/jwt_key.pub"
            ),
            algorithm=os.environ.get("JWT_ALGORITHM", "RS256"),
            issuer=os.environ.get("JWT_ISSUER", "identity-broker"),
            audience=os.environ.get("JWT_AUDIENCE", "identity-broker"),
            token_expiry_hours=int(os.environ.get("JWT_TOKEN_EXPIRY_HOURS", "24")),
        )


@dataclass
class PluginConfig:
    """Overall plugin configuration."""

    twitch: TwitchProviderConfig = field(default_factory=TwitchProviderConfig)
    mappers: MapperConfig = field(default_factory=MapperConfig)
    jwt: JwtConfig = field(default_factory=JwtConfig)

    # Base URL for constructing callback URLs
    base_url: str = "http://localhost:5000"

    # Frontend redirect settings
    frontend_url: str = "/"
    login_success_redirect: str = "/"
    login_error_redirect: str = "/login?error=auth_failed"

    @classmethod
    def from_env(cls) -> "PluginConfig":
        """Create configuration from environment variables."""
        return cls(
            twitch=TwitchProviderConfig.from_env(),
            mappers=MapperConfig.from_env(),
            jwt=JwtConfig.from_env(),
            base_url=os.environ.get("BROKER_BASE_URL", "http://localhost:5000"),
            frontend_url=os.environ.get("BROKER_FRONTEND_URL", "/"),
            login_success_redirect=os.environ.get(
                "BROKER_LOGIN_SUCCESS_REDIRECT", "/"
            ),
            login_error_redirect=os.environ.get(
                "BROKER_LOGIN_ERROR_REDIRECT", "/login?error=auth_failed"
            ),
        )
