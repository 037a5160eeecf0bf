"""
Identity broker plugin registration for the Twitch identity provider.

This module provides the plugin class that the broker discovers and
initializes with its Flask application.
"""

import logging

from flask import Flask

from .blueprint import configure, twitch_bp
from .config import PluginConfig
from .identity_provider import TwitchIdentityProviderFactory
from .mappers import MAPPER_TYPES

logger = logging.getLogger(__name__)


class TwitchIdentityProviderPlugin:
    """
    Twitch Identity Provider plugin.

    Registers the ``twitch`` provider, its mappers and the authentication
    blueprint with the broker's Flask application.
    """

    provider_factory = TwitchIdentityProviderFactory()
    mapper_types = MAPPER_TYPES

    def __init__(self, app: Flask = None, config: PluginConfig = None):
        """
        Initialize the plugin.

        Args:
            app: Flask application instance (optional, can call init_app later)
            config: Plugin configuration, read from the environment if omitted
        """
        self.app = app
        self.config = config

        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask, *args, **kwargs):
        """
        Initialize the plugin with a Flask application.

        Args:
            app: Flask application instance
        """
        self.app = app

        if self.config is None:
            self.config = PluginConfig.from_env()
        configure(self.config)

        if not app.config.get("SECRET_KEY"):
            logger.warning(
                "Flask SECRET_KEY not set. Sessions will not persist across restarts."
            )

        logger.info(f"Twitch identity provider plugin initialized as '{self.provider_factory.get_id()}'")
        logger.info(f"Authorization URL: {self.config.twitch.authorization_url}")
        for problem in self.config.twitch.validate():
            logger.warning(f"Twitch provider not fully configured: {problem}")

    def get_blueprint(self):
        """Return the Flask blueprint for this extension."""
        return twitch_bp

    def get_config(self):
        """
        Return plugin configuration dictionary.

        This is loaded BEFORE init_app, so session settings go here.
        """
        return {
            # SAMESITE must be "Lax" for OAuth2 redirects to work
            "SESSION_COOKIE_SECURE": False,
            "SESSION_COOKIE_HTTPONLY": True,
            "SESSION_COOKIE_SAMESITE": "Lax",
        }

    def get_config_secrets_to_obfuscate(self):
        """Return config keys that should not be exposed."""
        return ["TWITCH_CLIENT_SECRET"]

    @staticmethod
    def get_name() -> str:
        """Return the plugin name."""
        return "twitch-identity-provider"

    @staticmethod
    def get_version() -> str:
        """Return the plugin version."""
        from . import __version__
        return __version__

    @staticmethod
    def get_description() -> str:
        """Return the plugin description."""
        return "Twitch identity provider for the identity broker"
