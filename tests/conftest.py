"""Shared pytest fixtures."""

import json

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from flask import Flask

from twitch_identity_provider_plugin import blueprint
from twitch_identity_provider_plugin.config import (
    JwtConfig,
    MapperConfig,
    PluginConfig,
    TwitchProviderConfig,
)
from twitch_identity_provider_plugin.identity_provider import TwitchIdentityProvider

TWITCH_PROFILE = {
    "aud": "client-123",
    "exp": 1700000000,
    "iat": 1699999000,
    "iss": "https://id.twitch.tv/oauth2",
    "sub": "123",
    "preferred_username": "foo",
    "email": "a@b.com",
    "email_verified": True,
    "picture": "http://x",
}


@pytest.fixture(autouse=True)
def _reset_blueprint_state():
    """Ensure cached plugin state does not leak between tests."""
    blueprint.reset_state()
    yield
    blueprint.reset_state()


@pytest.fixture
def twitch_config() -> TwitchProviderConfig:
    return TwitchProviderConfig(
        client_id="client-123",
        client_secret="secret-456",
        redirect_uri="http://localhost:5000/auth/callback",
    )


@pytest.fixture
def userinfo_requests() -> list:
    """Requests received by the mock userinfo endpoint."""
    return []


@pytest.fixture
def userinfo_client(userinfo_requests):
    """httpx client whose transport serves TWITCH_PROFILE for any request."""

    def handler(request: httpx.Request) -> httpx.Response:
        userinfo_requests.append(request)
        return httpx.Response(200, json=TWITCH_PROFILE)

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        yield client


@pytest.fixture
def provider(twitch_config, userinfo_client) -> TwitchIdentityProvider:
    return TwitchIdentityProvider(twitch_config, http_client=userinfo_client)


@pytest.fixture
def jwt_config(tmp_path) -> JwtConfig:
    """JWT configuration backed by a freshly generated RSA key pair."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_file = tmp_path / "jwt_key"
    public_file = tmp_path / "jwt_key.pub"
    private_file.write_bytes(
        key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    public_file.write_bytes(
        key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
    )
    return JwtConfig(private_key_file=str(private_file), public_key_file=str(public_file))


@pytest.fixture
def plugin_config(twitch_config, jwt_config) -> PluginConfig:
    return PluginConfig(
        twitch=twitch_config,
        mappers=MapperConfig(username_template="${email}"),
        jwt=jwt_config,
    )


@pytest.fixture
def app(plugin_config) -> Flask:
    app = Flask(__name__)
    app.config["SECRET_KEY"] = "test-secret"
    app.config["TESTING"] = True
    app.register_blueprint(blueprint.twitch_bp)
    blueprint.configure(plugin_config)
    return app


def token_response(**fields) -> str:
    payload = {"access_token": "abc123def456", "token_type": "bearer"}
    payload.update(fields)
    return json.dumps(payload)
