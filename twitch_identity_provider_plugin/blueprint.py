"""
Flask blueprint for Twitch authentication.

This blueprint provides the following endpoints:
- GET /auth/login - Initiate the Twitch authorization flow
- GET /auth/callback - OAuth2 callback (receives authorization code)
- GET /auth/logout - Clear session and logout
- GET /auth/token - Get current user's JWT token
- POST /auth/refresh - Refresh an existing JWT token
- POST /auth/verify - Verify a JWT token
- GET /auth/info - Describe the configured provider
"""

import json
import logging
import secrets

from flask import (
    jsonify,
    make_response,
    redirect,
    request,
    session,
    url_for,
)
from flask_smorest import Blueprint

from .config import PluginConfig
from .identity_provider import AuthenticationRequest, TwitchIdentityProvider
from .jwt_utils import SessionTokenIssuer
from .mappers import build_mappers
from .scope import scope_compliance_hook
from .user_provisioning import UserProvisioner

logger = logging.getLogger(__name__)

# Create the blueprint using flask_smorest Blueprint
twitch_bp = Blueprint(
    "twitch_auth",
    __name__,
    url_prefix="/auth",
    description="Twitch authentication endpoints"
)

# Plugin state (initialized on first request)
_config: PluginConfig = None
_provider: TwitchIdentityProvider = None
_token_issuer: SessionTokenIssuer = None
_user_provisioner: UserProvisioner = None


def configure(config: PluginConfig):
    """Use an explicit configuration instead of the environment."""
    global _config
    reset_state()
    _config = config


def reset_state():
    """Drop cached configuration, provider, provisioner and JWT generator."""
    global _config, _provider, _token_issuer, _user_provisioner
    _config = None
    _provider = None
    _token_issuer = None
    _user_provisioner = None


def get_config() -> PluginConfig:
    """Get or initialize plugin configuration."""
    global _config
    if _config is None:
        _config = PluginConfig.from_env()
    return _config


def get_provider() -> TwitchIdentityProvider:
    """Get or initialize the Twitch identity provider."""
    global _provider
    if _provider is None:
        _provider = TwitchIdentityProvider(get_config().twitch)
    return _provider


def get_token_issuer() -> SessionTokenIssuer:
    """Get or initialize the session token issuer."""
    global _token_issuer
    if _token_issuer is None:
        _token_issuer = SessionTokenIssuer(get_config().jwt, get_config().twitch.alias)
    return _token_issuer


def get_user_provisioner() -> UserProvisioner:
    """Get or initialize user provisioner."""
    global _user_provisioner
    if _user_provisioner is None:
        _user_provisioner = UserProvisioner(build_mappers(get_config().mappers))
    return _user_provisioner


def exchange_code(provider: TwitchIdentityProvider, code: str, authorization_response: str) -> str:
    """
    Exchange an authorization code at the Twitch token endpoint.

    Authlib still parses a normalized response, while the body returned here
    is the one Twitch sent, array-typed scope included.

    Returns:
        The token endpoint response body as received
    """
    oauth = provider.create_oauth2_session(compliance_fix=False)
    captured = []

    def capture_response(resp):
        captured.append(resp.text)
        return scope_compliance_hook(resp)

    oauth.register_compliance_hook("access_token_response", capture_response)
    token = oauth.fetch_token(
        provider.config.token_url,
        authorization_response=authorization_response,
        code=code,
    )
    if captured:
        return captured[0]
    return json.dumps(dict(token))


@twitch_bp.route("/login")
def login():
    """
    Initiate the Twitch authorization flow.

    Query Parameters:
        next: URL to redirect to after successful login (optional)
    """
    try:
        config = get_config()

        # Generate state for CSRF protection
        state = secrets.token_urlsafe(32)
        session["oauth2_state"] = state
        session.modified = True

        next_url = request.args.get("next", config.login_success_redirect)
        session["auth_return_url"] = next_url

        logger.debug(f"Login: Generated state={state[:16]}..., session keys={list(session.keys())}")

        authorization_url = get_provider().build_authorization_url(
            AuthenticationRequest(state=state, redirect_uri=config.twitch.redirect_uri)
        )

        logger.info("Initiating Twitch login, redirecting to provider")
        return redirect(authorization_url)

    except Exception as e:
        logger.error(f"Error initiating Twitch login: {e}")
        return jsonify({"error": "Failed to initiate authentication"}), 500


@twitch_bp.route("/callback")
def callback():
    """
    OAuth2 callback endpoint.

    Exchanges the authorization code, resolves the Twitch identity and links
    it to a local user.
    """
    try:
        config = get_config()

        # Verify state for CSRF protection
        state = request.args.get("state")
        stored_state = session.pop("oauth2_state", None)

        if not state or state != stored_state:
            logger.warning("OAuth2 state mismatch")
            return redirect(config.login_error_redirect)

        # Check for errors from provider
        error = request.args.get("error")
        if error:
            error_description = request.args.get("error_description", "Unknown error")
            logger.error(f"Twitch error: {error} - {error_description}")
            return redirect(config.login_error_redirect)

        code = request.args.get("code")
        if not code:
            logger.error("No authorization code received")
            return redirect(config.login_error_redirect)

        provider = get_provider()
        token_response = exchange_code(provider, code, request.url)

        identity = provider.get_federated_identity(token_response)
        user, created = get_user_provisioner().provision_user(identity)

        token = get_token_issuer().issue(user, identity)

        session["username"] = user.username
        session["jwt_token"] = token
        session["provider"] = identity.provider

        return_url = session.pop("auth_return_url", config.login_success_redirect)

        # Token as query parameter for cross-origin frontends
        separator = "&" if "?" in return_url else "?"
        response = make_response(redirect(f"{return_url}{separator}token={token}"))

        # Cookie for same-origin access
        response.set_cookie(
            "broker_token",
            token,
            httponly=False,
            secure=request.is_secure,
            samesite="Lax",
            max_age=config.jwt.token_expiry_hours * 3600,
        )

        action = "imported" if created else "authenticated"
        logger.info(f"User {user.username} {action} via {identity.provider}")
        return response

    except Exception as e:
        logger.exception(f"Error processing Twitch callback: {e}")
        return redirect(get_config().login_error_redirect)


@twitch_bp.route("/logout")
def logout():
    """
    Logout and clear session.
    """
    config = get_config()

    session.clear()

    response = make_response(redirect(config.frontend_url))
    response.delete_cookie("broker_token")

    logger.info("User logged out")
    return response


@twitch_bp.route("/token", methods=["GET"])
def get_token():
    """
    Get the current user's JWT token.

    Returns:
        JSON with token or error
    """
    token = session.get("jwt_token")

    if not token:
        return jsonify({
            "error": "Not authenticated",
            "login_url": url_for("twitch_auth.login", _external=True),
        }), 401

    return jsonify({
        "token": token,
        "username": session.get("username"),
        "provider": session.get("provider"),
        "token_type": "Bearer",
    })


@twitch_bp.route("/refresh", methods=["POST"])
def refresh_token():
    """
    Refresh an existing JWT token.

    Request body:
        {
            "token": "existing_jwt_token"
        }
    """
    data = request.get_json(silent=True)

    if not data or "token" not in data:
        return jsonify({"error": "Missing token"}), 400

    new_token = get_token_issuer().reissue(data["token"])

    if not new_token:
        return jsonify({"error": "Invalid or expired token"}), 401

    return jsonify({
        "token": new_token,
        "token_type": "Bearer",
    })


@twitch_bp.route("/verify", methods=["POST"])
def verify_token():
    """
    Verify a JWT token and return its claims.

    Request body:
        {
            "token": "jwt_token_to_verify"
        }
    """
    data = request.get_json(silent=True)

    if not data or "token" not in data:
        return jsonify({"error": "Missing token"}), 400

    claims = get_token_issuer().verify(data["token"])

    if not claims:
        return jsonify({"error": "Invalid or expired token"}), 401

    return jsonify({
        "valid": True,
        "claims": claims,
    })


@twitch_bp.route("/info")
def auth_info():
    """
    Return information about the configured Twitch provider.

    This endpoint can be used by the frontend to display login options.
    """
    config = get_config()

    return jsonify({
        "provider": config.twitch.alias,
        "login_url": url_for("twitch_auth.login", _external=True),
        "configured": bool(config.twitch.client_id and config.twitch.client_secret),
    })
