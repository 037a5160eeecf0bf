"""
Twitch identity provider.

Twitch's OpenID Connect implementation deviates from the standard in two
places that break generic OAuth2 handling:

- the token response returns ``scope`` as an array (see ``scope.py``)
- email, email_verified, picture and preferred_username are only returned
  when requested through the ``claims`` parameter (see ``claims.py``)

The provider composes those fixes with the generic Authlib OAuth2 client and
the profile extraction in ``profile.py``.
"""

import json
import logging
import re
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Optional

import httpx
from authlib.integrations.requests_client import OAuth2Session

from .claims import augment_authorization_url
from .config import TwitchProviderConfig
from .exceptions import (
    EncodingError,
    IdentityBrokerError,
    MalformedResponseError,
    MissingTokenError,
    NetworkError,
)
from .profile import PROVIDER_ID, CanonicalIdentity, extract_identity_from_profile
from .scope import normalize_scope, scope_compliance_hook

# Reserved context data keys
FEDERATED_ACCESS_TOKEN = "FEDERATED_ACCESS_TOKEN"
TOKEN_RESPONSE = "token_response"

ACCESS_TOKEN_PARAMETER = "access_token"


def mask_token(token: Optional[str]) -> str:
    """Mask all but the first and last 4 characters of a token for logging."""
    if token is None or len(token) <= 8:
        return "..."
    return f"{token[:4]}...{token[-4:]}"


def extract_token_from_response(
    response: Optional[str],
    token_name: str = ACCESS_TOKEN_PARAMETER,
) -> Optional[str]:
    """
    Extract a token from a token endpoint response.

    JSON responses (starting with ``{``) are parsed, anything else is treated
    as a form-encoded body.

    Raises:
        MalformedResponseError: If a JSON-looking response cannot be parsed
    """
    if response is None:
        return None

    if response.startswith("{"):
        try:
            payload = json.loads(response)
        except ValueError as e:
            # The body may carry the token, keep it out of the message
            raise MalformedResponseError(
                f"Could not extract token [{token_name}] from a malformed JSON response: {e}", e
            ) from e
        value = payload.get(token_name) if isinstance(payload, dict) else None
        if not isinstance(value, str) or not value.strip():
            return None
        return value

    match = re.search(re.escape(token_name) + r"=([^&]+)", response)
    if match:
        return match.group(1)
    return None


@dataclass
class AuthenticationRequest:
    """Parameters of an authorization redirect prepared by the host."""

    state: str
    redirect_uri: str
    nonce: Optional[str] = None


class TwitchIdentityProvider:
    """
    Authenticate users against Twitch.

    Args:
        config: Provider configuration
        http_client: httpx client used for the userinfo request; a
            short-lived client is created per request when omitted
        logger: Logger receiving diagnostics, tokens are always masked
    """

    def __init__(
        self,
        config: TwitchProviderConfig,
        http_client: Optional[httpx.Client] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.http_client = http_client
        self.logger = logger or logging.getLogger(__name__)

    def create_oauth2_session(
        self,
        redirect_uri: Optional[str] = None,
        compliance_fix: bool = True,
    ) -> OAuth2Session:
        """
        Create an Authlib session for the Twitch endpoints.

        Args:
            redirect_uri: Redirect URI, defaults to the configured one
            compliance_fix: Register the scope compliance hook. Callers that
                register their own ``access_token_response`` hook pass False
                and apply ``scope_compliance_hook`` themselves, since Authlib
                runs hooks in no particular order.
        """
        session = OAuth2Session(
            client_id=self.config.client_id,
            client_secret=self.config.client_secret,
            redirect_uri=redirect_uri or self.config.redirect_uri,
            scope=self.config.default_scope,
        )
        if compliance_fix:
            session.register_compliance_hook("access_token_response", scope_compliance_hook)
        return session

    def build_authorization_url(self, request: AuthenticationRequest) -> str:
        """
        Build the Twitch authorization URL for a login request.

        Raises:
            IdentityBrokerError: If the URL cannot be built
        """
        self.logger.info(
            f"Creating authorization URL for Twitch provider. "
            f"State: {request.state}, Redirect URI: {request.redirect_uri}"
        )
        params = {"state": request.state}
        if request.nonce:
            params["nonce"] = request.nonce

        try:
            session = self.create_oauth2_session(request.redirect_uri)
            url, _ = session.create_authorization_url(self.config.authorization_url, **params)
        except (TypeError, ValueError) as e:
            self.logger.error(f"Error creating authorization URL for Twitch provider: {e}")
            raise IdentityBrokerError("Could not create authorization URL for Twitch provider", e) from e

        self.logger.debug(f"Base authorization URL: {url}")
        try:
            return augment_authorization_url(url)
        except EncodingError:
            self.logger.exception("Error creating authorization URL for Twitch provider")
            raise

    def get_federated_identity(self, response: str) -> CanonicalIdentity:
        """
        Turn a raw token endpoint response into a canonical identity.

        Args:
            response: Raw token endpoint response body

        Returns:
            The identity, with the access token stored in ``context_data``
            under ``FEDERATED_ACCESS_TOKEN``

        Raises:
            MissingTokenError: If the response carries no access token
            NetworkError: If the userinfo request fails
            MalformedResponseError: If the userinfo body is not a JSON object
        """
        self.logger.info("Processing OAuth token response from Twitch")

        access_token = extract_token_from_response(response)
        if access_token is None:
            self.logger.error("No access token found in response")
            raise MissingTokenError(f"No access token available in OAuth server response: {response}")
        self.logger.info(f"Access token extracted: {mask_token(access_token)}")

        normalized = normalize_scope(response)
        if normalized != response:
            self.logger.info("Converted scope array in token response to string")
            response = normalized
            try:
                access_token = extract_token_from_response(response) or access_token
            except MalformedResponseError:
                self.logger.warning("Could not re-extract access token from normalized response")
            self.logger.info(f"Re-extracted access token after scope conversion: {mask_token(access_token)}")

        identity = self.do_get_federated_identity(access_token)
        context_data = {
            **identity.context_data,
            FEDERATED_ACCESS_TOKEN: access_token,
            TOKEN_RESPONSE: response,
        }
        self.logger.info("Successfully created brokered identity")
        return replace(identity, context_data=MappingProxyType(context_data))

    def do_get_federated_identity(self, access_token: str) -> CanonicalIdentity:
        """Fetch the userinfo payload with an access token and extract the identity."""
        self.logger.info(
            f"Getting federated identity from Twitch with access token: {mask_token(access_token)}"
        )
        profile = self._fetch_userinfo(access_token)
        self.logger.info("Successfully retrieved profile from Twitch")
        return extract_identity_from_profile(profile, self.config.alias)

    def _fetch_userinfo(self, access_token: str) -> dict:
        self.logger.debug(f"Calling Twitch userinfo endpoint: {self.config.userinfo_url}")
        headers = {"Authorization": f"Bearer {access_token}"}

        try:
            if self.http_client is not None:
                resp = self.http_client.get(
                    self.config.userinfo_url, headers=headers, timeout=self.config.http_timeout
                )
                resp.raise_for_status()
            else:
                with httpx.Client(timeout=self.config.http_timeout) as client:
                    resp = client.get(self.config.userinfo_url, headers=headers)
                    resp.raise_for_status()
        except httpx.HTTPError as e:
            self.logger.error(f"Failed to obtain user profile from Twitch: {e}")
            raise NetworkError("Could not obtain user profile from Twitch", e) from e

        try:
            profile = resp.json()
        except ValueError as e:
            self.logger.error(f"Twitch userinfo response is not JSON: {e}")
            raise MalformedResponseError("Could not obtain user profile from Twitch", e) from e

        if not isinstance(profile, dict):
            raise MalformedResponseError("Twitch userinfo response is not a JSON object")
        return profile


class TwitchIdentityProviderFactory:
    """Create Twitch identity provider instances for the broker."""

    PROVIDER_ID = PROVIDER_ID

    @staticmethod
    def get_id() -> str:
        return PROVIDER_ID

    @staticmethod
    def get_name() -> str:
        return "Twitch"

    @staticmethod
    def create_config(**overrides) -> TwitchProviderConfig:
        return TwitchProviderConfig(**overrides)

    def create(self, config: TwitchProviderConfig, **kwargs) -> TwitchIdentityProvider:
        return TwitchIdentityProvider(config, **kwargs)
