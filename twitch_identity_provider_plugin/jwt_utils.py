"""
Session tokens for users signed in through Twitch.

The broker hands the frontend an RS256 token that names the local user and
the Twitch identity linked to it. The identity claims travel inside the token,
so a refresh reissues them without another round trip to Twitch.
"""

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Mapping, Optional

import jwt

from .config import JwtConfig
from .profile import PROVIDER_ID, CanonicalIdentity
from .user_provisioning import LocalUser

logger = logging.getLogger(__name__)

# Claims taken from the linked identity and carried over on refresh
IDENTITY_CLAIMS = (
    "provider",
    "provider_user_id",
    "preferred_username",
    "email_verified",
    "picture",
)

REQUIRED_CLAIMS = ["exp", "iat", "sub", "provider", "provider_user_id"]


def identity_claims(user: LocalUser, identity: CanonicalIdentity) -> dict:
    """
    Claims describing a local user and the Twitch identity it is linked to.

    The local user's email wins over the one Twitch reported, since mappers
    may have rewritten it during provisioning. Absent identity fields are left
    out rather than sent as null.
    """
    claims = {
        "sub": user.username,
        "username": user.username,
        "provider": identity.provider,
        "provider_user_id": identity.id,
    }
    optional = {
        "email": user.email or identity.email,
        "preferred_username": identity.username,
        "email_verified": identity.email_verified,
        "picture": identity.picture,
    }
    claims.update({name: value for name, value in optional.items() if value is not None})
    return claims


class SessionTokenIssuer:
    """
    Issue, verify and reissue broker session tokens.

    Args:
        config: JWT configuration (key files, algorithm, issuer, audience, lifetime)
        provider_alias: Provider whose tokens this issuer accepts on verification
    """

    def __init__(self, config: JwtConfig, provider_alias: str = PROVIDER_ID):
        self.config = config
        self.provider_alias = provider_alias
        self._keys = {}

    def _key(self, path: str) -> str:
        if path not in self._keys:
            key_path = Path(path)
            if not key_path.exists():
                raise FileNotFoundError(f"Key file not found: {path}")
            self._keys[path] = key_path.read_text()
        return self._keys[path]

    def _sign(self, claims: Mapping) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            **claims,
            "iss": self.config.issuer,
            "aud": self.config.audience,
            "iat": now,
            "nbf": now,
            "exp": now + timedelta(hours=self.config.token_expiry_hours),
        }
        return jwt.encode(payload, self._key(self.config.private_key_file), algorithm=self.config.algorithm)

    def issue(self, user: LocalUser, identity: CanonicalIdentity) -> str:
        """
        Issue a session token for a provisioned user.

        Raises:
            ValueError: If the identity has no subject id
            FileNotFoundError: If the private key file is missing
        """
        if not identity.id:
            raise ValueError("Cannot issue a session token for an identity without a subject id")

        token = self._sign(identity_claims(user, identity))
        logger.info(f"Issued session token for user {user.username} ({identity.provider}:{identity.id})")
        return token

    def verify(self, token: str) -> Optional[dict]:
        """
        Decode a session token.

        Returns:
            The claims, or None when the signature, lifetime, issuer or
            audience is wrong, a required claim is missing, or the token
            belongs to another provider
        """
        try:
            claims = jwt.decode(
                token,
                self._key(self.config.public_key_file),
                algorithms=[self.config.algorithm],
                audience=self.config.audience,
                issuer=self.config.issuer,
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError:
            logger.warning("Session token has expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid session token: {e}")
            return None

        if claims["provider"] != self.provider_alias:
            logger.warning(f"Session token issued for provider {claims['provider']}, expected {self.provider_alias}")
            return None
        return claims

    def reissue(self, token: str) -> Optional[str]:
        """Issue a fresh token carrying the user and identity claims of a valid one."""
        claims = self.verify(token)
        if claims is None:
            return None

        carried = {"sub": claims["sub"], "username": claims.get("username", claims["sub"])}
        if "email" in claims:
            carried["email"] = claims["email"]
        carried.update({name: claims[name] for name in IDENTITY_CLAIMS if name in claims})

        logger.info(f"Reissued session token for user {carried['username']}")
        return self._sign(carried)
