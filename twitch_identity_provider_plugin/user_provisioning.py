"""
User provisioning for Twitch authenticated users.

This module links a canonical identity to a local user record after
successful authentication and runs the configured identity provider mappers.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .exceptions import IdentityBrokerError
from .profile import CanonicalIdentity

logger = logging.getLogger(__name__)


@dataclass
class LocalUser:
    """Local user record as seen by identity provider mappers."""

    username: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    attributes: Dict[str, List[str]] = field(default_factory=dict)

    def set_single_attribute(self, name: str, value: str):
        self.attributes[name] = [value]

    def set_attribute(self, name: str, values: List[str]):
        self.attributes[name] = list(values)

    def remove_attribute(self, name: str):
        self.attributes.pop(name, None)

    def get_first_attribute(self, name: str) -> Optional[str]:
        values = self.attributes.get(name)
        return values[0] if values else None


class UserProvisioner:
    """
    Link federated identities to local users.

    Users are kept in an in-memory store keyed by (provider, subject id);
    hosts with a database pass their own mapping.

    Args:
        mappers: Identity provider mappers run on import and update
        store: Mapping used to look up linked users
    """

    def __init__(self, mappers=(), store: Optional[dict] = None):
        self.mappers = list(mappers)
        self.store = store if store is not None else {}

    def find_user(self, identity: CanonicalIdentity) -> Optional[LocalUser]:
        return self.store.get((identity.provider, identity.id))

    def provision_user(self, identity: CanonicalIdentity) -> Tuple[LocalUser, bool]:
        """
        Return the local user linked to an identity, creating it on first login.

        Args:
            identity: Identity extracted from the Twitch profile

        Returns:
            Tuple of the local user and whether it was created

        Raises:
            IdentityBrokerError: If the identity has no subject id
        """
        if not identity.id:
            raise IdentityBrokerError("Twitch identity has no subject id")

        user = self.find_user(identity)
        if user is not None:
            for mapper in self.mappers:
                mapper.update_brokered_user(user, identity)
            logger.info(f"User {user.username} logged in via {identity.provider}")
            return user, False

        for mapper in self.mappers:
            mapper.preprocess_federated_identity(identity)

        username = identity.username or identity.email or identity.id
        user = LocalUser(username=username, email=identity.email)
        for mapper in self.mappers:
            mapper.import_new_user(user, identity)

        self.store[(identity.provider, identity.id)] = user
        logger.info(f"Imported new user {user.username} from {identity.provider}")
        return user, True
