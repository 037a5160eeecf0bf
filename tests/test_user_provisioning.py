"""Tests for linking Twitch identities to local users."""

import pytest

from twitch_identity_provider_plugin.exceptions import IdentityBrokerError
from twitch_identity_provider_plugin.mappers import TwitchUserAttributeMapper, TwitchUsernameMapper
from twitch_identity_provider_plugin.profile import CanonicalIdentity, extract_identity_from_profile
from twitch_identity_provider_plugin.user_provisioning import UserProvisioner

from .conftest import TWITCH_PROFILE


class TestUserProvisioner:
    """Tests for UserProvisioner."""

    def test_first_login_imports_user(self) -> None:
        provisioner = UserProvisioner([TwitchUsernameMapper("${email}")])

        user, created = provisioner.provision_user(extract_identity_from_profile(TWITCH_PROFILE))

        assert created is True
        assert user.username == "a@b.com"
        assert user.email == "a@b.com"
        assert provisioner.store[("twitch", "123")] is user

    def test_subsequent_login_keeps_username(self) -> None:
        provisioner = UserProvisioner(
            [TwitchUsernameMapper("${username}"), TwitchUserAttributeMapper("picture", "avatar")]
        )
        provisioner.provision_user(extract_identity_from_profile(TWITCH_PROFILE))

        renamed = {**TWITCH_PROFILE, "preferred_username": "bar", "picture": "http://y"}
        user, created = provisioner.provision_user(extract_identity_from_profile(renamed))

        assert created is False
        assert user.username == "foo"
        assert user.attributes["avatar"] == ["http://y"]

    def test_without_mappers_uses_twitch_username(self) -> None:
        user, _ = UserProvisioner().provision_user(extract_identity_from_profile(TWITCH_PROFILE))

        assert user.username == "foo"

    def test_username_falls_back_to_subject(self) -> None:
        user, _ = UserProvisioner().provision_user(CanonicalIdentity(id="123", username=None))

        assert user.username == "123"

    def test_identity_without_subject_is_rejected(self) -> None:
        with pytest.raises(IdentityBrokerError):
            UserProvisioner().provision_user(extract_identity_from_profile({"preferred_username": "foo"}))

    def test_external_store(self) -> None:
        store = {}
        UserProvisioner(store=store).provision_user(extract_identity_from_profile(TWITCH_PROFILE))

        assert ("twitch", "123") in store
