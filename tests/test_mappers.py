"""Tests for the Twitch identity provider mappers."""

import pytest

from twitch_identity_provider_plugin.config import AttributeMapping, MapperConfig
from twitch_identity_provider_plugin.mappers import (
    MAPPER_TYPES,
    TwitchUserAttributeMapper,
    TwitchUsernameMapper,
    build_mappers,
    format_username,
    get_json_value,
)
from twitch_identity_provider_plugin.profile import CanonicalIdentity, extract_identity_from_profile
from twitch_identity_provider_plugin.user_provisioning import LocalUser

from .conftest import TWITCH_PROFILE


@pytest.fixture
def identity() -> CanonicalIdentity:
    return extract_identity_from_profile(TWITCH_PROFILE)


class TestFormatUsername:
    """Tests for format_username."""

    def test_email_template(self) -> None:
        identity = CanonicalIdentity(id="1", username="foo", email="user@x.com")

        assert format_username("${email}", identity) == "user@x.com"

    def test_unknown_placeholder_is_stripped(self, identity) -> None:
        assert format_username("${nickname}", identity) == ""

    def test_sub_with_missing_placeholder(self) -> None:
        identity = CanonicalIdentity(id="99", username="foo")

        assert format_username("foo-${sub}-${missing}", identity) == "foo-99-"

    def test_username_placeholder(self, identity) -> None:
        assert format_username("twitch_${username}", identity) == "twitch_foo"

    def test_missing_email_is_stripped(self) -> None:
        identity = CanonicalIdentity(id="1", username="foo")

        assert format_username("${email}", identity) == ""

    def test_attribute_placeholders(self, identity) -> None:
        assert format_username("${iss}/${email_verified}", identity) == "https://id.twitch.tv/oauth2/true"

    def test_structured_fields_take_precedence(self) -> None:
        identity = CanonicalIdentity(
            id="1", username="foo", email="real@x.com", attributes={"email": "other@x.com"}
        )

        assert format_username("${email}", identity) == "real@x.com"

    def test_non_string_attribute_values_are_skipped(self) -> None:
        identity = CanonicalIdentity(id="1", username="foo", attributes={"level": 5})

        assert format_username("${level}", identity) == ""

    def test_literal_text_without_placeholders(self, identity) -> None:
        assert format_username("static", identity) == "static"


class TestTwitchUsernameMapper:
    """Tests for TwitchUsernameMapper."""

    def test_import_sets_username(self, identity) -> None:
        user = LocalUser(username="foo")

        TwitchUsernameMapper().import_new_user(user, identity)

        assert user.username == "a@b.com"

    def test_empty_result_keeps_username(self, identity) -> None:
        user = LocalUser(username="foo")

        TwitchUsernameMapper("${nickname}").import_new_user(user, identity)

        assert user.username == "foo"

    def test_update_never_renames(self, identity) -> None:
        user = LocalUser(username="foo")

        TwitchUsernameMapper("${sub}").update_brokered_user(user, identity)

        assert user.username == "foo"

    def test_config_property(self) -> None:
        (prop,) = TwitchUsernameMapper.config_properties

        assert prop.name == "template"
        assert prop.default_value == "${email}"
        assert TwitchUsernameMapper.compatible_providers == ("twitch",)


class TestGetJsonValue:
    """Tests for get_json_value."""

    def test_nested_paths(self) -> None:
        profile = {"a": {"b": [{"c": "x"}, {"c": "y"}]}, "d.e": "dotted"}

        assert get_json_value(profile, "a.b[1].c") == "y"
        assert get_json_value(profile, "d\\.e") == "dotted"
        assert get_json_value(profile, "a.b[5]") is None
        assert get_json_value(profile, "a.missing") is None


class TestTwitchUserAttributeMapper:
    """Tests for TwitchUserAttributeMapper."""

    def test_import_copies_attribute(self, identity) -> None:
        user = LocalUser(username="foo")

        TwitchUserAttributeMapper("picture", "avatar").import_new_user(user, identity)

        assert user.attributes["avatar"] == ["http://x"]

    def test_import_boolean_as_text(self, identity) -> None:
        user = LocalUser(username="foo")

        TwitchUserAttributeMapper("email_verified", "emailVerified").import_new_user(user, identity)

        assert user.get_first_attribute("emailVerified") == "true"

    def test_builtin_targets(self, identity) -> None:
        user = LocalUser(username="foo")

        TwitchUserAttributeMapper("preferred_username", "firstName").import_new_user(user, identity)
        TwitchUserAttributeMapper("email", "email").import_new_user(user, identity)

        assert user.first_name == "foo"
        assert user.email == "a@b.com"
        assert user.attributes == {}

    def test_list_values(self) -> None:
        identity = extract_identity_from_profile({"sub": "1", "roles": ["a", "b"]})
        user = LocalUser(username="foo")

        TwitchUserAttributeMapper("roles", "roles").import_new_user(user, identity)

        assert user.attributes["roles"] == ["a", "b"]

    def test_update_removes_missing_attribute(self) -> None:
        user = LocalUser(username="foo", attributes={"avatar": ["http://old"]})
        identity = extract_identity_from_profile({"sub": "1"})

        TwitchUserAttributeMapper("picture", "avatar").update_brokered_user(user, identity)

        assert "avatar" not in user.attributes

    def test_update_overwrites_attribute(self, identity) -> None:
        user = LocalUser(username="foo", attributes={"avatar": ["http://old"]})

        TwitchUserAttributeMapper("picture", "avatar").update_brokered_user(user, identity)

        assert user.attributes["avatar"] == ["http://x"]

    def test_config_properties(self) -> None:
        names = [prop.name for prop in TwitchUserAttributeMapper.config_properties]

        assert names == ["jsonField", "userAttribute"]
        assert TwitchUserAttributeMapper.compatible_providers == ("twitch",)


class TestBuildMappers:
    """Tests for build_mappers."""

    def test_builds_configured_mappers(self) -> None:
        mappers = build_mappers(
            MapperConfig(
                username_template="${sub}",
                attribute_mappings=[AttributeMapping("picture", "avatar")],
            )
        )

        assert [mapper.id for mapper in mappers] == [
            "twitch-username-mapper",
            "twitch-user-attribute-mapper",
        ]
        assert mappers[0].template == "${sub}"
        assert mappers[1].json_field == "picture"

    def test_username_mapper_disabled(self) -> None:
        assert build_mappers(MapperConfig(username_template=None)) == []

    def test_registry(self) -> None:
        assert set(MAPPER_TYPES) == {"twitch-username-mapper", "twitch-user-attribute-mapper"}
