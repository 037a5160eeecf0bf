"""Tests for token response scope normalization."""

import json
from unittest.mock import MagicMock

import pytest

from twitch_identity_provider_plugin.scope import normalize_scope, scope_compliance_hook


class TestNormalizeScope:
    """Tests for normalize_scope."""

    def test_array_scope_is_space_joined(self) -> None:
        raw = '{"access_token":"abc123","scope":["openid","user:read:email"]}'

        result = json.loads(normalize_scope(raw))

        assert result["scope"] == "openid user:read:email"
        assert result["access_token"] == "abc123"

    def test_order_is_preserved(self) -> None:
        raw = '{"scope":["c","a","b"]}'

        assert json.loads(normalize_scope(raw))["scope"] == "c a b"

    def test_empty_array_becomes_empty_string(self) -> None:
        assert normalize_scope('{"scope":[]}') == '{"scope":""}'

    def test_only_scope_changes(self) -> None:
        raw = '{"access_token":"abc123","expires_in":3600,"scope":["openid"],"token_type":"bearer"}'

        assert normalize_scope(raw) == (
            '{"access_token":"abc123","expires_in":3600,"scope":"openid","token_type":"bearer"}'
        )

    def test_non_string_elements_are_coerced(self) -> None:
        raw = '{"scope":["openid",1,true,null]}'

        assert json.loads(normalize_scope(raw))["scope"] == "openid 1 true null"

    @pytest.mark.parametrize(
        "raw",
        [
            '{"access_token": "abc123", "scope": "openid user:read:email"}',
            '{"access_token": "abc123"}',
            '{"access_token": "abc123", "scope": null}',
            '["openid"]',
        ],
    )
    def test_conformant_responses_are_untouched(self, raw: str) -> None:
        assert normalize_scope(raw) is raw

    @pytest.mark.parametrize("raw", ["", "not json", '{"scope": [', "access_token=abc&scope=openid"])
    def test_malformed_responses_are_returned_unchanged(self, raw: str) -> None:
        assert normalize_scope(raw) == raw


class TestScopeComplianceHook:
    """Tests for the Authlib compliance hook."""

    def test_rewrites_response_body(self) -> None:
        response = MagicMock()
        response.text = '{"access_token":"abc123","scope":["openid","user:read:email"]}'

        result = scope_compliance_hook(response)

        assert result is response
        assert json.loads(response._content)["scope"] == "openid user:read:email"

    def test_leaves_conformant_body_alone(self) -> None:
        response = MagicMock()
        response.text = '{"access_token":"abc123","scope":"openid"}'
        response._content = b"original"

        scope_compliance_hook(response)

        assert response._content == b"original"
