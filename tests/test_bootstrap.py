"""Tests for the target context initializer."""

import pytest
from pydantic import ValidationError

from phasegate.bootstrap import (
    TargetContext,
    build_target_context,
    decode_auth_state,
    encode_auth_state,
    resolve_build_id,
)
from phasegate.core.exceptions import ConfigurationError


class TestResolveBuildId:
    """Test build id precedence."""

    def test_configured_wins(self):
        assert resolve_build_id({"HE_BUILD_ID": "9"}, configured="fixed") == "fixed"

    def test_environment_order(self):
        environ = {"HE_BUILD_ID": "9", "GITHUB_RUN_NUMBER": "100"}
        assert resolve_build_id(environ) == "9"
        assert resolve_build_id({"GITHUB_RUN_NUMBER": "100"}) == "100"
        assert resolve_build_id({"PHASEGATE_BUILD_ID": "1", **environ}) == "1"

    def test_falls_back_to_clock(self):
        build_id = resolve_build_id({})
        assert build_id.isdigit()
        assert len(build_id) >= 13


class TestAuthState:
    """Test the base64 session blob."""

    def test_round_trip(self):
        state = {"cookies": [{"name": "sid", "value": "abc"}]}
        assert decode_auth_state(encode_auth_state(state)) == state

    @pytest.mark.parametrize("blob", ["not base64!", "bm90IGpzb24="])
    def test_invalid_blob(self, blob):
        with pytest.raises(ConfigurationError, match="AUTH_STATE"):
            decode_auth_state(blob)

    def test_blob_must_be_object(self):
        with pytest.raises(ConfigurationError, match="JSON object"):
            decode_auth_state(encode_auth_state([1, 2]))


class TestTargetContext:
    """Test context construction."""

    def test_build_context(self):
        state = {"token": "t"}
        context = build_target_context(
            base_url="https://app.example.test",
            environ={"GITHUB_RUN_NUMBER": "12", "AUTH_STATE": encode_auth_state(state)},
        )

        assert context.base_url == "https://app.example.test"
        assert context.auth_url == "https://app.example.test"
        assert context.build_id == "12"
        assert context.auth_state == state

    def test_separate_auth_url(self):
        context = build_target_context(
            base_url="https://app.example.test",
            auth_url="https://auth.example.test",
            environ={},
        )
        assert context.auth_url == "https://auth.example.test"
        assert context.auth_state is None

    def test_context_is_frozen(self):
        context = TargetContext(build_id="1")
        with pytest.raises(ValidationError):
            context.build_id = "2"

    def test_to_env(self):
        context = TargetContext(
            base_url="https://app.example.test",
            auth_url="https://auth.example.test",
            build_id="5",
            auth_state={"a": 1},
        )

        env = context.to_env()

        assert env["PHASEGATE_BASE_URL"] == "https://app.example.test"
        assert env["PHASEGATE_AUTH_URL"] == "https://auth.example.test"
        assert env["PHASEGATE_BUILD_ID"] == "5"
        assert decode_auth_state(env["AUTH_STATE"]) == {"a": 1}

    def test_to_env_without_auth_state(self):
        assert "AUTH_STATE" not in TargetContext(build_id="5").to_env()
