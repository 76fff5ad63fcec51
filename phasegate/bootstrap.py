"""One-shot target context shared with phase executors.

The context describes the system under test (where it lives, which build
the run belongs to, and any session state a login step exported). It is
resolved once per process and handed to executors; the orchestrator only
pins its build id to the run so every invocation of a run shares it.
"""

import base64
import binascii
import json
import os
import time
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from phasegate.core.exceptions import ConfigurationError

BUILD_ID_ENV_VARS = ("PHASEGATE_BUILD_ID", "HE_BUILD_ID", "GITHUB_RUN_NUMBER")
AUTH_STATE_ENV_VAR = "AUTH_STATE"


class TargetContext(BaseModel):
    """Immutable description of the target system."""

    model_config = ConfigDict(frozen=True)

    base_url: str = Field(default="", description="Base URL of the application under test")
    auth_url: str = Field(default="", description="Base URL of the authentication service")
    build_id: str = Field(..., description="Identifier shared by every phase of a run")
    auth_state: Optional[Dict[str, Any]] = Field(
        default=None, description="Session state exported by a login step"
    )

    def to_env(self) -> Dict[str, str]:
        """Environment variables exported to executor subprocesses."""
        env = {
            "PHASEGATE_BASE_URL": self.base_url,
            "PHASEGATE_AUTH_URL": self.auth_url,
            "PHASEGATE_BUILD_ID": self.build_id,
        }
        if self.auth_state is not None:
            env[AUTH_STATE_ENV_VAR] = encode_auth_state(self.auth_state)
        return env


def resolve_build_id(
    environ: Mapping[str, str], configured: Optional[str] = None
) -> str:
    """Pick the build id: configuration, then CI variables, then the clock."""
    if configured:
        return configured

    for name in BUILD_ID_ENV_VARS:
        value = environ.get(name)
        if value:
            return value

    return str(int(time.time() * 1000))


def encode_auth_state(state: Dict[str, Any]) -> str:
    return base64.b64encode(json.dumps(state).encode("utf-8")).decode("ascii")


def decode_auth_state(encoded: str) -> Dict[str, Any]:
    """Decode a base64 JSON session blob.

    Raises:
        ConfigurationError: If the blob is not base64 encoded JSON
    """
    try:
        data = json.loads(base64.b64decode(encoded, validate=True).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"{AUTH_STATE_ENV_VAR} is not valid base64 JSON: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"{AUTH_STATE_ENV_VAR} must encode a JSON object")
    return data


def build_target_context(
    base_url: str = "",
    auth_url: str = "",
    build_id: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> TargetContext:
    """Resolve the target context once from configuration and the environment."""
    if environ is None:
        environ = os.environ

    auth_state = None
    encoded = environ.get(AUTH_STATE_ENV_VAR)
    if encoded:
        auth_state = decode_auth_state(encoded)

    return TargetContext(
        base_url=base_url,
        auth_url=auth_url or base_url,
        build_id=resolve_build_id(environ, build_id),
        auth_state=auth_state,
    )
