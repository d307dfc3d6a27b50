"""
Handoff Settings
================
Startup configuration, read from the environment or a config mapping.
"""

import os
from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional

from ..models import AuthParamMode
from ..transport.base import TRANSPORT_GRPC, TRANSPORT_HTTP, ReconnectBackoff

TRANSPORTS = (TRANSPORT_GRPC, TRANSPORT_HTTP)

# gRPC core defaults for the reconnect backoff channel arguments.
DEFAULT_INITIAL_RECONNECT_BACKOFF_MS = 1000
DEFAULT_MIN_RECONNECT_BACKOFF_MS = 20000
DEFAULT_MAX_RECONNECT_BACKOFF_MS = 120000

CONFIG_PREFIX = "handoff_"

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"not a boolean: {value!r}")


@dataclass
class HandoffSettings:
    """
    Configuration for the authentication handoff.

    Each field maps to a config key ``handoff_<field>`` and an environment
    variable ``HANDOFF_<FIELD>``. ``transport`` is fixed at startup; every
    other field can be changed at runtime through ConfigObserver.
    """
    transport: str = TRANSPORT_GRPC
    endpoint: str = ""
    enable_signature_v2: bool = True
    enable_chunked_upload: bool = True
    enable_presigned_expiry_check: bool = False
    authparam_always: bool = True
    authparam_withtoken: bool = False
    grpc_arg_initial_reconnect_backoff_ms: int = DEFAULT_INITIAL_RECONNECT_BACKOFF_MS
    grpc_arg_min_reconnect_backoff_ms: int = DEFAULT_MIN_RECONNECT_BACKOFF_MS
    grpc_arg_max_reconnect_backoff_ms: int = DEFAULT_MAX_RECONNECT_BACKOFF_MS
    verify_timeout: float = 5.0
    channel_close_grace: float = 5.0

    def __post_init__(self):
        self.transport = self.transport.lower()
        if self.transport not in TRANSPORTS:
            raise ValueError(f"unknown handoff transport {self.transport!r}")
        if self.verify_timeout <= 0:
            raise ValueError("verify_timeout must be positive")

    @property
    def reconnect_backoff(self) -> ReconnectBackoff:
        return ReconnectBackoff(
            initial_ms=self.grpc_arg_initial_reconnect_backoff_ms,
            min_ms=self.grpc_arg_min_reconnect_backoff_ms,
            max_ms=self.grpc_arg_max_reconnect_backoff_ms,
        )

    @property
    def authorization_mode(self) -> AuthParamMode:
        return resolve_authorization_mode(self.authparam_always, self.authparam_withtoken)

    @classmethod
    def from_mapping(cls, conf: Mapping[str, Any]) -> "HandoffSettings":
        """
        Build settings from ``handoff_*`` config keys.

        Missing keys keep their defaults. Values are coerced to the field's
        type, so strings from a config file are accepted.
        """
        values = {}
        for f in fields(cls):
            key = CONFIG_PREFIX + f.name
            if key in conf:
                values[f.name] = coerce_value(f.name, conf[key])
        return cls(**values)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "HandoffSettings":
        """Build settings from ``HANDOFF_*`` environment variables."""
        environ = os.environ if environ is None else environ
        conf = {
            key.lower(): value
            for key, value in environ.items()
            if key.startswith(CONFIG_PREFIX.upper())
        }
        return cls.from_mapping(conf)


_FIELD_TYPES = {
    "transport": str,
    "endpoint": str,
    "enable_signature_v2": parse_bool,
    "enable_chunked_upload": parse_bool,
    "enable_presigned_expiry_check": parse_bool,
    "authparam_always": parse_bool,
    "authparam_withtoken": parse_bool,
    "grpc_arg_initial_reconnect_backoff_ms": int,
    "grpc_arg_min_reconnect_backoff_ms": int,
    "grpc_arg_max_reconnect_backoff_ms": int,
    "verify_timeout": float,
    "channel_close_grace": float,
}


def coerce_value(name: str, value: Any) -> Any:
    """Convert a raw config value for settings field ``name``."""
    return _FIELD_TYPES[name](value)


def resolve_authorization_mode(always: bool, withtoken: bool) -> AuthParamMode:
    """``always`` wins over ``withtoken``; neither means NEVER."""
    if always:
        return AuthParamMode.ALWAYS
    if withtoken:
        return AuthParamMode.WITHTOKEN
    return AuthParamMode.NEVER
