"""
Config Observer
===============
Applies configuration change notifications to a RuntimeConfig.
"""

from typing import Any, Dict, Iterable, Mapping, Set

import structlog

from ..models import AuthParamMode
from ..transport.base import ReconnectBackoff
from .runtime import RuntimeConfig
from .settings import CONFIG_PREFIX, HandoffSettings, coerce_value, resolve_authorization_mode

logger = structlog.get_logger(__name__)

BACKOFF_KEYS = frozenset({
    "handoff_grpc_arg_initial_reconnect_backoff_ms",
    "handoff_grpc_arg_max_reconnect_backoff_ms",
    "handoff_grpc_arg_min_reconnect_backoff_ms",
})

AUTHPARAM_KEYS = frozenset({
    "handoff_authparam_always",
    "handoff_authparam_withtoken",
})

TRACKED_KEYS = tuple(sorted(BACKOFF_KEYS | AUTHPARAM_KEYS | {
    "handoff_enable_chunked_upload",
    "handoff_enable_presigned_expiry_check",
    "handoff_enable_signature_v2",
    "handoff_endpoint",
}))

_DEFAULTS = HandoffSettings()


def _get(conf: Mapping[str, Any], key: str) -> Any:
    name = key[len(CONFIG_PREFIX):]
    if key in conf:
        return coerce_value(name, conf[key])
    return getattr(_DEFAULTS, name)


def get_authorization_mode(conf: Mapping[str, Any]) -> AuthParamMode:
    """Resolve the context policy from ``handoff_authparam_*`` keys."""
    return resolve_authorization_mode(
        _get(conf, "handoff_authparam_always"),
        _get(conf, "handoff_authparam_withtoken"),
    )


class ConfigObserver:
    """
    Forwards tracked config key changes to a RuntimeConfig.

    The host's config watcher calls ``handle_conf_change`` with the full
    current config and the set of keys that changed.
    """

    def __init__(self, runtime: RuntimeConfig):
        self.runtime = runtime

    def get_tracked_conf_keys(self):
        return TRACKED_KEYS

    def _coerce_changed(self, conf: Mapping[str, Any], changed: Set[str]) -> Dict[str, Any]:
        values = {}
        for key in sorted(changed.intersection(TRACKED_KEYS)):
            try:
                values[key] = _get(conf, key)
            except (TypeError, ValueError) as e:
                logger.error("handoff_conf_rejected", key=key, value=str(conf.get(key)), error=str(e))
        return values

    async def handle_conf_change(self, conf: Mapping[str, Any], changed: Iterable[str]) -> None:
        """
        Apply changed keys in order: backoff, endpoint, then toggles.

        Every changed key is coerced before anything is applied. A key with
        a bad value is logged and skipped together with the rest of its
        group (backoff or context policy); the other groups still apply.

        A backoff change without an endpoint change rebuilds the channel on
        the current endpoint so the new options take effect.
        """
        changed = set(changed)
        values = self._coerce_changed(conf, changed)
        rejected = changed.intersection(TRACKED_KEYS).difference(values)
        runtime = self.runtime

        backoff_changed = bool(changed & BACKOFF_KEYS) and not (rejected & BACKOFF_KEYS)
        if backoff_changed:
            current = runtime.backoff
            runtime.set_channel_args(ReconnectBackoff(
                initial_ms=values.get(
                    "handoff_grpc_arg_initial_reconnect_backoff_ms", current.initial_ms),
                min_ms=values.get("handoff_grpc_arg_min_reconnect_backoff_ms", current.min_ms),
                max_ms=values.get("handoff_grpc_arg_max_reconnect_backoff_ms", current.max_ms),
            ))

        if "handoff_endpoint" in values:
            await runtime.set_channel_uri(values["handoff_endpoint"])
        elif backoff_changed and runtime.endpoint is not None:
            await runtime.set_channel_uri(runtime.endpoint)

        if "handoff_enable_chunked_upload" in values:
            runtime.set_chunked_upload_mode(values["handoff_enable_chunked_upload"])
        if "handoff_enable_signature_v2" in values:
            runtime.set_signature_v2(values["handoff_enable_signature_v2"])
        if "handoff_enable_presigned_expiry_check" in values:
            runtime.set_presigned_expiry_check(values["handoff_enable_presigned_expiry_check"])
        if changed & AUTHPARAM_KEYS and not (rejected & AUTHPARAM_KEYS):
            try:
                mode = get_authorization_mode(conf)
            except (TypeError, ValueError) as e:
                logger.error("handoff_conf_rejected", key="handoff_authparam_*", error=str(e))
            else:
                runtime.set_authorization_mode(mode)

        ignored = changed - set(TRACKED_KEYS)
        if ignored:
            logger.debug("handoff_conf_keys_ignored", keys=sorted(ignored))
