"""
Handoff Configuration
=====================
Startup settings, runtime-mutable state and the config change observer.
"""

from .settings import HandoffSettings, parse_bool
from .runtime import FeatureToggles, RuntimeConfig, RuntimeSnapshot, TransportChannel
from .observer import TRACKED_KEYS, ConfigObserver, get_authorization_mode

__all__ = [
    "HandoffSettings",
    "parse_bool",
    "FeatureToggles",
    "RuntimeConfig",
    "RuntimeSnapshot",
    "TransportChannel",
    "TRACKED_KEYS",
    "ConfigObserver",
    "get_authorization_mode",
]
