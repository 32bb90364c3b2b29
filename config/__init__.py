"""Configuration package for the practice session service."""
from .routing import AppConfig, LlmRoute, SessionFlowSettings, load_config, resolve_registry
from .settings import Settings, settings

__all__ = [
    "AppConfig",
    "LlmRoute",
    "SessionFlowSettings",
    "load_config",
    "resolve_registry",
    "Settings",
    "settings",
]
