# src/config/__init__.py
# This file makes the config folder a Python package
# It exports the settings object that other modules can import

from .settings import (
    settings,
    Settings,
    NSQConfig,
    WebConfig,
    AppConfig,
    load_settings,
    parse_listen_address,
)

__all__ = [
    "settings",
    "Settings",
    "NSQConfig",
    "WebConfig",
    "AppConfig",
    "load_settings",
    "parse_listen_address",
]
