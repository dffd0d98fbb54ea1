from __future__ import annotations

from .infrastructure import RedisConfig, RemoteStoreConfig
from .settings import AppConfig, RuntimeConfig, Settings, load_config
from .sync import SyncConfig

__all__ = [
    "AppConfig",
    "RedisConfig",
    "RemoteStoreConfig",
    "RuntimeConfig",
    "Settings",
    "SyncConfig",
    "load_config",
]
