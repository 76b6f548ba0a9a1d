from .models import AppConfig, EngineConfig, LedgerBackend, LedgerConfig, ServiceConfig
from .system import CONFIG_ENV_VAR, load_app_config, resolve_config_path

__all__ = [
    "AppConfig",
    "EngineConfig",
    "LedgerBackend",
    "LedgerConfig",
    "ServiceConfig",
    "CONFIG_ENV_VAR",
    "load_app_config",
    "resolve_config_path",
]
