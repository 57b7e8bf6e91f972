from .loader import (
    DEFAULT_CONFIG_PATH,
    ConfigError,
    DatabaseConfig,
    IngestConfig,
    StorageConfig,
    config_from_dict,
    load_config,
)

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "ConfigError",
    "DatabaseConfig",
    "IngestConfig",
    "StorageConfig",
    "config_from_dict",
    "load_config",
]
