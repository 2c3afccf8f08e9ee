from .settings import (
    BlueskySettings,
    ConfigError,
    OpenAlexSettings,
    OrcidSettings,
    OzoneSettings,
    Settings,
    validate_config,
)
from .database_config import DatabaseConfig, mask_connection_string

__all__ = [
    "BlueskySettings",
    "ConfigError",
    "DatabaseConfig",
    "OpenAlexSettings",
    "OrcidSettings",
    "OzoneSettings",
    "Settings",
    "mask_connection_string",
    "validate_config",
]
