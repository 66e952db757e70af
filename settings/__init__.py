"""설정 모듈 - YAML 로드, 검증, 변경 감지"""

from settings.exception import ConfigurationError
from settings.loader import load_settings, validate_settings
from settings.model import (
    DatabaseConfig,
    EndpointConfig,
    QueryConfig,
    QueryPushSettings,
)

__all__ = [
    "ConfigurationError",
    "load_settings",
    "validate_settings",
    "DatabaseConfig",
    "EndpointConfig",
    "QueryConfig",
    "QueryPushSettings",
]
