from .loader import load_config, load_config_with_overrides, parse_overrides
from .schema import OrthoscopeConfig, SourceVersions, IngestionConfig, QueryConfig

__all__ = [
    "load_config",
    "load_config_with_overrides",
    "parse_overrides",
    "OrthoscopeConfig",
    "SourceVersions",
    "IngestionConfig",
    "QueryConfig",
]
