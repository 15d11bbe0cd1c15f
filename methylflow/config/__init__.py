"""
Configuration management for MethylFlow

This module provides configuration loading, validation, table schemas and
sample grouping rules for the MethylFlow pipeline.
"""

from .config import (Config, get_default_config, load_config, save_config,
                     validate_config)
from .paths import PathConfig, validate_paths
from .sample_config import (CONTROL_GROUP, REMOVAL_GROUP, TREATED_GROUP,
                            SampleGroupRules)
from .schemas import (CountMatrixSchema, TableSchema, build_table_schemas,
                      get_count_schema)

__all__ = [
    "Config",
    "load_config",
    "save_config",
    "validate_config",
    "get_default_config",
    "PathConfig",
    "validate_paths",
    "SampleGroupRules",
    "CONTROL_GROUP",
    "TREATED_GROUP",
    "REMOVAL_GROUP",
    "TableSchema",
    "CountMatrixSchema",
    "build_table_schemas",
    "get_count_schema",
]
