"""
Utility package providing helpers shared by cdrbac packages.

This package includes:
- Time range utilities for audit queries
- Configuration helpers for reading CDRBAC_* environment variables
"""

from .time_range import TimeRange
from .config import (
    ENV_PREFIX,
    env_key,
    get_config_value,
    get_bool_config,
    get_int_config,
)

__all__ = [
    'TimeRange',
    'ENV_PREFIX',
    'env_key',
    'get_config_value',
    'get_bool_config',
    'get_int_config',
]
