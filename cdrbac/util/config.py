"""
Environment variable lookup for cdrbac settings (``CDRBAC_<KEY>``).
"""

import os
from typing import Optional

from ..types.errors import ConfigurationError

ENV_PREFIX = "CDRBAC_"
TRUE_VALUES = ('true', '1', 'yes', 'on')
FALSE_VALUES = ('false', '0', 'no', 'off')


def env_key(key: str, env_prefix: str = ENV_PREFIX) -> str:
    return f"{env_prefix}{key.upper()}"


def get_config_value(key: str, default: Optional[str] = None,
                     env_prefix: str = ENV_PREFIX) -> Optional[str]:
    """Raw value of ``CDRBAC_<KEY>``, or ``default`` when unset."""
    return os.environ.get(env_key(key, env_prefix), default)


def get_bool_config(key: str, default: bool = False,
                    env_prefix: str = ENV_PREFIX) -> bool:
    """
    Boolean setting. Raises ConfigurationError for unrecognised values.
    """
    value = get_config_value(key, env_prefix=env_prefix)
    if value is None:
        return default

    normalized = value.strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False

    raise ConfigurationError(
        f"{env_key(key, env_prefix)} must be a boolean",
        config_key=key,
        config_value=value,
    )


def get_int_config(key: str, default: int = 0,
                   env_prefix: str = ENV_PREFIX) -> int:
    """Integer setting. Raises ConfigurationError for non-integers."""
    value = get_config_value(key, env_prefix=env_prefix)
    if value is None:
        return default

    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(
            f"{env_key(key, env_prefix)} must be an integer",
            config_key=key,
            config_value=value,
        )
