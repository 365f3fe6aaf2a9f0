"""
Loading policy documents from disk.
"""

import logging
from pathlib import Path
from typing import Optional, Union

import aiofiles

from ..types.errors import ConfigurationError
from .compiler import PolicyCompiler
from .types import CompiledPolicy

logger = logging.getLogger(__name__)


async def read_policy_file(path: Union[str, Path]) -> str:
    """Read a policy document. Raises ConfigurationError if it cannot be read."""
    policy_path = Path(path)

    try:
        async with aiofiles.open(policy_path, 'r', encoding='utf-8') as f:
            return await f.read()
    except OSError as e:
        raise ConfigurationError(
            f"Cannot read policy file: {e}",
            config_key="policy_file",
            config_value=str(policy_path),
        )
    except UnicodeDecodeError as e:
        raise ConfigurationError(
            f"Policy file is not valid UTF-8: {e}",
            config_key="policy_file",
            config_value=str(policy_path),
        )


async def load_policy_file(
    path: Union[str, Path],
    compiler: Optional[PolicyCompiler] = None,
) -> CompiledPolicy:
    """Read and compile a policy file."""
    compiler = compiler or PolicyCompiler()
    text = await read_policy_file(path)
    logger.info(f"Loaded policy file {path}")
    return compiler.compile_text(text)
