"""Structured configuration for brain-core.

Configuration is layered with OmegaConf: the dataclass defaults below, then
an optional YAML file (``${oc.env:VAR,default}`` interpolation works there),
then dotlist overrides such as ``memory.max_active_turns=4``. Variables from
a ``.env`` file are loaded first.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union

from dotenv import load_dotenv
from loguru import logger
from omegaconf import OmegaConf
from omegaconf.errors import OmegaConfBaseException

from .llm.config import LLMConfig
from .memory.tiered import TieredMemoryConfig
from .pipeline.types import QueryConfig


@dataclass
class BusConfig:
    """Message bus settings."""
    # Seconds send_request waits when the caller gives no timeout
    default_timeout: float = 5.0


@dataclass
class BrainConfig:
    """Complete configuration."""
    bus: BusConfig = field(default_factory=BusConfig)
    memory: TieredMemoryConfig = field(default_factory=TieredMemoryConfig)
    query: QueryConfig = field(default_factory=QueryConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Sequence[str]] = None,
    env_file: Optional[Union[str, Path]] = None,
) -> BrainConfig:
    """Load the configuration.

    Args:
        config_path: YAML file merged over the defaults; ``BRAIN_CONFIG``
            names one when omitted
        overrides: Dotlist overrides applied last
        env_file: ``.env`` file to load, defaults to python-dotenv's lookup

    Returns:
        Validated configuration

    Raises:
        FileNotFoundError: If ``config_path`` does not exist
        ValueError: If a value fails validation
    """
    if env_file is not None:
        load_dotenv(env_file)
    else:
        load_dotenv()

    layers = [OmegaConf.structured(BrainConfig)]

    path = config_path or os.getenv("BRAIN_CONFIG")
    if path:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        layers.append(OmegaConf.load(path))
        logger.info(f"Config: Loaded configuration from {path}")

    if overrides:
        layers.append(OmegaConf.from_dotlist(list(overrides)))

    try:
        config = OmegaConf.to_object(OmegaConf.merge(*layers))
    except OmegaConfBaseException as e:
        raise ValueError(f"Invalid configuration: {e}") from e
    logger.debug(f"Config: Effective configuration {config_to_dict(config)}")
    return config


def config_to_dict(config: BrainConfig) -> Dict[str, Any]:
    """Plain dictionary view with secrets masked."""
    data = OmegaConf.to_container(OmegaConf.structured(config), resolve=True)
    data["llm"] = config.llm.to_dict()
    return data
