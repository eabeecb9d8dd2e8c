"""Configuration loading."""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError
from pydantic import ValidationError

from splitami.errors import InvalidInput
from splitami.models.config import SplitConfig


logger = logging.getLogger(__name__)


class ConfigManager:
    """Loads the split configuration from an optional YAML file."""

    def __init__(self, config_file: Optional[Path] = None):
        """Initialize configuration manager."""
        self.config_file = Path(config_file) if config_file else None
        self.yaml = YAML(typ="safe")
        self.config: Optional[SplitConfig] = None

    async def load(self, overrides: Optional[Dict[str, Any]] = None) -> SplitConfig:
        """Load configuration, applying command line overrides on top."""
        data: Dict[str, Any] = {}
        if self.config_file:
            if not self.config_file.exists():
                raise InvalidInput(f"Config file not found: {self.config_file}")
            data = await self._read_yaml(self.config_file) or {}
            if not isinstance(data, dict):
                raise InvalidInput(f"Config file must contain a mapping: {self.config_file}")
            logger.debug(f"Loaded config file: {self.config_file}")

        for dotted_key, value in (overrides or {}).items():
            if value is not None:
                _set_dotted(data, dotted_key, value)

        try:
            self.config = SplitConfig(**data)
        except ValidationError as e:
            logger.error(f"Invalid configuration: {e}")
            raise InvalidInput(f"Invalid configuration: {e}") from e

        return self.config

    async def _read_yaml(self, file_path: Path) -> Any:
        """Read and parse YAML file."""
        try:
            return await asyncio.to_thread(self.yaml.load, file_path)
        except YAMLError as e:
            raise InvalidInput(f"Cannot parse {file_path}: {e}") from e


def _set_dotted(data: Dict[str, Any], dotted_key: str, value: Any) -> None:
    """Set ``a.b.c`` style keys in nested dictionaries."""
    *parents, leaf = dotted_key.split(".")
    node = data
    for key in parents:
        node = node.setdefault(key, {})
    node[leaf] = value
