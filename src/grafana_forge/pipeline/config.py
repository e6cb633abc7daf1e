"""Configuration loading."""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from ruamel.yaml import YAML
from pydantic import ValidationError

from grafana_forge.models.config import ForgeConfig
from grafana_forge.utils.templates import merge_dicts


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "forge.yaml"


class ConfigManager:
    """Loads the pipeline configuration file and applies overrides."""

    def __init__(self, config_file: Optional[Path] = None):
        """Initialize configuration manager."""
        self.config_file = Path(config_file) if config_file else None
        self.yaml = YAML(typ="safe")
        self.config: Optional[ForgeConfig] = None

    async def load(self, overrides: Optional[Dict[str, Any]] = None) -> ForgeConfig:
        """Load configuration, deep-merging per-invocation overrides."""
        data: Dict[str, Any] = {}
        if self.config_file is not None:
            if not self.config_file.exists():
                raise FileNotFoundError(f"Config file not found: {self.config_file}")
            logger.info(f"Loading configuration from {self.config_file}")
            data = await self._read_yaml(self.config_file) or {}
            if not isinstance(data, dict):
                raise ValueError(f"Config file must contain a mapping: {self.config_file}")

        if overrides:
            data = merge_dicts(data, overrides)

        try:
            self.config = ForgeConfig(**data)
        except ValidationError as e:
            logger.error(f"Invalid configuration: {e}")
            raise

        return self.config

    async def _read_yaml(self, file_path: Path) -> Dict[str, Any]:
        """Read and parse YAML file."""
        content = await asyncio.to_thread(file_path.read_text)
        return self.yaml.load(content)


def cli_overrides(**values: Any) -> Dict[str, Any]:
    """Pipeline overrides from flags that were actually given."""
    pipeline = {key: value for key, value in values.items() if value is not None}
    return {"pipeline": pipeline} if pipeline else {}
