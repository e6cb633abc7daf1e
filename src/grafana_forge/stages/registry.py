"""Stage registry."""

import logging
from pathlib import Path
from typing import Dict, List, Type

from grafana_forge.models.config import ForgeConfig
from grafana_forge.stages.backend import BackendStage
from grafana_forge.stages.base import BuildStage
from grafana_forge.stages.frontend import FrontendStage


logger = logging.getLogger(__name__)


class StageRegistry:
    """Maps stage names to implementations."""

    def __init__(self):
        """Initialize stage registry."""
        self._stage_classes: Dict[str, Type[BuildStage]] = {
            "frontend": FrontendStage,
            "backend": BackendStage,
        }

    def create_stages(self, config: ForgeConfig) -> Dict[str, BuildStage]:
        """Instantiate one stage per configured definition."""
        stages: Dict[str, BuildStage] = {}
        for name, spec in config.stages.items():
            stage_class = self._stage_classes.get(name)
            if stage_class is None:
                raise ValueError(f"Unknown stage: {name}")
            stages[name] = stage_class(
                spec=spec,
                work_dir=Path(config.pipeline.work_dir),
                cache_dir=Path(config.pipeline.cache_dir),
                offline=config.pipeline.offline,
                timeout=config.pipeline.command_timeout,
            )
            logger.debug(f"Created stage: {name}")
        return stages

    def list_stages(self) -> List[str]:
        """List known stage names."""
        return list(self._stage_classes.keys())
