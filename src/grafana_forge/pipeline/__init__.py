"""Stage scheduling and orchestration."""

from grafana_forge.pipeline.config import ConfigManager
from grafana_forge.pipeline.graph import ASSEMBLE, NodeState, StageGraph
from grafana_forge.pipeline.runner import Pipeline, PipelineResult

__all__ = [
    "ConfigManager",
    "ASSEMBLE",
    "NodeState",
    "StageGraph",
    "Pipeline",
    "PipelineResult",
]
