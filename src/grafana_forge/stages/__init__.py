"""Build stages."""

from grafana_forge.stages.base import BuildStage, PHASES
from grafana_forge.stages.backend import BackendStage
from grafana_forge.stages.frontend import FrontendStage
from grafana_forge.stages.registry import StageRegistry

__all__ = [
    "BuildStage",
    "PHASES",
    "BackendStage",
    "FrontendStage",
    "StageRegistry",
]
