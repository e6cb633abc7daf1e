"""
Grafana Forge - hermetic Grafana build and image assembly.

Builds the frontend bundle and the backend binaries in isolated stages
and assembles them into a container root filesystem.
"""

__version__ = "1.0.0"

# Re-export key components for easier access
from grafana_forge.models.config import ForgeConfig
from grafana_forge.models.image import ImageConfig, UserSpec
from grafana_forge.models.stage import BuildTagSet, SourceTree, StageOutput

__all__ = [
    "ForgeConfig",
    "ImageConfig",
    "UserSpec",
    "BuildTagSet",
    "SourceTree",
    "StageOutput",
]
