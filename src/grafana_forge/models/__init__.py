"""Pydantic models for configuration and validation."""

from grafana_forge.models.config import (
    ForgeConfig,
    PipelineConfig,
    GrafanaPaths,
    RuntimeIdentity,
)
from grafana_forge.models.image import ImageConfig, ImageMetadata, KeyValue, UserSpec
from grafana_forge.models.stage import BuildTagSet, SourceTree, StageOutput, StageSpec

__all__ = [
    "ForgeConfig",
    "PipelineConfig",
    "GrafanaPaths",
    "RuntimeIdentity",
    "ImageConfig",
    "ImageMetadata",
    "KeyValue",
    "UserSpec",
    "BuildTagSet",
    "SourceTree",
    "StageOutput",
    "StageSpec",
]
