"""Root filesystem assembly."""

from grafana_forge.assembly.assembler import AssemblyStep, ImageAssembler, StepResult
from grafana_forge.assembly.image_config import (
    build_image_config,
    check_image_metadata,
    validate_image_config,
)
from grafana_forge.assembly.packer import ImagePacker, PackedImage
from grafana_forge.assembly.rootfs import RootFilesystem

__all__ = [
    "AssemblyStep",
    "ImageAssembler",
    "StepResult",
    "build_image_config",
    "check_image_metadata",
    "validate_image_config",
    "ImagePacker",
    "PackedImage",
    "RootFilesystem",
]
