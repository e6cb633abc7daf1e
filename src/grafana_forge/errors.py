"""Exception hierarchy for the build pipeline."""

from typing import Optional


class ForgeError(Exception):
    """Base class for all pipeline errors."""


class StageBuildError(ForgeError):
    """A build stage phase failed."""

    def __init__(self, stage_name: str, phase: str, cause: Optional[BaseException] = None):
        self.stage_name = stage_name
        self.phase = phase
        self.cause = cause
        super().__init__(f"Stage {stage_name} failed in {phase} phase: {cause}")


class CycleError(ForgeError):
    """The stage graph contains a dependency cycle."""

    def __init__(self, nodes):
        self.nodes = list(nodes)
        super().__init__(f"Dependency cycle between: {', '.join(self.nodes)}")


class UnsatisfiedDependencyError(ForgeError):
    """A node was started before its dependencies completed."""

    def __init__(self, node: str, missing):
        self.node = node
        self.missing = sorted(missing)
        super().__init__(f"Cannot start {node}, waiting on: {', '.join(self.missing)}")


class AssemblyError(ForgeError):
    """A root filesystem assembly step failed."""

    def __init__(self, step: str, cause: Optional[BaseException] = None):
        self.step = step
        self.cause = cause
        super().__init__(f"Assembly failed at {step} step: {cause}")


class ConfigValidationError(ForgeError):
    """Image runtime metadata is inconsistent."""
