"""Root filesystem assembly."""

import logging
import os
import shutil
import tempfile
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from grafana_forge.assembly.identity import IdentityDirectory, ensure_identity
from grafana_forge.assembly.image_config import check_image_metadata, validate_image_config
from grafana_forge.assembly.layout import (
    config_dir,
    owned_dirs,
    plan_copies,
    skeleton_dirs,
    writable_dirs,
)
from grafana_forge.assembly.rootfs import RootFilesystem
from grafana_forge.errors import AssemblyError, ConfigValidationError
from grafana_forge.models.config import GrafanaPaths, RuntimeIdentity
from grafana_forge.models.image import ImageConfig
from grafana_forge.models.stage import StageOutput


logger = logging.getLogger(__name__)

REQUIRED_STAGES = ("backend", "frontend")
SAMPLE_CONFIG = "conf/sample.ini"
LDAP_CONFIG = "ldap.toml"
WRITABLE_MODE = 0o777
ENTRYPOINT_MODE = 0o755


class AssemblyStep(str, Enum):
    """Assembly steps, in execution order."""
    SKELETON = "skeleton"
    IDENTITY = "identity"
    COPY = "copy"
    CONFIG = "config"
    ENTRYPOINT = "entrypoint"
    PERMISSIONS = "permissions"


class StepResult(BaseModel):
    """Outcome of a single assembly step."""
    step: AssemblyStep
    paths: List[str] = Field(default_factory=list)
    detail: str = ""


def default_chown() -> Optional[Callable]:
    """Real chown when running as root, otherwise only record ownership."""
    if hasattr(os, "geteuid") and os.geteuid() == 0:
        return os.chown
    return None


class ImageAssembler:
    """Builds the root filesystem from completed stage outputs.

    Only outputs marked completed by their stage are accepted. Assembly
    runs in a staging directory beside ``destination``; the image config is
    validated against the staged tree, which is moved into place only after
    every step and the validation succeeded. On failure the staging
    directory is removed and nothing is published.
    """

    def __init__(
        self,
        destination: Path,
        paths: GrafanaPaths,
        identity: RuntimeIdentity,
        entrypoint_script: Path,
        chown: Optional[Callable] = None,
    ):
        """Initialize assembler."""
        self.destination = Path(destination)
        self.paths = paths
        self.identity = identity
        self.entrypoint_script = Path(entrypoint_script)
        self.chown = chown
        self.results: List[StepResult] = []

    def assemble(self, outputs: List[StageOutput], config: ImageConfig) -> RootFilesystem:
        """Run all steps, validate the result and publish the root filesystem."""
        incomplete = sorted(o.stage_name for o in outputs if not o.completed)
        if incomplete:
            raise AssemblyError(
                "inputs",
                ValueError(f"Outputs of stages that did not complete: {', '.join(incomplete)}"),
            )
        check_image_metadata(config)

        self.destination.parent.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(
            prefix=f".{self.destination.name}.partial-",
            dir=self.destination.parent,
        ))
        staging.chmod(0o755)
        rootfs = RootFilesystem(staging)
        self.results = []

        steps = [
            (AssemblyStep.SKELETON, lambda: self.create_skeleton(rootfs)),
            (AssemblyStep.IDENTITY, lambda: self.create_identity(rootfs)),
            (AssemblyStep.COPY, lambda: self.copy_outputs(rootfs, outputs)),
            (AssemblyStep.CONFIG, lambda: self.seed_config(rootfs)),
            (AssemblyStep.ENTRYPOINT, lambda: self.install_entrypoint(rootfs, config)),
            (AssemblyStep.PERMISSIONS, lambda: self.apply_permissions(rootfs)),
        ]

        try:
            for step, run_step in steps:
                logger.info(f"Assembly step: {step.value}")
                try:
                    result = run_step()
                except AssemblyError:
                    raise
                except Exception as e:
                    raise AssemblyError(step.value, e) from e
                self.results.append(result)
            validate_image_config(config, rootfs, rootfs.user)
            self._publish(rootfs)
        except (AssemblyError, ConfigValidationError) as e:
            logger.error(f"{e}; discarding {staging}")
            shutil.rmtree(staging, ignore_errors=True)
            raise

        logger.info(f"Root filesystem ready at {self.destination}")
        return rootfs

    def create_skeleton(self, rootfs: RootFilesystem) -> StepResult:
        """Create the directory layout; existing directories are fine."""
        dirs = skeleton_dirs(self.paths)
        for directory in dirs:
            rootfs.path(directory).mkdir(parents=True, exist_ok=True)
        return StepResult(step=AssemblyStep.SKELETON, paths=dirs)

    def create_identity(self, rootfs: RootFilesystem) -> StepResult:
        """Create the runtime group and user inside the tree."""
        current = IdentityDirectory.load(rootfs.root)
        updated, user = ensure_identity(current, self.identity, self.paths.home)
        if updated != current:
            updated.save(rootfs.root)
        rootfs.user = user
        return StepResult(
            step=AssemblyStep.IDENTITY,
            paths=["/etc/group", "/etc/passwd"],
            detail=f"{user.name}:{user.group_name} ({user.uid}:{user.gid})",
        )

    def copy_outputs(self, rootfs: RootFilesystem, outputs: List[StageOutput]) -> StepResult:
        """Copy manifested files to their canonical locations."""
        by_stage: Dict[str, StageOutput] = {}
        for output in outputs:
            if output.stage_name in by_stage:
                raise ValueError(f"Duplicate output for stage {output.stage_name}")
            by_stage[output.stage_name] = output

        missing = [name for name in REQUIRED_STAGES if name not in by_stage]
        if missing:
            raise ValueError(f"Missing stage outputs: {', '.join(missing)}")

        copied = []
        for name in sorted(by_stage):
            output = by_stage[name]
            for rel, image_path in plan_copies(name, output.manifest, self.paths):
                source = output.root / rel
                if not (source.is_file() or source.is_symlink()):
                    raise FileNotFoundError(f"{name} output is missing {rel}")
                target = rootfs.path(image_path)
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source, target, follow_symlinks=False)
                copied.append(image_path)
            logger.debug(f"Copied {len(output.manifest)} files from {name}")

        return StepResult(step=AssemblyStep.COPY, paths=copied)

    def seed_config(self, rootfs: RootFilesystem) -> StepResult:
        """Install the default grafana.ini and an empty ldap.toml."""
        sample = rootfs.path(f"{self.paths.home}/{SAMPLE_CONFIG}")
        if not sample.is_file():
            raise FileNotFoundError(f"Sample configuration not found: {SAMPLE_CONFIG}")

        shutil.copyfile(sample, rootfs.path(self.paths.config))
        ldap = f"{config_dir(self.paths)}/{LDAP_CONFIG}"
        # The server treats a missing ldap.toml as fatal even when LDAP is off
        rootfs.path(ldap).write_bytes(b"")
        return StepResult(step=AssemblyStep.CONFIG, paths=[self.paths.config, ldap])

    def install_entrypoint(self, rootfs: RootFilesystem, config: ImageConfig) -> StepResult:
        """Copy the entrypoint script verbatim and make it executable."""
        if not config.entrypoint:
            raise ValueError("Image config has no entrypoint")
        if not self.entrypoint_script.is_file():
            raise FileNotFoundError(f"Entrypoint script not found: {self.entrypoint_script}")

        target = rootfs.path(config.entrypoint[0])
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(self.entrypoint_script, target)
        target.chmod(ENTRYPOINT_MODE)
        rootfs.record_mode(target, ENTRYPOINT_MODE)
        return StepResult(step=AssemblyStep.ENTRYPOINT, paths=[config.entrypoint[0]])

    def apply_permissions(self, rootfs: RootFilesystem) -> StepResult:
        """Hand the runtime directories to the runtime user.

        World-writable mode is limited to data, logs and plugins: the
        container runtime may run the image under an arbitrary uid.
        """
        user = rootfs.user
        if user is None:
            raise RuntimeError("Runtime user has not been created")

        seen = set()
        for directory in owned_dirs(self.paths):
            top = rootfs.path(directory)
            for path in [top, *sorted(top.rglob("*"))]:
                if path in seen:
                    continue
                seen.add(path)
                if self.chown is not None:
                    self.chown(path, user.uid, user.gid, follow_symlinks=False)
                rootfs.record_owner(path, user.uid, user.gid)

        writable = writable_dirs(self.paths)
        for directory in writable:
            path = rootfs.path(directory)
            path.chmod(WRITABLE_MODE)
            rootfs.record_mode(path, WRITABLE_MODE)

        return StepResult(
            step=AssemblyStep.PERMISSIONS,
            paths=writable,
            detail=f"owner {user.uid}:{user.gid}",
        )

    def _publish(self, rootfs: RootFilesystem) -> None:
        try:
            if self.destination.exists():
                shutil.rmtree(self.destination)
            rootfs.root.rename(self.destination)
        except OSError as e:
            raise AssemblyError("publish", e) from e
        rootfs.relocate(self.destination)
        rootfs.seal()
