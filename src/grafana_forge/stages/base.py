"""Base build stage."""

import asyncio
import logging
import os
import shutil
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from grafana_forge.errors import StageBuildError
from grafana_forge.models.stage import BuildTagSet, SourceTree, StageOutput, StageSpec
from grafana_forge.utils.process import run_command
from grafana_forge.utils.templates import render_command, render_template


logger = logging.getLogger(__name__)

PHASES = ("configure", "build", "install")

# Directories every stage may use in addition to its declared toolchains
BASE_PATH = ("/usr/bin", "/bin")


class BuildStage(ABC):
    """A hermetic unit of work: configure, build, install.

    The stage builds inside a private copy of the source tree, so the
    source itself is never written to. Only the paths listed in
    ``declared_outputs`` are installed into ``output_root``. Build tags
    reach the stage only when named in ``tag_names``.
    """

    name: str = ""
    declared_outputs: Tuple[str, ...] = ()
    tag_names: Tuple[str, ...] = ()

    def __init__(
        self,
        spec: StageSpec,
        work_dir: Path,
        cache_dir: Path,
        offline: bool = True,
        timeout: Optional[int] = None,
    ):
        """Initialize stage with its private directories."""
        self.spec = spec
        self.work_root = Path(work_dir).resolve() / self.name
        self.build_dir = self.work_root / "src"
        self.home_dir = self.work_root / "home"
        self.output_root = self.work_root / "out"
        self.cache_dir = Path(cache_dir).resolve() / self.name
        self.offline = offline
        self.timeout = timeout
        self.tags: Dict[str, str] = {}
        self._env: Dict[str, str] = {}
        self._started = False

    @property
    def declared_inputs(self) -> Set[str]:
        """Toolchains the stage needs."""
        return set(self.spec.toolchains)

    async def run(self, source: SourceTree, tags: BuildTagSet) -> StageOutput:
        """Execute all phases in order and return the installed output.

        The output is marked completed only here, after install returned,
        so a failed or partial run never yields an assemblable output.
        """
        if self._started:
            raise RuntimeError(f"Stage {self.name} has already been run")
        self._started = True

        try:
            self.tags = tags.select(self.tag_names)
        except KeyError as e:
            raise StageBuildError(self.name, "configure", e) from e

        logger.info(f"Running stage {self.name}")
        output = None
        for phase in PHASES:
            logger.info(f"[{self.name}] {phase}")
            try:
                if phase == "configure":
                    await self.configure(source)
                elif phase == "build":
                    await self.build()
                else:
                    output = await self.install()
            except StageBuildError:
                raise
            except Exception as e:
                raise StageBuildError(self.name, phase, e) from e

        output._completed_by = self.name
        logger.info(f"Stage {self.name} produced {len(output.manifest)} files")
        return output

    def template_context(self) -> Dict[str, str]:
        """Variables available to command templates."""
        return {
            "cache_dir": str(self.cache_dir),
            "home": str(self.home_dir),
            "build_dir": str(self.build_dir),
            **self.tags,
        }

    @abstractmethod
    def tool_env(self) -> Dict[str, str]:
        """Toolchain specific environment, e.g. cache redirection."""
        pass

    def resolve_toolchains(self) -> List[str]:
        """Locate declared toolchains and return their directories."""
        dirs: List[str] = []
        missing = []
        for tool in sorted(self.declared_inputs):
            found = shutil.which(tool)
            if not found:
                missing.append(tool)
                continue
            tool_dir = str(Path(found).parent)
            if tool_dir not in dirs:
                dirs.append(tool_dir)
        if missing:
            raise FileNotFoundError(f"Missing toolchains: {', '.join(missing)}")
        return dirs

    def hermetic_env(self, tool_dirs: List[str]) -> Dict[str, str]:
        """Build a closed environment; nothing is inherited from the caller."""
        path = list(tool_dirs)
        for entry in BASE_PATH:
            if entry not in path:
                path.append(entry)

        env = {
            "PATH": os.pathsep.join(path),
            "HOME": str(self.home_dir),
            "TMPDIR": str(self.home_dir / "tmp"),
            "XDG_CACHE_HOME": str(self.cache_dir),
            "LC_ALL": "C",
            "TZ": "UTC",
        }
        env.update(self.tool_env())
        context = self.template_context()
        for key, value in self.spec.env.items():
            env[key] = render_template(value, **context)
        return env

    async def configure(self, source: SourceTree) -> None:
        """Prepare the isolated build environment."""
        if self.work_root.exists():
            await asyncio.to_thread(shutil.rmtree, self.work_root)

        await asyncio.to_thread(
            shutil.copytree,
            source.root,
            self.build_dir,
            symlinks=True,
            ignore=self._skip_private_dirs,
        )
        for directory in (self.home_dir / "tmp", self.cache_dir, self.output_root):
            directory.mkdir(parents=True, exist_ok=True)

        self._env = self.hermetic_env(self.resolve_toolchains())
        await self._run_commands(self.spec.configure)

    async def build(self) -> None:
        """Invoke the opaque toolchain."""
        await self._run_commands(self.spec.build)

    async def install(self) -> StageOutput:
        """Copy the declared outputs, and nothing else, into output_root."""
        manifest = set()
        for declared in self.declared_outputs:
            source = self.build_dir / declared
            if not source.exists():
                raise FileNotFoundError(f"Declared output missing after build: {declared}")

            target = self.output_root / declared
            if source.is_dir() and not source.is_symlink():
                await asyncio.to_thread(
                    shutil.copytree, source, target, symlinks=True
                )
                for path in target.rglob("*"):
                    if path.is_file() or path.is_symlink():
                        manifest.add(path.relative_to(self.output_root).as_posix())
            else:
                target.parent.mkdir(parents=True, exist_ok=True)
                await asyncio.to_thread(
                    shutil.copy2, source, target, follow_symlinks=False
                )
                manifest.add(declared)

        return StageOutput(
            stage_name=self.name,
            root=self.output_root,
            manifest=frozenset(manifest),
        )

    def _skip_private_dirs(self, directory, names):
        # Work and cache dirs may live inside the source tree
        private = {self.work_root.parent, self.cache_dir.parent}
        return [n for n in names if (Path(directory) / n).resolve() in private]

    async def _run_commands(self, templates: List[str]) -> None:
        context = self.template_context()
        for template in templates:
            cmd = render_command(template, **context)
            try:
                await run_command(
                    cmd,
                    cwd=str(self.build_dir),
                    env=self._env,
                    timeout=self.timeout,
                )
            except subprocess.CalledProcessError as e:
                logger.error(
                    f"[{self.name}] command failed with exit code {e.returncode}: {e.stderr.strip()}"
                )
                raise
