"""Pipeline orchestration."""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from grafana_forge.assembly.assembler import ImageAssembler, StepResult, default_chown
from grafana_forge.assembly.image_config import build_image_config, check_image_metadata
from grafana_forge.assembly.packer import ImagePacker, PackedImage
from grafana_forge.assembly.rootfs import RootFilesystem
from grafana_forge.models.config import ForgeConfig
from grafana_forge.models.image import ImageConfig
from grafana_forge.models.stage import BuildTagSet, SourceTree, StageOutput
from grafana_forge.pipeline.graph import ASSEMBLE, StageGraph
from grafana_forge.stages.base import BuildStage
from grafana_forge.stages.registry import StageRegistry


logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Everything a successful run produced."""
    source_digest: str
    outputs: Dict[str, StageOutput]
    rootfs: RootFilesystem
    image_config: ImageConfig
    steps: List[StepResult] = field(default_factory=list)
    image: Optional[PackedImage] = None


class Pipeline:
    """Runs the build stages concurrently, then assembles the image.

    Stages are scheduled from the graph as asyncio tasks. Assembly is the
    join point: it is started through the graph, which refuses to start
    it before every stage completed. The first stage failure cancels the
    remaining stages and is re-raised.
    """

    def __init__(
        self,
        config: ForgeConfig,
        output_dir: Path,
        registry: Optional[StageRegistry] = None,
        assembler: Optional[ImageAssembler] = None,
        packer: Optional[ImagePacker] = None,
    ):
        """Initialize pipeline."""
        self.config = config
        self.output_dir = Path(output_dir)
        self.registry = registry or StageRegistry()
        self._assembler = assembler
        self.packer = packer or ImagePacker(config.image.name, config.image.tag)
        self.graph: Optional[StageGraph] = None

    def assembler_for(self, source: SourceTree) -> ImageAssembler:
        """Assembler writing into output_dir/rootfs."""
        if self._assembler is not None:
            return self._assembler
        script = Path(self.config.image.entrypoint_script)
        if not script.is_absolute():
            script = source.root / script
        return ImageAssembler(
            destination=self.output_dir / "rootfs",
            paths=self.config.paths,
            identity=self.config.runtime,
            entrypoint_script=script,
            chown=default_chown(),
        )

    async def run(self, source_root: Path, pack: bool = True) -> PipelineResult:
        """Build, assemble and optionally pack.

        The image config is checked before any stage runs and validated
        against the staged tree before it is published.
        """
        image_config = build_image_config(self.config)
        check_image_metadata(image_config)

        source = SourceTree(root=Path(source_root).resolve())
        source_digest = await asyncio.to_thread(source.digest)
        logger.info(f"Source tree {source.root} (sha256:{source_digest[:12]})")

        stages = self.registry.create_stages(self.config)
        self.graph = StageGraph.for_stages(stages, terminal=ASSEMBLE)
        self.graph.validate()

        tags = BuildTagSet(values=self.config.build_tags())
        outputs = await self._run_stages(stages, source, tags)

        self.graph.start(ASSEMBLE)
        assembler = self.assembler_for(source)
        try:
            rootfs = await asyncio.to_thread(
                assembler.assemble,
                [outputs[name] for name in sorted(outputs)],
                image_config,
            )
        except Exception:
            self.graph.mark_failed(ASSEMBLE)
            raise
        self.graph.mark_complete(ASSEMBLE)

        result = PipelineResult(
            source_digest=source_digest,
            outputs=outputs,
            rootfs=rootfs,
            image_config=image_config,
            steps=list(assembler.results),
        )
        if pack:
            result.image = await asyncio.to_thread(
                self.packer.pack, rootfs, image_config, self.output_dir / "image"
            )
        return result

    async def _run_stages(
        self,
        stages: Dict[str, BuildStage],
        source: SourceTree,
        tags: BuildTagSet,
    ) -> Dict[str, StageOutput]:
        outputs: Dict[str, StageOutput] = {}
        running: Dict[asyncio.Task, str] = {}

        while True:
            for name in self.graph.ready_nodes():
                if name not in stages:
                    continue
                self.graph.start(name)
                task = asyncio.create_task(stages[name].run(source, tags), name=name)
                running[task] = name

            if not running:
                return outputs

            done, _ = await asyncio.wait(running, return_when=asyncio.FIRST_COMPLETED)
            for task in sorted(done, key=lambda t: running[t]):
                name = running.pop(task)
                error = task.exception()
                if error is not None:
                    self.graph.mark_failed(name)
                    await self._cancel(running)
                    raise error
                outputs[name] = task.result()
                self.graph.mark_complete(name)

    async def _cancel(self, running: Dict[asyncio.Task, str]) -> None:
        for task, name in running.items():
            logger.warning(f"Cancelling stage {name}")
            task.cancel()
        await asyncio.gather(*running, return_exceptions=True)
        for name in running.values():
            self.graph.mark_failed(name)
        running.clear()
