"""Shared fixtures: a fake source tree and sh-based stand-in toolchains."""

from pathlib import Path

import pytest

from grafana_forge.models.config import ForgeConfig, PipelineConfig
from grafana_forge.models.stage import StageSpec, StageOutput


RUN_SCRIPT = "#!/bin/sh\nexec grafana server \"$@\"\n"

FRONTEND_BUILD = (
    "sh -c \"mkdir -p public node_modules"
    " && echo '<html></html>' > public/index.html"
    " && echo junk > node_modules/cache.bin\""
)

BACKEND_BUILD = (
    "sh -c \"mkdir -p bin conf"
    " && echo '{{ go_build_tags }} {{ wire_tags }}' > bin/app"
    " && chmod +x bin/app"
    " && echo '[server]' > conf/sample.ini\""
)


def frontend_spec(**overrides) -> StageSpec:
    data = {"toolchains": ["sh"], "build": [FRONTEND_BUILD]}
    data.update(overrides)
    return StageSpec(**data)


def backend_spec(**overrides) -> StageSpec:
    data = {"toolchains": ["sh"], "build": [BACKEND_BUILD]}
    data.update(overrides)
    return StageSpec(**data)


@pytest.fixture
def source_dir(tmp_path):
    """Minimal application source tree."""
    root = tmp_path / "source"
    (root / "packaging" / "docker").mkdir(parents=True)
    (root / "packaging" / "docker" / "run.sh").write_text(RUN_SCRIPT)
    (root / "LICENSE").write_text("AGPL-3.0\n")
    (root / "pkg").mkdir()
    (root / "pkg" / "main.go").write_text("package main\n")
    return root


@pytest.fixture
def forge_config(tmp_path):
    """Pipeline config using sh commands instead of yarn and make."""
    return ForgeConfig(
        pipeline=PipelineConfig(
            work_dir=str(tmp_path / "work"),
            cache_dir=str(tmp_path / "cache"),
            command_timeout=60,
        ),
        stages={"frontend": frontend_spec(), "backend": backend_spec()},
    )


def write_output(root: Path, stage_name: str, files: dict, completed: bool = True) -> StageOutput:
    """Create a stage output tree from a {relative path: content} mapping.

    With ``completed`` the output is marked the way a finished stage run
    marks it.
    """
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    output = StageOutput(stage_name=stage_name, root=root, manifest=frozenset(files))
    if completed:
        output._completed_by = stage_name
    return output


@pytest.fixture
def stage_outputs(tmp_path):
    """Outputs matching the documented end-to-end scenario."""
    frontend = write_output(tmp_path / "out-frontend", "frontend", {
        "public/index.html": "<html></html>\n",
        "LICENSE": "AGPL-3.0\n",
    })
    backend = write_output(tmp_path / "out-backend", "backend", {
        "bin/app": "binary\n",
        "conf/sample.ini": "[server]\n",
    })
    return [frontend, backend]
