"""Backend binary stage."""

from typing import Dict

from grafana_forge.stages.base import BuildStage


class BackendStage(BuildStage):
    """Builds the Go server binaries with make.

    Produces ``bin/`` and ``conf/``. The only stage that consumes
    ``go_build_tags`` and ``wire_tags``.
    """

    name = "backend"
    declared_outputs = ("bin", "conf")
    tag_names = ("go_build_tags", "wire_tags")

    def tool_env(self) -> Dict[str, str]:
        """Redirect Go caches into the pipeline-local cache."""
        env = {
            "GOPATH": str(self.cache_dir / "gopath"),
            "GOCACHE": str(self.cache_dir / "go-build"),
            "GOMODCACHE": str(self.cache_dir / "gomod"),
            "GOTOOLCHAIN": "local",
            "GOTELEMETRY": "off",
        }
        if self.offline:
            env["GOPROXY"] = "off"
            env["GOFLAGS"] = "-mod=readonly"
            env["GONOSUMDB"] = "*"
            env["GOSUMDB"] = "off"
        return env
