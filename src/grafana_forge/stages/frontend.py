"""Frontend asset bundle stage."""

from typing import Dict

from grafana_forge.stages.base import BuildStage


class FrontendStage(BuildStage):
    """Builds the JavaScript bundle with yarn.

    Produces ``public/`` and ``LICENSE``. Declares no build tags, so its
    output does not change when backend tags are overridden.
    """

    name = "frontend"
    declared_outputs = ("public", "LICENSE")
    tag_names = ()

    def tool_env(self) -> Dict[str, str]:
        """Point yarn at the pipeline-local cache."""
        env = {
            "YARN_CACHE_FOLDER": str(self.cache_dir / "yarn"),
            "YARN_ENABLE_GLOBAL_CACHE": "0",
            "YARN_ENABLE_TELEMETRY": "0",
            "npm_config_cache": str(self.cache_dir / "npm"),
        }
        if self.offline:
            env["YARN_ENABLE_NETWORK"] = "0"
            env["npm_config_offline"] = "true"
        return env
