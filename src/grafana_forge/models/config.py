"""Configuration models."""

from typing import Dict
from pydantic import BaseModel, ConfigDict, Field, field_validator

from grafana_forge.models.image import ImageMetadata
from grafana_forge.models.stage import StageSpec


class PipelineConfig(BaseModel):
    """Pipeline invocation parameters."""
    go_build_tags: str = Field(default="oss")
    wire_tags: str = Field(default="oss")
    work_dir: str = Field(default="./.forge/work")
    cache_dir: str = Field(default="./.forge/cache")
    offline: bool = Field(default=True)
    command_timeout: int = Field(default=3600, ge=1)
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()


class GrafanaPaths(BaseModel):
    """Canonical paths inside the assembled root filesystem."""
    home: str = Field(default="/usr/share/grafana")
    config: str = Field(default="/etc/grafana/grafana.ini")
    data: str = Field(default="/var/lib/grafana")
    logs: str = Field(default="/var/log/grafana")
    plugins: str = Field(default="/var/lib/grafana/plugins")
    provisioning: str = Field(default="/etc/grafana/provisioning")

    @field_validator("*")
    @classmethod
    def validate_absolute(cls, v):
        """Paths must be absolute inside the image."""
        if not v.startswith("/"):
            raise ValueError(f"Path must be absolute: {v}")
        return v.rstrip("/") or "/"


class RuntimeIdentity(BaseModel):
    """Non-root identity the image runs as."""
    uid: int = Field(default=472, ge=0)
    gid: int = Field(default=0, ge=0)
    user_name: str = Field(default="grafana")
    group_name: str = Field(default="grafana")


def default_stages() -> Dict[str, StageSpec]:
    """Stage definitions matching the upstream Dockerfile builders."""
    return {
        "frontend": StageSpec(
            toolchains=["node", "yarn"],
            configure=["yarn config set cache-folder {{ cache_dir }}/yarn"],
            build=["yarn install --immutable", "yarn build"],
        ),
        "backend": StageSpec(
            toolchains=["go", "make", "git"],
            build=[
                "make build-go GO_BUILD_TAGS={{ go_build_tags }} WIRE_TAGS={{ wire_tags }}"
            ],
        ),
    }


class ForgeConfig(BaseModel):
    """Main configuration model."""
    model_config = ConfigDict(extra="ignore")

    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    paths: GrafanaPaths = Field(default_factory=GrafanaPaths)
    runtime: RuntimeIdentity = Field(default_factory=RuntimeIdentity)
    image: ImageMetadata = Field(default_factory=ImageMetadata)
    stages: Dict[str, StageSpec] = Field(default_factory=default_stages)

    @field_validator("stages")
    @classmethod
    def validate_stages(cls, v):
        """Both build stages must be defined."""
        missing = {"frontend", "backend"} - set(v)
        if missing:
            raise ValueError(f"Missing stage definitions: {', '.join(sorted(missing))}")
        return v

    def build_tags(self) -> Dict[str, str]:
        """Resolved build tag values."""
        return {
            "go_build_tags": self.pipeline.go_build_tags,
            "wire_tags": self.pipeline.wire_tags,
        }
