"""Image metadata models."""

import re
from typing import Dict, List
from pydantic import BaseModel, ConfigDict, Field, field_validator


PORT_PATTERN = re.compile(r"^\d{1,5}/(tcp|udp)$")


def _dedupe_ports(ports: List[str]) -> List[str]:
    """Normalize ports and drop duplicates, keeping first occurrence."""
    seen = []
    for port in ports:
        port = str(port).strip().lower()
        if "/" not in port:
            port = f"{port}/tcp"
        if not PORT_PATTERN.match(port):
            raise ValueError(f"Invalid port: {port}")
        if int(port.split("/")[0]) > 65535:
            raise ValueError(f"Port out of range: {port}")
        if port not in seen:
            seen.append(port)
    return seen


class KeyValue(BaseModel):
    """Single environment variable."""
    model_config = ConfigDict(frozen=True)

    key: str
    value: str

    def render(self) -> str:
        return f"{self.key}={self.value}"


class UserSpec(BaseModel):
    """Runtime identity created inside the root filesystem."""
    model_config = ConfigDict(frozen=True)

    name: str
    uid: int
    gid: int
    group_name: str
    home_dir: str


class ImageMetadata(BaseModel):
    """Configurable parts of the image metadata."""
    name: str = Field(default="grafana-from-source")
    tag: str = Field(default="latest")
    labels: Dict[str, str] = Field(default_factory=lambda: {
        "maintainer": "Grafana Labs <hello@grafana.com>",
        "org.opencontainers.image.source": "https://github.com/grafana/grafana",
    })
    exposed_ports: List[str] = Field(default_factory=lambda: ["3000/tcp"])
    runtime_path: str = Field(default="/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin")
    entrypoint_path: str = Field(default="/run.sh")
    entrypoint_script: str = Field(
        default="packaging/docker/run.sh",
        description="Script source, relative to the source tree unless absolute",
    )

    @field_validator("exposed_ports")
    @classmethod
    def validate_ports(cls, v):
        return _dedupe_ports(v)

    @field_validator("entrypoint_path")
    @classmethod
    def validate_entrypoint_path(cls, v):
        if not v.startswith("/"):
            raise ValueError(f"Entrypoint path must be absolute: {v}")
        return v


class ImageConfig(BaseModel):
    """Runtime metadata stored alongside the root filesystem."""
    model_config = ConfigDict(frozen=True)

    labels: Dict[str, str] = Field(default_factory=dict)
    env: List[KeyValue] = Field(default_factory=list)
    working_dir: str
    exposed_ports: List[str] = Field(default_factory=list)
    user: str
    entrypoint: List[str] = Field(default_factory=list)

    @field_validator("exposed_ports")
    @classmethod
    def validate_ports(cls, v):
        return _dedupe_ports(v)

    def env_list(self) -> List[str]:
        """Environment as KEY=VALUE strings, in declaration order."""
        return [kv.render() for kv in self.env]

    def to_oci(self) -> Dict:
        """Container config section in OCI image config layout."""
        return {
            "Labels": dict(self.labels),
            "Env": self.env_list(),
            "WorkingDir": self.working_dir,
            "ExposedPorts": {port: {} for port in self.exposed_ports},
            "User": self.user,
            "Entrypoint": list(self.entrypoint),
        }
