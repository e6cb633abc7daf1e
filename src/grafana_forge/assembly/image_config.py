"""Image runtime metadata: construction and validation."""

import logging
import stat

from grafana_forge.assembly.rootfs import RootFilesystem
from grafana_forge.errors import ConfigValidationError
from grafana_forge.models.config import ForgeConfig
from grafana_forge.models.image import ImageConfig, KeyValue, UserSpec


logger = logging.getLogger(__name__)


def build_image_config(config: ForgeConfig) -> ImageConfig:
    """Image metadata derived from the configured paths and identity.

    Env order is part of the artifact and must stay stable.
    """
    paths = config.paths
    image = config.image
    path_value = f"{paths.home}/bin"
    if image.runtime_path:
        path_value = f"{path_value}:{image.runtime_path}"

    return ImageConfig(
        labels=dict(image.labels),
        env=[
            KeyValue(key="PATH", value=path_value),
            KeyValue(key="GF_PATHS_CONFIG", value=paths.config),
            KeyValue(key="GF_PATHS_DATA", value=paths.data),
            KeyValue(key="GF_PATHS_HOME", value=paths.home),
            KeyValue(key="GF_PATHS_LOGS", value=paths.logs),
            KeyValue(key="GF_PATHS_PLUGINS", value=paths.plugins),
            KeyValue(key="GF_PATHS_PROVISIONING", value=paths.provisioning),
        ],
        working_dir=paths.home,
        exposed_ports=list(image.exposed_ports),
        user=str(config.runtime.uid),
        entrypoint=[image.entrypoint_path],
    )


def check_image_metadata(config: ImageConfig) -> None:
    """Checks that need no tree; run before any build work starts."""
    if not config.exposed_ports:
        raise ConfigValidationError("Image must expose at least one port")
    if not config.entrypoint:
        raise ConfigValidationError("Image entrypoint is empty")


def validate_image_config(config: ImageConfig, rootfs: RootFilesystem, user: UserSpec) -> None:
    """Check the metadata against the assembled tree."""
    check_image_metadata(config)

    try:
        entrypoint = rootfs.path(config.entrypoint[0])
    except ValueError as e:
        raise ConfigValidationError(str(e)) from e
    if not entrypoint.is_file():
        raise ConfigValidationError(f"Entrypoint {config.entrypoint[0]} does not exist in the image")
    if not entrypoint.stat().st_mode & (stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH):
        raise ConfigValidationError(f"Entrypoint {config.entrypoint[0]} is not executable")

    if user is None:
        raise ConfigValidationError("No runtime user was created")
    accepted = {
        str(user.uid),
        user.name,
        f"{user.uid}:{user.gid}",
        f"{user.name}:{user.group_name}",
    }
    if config.user not in accepted:
        raise ConfigValidationError(
            f"Image user {config.user!r} does not match runtime user {user.name} ({user.uid})"
        )

    logger.debug("Image config validated")
