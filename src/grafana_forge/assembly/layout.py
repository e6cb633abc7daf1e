"""Canonical locations of stage artifacts inside the image."""

from pathlib import PurePosixPath
from typing import Dict, List, Tuple

from grafana_forge.models.config import GrafanaPaths


PROVISIONING_SUBDIRS = (
    "datasources",
    "dashboards",
    "notifiers",
    "plugins",
    "access-control",
    "alerting",
)

# stage name -> top-level manifest entry -> subpath of the home directory
STAGE_DESTINATIONS: Dict[str, Dict[str, str]] = {
    "backend": {"bin": "bin", "conf": "conf"},
    "frontend": {"public": "public", "LICENSE": "LICENSE"},
}


def destination_for(stage_name: str, relative_path: str, paths: GrafanaPaths) -> str:
    """Absolute image path for a manifest entry of a stage."""
    rel = PurePosixPath(relative_path)
    if rel.is_absolute() or ".." in rel.parts or not rel.parts:
        raise ValueError(f"Invalid manifest path: {relative_path}")

    mapping = STAGE_DESTINATIONS.get(stage_name)
    if mapping is None:
        raise ValueError(f"No destinations defined for stage {stage_name}")

    head, rest = rel.parts[0], rel.parts[1:]
    if head not in mapping:
        raise ValueError(f"Stage {stage_name} has no destination for {relative_path}")
    return str(PurePosixPath(paths.home, mapping[head], *rest))


def plan_copies(stage_name: str, manifest, paths: GrafanaPaths) -> List[Tuple[str, str]]:
    """Sorted (relative source, image destination) pairs."""
    return [(rel, destination_for(stage_name, rel, paths)) for rel in sorted(manifest)]


def config_dir(paths: GrafanaPaths) -> str:
    return str(PurePosixPath(paths.config).parent)


def skeleton_dirs(paths: GrafanaPaths) -> List[str]:
    """Directories the application expects to exist."""
    dirs = [
        paths.home,
        f"{paths.home}/.aws",
        f"{paths.home}/bin",
        f"{paths.home}/conf",
        f"{paths.home}/public",
        config_dir(paths),
        paths.provisioning,
    ]
    dirs.extend(f"{paths.provisioning}/{sub}" for sub in PROVISIONING_SUBDIRS)
    dirs.extend([paths.logs, paths.data, paths.plugins])
    return dirs


def owned_dirs(paths: GrafanaPaths) -> List[str]:
    """Directories recursively owned by the runtime user."""
    return [paths.data, paths.home, paths.logs, paths.plugins, paths.provisioning]


def writable_dirs(paths: GrafanaPaths) -> List[str]:
    """Directories opened to any uid the container runtime may assign."""
    return [paths.data, paths.logs, paths.plugins]
