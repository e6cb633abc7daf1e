"""Root filesystem under assembly."""

from pathlib import Path, PurePosixPath
from typing import Dict, Optional, Tuple

from grafana_forge.models.image import UserSpec


class RootFilesystem:
    """Directory tree that becomes the image filesystem.

    Ownership and modes applied during assembly are also recorded, keyed
    by absolute image path, so the tree can be packed with the intended
    owners without root privileges.
    """

    def __init__(self, root: Path):
        self.root = Path(root)
        self.ownership: Dict[str, Tuple[int, int]] = {}
        self.modes: Dict[str, int] = {}
        self.user: Optional[UserSpec] = None
        self.sealed = False

    def path(self, image_path: str) -> Path:
        """Host path for an absolute path inside the image."""
        pure = PurePosixPath(image_path)
        if not pure.is_absolute() or ".." in pure.parts:
            raise ValueError(f"Invalid image path: {image_path}")
        return self.root.joinpath(*pure.parts[1:])

    def image_path(self, host_path: Path) -> str:
        """Absolute image path for a host path below root."""
        rel = Path(host_path).relative_to(self.root)
        return str(PurePosixPath("/", *rel.parts))

    def record_owner(self, host_path: Path, uid: int, gid: int) -> None:
        self._check_open()
        self.ownership[self.image_path(host_path)] = (uid, gid)

    def record_mode(self, host_path: Path, mode: int) -> None:
        self._check_open()
        self.modes[self.image_path(host_path)] = mode

    def relocate(self, root: Path) -> None:
        """Follow the tree after it was moved into place."""
        self._check_open()
        self.root = Path(root)

    def seal(self) -> None:
        """Make the tree read-only for the rest of the run."""
        self.sealed = True

    def _check_open(self) -> None:
        if self.sealed:
            raise RuntimeError("Root filesystem is sealed")
