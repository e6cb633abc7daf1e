"""Deterministic image packing."""

import hashlib
import json
import logging
import tarfile
from pathlib import Path
from typing import Dict

from pydantic import BaseModel

from grafana_forge.assembly.rootfs import RootFilesystem
from grafana_forge.models.image import ImageConfig


logger = logging.getLogger(__name__)


class PackedImage(BaseModel):
    """Files written by the packer."""
    layer: Path
    config: Path
    manifest: Path
    layer_digest: str


class ImagePacker:
    """Writes the root filesystem as a single-layer image.

    Output follows the ``docker save`` layout (``manifest.json``,
    ``config.json``, ``rootfs.tar``). Entries are sorted, timestamps are
    fixed and owners come from the ownership record, so identical inputs
    produce identical bytes.
    """

    def __init__(self, name: str, tag: str, mtime: int = 0):
        self.name = name
        self.tag = tag
        self.mtime = mtime

    def pack(self, rootfs: RootFilesystem, config: ImageConfig, dest: Path) -> PackedImage:
        """Write layer, config and manifest into dest."""
        dest = Path(dest)
        dest.mkdir(parents=True, exist_ok=True)

        layer = dest / "rootfs.tar"
        self._write_layer(rootfs, layer)
        digest = self._sha256(layer)

        image_config = {
            "architecture": "amd64",
            "os": "linux",
            "config": config.to_oci(),
            "rootfs": {"type": "layers", "diff_ids": [f"sha256:{digest}"]},
        }
        config_file = dest / "config.json"
        config_file.write_text(json.dumps(image_config, indent=2, sort_keys=True) + "\n")

        manifest = [{
            "Config": config_file.name,
            "RepoTags": [f"{self.name}:{self.tag}"],
            "Layers": [layer.name],
        }]
        manifest_file = dest / "manifest.json"
        manifest_file.write_text(json.dumps(manifest, indent=2) + "\n")

        logger.info(f"Packed {self.name}:{self.tag} (sha256:{digest[:12]})")
        return PackedImage(
            layer=layer,
            config=config_file,
            manifest=manifest_file,
            layer_digest=f"sha256:{digest}",
        )

    def _write_layer(self, rootfs: RootFilesystem, layer: Path) -> None:
        entries = sorted(rootfs.root.rglob("*"), key=lambda p: p.relative_to(rootfs.root).as_posix())
        with tarfile.open(layer, "w", format=tarfile.GNU_FORMAT) as tar:
            for path in entries:
                image_path = rootfs.image_path(path)
                info = tar.gettarinfo(str(path), arcname=image_path.lstrip("/"))
                self._normalize(info, image_path, rootfs)
                if info.isreg():
                    with open(path, "rb") as fh:
                        tar.addfile(info, fh)
                else:
                    tar.addfile(info)

    def _normalize(self, info: tarfile.TarInfo, image_path: str, rootfs: RootFilesystem) -> None:
        info.mtime = self.mtime
        info.uid, info.gid = rootfs.ownership.get(image_path, (0, 0))
        info.uname = ""
        info.gname = ""
        if image_path in rootfs.modes:
            info.mode = rootfs.modes[image_path]

    @staticmethod
    def _sha256(path: Path) -> str:
        h = hashlib.sha256()
        with open(path, "rb") as fh:
            for chunk in iter(lambda: fh.read(1 << 20), b""):
                h.update(chunk)
        return h.hexdigest()


def image_summary(packed: PackedImage) -> Dict[str, str]:
    """Printable summary of a packed image."""
    return {
        "layer": str(packed.layer),
        "config": str(packed.config),
        "manifest": str(packed.manifest),
        "digest": packed.layer_digest,
    }
