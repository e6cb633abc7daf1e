"""Build stage models."""

import hashlib
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr


class StageSpec(BaseModel):
    """Overridable stage definition.

    Command entries are Jinja2 templates rendered with the stage context
    (``cache_dir``, ``home`` and the declared build tags) and then split
    with shell quoting rules.
    """
    model_config = ConfigDict(extra="forbid")

    toolchains: List[str] = Field(default_factory=list)
    env: Dict[str, str] = Field(default_factory=dict)
    configure: List[str] = Field(default_factory=list)
    build: List[str] = Field(default_factory=list)


class BuildTagSet(BaseModel):
    """Named build tag values passed to stages that declare them."""
    model_config = ConfigDict(frozen=True)

    values: Dict[str, str] = Field(default_factory=dict)

    def select(self, names) -> Dict[str, str]:
        """Return only the named tags."""
        missing = [n for n in names if n not in self.values]
        if missing:
            raise KeyError(f"Undefined build tags: {', '.join(missing)}")
        return {n: self.values[n] for n in names}


class SourceTree(BaseModel):
    """Read-only view of the application source directory."""
    model_config = ConfigDict(frozen=True)

    root: Path

    def files(self) -> List[Path]:
        """Relative paths of all files, sorted."""
        return sorted(
            p.relative_to(self.root) for p in self.root.rglob("*")
            if p.is_file() or p.is_symlink()
        )

    def digest(self) -> str:
        """Content address of the tree."""
        h = hashlib.sha256()
        for rel in self.files():
            h.update(rel.as_posix().encode())
            h.update(b"\0")
            path = self.root / rel
            if path.is_symlink():
                h.update(str(path.readlink()).encode())
            else:
                h.update(path.read_bytes())
            h.update(b"\0")
        return h.hexdigest()


class StageOutput(BaseModel):
    """Immutable output of a stage.

    Only the stage that produced the output can mark it completed, which it
    does once every phase has succeeded. The assembler refuses outputs that
    were never marked.
    """
    model_config = ConfigDict(frozen=True)

    stage_name: str
    root: Path
    manifest: FrozenSet[str]
    _completed_by: Optional[str] = PrivateAttr(default=None)

    @property
    def completed(self) -> bool:
        """Whether a finished run of the named stage produced this output."""
        return self._completed_by == self.stage_name

    def sorted_manifest(self) -> Tuple[str, ...]:
        """Manifest in deterministic order."""
        return tuple(sorted(self.manifest))
