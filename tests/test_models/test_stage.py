"""Tests for stage models."""

import pytest
from pydantic import ValidationError

from grafana_forge.models.stage import BuildTagSet, SourceTree, StageOutput, StageSpec


class TestBuildTagSet:
    """Test BuildTagSet selection."""

    def test_select_declared(self):
        tags = BuildTagSet(values={"go_build_tags": "oss", "wire_tags": "oss"})

        assert tags.select(["wire_tags"]) == {"wire_tags": "oss"}
        assert tags.select([]) == {}

    def test_select_undefined(self):
        with pytest.raises(KeyError):
            BuildTagSet(values={}).select(["go_build_tags"])


class TestSourceTree:
    """Test SourceTree content addressing."""

    def test_digest_stable(self, source_dir):
        tree = SourceTree(root=source_dir)

        assert tree.digest() == SourceTree(root=source_dir).digest()

    def test_digest_changes_with_content(self, source_dir):
        tree = SourceTree(root=source_dir)
        before = tree.digest()

        (source_dir / "LICENSE").write_text("changed\n")

        assert tree.digest() != before

    def test_files_sorted(self, source_dir):
        files = [p.as_posix() for p in SourceTree(root=source_dir).files()]

        assert files == sorted(files)
        assert "LICENSE" in files


class TestStageOutput:
    """Test StageOutput immutability."""

    def test_frozen(self, tmp_path):
        output = StageOutput(stage_name="frontend", root=tmp_path, manifest=frozenset({"b", "a"}))

        assert output.sorted_manifest() == ("a", "b")
        with pytest.raises(ValidationError):
            output.stage_name = "backend"

    def test_not_completed_when_constructed(self, tmp_path):
        output = StageOutput(stage_name="backend", root=tmp_path, manifest=frozenset({"bin/app"}))

        assert not output.completed


class TestStageSpec:
    """Test StageSpec model."""

    def test_extra_fields_forbidden(self):
        with pytest.raises(ValidationError):
            StageSpec(install=["cp -r bin out"])
