"""Tests for artifact destinations."""

import pytest

from grafana_forge.assembly.layout import (
    destination_for,
    plan_copies,
    skeleton_dirs,
    writable_dirs,
)
from grafana_forge.models.config import GrafanaPaths


PATHS = GrafanaPaths()


class TestDestinations:
    """Test the stage/path to image path mapping."""

    @pytest.mark.parametrize("stage,rel,expected", [
        ("backend", "bin/grafana", "/usr/share/grafana/bin/grafana"),
        ("backend", "conf/provisioning/sample.yaml", "/usr/share/grafana/conf/provisioning/sample.yaml"),
        ("frontend", "public/build/app.js", "/usr/share/grafana/public/build/app.js"),
        ("frontend", "LICENSE", "/usr/share/grafana/LICENSE"),
    ])
    def test_destination(self, stage, rel, expected):
        assert destination_for(stage, rel, PATHS) == expected

    def test_unknown_stage(self):
        with pytest.raises(ValueError):
            destination_for("docs", "index.html", PATHS)

    def test_undeclared_entry(self):
        with pytest.raises(ValueError):
            destination_for("frontend", "node_modules/x.js", PATHS)

    @pytest.mark.parametrize("rel", ["/etc/passwd", "bin/../../etc/passwd", ""])
    def test_invalid_paths(self, rel):
        with pytest.raises(ValueError):
            destination_for("backend", rel, PATHS)

    def test_plan_is_deterministic(self):
        manifest = {"bin/b", "bin/a", "conf/x.ini"}

        assert plan_copies("backend", manifest, PATHS) == plan_copies("backend", set(manifest), PATHS)
        assert [rel for rel, _ in plan_copies("backend", manifest, PATHS)] == ["bin/a", "bin/b", "conf/x.ini"]


class TestSkeleton:
    """Test directory layout."""

    def test_provisioning_tree(self):
        dirs = skeleton_dirs(PATHS)

        for sub in ("datasources", "dashboards", "notifiers", "plugins", "access-control", "alerting"):
            assert f"/etc/grafana/provisioning/{sub}" in dirs
        assert "/usr/share/grafana/.aws" in dirs
        assert "/etc/grafana" in dirs

    def test_writable_scope(self):
        assert writable_dirs(PATHS) == ["/var/lib/grafana", "/var/log/grafana", "/var/lib/grafana/plugins"]
