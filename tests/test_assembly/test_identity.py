"""Tests for runtime identity creation."""

import pytest

from grafana_forge.assembly.identity import (
    GroupEntry,
    IdentityDirectory,
    PasswdEntry,
    ensure_identity,
)
from grafana_forge.models.config import RuntimeIdentity


HOME = "/usr/share/grafana"
BASE_GROUP = "root:x:0:\nwheel:x:10:root\n"
BASE_PASSWD = "root:x:0:0:root:/root:/bin/sh\n"


class TestEnsureIdentity:
    """Test idempotent user and group creation."""

    def test_creates_group_and_user(self):
        directory, user = ensure_identity(IdentityDirectory(), RuntimeIdentity(), HOME)

        assert directory.group_by_gid(0).name == "grafana"
        assert directory.user_by_uid(472).name == "grafana"
        assert user.uid == 472
        assert user.gid == 0
        assert user.group_name == "grafana"
        assert user.home_dir == HOME

    def test_existing_gid_keeps_its_name(self):
        base = IdentityDirectory.parse(BASE_GROUP, BASE_PASSWD)

        directory, user = ensure_identity(base, RuntimeIdentity(), HOME)

        assert user.group_name == "root"
        assert directory.group_by_name("grafana") is None
        assert len(directory.groups) == 2

    def test_idempotent(self):
        base = IdentityDirectory.parse(BASE_GROUP, BASE_PASSWD)

        first, user_first = ensure_identity(base, RuntimeIdentity(), HOME)
        second, user_second = ensure_identity(first, RuntimeIdentity(), HOME)

        assert second == first
        assert user_second == user_first

    def test_group_name_taken_by_other_gid(self):
        base = IdentityDirectory(groups=(GroupEntry("grafana", 1000),))

        with pytest.raises(ValueError):
            ensure_identity(base, RuntimeIdentity(gid=472), HOME)

    def test_user_name_taken_by_other_uid(self):
        base = IdentityDirectory(
            groups=(GroupEntry("root", 0),),
            users=(PasswdEntry("grafana", 1000, 0, "", "/home/grafana", "/bin/sh"),),
        )

        with pytest.raises(ValueError):
            ensure_identity(base, RuntimeIdentity(), HOME)

    def test_existing_uid_other_group(self):
        base = IdentityDirectory(
            groups=(GroupEntry("root", 0), GroupEntry("staff", 50)),
            users=(PasswdEntry("grafana", 472, 50, "", HOME, "/bin/sh"),),
        )

        with pytest.raises(ValueError):
            ensure_identity(base, RuntimeIdentity(), HOME)


class TestIdentityDirectory:
    """Test passwd/group file handling."""

    def test_parse_render(self):
        directory = IdentityDirectory.parse(BASE_GROUP, "# comment\n" + BASE_PASSWD)

        assert directory.group_by_gid(10).members == ("root",)
        assert directory.render() == (BASE_GROUP, BASE_PASSWD)

    def test_load_missing_files(self, tmp_path):
        assert IdentityDirectory.load(tmp_path) == IdentityDirectory()

    def test_save_load(self, tmp_path):
        directory, _ = ensure_identity(IdentityDirectory(), RuntimeIdentity(), HOME)
        directory.save(tmp_path)

        assert IdentityDirectory.load(tmp_path) == directory
        assert (tmp_path / "etc" / "passwd").read_text() == (
            "grafana:x:472:0::/usr/share/grafana:/sbin/nologin\n"
        )
