"""Runtime user and group management over passwd/group files."""

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional, Tuple

from grafana_forge.models.config import RuntimeIdentity
from grafana_forge.models.image import UserSpec


logger = logging.getLogger(__name__)

NOLOGIN_SHELL = "/sbin/nologin"


@dataclass(frozen=True)
class GroupEntry:
    """Line of /etc/group."""
    name: str
    gid: int
    members: Tuple[str, ...] = ()

    def render(self) -> str:
        return f"{self.name}:x:{self.gid}:{','.join(self.members)}"

    @classmethod
    def parse(cls, line: str) -> "GroupEntry":
        name, _, gid, members = line.split(":", 3)
        return cls(name, int(gid), tuple(m for m in members.split(",") if m))


@dataclass(frozen=True)
class PasswdEntry:
    """Line of /etc/passwd."""
    name: str
    uid: int
    gid: int
    gecos: str
    home: str
    shell: str

    def render(self) -> str:
        return f"{self.name}:x:{self.uid}:{self.gid}:{self.gecos}:{self.home}:{self.shell}"

    @classmethod
    def parse(cls, line: str) -> "PasswdEntry":
        name, _, uid, gid, gecos, home, shell = line.split(":", 6)
        return cls(name, int(uid), int(gid), gecos, home, shell)


def _parse_lines(text: str, parser):
    return tuple(
        parser(line) for line in text.splitlines()
        if line.strip() and not line.startswith("#")
    )


@dataclass(frozen=True)
class IdentityDirectory:
    """Immutable snapshot of users and groups."""
    groups: Tuple[GroupEntry, ...] = ()
    users: Tuple[PasswdEntry, ...] = ()

    @classmethod
    def parse(cls, group_text: str, passwd_text: str) -> "IdentityDirectory":
        return cls(
            groups=_parse_lines(group_text, GroupEntry.parse),
            users=_parse_lines(passwd_text, PasswdEntry.parse),
        )

    @classmethod
    def load(cls, root: Path) -> "IdentityDirectory":
        """Read etc/group and etc/passwd below root, if present."""
        group_file = root / "etc" / "group"
        passwd_file = root / "etc" / "passwd"
        return cls.parse(
            group_file.read_text() if group_file.exists() else "",
            passwd_file.read_text() if passwd_file.exists() else "",
        )

    def save(self, root: Path) -> None:
        """Write etc/group and etc/passwd below root."""
        etc = root / "etc"
        etc.mkdir(parents=True, exist_ok=True)
        group_text, passwd_text = self.render()
        (etc / "group").write_text(group_text)
        (etc / "passwd").write_text(passwd_text)

    def render(self) -> Tuple[str, str]:
        group_text = "".join(f"{g.render()}\n" for g in self.groups)
        passwd_text = "".join(f"{u.render()}\n" for u in self.users)
        return group_text, passwd_text

    def group_by_gid(self, gid: int) -> Optional[GroupEntry]:
        return next((g for g in self.groups if g.gid == gid), None)

    def group_by_name(self, name: str) -> Optional[GroupEntry]:
        return next((g for g in self.groups if g.name == name), None)

    def user_by_uid(self, uid: int) -> Optional[PasswdEntry]:
        return next((u for u in self.users if u.uid == uid), None)

    def user_by_name(self, name: str) -> Optional[PasswdEntry]:
        return next((u for u in self.users if u.name == name), None)

    def with_group(self, group: GroupEntry) -> "IdentityDirectory":
        return replace(self, groups=self.groups + (group,))

    def with_user(self, user: PasswdEntry) -> "IdentityDirectory":
        return replace(self, users=self.users + (user,))


def ensure_identity(
    directory: IdentityDirectory,
    identity: RuntimeIdentity,
    home_dir: str,
) -> Tuple[IdentityDirectory, UserSpec]:
    """Create the runtime group and user if missing.

    The group is looked up by gid, not by name: a base image may already
    bind the gid to another name (gid 0 is usually ``root``). Calling this
    again on its own result is a no-op.
    """
    if directory.group_by_gid(identity.gid) is None:
        clash = directory.group_by_name(identity.group_name)
        if clash is not None:
            raise ValueError(
                f"Group {identity.group_name} already exists with gid {clash.gid}"
            )
        directory = directory.with_group(GroupEntry(identity.group_name, identity.gid))
        logger.info(f"Created group {identity.group_name} ({identity.gid})")

    group_name = directory.group_by_gid(identity.gid).name

    user = directory.user_by_uid(identity.uid)
    if user is None:
        clash = directory.user_by_name(identity.user_name)
        if clash is not None:
            raise ValueError(
                f"User {identity.user_name} already exists with uid {clash.uid}"
            )
        user = PasswdEntry(
            name=identity.user_name,
            uid=identity.uid,
            gid=identity.gid,
            gecos="",
            home=home_dir,
            shell=NOLOGIN_SHELL,
        )
        directory = directory.with_user(user)
        logger.info(f"Created user {user.name} ({user.uid}:{group_name})")
    elif user.gid != identity.gid:
        raise ValueError(
            f"User {user.name} ({user.uid}) is bound to gid {user.gid}, expected {identity.gid}"
        )

    return directory, UserSpec(
        name=user.name,
        uid=user.uid,
        gid=user.gid,
        group_name=group_name,
        home_dir=user.home,
    )
