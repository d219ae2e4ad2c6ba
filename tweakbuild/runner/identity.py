"""Process identity for spawned children.

A child is launched as a fixed, non-privileged user so that builds and
installs produce files with ordinary user ownership rather than the host's.
Switching identity is a three-part operation whose order matters: the
secondary identity attribute (the supplementary group list) must be applied
first, then the group id, then the user id.  Once the user id has been
dropped the child no longer has the privilege to change the other two, and a
child that only had its uid changed keeps the host's groups and never gains
the target user's file permissions.

``subprocess`` performs exactly this sequence (``setgroups`` -> ``setregid``
-> ``setreuid``) in the forked child when given ``extra_groups``, ``group``
and ``user``, so :meth:`Identity.spawn_options` just produces those keyword
arguments.
"""

from __future__ import annotations

import os
import pwd
from dataclasses import dataclass
from typing import Any

from tweakbuild.config import RunnerConfig


@dataclass(frozen=True)
class Identity:
    """User/group a child process executes as."""

    uid: int
    gid: int

    @classmethod
    def from_config(cls, config: RunnerConfig) -> "Identity":
        return cls(uid=config.uid, gid=config.gid if config.gid is not None else config.uid)

    @classmethod
    def current(cls) -> "Identity":
        """The identity the host process is running as."""
        return cls(uid=os.geteuid(), gid=os.getegid())

    @property
    def is_current(self) -> bool:
        return self.uid == os.geteuid() and self.gid == os.getegid()

    def user_name(self) -> str | None:
        try:
            return pwd.getpwuid(self.uid).pw_name
        except KeyError:
            return None

    def home_directory(self) -> str | None:
        try:
            return pwd.getpwuid(self.uid).pw_dir
        except KeyError:
            return None

    def supplementary_groups(self) -> list[int]:
        """Group list for the target user, always including its primary gid.

        Users unknown to the password database get only their primary gid.
        """
        name = self.user_name()
        if name is None:
            return [self.gid]
        groups = os.getgrouplist(name, self.gid)
        if self.gid not in groups:
            groups.insert(0, self.gid)
        return groups

    def spawn_options(self) -> dict[str, Any]:
        """Keyword arguments for ``create_subprocess_exec`` that switch to this identity.

        Returns an empty dict when the host already runs as this identity, since
        an unprivileged host may not call ``setgroups`` even for its own groups.
        A host that lacks the privilege to switch gets a ``PermissionError`` at
        launch, which the runner reports as a launch failure.
        """
        if self.is_current:
            return {}
        return {
            "extra_groups": self.supplementary_groups(),
            "group": self.gid,
            "user": self.uid,
        }
