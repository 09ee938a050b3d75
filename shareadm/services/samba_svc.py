# coding: utf-8
"""The smbd service and its account database, as seen from the outside."""
from __future__ import print_function, unicode_literals

import re
import time
from typing import TYPE_CHECKING, Any, Dict, List

from ..time_util import uptime_since
from ..util import ExternalToolFailure, noop

if TYPE_CHECKING:
    from ..proc_util import Runner
    from ..util import NamedLogger

# microseconds of CLOCK_MONOTONIC, the clock behind time.monotonic
RE_ACTIVE_MONO = re.compile(r"ActiveEnterTimestampMonotonic=([0-9]+)")


def parse_pdbedit(txt: str) -> List[str]:
    """usernames out of `pdbedit -L` (name:uid:fullname)"""
    ret = []
    for ln in txt.splitlines():
        if ":" not in ln:
            continue

        zs = ln.split(":")[0].strip()
        if zs and not zs.startswith("#"):
            ret.append(zs)

    return ret


def parse_active_mono(txt: str) -> float:
    """seconds since boot when the unit went active, or 0 if it never did"""
    m = RE_ACTIVE_MONO.search(txt)
    if not m:
        return 0

    return int(m.group(1)) / 1e6


class SambaService(object):
    def __init__(self, run: "Runner", name: str = "smbd", log: "NamedLogger" = noop) -> None:
        self.run = run
        self.name = name
        self.log = log

    def reload(self) -> None:
        self.run.check(["systemctl", "restart", self.name])
        self.log("restarted %s" % (self.name,))

    def status(self) -> Dict[str, Any]:
        _, sout, _ = self.run(["systemctl", "is-active", self.name])
        active = sout.strip() == "active"

        uptime = {"uptime": "N/A", "since": ""}
        if active:
            prop = "--property=ActiveEnterTimestampMonotonic"
            rc, sout, _ = self.run(["systemctl", "show", self.name, prop])
            mono = parse_active_mono(sout) if not rc else 0
            if mono:
                t0 = time.time() - max(0, time.monotonic() - mono)
                uptime["uptime"] = uptime_since(t0)
                uptime["since"] = time.strftime("%b %d, %Y %H:%M:%S", time.localtime(t0))

        return {
            "service": self.name,
            "active": active,
            "status": "running" if active else "stopped",
            "metadata": {"uptime": uptime},
        }

    def list_users(self) -> List[str]:
        argv = ["pdbedit", "-L"]
        rc, sout, serr = self.run(argv)
        if rc:
            t = "failed to list Samba users: " + serr.strip()
            raise ExternalToolFailure(t, argv, rc, serr)

        return parse_pdbedit(sout)
