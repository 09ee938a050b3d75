#!/usr/bin/env python3
# coding: utf-8
from __future__ import print_function, unicode_literals

import argparse
import os
import tempfile
import threading

SMB_CONF = """\
# samba config; hand-edited
[global]
    workgroup = WORKGROUP
    server string = files
;   log level = 3

[printers]
    path = /var/spool/samba
    printable = yes

[A]
    # keep me
    path = /srv/a
    read only = no

[B]
    path = /srv/b
    valid users = bob
"""


def get_ramdisk():
    for vol in ["/dev/shm", None]:
        if vol and not os.path.isdir(vol):
            continue
        try:
            return tempfile.mkdtemp(prefix="shareadm-", dir=vol)
        except OSError:
            pass

    return tempfile.mkdtemp(prefix="shareadm-")


def write_conf(td, txt=SMB_CONF, name="smb.conf"):
    fp = os.path.join(td, name)
    with open(fp, "w", encoding="utf-8", newline="") as f:
        f.write(txt)
    return fp


def read_file(fp):
    with open(fp, "r", encoding="utf-8", newline="") as f:
        return f.read()


class Cfg(argparse.Namespace):
    def __init__(self, **ka):
        ka2 = {
            "samba_conf": "/etc/samba/smb.conf",
            "host": "127.0.0.1",
            "port": 0,
            "debug": False,
            "auth_user": "admin",
            "auth_pass": "hunter2",
            "no_auth": False,
            "service": "smbd",
            "cache_ttl": 60.0,
            "cmd_timeout": 5.0,
            "dry_acl": True,
            "settings": "",
            "have_settings": False,
        }
        ka2.update(ka)
        super(Cfg, self).__init__(**ka2)


class FakeRunner(object):
    """Stands in for proc_util.Runner; answers by argv prefix."""

    def __init__(self, replies=None):
        self.replies = replies or {}
        self.calls = []
        self.mutex = threading.Lock()

    def _reply(self, argv):
        best = None
        for k, v in self.replies.items():
            if tuple(argv[: len(k)]) == k and (best is None or len(k) > len(best)):
                best = k

        if best is None:
            return 0, "", ""

        ret = self.replies[best]
        return ret(argv) if callable(ret) else ret

    def __call__(self, argv, **ka):
        with self.mutex:
            self.calls.append(list(argv))
        return self._reply(argv)

    def check(self, argv, **ka):
        from shareadm.proc_util import describe_rc
        from shareadm.util import ExternalToolFailure

        rc, sout, serr = self(argv)
        if rc:
            raise ExternalToolFailure(describe_rc(rc, argv, serr), argv, rc, serr)
        return sout

    def count(self, *prefix):
        with self.mutex:
            return len([x for x in self.calls if tuple(x[: len(prefix)]) == prefix])


class NullLog(object):
    def __init__(self):
        self.msgs = []

    def __call__(self, src, msg, c=0):
        self.msgs.append((src, msg, c))

    def named(self, src):
        def log(msg, c=0):
            self(src, msg, c)

        return log
