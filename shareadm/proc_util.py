# coding: utf-8
"""Subprocess helpers for shareadm.

Every external tool (setfacl, getfacl, df, du, pdbedit, systemctl) is run
through runcmd so they all share one timeout and kill policy.
"""
from __future__ import print_function, unicode_literals

import signal
import subprocess as sp  # nosec
import time
from typing import TYPE_CHECKING, Any, Optional, Union

import psutil

from .util import ExternalToolFailure

if TYPE_CHECKING:
    from .util import NamedLogger


def killtree(root: int) -> None:
    """still racy but i tried"""
    try:
        parent = psutil.Process(root)
    except psutil.NoSuchProcess:
        return

    procs = parent.children(recursive=True) + [parent]
    for proc in procs:
        try:
            proc.terminate()
        except psutil.NoSuchProcess:
            pass

    _, alive = psutil.wait_procs(procs, timeout=0.5)
    for proc in alive:
        try:
            proc.kill()
        except psutil.NoSuchProcess:
            pass


def runcmd(
    argv: list[str], timeout: Optional[float] = None, **ka: Any
) -> tuple[int, str, str]:
    kill = ka.pop("kill", "t")  # [t]ree [m]ain [n]one
    capture = ka.pop("capture", 3)  # 0=none 1=stdout 2=stderr 3=both

    sin: Optional[bytes] = ka.pop("sin", None)
    if sin:
        ka["stdin"] = sp.PIPE

    cout = sp.PIPE if capture in [1, 3] else None
    cerr = sp.PIPE if capture in [2, 3] else None
    bout: bytes
    berr: bytes

    try:
        p = sp.Popen(argv, stdout=cout, stderr=cerr, **ka)
    except OSError as ex:
        # missing binary; same code a shell would give
        return 127, "", str(ex)

    if not timeout:
        bout, berr = p.communicate(sin)
    else:
        try:
            bout, berr = p.communicate(sin, timeout=timeout)
        except sp.TimeoutExpired:
            if kill == "n":
                return -18, "", ""  # SIGCONT; leave it be
            elif kill == "m":
                p.kill()
            else:
                killtree(p.pid)

            try:
                bout, berr = p.communicate(timeout=1)
            except sp.TimeoutExpired:
                bout = b""
                berr = b""

            t = "timed out after %.1f sec" % (timeout,)
            berr = (berr or b"") + t.encode("utf-8")

    stdout = bout.decode("utf-8", "replace") if cout and bout else ""
    stderr = berr.decode("utf-8", "replace") if berr else ""

    rc: int = p.returncode
    if rc is None:
        rc = -14  # SIGALRM; failed to kill

    return rc, stdout, stderr


def describe_rc(rc: int, cmd: list[str], serr: str) -> str:
    if rc < 0:
        rc = 128 - rc

    s = None
    if rc > 128:
        try:
            s = signal.Signals(rc - 128).name
        except (ValueError, KeyError):
            pass
    elif rc == 126:
        s = "invalid program"
    elif rc == 127:
        s = "program not found"

    if s:
        t = "{} <{}>".format(rc, s)
    else:
        t = str(rc)

    t = "error {} from [{}]".format(t, " ".join(cmd))
    if serr:
        if len(serr) > 8192:
            zs = "%s\n[ ...TRUNCATED... ]\n%s\n[ NOTE: full msg was %d chars ]"
            serr = zs % (serr[:4096], serr[-4096:].rstrip(), len(serr))
        serr = serr.rstrip().replace("\n", "\nstderr: ")
        t += "\nstderr: " + serr

    return t


def retchk(
    rc: int,
    cmd: list[str],
    serr: str,
    logger: Optional["NamedLogger"] = None,
    color: Union[int, str] = 0,
) -> None:
    if not rc:
        return

    t = describe_rc(rc, cmd, serr)
    if logger:
        logger(t, color)
    else:
        raise ExternalToolFailure(t, cmd, rc, serr)


class Runner(object):
    """runcmd with a fixed timeout and a log line per failed invocation"""

    def __init__(self, log: "NamedLogger", timeout: float = 120) -> None:
        self.log = log
        self.timeout = timeout

    def __call__(self, argv: list[str], **ka: Any) -> tuple[int, str, str]:
        t0 = time.time()
        rc, sout, serr = runcmd(argv, timeout=self.timeout, **ka)
        if rc:
            retchk(rc, argv, serr, self.log, 3)
        else:
            self.log("%s (%.3fs)" % (" ".join(argv), time.time() - t0), 6)

        return rc, sout, serr

    def check(self, argv: list[str], **ka: Any) -> str:
        rc, sout, serr = self(argv, **ka)
        if rc:
            raise ExternalToolFailure(describe_rc(rc, argv, serr), argv, rc, serr)

        return sout
