# coding: utf-8
from __future__ import print_function, unicode_literals

import logging
import os
import re
import sys
import threading
import time
import traceback
from typing import TYPE_CHECKING, Any, Optional, Union

from .__init__ import VT100

if TYPE_CHECKING:
    from typing import Protocol

    class RootLogger(Protocol):
        def __call__(self, src: str, msg: str, c: Union[int, str] = 0) -> None:
            return None

    class NamedLogger(Protocol):
        def __call__(self, msg: str, c: Union[int, str] = 0) -> None:
            return None


HTTPCODE = {
    200: "OK",
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    413: "Payload Too Large",
    500: "Internal Server Error",
    501: "Not Implemented",
}

# 1=error 3=warning 6=debug, anything else is plain info
LOG_COLORS = {1: "1;31", 2: "35", 3: "33", 5: "36", 6: "90"}

RE_ANSI = re.compile("\033\\[[^mK]*[mK]")


def noop(*a, **ka):
    pass


class Pebkac(Exception):
    def __init__(
        self, code: int, msg: Optional[str] = None, log: Optional[str] = None
    ) -> None:
        super(Pebkac, self).__init__(msg or HTTPCODE[code])
        self.code = code
        self.log = log

    def __repr__(self) -> str:
        return "Pebkac({}, {})".format(self.code, repr(self.args))


class NotFound(Pebkac):
    def __init__(self, msg: str) -> None:
        super(NotFound, self).__init__(404, msg)


class ConfigNotFound(NotFound):
    """the configuration file itself is missing; that is the server's problem"""

    def __init__(self, msg: str) -> None:
        super(ConfigNotFound, self).__init__(msg)
        self.code = 500


class ValidationFailure(Pebkac):
    def __init__(self, msg: str) -> None:
        super(ValidationFailure, self).__init__(400, msg)


class IOFailure(Pebkac):
    def __init__(self, msg: str) -> None:
        super(IOFailure, self).__init__(500, msg)


class ExternalToolFailure(Pebkac):
    def __init__(
        self, msg: str, argv: Optional[list[str]] = None, rc: int = 0, serr: str = ""
    ) -> None:
        super(ExternalToolFailure, self).__init__(500, msg, serr or None)
        self.argv = argv or []
        self.rc = rc
        self.serr = serr


def min_ex(max_lines: int = 8, reverse: bool = False) -> str:
    et, ev, tb = sys.exc_info()
    stb = traceback.extract_tb(tb) if tb else traceback.extract_stack()[:-1]
    fmt = "%s:%d <%s>: %s"
    ex = [fmt % (fp.split(os.sep)[-1], ln, fun, txt) for fp, ln, fun, txt in stb]
    if et or ev or tb:
        ex.append("[%s] %s" % (et.__name__ if et else "(anonymous)", ev))
    return "\n".join(ex[-max_lines:][:: -1 if reverse else 1])


class LogHub(object):
    """root logger; every component gets a named view of this"""

    def __init__(self, debug: bool = False, color: Optional[bool] = None, fh=None) -> None:
        self.debug = debug
        self.color = VT100 if color is None else color
        self.fh = fh or sys.stderr
        self.mutex = threading.Lock()

    def __call__(self, src: str, msg: str, c: Union[int, str] = 0) -> None:
        if c == 6 and not self.debug:
            return

        now = time.time()
        ts = time.strftime("%H:%M:%S", time.localtime(now))
        ts += ".%03d" % (int(now * 1000) % 1000,)

        if self.color:
            zs = LOG_COLORS.get(c, "") if isinstance(c, int) else c
            if zs:
                msg = "\033[%sm%s\033[0m" % (zs, msg)
            ln = "\033[36m%s \033[33m%-21s\033[0m %s\n" % (ts, src, msg)
        else:
            ln = "%s %-21s %s\n" % (ts, src, RE_ANSI.sub("", msg))

        with self.mutex:
            self.fh.write(ln)
            self.fh.flush()

    def named(self, src: str) -> "NamedLogger":
        def log(msg: str, c: Union[int, str] = 0) -> None:
            self(src, msg, c)

        return log


class HLog(logging.Handler):
    def __init__(self, log_func: "RootLogger") -> None:
        logging.Handler.__init__(self)
        self.log_func = log_func

    def __repr__(self) -> str:
        level = logging.getLevelName(self.level)
        return "<%s shareadm(%s)>" % (self.__class__.__name__, level)

    def flush(self) -> None:
        pass

    def emit(self, record: logging.LogRecord) -> None:
        msg = self.format(record)
        lv = record.levelno
        if lv < logging.INFO:
            c = 6
        elif lv < logging.WARNING:
            c = 0
        elif lv < logging.ERROR:
            c = 3
        else:
            c = 1

        self.log_func(record.name[-21:], msg, c)


class RWLock(object):
    """many readers or one writer; writers wait for readers to drain"""

    def __init__(self) -> None:
        self.cond = threading.Condition(threading.Lock())
        self.readers = 0
        self.writer = False

    def acquire_read(self) -> None:
        with self.cond:
            while self.writer:
                self.cond.wait()
            self.readers += 1

    def release_read(self) -> None:
        with self.cond:
            self.readers -= 1
            if not self.readers:
                self.cond.notify_all()

    def acquire_write(self) -> None:
        with self.cond:
            while self.writer or self.readers:
                self.cond.wait()
            self.writer = True

    def release_write(self) -> None:
        with self.cond:
            self.writer = False
            self.cond.notify_all()

    def r(self) -> "_Held":
        return _Held(self.acquire_read, self.release_read)

    def w(self) -> "_Held":
        return _Held(self.acquire_write, self.release_write)


class _Held(object):
    def __init__(self, acq: Any, rel: Any) -> None:
        self.acq = acq
        self.rel = rel

    def __enter__(self) -> None:
        self.acq()

    def __exit__(self, *a: Any) -> None:
        self.rel()
