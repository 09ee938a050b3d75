# coding: utf-8
"""Samba-style config file store.

Reading builds a ConfigDocument from the file; writing is a merge against
whatever is on disk at that moment, so comments, the [global] section and
any hand-edited share which was not part of the change survive verbatim.
"""
from __future__ import print_function, unicode_literals

import os
import re
import stat
import tempfile
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Set, Union

from ..time_util import humansize
from ..util import ConfigNotFound, IOFailure, NotFound, RWLock, noop
from .classify import check_section, is_reserved_section

if TYPE_CHECKING:
    from ..util import NamedLogger

RE_SECTION = re.compile(r"^\[([^\]]+)\]$")
RE_PARAM = re.compile(r"^([^=]+)=(.*)$")

DEFAULT_CONF = "/etc/samba/smb.conf"
PARAM_FMT = "    %s = %s\n"


def is_comment(sln: str) -> bool:
    return sln.startswith("#") or sln.startswith(";")


def is_param(sln: str) -> bool:
    return bool(sln) and not is_comment(sln) and bool(RE_PARAM.match(sln))


class ConfigDocument(object):
    """All sections of one config file, plus the text they came from."""

    def __init__(
        self, text: str = "", sections: Optional[Dict[str, Dict[str, str]]] = None
    ) -> None:
        self.text = text
        self.sections: Dict[str, Dict[str, str]] = sections or {}

    def __repr__(self) -> str:
        return "ConfigDocument(%s)" % (", ".join(self.sections),)

    def shares(self) -> Dict[str, Dict[str, str]]:
        return {
            k: v for k, v in self.sections.items() if not is_reserved_section(k)
        }

    def get_share(self, name: str) -> Dict[str, str]:
        if is_reserved_section(name) or name not in self.sections:
            raise NotFound("Share not found")

        return self.sections[name]

    def set_section(self, name: str, params: Dict[str, str]) -> None:
        self.sections[name] = dict(params)

    def drop_section(self, name: str) -> bool:
        return self.sections.pop(name, None) is not None


def parse_config(text: str, log: "NamedLogger" = noop) -> ConfigDocument:
    sections: Dict[str, Dict[str, str]] = {}
    cur: Optional[str] = None
    for n, ln in enumerate(text.splitlines(), 1):
        sln = ln.strip()
        if not sln or is_comment(sln):
            continue

        m = RE_SECTION.match(sln)
        if m:
            cur = m.group(1)
            sections.setdefault(cur, {})
            continue

        m = RE_PARAM.match(sln)
        if cur is None or not m:
            log("ignoring line %d: %r" % (n, sln), 6)
            continue

        sections[cur][m.group(1).strip()] = m.group(2).strip()

    return ConfigDocument(text, sections)


def _params(params: Dict[str, str]) -> List[str]:
    return [PARAM_FMT % (k, v) for k, v in params.items()]


def render_config(
    old_text: str, doc: ConfigDocument, changed: Iterable[str]
) -> str:
    """Merge the changed sections of doc into old_text.

    Unchanged sections, comments and blank lines pass through untouched.
    A changed section gets its header followed by the new parameters, and
    its old parameter lines are dropped. A changed section which is no
    longer in doc is dropped whole, comments included. Changed sections
    which old_text does not have yet are appended at the end.
    """
    changed = set(changed)
    if not changed:
        return old_text

    ret: List[str] = []
    seen: Set[str] = set()
    cur: Optional[str] = None
    drop = False
    for ln in old_text.splitlines(True):
        sln = ln.strip()
        m = RE_SECTION.match(sln)
        if m:
            name = m.group(1)
            if name not in changed:
                cur = None
                drop = False
                ret.append(ln)
                continue

            cur = name
            # deleted, or a repeated header of one we already wrote
            drop = name in seen or name not in doc.sections
            seen.add(name)
            if drop:
                continue

            ret.append(ln if ln.endswith("\n") else ln + "\n")
            ret.extend(_params(doc.sections[name]))
            continue

        if drop or (cur is not None and is_param(sln)):
            continue

        ret.append(ln)

    tail = [x for x in doc.sections if x in changed and x not in seen]
    if tail and ret and not ret[-1].endswith("\n"):
        ret[-1] += "\n"

    for name in tail:
        ret.append("\n")
        ret.append("[%s]\n" % (name,))
        ret.extend(_params(doc.sections[name]))

    return "".join(ret)


class ConfPath(object):
    """location of the config file; swapped at runtime on request"""

    def __init__(self, path: str = DEFAULT_CONF) -> None:
        self._path = path
        self._lock = RWLock()

    def get(self) -> str:
        with self._lock.r():
            return self._path

    def set(self, path: str) -> None:
        with self._lock.w():
            self._path = path


class ConfigStore(object):
    """Reads and merge-writes the share config.

    Holds no lock across a read-modify-write; callers serialize those.
    """

    def __init__(
        self, conf: Union[str, ConfPath], log: "NamedLogger" = noop
    ) -> None:
        self.conf = conf if isinstance(conf, ConfPath) else ConfPath(conf)
        self.log = log

    @property
    def path(self) -> str:
        return self.conf.get()

    def read_raw(self) -> str:
        ap = self.path
        if not os.path.exists(ap):
            raise ConfigNotFound("config file not found at %s" % (ap,))

        try:
            with open(ap, "r", encoding="utf-8", errors="surrogateescape", newline="") as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as ex:
            raise IOFailure("failed to read config %s: %s" % (ap, ex))

    def read(self) -> ConfigDocument:
        return parse_config(self.read_raw(), self.log)

    def write(self, doc: ConfigDocument, changed: Iterable[str]) -> None:
        changed = set(changed)
        for name in changed:
            if name in doc.sections:
                check_section(name, doc.sections[name])

        old = self.read_raw()
        new = render_config(old, doc, changed)
        if new == old:
            self.log("config unchanged; not writing", 6)
            return

        self._replace(new)
        self.log("wrote %s; sections %s" % (self.path, ", ".join(sorted(changed))))

    def write_raw(self, text: str) -> None:
        self._replace(text)
        self.log("wrote %s (raw, %s)" % (self.path, humansize(len(text))))

    def _replace(self, text: str) -> None:
        ap = self.path
        fdir = os.path.dirname(os.path.abspath(ap))
        try:
            mode = stat.S_IMODE(os.stat(ap).st_mode)
        except OSError:
            mode = 0o644

        tmp = ""
        try:
            fd, tmp = tempfile.mkstemp(prefix=".shareadm-", dir=fdir)
            with os.fdopen(fd, "w", encoding="utf-8", errors="surrogateescape", newline="") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())

            os.chmod(tmp, mode)
            os.replace(tmp, ap)
        except OSError as ex:
            if tmp and os.path.exists(tmp):
                os.unlink(tmp)
            raise IOFailure("failed to write config %s: %s" % (ap, ex))
