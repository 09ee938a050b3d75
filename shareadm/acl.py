# coding: utf-8
"""POSIX ACLs for share directories.

AccessPolicyTranslator turns the "valid users" and "write list" of a share
into a fixed sequence of ACL primitives; a backend carries them out, either
by running setfacl or by recording them in memory.
"""
from __future__ import print_function, unicode_literals

from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

from .config.classify import (
    GROUP,
    USER,
    classify_principal,
    is_opaque_principal,
    split_principals,
)
from .util import ExternalToolFailure, ValidationFailure, noop

if TYPE_CHECKING:
    from .proc_util import Runner
    from .util import NamedLogger

READ = "r-x"
WRITE = "rwx"
MASK = "mask"

KIND_TAG = {USER: "u", GROUP: "g", MASK: "m"}


def perm_spec(perm: str) -> str:
    """'r-x' => 'rx' as setfacl likes it for masks"""
    return perm.replace("-", "")


class AclBackend(object):
    """The primitives the translator is allowed to use."""

    def clear(self, path: str) -> None:
        raise NotImplementedError()

    def set_mask(
        self, path: str, perm: str, recursive: bool = False, default: bool = False
    ) -> None:
        raise NotImplementedError()

    def set_entry(
        self,
        path: str,
        kind: str,
        name: str,
        perm: str,
        recursive: bool = False,
        default: bool = False,
    ) -> None:
        raise NotImplementedError()

    def dump(self, path: str) -> str:
        """getfacl-formatted listing of path"""
        raise NotImplementedError()


class SetfaclBackend(AclBackend):
    def __init__(self, run: "Runner") -> None:
        self.run = run

    def _setfacl(self, path: str, spec: str, recursive: bool, default: bool) -> None:
        argv = ["setfacl"]
        if recursive:
            argv.append("-R")
        if default:
            spec = "d:" + spec
        argv += ["-m", spec, path]
        self.run.check(argv)

    def clear(self, path: str) -> None:
        self.run.check(["setfacl", "-b", path])

    def set_mask(
        self, path: str, perm: str, recursive: bool = False, default: bool = False
    ) -> None:
        self._setfacl(path, "m::" + perm_spec(perm), recursive, default)

    def set_entry(
        self,
        path: str,
        kind: str,
        name: str,
        perm: str,
        recursive: bool = False,
        default: bool = False,
    ) -> None:
        spec = "%s:%s:%s" % (KIND_TAG[kind], name, perm)
        self._setfacl(path, spec, recursive, default)

    def dump(self, path: str) -> str:
        # no --numeric; we want names
        return self.run.check(["getfacl", "-p", path])


class RecordingAclBackend(AclBackend):
    """Keeps calls and the resulting entries in memory instead of on disk.

    Entries are stored exactly as requested. Real setfacl recalculates the
    mask whenever an entry is added (no -n), so after a write grant the
    mask on disk is rwx while this backend still reports r-x; a --dry-acl
    listing is what was asked for, not what the filesystem would hold.
    """

    def __init__(self, owner: str = "root", group: str = "root") -> None:
        self.calls: List[Tuple[Any, ...]] = []
        self.acls: Dict[str, Dict[Tuple[bool, str, str], str]] = {}
        self.owner = owner
        self.group = group
        self.fail_on: Optional[Callable[[Tuple[Any, ...]], bool]] = None

    def _rec(self, call: Tuple[Any, ...]) -> None:
        self.calls.append(call)
        if self.fail_on and self.fail_on(call):
            raise ExternalToolFailure("error 1 from [setfacl %s]" % (call,), [], 1)

    def clear(self, path: str) -> None:
        self._rec(("clear", path))
        self.acls[path] = {}

    def set_mask(
        self, path: str, perm: str, recursive: bool = False, default: bool = False
    ) -> None:
        self._rec(("mask", path, perm, recursive, default))
        self.acls.setdefault(path, {})[(default, MASK, "")] = perm

    def set_entry(
        self,
        path: str,
        kind: str,
        name: str,
        perm: str,
        recursive: bool = False,
        default: bool = False,
    ) -> None:
        self._rec(("entry", path, kind, name, perm, recursive, default))
        self.acls.setdefault(path, {})[(default, kind, name)] = perm

    def entries(self, path: str) -> Dict[Tuple[bool, str, str], str]:
        return dict(self.acls.get(path, {}))

    def dump(self, path: str) -> str:
        ret = [
            "# file: %s" % (path,),
            "# owner: %s" % (self.owner,),
            "# group: %s" % (self.group,),
            "user::rwx",
        ]
        for (default, kind, name), perm in sorted(self.acls.get(path, {}).items()):
            pfx = "default:" if default else ""
            ret.append("%s%s:%s:%s" % (pfx, kind, name, perm))

        ret.append("other::r-x")
        return "\n".join(ret) + "\n"


class AccessPolicyTranslator(object):
    """Applies the access lists of a share to its directory.

    The order is fixed: clear, mask, readers, writers, default mask,
    default readers, default writers. Someone listed as both reader and
    writer ends up with the writer grant since that one is applied last.
    The first failing step aborts the rest.
    """

    def __init__(self, backend: AclBackend, log: "NamedLogger" = noop) -> None:
        self.backend = backend
        self.log = log

    def _step(self, what: str, fun: Callable[..., None], *a: Any, **ka: Any) -> None:
        try:
            fun(*a, **ka)
        except ExternalToolFailure as ex:
            t = "failed to %s: %s" % (what, ex)
            raise ExternalToolFailure(t, ex.argv, ex.rc, ex.serr)

    def apply(
        self,
        path: str,
        valid_users: Optional[str] = None,
        write_list: Optional[str] = None,
    ) -> None:
        if valid_users is None and write_list is None:
            self.log("no access lists for %r; leaving acls alone" % (path,), 6)
            return

        readers = [classify_principal(x) for x in split_principals(valid_users)]
        writers = [classify_principal(x) for x in split_principals(write_list)]
        be = self.backend

        self._step("clear existing acls", be.clear, path)
        self._step("set mask", be.set_mask, path, READ)

        for grants, perm, desc in ((readers, READ, "valid"), (writers, WRITE, "write")):
            for kind, name in grants:
                what = "set acl for %s %s %s" % (desc, kind, name)
                self._step(what, be.set_entry, path, kind, name, perm)

        self._step("set default mask", be.set_mask, path, READ, True, True)

        for grants, perm, desc in ((readers, READ, "valid"), (writers, WRITE, "write")):
            for kind, name in grants:
                what = "set default acl for %s %s %s" % (desc, kind, name)
                self._step(what, be.set_entry, path, kind, name, perm, True, True)

        t = "acls applied on %r: %d readers, %d writers"
        self.log(t % (path, len(readers), len(writers)))

    def apply_share(self, share: Dict[str, str]) -> None:
        self.apply(share["path"], share.get("valid users"), share.get("write list"))

    def read_acls(self, path: str) -> Dict[str, Any]:
        return parse_getfacl(self.backend.dump(path), path)


def parse_getfacl(text: str, path: str) -> Dict[str, Any]:
    """Named user and group entries out of `getfacl -p` output.

    owner/group/other/mask lines are left out of the entry list.
    """
    ret: Dict[str, Any] = {"path": path, "owner": "", "group": "", "entries": []}
    for ln in text.splitlines():
        ln = ln.strip()
        if not ln:
            continue

        if ln.startswith("# owner:"):
            ret["owner"] = ln[8:].strip()
            continue
        if ln.startswith("# group:"):
            ret["group"] = ln[8:].strip()
            continue
        if ln.startswith("#"):
            continue

        default = ln.startswith("default:")
        if default:
            ln = ln[8:]

        parts = ln.split(":")
        if len(parts) < 2:
            continue

        kind, who = parts[0], parts[1]
        perm = parts[2].split()[0] if len(parts) > 2 and parts[2] else ""
        if kind in (USER, GROUP) and who:
            ret["entries"].append(
                {
                    "type": kind,
                    "principal": who,
                    "permission": perm,
                    "isDefault": default,
                }
            )

    return ret


class PrincipalValidator(object):
    """Rejects access lists naming accounts which do not exist locally."""

    LISTS = ("valid users", "write list")

    def __init__(self, list_principals: Callable[[], List[str]]) -> None:
        self.list_principals = list_principals

    def validate(self, share: Dict[str, str]) -> None:
        todo = []
        for key in self.LISTS:
            for who in split_principals(share.get(key)):
                if not is_opaque_principal(who):
                    todo.append((key, who))

        if not todo:
            return

        known = set(self.list_principals())
        for key, who in todo:
            if who not in known:
                t = "User '%s' from '%s' does not exist in Samba"
                raise ValidationFailure(t % (who, key))
