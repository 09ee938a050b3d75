# coding: utf-8
"""Share provisioning pipeline.

A share write goes through validating, directory, ownership, acl, config
and reload in that order. Whatever fails stops the rest; the steps that
already ran stay done, and running the same request again converges.
"""
from __future__ import print_function, unicode_literals

import os
import shutil
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ..config.classify import check_section, is_reserved_section
from ..util import IOFailure, NotFound, Pebkac, ValidationFailure, noop

if TYPE_CHECKING:
    from ..acl import AccessPolicyTranslator, PrincipalValidator
    from ..config.store import ConfigStore
    from ..util import NamedLogger
    from .samba_svc import SambaService

VALIDATING = "validating"
DIRECTORY = "directory"
OWNERSHIP = "ownership"
ACL = "acl"
CONFIG = "config"
RELOAD = "reload"
DONE = "done"

DIR_MODE = 0o755


class ProvisionFailed(Pebkac):
    def __init__(self, stage: str, cause: Exception) -> None:
        code = cause.code if isinstance(cause, Pebkac) else 500
        super(ProvisionFailed, self).__init__(code, str(cause))
        self.stage = stage
        self.cause = cause

    def __repr__(self) -> str:
        return "ProvisionFailed(%s, %r)" % (self.stage, self.cause)


def parse_mode(zs: str) -> int:
    try:
        mode = int(zs.strip(), 8)
    except ValueError:
        raise ValidationFailure("invalid permissions %r; expected octal like 0775" % (zs,))

    if mode < 0 or mode > 0o7777:
        raise ValidationFailure("permissions out of range: %r" % (zs,))

    return mode


class ProvisioningOrchestrator(object):
    def __init__(
        self,
        store: "ConfigStore",
        translator: "AccessPolicyTranslator",
        validator: "PrincipalValidator",
        service: "SambaService",
        log: "NamedLogger" = noop,
    ) -> None:
        self.store = store
        self.translator = translator
        self.validator = validator
        self.service = service
        self.log = log

    def _run(self, stage: str, fun: Any, *a: Any) -> Any:
        try:
            return fun(*a)
        except Pebkac as ex:
            self.log("%s: %s" % (stage, ex), 3 if ex.code < 500 else 1)
            raise ProvisionFailed(stage, ex)
        except OSError as ex:
            self.log("%s: %r" % (stage, ex), 1)
            raise ProvisionFailed(stage, IOFailure(str(ex)))

    def validate(self, name: str, share: Any) -> Dict[str, str]:
        if is_reserved_section(name):
            raise ValidationFailure("%r is a reserved section, not a share" % (name,))

        if not isinstance(share, dict) or not share:
            raise ValidationFailure("share definition must be a non-empty object")

        check_section(name, share)

        if not share.get("path", "").strip():
            raise ValidationFailure("share %r has no path" % (name,))

        if share.get("permissions"):
            parse_mode(share["permissions"])

        self.validator.validate(share)
        return share

    def ensure_directory(self, share: Dict[str, str]) -> None:
        os.makedirs(share["path"], DIR_MODE, exist_ok=True)

    def apply_ownership(self, share: Dict[str, str]) -> None:
        path = share["path"]
        owner = share.get("owner") or None
        group = share.get("group") or None
        if owner or group:
            try:
                shutil.chown(path, user=owner, group=group)
            except LookupError as ex:
                raise ValidationFailure("cannot chown %r: %s" % (path, ex))

        if share.get("permissions"):
            os.chmod(path, parse_mode(share["permissions"]))

    def persist(self, name: str, share: Dict[str, str]) -> None:
        doc = self.store.read()
        doc.set_section(name, share)
        self.store.write(doc, {name})

    def provision(self, name: str, share: Dict[str, str]) -> str:
        """create or update a share; returns the final stage"""
        share = self._run(VALIDATING, self.validate, name, share)
        self._run(DIRECTORY, self.ensure_directory, share)
        self._run(OWNERSHIP, self.apply_ownership, share)
        self._run(ACL, self.translator.apply_share, share)
        self._run(CONFIG, self.persist, name, share)
        self._run(RELOAD, self.service.reload)
        self.log("share %r provisioned at %r" % (name, share["path"]))
        return DONE

    def _drop(self, name: str) -> None:
        doc = self.store.read()
        doc.get_share(name)
        doc.drop_section(name)
        self.store.write(doc, {name})

    def delete(self, name: str) -> str:
        try:
            self._drop(name)
        except NotFound:
            raise
        except Pebkac as ex:
            raise ProvisionFailed(CONFIG, ex)

        self._run(RELOAD, self.service.reload)
        self.log("share %r deleted" % (name,))
        return DONE

    def refresh_acls(self, names: Optional[List[str]] = None) -> int:
        """reapply the access lists of every share which has a path"""
        shares = self.store.read().shares()
        n = 0
        for name, share in shares.items():
            if names is not None and name not in names:
                continue
            if not share.get("path"):
                continue

            try:
                self.translator.apply_share(share)
            except Pebkac as ex:
                raise ProvisionFailed(ACL, ex)
            n += 1

        return n

    def restart(self) -> int:
        n = self.refresh_acls()
        self._run(RELOAD, self.service.reload)
        return n
