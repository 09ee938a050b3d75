# coding: utf-8
"""Everything a request handler needs, built once per process."""
from __future__ import print_function, unicode_literals

import argparse
from typing import Any, Optional

from .acl import (
    AccessPolicyTranslator,
    AclBackend,
    PrincipalValidator,
    RecordingAclBackend,
    SetfaclBackend,
)
from .config.store import ConfigStore, ConfPath
from .proc_util import Runner
from .services.provision import ProvisioningOrchestrator
from .services.samba_svc import SambaService
from .usage import UsageCache
from .util import LogHub


class AppContext(object):
    def __init__(
        self,
        args: argparse.Namespace,
        log: Optional[LogHub] = None,
        run: Optional[Any] = None,
        acl_backend: Optional[AclBackend] = None,
    ) -> None:
        self.args = args
        self.loghub = log or LogHub(debug=args.debug)
        self.log = self.loghub.named("shareadm")

        self.run = run or Runner(self.loghub.named("proc"), args.cmd_timeout)
        self.conf_path = ConfPath(args.samba_conf)
        self.store = ConfigStore(self.conf_path, self.loghub.named("conf"))

        if acl_backend is None:
            if args.dry_acl:
                acl_backend = RecordingAclBackend()
            else:
                acl_backend = SetfaclBackend(self.run)

        self.acl_backend = acl_backend
        self.translator = AccessPolicyTranslator(acl_backend, self.loghub.named("acl"))
        self.service = SambaService(self.run, args.service, self.loghub.named("svc"))
        self.validator = PrincipalValidator(self.service.list_users)
        self.usage = UsageCache(
            self.store, self.run, self.loghub.named("usage"), args.cache_ttl
        )
        self.provisioner = ProvisioningOrchestrator(
            self.store,
            self.translator,
            self.validator,
            self.service,
            self.loghub.named("provision"),
        )
