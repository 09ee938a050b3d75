#!/usr/bin/env python3
# coding: utf-8
from __future__ import print_function, unicode_literals

"""
shareadm: samba share admin api
reconciles share definitions with smb.conf, posix acls and smbd
"""

import logging
import sys
from typing import List, Optional

from .__version__ import S_BUILD_DT, S_VERSION
from .cfg_util import parse_args
from .context import AppContext
from .httpsrv import make_server
from .util import HLog, LogHub


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)

    loghub = LogHub(debug=args.debug)
    lh = HLog(loghub)
    lh.setLevel(logging.DEBUG if args.debug else logging.INFO)
    root = logging.getLogger()
    root.handlers = [lh]
    root.setLevel(lh.level)

    log = loghub.named("main")
    log("shareadm v%s (%s)" % (S_VERSION, S_BUILD_DT))
    if args.have_settings:
        log("settings loaded from %s" % (args.settings,))
    else:
        log("no settings file at %s; using defaults/env" % (args.settings,), 6)

    ctx = AppContext(args, loghub)
    t = "managing %s (service %s, acl backend %s, auth %s)"
    zs = "off" if args.no_auth else "on"
    log(t % (args.samba_conf, args.service, type(ctx.acl_backend).__name__, zs))
    if not args.no_auth and args.auth_pass == "admin":
        log("basic-auth is using the default password; set AUTH_PASSWORD", 3)

    try:
        srv = make_server(ctx, args.host, args.port)
    except OSError as ex:
        log("cannot listen on %s:%d: %s" % (args.host, args.port, ex), 1)
        return 1

    log("listening on http://%s:%d/api/" % (args.host, args.port))
    try:
        srv.serve_forever()
    except KeyboardInterrupt:
        log("bye")
    finally:
        srv.server_close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
