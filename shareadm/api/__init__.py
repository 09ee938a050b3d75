# coding: utf-8
"""JSON API endpoints and dispatcher for shareadm.

Handlers live in the modules of this package, one per concern; the
dispatcher matches a route, calls the handler and wraps its return value.
"""
from __future__ import print_function, unicode_literals

import json
import re
from urllib.parse import unquote

from ..util import Pebkac, min_ex


def api_ok(data):
    return {"ok": True, "data": data}


def api_err(code, msg, **extra):
    ret = {"ok": False, "error": msg, "code": code}
    ret.update(extra)
    return ret


SHARE = r"(?P<name>[^/]+)"

# (method, pattern, module_name, handler_function_name)
# patterns are matched against the path below /api/
API_ROUTES = [
    ("GET", r"^shares$", "shareadm.api.share_api", "list_shares"),
    ("GET", r"^shares/" + SHARE + "$", "shareadm.api.share_api", "get_share"),
    ("POST", r"^shares/" + SHARE + "$", "shareadm.api.share_api", "put_share"),
    ("DELETE", r"^shares/" + SHARE + "$", "shareadm.api.share_api", "delete_share"),
    ("GET", r"^shares/" + SHARE + "/acl$", "shareadm.api.share_api", "get_share_acl"),
    ("GET", r"^config$", "shareadm.api.config_api", "get_config"),
    ("POST", r"^config$", "shareadm.api.config_api", "put_config"),
    ("GET", r"^config/sections/" + SHARE + "$", "shareadm.api.config_api", "get_section"),
    ("POST", r"^config/sections/" + SHARE + "$", "shareadm.api.config_api", "put_section"),
    ("GET", r"^config/raw$", "shareadm.api.config_api", "get_raw"),
    ("POST", r"^config/raw$", "shareadm.api.config_api", "put_raw"),
    ("GET", r"^status$", "shareadm.api.service_api", "get_status"),
    ("POST", r"^restart$", "shareadm.api.service_api", "post_restart"),
    ("GET", r"^storage-filesystems$", "shareadm.api.storage_api", "get_filesystems"),
    ("GET", r"^storage-shares$", "shareadm.api.storage_api", "get_shares"),
]


def _match_route(method, path, routes):
    """Match a request method and path against route patterns.

    Returns (handler_module, handler_func, params_dict), or None if nothing
    matched; params_dict is empty but not None if only the method was wrong.
    """
    path_hit = False
    for route_method, pattern, module_name, handler_name in routes:
        match = re.match(pattern, path)
        if not match:
            continue

        path_hit = True
        if method != route_method:
            continue

        params = {k: unquote(v) for k, v in match.groupdict().items()}
        return module_name, handler_name, params

    return {} if path_hit else None


def dispatch_api(cli, api_path):
    """Route an API request; returns (status, json-serializable body)."""
    method = cli.mode
    route_match = _match_route(method, api_path, API_ROUTES)
    if route_match is None:
        return 404, api_err(404, "unknown API endpoint: " + api_path)
    if not route_match:
        return 405, api_err(405, "method %s not allowed on %s" % (method, api_path))

    module_name, handler_name, params = route_match
    return _call_handler(cli, module_name, handler_name, params)


def _call_handler(cli, module_name, handler_name, params):
    try:
        parts = module_name.split(".")
        module = __import__(module_name, fromlist=[parts[-1]])
        handler = getattr(module, handler_name, None)

        if handler is None:
            raise Pebkac(500, "Handler not found: {}.{}".format(module_name, handler_name))

        return 200, api_ok(handler(cli, **params))

    except Pebkac as ex:
        extra = {}
        stage = getattr(ex, "stage", None)
        if stage:
            extra["stage"] = stage
        if ex.code >= 500:
            cli.log("%s %s: %s" % (cli.mode, cli.path, ex), 1)
        return ex.code, api_err(ex.code, str(ex), **extra)
    except Exception as ex:
        cli.log("%s %s failed:\n%s" % (cli.mode, cli.path, min_ex()), 1)
        return 500, api_err(500, str(ex))


def to_json(body):
    return json.dumps(body).encode("utf-8")
