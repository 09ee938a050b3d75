"""Settings for shareadm.

Defaults come from the environment, then an optional JSON settings file,
then the command line; each one overrides the previous.
"""

import argparse
import json
import os
from typing import Any, Dict, List, Optional

from .__version__ import S_VERSION
from .config.store import DEFAULT_CONF
from .usage import CACHE_TTL

DEFAULT_SETTINGS = "/etc/samba-manager/config.json"
DEFAULT_PORT = 8080


def env_bool(zs: Optional[str]) -> bool:
    return (zs or "").strip().lower() in ("1", "true", "yes", "on")


def load_settings_file(fp: str) -> Dict[str, Any]:
    """json settings; missing file is fine, a broken one is not"""
    if not os.path.exists(fp):
        return {}

    with open(fp, "rb") as f:
        ret = json.loads(f.read().decode("utf-8"))

    if not isinstance(ret, dict):
        raise ValueError("settings file %s must contain a json object" % (fp,))

    return ret


def settings_defaults(env: Dict[str, str], fcfg: Dict[str, Any]) -> Dict[str, Any]:
    auth = fcfg.get("auth") or {}
    ret = {
        "samba_conf": env.get("SAMBA_CONF_PATH", DEFAULT_CONF),
        "port": int(env.get("PORT", DEFAULT_PORT)),
        "debug": env_bool(env.get("DEBUG")),
        "auth_user": env.get("AUTH_USERNAME", "admin"),
        "auth_pass": env.get("AUTH_PASSWORD", "admin"),
        "no_auth": False,
    }

    if "samba_conf_path" in fcfg:
        ret["samba_conf"] = fcfg["samba_conf_path"]
    if "port" in fcfg:
        ret["port"] = int(fcfg["port"])
    if "debug" in fcfg:
        ret["debug"] = bool(fcfg["debug"])
    if "username" in auth:
        ret["auth_user"] = auth["username"]
    if "password" in auth:
        ret["auth_pass"] = auth["password"]
    if "enabled" in auth:
        ret["no_auth"] = not auth["enabled"]

    return ret


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="shareadm",
        description="shareadm v%s -- samba share admin api" % (S_VERSION,),
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    ap.add_argument("-c", metavar="PATH", dest="settings", help="json settings file (env CONFIG_PATH)")
    ap.add_argument("--samba-conf", metavar="PATH", help="samba config file to manage")
    ap.add_argument("-i", metavar="IP", dest="host", default="0.0.0.0", help="ip to listen on")
    ap.add_argument("-p", metavar="PORT", dest="port", type=int, help="port to listen on")
    ap.add_argument("--debug", action="store_true", help="log debug messages")
    ap.add_argument("--auth-user", metavar="NAME", help="basic-auth username")
    ap.add_argument("--auth-pass", metavar="PASS", help="basic-auth password")
    ap.add_argument("--no-auth", action="store_true", help="disable basic-auth")
    ap.add_argument("--service", metavar="UNIT", default="smbd", help="systemd unit to restart")
    ap.add_argument("--cache-ttl", metavar="SEC", type=float, default=CACHE_TTL, help="disk usage cache lifetime")
    ap.add_argument("--cmd-timeout", metavar="SEC", type=float, default=120, help="max runtime of external tools")
    ap.add_argument("--dry-acl", action="store_true", help="record acl changes instead of running setfacl")
    ap.add_argument("--version", action="version", version="shareadm " + S_VERSION)
    return ap


def parse_args(argv: List[str], env: Optional[Dict[str, str]] = None) -> argparse.Namespace:
    if env is None:
        env = dict(os.environ)

    ap = build_parser()
    args = ap.parse_args(argv)

    settings = args.settings or env.get("CONFIG_PATH", DEFAULT_SETTINGS)
    try:
        fcfg = load_settings_file(settings)
    except ValueError as ex:
        ap.error("bad settings file %s: %s" % (settings, ex))

    defaults = settings_defaults(env, fcfg)
    for k, v in defaults.items():
        cur = getattr(args, k, None)
        if cur is None or (cur is False and v):
            setattr(args, k, v)

    args.settings = settings
    args.have_settings = bool(fcfg)
    return args
