# coding: utf-8
"""Threaded HTTP front for the JSON API; one thread per request."""
from __future__ import print_function, unicode_literals

import base64
import binascii
import hmac
import logging
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import TYPE_CHECKING, Any, Optional, Tuple

from .__version__ import S_VERSION
from .api import api_err, dispatch_api, to_json

if TYPE_CHECKING:
    from .context import AppContext

MAX_BODY = 1024 * 1024
API_PREFIX = "/api/"

alog = logging.getLogger("shareadm.http")


def parse_basic_auth(hdr: Optional[str]) -> Optional[Tuple[str, str]]:
    if not hdr or not hdr.lower().startswith("basic "):
        return None

    try:
        zs = base64.b64decode(hdr[6:].strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None

    if ":" not in zs:
        return None

    usr, pw = zs.split(":", 1)
    return usr, pw


def check_auth(args: Any, hdr: Optional[str]) -> bool:
    if args.no_auth:
        return True

    creds = parse_basic_auth(hdr)
    if not creds:
        return False

    usr, pw = creds
    ok_u = hmac.compare_digest(usr.encode("utf-8"), args.auth_user.encode("utf-8"))
    ok_p = hmac.compare_digest(pw.encode("utf-8"), args.auth_pass.encode("utf-8"))
    return ok_u and ok_p


class ApiRequest(object):
    """what an api handler gets to see of the request"""

    def __init__(self, ctx: "AppContext", mode: str, path: str, body: bytes) -> None:
        self.ctx = ctx
        self.mode = mode
        self.path = path
        self.body = body
        self.log = ctx.loghub.named("api")


class ApiHandler(BaseHTTPRequestHandler):
    server_version = "shareadm/" + S_VERSION
    protocol_version = "HTTP/1.1"
    ctx: "AppContext"

    def log_message(self, fmt: str, *a: Any) -> None:
        alog.info("%s %s", self.address_string(), fmt % a)

    def _reply(self, code: int, body: Any, hdrs: Optional[dict] = None) -> None:
        buf = to_json(body)
        self.send_response(code)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(buf)))
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Access-Control-Allow-Methods", "GET, POST, PUT, DELETE, OPTIONS")
        self.send_header("Access-Control-Allow-Headers", "Content-Type, Authorization")
        for k, v in (hdrs or {}).items():
            self.send_header(k, v)
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(buf)

    def _handle(self) -> None:
        path = self.path.split("?", 1)[0]
        if not path.startswith(API_PREFIX):
            self._reply(404, api_err(404, "not found"))
            return

        if self.command == "OPTIONS":
            self._reply(200, {})
            return

        if not check_auth(self.ctx.args, self.headers.get("Authorization")):
            hdrs = {"WWW-Authenticate": 'Basic realm="shareadm"'}
            self._reply(401, api_err(401, "Unauthorized"), hdrs)
            return

        try:
            clen = int(self.headers.get("Content-Length") or 0)
        except ValueError:
            clen = -1

        if clen < 0 or clen > MAX_BODY:
            self.close_connection = True
            code = 413 if clen > 0 else 400
            self._reply(code, api_err(code, "bad content-length"))
            return

        body = self.rfile.read(clen) if clen else b""
        cli = ApiRequest(self.ctx, self.command, path, body)
        code, ret = dispatch_api(cli, path[len(API_PREFIX):])
        self._reply(code, ret)

    do_GET = _handle
    do_POST = _handle
    do_PUT = _handle
    do_DELETE = _handle
    do_OPTIONS = _handle


def make_server(ctx: "AppContext", host: str, port: int) -> ThreadingHTTPServer:
    handler = type("BoundApiHandler", (ApiHandler,), {"ctx": ctx})
    srv = ThreadingHTTPServer((host, port), handler)
    srv.daemon_threads = True
    return srv
