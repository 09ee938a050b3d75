#!/usr/bin/env python3
# coding: utf-8
from __future__ import print_function, unicode_literals

import base64
import json
import os
import shutil
import threading
import unittest
import urllib.error
import urllib.request

from shareadm.api import API_ROUTES, dispatch_api
from shareadm.config.classify import USER
from shareadm.context import AppContext
from shareadm.httpsrv import ApiRequest, check_auth, make_server, parse_basic_auth
from tests import util as tu
from tests.test_usage import DF

PDBEDIT = "alice:1000:Alice\nbob:1001:Bob\n"
ACTIVE_MONO = "ActiveEnterTimestampMonotonic=1000000\n"


def basic(usr, pw):
    zs = "%s:%s" % (usr, pw)
    return "Basic " + base64.b64encode(zs.encode("utf-8")).decode("ascii")


class ApiBase(unittest.TestCase):
    def setUp(self):
        self.td = tu.get_ramdisk()
        conf = tu.SMB_CONF + "\n[nopath]\n    comment = nothing here\n"
        self.fp = tu.write_conf(self.td, conf)
        self.log = tu.NullLog()
        self.run = tu.FakeRunner(
            {
                ("pdbedit", "-L"): (0, PDBEDIT, ""),
                ("systemctl", "is-active"): (0, "active\n", ""),
                ("systemctl", "show"): (0, ACTIVE_MONO, ""),
                ("df", "-h"): (0, DF, ""),
                ("du", "-sh"): (0, "1.0G\t/x\n", ""),
            }
        )
        self.args = tu.Cfg(samba_conf=self.fp)
        self.ctx = AppContext(self.args, self.log, self.run)
        self.docs = os.path.join(self.td, "docs")

    def tearDown(self):
        shutil.rmtree(self.td)

    def api(self, path, method="GET", body=None):
        if body is not None and not isinstance(body, bytes):
            body = json.dumps(body).encode("utf-8")

        cli = ApiRequest(self.ctx, method, "/api/" + path, body or b"")
        code, ret = dispatch_api(cli, path)
        # everything must survive the trip through json
        return code, json.loads(json.dumps(ret))


class TestShares(ApiBase):
    def test_list(self):
        code, ret = self.api("shares")
        self.assertEqual(code, 200)
        self.assertTrue(ret["ok"])
        self.assertEqual(sorted(ret["data"]), ["A", "B", "nopath"])
        self.assertEqual(ret["data"]["B"], {"path": "/srv/b", "valid users": "bob"})

    def test_get(self):
        code, ret = self.api("shares/B")
        self.assertEqual(code, 200)
        self.assertEqual(ret["data"], {"B": {"path": "/srv/b", "valid users": "bob"}})

    def test_get_missing(self):
        for name in ("nope", "global", "print%24"):
            code, ret = self.api("shares/" + name)
            self.assertEqual(code, 404, name)
            self.assertEqual(ret["ok"], False)
            self.assertEqual(ret["code"], 404)

    def test_create(self):
        share = {"path": self.docs, "valid users": "bob,@eng", "write list": "alice"}
        code, ret = self.api("shares/docs", "POST", share)
        self.assertEqual(code, 200)
        self.assertEqual(
            ret["data"],
            {"status": "success", "message": "Share created/updated successfully", "stage": "done"},
        )

        self.assertTrue(os.path.isdir(self.docs))
        self.assertEqual(self.ctx.store.read().get_share("docs"), share)
        ents = self.ctx.acl_backend.entries(self.docs)
        self.assertEqual(ents[(True, USER, "alice")], "rwx")
        self.assertEqual(self.run.count("systemctl", "restart", "smbd"), 1)

    def test_create_wrapped_body(self):
        share = {"path": self.docs}
        code, _ = self.api("shares/docs", "POST", {"docs": share})
        self.assertEqual(code, 200)
        self.assertEqual(self.ctx.store.read().get_share("docs"), share)

    def test_create_bad_json(self):
        code, ret = self.api("shares/docs", "POST", b"{nope")
        self.assertEqual(code, 400)
        self.assertEqual(ret["error"], "Invalid JSON format")

        code, ret = self.api("shares/docs", "POST", [1, 2])
        self.assertEqual(code, 400)

        code, ret = self.api("shares/docs", "POST", {"path": self.docs, "x": 5})
        self.assertEqual(code, 400)

    def test_create_unknown_user(self):
        share = {"path": self.docs, "write list": "mallory"}
        code, ret = self.api("shares/docs", "POST", share)
        self.assertEqual(code, 400)
        self.assertEqual(ret["stage"], "validating")
        self.assertEqual(ret["error"], "User 'mallory' from 'write list' does not exist in Samba")
        self.assertFalse(os.path.exists(self.docs))

    def test_create_with_line_break_rejected(self):
        share = {"path": self.docs, "comment": "x\r[evil]\r    path = /"}
        code, ret = self.api("shares/docs", "POST", share)
        self.assertEqual(code, 400)
        self.assertEqual(ret["stage"], "validating")
        self.assertNotIn("evil", self.ctx.store.read().sections)
        self.assertFalse(os.path.exists(self.docs))

        code, ret = self.api("shares/bad%5D", "POST", {"path": self.docs})
        self.assertEqual((code, ret["stage"]), (400, "validating"))

    def test_create_reload_fails(self):
        self.run.replies[("systemctl", "restart")] = (1, "", "nope")
        code, ret = self.api("shares/docs", "POST", {"path": self.docs})
        self.assertEqual(code, 500)
        self.assertEqual(ret["stage"], "reload")
        self.assertIn("docs", self.ctx.store.read().shares())

    def test_quoted_name(self):
        code, ret = self.api("shares/my%20share", "POST", {"path": self.docs})
        self.assertEqual(code, 200)
        self.assertIn("my share", self.ctx.store.read().shares())

        code, ret = self.api("shares/my%20share")
        self.assertEqual(list(ret["data"]), ["my share"])

    def test_delete(self):
        code, ret = self.api("shares/B", "DELETE")
        self.assertEqual(code, 200)
        self.assertEqual(ret["data"]["message"], "Share deleted successfully")
        self.assertNotIn("B", self.ctx.store.read().shares())

        code, ret = self.api("shares/B", "DELETE")
        self.assertEqual(code, 404)

    def test_acl(self):
        share = {"path": self.docs, "valid users": "bob,@eng", "write list": "alice"}
        self.api("shares/docs", "POST", share)

        code, ret = self.api("shares/docs/acl")
        self.assertEqual(code, 200)
        self.assertEqual(ret["data"]["path"], self.docs)
        self.assertIn(
            {"type": "user", "principal": "alice", "permission": "rwx", "isDefault": False},
            ret["data"]["entries"],
        )

    def test_acl_without_path(self):
        code, ret = self.api("shares/nopath/acl")
        self.assertEqual(code, 400)
        self.assertEqual(ret["error"], "Share has no path defined")


class TestConfig(ApiBase):
    def test_get(self):
        code, ret = self.api("config")
        self.assertEqual(code, 200)
        cfg = ret["data"]["config"]
        self.assertEqual(cfg["global"]["workgroup"], "WORKGROUP")
        self.assertIn("printers", cfg)
        self.assertIn("A", cfg)

    def test_post(self):
        body = {"config": {"global": {"workgroup": "CORP"}, "B": {"path": "/srv/b2"}}}
        code, ret = self.api("config", "POST", body)
        self.assertEqual(code, 200)

        doc = self.ctx.store.read()
        self.assertEqual(doc.sections["global"], {"workgroup": "CORP"})
        self.assertEqual(doc.sections["B"], {"path": "/srv/b2"})
        self.assertEqual(doc.sections["A"], {"path": "/srv/a", "read only": "no"})
        self.assertEqual(self.run.count("systemctl", "restart"), 1)

    def test_post_empty(self):
        code, _ = self.api("config", "POST", {"config": {}})
        self.assertEqual(code, 400)
        self.assertEqual(tu.read_file(self.fp).count("["), 5)

    def test_section(self):
        code, ret = self.api("config/sections/global")
        self.assertEqual(ret["data"]["global"]["server string"], "files")

        code, ret = self.api("config/sections/nope")
        self.assertEqual((code, ret["data"]), (200, {"nope": {}}))

        body = {"global": {"workgroup": "X", "server string": "files"}}
        code, ret = self.api("config/sections/global", "POST", body)
        self.assertEqual(code, 200)
        self.assertEqual(self.ctx.store.read().sections["global"]["workgroup"], "X")

        code, ret = self.api("config/sections/global", "POST", {"other": {}})
        self.assertEqual(code, 400)
        self.assertEqual(ret["error"], "Section data not found in request")

    def test_section_value_cannot_add_sections(self):
        for zs in ("\n", "\r", "\x0c", "\u2028"):
            body = {"B": {"path": "/srv/b" + zs + "[evil]" + zs + "    path = /"}}
            code, ret = self.api("config/sections/B", "POST", body)
            self.assertEqual(code, 400, repr(zs))
            self.assertFalse(ret["ok"])

        self.assertEqual(tu.read_file(self.fp), tu.SMB_CONF + "\n[nopath]\n    comment = nothing here\n")
        self.assertEqual(self.run.count("systemctl", "restart"), 0)

    def test_bad_section_name_rejected(self):
        txt = tu.read_file(self.fp)
        for _ in range(3):
            code, _ = self.api("config", "POST", {"config": {"x]": {"path": "/srv/x"}}})
            self.assertEqual(code, 400)

        self.assertEqual(tu.read_file(self.fp), txt)
        self.assertEqual(self.ctx.store.read().sections["B"]["path"], "/srv/b")

    def test_bad_key_rejected(self):
        txt = tu.read_file(self.fp)
        bad = [
            {"config": {"B": {"path = /; x": "y"}}},
            {"config": {"B": {"#path": "/"}}},
            {"config": {"B": {"path": 5}}},
            {"config": {"A": {"path": "/srv/a"}, "B": "not an object"}},
        ]
        for body in bad:
            code, _ = self.api("config", "POST", body)
            self.assertEqual(code, 400, body)

        # one bad section keeps the good ones in the same request off disk too
        self.assertEqual(tu.read_file(self.fp), txt)

    def test_raw(self):
        code, ret = self.api("config/raw")
        self.assertEqual(ret["data"]["content"], tu.read_file(self.fp))

        txt = "[global]\n  workgroup = Z\n[x]\n  path = /x\n"
        code, ret = self.api("config/raw", "POST", {"content": txt})
        self.assertEqual(code, 200)
        self.assertEqual(tu.read_file(self.fp), txt)

        code, ret = self.api("config/raw", "POST", {"content": 5})
        self.assertEqual(code, 400)

    def test_missing_config_file(self):
        os.unlink(self.fp)
        code, ret = self.api("shares")
        self.assertEqual(code, 500)
        self.assertFalse(ret["ok"])


class TestServiceAndStorage(ApiBase):
    def test_status(self):
        code, ret = self.api("status")
        self.assertEqual(code, 200)
        st = ret["data"]
        self.assertEqual(st["service"], "smbd")
        self.assertTrue(st["active"])
        self.assertEqual(st["status"], "running")
        self.assertNotEqual(st["metadata"]["uptime"]["uptime"], "N/A")

    def test_status_stopped(self):
        self.run.replies[("systemctl", "is-active")] = (3, "inactive\n", "")
        code, ret = self.api("status")
        self.assertEqual(code, 200)
        self.assertEqual(ret["data"]["status"], "stopped")
        self.assertEqual(ret["data"]["metadata"]["uptime"]["uptime"], "N/A")

    def test_restart(self):
        code, ret = self.api("restart", "POST")
        self.assertEqual(code, 200)
        self.assertEqual(ret["data"]["shares"], 2)
        self.assertEqual(self.run.count("systemctl", "restart", "smbd"), 1)

    def test_filesystems(self):
        code, ret = self.api("storage-filesystems")
        self.assertEqual(code, 200)
        self.assertEqual(len(ret["data"]["disks"]), 5)
        self.assertIn("computedAt", ret["data"])

        self.api("storage-filesystems")
        self.assertEqual(self.run.count("df"), 1)

    def test_share_usage(self):
        code, ret = self.api("storage-shares")
        self.assertEqual(code, 200)
        names = sorted(x["name"] for x in ret["data"]["shares"])
        self.assertEqual(names, ["A", "B"])

    def test_unexpected_error(self):
        def boom(argv):
            raise RuntimeError("kaboom")

        self.run.replies[("df", "-h")] = boom
        code, ret = self.api("storage-filesystems")
        self.assertEqual(code, 500)
        self.assertEqual(ret["error"], "kaboom")
        self.assertEqual(self.log.msgs[-1][2], 1)


class TestRouting(ApiBase):
    def test_unknown(self):
        code, ret = self.api("nonexistent")
        self.assertEqual(code, 404)
        self.assertEqual(ret["code"], 404)

    def test_wrong_method(self):
        code, ret = self.api("shares", "DELETE")
        self.assertEqual(code, 405)
        code, ret = self.api("status", "POST")
        self.assertEqual(code, 405)

    def test_routes_resolve(self):
        for _, _, mod, fun in API_ROUTES:
            m = __import__(mod, fromlist=[mod.split(".")[-1]])
            self.assertTrue(callable(getattr(m, fun, None)), fun)


class TestAuth(unittest.TestCase):
    def test_parse(self):
        self.assertEqual(parse_basic_auth(basic("admin", "a:b")), ("admin", "a:b"))
        self.assertIsNone(parse_basic_auth(None))
        self.assertIsNone(parse_basic_auth("Bearer xyz"))
        self.assertIsNone(parse_basic_auth("Basic !!!"))
        zs = base64.b64encode(b"nocolon").decode("ascii")
        self.assertIsNone(parse_basic_auth("Basic " + zs))

    def test_check(self):
        args = tu.Cfg()
        self.assertTrue(check_auth(args, basic("admin", "hunter2")))
        self.assertFalse(check_auth(args, basic("admin", "hunter3")))
        self.assertFalse(check_auth(args, basic("root", "hunter2")))
        self.assertFalse(check_auth(args, None))
        self.assertTrue(check_auth(tu.Cfg(no_auth=True), None))


class TestServer(ApiBase):
    def setUp(self):
        super(TestServer, self).setUp()
        self.srv = make_server(self.ctx, "127.0.0.1", 0)
        self.port = self.srv.server_address[1]
        self.thr = threading.Thread(target=self.srv.serve_forever)
        self.thr.daemon = True
        self.thr.start()

    def tearDown(self):
        self.srv.shutdown()
        self.srv.server_close()
        super(TestServer, self).tearDown()

    def req(self, path, method="GET", auth=None, body=None):
        url = "http://127.0.0.1:%d%s" % (self.port, path)
        r = urllib.request.Request(url, data=body, method=method)
        if auth:
            r.add_header("Authorization", auth)
        try:
            with urllib.request.urlopen(r, timeout=5) as f:
                return f.status, dict(f.headers), json.loads(f.read())
        except urllib.error.HTTPError as ex:
            with ex:
                return ex.code, dict(ex.headers), json.loads(ex.read())

    def test_needs_auth(self):
        code, hdrs, ret = self.req("/api/shares")
        self.assertEqual(code, 401)
        self.assertIn("Basic", hdrs["WWW-Authenticate"])
        self.assertFalse(ret["ok"])

    def test_authed(self):
        code, hdrs, ret = self.req("/api/shares", auth=basic("admin", "hunter2"))
        self.assertEqual(code, 200)
        self.assertEqual(hdrs["Access-Control-Allow-Origin"], "*")
        self.assertIn("A", ret["data"])

    def test_post_body(self):
        body = json.dumps({"path": self.docs}).encode("utf-8")
        auth = basic("admin", "hunter2")
        code, _, ret = self.req("/api/shares/docs", "POST", auth, body)
        self.assertEqual(code, 200)
        self.assertEqual(ret["data"]["stage"], "done")

    def test_outside_api(self):
        code, _, ret = self.req("/index.html", auth=basic("admin", "hunter2"))
        self.assertEqual(code, 404)


if __name__ == "__main__":
    unittest.main()
