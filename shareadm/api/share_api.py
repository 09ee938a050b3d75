# coding: utf-8
"""Share CRUD and ACL inspection endpoints."""
from __future__ import print_function, unicode_literals

from ..util import ValidationFailure
from .base import get_json_object, success


def list_shares(cli):
    """GET /api/shares - every share in the config, reserved sections excluded."""
    return cli.ctx.store.read().shares()


def get_share(cli, name):
    """GET /api/shares/<name>"""
    share = cli.ctx.store.read().get_share(name)
    return {name: share}


def put_share(cli, name):
    """POST /api/shares/<name> - create or update a share.

    The body is the share definition itself; {"path": ..., "valid users": ...}.
    A body wrapped as {name: {...}} is accepted too.
    """
    body = get_json_object(cli)
    if list(body) == [name] and isinstance(body[name], dict):
        body = body[name]

    stage = cli.ctx.provisioner.provision(name, body)
    return success("Share created/updated successfully", stage=stage)


def delete_share(cli, name):
    """DELETE /api/shares/<name>"""
    stage = cli.ctx.provisioner.delete(name)
    return success("Share deleted successfully", stage=stage)


def get_share_acl(cli, name):
    """GET /api/shares/<name>/acl - owner, group and named acl entries."""
    share = cli.ctx.store.read().get_share(name)
    path = share.get("path")
    if not path:
        raise ValidationFailure("Share has no path defined")

    return cli.ctx.translator.read_acls(path)
