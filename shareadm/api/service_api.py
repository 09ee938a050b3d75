# coding: utf-8
"""Service status and restart endpoints."""
from __future__ import print_function, unicode_literals

from .base import success


def get_status(cli):
    """GET /api/status"""
    return cli.ctx.service.status()


def post_restart(cli):
    """POST /api/restart - reapply share acls, then restart the service."""
    n = cli.ctx.provisioner.restart()
    return success("Service restarted successfully", shares=n)
