# coding: utf-8
"""Disk usage endpoints; both answer from the usage cache."""
from __future__ import print_function, unicode_literals


def get_filesystems(cli):
    """GET /api/storage-filesystems"""
    ce = cli.ctx.usage.filesystems()
    return {"disks": ce.value, "computedAt": ce.computed_at}


def get_shares(cli):
    """GET /api/storage-shares - share directory size against its filesystem."""
    ce = cli.ctx.usage.shares()
    return {"shares": ce.value, "computedAt": ce.computed_at}
