# coding: utf-8
"""Whole-config, per-section and raw config endpoints."""
from __future__ import print_function, unicode_literals

from ..util import ValidationFailure
from .base import as_section, get_json_object, success


def get_config(cli):
    """GET /api/config - all sections, [global] included."""
    return {"config": cli.ctx.store.read().sections}


def put_config(cli):
    """POST /api/config - replace the sections given in {"config": {...}}"""
    body = get_json_object(cli).get("config")
    if not isinstance(body, dict) or not body:
        raise ValidationFailure("no sections in request")

    sections = {k: as_section(v, k) for k, v in body.items()}
    store = cli.ctx.store
    doc = store.read()
    for k, v in sections.items():
        doc.set_section(k, v)

    store.write(doc, set(sections))
    cli.ctx.provisioner.restart()
    return success("Configuration updated successfully")


def get_section(cli, name):
    """GET /api/config/sections/<name> - empty if the section does not exist."""
    return {name: cli.ctx.store.read().sections.get(name, {})}


def put_section(cli, name):
    """POST /api/config/sections/<name> with {name: {...}}"""
    body = get_json_object(cli)
    if name not in body:
        raise ValidationFailure("Section data not found in request")

    section = as_section(body[name], name)
    store = cli.ctx.store
    doc = store.read()
    doc.set_section(name, section)
    store.write(doc, {name})
    cli.ctx.provisioner.restart()
    return success("Section '%s' updated successfully" % (name,))


def get_raw(cli):
    """GET /api/config/raw"""
    return {"content": cli.ctx.store.read_raw()}


def put_raw(cli):
    """POST /api/config/raw with {"content": "..."}; written as-is."""
    content = get_json_object(cli).get("content")
    if not isinstance(content, str):
        raise ValidationFailure("content must be a string")

    cli.ctx.store.write_raw(content)
    cli.ctx.provisioner.restart()
    return success("Configuration saved and service restarted successfully")
