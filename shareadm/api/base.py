# coding: utf-8
"""Base helpers for API handlers."""
from __future__ import print_function, unicode_literals

import json

from ..config.classify import check_section
from ..util import ValidationFailure


def get_json_body(cli):
    """Parse JSON body from request.

    Returns the parsed value, or raises ValidationFailure (400) if invalid.
    """
    if not cli.body:
        return {}

    try:
        return json.loads(cli.body.decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        raise ValidationFailure("Invalid JSON format")


def get_json_object(cli):
    ret = get_json_body(cli)
    if not isinstance(ret, dict):
        raise ValidationFailure("Invalid JSON format; expected an object")

    return ret


def as_section(params, name):
    """params as section [name], if the pair is safe to write"""
    check_section(name, params)
    return params


def success(msg, **extra):
    ret = {"status": "success", "message": msg}
    ret.update(extra)
    return ret
