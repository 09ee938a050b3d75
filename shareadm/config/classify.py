"""Pure classification helpers shared by the config store and the ACL code.

Both sides must agree on which sections are shares and on which list
entries name a group, so the rules live here and nowhere else.
"""

from typing import Any, List, Optional, Tuple

from ..util import ValidationFailure

RESERVED_SECTIONS = ("global", "printers", "print$")

# "@grp" and "+grp" are unix groups; "&grp" is a netgroup-style reference
GROUP_PREFIXES = ("@", "+")
OPAQUE_PREFIXES = ("@", "+", "&")

USER = "user"
GROUP = "group"


def is_reserved_section(name: Optional[str]) -> bool:
    return name in RESERVED_SECTIONS


def split_principals(csv: Optional[str]) -> List[str]:
    """'bob, @eng,,' => ['bob', '@eng']"""
    if not csv:
        return []

    ret = [x.strip() for x in csv.split(",")]
    return [x for x in ret if x]


def classify_principal(entry: str) -> Tuple[str, str]:
    """Return (kind, name) with the group prefix stripped.

    '@finance' => ('group', 'finance'), 'alice' => ('user', 'alice')
    """
    entry = entry.strip()
    if entry[:1] in GROUP_PREFIXES:
        return GROUP, entry[1:]

    return USER, entry


def is_opaque_principal(entry: str) -> bool:
    """entries which are never checked against the local account list"""
    return entry.strip()[:1] in OPAQUE_PREFIXES


def has_linebreak(zs: str) -> bool:
    """anything str.splitlines would cut at; \\r, \\x0b, \\x85, \\u2028 and friends"""
    return len((zs + "x").splitlines()) > 1


def check_section(name: Any, params: Any) -> None:
    """Reject a section which would not survive a write and read-back intact.

    The config is line-based, so a line break anywhere lets a value
    smuggle in a header of its own, and a bracket in the name gives a
    header which never parses back.
    """
    if not isinstance(name, str) or not name.strip():
        raise ValidationFailure("invalid section name %r" % (name,))

    if "[" in name or "]" in name or has_linebreak(name):
        raise ValidationFailure("invalid section name %r" % (name,))

    if not isinstance(params, dict):
        raise ValidationFailure("section %r must be an object of strings" % (name,))

    for k, v in params.items():
        if not isinstance(k, str) or not isinstance(v, str):
            t = "section %r parameter %r must be a string"
            raise ValidationFailure(t % (name, k))

        sk = k.strip()
        if not sk or "=" in k or has_linebreak(k) or sk[:1] in ("#", ";", "["):
            raise ValidationFailure("invalid parameter name %r in %r" % (k, name))

        if has_linebreak(v):
            raise ValidationFailure("parameter %r in %r has a line break" % (k, name))
