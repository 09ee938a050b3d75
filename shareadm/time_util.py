"""Size and duration helpers for shareadm.

df and du print sizes like "4.2G"; these are binary multiples.
"""

import re
import time
from typing import Optional


HUMANSIZE_UNITS = ("B", "KiB", "MiB", "GiB", "TiB", "PiB", "EiB")

UNHUMANIZE_UNITS = {
    "b": 1,
    "k": 1024,
    "m": 1024 * 1024,
    "g": 1024 * 1024 * 1024,
    "t": 1024 * 1024 * 1024 * 1024,
    "p": 1024 * 1024 * 1024 * 1024 * 1024,
}

RE_HUMANSIZE = re.compile(r"^([0-9]*\.?[0-9]+)\s*([a-zA-Z]?)(?:i?[bB])?$")


def humansize(sz: float, terse: bool = False) -> str:
    unit = ""
    for unit in HUMANSIZE_UNITS:
        if sz < 1024:
            break

        sz /= 1024.0

    if terse:
        return "%s%s" % (str(sz)[:4].rstrip("."), unit[:1])
    else:
        return "%s %s" % (str(sz)[:4].rstrip("."), unit)


def unhumanize(sz: Optional[str]) -> int:
    """"4.2G" => 4509715661; junk and blanks are zero"""
    if not sz:
        return 0

    m = RE_HUMANSIZE.match(sz.strip())
    if not m:
        return 0

    num, unit = m.groups()
    if unit and unit.lower() not in UNHUMANIZE_UNITS:
        return 0

    mul = UNHUMANIZE_UNITS.get(unit.lower(), 1) if unit else 1
    return int(round(float(num) * mul))


def s2dhm(s: float) -> str:
    s = int(s)
    d, s = divmod(s, 86400)
    h, s = divmod(s, 3600)
    m = s // 60
    if d:
        return "%dd %dh %dm" % (d, h, m)
    if h:
        return "%dh %dm" % (h, m)
    return "%dm" % (m,)


def uptime_since(t0: float, now: Optional[float] = None) -> str:
    if now is None:
        now = time.time()

    return s2dhm(max(0, now - t0))
