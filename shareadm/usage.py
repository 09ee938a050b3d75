# coding: utf-8
"""Disk usage views with a short-lived cache.

Both views shell out (df, du) which is slow enough that every request
doing it would hurt, so each view is kept for a TTL and recomputed by
whoever first finds it stale.
"""
from __future__ import print_function, unicode_literals

import time
from typing import TYPE_CHECKING, Any, Callable, Dict, Generic, List, Optional, TypeVar

from .time_util import unhumanize
from .util import ExternalToolFailure, RWLock, noop

if TYPE_CHECKING:
    from .config.store import ConfigStore
    from .util import NamedLogger

T = TypeVar("T")

CACHE_TTL = 60.0

VIRTUAL_FS = ("none", "udev", "tmpfs", "overlay")


class CacheEntry(Generic[T]):
    def __init__(self, value: T, computed_at: float) -> None:
        self.value = value
        self.computed_at = computed_at

    def __repr__(self) -> str:
        return "CacheEntry(%r, %.3f)" % (self.value, self.computed_at)


class TtlCache(Generic[T]):
    """One cached value; concurrent stale readers recompute it just once."""

    def __init__(
        self,
        compute: Callable[[], T],
        ttl: float = CACHE_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.compute = compute
        self.ttl = ttl
        self.clock = clock
        self.entry: Optional[CacheEntry[T]] = None
        self.lock = RWLock()

    def _fresh(self) -> Optional[CacheEntry[T]]:
        ce = self.entry
        if ce is not None and self.clock() - ce.computed_at < self.ttl:
            return ce
        return None

    def get(self) -> CacheEntry[T]:
        with self.lock.r():
            ce = self._fresh()
            if ce:
                return ce

        with self.lock.w():
            # someone else may have refreshed it while we waited
            ce = self._fresh()
            if ce:
                return ce

            ce = self.entry = CacheEntry(self.compute(), self.clock())
            return ce


def display_name(mount: str) -> str:
    """/mnt/storage/pool/a/very/deep/mountpoint => /mnt/…/mountpoint"""
    if len(mount) <= 20:
        return mount

    parts = mount.split("/")
    if len(parts) <= 3:
        return mount

    return "/" + parts[1] + "/…/" + parts[-1]


def parse_df(txt: str) -> List[Dict[str, Any]]:
    """rows of `df -h`, minus the header"""
    ret = []
    for ln in txt.split("\n")[1:]:
        zs = ln.split()
        if len(zs) < 6:
            continue

        fs, size, used, avail, pct = zs[:5]
        mount = " ".join(zs[5:])
        try:
            upct = float(pct.rstrip("%"))
        except ValueError:
            upct = 0.0

        ret.append(
            {
                "filesystem": fs,
                "size": size,
                "used": used,
                "available": avail,
                "usePercent": upct,
                "mountedOn": mount,
                "displayName": display_name(mount),
                "isVirtualFS": fs in VIRTUAL_FS,
            }
        )

    return ret


def is_under(path: str, mount: str) -> bool:
    if mount == "/":
        return path.startswith("/")

    mount = mount.rstrip("/")
    return path == mount or path.startswith(mount + "/")


def best_mount(path: str, mounts: List[str]) -> Optional[str]:
    """longest mountpoint which path lives under"""
    ret = None
    for mp in mounts:
        if is_under(path, mp) and (ret is None or len(mp) > len(ret)):
            ret = mp

    return ret


class UsageCache(object):
    """The filesystem view and the per-share view, each with its own TTL entry."""

    def __init__(
        self,
        store: "ConfigStore",
        run: Callable[..., Any],
        log: "NamedLogger" = noop,
        ttl: float = CACHE_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.run = run
        self.log = log
        self.fs_cache: TtlCache[List[Dict[str, Any]]] = TtlCache(
            self._scan_filesystems, ttl, clock
        )
        self.share_cache: TtlCache[List[Dict[str, Any]]] = TtlCache(
            self._scan_shares, ttl, clock
        )

    def filesystems(self) -> CacheEntry[List[Dict[str, Any]]]:
        return self.fs_cache.get()

    def shares(self) -> CacheEntry[List[Dict[str, Any]]]:
        return self.share_cache.get()

    def _scan_filesystems(self) -> List[Dict[str, Any]]:
        argv = ["df", "-h"]
        rc, sout, serr = self.run(argv)
        if rc:
            raise ExternalToolFailure("failed to list filesystems: " + serr, argv, rc, serr)

        ret = parse_df(sout)
        self.log("scanned %d filesystems" % (len(ret),), 6)
        return ret

    def _du(self, path: str) -> Optional[str]:
        rc, sout, _ = self.run(["du", "-sh", path])
        if rc:
            return None

        zs = sout.split()
        if len(zs) < 2:
            return None

        return zs[0]

    def _scan_shares(self) -> List[Dict[str, Any]]:
        disks = self.filesystems().value
        shares = self.store.read().shares()
        mounts = {x["mountedOn"]: x for x in disks}

        ret = []
        for name, share in shares.items():
            path = share.get("path")
            if not path:
                continue

            mp = best_mount(path, list(mounts))
            if mp is None:
                self.log("share %r: no filesystem holds %r" % (name, path), 6)
                continue

            used = self._du(path)
            if used is None:
                self.log("share %r: could not measure %r; skipping" % (name, path), 3)
                continue

            disk = mounts[mp]
            total = unhumanize(disk["size"])
            upct = unhumanize(used) / total * 100 if total else 0.0
            ret.append(
                {
                    "name": name,
                    "path": path,
                    "size": disk["size"],
                    "used": used,
                    "available": disk["available"],
                    "usePercent": upct,
                }
            )

        return ret
