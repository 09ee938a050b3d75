# coding: utf-8

VERSION = (1, 0, 0)
CODENAME = "acl"
BUILD_DT = (2026, 10, 19)

S_VERSION = ".".join(map(str, VERSION))
S_BUILD_DT = "{0:04d}-{1:02d}-{2:02d}".format(*BUILD_DT)
