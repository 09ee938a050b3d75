# coding: utf-8
from __future__ import print_function, unicode_literals

import os
import sys

try:
    VT100 = sys.stderr.isatty() and not os.environ.get("NO_COLOR")
except AttributeError:
    VT100 = False

__all__ = ["VT100"]
