# coding: utf-8
"""Business logic services for shareadm.

This package contains the share provisioning pipeline and the wrapper
around the smbd service, shared by the HTTP API and the command line.
"""
from __future__ import print_function, unicode_literals
