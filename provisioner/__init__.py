"""Workstation Provisioner — declarative, idempotent workstation bootstrap."""

__version__ = "0.1.0"
