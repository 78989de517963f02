"""Workstation provisioner — declarative, idempotent machine setup."""

__version__ = "0.1.0"
