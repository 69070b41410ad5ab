"""Vulnerability and misconfiguration scanning core: result types, local and remote scanners, and message conversion."""

__version__ = "0.1.0"