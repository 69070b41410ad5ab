"""Formatting of package versions with epoch and release."""

from __future__ import annotations

from vulnscope.artifact_types import Package


def _format(epoch: int, version: str, release: str) -> str:
    v = f"{version}-{release}" if release else version
    return f"{epoch}:{v}" if epoch else v


def format_version(pkg: Package) -> str:
    """Return the binary package version as [epoch:]version[-release]."""
    return _format(pkg.epoch, pkg.version, pkg.release)


def format_src_version(pkg: Package) -> str:
    """Return the source package version as [epoch:]version[-release]."""
    return _format(pkg.src_epoch, pkg.src_version, pkg.src_release)