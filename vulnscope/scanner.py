"""Scanning of an artifact: inspect it, run a driver over its blobs and build a report."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from vulnscope.artifact_types import OS, ArtifactReference
from vulnscope.types import SCHEMA_VERSION, Metadata, Report, Result, ScanOptions

logger = logging.getLogger(__name__)


class ScanError(Exception):
    """Scanning an artifact failed."""


class Driver(Protocol):
    """Scans the blobs of an artifact, locally or through a server."""

    def scan(
        self,
        target: str,
        artifact_key: str,
        blob_keys: Sequence[str],
        options: ScanOptions,
    ) -> tuple[list[Result], OS | None]:
        """Return the scan results and the detected OS."""


class Artifact(Protocol):
    """Something that can be inspected for scanning: an image, a directory, a repository."""

    def inspect(self) -> ArtifactReference:
        """Analyse the artifact and return its reference."""


class Scanner:
    """Combines an artifact with a driver to produce a report."""

    def __init__(self, driver: Driver, artifact: Artifact) -> None:
        self._driver = driver
        self._artifact = artifact

    def scan_artifact(self, options: ScanOptions) -> Report:
        """Inspect the artifact, scan it and return the report."""
        try:
            reference = self._artifact.inspect()
        except Exception as err:
            raise ScanError(f"failed analysis: {err}") from err

        try:
            results, os_found = self._driver.scan(
                reference.name, reference.id, reference.blob_ids, options
            )
        except Exception as err:
            raise ScanError(f"scan failed: {err}") from err

        if os_found is not None and os_found.eosl:
            logger.warning(
                "This OS version is no longer supported by the distribution: %s %s",
                os_found.family,
                os_found.name,
            )
            logger.warning(
                "The vulnerability detection may be insufficient because "
                "security updates are not provided"
            )

        return Report(
            schema_version=SCHEMA_VERSION,
            artifact_name=reference.name,
            artifact_type=reference.type,
            metadata=Metadata(
                os=os_found,
                repo_tags=list(reference.repo_tags),
                repo_digests=list(reference.repo_digests),
            ),
            results=list(results),
        )