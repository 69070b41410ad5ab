"""Scanning of an analysed artifact for OS package, library and configuration issues."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Protocol

from vulnscope.artifact_types import (
    Application,
    ArtifactDetail,
    Layer,
    LibraryInfo,
    Misconfiguration,
    MisconfResult,
    OS,
    Package,
)
from vulnscope.types import (
    SECURITY_CHECK_CONFIG,
    SECURITY_CHECK_VULNERABILITY,
    SEVERITY_NAMES,
    VULN_TYPE_LIBRARY,
    VULN_TYPE_OS,
    DetectedMisconfiguration,
    DetectedVulnerability,
    MisconfStatus,
    Result,
    ResultClass,
    ScanOptions,
    Severity,
)

logger = logging.getLogger(__name__)

_APPSHIELD_PREFIX = "appshield."
_APPSHIELD_URL = "https://avd.aquasec.com/appshield/"
_TFSEC_DOCS_URL = "https://tfsec.dev/docs/"


class UnknownOSError(Exception):
    """Raised by an applier when no OS was detected; carries the partial detail."""

    def __init__(self, detail: ArtifactDetail | None = None) -> None:
        super().__init__("unknown OS")
        self.detail = detail if detail is not None else ArtifactDetail()


class NoPackagesDetectedError(Exception):
    """Raised by an applier when no OS packages were found; carries the partial detail."""

    def __init__(self, detail: ArtifactDetail | None = None) -> None:
        super().__init__("no packages detected")
        self.detail = detail if detail is not None else ArtifactDetail()


class UnsupportedOSError(Exception):
    """Raised by an OS package detector for an OS it cannot handle."""

    def __init__(self, message: str = "unsupported os") -> None:
        super().__init__(message)


class LocalScanError(Exception):
    """A local scan failed."""


class Applier(Protocol):
    """Merges the layers of an artifact into a single view."""

    def apply_layers(self, artifact_id: str, blob_ids: Sequence[str]) -> ArtifactDetail:
        """Return the merged detail; may raise UnknownOSError or NoPackagesDetectedError."""


class OspkgDetector(Protocol):
    """Finds vulnerabilities in installed OS packages."""

    def detect(
        self,
        image_name: str,
        os_family: str,
        os_name: str,
        created: datetime | None,
        pkgs: Sequence[Package],
    ) -> tuple[list[DetectedVulnerability], bool]:
        """Return the vulnerabilities and whether the OS is end of life."""


class LibraryDetector(Protocol):
    """Finds vulnerabilities in language-specific dependencies."""

    def detect(
        self, lib_type: str, libraries: Sequence[LibraryInfo]
    ) -> list[DetectedVulnerability]:
        """Return the vulnerabilities of the given libraries."""


class LocalScanner:
    """Scans artifact layers against the local vulnerability sources."""

    def __init__(
        self,
        applier: Applier,
        ospkg_detector: OspkgDetector,
        library_detector: LibraryDetector,
    ) -> None:
        self._applier = applier
        self._ospkg_detector = ospkg_detector
        self._library_detector = library_detector

    def scan(
        self,
        target: str,
        artifact_key: str,
        blob_keys: Sequence[str],
        options: ScanOptions,
    ) -> tuple[list[Result], OS | None]:
        """Scan the artifact and return its results and the detected OS."""
        try:
            detail = self._applier.apply_layers(artifact_key, blob_keys)
        except UnknownOSError as err:
            logger.debug(
                "OS is not detected and vulnerabilities in OS packages are not detected."
            )
            detail = err.detail
        except NoPackagesDetectedError as err:
            logger.warning(
                "No OS package is detected. Make sure you haven't deleted any files "
                "that contain information about the installed packages."
            )
            logger.warning('e.g. files under "/lib/apk/db/", "/var/lib/dpkg/" and "/var/lib/rpm"')
            detail = err.detail
        except Exception as err:
            raise LocalScanError(f"failed to apply layers: {err}") from err

        results: list[Result] = []

        if SECURITY_CHECK_VULNERABILITY in options.security_checks:
            try:
                vuln_results, eosl = self._check_vulnerabilities(target, detail, options)
            except LocalScanError as err:
                raise LocalScanError(f"failed to detect vulnerabilities: {err}") from err
            if detail.os is not None:
                detail.os.eosl = eosl
            results.extend(vuln_results)

        if SECURITY_CHECK_CONFIG in options.security_checks:
            results.extend(_misconfs_to_results(detail.misconfigurations, options))

        return results, detail.os

    def _check_vulnerabilities(
        self, target: str, detail: ArtifactDetail, options: ScanOptions
    ) -> tuple[list[Result], bool]:
        eosl = False
        results: list[Result] = []

        if VULN_TYPE_OS in options.vuln_type:
            try:
                result, eosl = self._scan_os_pkgs(target, detail, options)
            except LocalScanError as err:
                raise LocalScanError(f"unable to scan OS packages: {err}") from err
            if result is not None:
                results.append(result)

        if VULN_TYPE_LIBRARY in options.vuln_type:
            try:
                results.extend(self._scan_library(detail.applications, options))
            except LocalScanError as err:
                raise LocalScanError(f"failed to scan application libraries: {err}") from err

        return results, eosl

    def _scan_os_pkgs(
        self, target: str, detail: ArtifactDetail, options: ScanOptions
    ) -> tuple[Result | None, bool]:
        if detail.os is None:
            logger.debug("Detected OS: unknown")
            return None, False
        logger.info("Detected OS: %s", detail.os.family)

        pkgs = list(detail.packages)
        if options.scan_removed_packages:
            pkgs = merge_packages(pkgs, detail.history_packages)

        try:
            result, eosl = self._detect_vulns_in_os_pkgs(
                target, detail.os.family, detail.os.name, pkgs
            )
        except LocalScanError as err:
            raise LocalScanError(f"failed to scan OS packages: {err}") from err
        if result is None:
            return None, eosl

        if options.list_all_packages:
            result.packages = sorted(pkgs, key=lambda p: p.name)

        return result, eosl

    def _detect_vulns_in_os_pkgs(
        self, target: str, os_family: str, os_name: str, pkgs: list[Package]
    ) -> tuple[Result | None, bool]:
        if not os_family:
            return None, False
        try:
            vulns, eosl = self._ospkg_detector.detect("", os_family, os_name, None, pkgs)
        except UnsupportedOSError:
            return None, False
        except Exception as err:
            raise LocalScanError(
                f"failed vulnerability detection of OS packages: {err}"
            ) from err

        result = Result(
            target=f"{target} ({os_family} {os_name})",
            vulnerabilities=list(vulns),
            result_class=ResultClass.OS_PKG,
            type=os_family,
        )
        return result, eosl

    def _scan_library(
        self, apps: Sequence[Application], options: ScanOptions
    ) -> list[Result]:
        logger.info("Number of language-specific files: %d", len(apps))
        results: list[Result] = []
        printed_types: set[str] = set()
        for app in apps:
            if not app.libraries:
                continue
            if is_skipped(app.file_path, options.skip_files, options.skip_dirs):
                continue

            if app.type not in printed_types:
                logger.info("Detecting %s vulnerabilities...", app.type)
                printed_types.add(app.type)

            logger.debug(
                "Detecting library vulnerabilities, type: %s, path: %s",
                app.type,
                app.file_path,
            )
            try:
                vulns = self._library_detector.detect(app.type, app.libraries)
            except Exception as err:
                raise LocalScanError(
                    f"failed vulnerability detection of libraries: {err}"
                ) from err

            lib_result = Result(
                target=app.file_path,
                vulnerabilities=list(vulns),
                result_class=ResultClass.LANG_PKG,
                type=app.type,
            )
            if options.list_all_packages:
                lib_result.packages = sorted(
                    (
                        Package(name=lib.name, version=lib.version, layer=lib.layer)
                        for lib in app.libraries
                    ),
                    key=lambda p: p.name,
                )
            results.append(lib_result)

        results.sort(key=lambda r: r.target)
        return results


def _misconfs_to_results(
    misconfs: Sequence[Misconfiguration], options: ScanOptions
) -> list[Result]:
    logger.info("Detected config files: %d", len(misconfs))
    results: list[Result] = []
    for misconf in misconfs:
        if is_skipped(misconf.file_path, options.skip_files, options.skip_dirs):
            continue
        logger.debug("Scanned config file: %s", misconf.file_path)

        groups = (
            (misconf.failures, Severity.CRITICAL, MisconfStatus.FAILURE),
            (misconf.warnings, Severity.MEDIUM, MisconfStatus.FAILURE),
            (misconf.successes, Severity.UNKNOWN, MisconfStatus.PASSED),
            (misconf.exceptions, Severity.UNKNOWN, MisconfStatus.EXCEPTION),
        )
        detected = [
            _to_detected_misconfiguration(res, default, status, misconf.layer)
            for items, default, status in groups
            for res in items
        ]
        results.append(
            Result(
                target=misconf.file_path,
                result_class=ResultClass.CONFIG,
                type=misconf.file_type,
                misconfigurations=detected,
            )
        )

    results.sort(key=lambda r: r.target)
    return results


def _to_detected_misconfiguration(
    res: MisconfResult,
    default_severity: Severity,
    status: MisconfStatus,
    layer: Layer,
) -> DetectedMisconfiguration:
    meta = res.policy_metadata
    try:
        severity = Severity.parse(meta.severity)
    except ValueError:
        logger.warning("severity must be %s, but %s", list(SEVERITY_NAMES), meta.severity)
        severity = default_severity

    msg = res.message.strip() or "No issues found"

    references = list(meta.references)
    primary_url = ""
    if res.namespace.startswith(_APPSHIELD_PREFIX):
        primary_url = _APPSHIELD_URL + meta.id.lower()
        references.append(primary_url)
    elif "tfsec" in meta.type:
        primary_url = next(
            (ref for ref in references if ref.startswith(_TFSEC_DOCS_URL)), ""
        )

    return DetectedMisconfiguration(
        id=meta.id,
        type=meta.type,
        title=meta.title,
        description=meta.description,
        message=msg,
        resolution=meta.recommended_actions,
        namespace=res.namespace,
        query=res.query,
        severity=str(severity),
        primary_url=primary_url,
        references=references,
        status=status,
        layer=layer,
        traces=list(res.traces),
    )


def _clean(path: str) -> str:
    return os.path.normpath(path).lstrip(os.sep)


def is_skipped(
    file_path: str, skip_files: Iterable[str], skip_dirs: Iterable[str]
) -> bool:
    """Tell whether file_path is one of skip_files or lies under one of skip_dirs."""
    file_path = _clean(file_path)
    if any(file_path == _clean(skip_file) for skip_file in skip_files):
        return True

    for skip_dir in skip_dirs:
        try:
            rel = os.path.relpath(file_path, _clean(skip_dir))
        except ValueError as err:
            logger.warning("Unexpected error while skipping directories: %s", err)
            return False
        if not rel.startswith(".."):
            return True
    return False


def merge_packages(
    pkgs: Sequence[Package], pkgs_from_commands: Iterable[Package]
) -> list[Package]:
    """Append packages from commands whose names are not already in pkgs."""
    merged = list(pkgs)
    names = {pkg.name for pkg in pkgs}
    merged.extend(pkg for pkg in pkgs_from_commands if pkg.name not in names)
    return merged