"""Scan result types: severities, detected issues, options and reports."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum

from vulnscope.artifact_types import OS, Layer, Package

SEVERITY_NAMES = ("UNKNOWN", "LOW", "MEDIUM", "HIGH", "CRITICAL")

VULN_TYPE_UNKNOWN = "unknown"
VULN_TYPE_OS = "os"
VULN_TYPE_LIBRARY = "library"

SECURITY_CHECK_UNKNOWN = "unknown"
SECURITY_CHECK_VULNERABILITY = "vuln"
SECURITY_CHECK_CONFIG = "config"

_VULN_TYPES = (VULN_TYPE_OS, VULN_TYPE_LIBRARY)
_SECURITY_CHECKS = (SECURITY_CHECK_VULNERABILITY, SECURITY_CHECK_CONFIG)

SCHEMA_VERSION = 2


class Severity(IntEnum):
    """Vulnerability severity, ordered from least to most severe."""

    UNKNOWN = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    def __str__(self) -> str:
        return self.name

    @classmethod
    def parse(cls, name: str) -> Severity:
        """Return the severity with the given upper-case name."""
        try:
            return cls[name] if name in SEVERITY_NAMES else cls._missing_name(name)
        except KeyError:
            return cls._missing_name(name)

    @classmethod
    def _missing_name(cls, name: str) -> Severity:
        raise ValueError(f"unknown severity: {name}")


def _severity_rank(name: str) -> int:
    try:
        return int(Severity.parse(name))
    except ValueError:
        return int(Severity.UNKNOWN)


def compare_severity_string(sev1: str, sev2: str) -> int:
    """Positive when sev2 is more severe than sev1; unknown names rank lowest."""
    return _severity_rank(sev2) - _severity_rank(sev1)


@dataclass
class CVSS:
    """CVSS vectors and scores from one vendor."""

    v2_vector: str = ""
    v3_vector: str = ""
    v2_score: float = 0.0
    v3_score: float = 0.0


class MisconfStatus(str, Enum):
    """Status of a detected misconfiguration."""

    PASSED = "PASS"
    FAILURE = "FAIL"
    EXCEPTION = "EXCEPTION"

    def __str__(self) -> str:
        return self.value


@dataclass
class DetectedVulnerability:
    """A vulnerability found in a package, with its advisory details."""

    vulnerability_id: str = ""
    pkg_name: str = ""
    installed_version: str = ""
    fixed_version: str = ""
    layer: Layer = field(default_factory=Layer)
    severity_source: str = ""
    primary_url: str = ""
    title: str = ""
    description: str = ""
    severity: str = ""
    cwe_ids: list[str] = field(default_factory=list)
    vendor_severity: dict[str, Severity] = field(default_factory=dict)
    cvss: dict[str, CVSS] = field(default_factory=dict)
    references: list[str] = field(default_factory=list)
    published_date: datetime | None = None
    last_modified_date: datetime | None = None


@dataclass
class DetectedMisconfiguration:
    """A policy outcome reported for a configuration file."""

    type: str = ""
    id: str = ""
    title: str = ""
    description: str = ""
    message: str = ""
    namespace: str = ""
    query: str = ""
    resolution: str = ""
    severity: str = ""
    primary_url: str = ""
    references: list[str] = field(default_factory=list)
    status: MisconfStatus | str = ""
    layer: Layer = field(default_factory=Layer)
    traces: list[str] = field(default_factory=list)


@dataclass
class ScanOptions:
    """What to scan and which paths to leave out."""

    vuln_type: list[str] = field(default_factory=list)
    security_checks: list[str] = field(default_factory=list)
    scan_removed_packages: bool = False
    list_all_packages: bool = False
    skip_files: list[str] = field(default_factory=list)
    skip_dirs: list[str] = field(default_factory=list)


class ResultClass(str, Enum):
    """Kind of target a result describes."""

    OS_PKG = "os-pkgs"
    LANG_PKG = "lang-pkgs"
    CONFIG = "config"

    def __str__(self) -> str:
        return self.value


@dataclass
class Result:
    """Findings for a single scan target."""

    target: str = ""
    result_class: ResultClass | str = ""
    type: str = ""
    packages: list[Package] = field(default_factory=list)
    vulnerabilities: list[DetectedVulnerability] = field(default_factory=list)
    misconfigurations: list[DetectedMisconfiguration] = field(default_factory=list)


@dataclass
class Metadata:
    """Artifact metadata attached to a report."""

    os: OS | None = None
    repo_tags: list[str] = field(default_factory=list)
    repo_digests: list[str] = field(default_factory=list)


@dataclass
class Report:
    """Complete scan report of one artifact."""

    schema_version: int = SCHEMA_VERSION
    artifact_name: str = ""
    artifact_type: str = ""
    metadata: Metadata = field(default_factory=Metadata)
    results: list[Result] = field(default_factory=list)


def new_vuln_type(s: str) -> str:
    """Return s if it is a known vulnerability type, otherwise 'unknown'."""
    return s if s in _VULN_TYPES else VULN_TYPE_UNKNOWN


def new_security_check(s: str) -> str:
    """Return s if it is a known security check, otherwise 'unknown'."""
    return s if s in _SECURITY_CHECKS else SECURITY_CHECK_UNKNOWN


def severity_sort_key(vuln: DetectedVulnerability) -> tuple[str, str, int, str]:
    """Order by package, installed version, severity (highest first), then ID."""
    return (
        vuln.pkg_name,
        vuln.installed_version,
        -_severity_rank(vuln.severity),
        vuln.vulnerability_id,
    )


def sort_by_severity(vulns: Iterable[DetectedVulnerability]) -> list[DetectedVulnerability]:
    """Return the vulnerabilities sorted with severity_sort_key."""
    return sorted(vulns, key=severity_sort_key)