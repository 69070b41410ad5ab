"""Data types describing analysed artifacts, their layers, packages and registry options."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta

BLOB_JSON_SCHEMA_VERSION = 1
ARTIFACT_JSON_SCHEMA_VERSION = 1

_TRUE_VALUES = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_VALUES = frozenset({"0", "f", "F", "FALSE", "false", "False"})


@dataclass
class Layer:
    """Identifies the image layer an item was found in."""

    digest: str = ""
    diff_id: str = ""


@dataclass
class Package:
    """An installed OS package."""

    name: str = ""
    version: str = ""
    release: str = ""
    epoch: int = 0
    arch: str = ""
    src_name: str = ""
    src_version: str = ""
    src_release: str = ""
    src_epoch: int = 0
    layer: Layer = field(default_factory=Layer)


@dataclass
class OS:
    """Operating system detected in an artifact."""

    family: str = ""
    name: str = ""
    eosl: bool = False


@dataclass
class LibraryInfo:
    """A language-specific dependency and the layer it came from."""

    name: str = ""
    version: str = ""
    layer: Layer = field(default_factory=Layer)


@dataclass
class Application:
    """A dependency lock file and the libraries it declares."""

    type: str = ""
    file_path: str = ""
    libraries: list[LibraryInfo] = field(default_factory=list)


@dataclass
class PolicyMetadata:
    """Descriptive metadata of a configuration policy."""

    id: str = ""
    type: str = ""
    title: str = ""
    description: str = ""
    severity: str = ""
    recommended_actions: str = ""
    references: list[str] = field(default_factory=list)


@dataclass
class MisconfResult:
    """Outcome of evaluating one policy against one file."""

    namespace: str = ""
    message: str = ""
    policy_metadata: PolicyMetadata = field(default_factory=PolicyMetadata)
    query: str = ""
    traces: list[str] = field(default_factory=list)


@dataclass
class Misconfiguration:
    """All policy outcomes for a single configuration file."""

    file_type: str = ""
    file_path: str = ""
    successes: list[MisconfResult] = field(default_factory=list)
    warnings: list[MisconfResult] = field(default_factory=list)
    failures: list[MisconfResult] = field(default_factory=list)
    exceptions: list[MisconfResult] = field(default_factory=list)
    layer: Layer = field(default_factory=Layer)


@dataclass
class PackageInfo:
    """Packages read from one package database file."""

    file_path: str = ""
    packages: list[Package] = field(default_factory=list)


@dataclass
class BlobInfo:
    """Analysis result of a single layer blob."""

    schema_version: int = 0
    digest: str = ""
    diff_id: str = ""
    os: OS | None = None
    package_infos: list[PackageInfo] = field(default_factory=list)
    applications: list[Application] = field(default_factory=list)
    misconfigurations: list[Misconfiguration] = field(default_factory=list)
    opaque_dirs: list[str] = field(default_factory=list)
    whiteout_files: list[str] = field(default_factory=list)


@dataclass
class ArtifactInfo:
    """Artifact-level metadata such as the image configuration."""

    schema_version: int = 0
    architecture: str = ""
    created: datetime | None = None
    docker_version: str = ""
    os: str = ""
    history_packages: list[Package] = field(default_factory=list)


@dataclass
class ArtifactDetail:
    """The merged view of all layers of an artifact."""

    os: OS | None = None
    packages: list[Package] = field(default_factory=list)
    applications: list[Application] = field(default_factory=list)
    misconfigurations: list[Misconfiguration] = field(default_factory=list)
    history_packages: list[Package] = field(default_factory=list)


@dataclass
class ArtifactReference:
    """Result of inspecting an artifact: its identity and blobs."""

    name: str = ""
    type: str = ""
    id: str = ""
    blob_ids: list[str] = field(default_factory=list)
    repo_tags: list[str] = field(default_factory=list)
    repo_digests: list[str] = field(default_factory=list)


@dataclass
class DockerOption:
    """Options used when talking to a container registry."""

    user_name: str = ""
    password: str = ""
    registry_token: str = ""
    timeout: timedelta = field(default_factory=timedelta)
    insecure_skip_tls_verify: bool = False
    non_ssl: bool = False


def _parse_bool(environ: Mapping[str, str], key: str) -> bool:
    value = environ.get(key, "")
    if value == "":
        return False
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"invalid boolean value {value!r} for {key}")


@dataclass(frozen=True)
class DockerConfig:
    """Registry settings read from TRIVY_* environment variables."""

    user_name: str = ""
    password: str = ""
    registry_token: str = ""
    insecure: bool = False
    non_ssl: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> DockerConfig:
        """Read the configuration; raises ValueError on malformed booleans."""
        env = os.environ if environ is None else environ
        return cls(
            user_name=env.get("TRIVY_USERNAME", ""),
            password=env.get("TRIVY_PASSWORD", ""),
            registry_token=env.get("TRIVY_REGISTRY_TOKEN", ""),
            insecure=_parse_bool(env, "TRIVY_INSECURE"),
            non_ssl=_parse_bool(env, "TRIVY_NON_SSL"),
        )


def get_docker_option(
    timeout: timedelta, environ: Mapping[str, str] | None = None
) -> DockerOption:
    """Build registry options from the environment and the given timeout."""
    try:
        cfg = DockerConfig.from_env(environ)
    except ValueError as err:
        raise ValueError(f"unable to parse environment variables: {err}") from err
    return DockerOption(
        user_name=cfg.user_name,
        password=cfg.password,
        registry_token=cfg.registry_token,
        timeout=timeout,
        insecure_skip_tls_verify=cfg.insecure,
        non_ssl=cfg.non_ssl,
    )