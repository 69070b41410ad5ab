"""Conversion between scan result types and their wire messages."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from vulnscope.artifact_types import (
    BLOB_JSON_SCHEMA_VERSION,
    OS,
    Application,
    ArtifactInfo,
    BlobInfo,
    Layer,
    LibraryInfo,
    Misconfiguration,
    MisconfResult,
    Package,
    PackageInfo,
    PolicyMetadata,
)
from vulnscope.messages import (
    MissingBlobsRequest,
    PutArtifactRequest,
    PutBlobRequest,
    RpcApplication,
    RpcArtifactInfo,
    RpcBlobInfo,
    RpcCVSS,
    RpcDetectedMisconfiguration,
    RpcLayer,
    RpcLibrary,
    RpcMisconfiguration,
    RpcMisconfResult,
    RpcOS,
    RpcPackage,
    RpcPackageInfo,
    RpcResult,
    RpcSeverity,
    RpcVulnerability,
    ScanResponse,
    Timestamp,
)
from vulnscope.types import (
    CVSS,
    DetectedMisconfiguration,
    DetectedVulnerability,
    MisconfStatus,
    Result,
    ResultClass,
    Severity,
)

logger = logging.getLogger(__name__)

_MISCONF_STATUSES = {s.value: s for s in MisconfStatus}
_RESULT_CLASSES = {c.value: c for c in ResultClass}


def _severity(name: str) -> Severity:
    try:
        return Severity.parse(name)
    except ValueError as err:
        logger.warning("%s", err)
        return Severity.UNKNOWN


def _to_timestamp(value) -> Timestamp | None:
    return None if value is None else Timestamp.from_datetime(value)


def _from_timestamp(value: Timestamp | None):
    return None if value is None else value.to_datetime()


def to_rpc_pkgs(pkgs: Iterable[Package]) -> list[RpcPackage]:
    """Convert packages to wire packages."""
    return [
        RpcPackage(
            name=p.name,
            version=p.version,
            release=p.release,
            epoch=p.epoch,
            arch=p.arch,
            src_name=p.src_name,
            src_version=p.src_version,
            src_release=p.src_release,
            src_epoch=p.src_epoch,
        )
        for p in pkgs
    ]


def from_rpc_pkgs(rpc_pkgs: Iterable[RpcPackage]) -> list[Package]:
    """Convert wire packages to packages."""
    return [
        Package(
            name=p.name,
            version=p.version,
            release=p.release,
            epoch=p.epoch,
            arch=p.arch,
            src_name=p.src_name,
            src_version=p.src_version,
            src_release=p.src_release,
            src_epoch=p.src_epoch,
        )
        for p in rpc_pkgs
    ]


def from_rpc_libraries(rpc_libs: Iterable[RpcLibrary]) -> list[LibraryInfo]:
    """Convert wire libraries to library records."""
    return [LibraryInfo(name=lib.name, version=lib.version) for lib in rpc_libs]


def to_rpc_libraries(libs: Iterable) -> list[RpcLibrary]:
    """Convert objects with name and version to wire libraries."""
    return [RpcLibrary(name=lib.name, version=lib.version) for lib in libs]


def to_rpc_layer(layer: Layer) -> RpcLayer:
    return RpcLayer(digest=layer.digest, diff_id=layer.diff_id)


def from_rpc_layer(rpc_layer: RpcLayer | None) -> Layer:
    if rpc_layer is None:
        return Layer()
    return Layer(digest=rpc_layer.digest, diff_id=rpc_layer.diff_id)


def to_rpc_vulns(vulns: Iterable[DetectedVulnerability]) -> list[RpcVulnerability]:
    """Convert detected vulnerabilities; unknown severities become UNKNOWN."""
    return [
        RpcVulnerability(
            vulnerability_id=v.vulnerability_id,
            pkg_name=v.pkg_name,
            installed_version=v.installed_version,
            fixed_version=v.fixed_version,
            title=v.title,
            description=v.description,
            severity=RpcSeverity(int(_severity(v.severity))),
            references=list(v.references),
            layer=to_rpc_layer(v.layer),
            cvss={
                vendor: RpcCVSS(
                    v2_vector=c.v2_vector,
                    v3_vector=c.v3_vector,
                    v2_score=c.v2_score,
                    v3_score=c.v3_score,
                )
                for vendor, c in v.cvss.items()
            },
            severity_source=v.severity_source,
            cwe_ids=list(v.cwe_ids),
            primary_url=v.primary_url,
            last_modified_date=_to_timestamp(v.last_modified_date),
            published_date=_to_timestamp(v.published_date),
        )
        for v in vulns
    ]


def to_rpc_misconfs(
    misconfs: Iterable[DetectedMisconfiguration],
) -> list[RpcDetectedMisconfiguration]:
    """Convert detected misconfigurations to wire messages."""
    return [
        RpcDetectedMisconfiguration(
            type=m.type,
            id=m.id,
            title=m.title,
            description=m.description,
            message=m.message,
            namespace=m.namespace,
            resolution=m.resolution,
            severity=RpcSeverity(int(_severity(m.severity))),
            primary_url=m.primary_url,
            references=list(m.references),
            status=str(m.status),
            layer=to_rpc_layer(m.layer),
        )
        for m in misconfs
    ]


def from_rpc_vulns(rpc_vulns: Iterable[RpcVulnerability]) -> list[DetectedVulnerability]:
    """Convert wire vulnerabilities to detected vulnerabilities."""
    return [
        DetectedVulnerability(
            vulnerability_id=v.vulnerability_id,
            pkg_name=v.pkg_name,
            installed_version=v.installed_version,
            fixed_version=v.fixed_version,
            layer=from_rpc_layer(v.layer),
            severity_source=v.severity_source,
            primary_url=v.primary_url,
            title=v.title,
            description=v.description,
            severity=RpcSeverity(v.severity).name,
            cwe_ids=list(v.cwe_ids),
            cvss={
                vendor: CVSS(
                    v2_vector=c.v2_vector,
                    v3_vector=c.v3_vector,
                    v2_score=c.v2_score,
                    v3_score=c.v3_score,
                )
                for vendor, c in v.cvss.items()
            },
            references=list(v.references),
            published_date=_from_timestamp(v.published_date),
            last_modified_date=_from_timestamp(v.last_modified_date),
        )
        for v in rpc_vulns
    ]


def from_rpc_misconfs(
    rpc_misconfs: Iterable[RpcDetectedMisconfiguration],
) -> list[DetectedMisconfiguration]:
    """Convert wire misconfigurations to detected misconfigurations."""
    return [
        DetectedMisconfiguration(
            type=m.type,
            id=m.id,
            title=m.title,
            description=m.description,
            message=m.message,
            namespace=m.namespace,
            resolution=m.resolution,
            severity=RpcSeverity(m.severity).name,
            primary_url=m.primary_url,
            references=list(m.references),
            status=_MISCONF_STATUSES.get(m.status, m.status),
            layer=from_rpc_layer(m.layer),
        )
        for m in rpc_misconfs
    ]


def from_rpc_results(rpc_results: Iterable[RpcResult]) -> list[Result]:
    """Convert wire results to scan results."""
    return [
        Result(
            target=r.target,
            vulnerabilities=from_rpc_vulns(r.vulnerabilities),
            misconfigurations=from_rpc_misconfs(r.misconfigurations),
            result_class=_RESULT_CLASSES.get(r.result_class, r.result_class),
            type=r.type,
            packages=from_rpc_pkgs(r.packages),
        )
        for r in rpc_results
    ]


def from_rpc_os(rpc_os: RpcOS | None) -> OS | None:
    if rpc_os is None:
        return None
    return OS(family=rpc_os.family, name=rpc_os.name, eosl=rpc_os.eosl)


def to_rpc_os(os_info: OS | None) -> RpcOS | None:
    """Convert an OS; the end-of-life flag is not sent."""
    if os_info is None:
        return None
    return RpcOS(family=os_info.family, name=os_info.name)


def from_rpc_package_infos(rpc_pkg_infos: Iterable[RpcPackageInfo]) -> list[PackageInfo]:
    return [
        PackageInfo(file_path=p.file_path, packages=from_rpc_pkgs(p.packages))
        for p in rpc_pkg_infos
    ]


def from_rpc_applications(rpc_apps: Iterable[RpcApplication]) -> list[Application]:
    return [
        Application(
            type=a.type,
            file_path=a.file_path,
            libraries=from_rpc_libraries(a.libraries),
        )
        for a in rpc_apps
    ]


def from_rpc_misconf_results(rpc_results: Iterable[RpcMisconfResult]) -> list[MisconfResult]:
    return [
        MisconfResult(
            namespace=r.namespace,
            message=r.message,
            policy_metadata=PolicyMetadata(
                id=r.id, type=r.type, title=r.title, severity=r.severity
            ),
        )
        for r in rpc_results
    ]


def from_rpc_misconfigurations(
    rpc_misconfs: Iterable[RpcMisconfiguration],
) -> list[Misconfiguration]:
    """Convert wire misconfigurations; the layer is left empty."""
    return [
        Misconfiguration(
            file_type=m.file_type,
            file_path=m.file_path,
            successes=from_rpc_misconf_results(m.successes),
            warnings=from_rpc_misconf_results(m.warnings),
            failures=from_rpc_misconf_results(m.failures),
            exceptions=from_rpc_misconf_results(m.exceptions),
            layer=Layer(),
        )
        for m in rpc_misconfs
    ]


def to_misconf_results(results: Iterable[MisconfResult]) -> list[RpcMisconfResult]:
    return [
        RpcMisconfResult(
            namespace=r.namespace,
            message=r.message,
            id=r.policy_metadata.id,
            type=r.policy_metadata.type,
            title=r.policy_metadata.title,
            severity=r.policy_metadata.severity,
        )
        for r in results
    ]


def from_rpc_put_artifact_request(req: PutArtifactRequest) -> ArtifactInfo:
    """Extract the artifact information; raises ValueError when it is missing."""
    info = req.artifact_info
    if info is None:
        raise ValueError("empty artifact info")
    return ArtifactInfo(
        schema_version=info.schema_version,
        architecture=info.architecture,
        created=_from_timestamp(info.created),
        docker_version=info.docker_version,
        os=info.os,
        history_packages=from_rpc_pkgs(info.history_packages),
    )


def from_rpc_put_blob_request(req: PutBlobRequest) -> BlobInfo:
    """Extract the blob information; raises ValueError when it is missing."""
    info = req.blob_info
    if info is None:
        raise ValueError("empty blob info")
    return BlobInfo(
        schema_version=info.schema_version,
        digest=info.digest,
        diff_id=info.diff_id,
        os=from_rpc_os(info.os),
        package_infos=from_rpc_package_infos(info.package_infos),
        applications=from_rpc_applications(info.applications),
        misconfigurations=from_rpc_misconfigurations(info.misconfigurations),
        opaque_dirs=list(info.opaque_dirs),
        whiteout_files=list(info.whiteout_files),
    )


def to_rpc_artifact_info(image_id: str, image_info: ArtifactInfo) -> PutArtifactRequest:
    return PutArtifactRequest(
        artifact_id=image_id,
        artifact_info=RpcArtifactInfo(
            schema_version=image_info.schema_version,
            architecture=image_info.architecture,
            created=_to_timestamp(image_info.created),
            docker_version=image_info.docker_version,
            os=image_info.os,
            history_packages=to_rpc_pkgs(image_info.history_packages),
        ),
    )


def to_rpc_blob_info(diff_id: str, blob_info: BlobInfo) -> PutBlobRequest:
    """Build a request storing a blob, stamped with the current blob schema."""
    package_infos = [
        RpcPackageInfo(file_path=p.file_path, packages=to_rpc_pkgs(p.packages))
        for p in blob_info.package_infos
    ]
    applications = [
        RpcApplication(
            type=a.type,
            file_path=a.file_path,
            libraries=to_rpc_libraries(a.libraries),
        )
        for a in blob_info.applications
    ]
    misconfigurations = [
        RpcMisconfiguration(
            file_type=m.file_type,
            file_path=m.file_path,
            successes=to_misconf_results(m.successes),
            warnings=to_misconf_results(m.warnings),
            failures=to_misconf_results(m.failures),
            exceptions=to_misconf_results(m.exceptions),
        )
        for m in blob_info.misconfigurations
    ]
    return PutBlobRequest(
        diff_id=diff_id,
        blob_info=RpcBlobInfo(
            schema_version=BLOB_JSON_SCHEMA_VERSION,
            digest=blob_info.digest,
            diff_id=blob_info.diff_id,
            os=to_rpc_os(blob_info.os),
            package_infos=package_infos,
            applications=applications,
            misconfigurations=misconfigurations,
            opaque_dirs=list(blob_info.opaque_dirs),
            whiteout_files=list(blob_info.whiteout_files),
        ),
    )


def to_missing_blobs_request(image_id: str, layer_ids: Iterable[str]) -> MissingBlobsRequest:
    return MissingBlobsRequest(artifact_id=image_id, blob_ids=list(layer_ids))


def to_rpc_scan_response(results: Iterable[Result], os_info: OS | None) -> ScanResponse:
    """Build a scan response; the OS message is always present."""
    rpc_os = RpcOS()
    if os_info is not None:
        rpc_os = RpcOS(family=os_info.family, name=os_info.name, eosl=os_info.eosl)
    rpc_results = [
        RpcResult(
            target=r.target,
            result_class=str(r.result_class),
            type=r.type,
            vulnerabilities=to_rpc_vulns(r.vulnerabilities),
            misconfigurations=to_rpc_misconfs(r.misconfigurations),
            packages=to_rpc_pkgs(r.packages),
        )
        for r in results
    ]
    return ScanResponse(os=rpc_os, results=rpc_results)