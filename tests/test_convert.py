from datetime import datetime, timezone

import pytest

from vulnscope.artifact_types import (
    BLOB_JSON_SCHEMA_VERSION,
    OS,
    Application,
    ArtifactInfo,
    BlobInfo,
    Layer,
    LibraryInfo,
    Package,
    PackageInfo,
)
from vulnscope.convert import (
    from_rpc_libraries,
    from_rpc_misconfs,
    from_rpc_os,
    from_rpc_pkgs,
    from_rpc_put_artifact_request,
    from_rpc_put_blob_request,
    from_rpc_results,
    to_missing_blobs_request,
    to_rpc_artifact_info,
    to_rpc_blob_info,
    to_rpc_libraries,
    to_rpc_misconfs,
    to_rpc_os,
    to_rpc_pkgs,
    to_rpc_scan_response,
    to_rpc_vulns,
)
from vulnscope.messages import (
    PutArtifactRequest,
    RpcCVSS,
    RpcLayer,
    RpcLibrary,
    RpcOS,
    RpcPackage,
    RpcResult,
    RpcSeverity,
    RpcVulnerability,
    Timestamp,
)
from vulnscope.types import (
    CVSS,
    DetectedMisconfiguration,
    DetectedVulnerability,
    MisconfStatus,
    Result,
    ResultClass,
)

DIGEST = "sha256:154ad0735c360b212b167f424d33a62305770a1fcfb6363882f5c436cfbd9812"
DIFF_ID = "sha256:b2a1a2d80bf0c747a4f6b0ca6af5eef23f043fcdb1ed4f3a3e750aef2dc68079"
V2 = "AV:L/AC:L/Au:N/C:C/I:C/A:C"
V3 = "CVSS:3.1/AV:L/AC:L/PR:L/UI:N/S:U/C:H/I:H/A:H"


def _package():
    return Package(
        name="binary",
        version="1.2.3",
        release="1",
        epoch=2,
        arch="x86_64",
        src_name="src",
        src_version="1.2.3",
        src_release="1",
        src_epoch=2,
    )


def _rpc_package():
    return RpcPackage(
        name="binary",
        version="1.2.3",
        release="1",
        epoch=2,
        arch="x86_64",
        src_name="src",
        src_version="1.2.3",
        src_release="1",
        src_epoch=2,
    )


def test_to_rpc_pkgs():
    assert to_rpc_pkgs([_package()]) == [_rpc_package()]


def test_from_rpc_pkgs():
    assert from_rpc_pkgs([_rpc_package()]) == [_package()]


def test_from_rpc_libraries():
    got = from_rpc_libraries(
        [RpcLibrary(name="foo", version="1.2.3"), RpcLibrary(name="bar", version="4.5.6")]
    )
    assert got == [
        LibraryInfo(name="foo", version="1.2.3"),
        LibraryInfo(name="bar", version="4.5.6"),
    ]


def test_to_rpc_libraries():
    got = to_rpc_libraries(
        [LibraryInfo(name="foo", version="1.2.3"), LibraryInfo(name="bar", version="4.5.6")]
    )
    assert got == [
        RpcLibrary(name="foo", version="1.2.3"),
        RpcLibrary(name="bar", version="4.5.6"),
    ]


def test_to_rpc_vulns_happy_path():
    published = datetime.fromtimestamp(1257894000, timezone.utc)
    modified = datetime.fromtimestamp(1257894010, timezone.utc)
    vuln = DetectedVulnerability(
        vulnerability_id="CVE-2019-0001",
        pkg_name="foo",
        installed_version="1.2.3",
        fixed_version="1.2.4",
        title="DoS",
        description="Denial of Service",
        severity="MEDIUM",
        cvss={"redhat": CVSS(v2_vector=V2, v3_vector=V3, v2_score=7.2, v3_score=7.8)},
        references=["http://example.com"],
        published_date=published,
        last_modified_date=modified,
        layer=Layer(digest=DIGEST, diff_id=DIFF_ID),
        primary_url="https://avd.aquasec.com/nvd/CVE-2019-0001",
    )
    assert to_rpc_vulns([vuln]) == [
        RpcVulnerability(
            vulnerability_id="CVE-2019-0001",
            pkg_name="foo",
            installed_version="1.2.3",
            fixed_version="1.2.4",
            title="DoS",
            description="Denial of Service",
            severity=RpcSeverity.MEDIUM,
            cvss={"redhat": RpcCVSS(v2_vector=V2, v3_vector=V3, v2_score=7.2, v3_score=7.8)},
            references=["http://example.com"],
            layer=RpcLayer(digest=DIGEST, diff_id=DIFF_ID),
            primary_url="https://avd.aquasec.com/nvd/CVE-2019-0001",
            published_date=Timestamp(seconds=1257894000),
            last_modified_date=Timestamp(seconds=1257894010),
        )
    ]


def test_to_rpc_vulns_invalid_severity():
    vuln = DetectedVulnerability(
        vulnerability_id="CVE-2019-0002",
        pkg_name="bar",
        installed_version="1.2.3",
        fixed_version="1.2.4",
        title="DoS",
        description="Denial of Service",
        severity="INVALID",
        references=["http://example.com"],
        layer=Layer(digest=DIGEST, diff_id=DIFF_ID),
    )
    assert to_rpc_vulns([vuln]) == [
        RpcVulnerability(
            vulnerability_id="CVE-2019-0002",
            pkg_name="bar",
            installed_version="1.2.3",
            fixed_version="1.2.4",
            title="DoS",
            description="Denial of Service",
            severity=RpcSeverity.UNKNOWN,
            cvss={},
            references=["http://example.com"],
            layer=RpcLayer(digest=DIGEST, diff_id=DIFF_ID),
        )
    ]


def _rpc_result(published, modified):
    return RpcResult(
        target="alpine:3.10",
        type="alpine",
        vulnerabilities=[
            RpcVulnerability(
                vulnerability_id="CVE-2019-0001",
                pkg_name="musl",
                installed_version="1.2.3",
                fixed_version="1.2.4",
                title="DoS",
                description="Denial of Service",
                severity=RpcSeverity.MEDIUM,
                severity_source="nvd",
                cwe_ids=["CWE-123", "CWE-456"],
                cvss={"redhat": RpcCVSS(v2_vector=V2, v3_vector=V3, v2_score=7.2, v3_score=7.8)},
                references=["http://example.com"],
                layer=RpcLayer(digest=DIGEST, diff_id=DIFF_ID),
                primary_url="https://avd.aquasec.com/nvd/CVE-2019-0001",
                published_date=published,
                last_modified_date=modified,
            )
        ],
    )


def _expected_result(published, modified):
    return Result(
        target="alpine:3.10",
        type="alpine",
        vulnerabilities=[
            DetectedVulnerability(
                vulnerability_id="CVE-2019-0001",
                pkg_name="musl",
                installed_version="1.2.3",
                fixed_version="1.2.4",
                layer=Layer(digest=DIGEST, diff_id=DIFF_ID),
                severity_source="nvd",
                primary_url="https://avd.aquasec.com/nvd/CVE-2019-0001",
                title="DoS",
                description="Denial of Service",
                severity="MEDIUM",
                cwe_ids=["CWE-123", "CWE-456"],
                cvss={"redhat": CVSS(v2_vector=V2, v3_vector=V3, v2_score=7.2, v3_score=7.8)},
                references=["http://example.com"],
                published_date=published,
                last_modified_date=modified,
            )
        ],
    )


def test_from_rpc_results_happy_path():
    published = datetime(2009, 11, 10, 23, 0, 0, tzinfo=timezone.utc)
    modified = datetime(2009, 11, 10, 23, 0, 10, tzinfo=timezone.utc)
    got = from_rpc_results(
        [_rpc_result(Timestamp.from_datetime(published), Timestamp.from_datetime(modified))]
    )
    assert got == [_expected_result(published, modified)]


def test_from_rpc_results_with_nil_dates():
    assert from_rpc_results([_rpc_result(None, None)]) == [_expected_result(None, None)]


def test_misconfs_round_trip():
    misconf = DetectedMisconfiguration(
        type="Kubernetes Security Check",
        id="ID100",
        title="Bad Deployment",
        message="something bad",
        namespace="main.kubernetes.id100",
        severity="HIGH",
        references=["http://example.com"],
        status=MisconfStatus.FAILURE,
        layer=Layer(diff_id=DIFF_ID),
    )
    rpc = to_rpc_misconfs([misconf])
    assert rpc[0].severity is RpcSeverity.HIGH
    assert rpc[0].status == "FAIL"
    assert from_rpc_misconfs(rpc) == [misconf]


def test_os_conversions():
    assert from_rpc_os(None) is None
    assert to_rpc_os(None) is None
    assert from_rpc_os(RpcOS(family="alpine", name="3.11", eosl=True)) == OS(
        family="alpine", name="3.11", eosl=True
    )
    assert to_rpc_os(OS(family="alpine", name="3.11", eosl=True)) == RpcOS(
        family="alpine", name="3.11"
    )


def test_artifact_info_round_trip():
    info = ArtifactInfo(
        schema_version=1,
        architecture="amd64",
        created=datetime(2020, 1, 2, 3, 4, 5, 6, tzinfo=timezone.utc),
        docker_version="18.09",
        os="linux",
        history_packages=[_package()],
    )
    req = to_rpc_artifact_info("sha256:abc", info)
    assert req.artifact_id == "sha256:abc"
    assert from_rpc_put_artifact_request(req) == info


def test_put_artifact_request_without_info_raises():
    with pytest.raises(ValueError):
        from_rpc_put_artifact_request(PutArtifactRequest())


def test_blob_info_round_trip():
    blob = BlobInfo(
        schema_version=BLOB_JSON_SCHEMA_VERSION,
        digest=DIGEST,
        diff_id=DIFF_ID,
        os=OS(family="alpine", name="3.11"),
        package_infos=[PackageInfo(file_path="lib/apk/db/installed", packages=[_package()])],
        applications=[
            Application(
                type="composer",
                file_path="php-app/composer.lock",
                libraries=[
                    LibraryInfo(name="guzzlehttp/guzzle", version="6.2.0"),
                    LibraryInfo(name="guzzlehttp/promises", version="v1.3.1"),
                ],
            )
        ],
        opaque_dirs=["etc/"],
        whiteout_files=["etc/hostname"],
    )
    req = to_rpc_blob_info(DIFF_ID, blob)
    assert req.diff_id == DIFF_ID
    assert req.blob_info.schema_version == BLOB_JSON_SCHEMA_VERSION
    assert from_rpc_put_blob_request(req) == blob


def test_missing_blobs_request():
    req = to_missing_blobs_request("sha256:abc", ["sha256:one", "sha256:two"])
    assert req.artifact_id == "sha256:abc"
    assert req.blob_ids == ["sha256:one", "sha256:two"]


def test_scan_response_without_os_has_empty_os():
    resp = to_rpc_scan_response([], None)
    assert resp.os == RpcOS()
    assert resp.results == []


def test_scan_response_carries_results():
    result = Result(
        target="alpine:3.11 (alpine 3.11)",
        result_class=ResultClass.OS_PKG,
        type="alpine",
        packages=[_package()],
    )
    resp = to_rpc_scan_response([result], OS(family="alpine", name="3.11", eosl=True))
    assert resp.os == RpcOS(family="alpine", name="3.11", eosl=True)
    assert resp.results[0].result_class == ResultClass.OS_PKG.value
    assert from_rpc_results(resp.results) == [result]