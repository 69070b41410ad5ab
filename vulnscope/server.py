"""Server side of remote scanning: scan and cache request handlers."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from vulnscope.artifact_types import ArtifactInfo, BlobInfo
from vulnscope.convert import (
    from_rpc_put_artifact_request,
    from_rpc_put_blob_request,
    to_rpc_scan_response,
)
from vulnscope.messages import (
    MissingBlobsRequest,
    MissingBlobsResponse,
    PutArtifactRequest,
    PutBlobRequest,
    RpcScanOptions,
    ScanRequest,
    ScanResponse,
)
from vulnscope.scanner import Driver
from vulnscope.types import DetectedVulnerability, ScanOptions


class ServerError(Exception):
    """A request to the server could not be handled."""


class ResultClient(Protocol):
    """Completes detected vulnerabilities with advisory details."""

    def fill_vulnerability_info(
        self, vulns: list[DetectedVulnerability], report_type: str
    ) -> None:
        """Fill in titles, severities and the like, in place."""


class ArtifactCache(Protocol):
    """Stores analysis results of artifacts and their blobs."""

    def put_artifact(self, artifact_id: str, artifact_info: ArtifactInfo) -> None:
        """Store artifact information."""

    def put_blob(self, blob_id: str, blob_info: BlobInfo) -> None:
        """Store blob information."""

    def missing_blobs(
        self, artifact_id: str, blob_ids: Sequence[str]
    ) -> tuple[bool, list[str]]:
        """Return whether the artifact is missing and which blobs are missing."""


class ScanServer:
    """Handles scan requests with a local scanner."""

    def __init__(self, local_scanner: Driver, result_client: ResultClient) -> None:
        self._local_scanner = local_scanner
        self._result_client = result_client

    def scan(self, request: ScanRequest) -> ScanResponse:
        """Scan the requested blobs and return the response message."""
        rpc_options = request.options or RpcScanOptions()
        options = ScanOptions(
            vuln_type=list(rpc_options.vuln_type),
            security_checks=list(rpc_options.security_checks),
            list_all_packages=rpc_options.list_all_packages,
        )
        try:
            results, os_found = self._local_scanner.scan(
                request.target, request.artifact_id, request.blob_ids, options
            )
        except Exception as err:
            raise ServerError(f"failed scan, {request.target}: {err}") from err

        for result in results:
            self._result_client.fill_vulnerability_info(result.vulnerabilities, result.type)
        return to_rpc_scan_response(results, os_found)


class CacheServer:
    """Handles cache requests with an artifact cache."""

    def __init__(self, cache: ArtifactCache) -> None:
        self._cache = cache

    def put_artifact(self, request: PutArtifactRequest) -> None:
        """Store the artifact information of the request."""
        if request.artifact_info is None:
            raise ServerError("empty image info")
        image_info = from_rpc_put_artifact_request(request)
        try:
            self._cache.put_artifact(request.artifact_id, image_info)
        except Exception as err:
            raise ServerError(f"unable to store image info in cache: {err}") from err

    def put_blob(self, request: PutBlobRequest) -> None:
        """Store the blob information of the request."""
        if request.blob_info is None:
            raise ServerError("empty layer info")
        layer_info = from_rpc_put_blob_request(request)
        try:
            self._cache.put_blob(request.diff_id, layer_info)
        except Exception as err:
            raise ServerError(f"unable to store layer info in cache: {err}") from err

    def missing_blobs(self, request: MissingBlobsRequest) -> MissingBlobsResponse:
        """Report which of the requested blobs the cache lacks."""
        try:
            missing_artifact, blob_ids = self._cache.missing_blobs(
                request.artifact_id, request.blob_ids
            )
        except Exception as err:
            raise ServerError(f"failed to get missing blobs: {err}") from err
        return MissingBlobsResponse(
            missing_artifact=missing_artifact, missing_blob_ids=list(blob_ids)
        )