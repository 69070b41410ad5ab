"""Client side of remote scanning: sends scan requests with custom headers."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Protocol

from vulnscope.artifact_types import OS
from vulnscope.convert import from_rpc_os, from_rpc_results
from vulnscope.messages import RpcScanOptions, ScanRequest, ScanResponse
from vulnscope.retry import retry
from vulnscope.types import Result, ScanOptions

logger = logging.getLogger(__name__)

_HEADERS_KEY = "http_request_headers"
_RESERVED_HEADERS = ("accept", "content-type", "twirp-version")


class RemoteScanError(Exception):
    """A scan through the remote server failed."""


class ScanService(Protocol):
    """The remote scan service."""

    def scan(self, context: Mapping[str, object], request: ScanRequest) -> ScanResponse:
        """Send a scan request and return the response."""


def with_custom_headers(
    context: Mapping[str, object] | None,
    custom_headers: Mapping[str, Sequence[str]],
) -> dict[str, object]:
    """Return a copy of context carrying the given request headers.

    Headers the protocol reserves for itself are refused: a warning is logged
    and the context is returned unchanged.
    """
    base = dict(context or {})
    reserved = [k for k in custom_headers if k.lower() in _RESERVED_HEADERS]
    if reserved:
        logger.warning(
            "twirp error setting headers: provided header cannot set %s", reserved[0]
        )
        return base
    base[_HEADERS_KEY] = {k: list(v) for k, v in custom_headers.items()}
    return base


def request_headers(context: Mapping[str, object] | None) -> dict[str, list[str]] | None:
    """Return the request headers stored in context, or None."""
    if not context:
        return None
    headers = context.get(_HEADERS_KEY)
    if headers is None:
        return None
    return {k: list(v) for k, v in headers.items()}


class RemoteScanner:
    """Scans artifacts by asking a remote server."""

    def __init__(
        self, custom_headers: Mapping[str, Sequence[str]] | None, client: ScanService
    ) -> None:
        self._custom_headers = dict(custom_headers or {})
        self._client = client

    def scan(
        self,
        target: str,
        artifact_key: str,
        blob_keys: Sequence[str],
        options: ScanOptions,
    ) -> tuple[list[Result], OS | None]:
        """Scan remotely and return the results and the detected OS."""
        context = with_custom_headers({}, self._custom_headers)
        request = ScanRequest(
            target=target,
            artifact_id=artifact_key,
            blob_ids=list(blob_keys),
            options=RpcScanOptions(
                vuln_type=list(options.vuln_type),
                security_checks=list(options.security_checks),
                list_all_packages=options.list_all_packages,
            ),
        )
        try:
            response = retry(lambda: self._client.scan(context, request))
        except Exception as err:
            raise RemoteScanError(
                f"failed to detect vulnerabilities via RPC: {err}"
            ) from err
        return from_rpc_results(response.results), from_rpc_os(response.os)