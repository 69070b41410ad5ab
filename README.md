# vulnscope

`vulnscope` is the core of a vulnerability and misconfiguration scanner. It does not find anything by itself. You supply the parts that analyse an artifact and look up vulnerabilities. The package then does the following:

- combines their findings into sorted, filtered scan results
- builds a full `Report` for an artifact
- converts results to and from plain message objects, so that a client and a server can exchange scans
- retries remote calls with exponential back-off while the remote service reports itself unavailable

## Installation

```
pip install vulnscope
```

Python 3.10 or later is required. The package has no runtime dependencies.

## Modules

- `vulnscope.artifact_types`: data classes for analysed artifacts. These are `Layer`, `Package`, `OS`, `LibraryInfo`, `Application`, `PolicyMetadata`, `MisconfResult`, `Misconfiguration`, `PackageInfo`, `BlobInfo`, `ArtifactInfo`, `ArtifactDetail`, `ArtifactReference` and `DockerOption`.
  - `DockerConfig.from_env(environ)` reads `TRIVY_USERNAME`, `TRIVY_PASSWORD`, `TRIVY_REGISTRY_TOKEN`, `TRIVY_INSECURE` and `TRIVY_NON_SSL`. It uses `os.environ` when `environ` is `None`.
  - `get_docker_option(timeout, environ)` turns that configuration into a `DockerOption`.
  - A malformed boolean in `TRIVY_INSECURE` or `TRIVY_NON_SSL` raises `ValueError`.
- `vulnscope.types`: findings and reports. These are `Severity`, `CVSS`, `MisconfStatus`, `DetectedVulnerability`, `DetectedMisconfiguration`, `ScanOptions`, `ResultClass`, `Result`, `Metadata` and `Report`.
  - `new_vuln_type` and `new_security_check` map unknown names to `"unknown"`.
  - `sort_by_severity` orders vulnerabilities by package name, then installed version, then severity (highest first), then ID.
- `vulnscope.versions`: `format_version(pkg)` and `format_src_version(pkg)` render a version as `[epoch:]version[-release]`.
- `vulnscope.utils`: file-system helpers.
  - `default_cache_dir()`, `cache_dir()` and `set_cache_dir()` manage the cache directory.
  - `file_walk(root, target_files, walk_fn)` calls `walk_fn` on the non-empty files under `root` whose relative paths are in `target_files`.
  - `filter_targets(prefix_path, targets)` keeps the targets under a prefix and makes them relative to it.
  - `copy_file(src, dst)` copies a regular file.
- `vulnscope.local_scanner`: `LocalScanner` combines three collaborators that you implement:
  - an `Applier`, which merges layers into an `ArtifactDetail`
  - an `OspkgDetector`
  - a `LibraryDetector`

  The module also provides `is_skipped` and `merge_packages`.
- `vulnscope.scanner`: `Scanner` inspects an `Artifact`, runs a `Driver` over its blobs and builds a `Report`. `LocalScanner` and `RemoteScanner` can both serve as the driver.
- `vulnscope.messages`: the wire messages, such as `ScanRequest`, `ScanResponse`, `PutArtifactRequest`, `PutBlobRequest` and `MissingBlobsRequest`, together with `Timestamp`.
- `vulnscope.convert`: conversion between the domain objects and the messages.
- `vulnscope.retry`: `retry(func)` calls `func` again while it raises `RpcError` with `ErrorCode.UNAVAILABLE`, up to 10 retries. Any other error is raised at once.
- `vulnscope.client`: `RemoteScanner` sends scan requests to a `ScanService`, retrying with `retry`.
  - `with_custom_headers` attaches request headers to a context mapping. It refuses `Accept`, `Content-Type` and `Twirp-Version`.
  - `request_headers` reads the headers back.
- `vulnscope.server`: `ScanServer` handles scan requests with a local driver and a `ResultClient`. `CacheServer` handles cache requests with an `ArtifactCache`.

## Example

```python
from vulnscope.local_scanner import LocalScanner
from vulnscope.scanner import Scanner
from vulnscope.types import ScanOptions

local = LocalScanner(my_applier, my_ospkg_detector, my_library_detector)
scanner = Scanner(local, my_artifact)

report = scanner.scan_artifact(
    ScanOptions(vuln_type=["os", "library"], security_checks=["vuln", "config"])
)
for result in report.results:
    print(result.target, len(result.vulnerabilities))
```

Replace `my_applier`, `my_ospkg_detector`, `my_library_detector` and `my_artifact` with your own implementations of `Applier`, `OspkgDetector`, `LibraryDetector` and `Artifact`.

## Errors

Failures are raised as exceptions:

- `ScanError` from `Scanner`
- `LocalScanError` from `LocalScanner`
- `RemoteScanError` from `RemoteScanner`
- `ServerError` from `ScanServer` and `CacheServer`

`LocalScanner` does not fail in three cases: the applier raises `UnknownOSError`, the applier raises `NoPackagesDetectedError`, or the OS package detector raises `UnsupportedOSError`. It logs the problem and scans whatever remains.

## What the package does not do

- It has no command-line program.
- It has no vulnerability database and no image, filesystem or repository analysers. Those come in through the `Applier`, `OspkgDetector`, `LibraryDetector`, `ResultClient` and `Artifact` protocols.
- It has no HTTP transport. `ScanServer` and `CacheServer` are request handlers, not a listening server, and `RemoteScanner` needs a `ScanService` that you supply.
- It has no cache storage. `CacheServer` works with whatever `ArtifactCache` it is given.

## Running the tests

```
pip install -e ".[test]"
pytest
```