import pytest

from vulnscope.artifact_types import Package
from vulnscope.versions import format_src_version, format_version


@pytest.mark.parametrize(
    "pkg, expected",
    [
        (Package(src_version="1.2.3", src_release="1"), "1.2.3-1"),
        (Package(src_epoch=2, src_version="1.2.3", src_release="alpha"), "2:1.2.3-alpha"),
        (Package(src_version="1.2.3"), "1.2.3"),
    ],
)
def test_format_src_version(pkg, expected):
    assert format_src_version(pkg) == expected


@pytest.mark.parametrize(
    "pkg, expected",
    [
        (Package(version="1.2.3", release="1"), "1.2.3-1"),
        (Package(epoch=2, version="1.2.3", release="alpha"), "2:1.2.3-alpha"),
        (Package(epoch=2, version="1.2.3"), "2:1.2.3"),
    ],
)
def test_format_version(pkg, expected):
    assert format_version(pkg) == expected


def test_binary_and_source_versions_are_independent():
    pkg = Package(version="1.0", release="1", src_version="2.0", src_release="3", src_epoch=1)
    assert format_version(pkg) == "1.0-1"
    assert format_src_version(pkg) == "1:2.0-3"