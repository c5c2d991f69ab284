"""
manifest — npm manifest / lockfile reading and package identity resolution.

Public API:
    ManifestParser        : Reads package.json / package-lock.json.
    extract_package_name  : Lockfile path → package name (scope aware).
    packages_from_lockfile: Lockfile `packages` map → [Package].
    parse_package_arg     : "name@version" CLI argument → (name, version).
"""

from .parser import ManifestParser
from .resolver import (
    clean_version,
    extract_package_name,
    packages_from_args,
    packages_from_lockfile,
    parse_package_arg,
)

__all__ = [
    "ManifestParser",
    "clean_version",
    "extract_package_name",
    "packages_from_args",
    "packages_from_lockfile",
    "parse_package_arg",
]
