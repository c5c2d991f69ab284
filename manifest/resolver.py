"""
manifest/resolver.py

Package identity resolution for npm lockfile data.

package-lock.json (v2+) keys its `packages` map by install path:

    ""                                                   root project
    "node_modules/lodash"                                lodash
    "node_modules/@babel/core"                           @babel/core
    "node_modules/foo/node_modules/@types/node"          @types/node

The name is the last path segment, or the last two when the second-to-last is
an npm scope (`@scope`). Only the trailing segments are inspected, so nesting
depth does not matter. Resolution is best-effort and never raises.
"""

import logging
from typing import Iterable, List, Mapping, Tuple

from security_engine.models import Package

logger = logging.getLogger(__name__)

NODE_MODULES = "node_modules"

_VERSION_PREFIXES = ("^", "~", ">=", "<=", ">", "<", "=")


def extract_package_name(path: str) -> str:
    """
    Return the package name for a lockfile path.

    >>> extract_package_name("node_modules/@babel/core/node_modules/@types/node")
    '@types/node'
    """
    segments = [s for s in path.replace("\\", "/").split("/") if s]
    if not segments:
        return ""

    last = segments[-1]
    if len(segments) >= 2 and segments[-2].startswith("@"):
        return f"{segments[-2]}/{last}"

    if last.startswith("@") or last == NODE_MODULES:
        logger.debug("Degraded identity resolution for lockfile path %r → %r", path, last)
    return last


def packages_from_lockfile(
    entries: Mapping[str, Mapping],
    include_dev: bool = False,
    ecosystem: str = "npm",
) -> List[Package]:
    """
    Turn the lockfile `packages` map into Package objects.

    Skips the root entry, entries without a name or version, and dev-only
    entries unless `include_dev` is set. Output follows sorted path order so
    repeated runs produce identical lists.
    """
    packages = []
    for path in sorted(entries):
        if not path:
            continue
        info = entries[path] or {}
        if info.get("dev") and not include_dev:
            continue
        name = extract_package_name(path)
        version = info.get("version") or ""
        if not name or not version:
            continue
        packages.append(Package(name=name, version=version, ecosystem=ecosystem))
    return packages


def clean_version(version: str) -> str:
    """Strip one leading range operator: '^1.2.3' → '1.2.3'."""
    for prefix in _VERSION_PREFIXES:
        if len(version) > len(prefix) and version.startswith(prefix):
            return version[len(prefix):]
    return version


def packages_from_ranges(
    dependencies: Mapping[str, str],
    ecosystem: str = "npm",
) -> List[Package]:
    return [
        Package(name=name, version=clean_version(str(spec)), ecosystem=ecosystem)
        for name, spec in sorted(dependencies.items())
    ]


def parse_package_arg(arg: str) -> Tuple[str, str]:
    """
    Split a CLI install argument into (name, version).

    lodash@4.17.20      → ("lodash", "4.17.20")
    @types/node@20.1.0  → ("@types/node", "20.1.0")
    @types/node         → ("@types/node", "latest")
    express             → ("express", "latest")
    """
    idx = arg.rfind("@")
    if idx > 0:
        return arg[:idx], arg[idx + 1:] or "latest"
    return arg, "latest"


def packages_from_args(args: Iterable[str], ecosystem: str = "npm") -> List[Package]:
    packages = []
    for arg in args:
        name, version = parse_package_arg(arg)
        packages.append(Package(name=name, version=version, ecosystem=ecosystem))
    return packages
