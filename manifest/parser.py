"""
manifest/parser.py

Reads package.json and package-lock.json from a project directory and turns
them into a flat package list. No dependency-graph resolution is performed:
the lockfile's flat `packages` map is trusted as given.
"""

import json
import logging
from pathlib import Path
from typing import List, Optional

from security_engine.errors import ManifestError
from security_engine.models import Package

from .resolver import packages_from_lockfile, packages_from_ranges

logger = logging.getLogger(__name__)

MANIFEST_FILE = "package.json"
LOCKFILE = "package-lock.json"
BUN_LOCKFILE = "bun.lockb"

# Lockfile versions before 2 have no flat `packages` map.
MIN_LOCKFILE_VERSION = 2


class ManifestParser:
    """
    Manifest reader bound to one project directory.

    Args:
        project_dir : Directory containing package.json.
    """

    def __init__(self, project_dir) -> None:
        self._project_dir = Path(project_dir)

    @property
    def project_dir(self) -> Path:
        return self._project_dir

    def has_manifest(self) -> bool:
        return (self._project_dir / MANIFEST_FILE).is_file()

    def has_lockfile(self) -> bool:
        return (self._project_dir / LOCKFILE).is_file()

    def has_bun_lockfile(self) -> bool:
        return (self._project_dir / BUN_LOCKFILE).is_file()

    def detect_package_manager(self) -> str:
        return "bun" if self.has_bun_lockfile() else "npm"

    def parse_manifest(self) -> dict:
        path = self._project_dir / MANIFEST_FILE
        try:
            return self._read_json(path)
        except OSError as exc:
            raise ManifestError(f"failed to read {MANIFEST_FILE}", exc) from exc

    def parse_lockfile(self) -> Optional[dict]:
        """Return the parsed lockfile, or None when there is none."""
        path = self._project_dir / LOCKFILE
        if not path.is_file():
            return None
        try:
            return self._read_json(path)
        except OSError as exc:
            raise ManifestError(f"failed to read {LOCKFILE}", exc) from exc

    def get_dependencies(self, include_dev: bool) -> List[Package]:
        """
        All dependencies, exact versions from the lockfile when it is v2+,
        otherwise the manifest's ranges with operators stripped.
        """
        manifest = self.parse_manifest()
        lockfile = self.parse_lockfile()

        if lockfile and self._lockfile_version(lockfile) >= MIN_LOCKFILE_VERSION:
            packages = packages_from_lockfile(lockfile.get("packages") or {}, include_dev)
            logger.debug("Resolved %d packages from %s", len(packages), LOCKFILE)
            return packages

        if lockfile is not None:
            logger.info(
                "%s is lockfileVersion %s; falling back to %s ranges",
                LOCKFILE, lockfile.get("lockfileVersion"), MANIFEST_FILE,
            )
        return self._manifest_packages(manifest, include_dev)

    def get_direct_dependencies(self, include_dev: bool) -> List[Package]:
        return self._manifest_packages(self.parse_manifest(), include_dev)

    @staticmethod
    def _lockfile_version(lockfile: dict) -> int:
        raw = lockfile.get("lockfileVersion")
        try:
            return int(raw or 0)
        except (TypeError, ValueError) as exc:
            raise ManifestError(f"invalid lockfileVersion in {LOCKFILE}: {raw!r}", exc) from exc

    @staticmethod
    def _manifest_packages(manifest: dict, include_dev: bool) -> List[Package]:
        packages = packages_from_ranges(manifest.get("dependencies") or {})
        if include_dev:
            packages.extend(packages_from_ranges(manifest.get("devDependencies") or {}))
        return packages

    @staticmethod
    def _read_json(path: Path) -> dict:
        with path.open("r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as exc:
                raise ManifestError(f"failed to parse {path.name}", exc) from exc
        if not isinstance(data, dict):
            raise ManifestError(f"{path.name} must contain a JSON object")
        return data
