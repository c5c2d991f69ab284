"""
pkgmanager.py — install command building and execution.

Only runs once the policy decision allows it. Container isolation is out of
scope: the package manager runs directly in the project directory.
"""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

logger = logging.getLogger(__name__)

SUPPORTED_MANAGERS = ("npm", "bun")


@dataclass(frozen=True)
class PackageManager:
    name: str

    def install_command(self, packages: Sequence[str] = (), save_dev: bool = False) -> List[str]:
        """
        npm:  npm install [--save-dev] [pkgs...]
        bun:  bun install            (no packages)
              bun add [--dev] pkgs   (with packages)
        """
        if self.name == "bun":
            if not packages:
                return ["bun", "install"]
            cmd = ["bun", "add"]
            if save_dev:
                cmd.append("--dev")
            return cmd + list(packages)

        cmd = ["npm", "install"]
        if save_dev:
            cmd.append("--save-dev")
        return cmd + list(packages)


def detect(preferred: Optional[str], detected: str) -> PackageManager:
    """
    Pick the package manager: an explicit choice (CLI flag or config) wins
    over what the project's lockfiles suggest.
    """
    name = (preferred or "auto").lower()
    if name == "auto":
        name = detected
    if name not in SUPPORTED_MANAGERS:
        logger.warning("Unsupported package manager %r, falling back to npm", name)
        name = "npm"
    return PackageManager(name)


def run_install(command: Sequence[str], cwd: Path) -> int:
    """Run the install command, streaming its output. Returns the exit code."""
    logger.info("Running install: %s (cwd=%s)", " ".join(command), cwd)
    try:
        completed = subprocess.run(list(command), cwd=str(cwd), check=False)
    except FileNotFoundError:
        logger.error("'%s' not found on PATH", command[0])
        return 127
    return completed.returncode
