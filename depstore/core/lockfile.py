"""
Lockfile (shrinkwrap.yaml) handling

Only the top-level `dependencies` mapping is interpreted here; every
other key is carried through unchanged.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import List

import yaml

from .manifest import is_dependent_on

logger = logging.getLogger(__name__)

LOCKFILE_NAME = "shrinkwrap.yaml"


class LockfileError(Exception):
    """Raised when the lockfile cannot be read or written."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


def get_lockfile_path(project_root: Path) -> Path:
    return Path(project_root) / LOCKFILE_NAME


def load(project_root: Path) -> dict:
    """Load the project's lockfile.

    Returns:
        Lockfile data; an empty lockfile if none exists yet
    """
    path = get_lockfile_path(project_root)
    if not path.exists():
        return {'dependencies': {}}

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise LockfileError(path, str(e)) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise LockfileError(path, "lockfile is not a mapping")
    if not isinstance(data.get('dependencies'), dict):
        data['dependencies'] = {}
    return data


def save(project_root: Path, data: dict):
    """Write the lockfile atomically."""
    path = get_lockfile_path(project_root)
    content = yaml.safe_dump(data, default_flow_style=False, sort_keys=True)

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f'.{path.name}.')
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(content)
        os.replace(tmp_name, path)
    except OSError as e:
        Path(tmp_name).unlink(missing_ok=True)
        raise LockfileError(path, str(e)) from e


def prune_undeclared(lockfile: dict, manifest: dict) -> List[str]:
    """Drop lockfile entries the manifest no longer declares.

    The check is shallow: an entry still needed transitively but not
    declared directly is dropped too.

    Returns:
        Names of the dropped entries
    """
    dependencies = lockfile.get('dependencies') or {}
    dropped = [name for name in dependencies if not is_dependent_on(manifest, name)]
    for name in dropped:
        del dependencies[name]
        logger.debug(f"Dropped {name} from {LOCKFILE_NAME}")
    return dropped
