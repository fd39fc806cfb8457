"""
package.json handling

Reads package manifests (project and store packages) and removes
dependency names from a project manifest.
"""

import json
import logging
import os
import tempfile
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional, Tuple

from .config import MANIFEST_FILE

logger = logging.getLogger(__name__)


class SaveType(Enum):
    """Dependency field of the project manifest to edit."""
    DIRECT = 'dependencies'
    DEV = 'devDependencies'
    OPTIONAL = 'optionalDependencies'


DEPENDENCY_FIELDS = tuple(save_type.value for save_type in SaveType)


class ManifestError(Exception):
    """Raised when a manifest cannot be read or written."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class ManifestNotFoundError(ManifestError):
    """Raised when the project has no package.json."""

    def __init__(self, path: Path):
        super().__init__(path, f"No {MANIFEST_FILE} found - cannot uninstall")


def get_save_type(options) -> Optional[SaveType]:
    """Pick the manifest field to update from the save flags.

    Returns:
        SaveType, or None if the manifest should be left alone
    """
    if getattr(options, 'save_dev', False):
        return SaveType.DEV
    if getattr(options, 'save_optional', False):
        return SaveType.OPTIONAL
    if getattr(options, 'save', False):
        return SaveType.DIRECT
    return None


def read_manifest_file(path: Path) -> dict:
    """Read and parse a package.json file."""
    try:
        with open(path, encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ManifestError(path, "not found") from None
    except (OSError, ValueError) as e:
        raise ManifestError(path, str(e)) from e

    if not isinstance(data, dict):
        raise ManifestError(path, "manifest is not a JSON object")
    return data


def read_manifest(pkg_dir: Path) -> dict:
    """Read the package.json of a package directory."""
    return read_manifest_file(Path(pkg_dir) / MANIFEST_FILE)


def write_manifest(path: Path, manifest: dict):
    """Write a package.json atomically (2-space indent, trailing newline)."""
    path = Path(path)
    content = json.dumps(manifest, indent=2, ensure_ascii=False) + '\n'
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f'.{path.name}.')
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(content)
        os.replace(tmp_name, path)
    except OSError as e:
        Path(tmp_name).unlink(missing_ok=True)
        raise ManifestError(path, str(e)) from e


def remove_dependency_names(manifest_path: Path, names: Iterable[str],
                            save_type: SaveType) -> Tuple[dict, bool]:
    """Remove dependency names from one field of a project manifest.

    Args:
        manifest_path: Path to package.json
        names: Dependency names to remove
        save_type: Field to edit

    Returns:
        Tuple of (manifest, written). The file is written back only if at
        least one name was declared in the field.
    """
    manifest = read_manifest_file(manifest_path)
    field = manifest.get(save_type.value)
    if not isinstance(field, dict):
        return manifest, False

    removed = [name for name in dict.fromkeys(names) if name in field]
    if not removed:
        return manifest, False
    for name in removed:
        del field[name]

    logger.debug(f"Removed {', '.join(removed)} from {save_type.value}")
    write_manifest(manifest_path, manifest)
    return manifest, True


def is_dependent_on(manifest: dict, name: str) -> bool:
    """True if the manifest declares `name` in any dependency field.

    Only direct declarations are consulted.
    """
    return any(
        isinstance(manifest.get(field), dict) and name in manifest[field]
        for field in DEPENDENCY_FIELDS
    )
