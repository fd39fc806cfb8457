"""Executable (bin) discovery from a package manifest."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Command:
    """An executable declared by a package."""
    name: str
    path: Path


def _strip_scope(name: str) -> str:
    """'@scope/tool' -> 'tool'."""
    if name.startswith('@') and '/' in name:
        return name.split('/', 1)[1]
    return name


def _is_safe_name(name: str) -> bool:
    if not name or name in ('.', '..'):
        return False
    return '/' not in name and '\\' not in name and os.sep not in name


def resolve_executables(manifest: dict, install_path: Path) -> List[Command]:
    """List the commands a package declares.

    Handles the three manifest forms:
        "bin": "cli.js"                  -> one command named after the package
        "bin": {"a": "a.js", ...}        -> one command per entry
        "directories": {"bin": "bin"}    -> every file below that directory

    Args:
        manifest: Parsed package.json of the package
        install_path: Directory the package is installed in

    Returns:
        List of Command (unsafe names are skipped)
    """
    install_path = Path(install_path)
    commands = []
    bin_field = manifest.get('bin')

    if isinstance(bin_field, str):
        name = _strip_scope(manifest.get('name') or '')
        commands.append(Command(name, install_path / bin_field))
    elif isinstance(bin_field, dict):
        for name, rel_path in bin_field.items():
            commands.append(Command(name, install_path / str(rel_path)))
    else:
        directories = manifest.get('directories')
        bin_dir_name = directories.get('bin') if isinstance(directories, dict) else None
        if bin_dir_name:
            bin_dir = install_path / bin_dir_name
            if bin_dir.is_dir():
                for file_path in sorted(p for p in bin_dir.rglob('*') if p.is_file()):
                    commands.append(Command(file_path.name, file_path))

    safe = []
    for command in commands:
        if not _is_safe_name(command.name):
            logger.warning(f"Ignoring invalid command name {command.name!r} "
                           f"in {install_path}")
            continue
        safe.append(command)
    return safe
