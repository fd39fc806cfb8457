"""
Central configuration for depstore paths and options.

Resolution order for every setting (first match wins):
    1. Explicit option (CLI flag or UninstallOptions field)
    2. Environment (DEPSTORE_STORE_PATH)
    3. .depstorerc in the project root
    4. Built-in default

Structure:
    <store>/<pkgId>/                          - Package payload
    <store>/<pkgId>/package.json              - Package manifest
    <store>/.depstore.lock                    - Store-wide lock
    <project>/package.json                    - Project manifest
    <project>/shrinkwrap.yaml                 - Lockfile
    <project>/node_modules/.graph.json        - Dependency graph
    <project>/node_modules/<name>             - Project-level installed copy
    <project>/node_modules/.bin/<cmd>         - Executable stubs

.depstorerc format (optional, one setting per line):
    store_path=~/.store
    lock_stale_duration=60
    max_workers=4
    # Comments start with #
"""

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Config file name
LOCAL_CONFIG_FILE = ".depstorerc"

# Environment override for the store location
STORE_PATH_ENV = "DEPSTORE_STORE_PATH"

# Defaults
DEFAULT_STORE_PATH = Path.home() / ".store"
DEFAULT_LOCK_STALE_DURATION = 60.0  # seconds
DEFAULT_MAX_WORKERS = 4

MANIFEST_FILE = "package.json"
MODULES_DIR = "node_modules"
BIN_DIR = ".bin"


@dataclass
class UninstallOptions:
    """Options for the uninstall operation. None means "not set"."""
    prefix: Optional[Path] = None
    store_path: Optional[Path] = None
    lock_stale_duration: Optional[float] = None
    max_workers: Optional[int] = None
    save: bool = False
    save_dev: bool = False
    save_optional: bool = False
    wait_for_lock: bool = False


def find_project_root(start: Path = None) -> Optional[Path]:
    """Find the nearest directory holding a package.json.

    Args:
        start: Directory to start from (default: current directory)

    Returns:
        Project root path, or None if no manifest is found
    """
    current = Path(start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        if (directory / MANIFEST_FILE).is_file():
            return directory
    return None


def locate_project(prefix: Path = None) -> Optional[Path]:
    """Find the project an operation applies to.

    An explicit prefix is the project itself: it is used as given and never
    widened to an ancestor. Without one, the nearest project above the
    current directory is used.

    Returns:
        Project root path, or None if it holds no package.json
    """
    if prefix is None:
        return find_project_root()
    root = Path(prefix).resolve()
    return root if (root / MANIFEST_FILE).is_file() else None


def read_local_config(project_root: Path) -> dict:
    """Read .depstorerc from the project root if it exists.

    Returns:
        Dict with config values (empty if the file is absent or unreadable)
    """
    config_path = project_root / LOCAL_CONFIG_FILE
    if not config_path.exists():
        return {}

    config = {}
    try:
        with open(config_path) as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith('#'):
                    continue
                if '=' in line:
                    key, value = line.split('=', 1)
                    config[key.strip()] = value.strip()
    except OSError as e:
        logger.warning(f"Cannot read {config_path}: {e}")
        return {}

    return config


def _to_float(value: str, key: str, default: float) -> float:
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Invalid {key} value {value!r}, using {default}")
        return default


def _to_int(value: str, key: str, default: int) -> int:
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Invalid {key} value {value!r}, using {default}")
        return default


def resolve_options(options: UninstallOptions = None) -> UninstallOptions:
    """Fill every unset option from environment, .depstorerc or defaults.

    Without a prefix, the project is searched upwards from the current
    directory. An explicit prefix is kept as given.
    """
    options = replace(options) if options else UninstallOptions()

    project_root = locate_project(options.prefix)
    start = Path(options.prefix) if options.prefix else Path.cwd()
    options.prefix = project_root or start.resolve()
    local = read_local_config(project_root) if project_root else {}

    if options.store_path is None:
        env_store = os.environ.get(STORE_PATH_ENV)
        if env_store:
            options.store_path = Path(env_store)
        elif 'store_path' in local:
            # Relative paths in .depstorerc are relative to the project
            options.store_path = project_root / Path(local['store_path']).expanduser()
        else:
            options.store_path = DEFAULT_STORE_PATH
    options.store_path = Path(options.store_path).expanduser()

    if options.lock_stale_duration is None:
        options.lock_stale_duration = _to_float(
            local.get('lock_stale_duration', str(DEFAULT_LOCK_STALE_DURATION)),
            'lock_stale_duration', DEFAULT_LOCK_STALE_DURATION
        )

    if options.max_workers is None:
        options.max_workers = _to_int(
            local.get('max_workers', str(DEFAULT_MAX_WORKERS)),
            'max_workers', DEFAULT_MAX_WORKERS
        )

    return options


def get_modules_dir(project_root: Path) -> Path:
    """Get the project's node_modules directory."""
    return project_root / MODULES_DIR


def get_bin_dir(project_root: Path) -> Path:
    """Get the project's executable stub directory."""
    return project_root / MODULES_DIR / BIN_DIR
