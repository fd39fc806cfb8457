"""
Store pruning

Deletes what uninstalled packages leave on disk:
- executable stubs in <project>/node_modules/.bin
- project-level installed copies in <project>/node_modules/<name>
- package payloads in <store>/<pkgId>

Deletions run in a thread pool. A failed deletion is recorded in the
PruneReport and never cancels the others.
"""

import logging
import shutil
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from .bins import Command, resolve_executables
from .config import DEFAULT_MAX_WORKERS, get_bin_dir, get_modules_dir
from .manifest import ManifestError, read_manifest

logger = logging.getLogger(__name__)


@dataclass
class PruneFailure:
    """A deletion (or manifest read) that failed."""
    target: str
    path: Path
    error: str


@dataclass
class PruneReport:
    """Outcome of a batch of deletions."""
    removed: List[Path] = field(default_factory=list)
    missing: List[Path] = field(default_factory=list)
    failures: List[PruneFailure] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failures

    def merge(self, other: 'PruneReport') -> 'PruneReport':
        self.removed.extend(other.removed)
        self.missing.extend(other.missing)
        self.failures.extend(other.failures)
        return self


def remove_path(path: Path) -> bool:
    """Delete a file, symlink or directory tree.

    Returns:
        True if something was deleted, False if the path did not exist
    """
    if path.is_symlink() or path.is_file():
        path.unlink()
        return True
    if path.is_dir():
        shutil.rmtree(path)
        return True
    if path.exists():
        # Sockets, fifos and the like
        path.unlink()
        return True
    return False


def _child_path(parent: Path, name: str) -> Optional[Path]:
    """Join name under parent, refusing names that would escape it."""
    relative = Path(name)
    if not name or relative.is_absolute() or '..' in relative.parts:
        return None
    return parent / relative


class StorePruner:
    """Removes payloads and stubs of uninstalled packages."""

    def __init__(self, store_path: Path, project_root: Path,
                 max_workers: int = DEFAULT_MAX_WORKERS,
                 manifest_reader: Callable[[Path], dict] = read_manifest,
                 bin_resolver: Callable[[dict, Path], List[Command]] = resolve_executables):
        """Initialize pruner.

        Args:
            store_path: Store directory holding <pkgId>/ payloads
            project_root: Project whose node_modules is pruned
            max_workers: Parallel deletions
            manifest_reader: Reads a package's manifest from its directory
            bin_resolver: Lists a package's commands from its manifest
        """
        self.store_path = Path(store_path)
        self.project_root = Path(project_root)
        self.max_workers = max(1, max_workers)
        self.manifest_reader = manifest_reader
        self.bin_resolver = bin_resolver

    @property
    def bin_dir(self) -> Path:
        return get_bin_dir(self.project_root)

    @property
    def modules_dir(self) -> Path:
        return get_modules_dir(self.project_root)

    def package_dir(self, pkg_id: str) -> Optional[Path]:
        """Store directory of a package (None for ids that escape the store)."""
        return _child_path(self.store_path, pkg_id)

    # =========================================================================
    # Batch operations
    # =========================================================================

    def remove_bins(self, pkg_ids: Iterable[str]) -> PruneReport:
        """Delete the executable stubs of each package."""
        return self._run(pkg_ids, self._remove_bins_of, self.store_path)

    def remove_from_store(self, pkg_ids: Iterable[str]) -> PruneReport:
        """Delete the store payload of each package."""
        return self._run(pkg_ids, self._remove_from_store, self.store_path)

    def remove_project_copies(self, names: Iterable[str]) -> PruneReport:
        """Delete node_modules/<name> for each top-level name."""
        return self._run(names, self._remove_project_copy, self.modules_dir)

    # =========================================================================
    # Per-item workers
    # =========================================================================

    def _remove_bins_of(self, pkg_id: str) -> PruneReport:
        report = PruneReport()
        pkg_dir = self.package_dir(pkg_id)
        if pkg_dir is None:
            report.failures.append(PruneFailure(pkg_id, self.store_path, "invalid package id"))
            return report

        try:
            manifest = self.manifest_reader(pkg_dir)
        except ManifestError as e:
            # No manifest: no known executables, or a half-removed package
            logger.warning(f"Cannot read manifest of {pkg_id}: {e.reason}")
            report.failures.append(PruneFailure(pkg_id, e.path, e.reason))
            return report

        for command in self.bin_resolver(manifest, pkg_dir):
            report.merge(self._delete(pkg_id, self.bin_dir / command.name))
        return report

    def _remove_from_store(self, pkg_id: str) -> PruneReport:
        pkg_dir = self.package_dir(pkg_id)
        if pkg_dir is None:
            return PruneReport(failures=[
                PruneFailure(pkg_id, self.store_path, "invalid package id")
            ])
        return self._delete(pkg_id, pkg_dir)

    def _remove_project_copy(self, name: str) -> PruneReport:
        path = _child_path(self.modules_dir, name)
        if path is None:
            return PruneReport(failures=[
                PruneFailure(name, self.modules_dir, "invalid dependency name")
            ])
        return self._delete(name, path)

    def _delete(self, target: str, path: Path) -> PruneReport:
        report = PruneReport()
        try:
            if remove_path(path):
                logger.debug(f"Deleted {path}")
                report.removed.append(path)
            else:
                report.missing.append(path)
        except OSError as e:
            logger.warning(f"Failed to delete {path}: {e}")
            report.failures.append(PruneFailure(target, path, str(e)))
        return report

    def _run(self, items: Iterable[str], worker: Callable[[str], PruneReport],
             base_dir: Path) -> PruneReport:
        """Run worker over items in parallel and merge the reports.

        Unexpected worker errors are recorded against the item's path
        under base_dir.
        """
        items = list(dict.fromkeys(items))
        report = PruneReport()
        if not items:
            return report

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {executor.submit(worker, item): item for item in items}
            for future in as_completed(futures):
                item = futures[future]
                try:
                    report.merge(future.result())
                except Exception as e:
                    logger.warning(f"Pruning {item} failed: {e}")
                    path = _child_path(base_dir, item) or base_dir
                    report.failures.append(PruneFailure(item, path, str(e)))
        return report
