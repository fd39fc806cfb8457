"""
Uninstall operation

Sequences an uninstall under the store lock:

    1. resolve names to package ids via the root entry
    2. cascade: compute and apply the removal set on the graph
    3. delete executable stubs of removed packages
    4. drop the names from the root entry
    5. save the graph                       <- commit point
    6. delete project-level copies
    7. delete store payloads
    8. update package.json and shrinkwrap.yaml (if saving)

The graph is committed before any payload is deleted: a crash after step
5 leaks disk space but never leaves the graph pointing at deleted
content. A crash before step 5 leaves everything as it was.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from . import lockfile, persistence
from .cascade import cascade
from .config import MANIFEST_FILE, UninstallOptions, get_modules_dir, resolve_options
from .graph import Graph, ROOT_ID
from .lock import with_lock
from .lockfile import LockfileError
from .manifest import (
    ManifestError, ManifestNotFoundError, get_save_type, read_manifest_file,
    remove_dependency_names,
)
from .pruner import PruneFailure, StorePruner

logger = logging.getLogger(__name__)


@dataclass
class UninstallContext:
    """State an uninstall works on. Owned by the lock holder."""
    root: Path
    store_path: Path
    manifest: dict
    graph: Graph = field(default_factory=Graph)
    lockfile: dict = field(default_factory=dict)

    @property
    def modules_dir(self) -> Path:
        return get_modules_dir(self.root)

    @property
    def manifest_path(self) -> Path:
        return self.root / MANIFEST_FILE


@dataclass
class UninstallResult:
    """Result of an uninstall operation."""
    requested: List[str]
    removed: List[str] = field(default_factory=list)
    failures: List[PruneFailure] = field(default_factory=list)
    dropped_lockfile_entries: List[str] = field(default_factory=list)
    manifest_updated: bool = False
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return not self.failures and self.error is None


def get_context(options: UninstallOptions) -> UninstallContext:
    """Locate the project and read its manifest.

    Raises:
        ManifestNotFoundError: If the project has no package.json
    """
    root = Path(options.prefix)
    manifest_path = root / MANIFEST_FILE
    if not manifest_path.is_file():
        raise ManifestNotFoundError(manifest_path)
    return UninstallContext(
        root=root,
        store_path=Path(options.store_path),
        manifest=read_manifest_file(manifest_path),
    )


def load_graph(ctx: UninstallContext):
    """Load the project's graph. Must be called with the lock held."""
    ctx.graph = persistence.load(ctx.modules_dir, project_root=ctx.root)


def uninstall(names: List[str], options: UninstallOptions = None) -> UninstallResult:
    """Uninstall top-level dependencies of a project.

    Args:
        names: Dependency names to uninstall
        options: Uninstall options (unset fields are resolved from config)

    Returns:
        UninstallResult

    Raises:
        ManifestNotFoundError: If the project has no package.json (before locking)
        LockError: If the store is locked by another live process
        GraphInvariantError: If the graph is corrupted
    """
    opts = resolve_options(options)
    ctx = get_context(opts)

    def operation() -> UninstallResult:
        load_graph(ctx)
        return uninstall_in_context(names, ctx, opts)

    return with_lock(
        ctx.store_path, operation,
        stale_duration=opts.lock_stale_duration,
        wait=opts.wait_for_lock,
    )


def uninstall_in_context(names: List[str], ctx: UninstallContext,
                         opts: UninstallOptions) -> UninstallResult:
    """Run the uninstall steps on an already loaded context."""
    names = list(dict.fromkeys(names))
    result = UninstallResult(requested=names)
    pruner = StorePruner(ctx.store_path, ctx.root, max_workers=opts.max_workers or 1)

    # 1-2. Compute the removal set on the in-memory graph
    pkg_ids = ctx.graph.resolve_root_names(names)
    result.removed = cascade(pkg_ids, ctx.graph, ROOT_ID)
    logger.info(f"Uninstalling {', '.join(names)}: "
                f"{len(result.removed)} package(s) to remove")

    # 3. Stubs first, while the payload manifests are still readable
    bins_report = pruner.remove_bins(result.removed)

    # 4-5. Commit
    ctx.graph.remove_root_dependencies(names)
    persistence.save(ctx.modules_dir, ctx.graph)

    # 6-7. Physical deletion
    copies_report = pruner.remove_project_copies(names)
    store_report = pruner.remove_from_store(result.removed)

    for report in (bins_report, copies_report, store_report):
        result.failures.extend(report.failures)
    if result.failures:
        logger.warning(f"{len(result.failures)} deletion(s) failed; "
                       f"leftover files are not referenced by the graph")

    # 8. Manifest and lockfile
    save_type = get_save_type(opts)
    if save_type:
        try:
            ctx.manifest, result.manifest_updated = remove_dependency_names(
                ctx.manifest_path, names, save_type
            )
            if not ctx.lockfile:
                ctx.lockfile = lockfile.load(ctx.root)
            result.dropped_lockfile_entries = lockfile.prune_undeclared(ctx.lockfile, ctx.manifest)
            lockfile.save(ctx.root, ctx.lockfile)
        except (ManifestError, LockfileError) as e:
            logger.error(f"Failed to update project files: {e}")
            result.error = str(e)

    return result
