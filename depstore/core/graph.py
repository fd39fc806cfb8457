"""
Dependency graph model

The graph maps package ids (plus the project itself, under ROOT_ID) to
nodes. Each node records what it depends on and who depends on it:

    <pkgId>:
        dependencies: {name: pkgId, ...}   - outgoing edges
        dependents:   {pkgId | ROOT_ID}     - referrers

Empty collections are never kept: a node with nothing in `dependencies`
or `dependents` has the field set to None (and omitted when persisted).
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Set

logger = logging.getLogger(__name__)

# Canonical key of the project's own entry
ROOT_ID = '.'


class GraphError(Exception):
    """Raised when a graph cannot be read or used."""


class GraphInvariantError(GraphError):
    """Raised when the graph references a node that does not exist.

    This means the store state is corrupted; it is never retried.
    """

    def __init__(self, pkg_id: str, message: str = None):
        self.pkg_id = pkg_id
        super().__init__(message or f"Graph invariant violated: no node for '{pkg_id}'")


@dataclass
class Node:
    """A graph entry. None means the field is absent."""
    dependencies: Optional[Dict[str, str]] = None
    dependents: Optional[Set[str]] = None

    @classmethod
    def from_dict(cls, data: dict) -> 'Node':
        if not isinstance(data, dict):
            raise GraphError(f"Invalid graph node: {data!r}")
        dependencies = data.get('dependencies') or None
        dependents = data.get('dependents') or None
        if dependencies is not None and not isinstance(dependencies, dict):
            raise GraphError(f"Invalid dependencies field: {dependencies!r}")
        if dependents is not None and (
                not isinstance(dependents, (list, tuple, set))
                or not all(isinstance(d, str) for d in dependents)):
            raise GraphError(f"Invalid dependents field: {dependents!r}")
        return cls(
            dependencies=dict(dependencies) if dependencies else None,
            dependents=set(dependents) if dependents else None,
        )

    def to_dict(self) -> dict:
        data = {}
        if self.dependencies:
            data['dependencies'] = dict(self.dependencies)
        if self.dependents:
            data['dependents'] = sorted(self.dependents)
        return data


class Graph:
    """In-memory dependency graph.

    Only the uninstall engine mutates it, and only by removing nodes and
    edges. Lookups of ids that are not in the graph raise
    GraphInvariantError.
    """

    def __init__(self, nodes: Dict[str, Node] = None):
        self.nodes: Dict[str, Node] = nodes if nodes is not None else {}

    # =========================================================================
    # Mapping helpers
    # =========================================================================

    def __contains__(self, pkg_id: str) -> bool:
        return pkg_id in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[str]:
        return iter(self.nodes)

    def node(self, pkg_id: str) -> Node:
        """Get a node, failing hard if it is missing."""
        try:
            return self.nodes[pkg_id]
        except KeyError:
            raise GraphInvariantError(pkg_id) from None

    @property
    def root(self) -> Optional[Node]:
        return self.nodes.get(ROOT_ID)

    def ensure_root(self) -> Node:
        """Return the root node, creating an empty one if needed.

        The store may have no record of the project at all, e.g. a
        freshly cloned project that was never installed.
        """
        if ROOT_ID not in self.nodes:
            self.nodes[ROOT_ID] = Node()
        return self.nodes[ROOT_ID]

    # =========================================================================
    # Edge and node mutators
    # =========================================================================

    def detach_edge(self, referrer: str, target: str):
        """Remove referrer from target's dependents."""
        node = self.node(target)
        if not node.dependents or referrer not in node.dependents:
            logger.debug(f"{referrer} is not a dependent of {target}, nothing to detach")
            return
        node.dependents.discard(referrer)
        if not node.dependents:
            node.dependents = None

    def remove_node(self, pkg_id: str):
        """Delete a node outright. The caller checks it is free."""
        if pkg_id not in self.nodes:
            raise GraphInvariantError(pkg_id)
        del self.nodes[pkg_id]

    def is_free(self, pkg_id: str, referrer: str) -> bool:
        """True if nothing but `referrer` still depends on pkg_id."""
        dependents = self.node(pkg_id).dependents
        if not dependents:
            return True
        return len(dependents) == 1 and referrer in dependents

    def children(self, pkg_id: str) -> List[str]:
        """Distinct dependency targets of a node, in declaration order."""
        dependencies = self.node(pkg_id).dependencies or {}
        return list(dict.fromkeys(dependencies.values()))

    # =========================================================================
    # Root entry
    # =========================================================================

    def resolve_root_names(self, names: Iterable[str]) -> List[str]:
        """Map top-level dependency names to package ids.

        Names the project does not depend on are dropped.
        """
        dependencies = self.ensure_root().dependencies or {}
        pkg_ids = []
        for name in names:
            pkg_id = dependencies.get(name)
            if pkg_id is None:
                logger.debug(f"{name} is not a dependency of the project, skipping")
                continue
            pkg_ids.append(pkg_id)
        return pkg_ids

    def remove_root_dependencies(self, names: Iterable[str]):
        """Delete top-level dependency names from the root entry."""
        root = self.ensure_root()
        if not root.dependencies:
            return
        for name in names:
            root.dependencies.pop(name, None)
        if not root.dependencies:
            root.dependencies = None

    # =========================================================================
    # Consistency
    # =========================================================================

    def validate(self) -> List[str]:
        """Check the graph invariants.

        Returns:
            List of problem descriptions (empty if the graph is consistent)
        """
        problems = []
        for pkg_id, node in self.nodes.items():
            if node.dependencies is not None and not node.dependencies:
                problems.append(f"{pkg_id}: empty dependencies field")
            if node.dependents is not None and not node.dependents:
                problems.append(f"{pkg_id}: empty dependents field")

            if pkg_id == ROOT_ID:
                if node.dependents:
                    problems.append(f"{pkg_id}: root has dependents")
            elif not node.dependents:
                problems.append(f"{pkg_id}: not referenced by anything")

            for name, target in (node.dependencies or {}).items():
                target_node = self.nodes.get(target)
                if target_node is None:
                    problems.append(f"{pkg_id}: dependency {name} -> {target} is missing")
                elif not target_node.dependents or pkg_id not in target_node.dependents:
                    problems.append(f"{target}: does not list {pkg_id} as a dependent")
        return problems

    # =========================================================================
    # Serialization
    # =========================================================================

    @classmethod
    def from_dict(cls, data: dict) -> 'Graph':
        if not isinstance(data, dict):
            raise GraphError("Graph data must be a mapping")
        return cls({pkg_id: Node.from_dict(node or {}) for pkg_id, node in data.items()})

    def to_dict(self) -> dict:
        return {pkg_id: self.nodes[pkg_id].to_dict() for pkg_id in sorted(self.nodes)}
