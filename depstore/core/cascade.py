"""Cascading uninstall over the dependency graph."""

import logging
from typing import Iterable, List, Set

from .graph import Graph, GraphInvariantError

logger = logging.getLogger(__name__)


def cascade(candidate_ids: Iterable[str], graph: Graph, referrer: str) -> List[str]:
    """Remove every candidate that only `referrer` still needs.

    Removal recurses into the dependencies of each removed package, with
    the removed package as the referrer. A package shared with anything
    that stays installed is kept. The graph is modified in place.

    Args:
        candidate_ids: Package ids that `referrer` depends on
        graph: Graph to mutate
        referrer: Id of the node (or ROOT_ID) giving up the candidates

    Returns:
        Removed package ids, in removal order
    """
    removed: List[str] = []
    _cascade(list(candidate_ids), graph, referrer, removed, set())
    return removed


def _cascade(candidates: List[str], graph: Graph, referrer: str,
             removed: List[str], seen: Set[str]):
    # Worklist of pending ids, consumed by full passes until one removes nothing
    worklist = list(dict.fromkeys(candidates))

    while worklist:
        pending = []
        removed_this_pass = 0

        for pkg_id in worklist:
            if pkg_id not in graph:
                if pkg_id in seen:
                    # Already freed through a deeper branch
                    continue
                raise GraphInvariantError(pkg_id)

            if not graph.is_free(pkg_id, referrer):
                pending.append(pkg_id)
                continue

            children = graph.children(pkg_id)
            graph.remove_node(pkg_id)
            removed.append(pkg_id)
            seen.add(pkg_id)
            removed_this_pass += 1
            logger.debug(f"Removed {pkg_id} (last referrer: {referrer})")

            # Children that are gone already belong to a cycle back to us
            children = [child for child in children if child not in seen]
            for child in children:
                graph.detach_edge(pkg_id, child)
            _cascade(children, graph, pkg_id, removed, seen)

        if not removed_this_pass:
            break
        worklist = pending
