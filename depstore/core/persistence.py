"""
Graph persistence

The graph is stored as JSON in <project>/node_modules/.graph.json:

    {
      ".": {"dependencies": {"a": "a@1.0.0"}},
      "a@1.0.0": {"dependencies": {"b": "b@2.0.0"}, "dependents": ["."]},
      "b@2.0.0": {"dependents": ["a@1.0.0"]}
    }

Older graphs key the project's entry by the project's filesystem path
instead of ROOT_ID. That key is rewritten on load, so the rest of the
code only ever sees ROOT_ID.
"""

import json
import logging
import os
import tempfile
from pathlib import Path

from .graph import Graph, GraphError, ROOT_ID

logger = logging.getLogger(__name__)

GRAPH_FILE = ".graph.json"


def get_graph_path(modules_dir: Path) -> Path:
    return Path(modules_dir) / GRAPH_FILE


def normalize_root_key(data: dict, project_root: Path) -> dict:
    """Rewrite a legacy path-keyed project entry to ROOT_ID.

    The path is also replaced wherever it appears as a dependent. When
    the graph also has a ROOT_ID entry, the path-keyed entry wins.
    """
    legacy_key = str(project_root)
    if legacy_key not in data or legacy_key == ROOT_ID:
        return data

    if ROOT_ID in data:
        logger.warning(f"Graph has both {legacy_key} and {ROOT_ID} entries, "
                       f"keeping {legacy_key}")
    else:
        logger.info(f"Converting legacy graph entry {legacy_key} to {ROOT_ID}")
    normalized = {}
    for pkg_id, node in data.items():
        if pkg_id == ROOT_ID:
            continue
        if isinstance(node, dict) and node.get('dependents'):
            node = dict(node)
            node['dependents'] = [
                ROOT_ID if dependent == legacy_key else dependent
                for dependent in node['dependents']
            ]
        normalized[ROOT_ID if pkg_id == legacy_key else pkg_id] = node
    return normalized


def load(modules_dir: Path, project_root: Path = None) -> Graph:
    """Load the dependency graph.

    Args:
        modules_dir: The project's node_modules directory
        project_root: Project path, used to recognize legacy root keys

    Returns:
        Graph (empty if nothing was installed yet)
    """
    path = get_graph_path(modules_dir)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.debug(f"No graph at {path}, starting empty")
        return Graph()
    except (OSError, ValueError) as e:
        raise GraphError(f"Cannot read graph {path}: {e}") from e

    if not isinstance(data, dict):
        raise GraphError(f"Cannot read graph {path}: not a JSON object")

    if project_root is not None:
        data = normalize_root_key(data, Path(project_root))
    return Graph.from_dict(data)


def save(modules_dir: Path, graph: Graph):
    """Write the graph atomically.

    The data is fsynced to a temporary file which then replaces the
    previous graph, so readers see either the old or the new graph.
    """
    modules_dir = Path(modules_dir)
    modules_dir.mkdir(parents=True, exist_ok=True)
    path = get_graph_path(modules_dir)
    content = json.dumps(graph.to_dict(), indent=2) + '\n'

    fd, tmp_name = tempfile.mkstemp(dir=modules_dir, prefix=f'{GRAPH_FILE}.')
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except OSError as e:
        Path(tmp_name).unlink(missing_ok=True)
        raise GraphError(f"Cannot save graph {path}: {e}") from e
    logger.debug(f"Saved graph with {len(graph)} entries to {path}")
