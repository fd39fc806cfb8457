"""Core modules for depstore"""

from .cascade import cascade
from .graph import Graph, GraphError, GraphInvariantError, Node, ROOT_ID
from .operations import UninstallResult, uninstall

__all__ = [
    'cascade',
    'Graph',
    'GraphError',
    'GraphInvariantError',
    'Node',
    'ROOT_ID',
    'UninstallResult',
    'uninstall',
]
