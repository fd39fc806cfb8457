"""
depstore - Dependency store maintenance for a shared package store

Keeps the per-project dependency graph and the content-addressed
store in agreement:
- Reference-counted dependency graph with referrer tracking
- Cascading uninstall of packages nothing else needs
- Parallel pruning of store payloads and executable stubs
"""

__version__ = "0.3.0"
__author__ = "depstore contributors"
