"""Shared fixtures: a throwaway store and project on disk."""

import json
from pathlib import Path

import pytest

from depstore.core.graph import Graph


class Layout:
    """A store and a project directory under tmp_path."""

    def __init__(self, base: Path):
        self.store = base / "store"
        self.project = base / "project"
        self.store.mkdir()
        self.project.mkdir()
        self.modules = self.project / "node_modules"
        self.bin_dir = self.modules / ".bin"
        self.bin_dir.mkdir(parents=True)

    def write_manifest(self, manifest: dict):
        (self.project / "package.json").write_text(json.dumps(manifest, indent=2))

    def read_manifest(self) -> dict:
        return json.loads((self.project / "package.json").read_text())

    def add_package(self, pkg_id: str, manifest: dict = None) -> Path:
        """Create a store payload, with a package.json unless manifest is None."""
        pkg_dir = self.store / pkg_id
        pkg_dir.mkdir(parents=True)
        (pkg_dir / "index.js").write_text("module.exports = 1\n")
        if manifest is not None:
            (pkg_dir / "package.json").write_text(json.dumps(manifest))
        return pkg_dir

    def link(self, name: str, pkg_id: str) -> Path:
        """Install a project-level copy as a symlink into the store."""
        target = self.modules / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.symlink_to(self.store / pkg_id, target_is_directory=True)
        return target

    def add_stub(self, name: str) -> Path:
        stub = self.bin_dir / name
        stub.write_text("#!/bin/sh\n")
        return stub

    def write_graph(self, data: dict):
        (self.modules / ".graph.json").write_text(json.dumps(data))

    def read_graph(self) -> dict:
        return json.loads((self.modules / ".graph.json").read_text())


@pytest.fixture
def layout(tmp_path):
    return Layout(tmp_path)


@pytest.fixture
def chain_graph():
    """root -> a -> b"""
    return Graph.from_dict({
        '.': {'dependencies': {'a': 'a@1.0.0'}},
        'a@1.0.0': {'dependencies': {'b': 'b@1.0.0'}, 'dependents': ['.']},
        'b@1.0.0': {'dependents': ['a@1.0.0']},
    })


@pytest.fixture
def shared_graph():
    """root -> a -> b, and root -> b directly"""
    return Graph.from_dict({
        '.': {'dependencies': {'a': 'a@1.0.0', 'b': 'b@1.0.0'}},
        'a@1.0.0': {'dependencies': {'b': 'b@1.0.0'}, 'dependents': ['.']},
        'b@1.0.0': {'dependents': ['a@1.0.0', '.']},
    })
