"""Tests for shrinkwrap.yaml handling"""

import pytest
import yaml

from depstore.core import lockfile
from depstore.core.lockfile import LockfileError


class TestLoadSave:
    """Tests for reading and writing the lockfile."""

    def test_missing_lockfile(self, tmp_path):
        assert lockfile.load(tmp_path) == {'dependencies': {}}

    def test_round_trip_keeps_other_keys(self, tmp_path):
        data = {
            'version': 3,
            'dependencies': {'a': '1.0.0'},
            'packages': {'/a/1.0.0': {'resolution': {'integrity': 'sha1-x'}}},
        }
        lockfile.save(tmp_path, data)
        assert lockfile.load(tmp_path) == data

    def test_written_as_block_yaml(self, tmp_path):
        lockfile.save(tmp_path, {'dependencies': {'a': '1.0.0'}})
        content = (tmp_path / lockfile.LOCKFILE_NAME).read_text()
        assert content.startswith("dependencies:\n  a: ")
        assert yaml.safe_load(content) == {'dependencies': {'a': '1.0.0'}}

    def test_empty_file(self, tmp_path):
        (tmp_path / lockfile.LOCKFILE_NAME).write_text("")
        assert lockfile.load(tmp_path) == {'dependencies': {}}

    def test_malformed(self, tmp_path):
        (tmp_path / lockfile.LOCKFILE_NAME).write_text("dependencies: [unclosed\n")
        with pytest.raises(LockfileError):
            lockfile.load(tmp_path)

    def test_not_a_mapping(self, tmp_path):
        (tmp_path / lockfile.LOCKFILE_NAME).write_text(yaml.safe_dump(['a', 'b']))
        with pytest.raises(LockfileError):
            lockfile.load(tmp_path)


class TestPrune:
    """Tests for dropping undeclared entries."""

    def test_drops_undeclared_only(self):
        data = {'dependencies': {'a': '1.0.0', 'b': '2.0.0', 'c': '3.0.0'}}
        manifest = {'dependencies': {'a': '^1'}, 'devDependencies': {'c': '^3'}}

        dropped = lockfile.prune_undeclared(data, manifest)

        assert dropped == ['b']
        assert data['dependencies'] == {'a': '1.0.0', 'c': '3.0.0'}

    def test_transitive_entry_is_dropped(self):
        # Shallow check: b is only needed through a, yet it is dropped
        data = {'dependencies': {'a': '1.0.0', 'b': '2.0.0'}}
        manifest = {'dependencies': {'a': '^1'}}

        assert lockfile.prune_undeclared(data, manifest) == ['b']
