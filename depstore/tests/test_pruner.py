"""Tests for store pruning"""

import shutil
from pathlib import Path

import pytest

from depstore.core.pruner import PruneReport, StorePruner, remove_path


@pytest.fixture
def pruner(layout):
    return StorePruner(layout.store, layout.project, max_workers=2)


class TestRemovePath:
    """Tests for the single-path deletion helper."""

    def test_file(self, tmp_path):
        f = tmp_path / "f"
        f.write_text("x")
        assert remove_path(f) is True
        assert not f.exists()

    def test_directory_tree(self, tmp_path):
        (tmp_path / "d" / "sub").mkdir(parents=True)
        (tmp_path / "d" / "sub" / "f").write_text("x")
        assert remove_path(tmp_path / "d") is True
        assert not (tmp_path / "d").exists()

    def test_symlink_to_directory_keeps_target(self, tmp_path):
        target = tmp_path / "target"
        target.mkdir()
        (target / "keep").write_text("x")
        link = tmp_path / "link"
        link.symlink_to(target, target_is_directory=True)

        assert remove_path(link) is True
        assert not link.is_symlink()
        assert (target / "keep").exists()

    def test_missing(self, tmp_path):
        assert remove_path(tmp_path / "nothing") is False


class TestRemoveBins:
    """Tests for executable stub removal."""

    def test_removes_declared_stubs(self, layout, pruner):
        layout.add_package('a@1', {'name': 'a', 'bin': 'cli.js'})
        layout.add_package('b@1', {'name': 'b', 'bin': {'bee': 'b.js', 'buzz': 'z.js'}})
        for name in ('a', 'bee', 'buzz', 'unrelated'):
            layout.add_stub(name)

        report = pruner.remove_bins(['a@1', 'b@1'])

        assert report.success
        assert sorted(p.name for p in layout.bin_dir.iterdir()) == ['unrelated']
        assert len(report.removed) == 3

    def test_stub_never_linked_is_missing_not_failure(self, layout, pruner):
        layout.add_package('a@1', {'name': 'a', 'bin': 'cli.js'})
        report = pruner.remove_bins(['a@1'])

        assert report.success
        assert report.missing == [layout.bin_dir / 'a']

    def test_unreadable_manifest_does_not_stop_batch(self, layout, pruner):
        layout.add_package('broken@1')  # no package.json
        layout.add_package('ok@1', {'name': 'ok', 'bin': 'ok.js'})
        layout.add_stub('ok')

        report = pruner.remove_bins(['broken@1', 'ok@1'])

        assert not report.success
        assert [f.target for f in report.failures] == ['broken@1']
        assert not (layout.bin_dir / 'ok').exists()

    def test_custom_collaborators(self, layout):
        layout.add_stub('x')
        seen = []

        def reader(pkg_dir):
            seen.append(pkg_dir)
            return {'name': 'x'}

        def resolver(manifest, pkg_dir):
            from depstore.core.bins import Command
            return [Command(manifest['name'], pkg_dir / 'x.js')]

        pruner = StorePruner(layout.store, layout.project,
                             manifest_reader=reader, bin_resolver=resolver)
        report = pruner.remove_bins(['x@1'])

        assert seen == [layout.store / 'x@1']
        assert report.removed == [layout.bin_dir / 'x']

    def test_unexpected_error_recorded_at_package_dir(self, layout):
        def resolver(manifest, pkg_dir):
            raise RuntimeError("resolver exploded")

        pruner = StorePruner(layout.store, layout.project,
                             manifest_reader=lambda pkg_dir: {'name': 'x'},
                             bin_resolver=resolver)
        report = pruner.remove_bins(['x@1'])

        assert not report.success
        failure = report.failures[0]
        assert failure.target == 'x@1'
        assert failure.path == layout.store / 'x@1'
        assert 'resolver exploded' in failure.error


class TestRemoveFromStore:
    """Tests for payload removal."""

    def test_removes_payloads(self, layout, pruner):
        layout.add_package('a@1', {'name': 'a'})
        layout.add_package('b@1', {'name': 'b'})
        layout.add_package('keep@1', {'name': 'keep'})

        report = pruner.remove_from_store(['a@1', 'b@1'])

        assert report.success
        assert sorted(p.name for p in layout.store.iterdir()) == ['keep@1']

    def test_nested_package_id(self, layout, pruner):
        layout.add_package('registry.example/a/1.0.0', {'name': 'a'})
        report = pruner.remove_from_store(['registry.example/a/1.0.0'])

        assert report.success
        assert not (layout.store / 'registry.example' / 'a' / '1.0.0').exists()

    def test_already_missing(self, pruner):
        report = pruner.remove_from_store(['gone@1'])
        assert report.success
        assert len(report.missing) == 1

    def test_escaping_id_refused(self, layout, pruner):
        outside = layout.store.parent / "precious"
        outside.mkdir()

        report = pruner.remove_from_store(['../precious'])

        assert not report.success
        assert report.failures[0].error == "invalid package id"
        assert outside.exists()

    def test_failure_does_not_cancel_siblings(self, layout, pruner, monkeypatch):
        layout.add_package('a@1', {'name': 'a'})
        layout.add_package('b@1', {'name': 'b'})
        real_rmtree = shutil.rmtree

        def flaky_rmtree(path, *args, **kwargs):
            if Path(path).name == 'a@1':
                raise PermissionError("denied")
            real_rmtree(path, *args, **kwargs)

        monkeypatch.setattr('depstore.core.pruner.shutil.rmtree', flaky_rmtree)
        report = pruner.remove_from_store(['a@1', 'b@1'])

        assert [f.target for f in report.failures] == ['a@1']
        assert (layout.store / 'a@1').exists()
        assert not (layout.store / 'b@1').exists()


class TestRemoveProjectCopies:
    """Tests for node_modules/<name> removal."""

    def test_symlinked_and_scoped(self, layout, pruner):
        layout.add_package('a@1', {'name': 'a'})
        layout.add_package('s@1', {'name': '@scope/s'})
        layout.link('a', 'a@1')
        layout.link('@scope/s', 's@1')

        report = pruner.remove_project_copies(['a', '@scope/s'])

        assert report.success
        assert not (layout.modules / 'a').is_symlink()
        assert not (layout.modules / '@scope' / 's').is_symlink()
        # Store payload is untouched
        assert (layout.store / 'a@1' / 'index.js').exists()


class TestPruneReport:
    """Tests for report merging."""

    def test_merge(self):
        first = PruneReport(removed=[Path('/a')])
        second = PruneReport(missing=[Path('/b')])
        merged = first.merge(second)

        assert merged is first
        assert merged.removed == [Path('/a')]
        assert merged.missing == [Path('/b')]
        assert merged.success
