"""
Main CLI entry point for depstore

Commands with short aliases:
- depstore remove / depstore rm / depstore uninstall / depstore un
- depstore verify / depstore check
"""

import argparse
import logging
import sys
from pathlib import Path

from .. import __version__
from ..core import persistence
from ..core.config import UninstallOptions, get_modules_dir, locate_project
from ..core.graph import GraphError
from ..core.lock import LockError
from ..core.manifest import ManifestError
from ..core.operations import uninstall
from . import colors


class AliasedSubParsersAction(argparse._SubParsersAction):
    """Custom action to support command aliases in argparse."""

    def add_parser(self, name, **kwargs):
        aliases = kwargs.pop('aliases', [])
        parser = super().add_parser(name, **kwargs)

        for alias in aliases:
            self._name_parser_map[alias] = parser

        return parser


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with all commands and aliases."""

    parser = argparse.ArgumentParser(
        prog='depstore',
        description='Dependency store maintenance for a shared package store',
        epilog='Use "depstore <command> --help" for command-specific help.'
    )

    parser.add_argument(
        '--version', '-V',
        action='version',
        version=f'depstore {__version__}'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Verbose output'
    )
    parser.add_argument(
        '--quiet', '-q',
        action='store_true',
        help='Quiet output'
    )
    parser.add_argument(
        '--nocolor',
        action='store_true',
        help='Disable colored output'
    )

    # Project selection, shared by every command
    project_parent = argparse.ArgumentParser(add_help=False)
    project_parent.add_argument(
        '--prefix',
        type=Path,
        help='Project directory (default: nearest directory with package.json)'
    )

    parser.register('action', 'parsers', AliasedSubParsersAction)

    subparsers = parser.add_subparsers(
        dest='command',
        title='commands',
        metavar='<command>'
    )

    # =========================================================================
    # remove
    # =========================================================================
    remove_parser = subparsers.add_parser(
        'remove', aliases=['rm', 'uninstall', 'un'],
        help='Uninstall dependencies and free unused packages',
        parents=[project_parent]
    )
    remove_parser.add_argument(
        'packages', nargs='+',
        help='Dependency names to uninstall'
    )
    save_group = remove_parser.add_mutually_exclusive_group()
    save_group.add_argument(
        '--save', '-S',
        action='store_true',
        help='Remove from dependencies in package.json'
    )
    save_group.add_argument(
        '--save-dev', '-D',
        action='store_true',
        help='Remove from devDependencies in package.json'
    )
    save_group.add_argument(
        '--save-optional', '-O',
        action='store_true',
        help='Remove from optionalDependencies in package.json'
    )
    remove_parser.add_argument(
        '--store',
        type=Path,
        help='Store directory (default: ~/.store)'
    )
    remove_parser.add_argument(
        '--lock-stale',
        type=float,
        metavar='SECONDS',
        help='Break store locks older than this (default: 60)'
    )
    remove_parser.add_argument(
        '--wait',
        action='store_true',
        help='Wait for the store lock instead of failing'
    )
    remove_parser.add_argument(
        '--jobs', '-j',
        type=int,
        help='Parallel deletions (default: 4)'
    )

    # =========================================================================
    # verify
    # =========================================================================
    subparsers.add_parser(
        'verify', aliases=['check'],
        help='Check the dependency graph for inconsistencies',
        parents=[project_parent]
    )

    return parser


def cmd_remove(args) -> int:
    """Handle remove command."""
    options = UninstallOptions(
        prefix=args.prefix,
        store_path=args.store,
        lock_stale_duration=args.lock_stale,
        max_workers=args.jobs,
        save=args.save,
        save_dev=args.save_dev,
        save_optional=args.save_optional,
        wait_for_lock=args.wait,
    )

    try:
        result = uninstall(args.packages, options)
    except (ManifestError, LockError, GraphError) as e:
        print(colors.error(f"Error: {e}"), file=sys.stderr)
        return 1

    if not args.quiet:
        if result.removed:
            print(colors.bold(f"Removed {colors.count(len(result.removed))} package(s):"))
            for pkg_id in result.removed:
                print(f"  {colors.pkg_remove(pkg_id)}")
        else:
            print(colors.info("Nothing to remove from the store."))
        if result.dropped_lockfile_entries:
            print(colors.dim(f"  Dropped from lockfile: "
                             f"{', '.join(result.dropped_lockfile_entries)}"))

    for failure in result.failures:
        print(colors.warning(f"Warning: {failure.target}: {failure.path}: {failure.error}"),
              file=sys.stderr)
    if result.error:
        print(colors.error(f"Error: {result.error}"), file=sys.stderr)

    return 0 if result.success else 1


def cmd_verify(args) -> int:
    """Handle verify command."""
    root = locate_project(args.prefix)
    if root is None:
        print(colors.error("Error: no package.json found"), file=sys.stderr)
        return 1

    try:
        graph = persistence.load(get_modules_dir(root), project_root=root)
    except GraphError as e:
        print(colors.error(f"Error: {e}"), file=sys.stderr)
        return 1

    problems = graph.validate()
    if not problems:
        if not args.quiet:
            print(colors.success(f"Graph OK ({len(graph)} entries)"))
        return 0

    print(colors.error(f"{len(problems)} problem(s) found:"))
    for problem in problems:
        print(f"  {problem}")
    return 1


def main(argv=None) -> int:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    # Configure logging based on verbose flag
    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format='%(name)s - %(levelname)s - %(message)s',
            stream=sys.stderr
        )

    colors.init(nocolor=args.nocolor)

    if not args.command:
        parser.print_help()
        return 1

    if args.command in ('remove', 'rm', 'uninstall', 'un'):
        return cmd_remove(args)
    elif args.command in ('verify', 'check'):
        return cmd_verify(args)

    parser.print_help()
    return 1


if __name__ == '__main__':
    sys.exit(main())
