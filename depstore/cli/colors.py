"""Color output support for the depstore CLI.

Color palette:
  - Red: errors and removed packages
  - Orange: warnings
  - Green: success
  - Blue: contextual information
"""

import os
import sys

# ANSI color codes
_COLORS = {
    'reset': '\033[0m',
    'bold': '\033[1m',
    'red': '\033[91m',
    'orange': '\033[93m',   # Yellow/orange (no true orange in ANSI)
    'green': '\033[92m',
    'blue': '\033[94m',
    'dim': '\033[2m',
}

# Global state
_colors_enabled = True


def init(nocolor: bool = False):
    """Initialize color support.

    Args:
        nocolor: If True, disable colors unconditionally
    """
    global _colors_enabled

    if nocolor:
        _colors_enabled = False
    elif os.environ.get('NO_COLOR'):
        # Respect NO_COLOR environment variable (https://no-color.org/)
        _colors_enabled = False
    elif not sys.stdout.isatty():
        _colors_enabled = False
    else:
        _colors_enabled = True


def _wrap(text: str, color: str) -> str:
    """Wrap text in an ANSI color code unless colors are disabled."""
    if not _colors_enabled:
        return text
    code = _COLORS.get(color, '')
    reset = _COLORS['reset']
    return f"{code}{text}{reset}"


def error(text: str) -> str:
    """Format text as error (red)."""
    return _wrap(text, 'red')


def warning(text: str) -> str:
    """Format text as warning (orange/yellow)."""
    return _wrap(text, 'orange')


def success(text: str) -> str:
    """Format text as success (green)."""
    return _wrap(text, 'green')


def info(text: str) -> str:
    """Format text as info (blue)."""
    return _wrap(text, 'blue')


def dim(text: str) -> str:
    """Format text as secondary detail (dim)."""
    return _wrap(text, 'dim')


def bold(text: str) -> str:
    """Format text in bold."""
    return _wrap(text, 'bold')


def pkg_remove(name: str) -> str:
    """Format package id for removal (red)."""
    return error(name)


def count(n: int) -> str:
    """Format a count (bold)."""
    return bold(str(n))
