"""Terminal colors for code map listings.

Provides ANSI color support with automatic detection of terminal capabilities.
Respects the NO_COLOR environment variable (https://no-color.org/).

Example:
    >>> from codemap.colors import get_colors
    >>> c = get_colors()
    >>> print(c.path("src/main.c") + ":" + c.line("42"))
"""

import os
import sys
import threading


class Colors:
    """ANSI color helper with automatic terminal detection.

    Attributes:
        enabled: Whether colors are enabled (auto-detected or manually set).
    """

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"

    def __init__(self, enabled: bool = None):
        if enabled is not None:
            self.enabled = enabled
        else:
            self.enabled = self._should_enable_colors()

    @staticmethod
    def _should_enable_colors() -> bool:
        if os.environ.get("NO_COLOR"):
            return False
        if os.environ.get("FORCE_COLOR"):
            return True
        if not hasattr(sys.stdout, "isatty") or not sys.stdout.isatty():
            return False
        return os.environ.get("TERM", "") != "dumb"

    def _colorize(self, text: str, *codes: str) -> str:
        if not self.enabled:
            return text
        return f"{''.join(codes)}{text}{self.RESET}"

    def path(self, text: str) -> str:
        """File paths."""
        return self._colorize(text, self.CYAN)

    def line(self, text: str) -> str:
        """Line numbers."""
        return self._colorize(text, self.YELLOW)

    def symbol(self, text: str) -> str:
        """Symbol names."""
        return self._colorize(text, self.BOLD)

    def kind(self, text: str) -> str:
        """Symbol types."""
        return self._colorize(text, self.MAGENTA)

    def marked(self, text: str) -> str:
        """Marked entries."""
        return self._colorize(text, self.BOLD, self.GREEN)

    def dim(self, text: str) -> str:
        """Hidden entries and hints."""
        return self._colorize(text, self.DIM)

    def success(self, text: str) -> str:
        return self._colorize(text, self.BOLD, self.GREEN)

    def error(self, text: str) -> str:
        return self._colorize(text, self.BOLD, self.RED)

    def warning(self, text: str) -> str:
        return self._colorize(text, self.YELLOW)


_colors = None
_colors_lock = threading.Lock()


def get_colors(no_color: bool = False) -> Colors:
    """Get the shared Colors instance, or a disabled one.

    Args:
        no_color: If True, return a new disabled Colors instance.
    """
    global _colors

    if no_color:
        return Colors(enabled=False)

    if _colors is None:
        with _colors_lock:
            if _colors is None:
                _colors = Colors()
    return _colors
