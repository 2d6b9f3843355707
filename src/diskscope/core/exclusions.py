"""Exclusion patterns for directory scanning."""

from __future__ import annotations

import fnmatch
import os
from abc import ABC, abstractmethod
from collections.abc import Iterable


class ExclusionPattern(ABC):
    """Base class for exclusion patterns."""

    def __init__(self, pattern: str, case_sensitive: bool = True) -> None:
        """Initialize the exclusion pattern.

        Args:
            pattern: The pattern string
            case_sensitive: Whether pattern matching is case-sensitive
        """
        self.pattern: str = pattern
        self.case_sensitive: bool = case_sensitive

    @abstractmethod
    def matches(self, path: str) -> bool:
        """Check if the pattern matches the given absolute path.

        Args:
            path: Absolute, normalized path to check

        Returns:
            True if the pattern matches, False otherwise
        """
        pass

    @abstractmethod
    def compile(self) -> None:
        """Compile the pattern for performance optimization."""
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.pattern!r})"


class GlobPattern(ExclusionPattern):
    """Glob-style pattern matched against absolute paths.

    A pattern containing a path separator is matched against the whole
    absolute path (``/home/*/.cache``, ``*/node_modules``). A pattern without
    one is matched against the final path component only (``node_modules``,
    ``*.tmp``).
    """

    def __init__(self, pattern: str, case_sensitive: bool = True) -> None:
        """Initialize the glob pattern."""
        super().__init__(pattern, case_sensitive)
        self._compiled: str | None = None
        self._match_name: bool = False

    def compile(self) -> None:
        """Compile the glob pattern."""
        pattern = self.pattern.replace("\\", "/") if os.sep == "\\" else self.pattern
        if len(pattern) > 1:
            pattern = pattern.rstrip("/")
        self._match_name = "/" not in pattern
        self._compiled = pattern if self.case_sensitive else pattern.lower()

    def matches(self, path: str) -> bool:
        if self._compiled is None:
            self.compile()

        target = path.replace("\\", "/") if os.sep == "\\" else path
        if self._match_name:
            target = target.rsplit("/", 1)[-1]
        if not self.case_sensitive:
            target = target.lower()

        assert self._compiled is not None  # Should never be None after compile()
        return fnmatch.fnmatchcase(target, self._compiled)


class ExclusionFilter:
    """Ordered collection of glob exclusion patterns."""

    def __init__(self, patterns: Iterable[str] = (), case_sensitive: bool | None = None) -> None:
        """Initialize the exclusion filter.

        Args:
            patterns: Initial glob patterns
            case_sensitive: Whether matching is case-sensitive (defaults to the
                platform convention: insensitive on Windows)
        """
        if case_sensitive is None:
            case_sensitive = os.path.normcase("A") == "A"
        self.case_sensitive: bool = case_sensitive
        self._patterns: list[ExclusionPattern] = []
        self._compiled: bool = False
        self.add_patterns(patterns)

    def add_pattern(self, pattern: str) -> None:
        """Add a glob exclusion pattern; blank patterns are ignored."""
        pattern = pattern.strip()
        if not pattern:
            return
        self._patterns.append(GlobPattern(pattern, self.case_sensitive))
        self._compiled = False

    def add_patterns(self, patterns: Iterable[str]) -> None:
        """Add multiple glob exclusion patterns."""
        for pattern in patterns:
            self.add_pattern(pattern)

    def compile(self) -> None:
        """Compile all patterns for performance optimization."""
        for pattern in self._patterns:
            pattern.compile()
        self._compiled = True

    def should_exclude(self, path: str) -> bool:
        """Check if an absolute path should be excluded.

        Args:
            path: Absolute path to check

        Returns:
            True if any pattern matches, False otherwise
        """
        if not self._patterns:
            return False
        if not self._compiled:
            self.compile()

        return any(pattern.matches(path) for pattern in self._patterns)

    @property
    def patterns(self) -> list[str]:
        return [pattern.pattern for pattern in self._patterns]

    def __len__(self) -> int:
        return len(self._patterns)
