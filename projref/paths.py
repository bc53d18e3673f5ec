"""Conversion between absolute and base-relative paths."""

from __future__ import annotations

import os

from projref.errors import PathNotFoundError


def normalise_separators(path: str) -> str:
    """Rewrite both ``/`` and ``\\`` to the platform separator.

    Project files written on Windows keep backslashes in Include
    attributes, so either form has to be accepted on every platform.
    """
    return path.replace("\\", os.sep).replace("/", os.sep)


def normalise(path: str) -> str:
    """Lexically normalise a path: separators, ``.`` and ``..`` segments."""
    return os.path.normpath(normalise_separators(path))


def canonical(path: str) -> str:
    """Absolute, normalised, case-folded where the OS is case-insensitive."""
    return os.path.normcase(os.path.abspath(normalise(path)))


class PathResolver:
    """Converts paths between absolute form and relative to a base directory.

    With ``verify_base_exists`` set, every call first checks the base
    directory exists and raises PathNotFoundError otherwise. With it unset
    the conversions are purely lexical and never touch the filesystem.
    """

    def __init__(self, verify_base_exists: bool = True) -> None:
        self.verify_base_exists = verify_base_exists

    def _check_base(self, base: str) -> None:
        if self.verify_base_exists and not os.path.isdir(base):
            raise PathNotFoundError(f"The directory '{base}' does not exist.")

    def to_absolute(self, base: str, relative: str | None) -> str:
        """Resolve ``relative`` against ``base``.

        An empty relative part means "same location" and returns ``base``
        unchanged. An already rooted ``relative`` is only normalised.
        """
        self._check_base(base)

        if not relative:
            return base

        return os.path.normpath(os.path.join(normalise(base), normalise(relative)))

    def to_relative(self, base: str, target: str | None) -> str:
        """Express ``target`` relative to the directory ``base``.

        Returns "" for an empty target and when both name the same
        directory. Falls back to the normalised target when no relative
        path exists (different drives on Windows).
        """
        self._check_base(base)

        if not target:
            return ""

        base_norm = os.path.normpath(normalise(base))
        target_norm = os.path.normpath(normalise(target))

        if os.path.normcase(base_norm) == os.path.normcase(target_norm):
            return ""

        try:
            relative = os.path.relpath(target_norm, base_norm)
        except ValueError:
            return target_norm

        return "" if relative == os.curdir else relative


class BoundPathResolver:
    """A PathResolver with its base directory fixed at construction."""

    def __init__(self, base: str, resolver: PathResolver | None = None) -> None:
        self.base = base
        self.resolver = resolver or PathResolver()

    def to_absolute(self, relative: str | None) -> str:
        return self.resolver.to_absolute(self.base, relative)

    def to_relative(self, target: str | None) -> str:
        return self.resolver.to_relative(self.base, target)
