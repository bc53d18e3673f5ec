"""Exception types raised by projref."""

from __future__ import annotations


class ProjrefError(Exception):
    """Base class for every error projref raises on purpose."""


class InvalidArgumentError(ProjrefError, ValueError):
    """A blank or otherwise unusable argument was passed in."""


class PathNotFoundError(ProjrefError, FileNotFoundError):
    """A base path that must exist is missing."""


class DirectoryNotFoundError(PathNotFoundError):
    """A directory that must exist is missing."""


class ProjectFileNotFoundError(ProjrefError, FileNotFoundError):
    """A project file to load or register does not exist on disk."""


class ProjectLoadError(ProjrefError):
    """A project or solution file exists but cannot be parsed."""


class MappingFileError(ProjrefError, ValueError):
    """The package map file does not hold a package id -> path object."""
