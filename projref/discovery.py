"""Walking a directory tree for MSBuild project files."""

from __future__ import annotations

import os
from collections.abc import Iterable, Iterator

from projref.config import DEFAULT_IGNORE, PROJECT_EXTENSIONS, ProjectRecord


def _should_ignore(name: str, ignore_set: Iterable[str]) -> bool:
    """Check if a directory name matches ignore patterns."""
    return name in ignore_set


def is_project_file(filename: str, extensions: Iterable[str] = PROJECT_EXTENSIONS) -> bool:
    ext = os.path.splitext(filename)[1].lower()
    return ext in extensions


def project_name(path: str) -> str:
    """Project name as MSBuild sees it: the file name without extension."""
    return os.path.splitext(os.path.basename(path))[0]


def iter_project_files(
    root: str,
    extensions: Iterable[str] = PROJECT_EXTENSIONS,
    ignore: Iterable[str] | None = None,
) -> Iterator[str]:
    """Yield absolute paths of project files below ``root``.

    Order is deterministic: a directory's own files sorted by name come
    before its sub-directories, which are visited sorted by name.
    Errors from the walk propagate instead of being skipped.
    """
    ignore_set = set(DEFAULT_IGNORE if ignore is None else ignore)
    extensions = tuple(e.lower() for e in extensions)

    def _raise(err: OSError) -> None:
        raise err

    for dirpath, dirnames, filenames in os.walk(os.path.abspath(root), onerror=_raise):
        # Filter ignored directories in-place
        dirnames[:] = [
            d for d in sorted(dirnames)
            if not _should_ignore(d, ignore_set)
        ]

        for filename in sorted(filenames):
            if is_project_file(filename, extensions):
                yield os.path.join(dirpath, filename)


def iter_project_records(
    root: str,
    extensions: Iterable[str] = PROJECT_EXTENSIONS,
    ignore: Iterable[str] | None = None,
) -> Iterator[ProjectRecord]:
    for path in iter_project_files(root, extensions, ignore):
        yield ProjectRecord(name=project_name(path), path=path)
