"""Read and edit .sln files (custom text format, not XML)."""

from __future__ import annotations

import codecs
import logging
import os
import re
import uuid
from dataclasses import dataclass

from projref.errors import PathNotFoundError, ProjectLoadError

logger = logging.getLogger(__name__)


@dataclass
class SolutionProject:
    """A project entry from a .sln file."""
    type_guid: str
    name: str
    path: str
    project_guid: str

    @property
    def is_folder(self) -> bool:
        return self.type_guid == SOLUTION_FOLDER_GUID


# Regex to match Project lines in .sln files
# Project("{TYPE-GUID}") = "Name", "Path\To\Project.csproj", "{PROJECT-GUID}"
_PROJECT_RE = re.compile(
    r'^Project\(\"\{([^}]+)\}\"\)\s*=\s*\"([^\"]+)\"\s*,\s*\"([^\"]+)\"\s*,\s*\"\{([^}]+)\}\"',
)
# {CHILD-GUID} = {PARENT-GUID} inside GlobalSection(NestedProjects)
_NESTED_RE = re.compile(r"^\s*\{([^}]+)\}\s*=\s*\{([^}]+)\}\s*$")

# Known project type GUIDs
CSHARP_GUID = "FAE04EC0-301F-11D3-BF4B-00C04F79EFBC"
VBNET_GUID = "F184B08F-C81C-45F6-A57F-5ABD9991F28F"
FSHARP_GUID = "F2A71F9B-5D33-465A-A702-920D77279786"
SOLUTION_FOLDER_GUID = "2150E333-8FDC-42A3-9474-1A3956D46DE8"

_TYPE_GUIDS = {
    ".csproj": CSHARP_GUID,
    ".vbproj": VBNET_GUID,
    ".fsproj": FSHARP_GUID,
}


def _new_guid() -> str:
    return str(uuid.uuid4()).upper()


class SolutionFile:
    """A .sln file kept as lines so edits leave the rest of it untouched."""

    def __init__(self, path: str, lines: list[str], newline: str = "\r\n", bom: bool = True) -> None:
        self.path = os.path.abspath(path)
        self.lines = lines
        self.newline = newline
        self.bom = bom

    @classmethod
    def load(cls, path: str) -> SolutionFile:
        if not os.path.isfile(path):
            raise PathNotFoundError(f"Solution file does not exist: {path}")
        try:
            with open(path, "rb") as f:
                data = f.read()
            text = data.decode("utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            raise ProjectLoadError(f"Cannot read solution {path}: {e}") from e

        newline = "\r\n" if "\r\n" in text else "\n"
        return cls(
            path,
            text.splitlines(),
            newline=newline,
            bom=data.startswith(codecs.BOM_UTF8),
        )

    @property
    def root_dir(self) -> str:
        return os.path.dirname(self.path)

    def entries(self) -> list[SolutionProject]:
        """All Project entries, solution folders included."""
        projects = []
        for line in self.lines:
            match = _PROJECT_RE.match(line)
            if not match:
                continue
            projects.append(SolutionProject(
                type_guid=match.group(1).upper(),
                name=match.group(2),
                # Normalise path separators
                path=match.group(3).replace("\\", "/"),
                project_guid=match.group(4).upper(),
            ))
        return projects

    def projects(self) -> list[SolutionProject]:
        """Project entries without solution folders (virtual projects for organising)."""
        return [p for p in self.entries() if not p.is_folder]

    def nested(self) -> dict[str, str]:
        """child guid -> parent folder guid from the NestedProjects section."""
        result: dict[str, str] = {}
        in_section = False
        for line in self.lines:
            stripped = line.strip()
            if stripped.startswith("GlobalSection(NestedProjects)"):
                in_section = True
                continue
            if in_section and stripped == "EndGlobalSection":
                break
            if in_section:
                match = _NESTED_RE.match(line)
                if match:
                    result[match.group(1).upper()] = match.group(2).upper()
        return result

    def absolute_path(self, project: SolutionProject) -> str:
        return os.path.normpath(os.path.join(self.root_dir, project.path.replace("/", os.sep)))

    def find_folder(self, name: str) -> SolutionProject | None:
        return next((p for p in self.entries() if p.is_folder and p.name == name), None)

    def children_of(self, folder_guid: str) -> list[SolutionProject]:
        nested = self.nested()
        return [p for p in self.entries() if nested.get(p.project_guid) == folder_guid.upper()]

    def add_folder(self, name: str) -> SolutionProject:
        folder = SolutionProject(
            type_guid=SOLUTION_FOLDER_GUID,
            name=name,
            path=name,
            project_guid=_new_guid(),
        )
        self._insert_project(folder)
        logger.info(f"Added solution folder {name}")
        return folder

    def add_project(self, project_path: str, parent_guid: str | None = None) -> SolutionProject:
        """Add a project file, optionally nested in a solution folder."""
        ext = os.path.splitext(project_path)[1].lower()
        relative = os.path.relpath(os.path.abspath(project_path), self.root_dir)
        project = SolutionProject(
            type_guid=_TYPE_GUIDS.get(ext, CSHARP_GUID),
            name=os.path.splitext(os.path.basename(project_path))[0],
            path=relative.replace(os.sep, "/"),
            project_guid=_new_guid(),
        )
        self._insert_project(project)
        if parent_guid:
            self._insert_nested(project.project_guid, parent_guid)
        return project

    def _index_of(self, text: str, start: int = 0) -> int | None:
        for i in range(start, len(self.lines)):
            if self.lines[i].strip() == text:
                return i
        return None

    def _insert_project(self, project: SolutionProject) -> None:
        # .sln files always store Windows separators
        path = project.path.replace("/", "\\")
        block = [
            f'Project("{{{project.type_guid}}}") = "{project.name}", "{path}", "{{{project.project_guid}}}"',
            "EndProject",
        ]
        idx = self._index_of("Global")
        if idx is None:
            self.lines.extend(block)
        else:
            self.lines[idx:idx] = block

    def _insert_nested(self, child_guid: str, parent_guid: str) -> None:
        entry = f"\t\t{{{child_guid}}} = {{{parent_guid}}}"
        start = self._index_of("GlobalSection(NestedProjects) = preSolution")
        if start is not None:
            end = self._index_of("EndGlobalSection", start)
            if end is not None:
                self.lines.insert(end, entry)
                return

        section = ["\tGlobalSection(NestedProjects) = preSolution", entry, "\tEndGlobalSection"]
        end_global = self._index_of("EndGlobal")
        if end_global is None:
            self.lines.extend(["Global", *section, "EndGlobal"])
        else:
            self.lines[end_global:end_global] = section

    def save(self) -> None:
        """Write the solution via a temporary file, then replace the original."""
        data = (self.newline.join(self.lines) + self.newline).encode("utf-8")
        if self.bom:
            data = codecs.BOM_UTF8 + data
        tmp_path = self.path + ".tmp"
        with open(tmp_path, "wb") as f:
            f.write(data)
        os.replace(tmp_path, self.path)
        logger.debug(f"Saved solution {self.path}")


def parse_solution(sln_path: str) -> list[SolutionProject]:
    """Parse a .sln file and return project entries.

    Excludes solution folders (virtual projects for organising).
    """
    return SolutionFile.load(sln_path).projects()
