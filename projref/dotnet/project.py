"""Load, edit and save .csproj/.vbproj/.fsproj files (XML with MSBuild schema)."""

from __future__ import annotations

import codecs
import copy
import logging
import os
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

from projref.errors import ProjectFileNotFoundError, ProjectLoadError

logger = logging.getLogger(__name__)

_ENCODING_RE = re.compile(rb"""\s*<\?xml[^>]*?\bencoding\s*=\s*["']([A-Za-z0-9._-]+)["']""")
# Declaration, processing instructions, comments, doctype and whitespace before the root
_PROLOG_RE = re.compile(r"(?:\s+|<\?.*?\?>|<!--.*?-->|<!DOCTYPE[^>]*>)*", re.DOTALL)
_EPILOG_RE = re.compile(r"(?:\s|<!--(?:(?!-->).)*-->|<\?(?:(?!\?>).)*\?>)*\Z", re.DOTALL)
_START_TAG_RE = re.compile(r"""<[\w.:-]+(?:\s+[\w.:-]+\s*=\s*(?:"[^"]*"|'[^']*'))*\s*/?>""")


@dataclass
class ProjectItem:
    """One MSBuild item, e.g. <PackageReference Include="Core" Version="1.0" />."""
    kind: str
    include: str
    element: ET.Element = field(repr=False, compare=False)
    parent: ET.Element = field(repr=False, compare=False)

    @property
    def version(self) -> str:
        version = self.element.get("Version", "")
        if not version:
            # Version might be a child element
            ns = ""
            if self.element.tag.startswith("{"):
                ns = self.element.tag.split("}")[0] + "}"
            ver_elem = self.element.find(f"{ns}Version")
            if ver_elem is not None and ver_elem.text:
                version = ver_elem.text.strip()
        return version


class MSBuildProject:
    """An MSBuild project file opened for item edits.

    Handles both SDK-style and legacy (namespaced) project formats. Item
    includes are taken literally; MSBuild properties are not evaluated.
    Saving keeps the encoding, BOM, line endings, root start tag and
    comments of the file as it was read, including anything before or
    after the root element.
    """

    def __init__(
        self,
        path: str,
        root: ET.Element,
        prolog: str = "",
        start_tag: str = "",
        epilog: str = "\n",
        encoding: str = "utf-8",
        bom: bool = False,
        newline: str = "\n",
    ) -> None:
        self.path = path
        self.root = root
        self.prolog = prolog
        self.start_tag = start_tag
        self.epilog = epilog
        self.encoding = encoding
        self.bom = bom
        self.newline = newline
        self.modified = False

        # Strip namespace from tags for easier querying
        self.ns = ""
        if root.tag.startswith("{"):
            self.ns = root.tag.split("}")[0] + "}"

    @classmethod
    def load(cls, path: str) -> MSBuildProject:
        path = os.path.abspath(path)
        if not os.path.isfile(path):
            raise ProjectFileNotFoundError(f"Project file does not exist: {path}")

        try:
            with open(path, "rb") as f:
                data = f.read()
        except OSError as e:
            raise ProjectLoadError(f"Cannot read {path}: {e}") from e

        bom = data.startswith(codecs.BOM_UTF8)
        encoding = "utf-8"
        if not bom:
            match = _ENCODING_RE.match(data)
            if match:
                encoding = match.group(1).decode("ascii")
        try:
            encoding = codecs.lookup(encoding).name
            text = data.decode("utf-8-sig" if bom else encoding)
        except (LookupError, UnicodeDecodeError) as e:
            raise ProjectLoadError(f"Cannot decode {path} as {encoding}: {e}") from e

        newline = "\r\n" if "\r\n" in text else "\n"
        text = text.replace("\r\n", "\n")

        # A str is always parsed as UTF-8, whatever the declaration says
        parser = ET.XMLParser(target=ET.TreeBuilder(insert_comments=True))
        try:
            parser.feed(text)
            root = parser.close()
        except ET.ParseError as e:
            raise ProjectLoadError(f"Cannot parse {path}: {e}") from e

        root_start = _PROLOG_RE.match(text).end()
        start = _START_TAG_RE.match(text, root_start)
        epilog = _EPILOG_RE.search(text, start.end() if start else root_start)

        logger.debug(f"Loaded project {path} ({encoding})")
        return cls(
            path,
            root,
            prolog=text[:root_start],
            start_tag=start.group(0) if start else "",
            epilog=epilog.group(0) if epilog else "",
            encoding=encoding,
            bom=bom,
            newline=newline,
        )

    @property
    def name(self) -> str:
        return os.path.splitext(os.path.basename(self.path))[0]

    def _item_groups(self) -> list[ET.Element]:
        return list(self.root.iter(f"{self.ns}ItemGroup"))

    def get_items(self, kind: str) -> list[ProjectItem]:
        """Items of ``kind`` in document order. Update/Remove items are skipped."""
        items = []
        for group in self._item_groups():
            for child in group:
                if child.tag != f"{self.ns}{kind}":
                    continue
                include = child.get("Include", "").strip()
                if include:
                    items.append(ProjectItem(kind=kind, include=include, element=child, parent=group))
        return items

    def remove_item(self, item: ProjectItem) -> None:
        """Remove an item; an ItemGroup left empty is removed with it."""
        _detach(item.parent, item.element)
        if len(item.parent) == 0:
            owner = self._find_parent(item.parent)
            if owner is not None:
                _detach(owner, item.parent)
        self.modified = True

    def add_item(self, kind: str, value: str) -> ProjectItem:
        """Append an item to the first ItemGroup already holding ``kind``.

        A new ItemGroup is created at the end of the project when none does.
        """
        element = ET.Element(f"{self.ns}{kind}", {"Include": value})

        group = next(
            (g for g in self._item_groups() if g.find(f"{self.ns}{kind}") is not None),
            None,
        )
        if group is None:
            group = ET.Element(f"{self.ns}ItemGroup")
            if self.root.text and not self.root.text.strip():
                indent = self.root.text.rsplit("\n", 1)[-1]
                group.text = "\n" + indent * 2
                element.tail = "\n" + indent
            group.append(element)
            _append(self.root, group)
        else:
            _append(group, element)

        self.modified = True
        return ProjectItem(kind=kind, include=value, element=element, parent=group)

    def _find_parent(self, child: ET.Element) -> ET.Element | None:
        for candidate in self.root.iter():
            for sub in candidate:
                if sub is child:
                    return candidate
        return None

    def to_string(self) -> str:
        root = self.root
        if self.ns:
            # Serialise unqualified; the original start tag carries the xmlns
            root = copy.deepcopy(self.root)
            for element in root.iter():
                if isinstance(element.tag, str) and element.tag.startswith(self.ns):
                    element.tag = element.tag[len(self.ns):]

        body = ET.tostring(root, encoding="unicode")
        if self.start_tag:
            body = _restore_start_tag(body, self.start_tag)

        text = self.prolog + body + self.epilog
        if self.newline != "\n":
            text = text.replace("\n", self.newline)
        return text

    def save(self) -> None:
        data = self.to_string().encode(self.encoding, errors="xmlcharrefreplace")
        if self.bom:
            data = codecs.BOM_UTF8 + data
        with open(self.path, "wb") as f:
            f.write(data)
        self.modified = False
        logger.debug(f"Saved project {self.path}")


def load_project(path: str) -> MSBuildProject:
    return MSBuildProject.load(path)


def _restore_start_tag(body: str, start_tag: str) -> str:
    """Put the root start tag back as it was written, attributes and all."""
    match = _START_TAG_RE.match(body)
    if match is None:
        return body
    empty_now = match.group(0).endswith("/>")
    if start_tag.endswith("/>") and not empty_now:
        start_tag = start_tag[:-2].rstrip() + ">"
    elif empty_now and not start_tag.endswith("/>"):
        start_tag = start_tag[:-1].rstrip() + " />"
    return start_tag + body[match.end():]


def _detach(parent: ET.Element, child: ET.Element) -> None:
    """Remove ``child`` while keeping the surrounding indentation intact."""
    children = list(parent)
    idx = children.index(child)
    if idx == len(children) - 1 and idx > 0:
        children[idx - 1].tail = child.tail
    parent.remove(child)


def _append(parent: ET.Element, child: ET.Element) -> None:
    """Append ``child`` as last element, indented like its siblings."""
    if len(parent):
        last = parent[-1]
        child.tail = last.tail
        last.tail = parent.text
    parent.append(child)
