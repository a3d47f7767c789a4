"""
KEYSTONE LOCATION TRACKING - From Field Paths to File Positions

Maps a field path inside a YAML document to the line and column where it
is written, so diagnostics can point at the exact spot.

Paths use dots for mapping keys and brackets for list indices:
    "title"
    "tags[0]"
    "content.sections[0].blocks[2].type"
    "[0].id"                              (document is a list)

get_location() points at the key (or the list element);
get_value_location() points at the value. A path that cannot be resolved
yields a location carrying only the file, with line 0.

Positions come from PyYAML's composed node tree. PyYAML marks are 0-based;
Location is 1-based.
"""
import re
from pathlib import Path
from typing import List, Optional, Tuple, Union

import yaml

from core.schemas import Diagnostic, Location
from infrastructure.diagnostics import DiagnosticError

PathSegment = Union[str, int]

_SEGMENT_PATTERN = re.compile(r"([^.\[\]]+)|\[(\d+)\]")


def parse_path(path: str) -> List[PathSegment]:
    """Split "a.b[0].c" into ["a", "b", 0, "c"]."""
    segments: List[PathSegment] = []
    for match in _SEGMENT_PATTERN.finditer(path):
        key, index = match.groups()
        segments.append(key if key is not None else int(index))
    return segments


def _mark_location(file_path: str, node: yaml.Node) -> Location:
    mark = node.start_mark
    return Location(file=file_path, line=mark.line + 1, column=mark.column + 1)


class LocationTracker:
    """
    Resolves field paths against one YAML document.

    Raises:
        DiagnosticError: E066 if the content is not valid YAML
    """

    def __init__(self, content: Union[str, bytes], file_path: str = ""):
        if isinstance(content, bytes):
            content = content.decode("utf-8")
        self.file_path = file_path
        self.content = content
        try:
            self._root: Optional[yaml.Node] = yaml.compose(content, Loader=yaml.SafeLoader)
        except yaml.YAMLError as e:
            mark = getattr(e, "problem_mark", None)
            location = Location(file=file_path)
            if mark is not None:
                location = Location(file=file_path, line=mark.line + 1, column=mark.column + 1)
            raise DiagnosticError(Diagnostic(
                code="E066",
                summary="YAML parse error",
                detail=str(getattr(e, "problem", None) or e),
                location=location,
            )) from e

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "LocationTracker":
        path = Path(path)
        return cls(path.read_text(encoding="utf-8"), str(path))

    def get_location(self, path: str) -> Location:
        """Position of the key (or list element) named by the path."""
        resolved = self._resolve(path)
        if resolved is None:
            return Location(file=self.file_path)
        key_node, _ = resolved
        return _mark_location(self.file_path, key_node)

    def get_value_location(self, path: str) -> Location:
        """Position of the value named by the path."""
        resolved = self._resolve(path)
        if resolved is None:
            return Location(file=self.file_path)
        _, value_node = resolved
        return _mark_location(self.file_path, value_node)

    def _resolve(self, path: str) -> Optional[Tuple[yaml.Node, yaml.Node]]:
        segments = parse_path(path)
        node = self._root
        if node is None or not segments:
            return None

        anchor: Optional[yaml.Node] = None
        for segment in segments:
            if isinstance(segment, int):
                if not isinstance(node, yaml.SequenceNode) or segment >= len(node.value):
                    return None
                node = node.value[segment]
                anchor = node
            else:
                if not isinstance(node, yaml.MappingNode):
                    return None
                for key_node, value_node in node.value:
                    if isinstance(key_node, yaml.ScalarNode) and key_node.value == segment:
                        anchor, node = key_node, value_node
                        break
                else:
                    return None
        return anchor, node


# =============================================================================
# SOURCE EXCERPTS
# =============================================================================

def extract_context(content: str, loc: Location, before: int = 2, after: int = 2) -> List[Tuple[int, str]]:
    """
    Lines around a location as (line number, text) pairs.

    Handles both LF and CRLF line endings. Empty when the location has no
    line or lies past the end of the content.
    """
    lines = content.splitlines()
    if loc.line <= 0 or loc.line > len(lines):
        return []
    start = max(1, loc.line - before)
    end = min(len(lines), loc.line + after)
    return [(n, lines[n - 1]) for n in range(start, end + 1)]


def highlight_column(column: int, length: int = 1) -> str:
    """A caret marker under a 1-based column, e.g. '    ^~~'."""
    if column <= 0:
        return ""
    return " " * (column - 1) + "^" + "~" * max(0, length - 1)
