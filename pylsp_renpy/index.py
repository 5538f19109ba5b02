"""Per-document index of script definitions.

Built by scanning a document line by line: ``def``/``class`` statements of
embedded Python as well as Ren'Py ``label``, ``screen`` and ``transform``
blocks become ``Navigation`` records, ``define``/``default`` statements
become ``DataType`` records.
"""
from __future__ import annotations
import logging
import re
from typing import Dict, Iterator, List, Mapping, Optional, Sequence

from .navigation import DataType, Navigation, get_define_literal, get_py_docs_at_line

log = logging.getLogger(__name__)

_RE_DEFINITION = re.compile(
    r'^\s*(def|class|label|screen|transform)\s+([A-Za-z_.][\w.]*)\s*(\(.*\))?\s*(?:->\s*[^:]+)?:'
)
# 'define -2 e = ...' carries an optional init priority
_RE_DEFINE = re.compile(r'^\s*(define|default)\s+(?:-?\d+\s+)?([\w.]+)\s*=\s*(.+)$')
_RE_STRING_LITERAL = re.compile(r'(["\'`])((?:\\.|(?!\1).)*)\1')


class NavigationData:
    """Definitions of one document, looked up by name."""

    def __init__(self, filename: str = ""):
        self.filename = filename
        self._locations: Dict[str, Navigation] = {}
        self._defines: Dict[str, DataType] = {}
        self._define_lines: Dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._locations) + len(self._defines)

    def __iter__(self) -> Iterator[Navigation]:
        return iter(self._locations.values())

    @staticmethod
    def filter_string_literals(line: str) -> str:
        """Blank the contents of string literals, keeping quotes and length."""
        return _RE_STRING_LITERAL.sub(
            lambda m: m.group(1) + " " * len(m.group(2)) + m.group(1), line
        )

    @classmethod
    def from_lines(cls, lines: Sequence[str], filename: str = "",
                   type_overrides: Optional[Mapping[str, List[str]]] = None) -> NavigationData:
        data = cls(filename)
        clean = [line.rstrip("\r\n") for line in lines]
        for number, line in enumerate(clean):
            match = _RE_DEFINITION.match(line)
            if match:
                kind, name, args = match.group(1), match.group(2), match.group(3) or ""
                documentation = ""
                if number + 1 < len(clean) and clean[number + 1].lstrip().startswith('"""'):
                    documentation = get_py_docs_at_line(clean, number + 1)
                data.add(Navigation(
                    source=kind,
                    keyword=name,
                    filename=filename,
                    location=number + 1,
                    documentation=documentation,
                    args=args,
                    type=kind,
                    character=match.start(2),
                ))
                continue

            match = _RE_DEFINE.match(line)
            if match:
                define, variable, rhs = match.groups()
                data_type = DataType(variable, define, get_define_literal(rhs))
                for type_name, spellings in (type_overrides or {}).items():
                    data_type.check_type_array(type_name, spellings)
                data.add_define(data_type, line.strip())

        log.debug("pylsp_renpy: indexed %d names in %s", len(data), filename or "<memory>")
        return data

    def add(self, navigation: Navigation) -> None:
        # a later definition of a name replaces the earlier one
        self._locations[navigation.keyword] = navigation

    def add_define(self, data_type: DataType, line: str = "") -> None:
        self._defines[data_type.variable] = data_type
        self._define_lines[data_type.variable] = line

    def find(self, name: str) -> Optional[Navigation]:
        return self._locations.get(name)

    def find_define(self, name: str) -> Optional[DataType]:
        return self._defines.get(name)

    def define_line(self, name: str) -> str:
        """Source text of the statement that defined *name*."""
        return self._define_lines.get(name, "")
