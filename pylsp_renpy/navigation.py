"""Navigation records, literal type inference and docstring helpers."""
from __future__ import annotations
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

TYPE_BOOLEAN = "boolean"
TYPE_NUMBER = "number"
TYPE_STRING = "string"
TYPE_SET = "set"
TYPE_DICTIONARY = "dictionary"

_STRING_PREFIXES = ("_", '"', "`", "'")

_RE_DEFINE_CALL = re.compile(r'^(default|define)\s+([\w.]*)\s*=\s*(\w*)\(')
_RE_DEFINE_TOKEN = re.compile(r'[\w.+-]+')


@dataclass(frozen=True)
class Navigation:
    """A named definition found in a script file.

    ``location`` is 1-based like the editor's line numbers in messages,
    ``character`` is the 0-based column of ``keyword`` on that line.
    """
    source: str
    keyword: str
    filename: str
    location: int
    documentation: str = ""
    args: str = ""
    type: str = ""
    character: int = 0

    def __post_init__(self):
        if self.documentation:
            object.__setattr__(self, "documentation", self.documentation.replace('\\"', '"'))

    def to_range(self) -> Dict[str, Any]:
        """LSP range covering the name on its defining line."""
        line = self.location - 1
        return {
            "start": {"line": line, "character": self.character},
            "end": {"line": line, "character": self.character + len(self.keyword)},
        }


def _is_number(token: str) -> bool:
    # float() also takes 'inf' and 'nan', which are names here
    if token.lstrip("+-").isalpha():
        return False
    try:
        float(token)
        return True
    except ValueError:
        pass
    try:
        int(token, 0)
        return True
    except ValueError:
        return False


@dataclass
class DataType:
    """Coarse type of a ``define``/``default`` variable, from its literal.

    ``type`` is None when the literal is not a builtin one; ``baseclass``
    then holds the raw token (usually a class name) for the caller to resolve.
    """
    variable: str
    define: str
    baseclass: str
    type: Optional[str] = field(init=False, default=None)

    def __post_init__(self):
        token = self.baseclass
        if token in ("True", "False"):
            self.type = TYPE_BOOLEAN
        elif _is_number(token):
            self.type = TYPE_NUMBER
        elif token.startswith(_STRING_PREFIXES):
            self.type = TYPE_STRING
        elif token.startswith("["):
            self.type = TYPE_SET
        elif token.startswith("{"):
            self.type = TYPE_DICTIONARY

    def check_type_array(self, type: str, type_array: Sequence[str]) -> None:
        """Assign *type* when the literal is one of the spellings in *type_array*."""
        if self.baseclass in type_array:
            self.type = type


def get_define_literal(rhs: str) -> str:
    """Return the literal token an assignment right-hand side begins with."""
    rhs = rhs.strip()
    if not rhs:
        return ""
    if rhs[0] in "[{":
        return rhs[0]
    if rhs[0] in "\"'`":
        return rhs
    match = _RE_DEFINE_TOKEN.match(rhs)
    return match.group(0) if match else rhs


def get_base_type_from_define(line: str) -> Optional[str]:
    """Return ``Cls`` for ``define name = Cls(...)`` lines, else None."""
    match = _RE_DEFINE_CALL.match(line.strip())
    if match:
        return match.group(3)
    return None


def get_py_docs_at_line(lines: Sequence[str], line: int) -> str:
    """Return the docstring opened on *lines[line]*, or '' if there is none.

    Continuation lines are joined with spaces. Blank lines and lines indented
    three or more columns past the opening line start a new paragraph.
    """
    if line < 0 or line >= len(lines) or '"""' not in lines[line]:
        return ""

    first = lines[line]
    margin = len(first) - len(first.lstrip())
    text = first.replace('"""', "", 1).strip()
    if '"""' in text:
        return text.replace('"""', "", 1).strip()

    parts: List[str] = [text] if text else []
    for current in lines[line + 1:]:
        closing = '"""' in current
        stripped = current.split('"""')[0].strip() if closing else current.strip()
        if closing and not stripped:
            break
        indent = len(current) - len(current.lstrip())
        if not stripped or indent >= margin + 3:
            stripped = "\n\n" + stripped
        parts.append(stripped)
        if closing:
            break

    return " ".join(parts).strip()


def range_as_string(filename: str, range_: Dict[str, Any]) -> str:
    start, end = range_["start"], range_["end"]
    return f"{filename}:{start['line']};{start['character']}-{end['character']}"
