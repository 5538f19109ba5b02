"""Argument-list splitting and signature help for Ren'Py call sites.

The scanner here is deliberately lexical: it walks a fragment once, tracking
whether it is inside a double-quoted string, parentheses, brackets or braces,
and masks the commas that belong to those nested scopes. It is good enough to
split ``Character("Eileen, the girl", color="#c8ffc8")`` into two arguments
without building an AST.
"""
from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Tuple

from .navigation import Navigation

log = logging.getLogger(__name__)

# Stand-in for commas inside nested scopes while splitting.
# U+FE50 (SMALL COMMA) does not occur in script sources.
_SENTINEL = "﹐"

# Spaces in call-site fragments are replaced so every argument stays one word
_SPACE_PLACEHOLDER = "_"

_DOC_MARKERS = (":other:", ":func:", ":var:", ":ref:", ":class:", ":tpref:", ":propref:")

# 'c: str = "x"' -> 'c'
_RE_FORMAL_NAME = re.compile(r'[^:=]*')

_OPENERS = {"(": "parens", "[": "brackets", "{": "braces"}
_CLOSERS = {")": "parens", "]": "brackets", "}": "braces"}


# ---------------------------------------------------------------------------
# Delimiter-aware scanning
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScanState:
    """The four independent "inside" flags of a delimiter scan.

    Flags are booleans, not depth counters: ``[[1,2],[3,4]]`` leaves the
    bracket scope at the first inner ``]``.
    """
    quote: bool = False
    parens: bool = False
    brackets: bool = False
    braces: bool = False

    @property
    def nested(self) -> bool:
        return self.quote or self.parens or self.brackets or self.braces

    def feed(self, c: str) -> ScanState:
        """Return the state after reading character *c*."""
        if c == '"':
            return replace(self, quote=not self.quote)
        if c in _OPENERS:
            return replace(self, **{_OPENERS[c]: True})
        if c in _CLOSERS:
            return replace(self, **{_CLOSERS[c]: False})
        return self


def _mask(text: str, call_site: bool = False) -> Tuple[str, ScanState]:
    """Replace nested commas in *text* with the sentinel.

    With *call_site* set, the fragment is treated as an invocation: the first
    ``(`` opens the call rather than a nested group, double quotes become
    single quotes and spaces become placeholders.
    """
    state = ScanState()
    first_paren = call_site
    out: List[str] = []
    for c in text:
        if first_paren and c == "(":
            first_paren = False
        else:
            state = state.feed(c)
            if c == "," and state.nested:
                c = _SENTINEL
        if call_site:
            if c == '"':
                c = "'"
            elif c == " ":
                c = _SPACE_PLACEHOLDER
        out.append(c)
    return "".join(out), state


def _normalize_equals(piece: str) -> str:
    while " =" in piece:
        piece = piece.replace(" =", "=")
    while "= " in piece:
        piece = piece.replace("= ", "=")
    return piece


def split_with_state(text: str, trim: bool = False) -> Tuple[List[str], ScanState]:
    """Split *text* on top-level commas.

    Returns the pieces together with the flags left set at the end of the
    scan, so callers can tell whether the fragment was balanced.
    """
    masked, state = _mask(text)
    pieces = []
    for piece in masked.split(","):
        if trim:
            piece = piece.strip()
        piece = piece.replace(_SENTINEL, ",")
        if trim:
            piece = _normalize_equals(piece)
        pieces.append(piece)
    return pieces, state


def split_parameters(text: str, trim: bool = False) -> List[str]:
    """Split *text* on commas outside quotes, parens, brackets and braces.

    In *trim* mode every piece is stripped and spaces around ``=`` are
    removed, so ``x = 1`` becomes ``x=1``.
    """
    return split_with_state(text, trim=trim)[0]


def strip_quotes(value: str) -> str:
    """Remove one pair of matching ``"``, ``'`` or backtick quotes."""
    for quote in ('"', "'", "`"):
        if len(value) >= 2 and value.startswith(quote) and value.endswith(quote):
            return value[1:-1]
    return value


def get_named_parameter(pieces: List[str], named: str) -> str:
    """Return the unquoted value of the first ``named=value`` piece, or ''."""
    search = f"{named}="
    for piece in pieces:
        if piece.startswith(search):
            return strip_quotes(piece.split("=")[1])
    return ""


# ---------------------------------------------------------------------------
# Signature help
# ---------------------------------------------------------------------------

@dataclass
class ParameterDescription:
    label: str
    documentation: str

    def to_lsp(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "documentation": {"kind": "markdown", "value": self.documentation},
        }


@dataclass
class SignatureDescription:
    """Display-ready signature with the parameter under the cursor."""
    label: str
    documentation: str = ""
    parameters: List[ParameterDescription] = field(default_factory=list)
    active_parameter: int = 0

    def to_lsp(self) -> Dict[str, Any]:
        """Build the LSP SignatureInformation dict."""
        return {
            "label": self.label,
            "documentation": {"kind": "markdown", "value": self.documentation},
            "parameters": [p.to_lsp() for p in self.parameters],
            "activeParameter": self.active_parameter,
        }


def format_documentation_as_markdown(documentation: str) -> str:
    documentation = documentation.replace("\\", '"')
    documentation = documentation.replace("```", "\n\n```", 1)
    for marker in _DOC_MARKERS:
        documentation = documentation.replace(marker, "")
    return documentation.strip()


def _after_first_paren(text: str) -> str:
    return text[text.find("(") + 1:]


def _formal_name(formal: str) -> str:
    """Name of a formal, left of its annotation or default."""
    return _RE_FORMAL_NAME.match(formal).group(0).strip()


def _describe_formal(formal: str) -> ParameterDescription:
    _, has_default, default = formal.partition("=")
    docs = f"`{_formal_name(formal)}` parameter"
    if has_default:
        docs += f" (optional). Default is `{default.strip()}`."
    else:
        docs += "."
    return ParameterDescription(label=formal, documentation=docs)


def _declared_formals(args: str) -> List[str]:
    if not args:
        return []
    if args.startswith("("):
        args = args[1:]
    if args.endswith(")"):
        args = args[:-1]
    return [formal.strip() for formal in split_parameters(args) if formal.strip()]


def _supplied_keyword(argument: str) -> str:
    # '=' at position 0 is not a keyword argument
    if argument.find("=") <= 0:
        return ""
    return argument.split("=")[0].strip().strip(_SPACE_PLACEHOLDER)


def get_argument_parameter_info(location: Navigation, line: str, position: int) -> SignatureDescription:
    """Describe *location*'s signature for a call typed on *line*.

    *line* is the call-site text starting at the callee name and *position*
    the cursor offset into it. The active parameter is the call argument the
    cursor sits in, mapped onto the declared formals by keyword when the
    argument is written as ``name=value``. A positional index past the last
    formal is returned unchanged.
    """
    signature = SignatureDescription(
        label=f"{location.keyword}{location.args}",
        documentation=format_documentation_as_markdown(location.documentation),
    )

    parsed, _ = _mask(line, call_site=True)
    arguments = _after_first_paren(parsed).split(",")
    typed = _after_first_paren(parsed[:position]).split(",")

    current_argument = len(typed) - 1
    kwarg = ""
    if current_argument < len(arguments):
        kwarg = _supplied_keyword(arguments[current_argument])

    formals = _declared_formals(location.args)
    if kwarg and formals and formals[-1].startswith("**"):
        current_argument = len(formals) - 1

    for index, formal in enumerate(formals):
        signature.parameters.append(_describe_formal(formal))
        if kwarg and _formal_name(formal) == kwarg:
            current_argument = index

    log.debug(
        "pylsp_renpy: %s active parameter %d (keyword %r)",
        location.keyword, current_argument, kwarg,
    )
    signature.active_parameter = current_argument
    return signature
