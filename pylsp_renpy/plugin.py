"""pylsp-renpy-navigation: signature help and hover for Ren'Py scripts in python-lsp-server.

The plugin answers three requests for ``.rpy``/``.rpym`` documents:

  1. textDocument/signatureHelp: the callable enclosing the cursor is looked
     up in a per-document index of ``def``/``class``/``label``/``screen``/
     ``transform`` definitions; plain Python calls (``$ renpy.pause(``,
     ``len(``...) fall back to Jedi signatures.

  2. textDocument/hover: signature, docstring and location of a definition,
     or the inferred type of a ``define``/``default`` variable, plus the block
     the cursor is in.

  3. renpy/currentContext: a custom JSON-RPC method registered through
     pylsp_dispatchers that returns the keyword of the enclosing block.
"""
from __future__ import annotations
import logging
import re
import threading
from typing import Any, Dict, Optional, Tuple
from pylsp import hookimpl, uris

from .context import get_current_context
from .index import NavigationData
from .navigation import DataType, Navigation, get_base_type_from_define, range_as_string
from .signature import (
    format_documentation_as_markdown,
    get_argument_parameter_info,
    get_named_parameter,
    split_parameters,
    strip_quotes,
)

# NOTE: Jedi ships with pylsp, reuse it for plain Python calls
try:
    import jedi as _jedi
except ImportError:  # pragma: no cover
    _jedi = None  # type: ignore[assignment]

log = logging.getLogger(__name__)

_PLUGIN = "renpy_navigation"

_DEFAULT_EXTENSIONS = [".rpy", ".rpym"]

# Name immediately before an opening parenthesis: 'renpy.pause', 'Character'
_RE_CALLEE = re.compile(r'([A-Za-z_][\w.]*)\s*$')

# Rebuilt when the document version or the type overrides change
_INDEX_CACHE: Dict[str, Tuple[Optional[int], Tuple, NavigationData]] = {}
_CACHE_LOCK = threading.Lock()


@hookimpl
def pylsp_settings(config) -> dict:
    """Declare default configuration for this plugin."""
    return {
        "plugins": {
            _PLUGIN: {
                "enabled": True,
                "file_extensions": list(_DEFAULT_EXTENSIONS),
                "signature_help": True,
                "hover": True,
                "jedi_fallback": True,      # Jedi signatures for Python calls
                "type_overrides": {},       # type name -> extra literal spellings
            },
        }
    }


@hookimpl
def pylsp_signature_help(config, workspace, document, position) -> Optional[dict]:
    settings = _settings(config, document)
    if not _handles(settings, document, "signature_help"):
        return None

    line = _line_at(document, position.get("line", 0))
    character = position.get("character", 0)
    call = _find_call(line, character)
    if call is None:
        return None

    name, start = call
    location = _get_index(document, settings).find(name)
    if location is None and "." in name:
        location = _get_index(document, settings).find(name.rsplit(".", 1)[-1])
    if location is None and settings.get("jedi_fallback", True):
        location = _jedi_navigation(line, character)
    if location is None:
        log.debug("pylsp_renpy: no signature for %r", name)
        return None

    signature = get_argument_parameter_info(location, line[start:], character - start)
    return {
        "signatures": [signature.to_lsp()],
        "activeSignature": 0,
        "activeParameter": signature.active_parameter,
    }


@hookimpl
def pylsp_hover(config, workspace, document, position) -> Optional[dict]:
    settings = _settings(config, document)
    if not _handles(settings, document, "hover"):
        return None

    word = document.word_at_position(position)
    if not word:
        return None

    index = _get_index(document, settings)
    parts = []
    location = index.find(word)
    if location is not None:
        parts.extend(_describe_location(location))
    data_type = index.find_define(word)
    if data_type is not None:
        parts.append(_describe_define(data_type, index.define_line(word)))
    if not parts:
        return None

    context = get_current_context(document.lines, position)
    if context:
        parts.append(f"In `{context}` block.")
    return {"contents": {"kind": "markdown", "value": "\n\n".join(parts)}}


@hookimpl
def pylsp_dispatchers(config, workspace) -> dict:
    """Register the renpy/currentContext method."""
    settings = config.plugin_settings(_PLUGIN)

    dispatch: Dict[str, Any] = {}
    if settings.get("enabled", True):
        def _current_context(params) -> dict:
            if not isinstance(params, dict):
                return {"context": None}

            text_doc = params.get("textDocument") or {}
            uri = text_doc.get("uri")
            if not uri:
                return {"context": None}

            position = params.get("position") or {"line": 0, "character": 0}
            try:
                document = workspace.get_document(uri)
                return {"context": get_current_context(document.lines, position)}
            except Exception as e:
                log.error("pylsp_renpy: currentContext failed for %s: %s", uri, e)
                return {"context": None}

        dispatch["renpy/currentContext"] = _current_context

    return dispatch


@hookimpl
def pylsp_document_did_close(config, workspace, document):
    """Drops the cached index when the document is closed."""
    with _CACHE_LOCK:
        _INDEX_CACHE.pop(document.path, None)


@hookimpl
def pylsp_document_did_save(config, workspace, document):
    """Drops the cached index on save so other editors' changes are picked up."""
    with _CACHE_LOCK:
        _INDEX_CACHE.pop(document.path, None)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _settings(config, document) -> dict:
    return config.plugin_settings(_PLUGIN, document_path=document.path)


def _handles(settings: dict, document, feature: str) -> bool:
    """True if *feature* is enabled and *document* is a script file."""
    if not settings.get("enabled", True) or not settings.get(feature, True):
        return False
    extensions = tuple(settings.get("file_extensions") or _DEFAULT_EXTENSIONS)
    return str(document.path or "").lower().endswith(extensions)


def _line_at(document, line: int) -> str:
    lines = document.lines
    if line < 0 or line >= len(lines):
        return ""
    return lines[line].rstrip("\r\n")


def _get_index(document, settings: dict) -> NavigationData:
    overrides = settings.get("type_overrides") or {}
    overrides_key = tuple(sorted((name, tuple(spellings)) for name, spellings in overrides.items()))
    with _CACHE_LOCK:
        cached = _INDEX_CACHE.get(document.path)
        if cached is not None and cached[:2] == (document.version, overrides_key):
            return cached[2]

    data = NavigationData.from_lines(document.lines, document.path, overrides)
    with _CACHE_LOCK:
        _INDEX_CACHE[document.path] = (document.version, overrides_key, data)
    return data


def _find_call(line: str, character: int) -> Optional[Tuple[str, int]]:
    """Return the callee name and its start column for the call at *character*.

    Walks left from the cursor to the first unmatched '(' that follows a name.
    A '(' with no name in front (a bare group) is skipped.
    """
    depth = 0
    for i in range(min(character, len(line)) - 1, -1, -1):
        c = line[i]
        if c == ")":
            depth += 1
        elif c == "(":
            if depth > 0:
                depth -= 1
                continue
            match = _RE_CALLEE.search(line[:i])
            if match:
                return match.group(1), match.start(1)
    return None


def _jedi_navigation(line: str, character: int) -> Optional[Navigation]:
    """Build a Navigation from Jedi's signature for a Python one-liner.

    Handles '$ expr' statements and lines of python blocks; the line is
    analysed on its own, so only builtins and importable names resolve.
    """
    if _jedi is None:
        return None

    offset = len(line) - len(line.lstrip())
    if line[offset:].startswith("$"):
        rest = line[offset + 1:]
        offset += 1 + len(rest) - len(rest.lstrip())
    code = line[offset:]
    column = character - offset
    if column < 0 or column > len(code):
        return None

    try:
        signatures = _jedi.Script(code=code).get_signatures(line=1, column=column)
    except Exception as e:
        log.debug("pylsp_renpy: Jedi signatures failed for %r: %s", code, e)
        return None
    if not signatures:
        return None

    sig = signatures[0]
    return Navigation(
        source="jedi",
        keyword=sig.name,
        filename=str(sig.module_path or ""),
        location=sig.line or 0,
        documentation=sig.docstring(raw=True),
        args="(" + ", ".join(p.to_string() for p in sig.params) + ")",
        type=sig.type,
        character=sig.column or 0,
    )


def _describe_location(location: Navigation) -> list:
    parts = [f"```renpy\n{location.type} {location.keyword}{location.args}\n```"]
    if location.documentation:
        parts.append(format_documentation_as_markdown(location.documentation))
    if location.filename:
        where = range_as_string(location.filename, location.to_range())
        uri = uris.from_fs_path(location.filename)
        parts.append(f"Defined at [{where}]({uri}#L{location.location})")
    return parts


def _describe_define(data_type: DataType, line: str) -> str:
    """Markdown for a define: builtin type, or the class it instantiates."""
    type_name = data_type.type
    if type_name is None:
        type_name = get_base_type_from_define(line) or data_type.baseclass
    text = f"`{data_type.define} {data_type.variable}`: {type_name}"

    if data_type.type is None and "(" in line:
        # Character("Eileen", color="#c8ffc8") and similar constructors
        args = split_parameters(line[line.find("(") + 1:line.rfind(")")], trim=True)
        display = get_named_parameter(args, "name")
        if not display and args and args[0][:1] in ('"', "'", "`"):
            display = strip_quotes(args[0])
        color = get_named_parameter(args, "color")
        if display:
            text += f"\n\nDisplay name: {display}"
        if color:
            text += f"\n\nColor: `{color}`"
    return text
