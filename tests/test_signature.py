"""Tests for argument splitting and signature help."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Make sure the package is importable from the repo root
sys.path.insert(0, str(Path(__file__).parent.parent))

from pylsp_renpy.navigation import Navigation
from pylsp_renpy.signature import (
    ScanState,
    format_documentation_as_markdown,
    get_argument_parameter_info,
    get_named_parameter,
    split_parameters,
    split_with_state,
    strip_quotes,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_navigation(args="(a, b, c=1, **kwargs)", keyword="move", documentation=""):
    return Navigation(
        source="def",
        keyword=keyword,
        filename="/game/script.rpy",
        location=3,
        documentation=documentation,
        args=args,
        type="def",
    )


# ---------------------------------------------------------------------------
# split_parameters
# ---------------------------------------------------------------------------

class TestSplitParameters:
    def test_empty_string_yields_single_empty_piece(self):
        assert split_parameters("") == [""]

    def test_nested_scopes_are_opaque(self):
        pieces = split_parameters('"a,b", [c,d], {e,f}, g', trim=True)
        assert pieces == ['"a,b"', "[c,d]", "{e,f}", "g"]

    @pytest.mark.parametrize("text", [
        'Character("Eileen, the girl", color="#c8ffc8", what_prefix=(1, 2))',
        "a, b ,c",
        '"unterminated, quote',
        "",
    ])
    def test_rejoin_reproduces_input(self, text):
        assert ",".join(split_parameters(text)) == text

    def test_untrimmed_keeps_whitespace(self):
        assert split_parameters("a, b") == ["a", " b"]

    def test_trim_normalizes_equals(self):
        assert split_parameters("x = 1,  y =2", trim=True) == ["x=1", "y=2"]

    def test_quoted_comma_kept(self):
        assert split_parameters('say "hi, there", x') == ['say "hi, there"', " x"]

    def test_same_kind_nesting_is_not_counted(self):
        # the first inner ']' closes the bracket scope
        assert split_parameters("[[1,2],[3,4]]") == ["[[1,2]", "[3,4]]"]


class TestSplitWithState:
    def test_balanced_fragment_ends_outside_every_scope(self):
        pieces, state = split_with_state("a, (b, c)")
        assert pieces == ["a", " (b, c)"]
        assert state == ScanState()
        assert not state.nested

    def test_unbalanced_paren_stays_open(self):
        pieces, state = split_with_state("f(a, b")
        assert pieces == ["f(a, b"]
        assert state.parens
        assert state.nested


class TestScanState:
    def test_quote_toggles(self):
        state = ScanState().feed('"')
        assert state.quote
        assert not state.feed('"').quote

    def test_closer_clears_only_its_kind(self):
        state = ScanState().feed("(").feed("[").feed(")")
        assert not state.parens
        assert state.brackets


# ---------------------------------------------------------------------------
# strip_quotes / get_named_parameter
# ---------------------------------------------------------------------------

class TestStripQuotes:
    @pytest.mark.parametrize("value,expected", [
        ('"a"', "a"),
        ("'a'", "a"),
        ("`a`", "a"),
        ('"a', '"a'),
        ('"', '"'),
        ("plain", "plain"),
    ])
    def test_strip_quotes(self, value, expected):
        assert strip_quotes(value) == expected


class TestGetNamedParameter:
    def test_finds_value(self):
        assert get_named_parameter(['"Eileen"', 'color="#fff"'], "color") == "#fff"

    def test_missing_is_empty(self):
        assert get_named_parameter(["a", "b=1"], "color") == ""


# ---------------------------------------------------------------------------
# format_documentation_as_markdown
# ---------------------------------------------------------------------------

class TestFormatDocumentation:
    def test_strips_cross_reference_markers(self):
        text = "Calls :func:`renpy.pause` with :var:`config.delay`."
        assert format_documentation_as_markdown(text) == "Calls `renpy.pause` with `config.delay`."

    def test_separates_first_code_fence(self):
        assert format_documentation_as_markdown("  Example:```x```  ") == "Example:\n\n```x```"

    def test_backslash_becomes_quote(self):
        assert format_documentation_as_markdown("say \\hi\\") == 'say "hi"'


# ---------------------------------------------------------------------------
# get_argument_parameter_info
# ---------------------------------------------------------------------------

class TestGetArgumentParameterInfo:
    def test_keyword_argument_maps_to_declared_position(self):
        line = "move(1, 2, c=5)"
        signature = get_argument_parameter_info(_make_navigation(), line, line.index("5"))
        assert signature.active_parameter == 2

    def test_undeclared_keyword_routes_to_catch_all(self):
        line = "move(1, x=1)"
        signature = get_argument_parameter_info(_make_navigation(), line, len(line))
        assert signature.active_parameter == 3

    def test_positional_index(self):
        line = "move(1, "
        signature = get_argument_parameter_info(_make_navigation(), line, len(line))
        assert signature.active_parameter == 1

    def test_cursor_in_first_argument(self):
        line = "move(1, 2, 3)"
        signature = get_argument_parameter_info(_make_navigation(), line, line.index("1"))
        assert signature.active_parameter == 0

    def test_keyword_out_of_order(self):
        navigation = _make_navigation(args="(x, y=(0, 0))", keyword="f")
        signature = get_argument_parameter_info(navigation, "f(y=1", 5)
        assert signature.active_parameter == 1

    def test_keyword_with_underscores(self):
        navigation = _make_navigation(args="(a, my_arg=2)", keyword="f")
        line = "f(my_arg=1"
        signature = get_argument_parameter_info(navigation, line, len(line))
        assert signature.active_parameter == 1

    def test_nested_call_commas_ignored(self):
        line = "move(pos(1, 2), "
        signature = get_argument_parameter_info(_make_navigation(), line, len(line))
        assert signature.active_parameter == 1

    def test_quoted_commas_ignored(self):
        line = 'move("a, b", '
        signature = get_argument_parameter_info(_make_navigation(), line, len(line))
        assert signature.active_parameter == 1

    def test_index_past_last_formal_is_not_clamped(self):
        line = "move(1, 2, 3, 4, 5"
        signature = get_argument_parameter_info(_make_navigation(), line, len(line))
        assert len(signature.parameters) == 4
        assert signature.active_parameter == 4

    def test_parameter_documentation(self):
        signature = get_argument_parameter_info(_make_navigation(), "move(", 5)
        assert [p.label for p in signature.parameters] == ["a", "b", "c=1", "**kwargs"]
        assert signature.parameters[0].documentation == "`a` parameter."
        assert signature.parameters[2].documentation == "`c` parameter (optional). Default is `1`."

    def test_default_with_nested_commas(self):
        navigation = _make_navigation(args="(x, y = (0, 0))", keyword="f")
        signature = get_argument_parameter_info(navigation, "f(", 2)
        assert len(signature.parameters) == 2
        assert signature.parameters[1].documentation == "`y` parameter (optional). Default is `(0, 0)`."

    def test_empty_args(self):
        navigation = _make_navigation(args="", keyword="jump")
        line = "jump(1, 2"
        signature = get_argument_parameter_info(navigation, line, len(line))
        assert signature.parameters == []
        assert signature.active_parameter == 1
        assert signature.label == "jump"

    def test_label_and_documentation(self):
        navigation = _make_navigation(documentation="Moves :class:`things`.")
        signature = get_argument_parameter_info(navigation, "move(", 5)
        assert signature.label == "move(a, b, c=1, **kwargs)"
        assert signature.documentation == "Moves `things`."

    def test_to_lsp(self):
        signature = get_argument_parameter_info(_make_navigation(), "move(1, ", 8)
        result = signature.to_lsp()
        assert result["label"] == "move(a, b, c=1, **kwargs)"
        assert result["activeParameter"] == 1
        assert result["parameters"][1] == {
            "label": "b",
            "documentation": {"kind": "markdown", "value": "`b` parameter."},
        }

    def test_empty_parens_have_no_parameters(self):
        navigation = _make_navigation(args="()", keyword="f")
        signature = get_argument_parameter_info(navigation, "f(", 2)
        assert signature.parameters == []
        assert signature.label == "f()"

    def test_annotated_formals_match_keyword(self):
        navigation = _make_navigation(args="(a: int, b: int = 1, c: str = 'x')", keyword="f")
        line = "f(c=1"
        signature = get_argument_parameter_info(navigation, line, len(line))
        assert signature.active_parameter == 2

    def test_annotated_formal_documentation(self):
        navigation = _make_navigation(args="(a: int, c: str = 'x')", keyword="f")
        signature = get_argument_parameter_info(navigation, "f(", 2)
        assert signature.parameters[0].documentation == "`a` parameter."
        assert signature.parameters[1].documentation == "`c` parameter (optional). Default is `'x'`."
        assert signature.parameters[1].label == "c: str = 'x'"
