"""Tests for the fragment renderer, identifier quoting and shared clauses."""

from __future__ import annotations

import pytest

from pipequery.models.query import FilterExpression, OrderBy, RefinedName
from pipequery.models.types import SortDirection
from pipequery.render.clauses import filter_fragments, order_by_code, refined_fragments
from pipequery.render.fragments import INDENT, NEWLINE, OUTDENT, render_fragments
from pipequery.render.identifiers import quote_identifier, quote_path, snake_to_title


class TestRenderFragments:
    def test_plain_text(self) -> None:
        assert render_fragments(["a", "b", " c"]) == "ab c"

    def test_indent_applies_at_line_start(self) -> None:
        fragments = ["x {", NEWLINE, INDENT, "y", NEWLINE, OUTDENT, "}"]
        assert render_fragments(fragments) == "x {\n  y\n}"

    def test_indent_mid_line_waits_for_next_line(self) -> None:
        fragments = ["a", INDENT, "b", NEWLINE, "c"]
        assert render_fragments(fragments) == "ab\n  c"

    def test_nested_depth_and_tab_width(self) -> None:
        fragments = [INDENT, "a", NEWLINE, INDENT, "b", NEWLINE, OUTDENT, OUTDENT, "c"]
        assert render_fragments(fragments, tab_width=4) == "    a\n        b\nc"

    def test_blank_lines_have_no_trailing_whitespace(self) -> None:
        assert render_fragments([INDENT, NEWLINE, NEWLINE, "a"]) == "\n\n  a"

    def test_unbalanced_outdent(self) -> None:
        with pytest.raises(ValueError, match="Unbalanced"):
            render_fragments(["a", OUTDENT])


class TestIdentifiers:
    @pytest.mark.parametrize("name", ["carrier", "_x", "dep_time2"])
    def test_plain_identifiers_unquoted(self, name: str) -> None:
        assert quote_identifier(name) == name

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("count", "`count`"),
            ("Source", "`Source`"),
            ("two words", "`two words`"),
            ("9lives", "`9lives`"),
            ("back`tick", "`back\\`tick`"),
        ],
    )
    def test_quoted(self, name: str, expected: str) -> None:
        assert quote_identifier(name) == expected

    def test_quote_path(self) -> None:
        assert quote_path("aircraft.model_info.manufacturer") == "aircraft.model_info.manufacturer"
        assert quote_path("aircraft.year") == "aircraft.`year`"

    def test_snake_to_title(self) -> None:
        assert snake_to_title("new_query") == "New Query"
        assert snake_to_title("by_carrier") == "By Carrier"
        assert snake_to_title("__x") == "X"


class TestClauses:
    def test_single_filter_inline(self) -> None:
        text = render_fragments(["where:", *filter_fragments([FilterExpression(code="a > 1")])])
        assert text == "where: a > 1\n"

    def test_multiple_filters_one_per_line(self) -> None:
        filters = [FilterExpression(code="a > 1"), FilterExpression(code="b = 'x'")]
        text = render_fragments(["where:", *filter_fragments(filters)])
        assert text == "where:\n  a > 1,\n  b = 'x'\n"

    def test_refined_with_alias_and_filters(self) -> None:
        ref = RefinedName(
            path="flight_count",
            alias="long_flights",
            filters=[FilterExpression(code="distance > 1000")],
        )
        text = render_fragments(refined_fragments(ref))
        assert text == "long_flights is flight_count {\n  where: distance > 1000\n}"

    def test_refined_without_alias(self) -> None:
        ref = RefinedName(path="flight_count", alias="long_flights")
        assert render_fragments(refined_fragments(ref, with_alias=False)) == "flight_count"

    def test_order_by_uses_last_segment(self) -> None:
        entry = OrderBy(field="aircraft.seats", direction=SortDirection.DESC)
        assert order_by_code(entry) == "seats desc"

    def test_order_by_without_direction(self) -> None:
        assert order_by_code(OrderBy(field="carrier")) == "carrier"

    def test_order_by_legacy_position(self) -> None:
        assert order_by_code(OrderBy(field=2, direction=SortDirection.ASC)) == "2 asc"
