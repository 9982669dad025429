"""Tests for the tagged response parser."""

import pytest

from mrlens_core.analysis.tags import NOT_FOUND, extract_all, extract_tag, parse_tagged


class TestExtractTag:
    def test_extracts_and_trims(self):
        assert extract_tag("<summary>\n  Adds caching.\n</summary>", "summary") == "Adds caching."

    def test_first_occurrence_wins(self):
        assert extract_tag("<a>one</a><a>two</a>", "a") == "one"

    def test_spans_lines(self):
        assert extract_tag("<review>line 1\nline 2</review>", "review") == "line 1\nline 2"

    def test_missing_tag_returns_default(self):
        assert extract_tag("no tags here", "summary") == NOT_FOUND

    def test_custom_default(self):
        assert extract_tag("", "summary", default="-") == "-"

    @pytest.mark.parametrize(
        "response",
        [
            None,
            "<summary>never closed",
            "</summary>backwards<summary>",
            "<Summary>wrong case</Summary>",
        ],
    )
    def test_malformed_input_never_raises(self, response):
        assert extract_tag(response, "summary") == NOT_FOUND

    def test_tag_name_is_escaped(self):
        assert extract_tag("<a.b>x</a.b><aXb>y</aXb>", "a.b") == "x"


class TestParseTagged:
    def test_each_tag_independent(self):
        parsed = parse_tagged("<summary>S</summary>", ("summary", "impact", "review"))
        assert parsed == {"summary": "S", "impact": NOT_FOUND, "review": NOT_FOUND}

    def test_order_in_response_does_not_matter(self):
        parsed = parse_tagged("<b>2</b><a>1</a>", ("a", "b"))
        assert parsed == {"a": "1", "b": "2"}


class TestExtractAll:
    def test_returns_every_block_in_order(self):
        response = "<issue>one</issue> noise <issue>two</issue>"
        assert extract_all(response, "issue") == ["one", "two"]

    def test_none_returns_empty(self):
        assert extract_all(None, "issue") == []
