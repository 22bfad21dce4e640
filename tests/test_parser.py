"""Unit tests for the WikitextParser recursive descent parser.

Tests cover every construct the parser recognizes, plus its behaviour on
malformed input:
- Unclosed constructs degrade to Unparsed nodes with an "unbalanced" flag
- Nesting beyond max_depth is truncated with a "depth_limit" flag
- Top-level node spans always cover the whole input without gaps
"""

import pytest

from wiktparse.flags import FlagCollector, FlagKind, Span
from wiktparse.nodes import (
    Comment,
    ExternalLink,
    Formatting,
    FormattingKind,
    Heading,
    Link,
    ListKind,
    ListNode,
    Table,
    Tag,
    Template,
    Text,
    Unparsed,
    walk,
)
from wiktparse.parser import WikitextParser, parse_wikitext
from wiktparse.render import text_of


def parse(text, max_depth=64):
    collector = FlagCollector()
    nodes = WikitextParser(text, collector, max_depth).parse()
    return nodes, collector.flags


def assert_tiles(nodes, text):
    """Top-level spans must be contiguous and cover the text."""
    pos = 0
    for node in nodes:
        assert node.span.start == pos, f"gap or overlap at {pos}: {node!r}"
        assert node.span.end >= node.span.start
        pos = node.span.end
    assert pos == len(text)


class TestText:
    """Test plain text handling."""

    def test_empty_input(self):
        nodes, flags = parse("")
        assert nodes == []
        assert flags == []

    def test_plain_text_is_one_node(self):
        nodes, flags = parse("just words, it's fine!")
        assert nodes == [Text("just words, it's fine!", Span(0, 22))]
        assert flags == []

    def test_stray_closers_are_text(self):
        nodes, flags = parse("a }} b ]] c |}")
        assert len(nodes) == 1
        assert isinstance(nodes[0], Text)
        assert flags == []

    def test_lone_angle_bracket_is_text(self):
        nodes, _ = parse("a < b and <unknowntag>")
        assert [type(node) for node in nodes] == [Text]


class TestTemplates:
    """Test template parsing."""

    def test_parameters_in_order(self):
        """{{t|a|b=2|c}} has positional a, named b=2 and positional c."""
        nodes, flags = parse("{{t|a|b=2|c}}")
        assert flags == []
        assert len(nodes) == 1
        template = nodes[0]
        assert isinstance(template, Template)
        assert text_of(template.name) == "t"
        assert len(template.parameters) == 3

        first, second, third = template.parameters
        assert not first.is_named and text_of(first.value) == "a"
        assert second.is_named
        assert text_of(second.name) == "b"
        assert text_of(second.value) == "2"
        assert not third.is_named and text_of(third.value) == "c"

    def test_span_covers_template(self):
        nodes, _ = parse("x{{t}}y")
        assert [type(node) for node in nodes] == [Text, Template, Text]
        assert nodes[1].span == Span(1, 6)

    def test_unclosed_template(self):
        """{{t|a yields one Unparsed node and exactly one unbalanced flag."""
        nodes, flags = parse("{{t|a")
        assert nodes == [Unparsed("{{t|a", Span(0, 5))]
        assert len(flags) == 1
        assert flags[0].kind is FlagKind.UNBALANCED
        assert flags[0].span == Span(0, 5)

    def test_nested_template_and_link(self):
        """An "=" inside a nested link does not name the outer parameter."""
        nodes, flags = parse("{{a|{{b|c=d}}|e=[[f|g=h]]}}")
        assert flags == []
        first, second = nodes[0].parameters
        assert first.name is None
        assert isinstance(first.value[0], Template)
        assert text_of(first.value[0].parameters[0].name) == "c"
        assert text_of(second.name) == "e"
        assert isinstance(second.value[0], Link)
        assert text_of(second.value[0].text) == "g=h"

    def test_only_first_equals_splits(self):
        nodes, _ = parse("{{t|k=a=b}}")
        parameter = nodes[0].parameters[0]
        assert text_of(parameter.name) == "k"
        assert text_of(parameter.value) == "a=b"

    def test_multiline_parameters(self):
        nodes, flags = parse("{{quote-book|en\n|year=1900\n|passage=Text}}")
        assert flags == []
        assert len(nodes[0].parameters) == 3

    def test_empty_name_is_malformed(self):
        nodes, flags = parse("{{|a}}")
        assert isinstance(nodes[0], Template)
        assert [flag.kind for flag in flags] == [FlagKind.MALFORMED_TEMPLATE]

    def test_duplicate_parameter_is_malformed(self):
        nodes, flags = parse("{{t|k=1|k=2}}")
        assert isinstance(nodes[0], Template)
        assert [flag.kind for flag in flags] == [FlagKind.MALFORMED_TEMPLATE]
        assert "k" in flags[0].detail

    def test_inner_unclosed_link_does_not_steal_closer(self):
        nodes, flags = parse("{{a|[[b}}")
        assert len(nodes) == 1
        template = nodes[0]
        assert isinstance(template, Template)
        assert template.parameters[0].value == [Unparsed("[[b", Span(4, 7))]
        assert [flag.kind for flag in flags] == [FlagKind.UNBALANCED]


class TestLinks:
    """Test wikilinks and external links."""

    def test_link_with_text(self):
        nodes, _ = parse("[[word|display]]")
        link = nodes[0]
        assert isinstance(link, Link)
        assert text_of(link.target) == "word"
        assert text_of(link.text) == "display"

    def test_link_without_text(self):
        nodes, _ = parse("[[word]]")
        assert nodes[0].text is None

    def test_media_link_keeps_pipes_in_text(self):
        nodes, flags = parse("[[File:Cat.jpg|thumb|A cat]]")
        assert flags == []
        assert text_of(nodes[0].text) == "thumb|A cat"

    def test_unclosed_link(self):
        nodes, flags = parse("[[a]] [[b")
        assert [type(node) for node in nodes] == [Link, Text, Unparsed]
        assert nodes[2].raw == "[[b"
        assert [flag.kind for flag in flags] == [FlagKind.UNBALANCED]

    def test_link_does_not_cross_lines(self):
        nodes, flags = parse("[[a\nb]]")
        assert nodes[0] == Unparsed("[[a", Span(0, 3))
        assert nodes[1] == Text("\nb]]", Span(3, 7))
        assert len(flags) == 1

    def test_external_link(self):
        nodes, _ = parse("[https://example.org Example]")
        link = nodes[0]
        assert isinstance(link, ExternalLink)
        assert link.url == "https://example.org"
        assert text_of(link.text) == "Example"

    def test_bare_external_link(self):
        nodes, _ = parse("[https://example.org]")
        assert nodes[0].text is None

    def test_brackets_without_scheme_are_text(self):
        nodes, flags = parse("[not a link]")
        assert [type(node) for node in nodes] == [Text]
        assert flags == []


class TestFormatting:
    """Test apostrophe runs."""

    def test_italic_and_bold(self):
        nodes, _ = parse("''it'' and '''bold'''")
        assert [type(node) for node in nodes] == [Formatting, Text, Formatting]
        assert nodes[0].kind is FormattingKind.ITALIC
        assert text_of(nodes[0].content) == "it"
        assert nodes[2].kind is FormattingKind.BOLD
        assert text_of(nodes[2].content) == "bold"

    def test_bold_italic(self):
        nodes, flags = parse("'''''both'''''")
        assert flags == []
        outer = nodes[0]
        assert outer.kind is FormattingKind.BOLD
        inner = outer.content[0]
        assert inner.kind is FormattingKind.ITALIC
        assert text_of(inner.content) == "both"

    def test_single_apostrophe_is_text(self):
        nodes, _ = parse("it's")
        assert nodes == [Text("it's", Span(0, 4))]

    def test_unclosed_italic(self):
        nodes, flags = parse("''unclosed")
        assert nodes == [Unparsed("''unclosed", Span(0, 10))]
        assert [flag.kind for flag in flags] == [FlagKind.UNBALANCED]

    def test_formatting_closes_at_line_end(self):
        nodes, flags = parse("''a\nb''")
        assert isinstance(nodes[0], Unparsed)
        assert nodes[0].raw == "''a"
        assert FlagKind.UNBALANCED in [flag.kind for flag in flags]


class TestCommentsAndTags:
    """Test comments, extension tags and HTML tags."""

    def test_comment(self):
        nodes, _ = parse("a<!-- c -->b")
        assert nodes == [Text("a", Span(0, 1)), Comment(" c ", Span(1, 11)), Text("b", Span(11, 12))]

    def test_unclosed_comment(self):
        nodes, flags = parse("a<!-- never closed")
        assert isinstance(nodes[1], Unparsed)
        assert [flag.kind for flag in flags] == [FlagKind.UNBALANCED]

    def test_ref_tag(self):
        nodes, _ = parse("<ref>Source</ref>")
        tag = nodes[0]
        assert isinstance(tag, Tag)
        assert tag.name == "ref"
        assert text_of(tag.content) == "Source"

    @pytest.mark.parametrize("text", ["<br>", "<br/>", "<br />"])
    def test_void_tags(self, text):
        nodes, flags = parse(text)
        assert nodes == [Tag("br", "", [], Span(0, len(text)))]
        assert flags == []

    def test_self_closing_with_attributes(self):
        nodes, _ = parse('<ref name="a" />')
        assert nodes[0].attributes == 'name="a"'
        assert nodes[0].content == []

    def test_raw_tag_content_is_not_parsed(self):
        nodes, _ = parse("<nowiki>{{x}}</nowiki>")
        assert nodes[0].content == [Text("{{x}}", Span(8, 13))]

    def test_unclosed_inline_tag(self):
        nodes, flags = parse("<span>x")
        assert nodes == [Unparsed("<span>x", Span(0, 7))]
        assert [flag.kind for flag in flags] == [FlagKind.UNBALANCED]

    def test_ref_may_span_lines(self):
        nodes, flags = parse("<ref>line one\nline two</ref>")
        assert flags == []
        assert isinstance(nodes[0], Tag)


class TestHeadings:
    """Test heading lines."""

    def test_heading(self):
        nodes, _ = parse("==English==\n")
        assert len(nodes) == 1
        heading = nodes[0]
        assert isinstance(heading, Heading)
        assert heading.level == 2
        assert text_of(heading.content) == "English"
        assert heading.span == Span(0, 12)

    def test_heading_with_spaces_and_template(self):
        nodes, _ = parse("=== Noun {{anchor|x}} ===")
        heading = nodes[0]
        assert heading.level == 3
        assert isinstance(heading.content[1], Template)

    def test_unequal_markers_are_text(self):
        nodes, _ = parse("==Foo=\n")
        assert [type(node) for node in nodes] == [Text]

    def test_blank_heading_is_text(self):
        nodes, _ = parse("== ==")
        assert [type(node) for node in nodes] == [Text]

    def test_heading_only_at_line_start(self):
        nodes, _ = parse("a ==B==")
        assert [type(node) for node in nodes] == [Text]

    def test_trailing_comment(self):
        nodes, flags = parse("==English== <!-- note -->\nfoo")
        heading = nodes[0]
        assert isinstance(heading, Heading)
        assert text_of(heading.content) == "English"
        assert heading.span == Span(0, 26)
        assert nodes[1] == Text("foo", Span(26, 29))
        assert flags == []

    def test_text_after_closing_run_is_not_a_heading(self):
        nodes, _ = parse("==English== x\n")
        assert [type(node) for node in nodes] == [Text]


class TestHeadingFence:
    """An unclosed construct ends at the next heading line."""

    @pytest.mark.parametrize(
        "opener",
        ["{{a", "{{a|b=[[c", "<ref>x", "<div>\n* x", "{|\n| a", "<!-- x", "<nowiki>x"],
    )
    def test_unclosed_construct_stops_at_heading(self, opener):
        text = opener + "\n==B==\nafter"
        nodes, flags = parse(text)
        assert [type(node) for node in nodes] == [Unparsed, Heading, Text]
        assert nodes[0].raw == opener + "\n"
        assert text_of(nodes[1].content) == "B"
        assert FlagKind.UNBALANCED in [flag.kind for flag in flags]
        assert_tiles(nodes, text)

    def test_unclosed_template_in_list_item(self):
        text = "# a {{lb|en|x\n\n==B==\n# b\n"
        nodes, _ = parse(text)
        assert [type(node) for node in nodes] == [ListNode, Heading, ListNode]
        assert nodes[0].items[0].content[-1].raw == "{{lb|en|x\n\n"
        assert_tiles(nodes, text)

    def test_unequal_heading_is_no_fence(self):
        nodes, _ = parse("{{a\n==B=\n}}")
        assert [type(node) for node in nodes] == [Template]

    def test_closed_comment_may_hide_headings(self):
        nodes, flags = parse("<!--\n==B==\n-->")
        assert [type(node) for node in nodes] == [Comment]
        assert flags == []


class TestLists:
    """Test list lines and nesting."""

    def test_bullet_list(self):
        nodes, _ = parse("* a\n* b\n")
        assert len(nodes) == 1
        lst = nodes[0]
        assert isinstance(lst, ListNode)
        assert lst.kind is ListKind.BULLET
        assert [text_of(item.content).strip() for item in lst.items] == ["a", "b"]
        assert lst.span == Span(0, 8)

    def test_nested_definition_list(self):
        nodes, _ = parse("# a\n#: ex\n# b")
        lst = nodes[0]
        assert lst.kind is ListKind.ORDERED
        assert len(lst.items) == 2
        nested = lst.items[0].content[-1]
        assert isinstance(nested, ListNode)
        assert nested.kind is ListKind.DEFINITION
        assert text_of(nested.items[0].content).strip() == "ex"

    def test_nested_lists_of_different_kinds(self):
        nodes, _ = parse("# a\n#: ex\n#* quote\n## sub\n")
        first = nodes[0].items[0]
        kinds = [node.kind for node in first.content if isinstance(node, ListNode)]
        assert kinds == [ListKind.DEFINITION, ListKind.BULLET, ListKind.ORDERED]

    def test_term_and_definition(self):
        nodes, _ = parse("; term\n: definition")
        lst = nodes[0]
        assert lst.kind is ListKind.DEFINITION
        assert [item.marker for item in lst.items] == [";", ":"]

    def test_different_kinds_are_separate_lists(self):
        nodes, _ = parse("* a\n# b\n")
        assert [node.kind for node in nodes] == [ListKind.BULLET, ListKind.ORDERED]

    def test_skipped_level(self):
        """An item two levels deep with no parent gets a placeholder parent."""
        nodes, flags = parse("** orphan")
        lst = nodes[0]
        assert lst.kind is ListKind.BULLET
        placeholder = lst.items[0]
        assert isinstance(placeholder.content[0], ListNode)
        assert text_of(placeholder.content[0].items[0].content).strip() == "orphan"
        assert [flag.kind for flag in flags] == [FlagKind.UNKNOWN_SYNTAX]

    def test_list_only_at_line_start(self):
        nodes, _ = parse("a * b")
        assert [type(node) for node in nodes] == [Text]


TABLE = """{| class="wikitable"
|+ Caption
! H1 !! H2
|-
| a || b
|-
| style="x" | c
| d
|}"""


class TestTables:
    """Test table parsing."""

    def test_table_structure(self):
        nodes, flags = parse(TABLE)
        assert flags == []
        assert len(nodes) == 1
        table = nodes[0]
        assert isinstance(table, Table)
        assert table.attributes == 'class="wikitable"'
        assert text_of(table.caption).strip() == "Caption"
        assert len(table.rows) == 3

    def test_header_cells(self):
        table = parse(TABLE)[0][0]
        header = table.rows[0].cells
        assert [cell.header for cell in header] == [True, True]
        assert [text_of(cell.content).strip() for cell in header] == ["H1", "H2"]

    def test_inline_cells_and_attributes(self):
        table = parse(TABLE)[0][0]
        assert [text_of(cell.content).strip() for cell in table.rows[1].cells] == ["a", "b"]
        last = table.rows[2].cells
        assert last[0].attributes == 'style="x"'
        assert [text_of(cell.content).strip() for cell in last] == ["c", "d"]

    def test_unclosed_table(self):
        nodes, flags = parse("{|\n| a\n")
        assert [type(node) for node in nodes] == [Unparsed]
        assert [flag.kind for flag in flags] == [FlagKind.UNBALANCED]

    def test_text_outside_cell(self):
        nodes, flags = parse("{|\nfoo\n|}")
        cell = nodes[0].rows[0].cells[0]
        assert cell.content[0].raw == "foo"
        assert [flag.kind for flag in flags] == [FlagKind.UNKNOWN_SYNTAX]


class TestDepthLimit:
    """Test truncation of deeply nested input."""

    def test_deep_templates(self):
        text = "{{" * 100 + "x" + "}}" * 100
        nodes, flags = parse(text)
        assert len(nodes) == 1
        assert isinstance(nodes[0], Template)
        assert [flag.kind for flag in flags] == [FlagKind.DEPTH_LIMIT]
        assert_tiles(nodes, text)

    def test_small_max_depth(self):
        nodes, flags = parse("{{a|{{b|{{c}}}}}}", max_depth=2)
        assert isinstance(nodes[0], Template)
        truncated = [node for node in walk(nodes) if isinstance(node, Unparsed)]
        assert [node.raw for node in truncated] == ["{{c}}"]
        assert [flag.kind for flag in flags] == [FlagKind.DEPTH_LIMIT]

    def test_deep_link_stops_at_line_end(self):
        text = "[[" * 70 + "x\n==French==\nmore ]] tail"
        nodes, flags = parse(text)
        assert [type(node) for node in nodes] == [Unparsed, Text, Heading, Text]
        assert nodes[0].span == Span(0, 141)
        assert nodes[2].span.start == 142
        assert flags[0].kind is FlagKind.DEPTH_LIMIT
        assert {flag.kind for flag in flags} == {FlagKind.DEPTH_LIMIT, FlagKind.UNBALANCED}
        assert_tiles(nodes, text)

    def test_deep_template_stops_at_heading(self):
        text = "{{" * 100 + "x\n==B==\n" + "}}" * 100
        nodes, flags = parse(text)
        assert [type(node) for node in nodes] == [Unparsed, Heading, Text]
        assert text_of(nodes[1].content) == "B"
        assert flags[0].kind is FlagKind.DEPTH_LIMIT
        assert_tiles(nodes, text)

    def test_deep_list(self):
        text = "*" * 200 + " deep"
        nodes, flags = parse(text)
        assert FlagKind.DEPTH_LIMIT in [flag.kind for flag in flags]
        assert_tiles(nodes, text)

    def test_invalid_max_depth(self):
        with pytest.raises(ValueError):
            WikitextParser("x", max_depth=0)


class TestCoverage:
    """Top-level spans cover the input, whatever the input."""

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "plain",
            "{{",
            "}}",
            "[[",
            "]]",
            "''",
            "'''",
            "{|",
            "|}",
            "<ref>",
            "<!--",
            "==",
            "=a",
            "{{a|[[b}}",
            "[[a|{{b]]",
            "{{a\n==B==\n",
            "* a\n** b\n*** c\n# d",
            "==A==\n{{t|x\n==B==\ntext",
            "{|\n| [[a\n|}\n''b",
            "'''''a''' b''",
            "<span>{{x}}</span>\n<div>\n* a\n</div>",
        ],
    )
    def test_spans_tile_input(self, text):
        nodes, _ = parse(text)
        assert_tiles(nodes, text)

    def test_cat_page(self, cat_page):
        nodes, flags = parse(cat_page)
        assert_tiles(nodes, cat_page)
        assert flags == []

    def test_module_function(self):
        collector = FlagCollector()
        nodes = parse_wikitext("{{a", collector)
        assert isinstance(nodes[0], Unparsed)
        assert len(collector) == 1
