"""
WikitextParser - tolerant recursive descent parser for Wiktionary markup.

This parser handles:
- Headings: == text == (top level, line start only)
- Templates: {{name|param|key=value}}
- Wikilinks: [[target|text]] and external links: [https://... text]
- Formatting: ''italic'', '''bold''', '''''both'''''
- Lists (* # : ;), tables ({| |- | ! |}), comments and tags

Architecture:
    One dispatch loop (_parse_sequence) runs at every nesting level and
    recurses into each construct it recognizes. A construct passes its
    closing marker down as a "fence", so anything nested inside it stops
    when the enclosing closer shows up. A heading line is a fence for
    every construct, so an unclosed construct never runs past the next
    heading. An opener that never meets its closer degrades to an
    Unparsed node covering the opener up to where parsing resumed, plus
    an "unbalanced" flag. Nothing is ever raised.

Grammar (informal):
    page            ::= (heading | table | list | inline)*
    heading         ::= "="{n} inline "="{n} EOL          (1 <= n <= 6)
    template        ::= "{{" inline ("|" param)* "}}"
    param           ::= (inline "=")? inline               (first top-level "=")
    wikilink        ::= "[[" inline ("|" inline)? "]]"
    external_link   ::= "[" scheme url (" " inline)? "]"
    formatting      ::= "''" inline "''" | "'''" inline "'''"
    list            ::= (markers inline EOL)+
    table           ::= "{|" attrs EOL (caption | row | cells)* "|}"

Depth:
    Every construct entry increases the nesting depth. At max_depth the
    construct is skipped without recursion and becomes Unparsed with a
    "depth_limit" flag, so the call stack stays bounded.
"""

import re
from dataclasses import dataclass, replace
from functools import lru_cache
from typing import Optional, Pattern, Union

from .flags import FlagCollector, FlagKind, Span
from .nodes import (
    LIST_MARKERS,
    Comment,
    ExternalLink,
    Formatting,
    FormattingKind,
    Heading,
    Link,
    ListItem,
    ListNode,
    Node,
    Parameter,
    Table,
    TableCell,
    TableRow,
    Tag,
    Template,
    Text,
    Unparsed,
)
from .scanner import Scanner

DEFAULT_MAX_DEPTH = 64


# =============================================================================
# Patterns
# =============================================================================

# Characters that can never open, close or separate anything.
TEXT_RUN = re.compile(r"[^{}\[\]'<|=!\n]+")
HEADING_LINE = re.compile(r"(={1,6})([^\n]*?)(={1,6})(?:[ \t]|<!--.*?-->)*(?:\n|\Z)")
EXTERNAL_LINK_START = re.compile(
    r"\[((?:https?://|ftps?://|irc://|//|mailto:|news:)[^\s\[\]<>\"]*)", re.IGNORECASE
)
TAG_OPEN = re.compile(r"<([A-Za-z][A-Za-z0-9]*)((?:\s[^<>]*?)?)\s*(/?)>")
LIST_MARKER_RUN = re.compile(r"[*#:;]+")
APOSTROPHES = re.compile(r"'+")
BLANKS = re.compile(r"[ \t]*")
TABLE_LINE = re.compile(r"[ \t]*[|!]")
CELL_ATTRIBUTES = re.compile(
    r"""[ \t]*((?:[\w:-]+[ \t]*=[ \t]*(?:"[^"\n]*"|'[^'\n]*'|[^\s|'"]+)[ \t]*)+)\|(?!\|)"""
)

VOID_TAGS = frozenset({"br", "hr", "wbr"})
RAW_TAGS = frozenset(
    {"nowiki", "pre", "math", "chem", "syntaxhighlight", "source", "templatedata", "gallery", "score"}
)
# Tags whose content may run over several lines; the rest close by end of line.
MULTILINE_TAGS = frozenset({"ref", "references", "poem", "div", "blockquote", "center", "includeonly", "noinclude", "onlyinclude"})
KNOWN_TAGS = (
    VOID_TAGS
    | RAW_TAGS
    | MULTILINE_TAGS
    | frozenset(
        {"sup", "sub", "span", "small", "big", "u", "s", "del", "ins", "b", "i", "em", "strong",
         "code", "abbr", "q", "font", "tt", "var", "mark", "cite", "bdi", "ruby", "rt", "rp"}
    )
)


@lru_cache(maxsize=None)
def closing_tag(name: str) -> Pattern[str]:
    """Compiled pattern for the closing tag of `name`."""
    return re.compile(rf"</{re.escape(name)}\s*>", re.IGNORECASE)


def _is_heading(m) -> bool:
    """Check a HEADING_LINE match: equal "=" runs around non-blank text."""
    return m is not None and len(m.group(1)) == len(m.group(3)) and bool(m.group(2).strip())


# =============================================================================
# Parse context
# =============================================================================


@dataclass(frozen=True)
class _Context:
    """What ends the current run of nodes, and what may start inside it."""

    depth: int = 0
    closers: tuple[str, ...] = ()  # separators and closers of this construct
    fences: frozenset = frozenset()  # closers of enclosing constructs
    line: bool = False  # a line break ends the run
    block: bool = False  # lists and tables are recognised at line start
    headings: bool = False  # headings are recognised at line start
    table: bool = False  # a line starting with "|" or "!" ends the run
    param_name: bool = False  # "=" ends the run
    formatting: tuple[FormattingKind, ...] = ()  # open formatting, innermost last

    def nested(self, closer: str, separators: tuple[str, ...] = (), line: bool = False) -> "_Context":
        """Context for the inside of a construct closed by `closer`."""
        return _Context(
            depth=self.depth + 1,
            closers=separators + (closer,),
            fences=self.fences | {closer},
            line=line,
        )


# Returned by the inline dispatcher when the innermost formatting closes here.
_CLOSE = object()


# =============================================================================
# Parser class
# =============================================================================


class WikitextParser:
    """
    Recursive descent parser producing a list of top-level nodes.

    Usage:
        collector = FlagCollector()
        nodes = WikitextParser(text, collector).parse()
    """

    def __init__(
        self,
        text: str,
        collector: Optional[FlagCollector] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        if max_depth < 1:
            raise ValueError(f"max_depth must be at least 1, got {max_depth}")
        self.scanner = Scanner(text)
        self.collector = collector if collector is not None else FlagCollector()
        self.max_depth = max_depth

    def parse(self) -> list[Node]:
        """Parse the whole text; the returned nodes cover it without gaps."""
        self.scanner.pos = 0
        return self._parse_sequence(_Context(block=True, headings=True))

    # =========================================================================
    # Dispatch loop
    # =========================================================================

    def _parse_sequence(self, ctx: _Context) -> list[Node]:
        """Parse nodes until a stop condition of `ctx` or the end of input."""
        sc = self.scanner
        nodes: list[Node] = []
        text_start = -1

        while not sc.at_end():
            pos = sc.pos
            if not ctx.headings and self._at_heading_line():
                break
            if ctx.block and sc.at_line_start():
                if ctx.table and sc.match(TABLE_LINE):
                    break
                node = self._parse_line_start(ctx)
                if node is not None:
                    if text_start >= 0:
                        nodes.append(Text(sc.slice(text_start, pos), Span(text_start, pos)))
                        text_start = -1
                    nodes.append(node)
                    continue

            if sc.skip(TEXT_RUN):
                if text_start < 0:
                    text_start = pos
                continue

            if self._at_stop(ctx):
                break
            node = self._parse_inline(ctx)
            if node is _CLOSE:
                break
            if node is None:
                if text_start < 0:
                    text_start = pos
                sc.advance(1)
                continue
            if text_start >= 0:
                nodes.append(Text(sc.slice(text_start, pos), Span(text_start, pos)))
                text_start = -1
            nodes.append(node)

        if text_start >= 0:
            nodes.append(Text(sc.slice(text_start), Span(text_start, sc.pos)))
        return nodes

    def _at_heading_line(self) -> bool:
        sc = self.scanner
        return sc.peek() == "=" and sc.at_line_start() and _is_heading(sc.match(HEADING_LINE))

    def _next_heading_line(self, pos: int) -> int:
        """Start of the first heading line after `pos`, or the end of input."""
        sc = self.scanner
        index = sc.find("\n=", pos)
        while index >= 0:
            if _is_heading(HEADING_LINE.match(sc.text, index + 1, sc.end)):
                return index + 1
            index = sc.find("\n=", index + 1)
        return sc.end

    def _at_stop(self, ctx: _Context) -> bool:
        sc = self.scanner
        ch = sc.peek()
        if ch == "\n":
            return ctx.line
        if ch == "=":
            return ctx.param_name
        return (
            sc.starts_with_any(ctx.closers) is not None
            or sc.starts_with_any(ctx.fences) is not None
        )

    def _parse_inline(self, ctx: _Context) -> Union[Node, None, object]:
        """Parse an inline construct at the cursor; None means literal text."""
        sc = self.scanner
        ch = sc.peek()
        if ch == "{":
            if sc.starts_with("{{"):
                return self._parse_template(ctx)
        elif ch == "[":
            if sc.starts_with("[["):
                return self._parse_link(ctx)
            m = sc.match(EXTERNAL_LINK_START)
            if m is not None:
                return self._parse_external_link(ctx, m)
        elif ch == "'":
            return self._parse_apostrophes(ctx)
        elif ch == "<":
            if sc.starts_with("<!--"):
                return self._parse_comment()
            m = sc.match(TAG_OPEN)
            if m is not None and m.group(1).lower() in KNOWN_TAGS:
                return self._parse_tag(ctx, m)
        return None

    def _parse_line_start(self, ctx: _Context) -> Optional[Node]:
        sc = self.scanner
        ch = sc.peek()
        if ch == "=" and ctx.headings:
            return self._parse_heading(ctx)
        if ch == "{" and sc.starts_with("{|"):
            return self._parse_table(ctx)
        if ch in LIST_MARKERS:
            return self._parse_list(ctx, 0, "")
        return None

    # =========================================================================
    # Failure and truncation
    # =========================================================================

    def _unbalanced(self, start: int, what: str) -> Unparsed:
        """Degrade a construct without closer to Unparsed."""
        sc = self.scanner
        span = Span(start, sc.pos)
        self.collector.add(FlagKind.UNBALANCED, span, f"unclosed {what}")
        return Unparsed(sc.slice(start), span)

    def _truncate_balanced(self, start: int, opener: str, closer: str, limit: int) -> Unparsed:
        """
        Skip a too-deep construct by counting its markers, without recursion.

        The skip never goes past `limit`, even when the closer is missing.
        """
        sc = self.scanner
        depth = 0
        pos = start
        while True:
            next_close = sc.find(closer, pos)
            if next_close < 0 or next_close + len(closer) > limit:
                pos = limit
                break
            next_open = sc.find(opener, pos)
            if 0 <= next_open < next_close:
                depth += 1
                pos = next_open + len(opener)
            else:
                depth -= 1
                pos = next_close + len(closer)
                if depth <= 0:
                    break
        sc.advance(pos - sc.pos)
        return self._depth_exceeded(start)

    def _truncate_line(self, start: int) -> Unparsed:
        """Skip a too-deep construct up to the end of its line."""
        sc = self.scanner
        sc.advance(sc.line_end() - sc.pos)
        return self._depth_exceeded(start)

    def _depth_exceeded(self, start: int) -> Unparsed:
        sc = self.scanner
        span = Span(start, sc.pos)
        self.collector.add(FlagKind.DEPTH_LIMIT, span, f"nesting deeper than {self.max_depth}")
        return Unparsed(sc.slice(start), span)

    # =========================================================================
    # Templates
    # =========================================================================

    def _parse_template(self, ctx: _Context) -> Node:
        """
        Parse a template: {{name|param1|key=value|...}}

        Only the first "=" at the parameter's own level splits name from
        value; an "=" inside a nested template or link does not.
        """
        sc = self.scanner
        start = sc.pos
        if ctx.depth >= self.max_depth:
            return self._truncate_balanced(start, "{{", "}}", self._next_heading_line(start))
        sc.advance(2)

        inner = ctx.nested("}}", separators=("|",))
        name_position = replace(inner, param_name=True)
        name = self._parse_sequence(inner)

        parameters: list[Parameter] = []
        while sc.starts_with("|"):
            sc.advance(1)
            param_start = sc.pos
            first = self._parse_sequence(name_position)
            if sc.peek() == "=":
                sc.advance(1)
                value = self._parse_sequence(inner)
                parameters.append(Parameter(first, value, Span(param_start, sc.pos)))
            else:
                parameters.append(Parameter(None, first, Span(param_start, sc.pos)))

        if not sc.starts_with("}}"):
            return self._unbalanced(start, "template")
        sc.advance(2)

        template = Template(name, parameters, Span(start, sc.pos))
        self._check_template(template)
        return template

    def _check_template(self, template: Template) -> None:
        """Flag an empty name and repeated parameter names."""
        if all(isinstance(node, Text) for node in template.name):
            if not "".join(node.value for node in template.name).strip():
                self.collector.add(FlagKind.MALFORMED_TEMPLATE, template.span, "empty template name")

        seen: set[str] = set()
        for parameter in template.parameters:
            if parameter.name is None:
                continue
            if not all(isinstance(node, Text) for node in parameter.name):
                continue
            key = "".join(node.value for node in parameter.name).strip()
            if key in seen:
                self.collector.add(
                    FlagKind.MALFORMED_TEMPLATE, parameter.span, f"duplicate parameter '{key}'"
                )
            seen.add(key)

    # =========================================================================
    # Links
    # =========================================================================

    def _parse_link(self, ctx: _Context) -> Node:
        """Parse a wikilink: [[target|text]]"""
        sc = self.scanner
        start = sc.pos
        if ctx.depth >= self.max_depth:
            return self._truncate_balanced(start, "[[", "]]", sc.line_end())
        sc.advance(2)

        target = self._parse_sequence(ctx.nested("]]", separators=("|",), line=True))
        text = None
        if sc.starts_with("|"):
            sc.advance(1)
            text = self._parse_sequence(ctx.nested("]]", line=True))

        if not sc.starts_with("]]"):
            return self._unbalanced(start, "link")
        sc.advance(2)
        return Link(target, text, Span(start, sc.pos))

    def _parse_external_link(self, ctx: _Context, m) -> Node:
        """Parse an external link: [https://example.org text]"""
        sc = self.scanner
        start = sc.pos
        if ctx.depth >= self.max_depth:
            return self._truncate_line(start)
        url = m.group(1)
        sc.advance(m.end() - start)
        sc.skip(BLANKS)

        inner = _Context(depth=ctx.depth + 1, closers=("]",), fences=ctx.fences, line=True)
        text = self._parse_sequence(inner)
        if sc.peek() != "]":
            return self._unbalanced(start, "external link")
        sc.advance(1)
        return ExternalLink(url, text or None, Span(start, sc.pos))

    # =========================================================================
    # Formatting
    # =========================================================================

    def _apostrophe_run(self) -> int:
        m = self.scanner.match(APOSTROPHES)
        return len(m.group()) if m else 0

    @staticmethod
    def _closes(kind: FormattingKind, run: int) -> bool:
        if kind is FormattingKind.ITALIC:
            return run in (2, 5)
        return run in (3, 5)

    def _parse_apostrophes(self, ctx: _Context):
        run = self._apostrophe_run()
        if run < 2:
            return None
        if ctx.formatting and self._closes(ctx.formatting[-1], run):
            return _CLOSE
        if run == 4 or run > 5:
            # The surplus apostrophes are literal text.
            return None
        kind = FormattingKind.BOLD if run in (3, 5) else FormattingKind.ITALIC
        return self._parse_formatting(ctx, kind)

    def _parse_formatting(self, ctx: _Context, kind: FormattingKind) -> Node:
        sc = self.scanner
        start = sc.pos
        if ctx.depth >= self.max_depth:
            return self._truncate_line(start)
        width = 3 if kind is FormattingKind.BOLD else 2
        sc.advance(width)

        inner = replace(
            ctx,
            depth=ctx.depth + 1,
            line=True,
            block=False,
            headings=False,
            table=False,
            formatting=ctx.formatting + (kind,),
        )
        content = self._parse_sequence(inner)
        if self._closes(kind, self._apostrophe_run()):
            sc.advance(width)
            return Formatting(kind, content, Span(start, sc.pos))
        return self._unbalanced(start, f"{kind.value} formatting")

    # =========================================================================
    # Comments and tags
    # =========================================================================

    def _parse_comment(self) -> Node:
        sc = self.scanner
        start = sc.pos
        # A closed comment may hide whole sections; an unclosed one stops
        # at the next heading.
        end = sc.find("-->", start + 4)
        if end < 0:
            sc.advance(self._next_heading_line(start) - sc.pos)
            return self._unbalanced(start, "comment")
        sc.advance(end + 3 - start)
        return Comment(sc.slice(start + 4, end), Span(start, sc.pos))

    def _parse_tag(self, ctx: _Context, m) -> Node:
        sc = self.scanner
        start = sc.pos
        name = m.group(1).lower()
        attributes = m.group(2).strip()
        if ctx.depth >= self.max_depth:
            return self._truncate_line(start)
        sc.advance(m.end() - start)

        if m.group(3) or name in VOID_TAGS:
            return Tag(name, attributes, [], Span(start, sc.pos))

        closing = closing_tag(name)
        if name in RAW_TAGS:
            limit = self._next_heading_line(sc.pos)
            with sc.bounded(limit):
                close = sc.search(closing)
            if close is None:
                sc.advance(limit - sc.pos)
                return self._unbalanced(start, f"<{name}> tag")
            content: list[Node] = []
            if close.start() > sc.pos:
                content.append(Text(sc.slice(sc.pos, close.start()), Span(sc.pos, close.start())))
            sc.advance(close.end() - sc.pos)
            return Tag(name, attributes, content, Span(start, sc.pos))

        inner = ctx.nested(f"</{name}", line=name not in MULTILINE_TAGS)
        content = self._parse_sequence(inner)
        close = sc.match(closing)
        if close is None:
            return self._unbalanced(start, f"<{name}> tag")
        sc.advance(close.end() - sc.pos)
        return Tag(name, attributes, content, Span(start, sc.pos))

    # =========================================================================
    # Headings
    # =========================================================================

    def _parse_heading(self, ctx: _Context) -> Optional[Node]:
        """
        Parse a heading line: == text ==

        Unequal runs of "=" on both sides, or blank text, are not a heading;
        the caller then treats the line as plain text.
        """
        sc = self.scanner
        m = sc.match(HEADING_LINE)
        if not _is_heading(m):
            return None

        level = len(m.group(1))
        start = sc.pos
        sc.advance(m.start(2) - start)
        with sc.bounded(m.end(2)):
            content = self._parse_sequence(_Context(depth=ctx.depth + 1, line=True))
        sc.advance(m.end() - sc.pos)
        return Heading(level, content, Span(start, sc.pos))

    # =========================================================================
    # Lists
    # =========================================================================

    @staticmethod
    def _family(markers: str) -> str:
        # ";" terms and ":" definitions belong to one definition list.
        return markers.replace(";", ":")

    def _parse_list(self, ctx: _Context, level: int, prefix: str) -> ListNode:
        """
        Parse consecutive list lines sharing `prefix` into one list.

        A line whose marker run is longer than level + 1 opens a nested list
        inside the previous item.
        """
        sc = self.scanner
        start = sc.pos
        run = sc.match(LIST_MARKER_RUN).group()
        kind = LIST_MARKERS[run[level]]
        items: list[ListItem] = []

        while not sc.at_end() and sc.at_line_start():
            m = sc.match(LIST_MARKER_RUN)
            if m is None:
                break
            run = m.group()
            if (
                len(run) <= level
                or self._family(run[:level]) != self._family(prefix)
                or LIST_MARKERS[run[level]] is not kind
            ):
                break
            line_start = sc.pos

            if len(run) == level + 1:
                sc.advance(len(run))
                content = self._parse_sequence(_Context(depth=ctx.depth + level + 1, line=True))
                if sc.peek() == "\n":
                    sc.advance(1)
                items.append(ListItem(run, content, Span(line_start, sc.pos)))
                continue

            if not items:
                self.collector.add(
                    FlagKind.UNKNOWN_SYNTAX,
                    Span(line_start, line_start + len(run)),
                    f"list item '{run}' skips a nesting level",
                )
                items.append(ListItem(run[: level + 1], [], Span(line_start, line_start)))
            parent = items[-1]

            if ctx.depth + level + 1 >= self.max_depth:
                nested: Node = self._truncate_line(line_start)
                if sc.peek() == "\n":
                    sc.advance(1)
            else:
                nested = self._parse_list(ctx, level + 1, run[: level + 1])
            parent.content.append(nested)
            parent.span = Span(parent.span.start, sc.pos)

        return ListNode(kind, items, Span(start, sc.pos))

    # =========================================================================
    # Tables
    # =========================================================================

    def _rest_of_line(self) -> str:
        """Consume the rest of the line and its line break; return the text."""
        sc = self.scanner
        end = sc.line_end()
        value = sc.slice(sc.pos, end)
        sc.advance(end - sc.pos)
        if sc.peek() == "\n":
            sc.advance(1)
        return value

    def _parse_table(self, ctx: _Context) -> Node:
        """
        Parse a table: {| attrs ... |}

        Lines inside the table that are not table syntax are kept as
        Unparsed cells and flagged.
        """
        sc = self.scanner
        start = sc.pos
        if ctx.depth >= self.max_depth:
            return self._truncate_balanced(start, "{|", "|}", self._next_heading_line(start))
        sc.advance(2)
        attributes = self._rest_of_line().strip()
        depth = ctx.depth + 1

        caption: Optional[list[Node]] = None
        rows: list[TableRow] = []
        row: Optional[TableRow] = None

        while True:
            if self._at_heading_line():
                return self._unbalanced(start, "table")
            sc.skip(BLANKS)
            if sc.at_end():
                return self._unbalanced(start, "table")
            line_start = sc.pos

            if sc.starts_with("|}"):
                sc.advance(2)
                self._rest_of_line()
                return Table(attributes, caption, rows, Span(start, sc.pos))

            if sc.peek() == "\n":
                sc.advance(1)
                continue

            if sc.starts_with("|-"):
                sc.advance(2)
                row = TableRow(self._rest_of_line().strip(), [], Span(line_start, sc.pos))
                rows.append(row)
                continue

            if sc.starts_with("|+"):
                sc.advance(2)
                caption = self._parse_sequence(_Context(depth=depth, line=True))
                if sc.peek() == "\n":
                    sc.advance(1)
                continue

            if row is None:
                row = TableRow("", [], Span(line_start, line_start))
                rows.append(row)

            if sc.peek() in ("|", "!"):
                row.cells.extend(self._parse_cells(depth))
            else:
                raw = self._rest_of_line()
                span = Span(line_start, line_start + len(raw))
                self.collector.add(FlagKind.UNKNOWN_SYNTAX, span, "text outside a table cell")
                row.cells.append(TableCell(False, "", [Unparsed(raw, span)], span))
            row.span = Span(row.span.start, sc.pos)

    def _parse_cells(self, depth: int) -> list[TableCell]:
        """Parse one "|" or "!" line, which may hold several cells."""
        sc = self.scanner
        header = sc.peek() == "!"
        separators = ("||", "!!") if header else ("||",)
        cell_start = sc.pos
        sc.advance(1)

        cells: list[TableCell] = []
        while True:
            attributes = ""
            m = sc.match(CELL_ATTRIBUTES)
            if m is not None:
                attributes = m.group(1).strip()
                sc.advance(m.end() - sc.pos)
            content = self._parse_sequence(
                _Context(depth=depth, closers=separators, block=True, table=True)
            )
            cells.append(TableCell(header, attributes, content, Span(cell_start, sc.pos)))
            if sc.starts_with_any(separators) is None:
                return cells
            cell_start = sc.pos
            sc.advance(2)


# =============================================================================
# Module-level convenience functions
# =============================================================================


def parse_wikitext(
    text: str,
    collector: Optional[FlagCollector] = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> list[Node]:
    """
    Parse wikitext into top-level nodes.

    Args:
        text: Raw wikitext of a page (or any fragment)
        collector: Receives flags for anomalies; a fresh one if omitted
        max_depth: Maximum construct nesting before truncation

    Returns:
        Nodes whose spans cover the text from start to end
    """
    return WikitextParser(text, collector, max_depth).parse()
