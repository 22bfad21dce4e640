"""
Section tree reconstruction from the flat top-level node sequence.

Heading levels define an implicit tree: a section at level n owns every
following section deeper than n until a heading at level <= n appears,
plus the content between its heading and its first child heading.

Skipped levels (a level-4 heading directly under a level-2 one) are kept
as they are; the tree reflects actual heading levels.
"""

from dataclasses import dataclass, field
from typing import Iterator, Optional

from .flags import Span
from .nodes import Heading, Node
from .render import normalize_heading, text_of


@dataclass
class SectionTree:
    """One heading and everything it owns. The root has level 0 and no heading."""

    heading: Optional[Heading]
    level: int
    title: str
    content: list[Node] = field(default_factory=list)
    children: list["SectionTree"] = field(default_factory=list)
    span: Span = Span(0, 0)

    @property
    def normalized_title(self) -> str:
        return normalize_heading(self.title)

    @property
    def own_span(self) -> Span:
        """Span of the heading and direct content, excluding child sections."""
        end = self.children[0].span.start if self.children else self.span.end
        return Span(self.span.start, end)

    def walk(self) -> Iterator["SectionTree"]:
        """Yield this section and all descendants in document order."""
        stack = [self]
        while stack:
            section = stack.pop()
            yield section
            stack.extend(reversed(section.children))

    def find(self, title: str) -> Optional["SectionTree"]:
        """First section (in document order) whose normalized title matches."""
        wanted = normalize_heading(title)
        for section in self.walk():
            if section.heading is not None and section.normalized_title == wanted:
                return section
        return None


def build_section_tree(nodes: list[Node]) -> SectionTree:
    """
    Build the section tree for a page.

    Args:
        nodes: Top-level nodes from the parser, headings interleaved

    Returns:
        Root SectionTree spanning all nodes
    """
    root = SectionTree(heading=None, level=0, title="")
    stack = [root]

    for node in nodes:
        if isinstance(node, Heading):
            while stack[-1].level >= node.level:
                stack.pop()
            section = SectionTree(
                heading=node,
                level=node.level,
                title=text_of(node.content).strip(),
            )
            stack[-1].children.append(section)
            stack.append(section)
        else:
            stack[-1].content.append(node)

    # Children before parents, so a parent can extend over its last child.
    for section in reversed(list(root.walk())):
        if section.heading is not None:
            start, end = section.heading.span.start, section.heading.span.end
        else:
            start = end = nodes[0].span.start if nodes else 0
        if section.content:
            end = max(end, section.content[-1].span.end)
        if section.children:
            end = max(end, section.children[-1].span.end)
        section.span = Span(start, end)

    return root
