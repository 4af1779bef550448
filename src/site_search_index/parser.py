"""HTML parser extracting searchable content from rendered documentation pages."""

import logging
import re
from collections.abc import Iterator

from bs4 import BeautifulSoup
from bs4.element import NavigableString, PreformattedString, Tag

from site_search_index.models import PageContent, SectionHeading

logger = logging.getLogger(__name__)

_HEADING_PATTERN = re.compile(r"^h([1-6])$")
_WHITESPACE_PATTERN = re.compile(r"\s+")


def normalise_whitespace(text: str) -> str:
    """Collapse runs of whitespace to single spaces and trim.

    Args:
        text: Raw text.

    Returns:
        Normalised text.
    """
    return _WHITESPACE_PATTERN.sub(" ", text).strip()


class SkipNode(Exception):  # noqa: N818
    """Raised by a visitor method to skip the children of the current node."""


class ContentNode:
    """Element of a page tree, seen through the properties extraction cares about."""

    NAVIGATION_TAGS = frozenset({"nav", "aside"})
    NAVIGATION_CLASSES = frozenset({"nav", "navigation", "nav-menu", "nav-list", "toc", "breadcrumbs", "pagination"})
    PARAGRAPH_TAGS = frozenset({"p", "pre", "li", "dt", "dd", "td", "th", "blockquote", "figcaption"})
    IGNORED_TAGS = frozenset({"script", "style", "template", "noscript"})

    def __init__(self, element: Tag) -> None:
        """Wrap a parsed element.

        Args:
            element: BeautifulSoup tag.
        """
        self.element = element

    @property
    def tag_name(self) -> str:
        return (self.element.name or "").lower()

    @property
    def is_navigation(self) -> bool:
        """Whether this node starts a navigation region."""
        if self.tag_name in self.NAVIGATION_TAGS:
            return True
        if self.element.get("role") == "navigation":
            return True
        classes = self.element.get("class") or []
        if isinstance(classes, str):
            classes = classes.split()
        return not self.NAVIGATION_CLASSES.isdisjoint(classes)

    @property
    def is_within_navigation(self) -> bool:
        """Whether this node or one of its ancestors is a navigation region."""
        if self.is_navigation:
            return True
        return any(ContentNode(parent).is_navigation for parent in self.element.parents if parent.name)

    @property
    def heading_rank(self) -> int | None:
        """Heading level (1 for ``<h1>``), or None when not a heading."""
        match = _HEADING_PATTERN.match(self.tag_name)
        return int(match.group(1)) if match else None

    @property
    def is_paragraph(self) -> bool:
        return self.tag_name in self.PARAGRAPH_TAGS

    @property
    def is_ignored(self) -> bool:
        return self.tag_name in self.IGNORED_TAGS

    @property
    def kind(self) -> str:
        """Name used to dispatch visitor methods."""
        if self.is_ignored:
            return "ignored"
        if self.is_navigation:
            return "navigation"
        if self.heading_rank is not None:
            return "heading"
        if self.is_paragraph:
            return "paragraph"
        return "element"

    def children(self) -> Iterator["ContentNode"]:
        """Yield child elements in document order."""
        for child in self.element.children:
            if isinstance(child, Tag):
                yield ContentNode(child)

    def _strings(self) -> Iterator[str]:
        # Iterative, markup nesting depth is unbounded
        stack = list(reversed(list(self.element.children)))
        while stack:
            child = stack.pop()
            if isinstance(child, Tag):
                node = ContentNode(child)
                if node.is_navigation or node.is_ignored:
                    continue
                stack.extend(reversed(list(child.children)))
            elif isinstance(child, NavigableString) and not isinstance(child, PreformattedString):
                yield str(child)

    def text(self) -> str:
        """Return the normalised text of this subtree, excluding navigation regions."""
        return normalise_whitespace("".join(self._strings()))

    def walk(self, visitor: "NodeVisitor") -> None:
        """Traverse this subtree depth-first, calling the visitor on every element.

        A ``SkipNode`` raised by the visitor prunes the children of that node.

        Args:
            visitor: Visitor receiving the nodes.
        """
        stack = [self]
        while stack:
            node = stack.pop()
            try:
                visitor.dispatch_visit(node)
            except SkipNode:
                continue
            stack.extend(reversed(list(node.children())))


class NodeVisitor:
    """Base visitor dispatching to ``visit_<kind>`` methods.

    Navigation regions and ignored elements are skipped unless a subclass
    overrides ``visit_navigation`` or ``visit_ignored``.
    """

    def dispatch_visit(self, node: ContentNode) -> None:
        method = getattr(self, f"visit_{node.kind}", self.default_visit)
        method(node)

    def visit_navigation(self, node: ContentNode) -> None:
        raise SkipNode

    def visit_ignored(self, node: ContentNode) -> None:
        raise SkipNode

    def default_visit(self, node: ContentNode) -> None:
        """Default visit handler (no-op)."""


class TitleVisitor(NodeVisitor):
    """Visitor finding the first top-level heading of an article."""

    def __init__(self) -> None:
        self.title: str | None = None

    def visit_heading(self, node: ContentNode) -> None:
        """Record the first ``<h1>``.

        Args:
            node: Heading node.

        Raises:
            SkipNode: Always raised, headings hold no nested headings.
        """
        if self.title is None and node.heading_rank == 1:
            self.title = node.text()
        raise SkipNode


class TextContentVisitor(NodeVisitor):
    """Visitor collecting the searchable text and section titles of an article.

    The first ``<h1>`` is the page title and is left out of the text. Later
    ``<h1>`` headings belong to the text, lower ranked headings are collected
    as section headings along with their anchor ids.
    """

    def __init__(self) -> None:
        self._text_parts: list[str] = []
        self._sections: list[SectionHeading] = []
        self._seen_title = False

    def visit_heading(self, node: ContentNode) -> None:
        """Route heading text according to its rank.

        Args:
            node: Heading node.

        Raises:
            SkipNode: Always raised once the heading text is taken.
        """
        text = node.text()
        if node.heading_rank == 1:
            if self._seen_title:
                self._append(self._text_parts, text)
            self._seen_title = True
        elif text:
            self._sections.append(SectionHeading(title=text, id=str(node.element.get("id") or "")))
        raise SkipNode

    def visit_paragraph(self, node: ContentNode) -> None:
        """Collect the text of a paragraph-level block.

        Args:
            node: Paragraph node.

        Raises:
            SkipNode: Always raised so nested blocks are not counted twice.
        """
        self._append(self._text_parts, node.text())
        raise SkipNode

    @staticmethod
    def _append(parts: list[str], text: str) -> None:
        if text:
            parts.append(text)

    def get_text(self) -> str:
        """Get collected text content.

        Returns:
            Text blocks joined by single spaces.
        """
        return " ".join(self._text_parts)

    def get_sections(self) -> tuple[SectionHeading, ...]:
        return tuple(self._sections)


class DocumentParser:
    """Parses rendered HTML pages for indexing."""

    CONTENT_ROOT_SELECTORS = ("article.doc", "article")
    HTML_PARSER = "html.parser"

    def parse(self, contents: bytes | str) -> BeautifulSoup:
        """Parse page contents into a document tree.

        Args:
            contents: Raw HTML, as bytes or text.

        Returns:
            Parsed document tree.
        """
        markup: bytes | str = contents
        if isinstance(contents, bytes):
            try:
                markup = contents.decode("utf-8")
            except UnicodeDecodeError:
                # Leave encoding detection to BeautifulSoup
                markup = contents
        return BeautifulSoup(markup, self.HTML_PARSER)

    def find_content_root(self, soup: BeautifulSoup) -> ContentNode | None:
        """Locate the article body outside any navigation region.

        Args:
            soup: Parsed document tree.

        Returns:
            Content root node or None if the page has no article body.
        """
        for selector in self.CONTENT_ROOT_SELECTORS:
            for element in soup.select(selector):
                node = ContentNode(element)
                if not node.is_within_navigation:
                    return node
        return None

    def extract_title(self, soup: BeautifulSoup) -> str | None:
        """Return the text of the first ``<h1>`` in the article body.

        Args:
            soup: Parsed document tree.

        Returns:
            Title text or None if the article has no top-level heading.
        """
        root = self.find_content_root(soup)
        if root is None:
            return None
        visitor = TitleVisitor()
        root.walk(visitor)
        return visitor.title

    def extract_text(self, soup: BeautifulSoup) -> str:
        """Return the plain text of the article body.

        Args:
            soup: Parsed document tree.

        Returns:
            Extracted text, empty when there is no article body.
        """
        visitor = self._visit_content(soup)
        return visitor.get_text() if visitor else ""

    def extract_sections(self, soup: BeautifulSoup) -> tuple[SectionHeading, ...]:
        """Return the ``<h2>``-``<h6>`` headings of the article body, with their ids, in document order."""
        visitor = self._visit_content(soup)
        return visitor.get_sections() if visitor else ()

    def _visit_content(self, soup: BeautifulSoup) -> TextContentVisitor | None:
        root = self.find_content_root(soup)
        if root is None:
            return None
        visitor = TextContentVisitor()
        root.walk(visitor)
        return visitor

    def parse_contents(self, contents: bytes | str | None, source: str = "") -> PageContent:
        """Extract text, title and section titles from page contents.

        Parsing failures never propagate: the page degrades to empty content.

        Args:
            contents: Raw HTML of the page.
            source: Page label used in log messages.

        Returns:
            PageContent instance.
        """
        try:
            soup = self.parse(contents or b"")
            root = self.find_content_root(soup)
            if root is None:
                logger.debug("No article body found in %s", source or "page")
                return PageContent()
            title_visitor = TitleVisitor()
            root.walk(title_visitor)
            text_visitor = TextContentVisitor()
            root.walk(text_visitor)
            return PageContent(
                text=text_visitor.get_text(),
                title=title_visitor.title,
                sections=text_visitor.get_sections(),
            )
        except Exception:
            logger.warning("Failed to parse %s, indexing it without content", source or "page", exc_info=True)
            return PageContent()
