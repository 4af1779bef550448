"""Tests for HTML page parser."""

from unittest.mock import patch

import pytest
from bs4 import BeautifulSoup

from site_search_index.models import SectionHeading
from site_search_index.parser import ContentNode, DocumentParser, NodeVisitor, normalise_whitespace

NAVIGATION_PAGE = """
<aside class="navigation">
  <nav class="nav-menu">
    <h3 class="title"><a href="./">Asciidoctor</a></h3>
      <ul class="nav-list">
        <li class="nav-item">How Asciidoctor Can Help</li>
        <li class="nav-item">How Asciidoctor Works</li>
      </ul>
    </nav>
</aside>
<article class="doc">
  <h1>Antora Documentation</h1>
  <p>The Static Site Generator for Tech Writers</p>
  <p>This site hosts the technical documentation for Antora</p>
  <h2 id="manage-docs-as-code">Manage docs as code</h2>
  <p>With Antora, you manage docs as code</p>
  <h3 id="where-to-begin">Where to begin</h3>
  <h4 id="navigation">Navigation</h4>
  <h5 id="link-types-syntax">Link Types &amp; Syntax</h5>
  <h6 id="page-links">Page Links</h6>
</article>
"""

WHATS_NEW_PAGE = """
<article class="doc">
  <h1 class="page">What’s New in Antora</h1>
  <div id="preamble">
    <div class="sectionbody">
      <div class="paragraph">
        <p>Learn about what’s new in the 2.0 release series of Antora.</p>
      </div>
    </div>
  </div>
  <h1 id="antora-2-0-0" class="sect0"><a class="anchor" href="#antora-2-0-0"></a>Antora 2.0.0</h1>
  <div class="openblock partintro">
    <div class="content">
      <div class="paragraph">
        <p><em><strong>Release date:</strong> 2018.12.25</em></p>
      </div>
    </div>
  </div>
</article>
"""


@pytest.fixture
def parser() -> DocumentParser:
    """Create a DocumentParser instance.

    Returns:
        DocumentParser instance.
    """
    return DocumentParser()


def test_extract_text_from_paragraphs(parser: DocumentParser) -> None:
    """Test that paragraph text is joined with single spaces."""
    soup = parser.parse(NAVIGATION_PAGE.encode("utf-8"))

    assert parser.extract_text(soup) == (
        "The Static Site Generator for Tech Writers "
        "This site hosts the technical documentation for Antora "
        "With Antora, you manage docs as code"
    )


def test_extract_title(parser: DocumentParser) -> None:
    """Test extracting the first h1 of the article."""
    soup = parser.parse(NAVIGATION_PAGE)

    assert parser.extract_title(soup) == "Antora Documentation"


def test_extract_sections(parser: DocumentParser) -> None:
    """Test that h2 to h6 headings are collected with their anchor ids."""
    soup = parser.parse(NAVIGATION_PAGE)

    assert parser.extract_sections(soup) == (
        SectionHeading(title="Manage docs as code", id="manage-docs-as-code"),
        SectionHeading(title="Where to begin", id="where-to-begin"),
        SectionHeading(title="Navigation", id="navigation"),
        SectionHeading(title="Link Types & Syntax", id="link-types-syntax"),
        SectionHeading(title="Page Links", id="page-links"),
    )


def test_section_without_id(parser: DocumentParser) -> None:
    """Test that a section heading without an id keeps an empty id."""
    content = parser.parse_contents("<article class='doc'><h2>Plain section</h2><h3 id=''>  </h3></article>")

    assert content.sections == (SectionHeading(title="Plain section"),)


def test_navigation_is_excluded(parser: DocumentParser) -> None:
    """Test that navigation siblings of the article are not extracted."""
    content = parser.parse_contents(NAVIGATION_PAGE.encode("utf-8"))

    assert "Asciidoctor" not in content.text
    assert all("Asciidoctor" not in section.title for section in content.sections)
    assert content.title == "Antora Documentation"


def test_navigation_inside_article_is_excluded(parser: DocumentParser) -> None:
    """Test that navigation nested inside the article is skipped."""
    html = """
<article class="doc">
  <nav class="pagination"><h1>Previous page</h1><p>Go back</p></nav>
  <h1>Real Title</h1>
  <p>Body <span>text</span></p>
  <div class="toc"><ul><li>Table of contents entry</li></ul></div>
</article>
"""
    content = parser.parse_contents(html)

    assert content.title == "Real Title"
    assert content.text == "Body text"


def test_article_inside_navigation_is_not_content(parser: DocumentParser) -> None:
    """Test that an article nested under a navigation region is ignored."""
    html = """
<nav><article class="doc"><h1>Menu</h1><p>menu entry</p></article></nav>
<article class="doc"><h1>Page</h1><p>page body</p></article>
"""
    content = parser.parse_contents(html)

    assert content.title == "Page"
    assert content.text == "page body"


def test_only_first_h1_is_title(parser: DocumentParser) -> None:
    """Test that later h1 headings stay in the text."""
    content = parser.parse_contents(WHATS_NEW_PAGE.encode("utf-8"))

    assert content.title == "What’s New in Antora"
    assert content.text == (
        "Learn about what’s new in the 2.0 release series of Antora. Antora 2.0.0 Release date: 2018.12.25"
    )


def test_inline_elements_are_not_separated(parser: DocumentParser) -> None:
    """Test that inline markup inside a paragraph keeps words intact."""
    content = parser.parse_contents("<article class='doc'><p>Ant<b>ora</b>   is\n  <em>great</em></p></article>")

    assert content.text == "Antora is great"


def test_scripts_and_comments_are_ignored(parser: DocumentParser) -> None:
    """Test that script bodies and HTML comments never reach the text."""
    html = """
<article class="doc">
  <p>Visible<!-- hidden comment --></p>
  <script>var hidden = 1;</script>
  <pre>code sample</pre>
</article>
"""
    content = parser.parse_contents(html)

    assert content.text == "Visible code sample"


def test_fallback_to_plain_article(parser: DocumentParser) -> None:
    """Test that an article without the doc class is used as content root."""
    content = parser.parse_contents("<main><article><h1>Title</h1><p>Body</p></article></main>")

    assert content.title == "Title"
    assert content.text == "Body"


def test_page_without_article(parser: DocumentParser) -> None:
    """Test that a page without an article body yields empty content."""
    content = parser.parse_contents(b"foo")

    assert content.text == ""
    assert content.title is None
    assert content.sections == ()


def test_article_without_heading(parser: DocumentParser) -> None:
    """Test that title is absent when the article has no h1."""
    soup = parser.parse("<article class='doc'><h2>Section</h2><p>foo</p></article>")

    assert parser.extract_title(soup) is None
    assert parser.extract_text(soup) == "foo"


def test_parse_empty_contents(parser: DocumentParser) -> None:
    """Test parsing absent contents."""
    content = parser.parse_contents(None)

    assert content.text == ""
    assert content.title is None


def test_parse_non_utf8_contents(parser: DocumentParser) -> None:
    """Test that undecodable bytes do not raise."""
    content = parser.parse_contents(b"<article class='doc'><p>caf\xe9</p></article>")

    assert content.text.startswith("caf")


def test_parse_failure_degrades_to_empty_content(parser: DocumentParser) -> None:
    """Test that parser errors are contained to the page."""
    with patch.object(DocumentParser, "parse", side_effect=RuntimeError("boom")):
        content = parser.parse_contents(b"<article class='doc'><p>foo</p></article>", "broken")

    assert content.text == ""
    assert content.title is None


@pytest.mark.parametrize(
    ("html", "expected"),
    [
        ("<nav></nav>", True),
        ("<aside></aside>", True),
        ('<div role="navigation"></div>', True),
        ('<div class="nav-menu other"></div>', True),
        ('<div class="paragraph"></div>', False),
        ("<h2></h2>", False),
    ],
)
def test_content_node_is_navigation(html: str, expected: bool) -> None:
    """Test navigation region detection."""
    element = BeautifulSoup(html, "html.parser").find(True)

    assert ContentNode(element).is_navigation is expected


def test_content_node_heading_rank() -> None:
    """Test heading rank detection."""
    soup = BeautifulSoup("<h1></h1><h4></h4><p></p>", "html.parser")
    ranks = [ContentNode(element).heading_rank for element in soup.find_all(True)]

    assert ranks == [1, 4, None]


def test_normalise_whitespace() -> None:
    """Test whitespace collapsing."""
    assert normalise_whitespace("  a \n\t b  c  ") == "a b c"


def test_deeply_nested_article(parser: DocumentParser) -> None:
    """Test that nesting deeper than the interpreter recursion limit keeps all text."""
    depth = 1500
    html = (
        "<article class='doc'><h1>Deep</h1><p>shallow</p>"
        + "<div>" * depth
        + "<h2 id='bottom'>Bottom</h2><p>deep <em>text</em></p>"
        + "</div>" * depth
        + "</article>"
    )

    content = parser.parse_contents(html, "deep")

    assert content.title == "Deep"
    assert content.text == "shallow deep text"
    assert content.sections == (SectionHeading(title="Bottom", id="bottom"),)


def test_walk_prunes_skipped_subtrees() -> None:
    """Test that visiting is depth-first in document order and honours SkipNode."""

    class RecordingVisitor(NodeVisitor):
        def __init__(self) -> None:
            self.visited: list[str] = []

        def default_visit(self, node: ContentNode) -> None:
            self.visited.append(node.element.get("id") or node.tag_name)

        def visit_paragraph(self, node: ContentNode) -> None:
            self.visited.append(node.element.get("id") or node.tag_name)

    soup = BeautifulSoup(
        "<div id='root'><div id='a'><p id='a1'></p></div><nav id='n'><p id='n1'></p></nav><p id='b'></p></div>",
        "html.parser",
    )
    visitor = RecordingVisitor()
    ContentNode(soup.find(id="root")).walk(visitor)

    assert visitor.visited == ["root", "a", "a1", "b"]
