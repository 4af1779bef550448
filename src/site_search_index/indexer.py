"""Indexer building the site search index from rendered documentation pages."""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from site_search_index.database import SearchIndex
from site_search_index.models import IndexedDocument, Page, PageContent, Playbook, SiteIndex, as_text
from site_search_index.parser import DocumentParser

logger = logging.getLogger(__name__)


def resolve_url(site_url: Any, publish_path: Any) -> str:
    """Compute the canonical URL of a page.

    Args:
        site_url: Base URL of the site, if configured.
        publish_path: Publish-relative path of the page.

    Returns:
        ``publish_path`` when no site URL is set, otherwise both joined with
        exactly one ``/`` at the join point. Values that are not strings or
        numbers count as absent.
    """
    site_url = as_text(site_url)
    publish_path = as_text(publish_path)
    if not site_url:
        return publish_path
    return f"{site_url.rstrip('/')}/{publish_path.lstrip('/')}"


def build_document(page: Page, url: str, content: PageContent) -> IndexedDocument:
    """Combine page metadata with extracted content.

    Section headings without an anchor id stay searchable through the
    page's ``titles`` field.

    Args:
        page: Source page.
        url: Resolved URL of the page.
        content: Text, title and section headings extracted from the page.

    Returns:
        IndexedDocument instance.
    """
    return IndexedDocument(
        url=url,
        title=content.title,
        titles=tuple(section.title for section in content.sections if not section.id),
        text=content.text,
        component=as_text(page.src.component),
        version=as_text(page.src.version),
    )


def build_section_documents(url: str, content: PageContent) -> list[IndexedDocument]:
    """Create one search document per anchored section heading.

    Args:
        url: Resolved URL of the page.
        content: Content extracted from the page.

    Returns:
        Documents keyed by ``<url>#<heading id>`` with the heading as title.
    """
    return [
        IndexedDocument(url=f"{url}#{section.id}", title=section.title, text="", component="", version="")
        for section in content.sections
        if section.id
    ]


class SiteIndexer:
    """Builds a document store and search index for a documentation site."""

    def __init__(self, playbook: Playbook, parser: DocumentParser | None = None) -> None:
        """Initialise indexer with the site configuration.

        Args:
            playbook: Build configuration providing the site URL.
            parser: Parser used for page contents.
        """
        self.playbook = playbook
        self.parser = parser or DocumentParser()

    def index_pages(self, pages: Iterable[Page]) -> SiteIndex:
        """Index every page, in input order.

        The store holds one document per page. The search index also holds
        one document per anchored section heading.

        Args:
            pages: Rendered pages of the site.

        Returns:
            SiteIndex holding a fresh store and search index.
        """
        store: dict[str, IndexedDocument] = {}
        index = SearchIndex()
        site_url = self.playbook.site.url

        for page in pages:
            url = resolve_url(site_url, page.pub.url)
            source = as_text(page.src.stem) or url
            content = self.parser.parse_contents(page.contents, source)
            document = build_document(page, url, content)

            if url in store:
                logger.warning("Duplicate page URL %s, replacing previously indexed page", url)
                index.remove_page(url)
            store[url] = document
            index.add_document(document)
            for section in build_section_documents(url, content):
                index.add_document(section)
            logger.debug("Indexed: %s", url)

        logger.info("Successfully indexed %d documents", len(store))
        return SiteIndex(store=store, index=index)


def generate_index(
    playbook: Playbook | Mapping[str, Any] | None,
    pages: Iterable[Page | Mapping[str, Any]],
) -> SiteIndex:
    """Build the search index of a documentation site.

    Args:
        playbook: Playbook object or its raw mapping form.
        pages: Page objects or their raw mapping form.

    Returns:
        SiteIndex with the document store and its search index.
    """
    if not isinstance(playbook, Playbook):
        playbook = Playbook.from_dict(playbook)
    pages = [page if isinstance(page, Page) else Page.from_dict(page) for page in pages]
    logger.info("Found %d pages to index", len(pages))
    return SiteIndexer(playbook).index_pages(pages)
