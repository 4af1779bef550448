"""Data models for the documentation site search index."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from site_search_index.database import SearchIndex


def _section(mapping: Any, key: str) -> Mapping[str, Any]:
    value = mapping.get(key) if isinstance(mapping, Mapping) else None
    return value if isinstance(value, Mapping) else {}


def as_text(value: Any) -> str:
    """Coerce a metadata value to a string.

    Strings pass through and numbers (such as a version read as ``2.0``) are
    formatted. Anything else, including None, becomes an empty string.

    Args:
        value: Raw metadata value.

    Returns:
        String form of the value.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


@dataclass
class SiteConfig:
    """Site settings from the playbook."""

    url: str | None = None


@dataclass
class Playbook:
    """Build configuration consumed by the indexer."""

    site: SiteConfig = field(default_factory=SiteConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> Playbook:
        """Create a playbook from its raw mapping form.

        Args:
            data: Mapping shaped like ``{"site": {"url": ...}}``.

        Returns:
            Playbook instance. Missing keys leave the defaults in place.
        """
        site = _section(data, "site")
        return cls(site=SiteConfig(url=as_text(site.get("url")) or None))


@dataclass
class PageSource:
    """Source metadata of a rendered page."""

    component: str = ""
    version: str = ""
    stem: str = ""


@dataclass
class PagePublication:
    """Publish metadata of a rendered page."""

    url: str = ""


@dataclass
class Page:
    """Represents a rendered HTML page from the site build."""

    contents: bytes = b""
    src: PageSource = field(default_factory=PageSource)
    pub: PagePublication = field(default_factory=PagePublication)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Page:
        """Create a page from its raw mapping form.

        Args:
            data: Mapping with ``contents``, ``src`` and ``pub`` keys.

        Returns:
            Page instance with absent or malformed values degraded to empty ones.
        """
        src = _section(data, "src")
        pub = _section(data, "pub")
        contents = data.get("contents") if isinstance(data, Mapping) else None
        if isinstance(contents, str):
            contents = contents.encode("utf-8")
        elif isinstance(contents, (bytearray, memoryview)):
            contents = bytes(contents)
        elif not isinstance(contents, bytes):
            contents = b""
        return cls(
            contents=contents,
            src=PageSource(
                component=as_text(src.get("component")),
                version=as_text(src.get("version")),
                stem=as_text(src.get("stem")),
            ),
            pub=PagePublication(url=as_text(pub.get("url"))),
        )


@dataclass(frozen=True)
class IndexedDocument:
    """Searchable record derived from a page."""

    url: str
    text: str
    component: str
    version: str
    title: str | None = None
    titles: tuple[str, ...] = ()

    def as_dict(self) -> dict[str, str]:
        """Return the store entry for this document.

        Returns:
            Mapping with ``url``, ``text``, ``component``, ``version`` and,
            when present, ``title``.
        """
        entry = {
            "url": self.url,
            "text": self.text,
            "component": self.component,
            "version": self.version,
        }
        if self.title is not None:
            entry["title"] = self.title
        return entry


@dataclass
class SearchResult:
    """Represents a search result."""

    url: str
    title: str | None
    score: float


@dataclass
class SiteIndex:
    """Result of an index build: the document store and its search index."""

    store: dict[str, IndexedDocument]
    index: SearchIndex

    def __len__(self) -> int:
        return len(self.store)

    def search(self, query: str) -> list[SearchResult]:
        """Shortcut for ``self.index.search``."""
        return self.index.search(query)


@dataclass(frozen=True)
class SectionHeading:
    """A ``<h2>``-``<h6>`` heading of an article, with its anchor id if any."""

    title: str
    id: str = ""


@dataclass(frozen=True)
class PageContent:
    """Fields extracted from a page's HTML."""

    text: str = ""
    title: str | None = None
    sections: tuple[SectionHeading, ...] = ()
