"""SQLite FTS5 search index for documentation pages."""

import logging
import re
import sqlite3
from collections.abc import Iterable

from site_search_index.models import IndexedDocument, SearchResult
from site_search_index.query import Presence, QueryClause, parse_query

logger = logging.getLogger(__name__)

_TITLES_SEPARATOR = "\n"


def _regexp(pattern: str, value: str | None) -> bool:
    if value is None:
        return False
    return re.search(pattern, value, re.IGNORECASE) is not None


class SearchIndex:
    """In-memory full-text index over indexed documents, keyed by URL."""

    TOKENIZER = "porter unicode61"
    # Weights follow the FTS column order: title, titles, text, component, version
    BM25_WEIGHTS = (10.0, 5.0, 1.0, 2.0, 1.0)

    def __init__(self, db_path: str = ":memory:") -> None:
        """Initialise the index with its own database connection.

        Args:
            db_path: SQLite database location, in memory by default.
        """
        self.db_path = db_path
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.create_function("regexp", 2, _regexp, deterministic=True)
        self._initialise_schema()

    def _initialise_schema(self) -> None:
        """Create database schema if it doesn't exist."""
        self._conn.executescript(f"""
            CREATE TABLE IF NOT EXISTS documents (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                url TEXT UNIQUE NOT NULL,
                title TEXT,
                titles TEXT,
                text TEXT NOT NULL,
                component TEXT,
                version TEXT
            );

            CREATE VIRTUAL TABLE IF NOT EXISTS documents_fts USING fts5(
                title,
                titles,
                text,
                component,
                version,
                content='documents',
                content_rowid='id',
                tokenize='{self.TOKENIZER}'
            );

            CREATE TRIGGER IF NOT EXISTS documents_ai AFTER INSERT ON documents BEGIN
                INSERT INTO documents_fts(rowid, title, titles, text, component, version)
                VALUES (new.id, new.title, new.titles, new.text, new.component, new.version);
            END;

            CREATE TRIGGER IF NOT EXISTS documents_ad AFTER DELETE ON documents BEGIN
                INSERT INTO documents_fts(documents_fts, rowid, title, titles, text, component, version)
                VALUES ('delete', old.id, old.title, old.titles, old.text, old.component, old.version);
            END;

            CREATE TRIGGER IF NOT EXISTS documents_au AFTER UPDATE ON documents BEGIN
                INSERT INTO documents_fts(documents_fts, rowid, title, titles, text, component, version)
                VALUES ('delete', old.id, old.title, old.titles, old.text, old.component, old.version);
                INSERT INTO documents_fts(rowid, title, titles, text, component, version)
                VALUES (new.id, new.title, new.titles, new.text, new.component, new.version);
            END;
        """)
        self._conn.commit()

    def add_document(self, doc: IndexedDocument) -> None:
        """Insert or replace the searchable fields of a document.

        Args:
            doc: Document to index under its URL.
        """
        self._conn.execute(
            """
            INSERT INTO documents (url, title, titles, text, component, version)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(url) DO UPDATE SET
                title = excluded.title,
                titles = excluded.titles,
                text = excluded.text,
                component = excluded.component,
                version = excluded.version
            """,
            (doc.url, doc.title, _TITLES_SEPARATOR.join(doc.titles), doc.text, doc.component, doc.version),
        )
        self._conn.commit()

    def search(self, query: str) -> list[SearchResult]:
        """Search documents.

        Args:
            query: Query string, see ``site_search_index.query.parse_query``.

        Returns:
            List of SearchResult instances ordered by relevance, empty when
            nothing matches.
        """
        clauses = parse_query(query)
        if not clauses:
            return []

        scores: dict[str, float] = {}
        required: set[str] | None = None
        optional: set[str] = set()
        prohibited: set[str] = set()

        for clause in clauses:
            matches = self._match_clause(clause)
            if clause.presence is Presence.PROHIBITED:
                prohibited.update(matches)
                continue
            for url, score in matches.items():
                scores[url] = scores.get(url, 0.0) + score
            if clause.presence is Presence.REQUIRED:
                required = set(matches) if required is None else required & set(matches)
            else:
                optional.update(matches)

        if required is not None:
            urls = required
        elif any(clause.presence is Presence.OPTIONAL for clause in clauses):
            urls = optional
        else:
            # Only prohibited clauses: everything else matches
            urls = set(self._all_urls())
        urls -= prohibited

        titles = self._titles(urls)
        results = [SearchResult(url=url, title=titles.get(url), score=scores.get(url, 0.0)) for url in urls]
        results.sort(key=lambda result: (-result.score, result.url))
        return results

    def _match_clause(self, clause: QueryClause) -> dict[str, float]:
        """Run one clause and return matching URLs with their scores."""
        try:
            if clause.matches_all:
                return dict.fromkeys(self._all_urls(), 0.0)
            if clause.is_wildcard:
                return self._match_pattern(clause)
            return self._match_fts(clause)
        except sqlite3.Error:
            logger.warning("Search clause %r failed, ignoring it", clause.term, exc_info=True)
            return {}

    def _match_fts(self, clause: QueryClause) -> dict[str, float]:
        weights = ", ".join(str(weight) for weight in self.BM25_WEIGHTS)
        cursor = self._conn.execute(
            f"""
            SELECT d.url, bm25(documents_fts, {weights}) AS score
            FROM documents_fts
            JOIN documents d ON documents_fts.rowid = d.id
            WHERE documents_fts MATCH ?
            """,
            (clause.fts_expression(),),
        )
        # BM25 returns negative scores
        return {row["url"]: abs(row["score"]) for row in cursor.fetchall()}

    def _match_pattern(self, clause: QueryClause) -> dict[str, float]:
        # Field names come from the fixed FIELDS whitelist
        condition = " OR ".join(f"{field} REGEXP ?" for field in clause.fields)
        pattern = clause.pattern().pattern
        cursor = self._conn.execute(
            f"SELECT url FROM documents WHERE {condition}",  # noqa: S608
            [pattern] * len(clause.fields),
        )
        return {row["url"]: 1.0 for row in cursor.fetchall()}

    def _all_urls(self) -> list[str]:
        return [row["url"] for row in self._conn.execute("SELECT url FROM documents")]

    def _titles(self, urls: Iterable[str]) -> dict[str, str | None]:
        urls = list(urls)
        if not urls:
            return {}
        placeholders = ", ".join("?" for _ in urls)
        cursor = self._conn.execute(
            f"SELECT url, title FROM documents WHERE url IN ({placeholders})",  # noqa: S608
            urls,
        )
        return {row["url"]: row["title"] for row in cursor.fetchall()}

    def get_document(self, url: str) -> IndexedDocument | None:
        """Retrieve a document by URL.

        Args:
            url: Resolved URL of the document.

        Returns:
            IndexedDocument instance or None if not found.
        """
        cursor = self._conn.execute("SELECT * FROM documents WHERE url = ?", (url,))
        row = cursor.fetchone()
        if row:
            return IndexedDocument(
                url=row["url"],
                title=row["title"],
                titles=tuple(row["titles"].split(_TITLES_SEPARATOR)) if row["titles"] else (),
                text=row["text"],
                component=row["component"],
                version=row["version"],
            )
        return None

    def clear(self) -> None:
        """Remove all documents from the index."""
        self._conn.execute("DELETE FROM documents")
        self._conn.commit()

    def get_document_count(self) -> int:
        """Return the total number of indexed documents.

        Returns:
            Count of documents in the index.
        """
        cursor = self._conn.execute("SELECT COUNT(*) FROM documents")
        result = cursor.fetchone()
        return int(result[0]) if result else 0

    def remove_page(self, url: str) -> None:
        """Remove a page and its anchored section documents.

        Args:
            url: Resolved URL of the page.
        """
        prefix = f"{url}#"
        self._conn.execute(
            "DELETE FROM documents WHERE url = ? OR substr(url, 1, ?) = ?",
            (url, len(prefix), prefix),
        )
        self._conn.commit()

    def close(self) -> None:
        """Close the underlying database connection."""
        self._conn.close()

    def __enter__(self) -> "SearchIndex":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __len__(self) -> int:
        return self.get_document_count()
