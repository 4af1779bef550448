"""Query string parsing for the site search index."""

import enum
import re
from dataclasses import dataclass

FIELDS = ("title", "titles", "text", "component", "version")
DEFAULT_FIELDS = ("title", "titles", "text", "component")

_CLAUSE_SEPARATOR = re.compile(r"\s+")
_TERM_SEPARATOR = re.compile(r"-+")


class Presence(enum.Enum):
    """How a clause contributes to the result set."""

    OPTIONAL = "optional"
    REQUIRED = "required"
    PROHIBITED = "prohibited"


@dataclass(frozen=True)
class QueryClause:
    """A single search term with its field scope and presence."""

    term: str
    fields: tuple[str, ...] = DEFAULT_FIELDS
    presence: Presence = Presence.OPTIONAL

    @property
    def matches_all(self) -> bool:
        return self.term.strip("*") == ""

    @property
    def is_prefix(self) -> bool:
        """Whether the only wildcard is a trailing one (``term*``)."""
        body = self.term.rstrip("*")
        return body != self.term and "*" not in body

    @property
    def is_wildcard(self) -> bool:
        """Whether the term has a leading or inner wildcard."""
        return "*" in self.term.rstrip("*")

    def fts_expression(self) -> str:
        """Build the FTS5 MATCH expression for an exact or prefix term.

        The term is always quoted so punctuation and FTS5 operators are
        treated as literal text.

        Returns:
            FTS5 query expression restricted to the clause fields.
        """
        body = self.term.rstrip("*").replace('"', '""')
        phrase = f'"{body}"'
        if self.is_prefix:
            phrase += "*"
        return "{" + " ".join(self.fields) + "} : " + phrase

    def pattern(self) -> re.Pattern[str]:
        """Build a regular expression matching the term inside a single word.

        Returns:
            Compiled case-insensitive pattern where each ``*`` matches any
            run of word characters.
        """
        parts = [re.escape(part) for part in self.term.split("*")]
        return re.compile(r"(?<!\w)" + r"\w*".join(parts) + r"(?!\w)", re.IGNORECASE)


def _parse_clause(raw: str) -> list[QueryClause]:
    presence = Presence.OPTIONAL
    if raw[:1] == "+":
        presence, raw = Presence.REQUIRED, raw[1:]
    elif raw[:1] == "-":
        presence, raw = Presence.PROHIBITED, raw[1:]

    fields = DEFAULT_FIELDS
    prefix, sep, rest = raw.partition(":")
    if sep and prefix.lower() in FIELDS:
        fields, raw = (prefix.lower(),), rest

    return [QueryClause(term=term, fields=fields, presence=presence) for term in _TERM_SEPARATOR.split(raw) if term]


def parse_query(query: str) -> list[QueryClause]:
    """Split a query string into clauses.

    Clauses are separated by whitespace. ``+`` and ``-`` prefixes mark a
    clause as required or prohibited, ``field:`` restricts it to one field,
    and hyphenated words become one clause per part.

    Args:
        query: Raw user query.

    Returns:
        Parsed clauses, empty for a blank query.
    """
    clauses: list[QueryClause] = []
    for raw in _CLAUSE_SEPARATOR.split(query.strip()):
        if raw:
            clauses.extend(_parse_clause(raw))
    return clauses
