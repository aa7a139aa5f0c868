"""Data models for arxiv-finder."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

# Sort key for papers that were never favorited
_DISTANT_PAST = datetime.min.replace(tzinfo=timezone.utc)


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_categories(raw: str | list[str] | None) -> list[str]:
    """Normalize a category field to a list of category codes.

    Producers disagree on the delimiter (``"cs.AI, cs.LG"`` vs ``"cs.AI cs.LG"``),
    so both commas and whitespace are accepted here and nowhere else.
    """
    if not raw:
        return []
    if isinstance(raw, list):
        raw = " ".join(raw)
    return [part for part in raw.replace(",", " ").split() if part]


def parse_datetime(value: str | datetime | None) -> datetime | None:
    """Parse an ISO 8601 timestamp (``Z`` suffix allowed) into an aware datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass
class Paper:
    """Represents an arXiv paper.

    ``favorited_date`` is set exactly when ``is_favorite`` is true.
    """

    id: str
    title: str
    summary: str
    authors: list[str]
    published: datetime
    pdf_url: str = ""
    link_url: str = ""
    categories: list[str] = field(default_factory=list)
    updated: datetime | None = None
    citation_count: int | None = None
    is_favorite: bool = False
    favorited_date: datetime | None = None

    def __post_init__(self) -> None:
        if self.citation_count is None:
            # arXiv has no citation data; the value is only used for sorting
            self.citation_count = random.randint(0, 500)
        if self.is_favorite and self.favorited_date is None:
            self.favorited_date = utcnow()
        elif not self.is_favorite:
            self.favorited_date = None

    def set_favorite(self, favorite: bool, when: datetime | None = None) -> None:
        """Mark or unmark the paper as favorite.

        Args:
            favorite: True to mark as favorite, False to unmark
            when: Timestamp to record (defaults to now)
        """
        self.is_favorite = favorite
        self.favorited_date = (when or utcnow()) if favorite else None

    @property
    def authors_display(self) -> str:
        """Authors joined the way the arXiv listing shows them."""
        return ", ".join(self.authors)

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "summary": self.summary,
            "authors": list(self.authors),
            "published": self.published.isoformat(),
            "updated": self.updated.isoformat() if self.updated else None,
            "pdf_url": self.pdf_url,
            "link_url": self.link_url,
            "categories": list(self.categories),
            "citation_count": self.citation_count,
            "is_favorite": self.is_favorite,
            "favorited_date": self.favorited_date.isoformat() if self.favorited_date else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Paper:
        """Build a Paper from the output of :meth:`to_dict`.

        Raises:
            KeyError: If a required field is missing
            ValueError: If a timestamp cannot be parsed
        """
        authors = data.get("authors") or []
        if isinstance(authors, str):
            authors = [a.strip() for a in authors.split(",") if a.strip()]
        published = parse_datetime(data["published"])
        if published is None:
            raise ValueError(f"Paper {data.get('id')!r} has no published date")
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            summary=data.get("summary", ""),
            authors=authors,
            published=published,
            updated=parse_datetime(data.get("updated")),
            pdf_url=data.get("pdf_url", ""),
            link_url=data.get("link_url", ""),
            categories=parse_categories(data.get("categories")),
            citation_count=data.get("citation_count"),
            is_favorite=bool(data.get("is_favorite", False)),
            favorited_date=parse_datetime(data.get("favorited_date")),
        )


def favorited_sort_key(paper: Paper) -> datetime:
    """Sort key placing papers without a favorited date last in a descending sort."""
    return paper.favorited_date or _DISTANT_PAST


def sort_by_favorited_date(papers: list[Paper]) -> list[Paper]:
    """Return papers ordered by favorited date, most recent first."""
    return sorted(papers, key=favorited_sort_key, reverse=True)


class Category(Enum):
    """arXiv categories shown by the application.

    Each member carries its tag, display name and the arXiv query used to
    fetch it. This is the only place that maps tags to queries.
    """

    LATEST = ("latest", "Latest", "cat:cs.* OR cat:stat.* OR cat:math.*")
    COMPUTER_SCIENCE = ("cs", "Computer Science", "cat:cs.*")
    MATHEMATICS = ("math", "Mathematics", "cat:math.*")
    PHYSICS = (
        "physics",
        "Physics",
        "cat:physics.* OR cat:astro-ph* OR cat:cond-mat* OR cat:gr-qc OR cat:hep-* "
        "OR cat:math-ph OR cat:nlin.* OR cat:nucl-* OR cat:quant-ph",
    )
    QUANTITATIVE_BIOLOGY = ("q-bio", "Quantitative Biology", "cat:q-bio.*")
    QUANTITATIVE_FINANCE = ("q-fin", "Quantitative Finance", "cat:q-fin.*")
    STATISTICS = ("stat", "Statistics", "cat:stat.*")
    ELECTRICAL_ENGINEERING = ("eess", "Electrical Engineering", "cat:eess.*")
    ECONOMICS = ("econ", "Economics", "cat:econ.*")

    def __init__(self, tag: str, display_name: str, query: str) -> None:
        self.tag = tag
        self.display_name = display_name
        self.query = query

    @classmethod
    def from_tag(cls, tag: str) -> Category:
        """Resolve a category tag such as ``"q-bio"``.

        Raises:
            ValueError: If the tag is unknown
        """
        for category in cls:
            if category.tag == tag:
                return category
        raise ValueError(f"Unknown category: '{tag}'")

    @classmethod
    def tags(cls) -> list[str]:
        """Return all category tags in display order."""
        return [category.tag for category in cls]


class SortOption(str, Enum):
    """Orderings offered for a working set."""

    DATE = "date"
    TITLE = "title"
    CITATIONS = "citations"


def sort_papers(papers: list[Paper], option: SortOption) -> list[Paper]:
    """Return a sorted copy of papers.

    Args:
        papers: Papers to sort
        option: DATE (newest first), TITLE (A-Z, case-insensitive) or
            CITATIONS (most cited first)
    """
    if option is SortOption.TITLE:
        return sorted(papers, key=lambda p: p.title.casefold())
    if option is SortOption.CITATIONS:
        return sorted(papers, key=lambda p: p.citation_count or 0, reverse=True)
    return sorted(papers, key=lambda p: p.published, reverse=True)


@dataclass
class LibraryState:
    """Tracks what the library is currently showing and loading."""

    current_category: str = "latest"
    is_loading: bool = False
    is_searching: bool = False
    is_search_active: bool = False
    search_query: str = ""
    search_category: str = ""
    error_message: str | None = None
    last_loaded: dict[str, datetime] = field(default_factory=dict)
