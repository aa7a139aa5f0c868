"""In-memory working sets of papers, one per category plus search and favorites."""

from __future__ import annotations

from .models import Category, Paper

SEARCH = "search"
FAVORITES = "favorites"

# Every working set the library keeps, in sidebar order
WORKING_SET_KEYS: tuple[str, ...] = (*Category.tags(), SEARCH, FAVORITES)


class WorkingSets:
    """Ordered paper sequences keyed by category tag, ``search`` and ``favorites``.

    A paper id may appear in several sets at once. Keys outside
    ``WORKING_SET_KEYS`` raise ``KeyError``.
    """

    def __init__(self) -> None:
        self._sets: dict[str, list[Paper]] = {key: [] for key in WORKING_SET_KEYS}

    def _check(self, key: str) -> None:
        if key not in self._sets:
            raise KeyError(f"Unknown working set: '{key}'")

    def get(self, key: str) -> list[Paper]:
        """Return the papers in a working set (the live list)."""
        self._check(key)
        return self._sets[key]

    def replace(self, key: str, papers: list[Paper]) -> None:
        """Replace the whole content of a working set."""
        self._check(key)
        self._sets[key] = list(papers)

    def category_keys(self) -> list[str]:
        """Return every key except ``favorites``."""
        return [key for key in WORKING_SET_KEYS if key != FAVORITES]

    def find(self, key: str, paper_id: str) -> int | None:
        """Return the index of the first paper with ``paper_id``, or None."""
        for index, paper in enumerate(self.get(key)):
            if paper.id == paper_id:
                return index
        return None

    def replace_paper(self, key: str, paper: Paper) -> bool:
        """Swap in ``paper`` where its id already appears.

        Order and membership are unchanged; a set without the id is left alone.

        Returns:
            True if the set held the paper
        """
        papers = self.get(key)
        found = False
        for index, existing in enumerate(papers):
            if existing.id == paper.id:
                papers[index] = paper
                found = True
        return found

    def all_papers(self) -> list[Paper]:
        """Return papers from every category set, unique by id (first wins)."""
        seen: set[str] = set()
        unique: list[Paper] = []
        for key in Category.tags():
            for paper in self._sets[key]:
                if paper.id not in seen:
                    seen.add(paper.id)
                    unique.append(paper)
        return unique

    def __len__(self) -> int:
        return len(self._sets)
