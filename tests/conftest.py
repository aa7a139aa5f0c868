"""Shared test fixtures for arxiv-finder tests."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from arxiv_finder.client import NetworkError
from arxiv_finder.favorite_store import LocalFileFavoriteStore
from arxiv_finder.favorites import FavoriteIndex
from arxiv_finder.models import Category, Paper
from arxiv_finder.working_sets import WorkingSets


def make_paper(paper_id: str, title: str | None = None, days_ago: int = 1, **kwargs) -> Paper:
    """Build a Paper with sensible defaults."""
    published = datetime(2024, 1, 15, tzinfo=timezone.utc) - timedelta(days=days_ago)
    return Paper(
        id=paper_id,
        title=title or f"Paper {paper_id}",
        summary=f"Abstract of {paper_id}.",
        authors=["Alice Smith"],
        published=published,
        pdf_url=f"https://arxiv.org/pdf/{paper_id}",
        link_url=f"https://arxiv.org/abs/{paper_id}",
        categories=["cs.AI"],
        citation_count=kwargs.pop("citation_count", 10),
        **kwargs,
    )


class FakePaperSource:
    """In-memory paper source with optional delay and failure."""

    def __init__(self, papers: list[Paper] | None = None, delay: float = 0.0) -> None:
        self.papers = papers or []
        self.delay = delay
        self.error: NetworkError | None = None
        self.calls: list[tuple] = []
        self.pdf_bytes = b"%PDF-1.4 test"

    async def _respond(self) -> list[Paper]:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return [make_paper(p.id, p.title, citation_count=p.citation_count) for p in self.papers]

    async def fetch_by_category(self, category: Category, limit: int = 10) -> list[Paper]:
        self.calls.append(("fetch_by_category", category.tag, limit))
        return await self._respond()

    async def search(
        self,
        query: str,
        limit: int = 20,
        category: str | None = None,
        sort_by_relevance: bool = True,
    ) -> list[Paper]:
        self.calls.append(("search", query, limit, category, sort_by_relevance))
        return await self._respond()

    async def enhanced_search(self, query: str, limit: int = 20) -> list[Paper]:
        self.calls.append(("enhanced_search", query, limit))
        return await self._respond()

    async def download_pdf(self, url: str) -> bytes:
        self.calls.append(("download_pdf", url))
        if self.error is not None:
            raise self.error
        return self.pdf_bytes


@pytest.fixture
def sample_paper() -> Paper:
    """Return a single test Paper instance."""
    return Paper(
        id="2401.00001v1",
        title="Test Paper: A Study in Machine Learning",
        summary="This is a test abstract about machine learning and AI research.",
        authors=["Alice Smith", "Bob Johnson"],
        published=datetime(2024, 1, 15, tzinfo=timezone.utc),
        pdf_url="https://arxiv.org/pdf/2401.00001v1",
        link_url="https://arxiv.org/abs/2401.00001v1",
        categories=["cs.AI", "cs.LG"],
        citation_count=42,
    )


@pytest.fixture
def sample_papers() -> list[Paper]:
    """Return a list of test Paper instances, newest first."""
    return [
        make_paper("2401.00001v1", "Machine Learning Basics", days_ago=1, citation_count=5),
        make_paper("2401.00002v1", "Neural Networks", days_ago=2, citation_count=300),
        make_paper("2401.00003v1", "Reinforcement Learning", days_ago=5, citation_count=40),
    ]


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    """Return a temporary directory for favorites and settings."""
    path = tmp_path / "state"
    path.mkdir()
    return path


@pytest.fixture
def favorite_store(state_dir: Path) -> LocalFileFavoriteStore:
    """Return a file favorite store in a temporary directory."""
    return LocalFileFavoriteStore(state_dir)


@pytest.fixture
def working_sets() -> WorkingSets:
    """Return empty working sets."""
    return WorkingSets()


@pytest.fixture
def favorite_index(
    working_sets: WorkingSets, favorite_store: LocalFileFavoriteStore
) -> FavoriteIndex:
    """Return a FavoriteIndex backed by a file store."""
    return FavoriteIndex(working_sets, favorite_store)


@pytest.fixture
def fake_source(sample_papers: list[Paper]) -> FakePaperSource:
    """Return an in-memory paper source serving sample papers."""
    return FakePaperSource(sample_papers)


@pytest.fixture
def mock_arxiv_response() -> str:
    """Return sample arXiv API XML response."""
    fixtures_dir = Path(__file__).parent / "fixtures"
    return (fixtures_dir / "arxiv_response.xml").read_text()
