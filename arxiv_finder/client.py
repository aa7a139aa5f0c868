"""ArXiv API client for fetching papers."""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import Protocol

import httpx

from .models import Category, Paper, parse_categories, parse_datetime

logger = logging.getLogger(__name__)

ATOM_NS = {
    "atom": "http://www.w3.org/2005/Atom",
    "arxiv": "http://arxiv.org/schemas/atom",
}


class NetworkError(Exception):
    """Raised when the arXiv API cannot be reached or returns unusable data."""

    pass


class PaperSource(Protocol):
    """Protocol for remote paper sources."""

    async def fetch_by_category(self, category: Category, limit: int = 10) -> list[Paper]:
        """Fetch the most recently updated papers of a category.

        Raises:
            NetworkError: If the request or parsing fails
        """
        ...

    async def search(
        self,
        query: str,
        limit: int = 20,
        category: str | None = None,
        sort_by_relevance: bool = True,
    ) -> list[Paper]:
        """Search papers by title, optionally restricted to a category.

        Raises:
            NetworkError: If the request or parsing fails
        """
        ...

    async def enhanced_search(self, query: str, limit: int = 20) -> list[Paper]:
        """Search titles, abstracts and authors.

        Raises:
            NetworkError: If the request or parsing fails
        """
        ...

    async def download_pdf(self, url: str) -> bytes:
        """Download a PDF.

        Raises:
            NetworkError: If the download fails
        """
        ...


class ArxivClient:
    """Client for fetching papers from arXiv API."""

    BASE_URL = "http://export.arxiv.org/api/query"

    def __init__(self, timeout: float = 30.0):
        """Initialize client.

        Args:
            timeout: HTTP request timeout in seconds
        """
        self.timeout = timeout

    async def _query(
        self,
        search_query: str,
        max_results: int,
        sort_by: str = "lastUpdatedDate",
    ) -> list[Paper]:
        """Run one query against the API and parse the Atom feed.

        Raises:
            NetworkError: On HTTP errors or malformed XML
        """
        params = {
            "search_query": search_query,
            "start": 0,
            "max_results": max_results,
            "sortBy": sort_by,
            "sortOrder": "descending",
        }

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.get(self.BASE_URL, params=params)
                response.raise_for_status()
            except httpx.HTTPError as e:
                logger.error(f"Failed to fetch arXiv papers: {e}")
                raise NetworkError(f"Connection error: {e}") from e

        try:
            return self._parse_feed(response.text)
        except ET.ParseError as e:
            logger.error(f"Failed to parse arXiv XML: {e}")
            raise NetworkError(f"Error processing data: {e}") from e

    def _parse_feed(self, text: str) -> list[Paper]:
        """Parse an arXiv Atom feed into papers.

        Entries without an id or title are skipped.
        """
        papers: list[Paper] = []
        root = ET.fromstring(text)

        for entry in root.findall("atom:entry", ATOM_NS):
            # Extract arxiv ID from the id URL
            id_elem = entry.find("atom:id", ATOM_NS)
            if id_elem is None or not id_elem.text:
                continue
            paper_id = id_elem.text.strip().split("/abs/")[-1]

            title_elem = entry.find("atom:title", ATOM_NS)
            if title_elem is None or not title_elem.text:
                continue
            title = " ".join(title_elem.text.split())

            summary_elem = entry.find("atom:summary", ATOM_NS)
            summary = " ".join(summary_elem.text.split()) if summary_elem is not None and summary_elem.text else ""

            authors: list[str] = []
            for a in entry.findall("atom:author", ATOM_NS):
                name_elem = a.find("atom:name", ATOM_NS)
                if name_elem is not None and name_elem.text:
                    authors.append(name_elem.text.strip())

            cats = parse_categories(
                [cat.get("term", "") for cat in entry.findall("atom:category", ATOM_NS)]
            )

            published_elem = entry.find("atom:published", ATOM_NS)
            updated_elem = entry.find("atom:updated", ATOM_NS)
            try:
                published = parse_datetime(published_elem.text if published_elem is not None else None)
                updated = parse_datetime(updated_elem.text if updated_elem is not None else None)
            except ValueError:
                logger.warning(f"Skipping {paper_id}: unparseable dates")
                continue
            if published is None:
                published = updated
            if published is None:
                continue

            pdf_url = ""
            link_url = f"https://arxiv.org/abs/{paper_id}"
            for link in entry.findall("atom:link", ATOM_NS):
                if link.get("title") == "pdf":
                    pdf_url = link.get("href", "")
                elif link.get("rel") == "alternate" and link.get("href"):
                    link_url = link.get("href", link_url)

            papers.append(
                Paper(
                    id=paper_id,
                    title=title,
                    summary=summary,
                    authors=authors,
                    published=published,
                    updated=updated,
                    pdf_url=pdf_url,
                    link_url=link_url,
                    categories=cats,
                )
            )

        return papers

    async def fetch_by_category(self, category: Category, limit: int = 10) -> list[Paper]:
        """Fetch the most recently updated papers of a category.

        Args:
            category: Category to fetch
            limit: Maximum number of papers

        Returns:
            List of Paper objects

        Raises:
            NetworkError: If the request or parsing fails
        """
        logger.info(f"Fetching {category.display_name} papers")
        papers = await self._query(category.query, limit)
        logger.info(f"Fetched {len(papers)} {category.display_name} papers")
        return papers

    async def search(
        self,
        query: str,
        limit: int = 20,
        category: str | None = None,
        sort_by_relevance: bool = True,
    ) -> list[Paper]:
        """Search papers by title.

        Args:
            query: Search terms
            limit: Maximum number of results
            category: Optional category prefix to filter on (e.g. "cs", "math.CO")
            sort_by_relevance: Sort by relevance (True) or last update date (False)

        Returns:
            List of matching papers

        Raises:
            ValueError: If the query is blank
            NetworkError: If the request or parsing fails
        """
        terms = query.strip()
        if not terms:
            raise ValueError("Search query must not be empty")

        search_query = f'ti:"{terms}"'
        if category:
            search_query = f"{search_query} AND cat:{category}*"

        logger.info(f"Searching papers: {search_query}")
        papers = await self._query(
            search_query,
            limit,
            sort_by="relevance" if sort_by_relevance else "lastUpdatedDate",
        )
        logger.info(f"Found {len(papers)} papers for query: {terms}")
        return papers

    async def enhanced_search(self, query: str, limit: int = 20) -> list[Paper]:
        """Search titles, abstracts and (for multi-word queries) authors.

        Results are merged in that order without duplicates and truncated
        to ``limit``.

        Raises:
            ValueError: If the query is blank
            NetworkError: If any of the requests fails
        """
        terms = query.strip()
        if not terms:
            raise ValueError("Search query must not be empty")

        fields = ["ti", "abs"]
        if " " in terms:
            fields.append("au")

        merged: list[Paper] = []
        seen_ids: set[str] = set()
        for prefix in fields:
            results = await self._query(f'{prefix}:"{terms}"', limit, sort_by="relevance")
            added = 0
            for paper in results:
                if paper.id not in seen_ids:
                    seen_ids.add(paper.id)
                    merged.append(paper)
                    added += 1
            logger.info(f"Enhanced search ({prefix}) added {added} unique results")

        return merged[:limit]

    async def fetch_by_id(self, paper_id: str) -> Paper | None:
        """Fetch a single paper by its arXiv id.

        Raises:
            NetworkError: If the request or parsing fails
        """
        params = {"id_list": paper_id.strip(), "max_results": 1}

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.get(self.BASE_URL, params=params)
                response.raise_for_status()
            except httpx.HTTPError as e:
                logger.error(f"Failed to fetch arXiv paper {paper_id}: {e}")
                raise NetworkError(f"Connection error: {e}") from e

        try:
            papers = self._parse_feed(response.text)
        except ET.ParseError as e:
            raise NetworkError(f"Error processing data: {e}") from e
        return papers[0] if papers else None

    async def download_pdf(self, url: str) -> bytes:
        """Download a PDF.

        Raises:
            NetworkError: If the download fails
        """
        if not url:
            raise NetworkError("Paper has no PDF URL")

        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            try:
                response = await client.get(url)
                response.raise_for_status()
            except httpx.HTTPError as e:
                logger.error(f"Failed to download PDF {url}: {e}")
                raise NetworkError(f"Connection error: {e}") from e

        return response.content
