# file: clients/search.py
from __future__ import annotations
import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp
from pydantic import ValidationError

from app.schema import JobPosting

log = logging.getLogger("search")


class SearchError(RuntimeError):
    """The job-search API call failed or answered with a non-success status."""


class JSearchClient:
    """JSearch (RapidAPI) client over a shared aiohttp session"""

    def __init__(self, api_key: str, host: str = "jsearch.p.rapidapi.com", timeout: float = 30.0):
        self.api_key = api_key
        self.host = host
        self.base_url = f"https://{host}"
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.session: Optional[aiohttp.ClientSession] = None

    async def connect(self):
        """Initialize session"""
        if not self.session:
            self.session = aiohttp.ClientSession(timeout=self.timeout)

    async def close(self):
        """Close session"""
        if self.session:
            await self.session.close()
            self.session = None

    async def raw_search(self, query: str, num_pages: int = 1, page: int = 1) -> Dict[str, Any]:
        """Call /search and return the decoded JSON body"""
        if not self.session:
            await self.connect()

        params = {"query": query, "page": str(page), "num_pages": str(num_pages)}
        headers = {"X-RapidAPI-Key": self.api_key, "X-RapidAPI-Host": self.host}
        try:
            async with self.session.get(f"{self.base_url}/search", params=params, headers=headers) as response:
                if response.status >= 400:
                    raise SearchError(f"search {query!r} failed with HTTP {response.status}")
                return await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SearchError(f"search {query!r} failed: {e}") from e

    async def search(self, query: str, num_pages: int = 1) -> List[JobPosting]:
        body = await self.raw_search(query, num_pages=num_pages)
        postings: List[JobPosting] = []
        for item in body.get("data") or []:
            try:
                postings.append(JobPosting.model_validate(item))
            except ValidationError as e:
                log.warning("dropping malformed posting for q=%r: %s", query, e.errors()[0].get("msg"))
        log.info("search q=%r -> %d postings", query, len(postings))
        return postings
