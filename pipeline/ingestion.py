# file: pipeline/ingestion.py
from __future__ import annotations
import logging
from typing import List, Optional, Sequence

from app.schema import CompanyRecord, IngestionStats, JobPosting
from clients.search import SearchError
from clients.store import DuplicateKeyError, StoreError

log = logging.getLogger("ingestion")

SEARCH_QUERIES = (
    "Frontend Developer",
    "Software Developer",
    "HTML Developer",
    "React Developer",
    "Next.js Developer",
)


class Ingestor:
    """Pulls postings for each role keyword and stores the ones not seen before"""

    def __init__(self, registry, queries: Optional[Sequence[str]] = None):
        self.settings = registry.settings
        self.search = registry.get_search_client()
        self.store = registry.get_store()
        self.queries = tuple(queries or SEARCH_QUERIES)
        self.region = self.settings.search_region

    async def fetch_postings(self) -> List[JobPosting]:
        """Query every keyword in order; the same job id surfaced twice is kept once."""
        postings: List[JobPosting] = []
        seen_ids = set()

        for query in self.queries:
            log.info("fetching %s", query)
            try:
                results = await self.search.search(
                    f"{query} in {self.region}", num_pages=self.settings.search_num_pages
                )
            except SearchError as e:
                log.error("failed to fetch jobs for %s: %s", query, e)
                continue

            for job in results:
                if job.job_id not in seen_ids:
                    seen_ids.add(job.job_id)
                    postings.append(job)

        log.info("found %d unique jobs", len(postings))
        return postings

    async def exists(self, job: JobPosting) -> bool:
        try:
            found = await self.store.companies.find_one({
                "$or": [
                    {"external_job_id": job.job_id},
                    {"company_name": job.employer_name, "role_title": job.job_title},
                ]
            })
        except StoreError as e:
            # Prefer an occasional duplicate insert over silently dropping a job
            log.warning("existence check failed for %s: %s", job.job_id, e)
            return False
        return found is not None

    async def save(self, job: JobPosting) -> str:
        """Insert one posting. Returns "saved", "skipped" or "failed"."""
        try:
            seq = await self.store.next_sequence()
            record = CompanyRecord.from_posting(job, seq, self.region)
            await self.store.companies.insert_one(record.to_document())
        except DuplicateKeyError:
            log.info("job %s inserted concurrently, skipping", job.job_id)
            return "skipped"
        except StoreError as e:
            log.error("error saving job %s: %s", job.job_id, e)
            return "failed"
        return "saved"

    async def run(self) -> IngestionStats:
        postings = await self.fetch_postings()
        stats = IngestionStats(total=len(postings))

        for job in postings:
            if await self.exists(job):
                stats.skipped += 1
                continue
            outcome = await self.save(job)
            if outcome == "saved":
                stats.saved += 1
            elif outcome == "skipped":
                stats.skipped += 1
            else:
                stats.failed += 1

        log.info("ingestion completed - saved: %d, skipped: %d, failed: %d",
                 stats.saved, stats.skipped, stats.failed)
        return stats
