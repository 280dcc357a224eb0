# file: app/main.py
import hmac
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse

from app.config import Settings, get_settings
from app.logging_config import setup_logging
from app.schema import (
    CompanyRecord, DispatchRequest, SaveRecordRequest, SearchRequest, utc_now,
)
from clients.registry import ClientRegistry, get_registry
from clients.search import SearchError
from clients.store import DESCENDING, DuplicateKeyError, StoreError
from pipeline import Dispatcher, Ingestor, Reporter

log = logging.getLogger("api")


class Unauthorized(Exception):
    pass


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate configuration and open shared clients once per process"""
    setup_logging()
    get_settings().require()
    registry = get_registry()
    await registry.connect()
    yield
    await registry.close()


app = FastAPI(title="UAE Job Outreach", version="0.1.0", lifespan=lifespan)


@app.exception_handler(Unauthorized)
async def unauthorized_handler(request: Request, exc: Unauthorized):
    log.warning("unauthorized request to %s", request.url.path)
    return JSONResponse(status_code=401, content={"success": False, "message": "Unauthorized"})


def require_cron_secret(
    authorization: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    expected = f"Bearer {settings.cron_secret}"
    if not settings.cron_secret or not hmac.compare_digest((authorization or "").encode(), expected.encode()):
        raise Unauthorized()


def _failure(message: str, error: Exception, status_code: int = 500, **extra) -> JSONResponse:
    log.error("%s: %s", message, error)
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "error": str(error), **extra},
    )


@app.get("/health")
async def health(registry: ClientRegistry = Depends(get_registry)):
    """Configuration summary of the shared clients"""
    return {
        "status": "healthy",
        "timestamp": utc_now().isoformat(),
        **registry.health(),
    }


@app.post("/api/jobs")
async def search_jobs(request: SearchRequest, registry: ClientRegistry = Depends(get_registry)):
    """Pass-through search for the UI"""
    try:
        postings = await registry.get_search_client().search(request.query, num_pages=request.num_pages)
    except SearchError as e:
        return _failure("Failed to fetch jobs", e)
    return {
        "success": True,
        "data": [p.model_dump(mode="json") for p in postings],
        "count": len(postings),
    }


async def _ingest(registry: ClientRegistry):
    try:
        stats = await Ingestor(registry).run()
    except StoreError as e:
        return _failure("Failed to refresh jobs", e)
    return {
        "success": True,
        "message": "Jobs refreshed successfully",
        "stats": stats.model_dump(mode="json"),
    }


@app.get("/api/cron/fetch-jobs", dependencies=[Depends(require_cron_secret)])
async def cron_fetch_jobs(registry: ClientRegistry = Depends(get_registry)):
    return await _ingest(registry)


@app.post("/api/cron/fetch-jobs", dependencies=[Depends(require_cron_secret)])
async def cron_fetch_jobs_post(registry: ClientRegistry = Depends(get_registry)):
    return await _ingest(registry)


async def _dispatch(registry: ClientRegistry, include_sent: Optional[bool], trigger: str):
    try:
        summary = await Dispatcher(registry).run(include_sent=include_sent, trigger=trigger)
    except StoreError as e:
        label = "Cron job failed" if trigger == "scheduled" else "Manual send failed"
        return _failure(label, e, timestamp=utc_now().isoformat())
    return summary.model_dump(mode="json")


@app.get("/api/cron/send-emails", dependencies=[Depends(require_cron_secret)])
async def cron_send_emails(registry: ClientRegistry = Depends(get_registry)):
    return await _dispatch(registry, None, "scheduled")


@app.post("/api/cron/send-emails")
async def manual_send_emails(
    request: Optional[DispatchRequest] = None,
    registry: ClientRegistry = Depends(get_registry),
):
    include_sent = request.include_sent if request else None
    return await _dispatch(registry, include_sent, "manual")


@app.post("/api/send-emails")
async def send_pending_emails(registry: ClientRegistry = Depends(get_registry)):
    """Manual send limited to companies that have not been emailed yet"""
    return await _dispatch(registry, False, "manual")


@app.get("/api/send-emails")
async def email_stats(registry: ClientRegistry = Depends(get_registry)):
    try:
        stats = await Reporter(registry).dispatch_stats()
    except StoreError as e:
        return _failure("Failed to fetch email stats", e)
    return {"success": True, "stats": stats.model_dump()}


@app.get("/api/cron/status")
async def cron_status(registry: ClientRegistry = Depends(get_registry)):
    try:
        status = await Reporter(registry).cron_status()
    except StoreError as e:
        return _failure("Failed to fetch cron status", e)
    return {"success": True, **status.model_dump(mode="json")}


@app.post("/api/reset-emails")
async def reset_emails(registry: ClientRegistry = Depends(get_registry)):
    try:
        count = await Dispatcher(registry).reset()
    except StoreError as e:
        return _failure("Failed to reset emails", e, reset_count=0)
    if count == 0:
        return {"success": True, "message": "No sent emails to reset", "reset_count": 0}
    return JSONResponse(
        content={"success": True, "message": f"Successfully reset {count} emails", "reset_count": count},
        headers={"Cache-Control": "no-store, no-cache, must-revalidate"},
    )


@app.get("/api/reset-emails")
async def sent_counts(registry: ClientRegistry = Depends(get_registry)):
    try:
        counts = await Reporter(registry).mail_status_counts()
    except StoreError as e:
        return _failure("Failed to fetch sent count", e)
    return {"success": True, **counts.model_dump()}


@app.get("/api/save-job")
async def get_records(
    job_id: Optional[str] = None,
    company_name: Optional[str] = None,
    job_title: Optional[str] = None,
    registry: ClientRegistry = Depends(get_registry),
):
    """Existence check when an id or name/title pair is given, otherwise list every record"""
    companies = registry.get_store().companies
    try:
        if job_id or (company_name and job_title):
            query = {"external_job_id": job_id} if job_id else {
                "company_name": company_name, "role_title": job_title,
            }
            existing = await companies.find_one(query)
            return {
                "exists": existing is not None,
                "job": {
                    "company_name": existing["company_name"],
                    "role_title": existing["role_title"],
                    "sequence_number": existing["sequence_number"],
                } if existing else None,
            }

        docs = await companies.find(sort=[("sequence_number", DESCENDING)])
    except StoreError as e:
        return _failure("Failed to fetch jobs", e)
    records = [CompanyRecord.model_validate(d).model_dump(mode="json") for d in docs]
    return {"success": True, "data": records, "count": len(records)}


@app.post("/api/save-job", status_code=201)
async def save_record(request: SaveRecordRequest, registry: ClientRegistry = Depends(get_registry)):
    store = registry.get_store()
    try:
        duplicate_check = [{"company_name": request.company_name, "role_title": request.role_title}]
        if request.external_job_id:
            duplicate_check.insert(0, {"external_job_id": request.external_job_id})
        if await store.companies.find_one({"$or": duplicate_check}):
            return JSONResponse(
                status_code=409,
                content={"success": False, "message": "Job already exists in database", "duplicate": True},
            )

        seq = await store.next_sequence()
        record = CompanyRecord(**request.model_dump(), sequence_number=seq)
        record_id = await store.companies.insert_one(record.to_document())
    except DuplicateKeyError as e:
        return _failure("Job already exists in database", e, status_code=409, duplicate=True)
    except StoreError as e:
        return _failure("Failed to save job", e)

    return {
        "success": True,
        "message": "Job saved successfully",
        "id": record_id,
        "sequence_number": seq,
        "duplicate": False,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
