import os
import sys
from unittest.mock import AsyncMock, Mock

import pytest

# Ensure the repository root is on sys.path so imports like `import app` and `import pipeline` work
ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from app.config import Settings
from app.schema import JobPosting
from clients.store import DocumentStore


def _make_posting(job_id, employer="Acme", title="React Developer", city="Dubai",
                 country="United Arab Emirates", **extra):
    return JobPosting(
        job_id=job_id,
        job_title=title,
        employer_name=employer,
        job_city=city,
        job_country=country,
        job_apply_link=f"https://jobs.example.com/{job_id}",
        **extra,
    )


@pytest.fixture
def make_posting():
    return _make_posting


@pytest.fixture
def settings(tmp_path):
    return Settings(
        rapidapi_key="test-key",
        search_region="UAE",
        search_num_pages=1,
        data_dir=tmp_path / "data",
        cron_secret="s3cret",
        email_user="jane@example.com",
        email_password="app-password",
        applicant_name="Jane Doe",
        applicant_headline="4+ Years React/Next.js Experience",
        resume_path=None,
        dispatch_cap=50,
        send_delay=0,
        dispatch_include_sent=False,
        schedule_hours=(8, 12, 14, 18),
    )


@pytest.fixture
def store(settings):
    return DocumentStore(settings.data_dir)


@pytest.fixture
def registry(settings, store):
    """Registry double: real store on disk, mocked search API and mail transport"""
    mock_registry = Mock()
    mock_registry.settings = settings

    mock_search = AsyncMock()
    mock_search.search.return_value = []
    mock_mailer = AsyncMock()
    mock_mailer.send.return_value = None

    mock_registry.get_store.return_value = store
    mock_registry.get_search_client.return_value = mock_search
    mock_registry.get_mailer.return_value = mock_mailer
    mock_registry.health.return_value = {"store": {"records": 0}}
    return mock_registry
