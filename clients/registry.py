# file: clients/registry.py
from __future__ import annotations
from typing import Optional

from app.config import Settings, get_settings
from clients.mailer import SmtpMailer
from clients.search import JSearchClient
from clients.store import DocumentStore


class ClientRegistry:
    """Process-wide holder for the store, search and mail clients"""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.store = DocumentStore(settings.data_dir)
        self.search = JSearchClient(
            settings.rapidapi_key,
            host=settings.jsearch_host,
            timeout=settings.search_timeout,
        )
        sender = f"{settings.applicant_name} - Software Developer" if settings.applicant_name else ""
        self.mailer = SmtpMailer(
            settings.smtp_host,
            settings.smtp_port,
            settings.email_user,
            settings.email_password,
            sender_name=sender,
        )

    async def connect(self):
        """Open the shared HTTP session"""
        await self.search.connect()

    async def close(self):
        await self.search.close()

    def health(self) -> dict:
        return {
            "store": {
                "data_dir": str(self.store.data_dir),
                "records": len(self.store.companies.docs),
            },
            "search": {
                "host": self.settings.jsearch_host,
                "connected": self.search.session is not None,
            },
            "mailer": {"host": self.settings.smtp_host, "port": self.settings.smtp_port},
        }

    def get_store(self) -> DocumentStore:
        return self.store

    def get_search_client(self) -> JSearchClient:
        return self.search

    def get_mailer(self) -> SmtpMailer:
        return self.mailer


_registry: Optional[ClientRegistry] = None


def get_registry() -> ClientRegistry:
    """Built once on first use and reused for the lifetime of the process."""
    global _registry
    if _registry is None:
        _registry = ClientRegistry(get_settings())
    return _registry
