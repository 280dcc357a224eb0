# file: tests/test_clients.py
import smtplib
from unittest.mock import MagicMock, patch

import aiohttp
import pytest

from clients.mailer import MailTransportError, OutboundEmail, SmtpMailer
from clients.search import JSearchClient, SearchError


class FakeResponse:
    def __init__(self, status=200, body=None, error=None):
        self.status = status
        self.body = body or {}
        self.error = error

    async def __aenter__(self):
        if self.error:
            raise self.error
        return self

    async def __aexit__(self, *exc):
        return False

    async def json(self):
        return self.body


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def get(self, url, params=None, headers=None):
        self.calls.append({"url": url, "params": params, "headers": headers})
        return self.response


def _client(response):
    client = JSearchClient("secret-key")
    client.session = FakeSession(response)
    return client


@pytest.mark.asyncio
async def test_search_parses_postings_and_sends_headers():
    body = {"data": [
        {"job_id": "j1", "job_title": "React Developer", "employer_name": "Acme",
         "job_country": "AE", "job_is_remote": False, "job_apply_link": "https://a", "unused": 1},
        {"job_id": "j2", "job_title": "Frontend Developer"},  # no employer -> dropped
    ]}
    client = _client(FakeResponse(body=body))

    postings = await client.search("React Developer in UAE")

    assert [p.job_id for p in postings] == ["j1"]
    call = client.session.calls[0]
    assert call["url"] == "https://jsearch.p.rapidapi.com/search"
    assert call["params"] == {"query": "React Developer in UAE", "page": "1", "num_pages": "1"}
    assert call["headers"]["X-RapidAPI-Key"] == "secret-key"
    assert call["headers"]["X-RapidAPI-Host"] == "jsearch.p.rapidapi.com"


@pytest.mark.asyncio
async def test_search_without_data_returns_empty():
    assert await _client(FakeResponse(body={"status": "OK"})).search("x") == []


@pytest.mark.asyncio
async def test_search_http_error_raises():
    with pytest.raises(SearchError):
        await _client(FakeResponse(status=429)).search("x")


@pytest.mark.asyncio
async def test_search_transport_error_raises():
    with pytest.raises(SearchError):
        await _client(FakeResponse(error=aiohttp.ClientConnectionError("refused"))).search("x")


def _mail(attachment=None):
    return OutboundEmail(
        to="hr@acme.ae", subject="Application", text="plain body", html="<p>html body</p>",
        attachment=attachment, attachment_name="Jane_Doe_Resume.pdf" if attachment else None,
    )


def test_build_message_has_both_bodies_and_attachment(tmp_path):
    resume = tmp_path / "cv.pdf"
    resume.write_bytes(b"%PDF-1.4 test")
    mailer = SmtpMailer("smtp.example.com", 587, "jane@example.com", "pw", sender_name="Jane Doe - Software Developer")

    msg = mailer.build_message(_mail(resume))

    assert msg["To"] == "hr@acme.ae"
    assert "Jane Doe - Software Developer" in msg["From"]
    assert msg.get_body(("plain",)).get_content().strip() == "plain body"
    assert "html body" in msg.get_body(("html",)).get_content()
    attachments = list(msg.iter_attachments())
    assert [a.get_filename() for a in attachments] == ["Jane_Doe_Resume.pdf"]


def test_missing_attachment_is_a_transport_error(tmp_path):
    mailer = SmtpMailer("smtp.example.com", 587, "jane@example.com", "pw")
    with pytest.raises(MailTransportError):
        mailer.build_message(_mail(tmp_path / "missing.pdf"))


@pytest.mark.asyncio
async def test_send_uses_starttls_and_login():
    mailer = SmtpMailer("smtp.example.com", 587, "jane@example.com", "pw")
    server = MagicMock()
    with patch("clients.mailer.smtplib.SMTP") as MockSMTP:
        MockSMTP.return_value.__enter__.return_value = server
        await mailer.send(_mail())

    MockSMTP.assert_called_once_with("smtp.example.com", 587, timeout=60)
    server.starttls.assert_called_once()
    server.login.assert_called_once_with("jane@example.com", "pw")
    server.send_message.assert_called_once()


@pytest.mark.asyncio
async def test_smtp_failure_is_wrapped():
    mailer = SmtpMailer("smtp.example.com", 587, "jane@example.com", "pw")
    with patch("clients.mailer.smtplib.SMTP") as MockSMTP:
        server = MockSMTP.return_value.__enter__.return_value
        server.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")
        with pytest.raises(MailTransportError):
            await mailer.send(_mail())
