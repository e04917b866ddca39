import asyncio
import io

import httpx
import pytest
from docx import Document

from resume_curator import ingest
from resume_curator.errors import ExtractionFailed, JobFetchError, UnsupportedInputFormat
from resume_curator.extract import detect_format, extract_text

POSTING = """
<html>
  <head>
    <title>Platform Engineer | Acme</title>
    <meta property="og:site_name" content="Acme Corp">
    <style>body { color: red; }</style>
    <script>var tracking = true;</script>
  </head>
  <body>
    <h1>Platform Engineer</h1>
    <p>We run   Kubernetes
       at scale.</p>
  </body>
</html>
"""


def test_html_to_job_text_strips_scripts_and_collapses_whitespace():
    text, title, company = ingest.html_to_job_text(POSTING)
    assert "tracking" not in text
    assert "color" not in text
    assert "We run Kubernetes at scale." in text
    assert title == "Platform Engineer | Acme"
    assert company == "Acme Corp"


def test_og_title_preferred_over_title_tag():
    html = '<html><head><title>Jobs</title><meta property="og:title" content="SRE"></head><body>x</body></html>'
    assert ingest.html_to_job_text(html)[1] == "SRE"


def install_fake_get(monkeypatch, response):
    class FakeAsyncClient:
        def __init__(self, *args, **kwargs):
            pass

        async def __aenter__(self):
            return self

        async def __aexit__(self, exc_type, exc, tb):
            return False

        async def get(self, url, headers=None):
            if isinstance(response, Exception):
                raise response
            return response

    monkeypatch.setattr(ingest.httpx, "AsyncClient", FakeAsyncClient)


def test_fetch_job_description(monkeypatch):
    install_fake_get(monkeypatch, httpx.Response(200, text=POSTING))
    job = asyncio.run(ingest.fetch_job_description("https://jobs.example.com/42"))
    assert job.url == "https://jobs.example.com/42"
    assert "Kubernetes" in job.text
    assert job.company == "Acme Corp"


def test_fetch_http_error_status(monkeypatch):
    install_fake_get(monkeypatch, httpx.Response(404, text="Not found"))
    with pytest.raises(JobFetchError) as exc:
        asyncio.run(ingest.fetch_job_description("https://jobs.example.com/missing"))
    assert exc.value.details == "HTTP 404"


def test_fetch_transport_error(monkeypatch):
    install_fake_get(monkeypatch, httpx.ConnectError("dns failure"))
    with pytest.raises(JobFetchError):
        asyncio.run(ingest.fetch_job_description("https://nowhere.invalid"))


def test_fetch_empty_page(monkeypatch):
    install_fake_get(monkeypatch, httpx.Response(200, text="<html><body><script>x()</script></body></html>"))
    with pytest.raises(JobFetchError):
        asyncio.run(ingest.fetch_job_description("https://jobs.example.com/blank"))


def test_detect_format():
    assert detect_format("cv.PDF") == "pdf"
    assert detect_format("upload", "application/pdf") == "pdf"
    assert detect_format("cv.docx") == "docx"
    with pytest.raises(UnsupportedInputFormat):
        detect_format("cv.doc")
    with pytest.raises(UnsupportedInputFormat):
        detect_format("cv.txt", "text/plain")


def test_extract_docx_text():
    doc = Document()
    doc.add_paragraph("Jane Doe")
    doc.add_paragraph("Python, Postgres")
    buf = io.BytesIO()
    doc.save(buf)
    assert extract_text("jane.docx", buf.getvalue()) == "Jane Doe\nPython, Postgres"


def test_extract_empty_docx_fails():
    buf = io.BytesIO()
    Document().save(buf)
    with pytest.raises(ExtractionFailed):
        extract_text("empty.docx", buf.getvalue())


def test_extract_corrupt_pdf_fails():
    with pytest.raises(ExtractionFailed):
        extract_text("broken.pdf", b"definitely not a pdf")
