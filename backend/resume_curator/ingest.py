import logging
import re
from typing import Optional, Tuple

import httpx
from bs4 import BeautifulSoup

from .errors import JobFetchError
from .schemas import JobDescription

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


def _meta(soup: BeautifulSoup, prop: str) -> Optional[str]:
    tag = soup.find("meta", attrs={"property": prop}) or soup.find("meta", attrs={"name": prop})
    content = tag.get("content") if tag else None
    return content.strip() if content and content.strip() else None


def html_to_job_text(html: str) -> Tuple[str, Optional[str], Optional[str]]:
    """Reduce a job posting page to (text, title, company)."""
    soup = BeautifulSoup(html, "lxml")

    title = _meta(soup, "og:title")
    if not title and soup.title and soup.title.string:
        title = soup.title.string.strip() or None
    company = _meta(soup, "og:site_name")

    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    text = re.sub(r"\s+", " ", soup.get_text(" ")).strip()
    return text, title, company


async def fetch_job_description(url: str) -> JobDescription:
    """Fetch a posting URL and return its plain-text job description"""
    try:
        async with httpx.AsyncClient(timeout=30, follow_redirects=True) as client:
            response = await client.get(url, headers={"User-Agent": USER_AGENT})
    except httpx.HTTPError as e:
        logger.error(f"Fetching job description failed: {e}")
        raise JobFetchError(url, details=str(e)) from e

    if response.status_code >= 400:
        raise JobFetchError(url, details=f"HTTP {response.status_code}")

    text, title, company = html_to_job_text(response.text)
    if not text:
        raise JobFetchError(url, details="The page contained no readable text")
    logger.info("Fetched job description from %s (%d chars)", url, len(text))
    return JobDescription(url=url, text=text, title=title, company=company)
