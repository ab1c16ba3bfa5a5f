"""
Plain HTTP rendering backend.
Fetches the raw HTML with requests; no JavaScript is executed.
"""

import threading

import requests

from crawler.core import USER_AGENT, logger
from crawler.processor import LinkExtractor
from rendering.engine import (
    RenderingBackend,
    RenderNavigationError,
    RenderTimeoutError,
)
from rendering.models import RenderedPage

HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")

class HttpRenderingBackend(RenderingBackend):
    """
    FLOW: Issues one GET with browser-like headers -> Classifies status and content type ->
    Extracts anchors with BeautifulSoup -> Returns a RenderedPage or raises a RenderError.
    A requests.Session is kept per worker thread.
    """
    HEADERS = {
        "User-Agent": USER_AGENT,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
    }

    def __init__(self, session_factory=requests.Session, verify=True):
        self._session_factory = session_factory
        self._verify = verify
        self._local = threading.local()

    def _session(self):
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._session_factory()
            session.headers.update(self.HEADERS)
            self._local.session = session
        return session

    def load(self, url: str, timeout: float) -> RenderedPage:
        try:
            r = self._session().get(url, timeout=timeout, verify=self._verify, allow_redirects=True)
        except requests.exceptions.Timeout as e:
            raise RenderTimeoutError(url, f"navigation timeout after {timeout}s: {e}")
        except requests.exceptions.RequestException as e:
            raise RenderNavigationError(url, f"network error: {e}")

        content_type = r.headers.get("Content-Type", "").lower()
        if r.status_code >= 400:
            raise RenderNavigationError(url, f"http error: {r.status_code}", status_code=r.status_code)
        if content_type and not any(t in content_type for t in HTML_CONTENT_TYPES):
            raise RenderNavigationError(url, f"ignored content type: {content_type}", status_code=r.status_code)

        html = r.text
        final_url = r.url or url
        links = LinkExtractor.extract_urls(html, final_url)
        logger.debug(f"[HTTP-RENDER] {url} -> {r.status_code} ({len(links)} links)")
        return RenderedPage(
            url=url,
            final_url=final_url,
            status_code=r.status_code,
            html=html,
            links=tuple(links),
            content_type=content_type or None,
            headers=dict(r.headers),
        )
