"""
In-memory site maps and renderer fakes shared by the test suites.
"""

import threading

from crawler.processor import LinkExtractor, LinkUtility
from rendering.engine import RenderingBackend, RenderNavigationError
from rendering.models import RenderedPage

def html_page(title, *hrefs):
    anchors = "".join(f'<a href="{h}">{h}</a>' for h in hrefs)
    return f"<html><head><title>{title}</title></head><body>{anchors}</body></html>"

# root -> /a /b /c (+ one external link); /a -> /a/deep which sits at depth 2
EXAMPLE_SITE = {
    "https://example.com/": html_page("Home", "/a", "/b", "/c", "https://other.org/x", "#top"),
    "https://example.com/a": html_page("A", "/a/deep", "/"),
    "https://example.com/b": html_page("B", "/c", "/style.css"),
    "https://example.com/c": html_page("C"),
    "https://example.com/a/deep": html_page("Deep"),
}

class FakeBackend(RenderingBackend):
    """Serves pages from a dict; unknown URLs fail like a 404."""

    def __init__(self, site=None):
        self.site = dict(site if site is not None else EXAMPLE_SITE)
        self.loaded = []
        self.closed = False
        self._lock = threading.Lock()

    def load(self, url, timeout):
        with self._lock:
            self.loaded.append(url)
        key = LinkUtility.canonicalize(url)
        if key not in self.site:
            raise RenderNavigationError(url, "http error: 404", status_code=404)
        html = self.site[key]
        return RenderedPage(
            url=url,
            final_url=url,
            status_code=200,
            html=html,
            links=tuple(LinkExtractor.extract_urls(html, url)),
        )

    def close(self):
        self.closed = True

class BlockingBackend(FakeBackend):
    """
    Root loads immediately; every other load blocks on a gate until release().
    wait_for_loads(n) returns once n non-root loads are parked at the gate.
    """

    def __init__(self, site, root):
        super().__init__(site)
        self.root = root
        self.gate = threading.Event()
        self._parked = 0
        self._cond = threading.Condition()

    def load(self, url, timeout):
        if LinkUtility.canonicalize(url) != self.root:
            with self._cond:
                self._parked += 1
                self._cond.notify_all()
            self.gate.wait(10)
        return super().load(url, timeout)

    def wait_for_loads(self, n, timeout=5):
        with self._cond:
            return self._cond.wait_for(lambda: self._parked >= n, timeout)

    def release(self):
        self.gate.set()

class RecordingDispatcher:
    """Dispatcher stand-in that keeps every subscribed event in order."""

    def __init__(self):
        self.events = []
        self.started = False
        self.stopped = False
        self._lock = threading.Lock()

    def start(self):
        self.started = True

    def stop(self, drain=True, timeout=None):
        self.stopped = True

    def dispatch(self, config, event):
        if config is None or not config.subscribes(event.kind):
            return False
        with self._lock:
            self.events.append(event)
        return True

    def kinds(self):
        with self._lock:
            return [e.kind.value for e in self.events]
