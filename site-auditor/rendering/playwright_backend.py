"""
FILE DESCRIPTION: Headless browser rendering backend.
KEY FUNCTIONS/CLASSES: PlaywrightRenderingBackend, RenderRequest, RenderResult

Playwright's sync API is bound to the thread that started it, so every browser
lives on a dedicated render thread and crawl workers hand URLs over a queue.
"""

import queue
import threading

from playwright.sync_api import sync_playwright, TimeoutError as PlaywrightTimeoutError

from crawler.core import RENDER_THREADS, USER_AGENT, logger
from rendering.engine import (
    RenderingBackend,
    RenderExecutionError,
    RenderNavigationError,
    RenderTimeoutError,
)
from rendering.models import RenderedPage

# Collects absolute hrefs (the browser resolves them against <base>/document URL)
_LINKS_SCRIPT = "els => els.map(e => e.href).filter(h => h && /^https?:/i.test(h)).map(h => h.split('#')[0])"

class RenderRequest:
    def __init__(self, url, timeout):
        self.url = url
        self.timeout = timeout
        self.result_queue = queue.Queue()

class RenderResult:
    def __init__(self, page=None, error=None):
        self.page = page
        self.error = error

class PlaywrightRenderingBackend(RenderingBackend):
    """
    FLOW: Spawns dedicated Playwright threads on first use -> Each owns one browser context ->
    Pulls RenderRequests from a shared queue -> Navigates, waits for DOM, snapshots HTML and links ->
    Replies on the request's own result queue.
    """

    def __init__(self, num_threads: int = RENDER_THREADS, block_resources=("image", "font", "media")):
        self._num_threads = max(1, num_threads)
        self._block_resources = set(block_resources)
        self._request_queue = queue.Queue()
        self._init_lock = threading.Lock()
        self._threads = []
        self._closed = False

    def load(self, url: str, timeout: float) -> RenderedPage:
        if self._closed:
            raise RenderExecutionError(url, "renderer is closed")
        self._ensure_running()
        req = RenderRequest(url, timeout)
        self._request_queue.put(req)
        # Navigation timeout is enforced in the render thread; the extra margin covers teardown
        try:
            result = req.result_queue.get(timeout=timeout * 2 + 10)
        except queue.Empty:
            raise RenderTimeoutError(url, f"render thread did not answer within {timeout * 2 + 10}s")
        if result.error:
            raise result.error
        return result.page

    def close(self) -> None:
        self._closed = True
        with self._init_lock:
            threads, self._threads = self._threads, []
        if threads:
            self._request_queue.put(None)
        for t in threads:
            t.join(timeout=10)

    def _ensure_running(self):
        if self._threads and all(t.is_alive() for t in self._threads):
            return
        with self._init_lock:
            alive = [t for t in self._threads if t.is_alive()]
            for i in range(len(alive), self._num_threads):
                t = threading.Thread(target=self._render_loop, args=(i,), daemon=True, name=f"RenderWorker-{i}")
                t.start()
                alive.append(t)
            self._threads = alive

    def _render_loop(self, worker_id: int):
        """Independent worker loop. Each thread gets its own Playwright/Browser instance."""
        try:
            with sync_playwright() as p:
                browser = p.chromium.launch(
                    headless=True,
                    args=["--disable-gpu", "--no-sandbox", "--disable-dev-shm-usage"]
                )
                context = browser.new_context(
                    user_agent=USER_AGENT,
                    viewport={"width": 1280, "height": 800}
                )
                logger.info(f"[JS-ENGINE] Render Worker-{worker_id} ready.")

                while True:
                    req = self._request_queue.get()
                    if req is None:
                        self._request_queue.put(None)  # Pass onto other workers
                        break
                    req.result_queue.put(self._render_one(context, req))

                browser.close()
        except Exception as e:
            logger.critical(f"[JS-ENGINE] Worker-{worker_id} fatal error: {e}")

    def _render_one(self, context, req: RenderRequest) -> RenderResult:
        page = None
        try:
            page = context.new_page()
            if self._block_resources:
                def route_intercept(route):
                    if route.request.resource_type in self._block_resources:
                        return route.abort()
                    return route.continue_()
                page.route("**/*", route_intercept)

            try:
                response = page.goto(req.url, wait_until="domcontentloaded", timeout=req.timeout * 1000)
            except PlaywrightTimeoutError as e:
                return RenderResult(error=RenderTimeoutError(req.url, f"navigation timeout: {e}"))
            except Exception as e:
                return RenderResult(error=RenderNavigationError(req.url, f"navigation failed: {e}"))

            status_code = response.status if response else 0
            if status_code >= 400:
                return RenderResult(error=RenderNavigationError(
                    req.url, f"http error: {status_code}", status_code=status_code
                ))

            try:
                page.wait_for_load_state("load", timeout=5000)
            except PlaywrightTimeoutError:
                pass  # DOM is usable; late subresources are not required

            links = page.eval_on_selector_all("a[href]", _LINKS_SCRIPT)
            return RenderResult(page=RenderedPage(
                url=req.url,
                final_url=page.url,
                status_code=status_code,
                html=page.content(),
                links=tuple(dict.fromkeys(links)),
                headers=dict(response.headers) if response else {},
            ))
        except Exception as e:
            return RenderResult(error=RenderExecutionError(req.url, f"browser error: {e}"))
        finally:
            if page is not None:
                try:
                    page.close()
                except Exception as e:
                    logger.warning(f"[JS-ENGINE] page.close failed for {req.url}: {e}")
