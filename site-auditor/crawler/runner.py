"""
Per-page driver: render -> plugin page hooks -> in-scope outbound links.
"""

import time
from typing import Union

from crawler.core import NAVIGATION_TIMEOUT, logger
from crawler.models import PageResult, RunError
from crawler.processor import LinkUtility, ScopePolicy
from plugins.pipeline import PluginPipeline
from rendering.engine import RenderError, RenderingBackend

class PageRunner:
    """
    Drives one page's analysis for a job.
    A renderer failure becomes a RunError; the URL is never retried.
    """

    def __init__(self, backend: RenderingBackend, pipeline: PluginPipeline, policy: ScopePolicy,
                 timeout: float = NAVIGATION_TIMEOUT, context: str = "root"):
        self.backend = backend
        self.pipeline = pipeline
        self.policy = policy
        self.timeout = timeout
        self.context = context

    def run(self, url: str, depth: int = 0) -> Union[PageResult, RunError]:
        start = time.monotonic()
        try:
            page = self.backend.load(url, self.timeout)
        except RenderError as e:
            logger.warning(f"[RENDER] {type(e).__name__} for {url}: {e}", extra={"context": self.context})
            return RunError(url=url, depth=depth, cause=str(e), kind=type(e).__name__)
        except Exception as e:
            # Backend bug or crash; same treatment as a failed render
            logger.error(f"[RENDER] renderer crashed on {url}: {e}", extra={"context": self.context})
            return RunError(url=url, depth=depth, cause=f"{type(e).__name__}: {e}", kind="RenderExecutionError")
        load_time = round((time.monotonic() - start) * 1000, 2)

        metrics, failures = self.pipeline.run_page_hooks(page, load_time)
        links = self._in_scope_links(page)

        logger.info(
            f"[PAGE] {url} depth={depth} load={load_time}ms plugins={len(metrics)} "
            f"plugin_errors={len(failures)} links={len(links)}",
            extra={"context": self.context},
        )
        return PageResult(
            url=url,
            depth=depth,
            metrics=metrics,
            load_time=load_time,
            errors=tuple(failures),
            links=tuple(links),
        )

    def _in_scope_links(self, page):
        seen, links = set(), []
        base = getattr(page, "final_url", None) or page.url
        for raw in page.links:
            canonical = LinkUtility.canonicalize(raw, base=base)
            if not canonical or canonical in seen:
                continue
            seen.add(canonical)
            if self.policy.allows(canonical):
                links.append(canonical)
        return links
