"""
FILE DESCRIPTION: Ordered plugin registry and hook dispatcher.
KEY FUNCTIONS/CLASSES: PluginPipeline

Every hook call is its own failure domain: an exception is logged against the
plugin, recorded as a PluginFailure and the loop moves on to the next plugin.
"""

import threading
from typing import Any, Dict, Iterable, List, Tuple

from crawler.core import logger
from plugins.models import PluginDescriptor, PluginFailure

class PluginPipeline:
    """
    FLOW: Registers plugins in order -> Brackets the service lifetime with
    initialize_all/destroy_all -> Runs crawl, page and summarize hooks as loops
    over the enabled descriptors -> Returns collected failures to the caller.
    """

    def __init__(self, plugins: Iterable[PluginDescriptor] = ()):
        self._plugins: List[PluginDescriptor] = []
        self._lock = threading.Lock()
        self._initialized = False
        self._destroyed = False
        self.lifecycle_failures: List[PluginFailure] = []
        for plugin in plugins:
            self.register(plugin)

    def register(self, plugin: PluginDescriptor) -> None:
        with self._lock:
            if self._initialized:
                raise RuntimeError(f"cannot register plugin {plugin.name!r}: pipeline already initialized")
            if any(p.name == plugin.name for p in self._plugins):
                raise ValueError(f"duplicate plugin name: {plugin.name!r}")
            self._plugins.append(plugin)
        logger.info(f"[PLUGIN] registered {plugin.name} (enabled={plugin.enabled})")

    @property
    def plugins(self) -> Tuple[PluginDescriptor, ...]:
        """Enabled plugins in registration order."""
        with self._lock:
            return tuple(p for p in self._plugins if p.enabled)

    @property
    def names(self) -> List[str]:
        return [p.name for p in self.plugins]

    # --- service lifecycle ---

    def initialize_all(self) -> List[PluginFailure]:
        with self._lock:
            if self._initialized:
                return []
            self._initialized = True
        failures = self._run_optional("initialize")
        self.lifecycle_failures.extend(failures)
        return failures

    def destroy_all(self) -> List[PluginFailure]:
        with self._lock:
            if not self._initialized or self._destroyed:
                return []
            self._destroyed = True
        # Tear down in reverse registration order
        failures = self._run_optional("destroy", reverse=True)
        self.lifecycle_failures.extend(failures)
        return failures

    # --- crawl hooks ---

    def run_before_crawl(self, job) -> List[PluginFailure]:
        return self._run_optional("before_crawl", job)

    def run_after_crawl(self, job) -> List[PluginFailure]:
        return self._run_optional("after_crawl", job)

    # --- page hooks ---

    def run_page_hooks(self, page, load_time: float) -> Tuple[Dict[str, Dict[str, Any]], List[PluginFailure]]:
        """
        before_each for every plugin, then evaluate for every plugin, then after_each.
        Returns (plugin name -> metric record, failures). A plugin whose evaluate
        raised has no metrics entry.
        """
        url = getattr(page, "url", None)
        plugins = self.plugins
        failures = self._run_optional("before_each", page, load_time, plugins=plugins, url=url)

        metrics: Dict[str, Dict[str, Any]] = {}
        for plugin in plugins:
            try:
                record = plugin.evaluate(page, load_time)
            except Exception as e:
                failures.append(self._failure(plugin, "evaluate", e, url))
                continue
            metrics[plugin.name] = record if record is not None else {}

        failures.extend(self._run_optional("after_each", page, load_time, plugins=plugins, url=url))
        return metrics, failures

    def run_summarize(self, page_results) -> Tuple[Dict[str, Dict[str, Any]], List[PluginFailure]]:
        """
        Each plugin summarizes only the pages where its evaluate succeeded.
        A failing summarize leaves the plugin out of the summary, as does a
        plugin whose evaluate failed on every page of a non-empty crawl.
        """
        summary: Dict[str, Dict[str, Any]] = {}
        failures: List[PluginFailure] = []
        for plugin in self.plugins:
            records = [r.metrics[plugin.name] for r in page_results if plugin.name in r.metrics]
            if page_results and not records:
                message = f"no metrics: evaluate failed on all {len(page_results)} page(s)"
                logger.error(f"[PLUGIN] {plugin.name}.summarize skipped: {message}")
                failures.append(PluginFailure(plugin=plugin.name, hook="summarize", message=message))
                continue
            try:
                summary[plugin.name] = plugin.summarize(records)
            except Exception as e:
                failures.append(self._failure(plugin, "summarize", e))
        return summary, failures

    # --- internals ---

    def _run_optional(self, hook_name, *args, plugins=None, url=None, reverse=False) -> List[PluginFailure]:
        failures = []
        plugins = self.plugins if plugins is None else plugins
        if reverse:
            plugins = tuple(reversed(plugins))
        for plugin in plugins:
            hook = plugin.hook(hook_name)
            if hook is None:
                continue
            try:
                hook(*args)
            except Exception as e:
                failures.append(self._failure(plugin, hook_name, e, url))
        return failures

    @staticmethod
    def _failure(plugin, hook_name, exc, url=None) -> PluginFailure:
        message = f"{type(exc).__name__}: {exc}"
        where = f" on {url}" if url else ""
        logger.error(f"[PLUGIN] {plugin.name}.{hook_name} failed{where}: {message}")
        return PluginFailure(plugin=plugin.name, hook=hook_name, message=message, url=url)
