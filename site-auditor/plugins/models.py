from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

# Hook names in the order a page passes through them
PAGE_HOOKS = ("before_each", "evaluate", "after_each")
CRAWL_HOOKS = ("before_crawl", "after_crawl")
SERVICE_HOOKS = ("initialize", "destroy")

@dataclass(frozen=True)
class PluginDescriptor:
    """
    A page analyzer as a record of function handles.
    evaluate(page, load_time) -> metric record and summarize(records) -> summary record
    are required; every other hook is optional.
    """
    name: str
    evaluate: Callable[[Any, float], Dict[str, Any]]
    summarize: Callable[[List[Dict[str, Any]]], Dict[str, Any]]
    enabled: bool = True
    initialize: Optional[Callable[[], None]] = None
    destroy: Optional[Callable[[], None]] = None
    before_crawl: Optional[Callable[[Any], None]] = None
    after_crawl: Optional[Callable[[Any], None]] = None
    before_each: Optional[Callable[[Any, float], None]] = None
    after_each: Optional[Callable[[Any, float], None]] = None

    def __post_init__(self):
        if not self.name or not isinstance(self.name, str):
            raise ValueError("plugin name must be a non-empty string")
        if not callable(self.evaluate) or not callable(self.summarize):
            raise ValueError(f"plugin {self.name}: evaluate and summarize are required")

    def hook(self, hook_name: str) -> Optional[Callable]:
        return getattr(self, hook_name)

@dataclass(frozen=True)
class PluginFailure:
    """A hook that raised, recorded against the plugin that owns it."""
    plugin: str
    hook: str
    message: str
    url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"plugin": self.plugin, "hook": self.hook, "message": self.message}
        if self.url:
            data["url"] = self.url
        return data
