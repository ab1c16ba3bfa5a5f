import re
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from crawler.core import DEFAULT_MAX_DEPTH, DEFAULT_MAX_PAGES
from crawler.errors import JobStateError
from crawler.processor import LinkUtility, ScopePolicy
from plugins.models import PluginFailure
from webhooks.models import WebhookConfig

class JobStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

TERMINAL_STATES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})

# Legal transitions; terminal states have none
_TRANSITIONS = {
    JobStatus.PENDING: {JobStatus.RUNNING},
    JobStatus.RUNNING: {JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}

class ErrorKind(Enum):
    PLUGIN_ERROR = "plugin_error"
    RENDER_ERROR = "render_error"
    NO_SUCCESSFUL_PAGES = "no_successful_pages"
    CANCELLED = "cancelled"
    INTERNAL_ERROR = "internal_error"

@dataclass(frozen=True)
class JobError:
    kind: ErrorKind
    message: str
    url: Optional[str] = None
    plugin: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"kind": self.kind.value, "message": self.message}
        if self.url:
            data["url"] = self.url
        if self.plugin:
            data["plugin"] = self.plugin
        return data

@dataclass(frozen=True)
class PageResult:
    """
    Output of one successful page run.
    metrics maps plugin name -> that plugin's metric record; plugins whose
    evaluate failed are absent and listed in errors instead.
    """
    url: str
    depth: int
    metrics: Dict[str, Dict[str, Any]]
    load_time: float
    errors: Tuple[PluginFailure, ...] = ()
    links: Tuple[str, ...] = field(default=(), repr=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "depth": self.depth,
            "loadTime": self.load_time,
            "metrics": self.metrics,
            "errors": [e.to_dict() for e in self.errors],
        }

@dataclass(frozen=True)
class RunError:
    """A page that could not be loaded. Not retried."""
    url: str
    depth: int
    cause: str
    kind: str = "RenderError"

    def to_dict(self) -> Dict[str, Any]:
        return {"url": self.url, "depth": self.depth, "kind": self.kind, "cause": self.cause}

@dataclass(frozen=True)
class JobConfig:
    """
    Target configuration for one crawl job.
    Parsed from the trigger body by from_request().
    """
    root_url: str
    max_depth: int = DEFAULT_MAX_DEPTH
    max_pages: int = DEFAULT_MAX_PAGES
    same_origin: bool = True
    allow_patterns: Tuple[str, ...] = ()
    deny_patterns: Tuple[str, ...] = ()
    webhook: Optional[WebhookConfig] = None

    def __post_init__(self):
        canonical = LinkUtility.canonicalize(self.root_url)
        if not canonical:
            raise ValueError(f"invalid root url: {self.root_url!r}")
        object.__setattr__(self, "root_url", canonical)
        if self.max_depth < 0:
            raise ValueError("maxDepth must be >= 0")
        if self.max_pages < 0:
            raise ValueError("maxPages must be >= 0")
        object.__setattr__(self, "allow_patterns", tuple(self.allow_patterns))
        object.__setattr__(self, "deny_patterns", tuple(self.deny_patterns))

    def scope_policy(self) -> ScopePolicy:
        return ScopePolicy(
            self.root_url,
            same_origin=self.same_origin,
            allow_patterns=self.allow_patterns,
            deny_patterns=self.deny_patterns,
        )

    @classmethod
    def from_request(cls, target: str, body: Optional[Dict[str, Any]] = None) -> "JobConfig":
        """
        target is a domain ("example.com") or a full URL.
        body: {maxDepth?, maxPages?, webhook?, sameOrigin?, allowPatterns?, denyPatterns?}
        """
        body = body or {}
        if not isinstance(body, dict):
            raise ValueError("request body must be a JSON object")

        target = (target or "").strip()
        if not target:
            raise ValueError("target domain is required")
        if "://" not in target:
            target = "https://" + target

        webhook = body.get("webhook")
        return cls(
            root_url=target,
            max_depth=_int_field(body, "maxDepth", DEFAULT_MAX_DEPTH),
            max_pages=_int_field(body, "maxPages", DEFAULT_MAX_PAGES),
            same_origin=bool(body.get("sameOrigin", True)),
            allow_patterns=_pattern_field(body, "allowPatterns"),
            deny_patterns=_pattern_field(body, "denyPatterns"),
            webhook=WebhookConfig.from_dict(webhook) if webhook else None,
        )

def _int_field(body, key, default):
    value = body.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return value

def _pattern_field(body, key):
    patterns = body.get(key) or []
    if not isinstance(patterns, (list, tuple)):
        raise ValueError(f"{key} must be a list of regular expressions")
    for p in patterns:
        try:
            re.compile(p)
        except (re.error, TypeError) as e:
            raise ValueError(f"{key}: invalid pattern {p!r}: {e}")
    return tuple(patterns)

def _utc_now():
    return datetime.now(timezone.utc)

def _iso(ts):
    return ts.isoformat() if ts else None

class CrawlJob:
    """
    One crawl job and its accumulated output.
    Status only moves forward: pending -> running -> completed | failed.
    All mutation goes through the job lock; worker threads share this object.
    """

    def __init__(self, config: JobConfig, job_id: str = None):
        self.job_id = job_id or uuid.uuid4().hex
        self.config = config
        self.status = JobStatus.PENDING
        self.created_at = _utc_now()
        self.started_at = None
        self.finished_at = None
        self.summary: Dict[str, Dict[str, Any]] = {}
        self.cancel_requested = False
        self._results: List[PageResult] = []
        self._failed_pages: List[RunError] = []
        self._errors: List[JobError] = []
        self._lock = threading.Lock()
        self._done = threading.Event()

    # --- state machine ---

    def transition(self, to_status: JobStatus) -> None:
        with self._lock:
            if to_status not in _TRANSITIONS[self.status]:
                raise JobStateError(
                    f"job {self.job_id}: illegal transition {self.status.value} -> {to_status.value}"
                )
            self.status = to_status
            if to_status == JobStatus.RUNNING:
                self.started_at = _utc_now()
            elif to_status in TERMINAL_STATES:
                self.finished_at = _utc_now()
                self._done.set()

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    def wait(self, timeout=None) -> bool:
        return self._done.wait(timeout)

    # --- accumulation ---

    def record_result(self, result: PageResult) -> int:
        """Append a page result; returns pages analyzed so far."""
        with self._lock:
            self._results.append(result)
            for failure in result.errors:
                self._errors.append(JobError(
                    ErrorKind.PLUGIN_ERROR,
                    f"{failure.hook}: {failure.message}",
                    url=result.url,
                    plugin=failure.plugin,
                ))
            return len(self._results) + len(self._failed_pages)

    def record_failure(self, failure: RunError) -> int:
        with self._lock:
            self._failed_pages.append(failure)
            self._errors.append(JobError(ErrorKind.RENDER_ERROR, failure.cause, url=failure.url))
            return len(self._results) + len(self._failed_pages)

    def record_error(self, error: JobError) -> None:
        with self._lock:
            self._errors.append(error)

    @property
    def results(self) -> List[PageResult]:
        with self._lock:
            return list(self._results)

    @property
    def failed_pages(self) -> List[RunError]:
        with self._lock:
            return list(self._failed_pages)

    @property
    def errors(self) -> List[JobError]:
        with self._lock:
            return list(self._errors)

    @property
    def pages_analyzed(self) -> int:
        with self._lock:
            return len(self._results) + len(self._failed_pages)

    def to_dict(self, include_pages=False) -> Dict[str, Any]:
        """Status-query view of the job."""
        with self._lock:
            data = {
                "jobId": self.job_id,
                "status": self.status.value,
                "url": self.config.root_url,
                "maxDepth": self.config.max_depth,
                "maxPages": self.config.max_pages,
                "createdAt": _iso(self.created_at),
                "startedAt": _iso(self.started_at),
                "finishedAt": _iso(self.finished_at),
                "pagesAnalyzed": len(self._results) + len(self._failed_pages),
                "pagesSucceeded": len(self._results),
                "pagesFailed": len(self._failed_pages),
                "errors": [e.to_dict() for e in self._errors],
            }
            if self.status in TERMINAL_STATES:
                data["summary"] = self.summary
            if include_pages:
                data["pages"] = [r.to_dict() for r in self._results]
            return data
