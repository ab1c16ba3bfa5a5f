from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping, Optional

from crawler.core import WEBHOOK_MAX_RETRIES

class EventKind(Enum):
    STARTED = "started"
    PROGRESS = "progress"
    COMPLETED = "completed"
    FAILED = "failed"

ALL_EVENT_KINDS = frozenset(EventKind)

def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()

@dataclass(frozen=True)
class WebhookConfig:
    """
    Receiver configuration attached to a crawl job.
    An empty subscription set means every event kind.
    """
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    max_retries: int = WEBHOOK_MAX_RETRIES
    events: FrozenSet[EventKind] = ALL_EVENT_KINDS

    def __post_init__(self):
        if not self.url or not str(self.url).lower().startswith(("http://", "https://")):
            raise ValueError(f"webhook url must be http(s): {self.url!r}")
        if self.max_retries < 0:
            raise ValueError("webhook retries must be >= 0")
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))
        object.__setattr__(self, "events", frozenset(self.events) or ALL_EVENT_KINDS)

    def subscribes(self, kind: EventKind) -> bool:
        return kind in self.events

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WebhookConfig":
        """
        Parses the trigger body's webhook object:
        {"url": ..., "headers": {...}, "retries": 3, "on": ["completed", ...]}
        """
        if not isinstance(data, dict):
            raise ValueError("webhook must be an object")
        headers = data.get("headers") or {}
        if not isinstance(headers, dict):
            raise ValueError("webhook.headers must be an object")

        retries = data.get("retries", data.get("maxRetries", WEBHOOK_MAX_RETRIES))
        if isinstance(retries, bool) or not isinstance(retries, int):
            raise ValueError("webhook.retries must be an integer")

        on = data.get("on")
        if on is None:
            events = ALL_EVENT_KINDS
        else:
            if not isinstance(on, (list, tuple)):
                raise ValueError("webhook.on must be a list of event kinds")
            try:
                events = frozenset(EventKind(str(k).lower()) for k in on)
            except ValueError:
                raise ValueError(f"webhook.on contains an unknown event kind: {on}")

        return cls(
            url=data.get("url", ""),
            headers={str(k): str(v) for k, v in headers.items()},
            max_retries=retries,
            events=events,
        )

@dataclass(frozen=True)
class WebhookEvent:
    """
    Immutable job notification.
    payload holds the kind-specific fields merged into the wire body.
    """
    job_id: str
    kind: EventKind
    payload: Mapping[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=_utc_now_iso)

    def __post_init__(self):
        object.__setattr__(self, "payload", MappingProxyType(dict(self.payload)))

    def to_wire(self) -> Dict[str, Any]:
        body = {
            "status": self.kind.value,
            "jobId": self.job_id,
            "timestamp": self.timestamp,
        }
        body.update(self.payload)
        return body

@dataclass(frozen=True)
class DeliveryFailure:
    """Record of an event dropped after exhausting retries."""
    job_id: str
    kind: EventKind
    url: str
    attempts: int
    error: str
    failed_at: str = field(default_factory=_utc_now_iso)

def started_event(job_id: str, root_url: str) -> WebhookEvent:
    return WebhookEvent(job_id, EventKind.STARTED, {"url": root_url})

def progress_event(job_id: str, pages_analyzed: int, total_pages: int, current_url: str) -> WebhookEvent:
    return WebhookEvent(job_id, EventKind.PROGRESS, {
        "pagesAnalyzed": pages_analyzed,
        "totalPages": total_pages,
        "currentUrl": current_url,
    })

def completed_event(job_id: str, pages, summary) -> WebhookEvent:
    return WebhookEvent(job_id, EventKind.COMPLETED, {
        "result": {"pages": pages, "summary": summary},
    })

def failed_event(job_id: str, error: str, errors: Optional[list] = None) -> WebhookEvent:
    return WebhookEvent(job_id, EventKind.FAILED, {
        "error": error,
        "errors": errors or [],
    })
