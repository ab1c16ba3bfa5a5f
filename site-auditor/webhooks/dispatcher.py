"""
FILE DESCRIPTION: Asynchronous webhook delivery with retry and backoff.
KEY FUNCTIONS/CLASSES: WebhookDispatcher

Crawl workers only ever put events on a queue. Dedicated delivery threads POST
them, retrying with exponential backoff; an event that exhausts its retries is
dropped and recorded as a DeliveryFailure. Delivery is best-effort,
at-least-once, and never feeds back into job status.
"""

import queue
import threading
import time
from typing import List, Optional

import requests

from crawler.core import WEBHOOK_BACKOFF_SECONDS, WEBHOOK_TIMEOUT, logger
from crawler.errors import DeliveryError
from webhooks.models import DeliveryFailure, WebhookConfig, WebhookEvent

class WebhookDispatcher:
    """
    FLOW: dispatch() filters by subscription and enqueues -> Delivery thread pulls
    (config, event) -> POSTs JSON with configured headers -> Retries non-2xx and
    transport errors up to config.max_retries times -> Records success or drop.
    """

    def __init__(self, session=None, backoff: float = WEBHOOK_BACKOFF_SECONDS,
                 timeout: float = WEBHOOK_TIMEOUT, workers: int = 1, sleep=time.sleep):
        self._session = session or requests.Session()
        self._backoff = backoff
        self._timeout = timeout
        self._num_workers = max(1, workers)
        self._sleep = sleep
        self._queue = queue.Queue()
        self._threads: List[threading.Thread] = []
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._pending = 0
        self.delivered = 0
        self.failures: List[DeliveryFailure] = []

    # --- lifecycle ---

    def start(self) -> None:
        with self._lock:
            if self._threads:
                return
            for i in range(self._num_workers):
                t = threading.Thread(target=self._delivery_loop, daemon=True, name=f"WebhookWorker-{i}")
                t.start()
                self._threads.append(t)
        logger.info(f"[WEBHOOK] dispatcher started with {self._num_workers} delivery thread(s)")

    def stop(self, drain: bool = True, timeout: Optional[float] = None) -> None:
        """Stop delivery threads; with drain=True queued events are delivered first."""
        if drain:
            self.flush(timeout)
        with self._lock:
            threads, self._threads = self._threads, []
        for _ in threads:
            self._queue.put(None)
        for t in threads:
            t.join(timeout)
        logger.info(f"[WEBHOOK] dispatcher stopped (delivered={self.delivered}, dropped={len(self.failures)})")

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Block until every queued event is delivered or dropped. Returns False on timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._idle:
            while self._pending:
                if deadline is None:
                    self._idle.wait()
                else:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return False
                    self._idle.wait(remaining)
        return True

    # --- producer side ---

    def dispatch(self, config: Optional[WebhookConfig], event: WebhookEvent) -> bool:
        """Queue event for delivery if config subscribes to its kind. Never blocks on I/O."""
        if config is None or not config.subscribes(event.kind):
            return False
        with self._lock:
            self._pending += 1
        self._queue.put((config, event))
        return True

    # --- delivery side ---

    def _delivery_loop(self):
        while True:
            item = self._queue.get()
            if item is None:
                break
            config, event = item
            try:
                self.deliver(config, event)
            except Exception as e:
                logger.error(f"[WEBHOOK] unexpected delivery error for job {event.job_id}: {e}")
            finally:
                with self._idle:
                    self._pending -= 1
                    if self._pending == 0:
                        self._idle.notify_all()

    def deliver(self, config: WebhookConfig, event: WebhookEvent) -> bool:
        """
        Synchronous delivery with retries. 1 + max_retries attempts in total,
        sleeping backoff * 2**(attempt - 1) between them.
        """
        body = event.to_wire()
        attempts = config.max_retries + 1
        last_error = None
        for attempt in range(1, attempts + 1):
            try:
                self._post(config, body)
            except DeliveryError as e:
                last_error = e
                if attempt < attempts:
                    delay = self._backoff * (2 ** (attempt - 1))
                    logger.warning(
                        f"[WEBHOOK] {event.kind.value} for job {event.job_id} failed "
                        f"(attempt {attempt}/{attempts}): {e}. Retrying in {delay:.1f}s..."
                    )
                    self._sleep(delay)
                continue
            with self._lock:
                self.delivered += 1
            logger.info(f"[WEBHOOK] delivered {event.kind.value} for job {event.job_id} to {config.url} (attempt {attempt})")
            return True

        failure = DeliveryFailure(
            job_id=event.job_id,
            kind=event.kind,
            url=config.url,
            attempts=attempts,
            error=str(last_error),
        )
        with self._lock:
            self.failures.append(failure)
        logger.error(
            f"[WEBHOOK] dropped {event.kind.value} for job {event.job_id} after {attempts} attempts: {last_error}"
        )
        return False

    def _post(self, config: WebhookConfig, body) -> None:
        headers = dict(config.headers)
        headers["Content-Type"] = "application/json"
        try:
            r = self._session.post(config.url, json=body, headers=headers, timeout=self._timeout)
        except requests.exceptions.RequestException as e:
            raise DeliveryError(f"transport error: {e}")
        if not 200 <= r.status_code < 300:
            raise DeliveryError(f"receiver returned {r.status_code}", status_code=r.status_code)
