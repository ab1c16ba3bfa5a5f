import heapq
import itertools
import threading
import time
from typing import Optional

from crawler.core import logger
from crawler.processor import LinkUtility
from frontier.models import FrontierEntry

class Frontier:
    """
    Thread-safe breadth-first frontier for a single crawl job.
    Holds the pending entries (heap ordered by depth, then discovery order), the
    set of every canonical URL ever accepted, and the in-flight count that
    decides when the crawl has drained.

    Invariants:
    - accept/reject and the dedup-set update happen under one lock
    - accepted count never exceeds max_pages
    - no entry deeper than max_depth is ever accepted
    """

    def __init__(self, max_depth: int, max_pages: int):
        self.max_depth = max_depth
        self.max_pages = max_pages
        self._heap = []
        self._known = set()
        self._sequence = itertools.count()
        self._in_flight = 0
        self._completed = 0
        self._closed = False
        self._cond = threading.Condition(threading.Lock())

    def enqueue(self, url: str, depth: int, parent: Optional[str] = None) -> bool:
        """
        Accept a URL if it is new, within depth and within the page budget.
        Returns True if enqueued, False otherwise.
        """
        canonical = LinkUtility.canonicalize(url)
        if not canonical:
            logger.debug(f"[FRONTIER] rejected (not crawlable): {url}")
            return False

        with self._cond:
            if self._closed:
                return False
            if depth > self.max_depth:
                logger.debug(f"[FRONTIER] rejected (depth {depth} > {self.max_depth}): {canonical}")
                return False
            if canonical in self._known:
                return False
            if len(self._known) >= self.max_pages:
                logger.debug(f"[FRONTIER] rejected (page budget {self.max_pages} reached): {canonical}")
                return False

            self._known.add(canonical)
            heapq.heappush(self._heap, FrontierEntry(depth, next(self._sequence), canonical, parent))
            self._cond.notify()

        logger.debug(f"[FRONTIER] enqueued {canonical} (depth={depth}, parent={parent})")
        return True

    def dequeue(self, timeout: Optional[float] = None) -> Optional[FrontierEntry]:
        """
        Next entry in breadth-first order, marked in flight.
        Blocks while the heap is empty but other entries are still in flight
        (they may discover more links). Returns None once drained, closed, or
        when the timeout elapses.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while True:
                if self._closed:
                    return None
                if self._heap:
                    entry = heapq.heappop(self._heap)
                    self._in_flight += 1
                    return entry
                if self._in_flight == 0:
                    return None
                if deadline is None:
                    self._cond.wait()
                else:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return None
                    self._cond.wait(remaining)

    def task_done(self, entry: FrontierEntry) -> None:
        """Release an in-flight entry. Must be called after its links were enqueued."""
        with self._cond:
            if self._in_flight <= 0:
                raise ValueError(f"task_done() called more times than dequeue() ({entry.url})")
            self._in_flight -= 1
            self._completed += 1
            if self._in_flight == 0 or self._heap:
                self._cond.notify_all()

    def close(self) -> None:
        """Stop handing out entries; wakes every waiting worker."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def remaining_capacity(self) -> int:
        with self._cond:
            return max(0, self.max_pages - len(self._known))

    def is_drained(self) -> bool:
        with self._cond:
            return not self._heap and self._in_flight == 0

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def get_stats(self):
        with self._cond:
            return {
                "queued": len(self._heap),
                "in_flight": self._in_flight,
                "accepted": len(self._known),
                "completed": self._completed,
            }
