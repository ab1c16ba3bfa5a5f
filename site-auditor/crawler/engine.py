"""
FILE DESCRIPTION: Job orchestration module managing crawl jobs, their worker threads and lifecycle events.
KEY FUNCTIONS/CLASSES: JobManager, CrawlerWorker, COMPLETION_POLICIES
"""

import threading
from typing import Callable, Dict, List, Optional, Union

from crawler.core import COMPLETION_POLICY, NAVIGATION_TIMEOUT, WORKER_COUNT, logger
from crawler.errors import JobNotFoundError, JobStateError
from crawler.models import CrawlJob, ErrorKind, JobConfig, JobError, JobStatus, PageResult
from crawler.runner import PageRunner
from frontier.orchestrator import Frontier
from plugins.pipeline import PluginPipeline
from rendering.engine import RenderingBackend
from webhooks.dispatcher import WebhookDispatcher
from webhooks.models import completed_event, failed_event, progress_event, started_event

# === COMPLETION POLICY ===

def any_success(job: CrawlJob) -> bool:
    """Completed unless no page produced a result."""
    return len(job.results) > 0

def all_success(job: CrawlJob) -> bool:
    """Completed only if every accepted page produced a result."""
    return len(job.results) > 0 and not job.failed_pages

COMPLETION_POLICIES = {
    "any_success": any_success,
    "all_success": all_success,
}

def resolve_policy(policy: Union[str, Callable[[CrawlJob], bool], None]) -> Callable[[CrawlJob], bool]:
    if policy is None:
        policy = COMPLETION_POLICY
    if callable(policy):
        return policy
    try:
        return COMPLETION_POLICIES[policy]
    except KeyError:
        raise ValueError(f"unknown completion policy: {policy!r} (expected one of {sorted(COMPLETION_POLICIES)})")

# === WORKER ===

class CrawlerWorker(threading.Thread):
    """
    FLOW: Main worker loop -> Dequeues next entry (breadth-first) -> Runs the page through
    PageRunner -> Enqueues in-scope links at depth+1 while capacity remains ->
    Records the PageResult or RunError on the job -> Emits progress -> Releases the entry.
    """

    def __init__(self, job: CrawlJob, frontier: Frontier, runner: PageRunner, on_page, name: str):
        super().__init__(name=name, daemon=True)
        self.job = job
        self.frontier = frontier
        self.runner = runner
        self.on_page = on_page
        self.processed_count = 0
        self.failed_count = 0

    def log(self, level, msg):
        getattr(logger, level)(msg, extra={'context': self.name})

    def run(self):
        self.log("debug", "started")
        while True:
            entry = self.frontier.dequeue()
            if entry is None:
                break
            try:
                self._process(entry)
            except Exception as e:
                # task_done must still run for this entry
                self.log("error", f"unexpected error processing {entry.url}: {e}")
            finally:
                self.frontier.task_done(entry)
        self.log("debug", f"finished (processed={self.processed_count}, failed={self.failed_count})")

    def _process(self, entry):
        outcome = self.runner.run(entry.url, entry.depth)

        if isinstance(outcome, PageResult):
            child_depth = entry.depth + 1
            if child_depth <= self.frontier.max_depth:
                for link in outcome.links:
                    if self.frontier.remaining_capacity() == 0:
                        break
                    self.frontier.enqueue(link, child_depth, parent=entry.url)
            analyzed = self.job.record_result(outcome)
            self.processed_count += 1
        else:
            analyzed = self.job.record_failure(outcome)
            self.failed_count += 1

        self.on_page(self.job, analyzed, self.frontier.get_stats()["accepted"], entry.url)

# === JOB MANAGER ===

class JobManager:
    """
    FLOW: start() initializes plugins and the webhook dispatcher once ->
    submit() registers a pending job and starts its job thread ->
    Job thread runs before_crawl hooks, emits started, seeds the Frontier with the root ->
    N CrawlerWorkers drain the Frontier -> after_crawl + summarize ->
    Completion policy decides completed/failed -> Final webhook event.
    """

    def __init__(self, pipeline: PluginPipeline, backend: RenderingBackend,
                 dispatcher: Optional[WebhookDispatcher] = None, worker_count: int = WORKER_COUNT,
                 timeout: float = NAVIGATION_TIMEOUT, completion_policy=None):
        self.pipeline = pipeline
        self.backend = backend
        self.dispatcher = dispatcher or WebhookDispatcher()
        self.worker_count = max(1, worker_count)
        self.timeout = timeout
        self.completion_policy = resolve_policy(completion_policy)
        self._jobs: Dict[str, CrawlJob] = {}
        self._frontiers: Dict[str, Frontier] = {}
        self._threads: Dict[str, Optional[threading.Thread]] = {}
        self._lock = threading.Lock()
        self._started = False

    # --- service lifecycle ---

    def start(self) -> "JobManager":
        with self._lock:
            if self._started:
                return self
            self._started = True
        self.pipeline.initialize_all()
        self.dispatcher.start()
        logger.info(f"[JOB] manager started (workers/job={self.worker_count}, plugins={self.pipeline.names})")
        return self

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """
        Cancels running jobs and waits for them. Jobs that were created but never
        started fail as cancelled. Plugins, dispatcher and renderer are torn down last.
        """
        for job in self.list_jobs():
            if not job.is_terminal:
                try:
                    self.cancel(job.job_id)
                except JobStateError:
                    pass  # finished in the meantime
        with self._lock:
            unstarted = [j for j in self._jobs.values() if j.job_id not in self._threads]
            threads = [t for t in self._threads.values() if t is not None]
            # Claim the slot so a late start_job raises instead of running
            for job in unstarted:
                self._threads[job.job_id] = None
        for job in unstarted:
            if job.status == JobStatus.PENDING:
                job.record_error(JobError(ErrorKind.CANCELLED, "job cancelled before it started"))
                self._fail(job, "job cancelled", {'context': f"Job-{job.job_id[:8]}"})
        for t in threads:
            t.join(timeout)
        self.pipeline.destroy_all()
        self.dispatcher.stop(drain=True, timeout=timeout)
        self.backend.close()
        with self._lock:
            self._started = False
        logger.info("[JOB] manager shut down")

    # --- job operations ---

    def create_job(self, config: JobConfig) -> CrawlJob:
        job = CrawlJob(config)
        with self._lock:
            self._jobs[job.job_id] = job
        logger.info(f"[JOB] created {job.job_id} for {config.root_url} "
                    f"(depth={config.max_depth}, pages={config.max_pages})")
        return job

    def start_job(self, job_id: str) -> CrawlJob:
        job = self.get_job(job_id)
        with self._lock:
            if job_id in self._threads:
                raise JobStateError(f"job {job_id} already started")
            thread = threading.Thread(target=self._run_job, args=(job,), name=f"Job-{job_id[:8]}", daemon=True)
            self._threads[job_id] = thread
        if not self._started:
            self.start()
        thread.start()
        return job

    def submit(self, config: JobConfig) -> str:
        job = self.create_job(config)
        self.start_job(job.job_id)
        return job.job_id

    def get_job(self, job_id: str) -> CrawlJob:
        with self._lock:
            job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(f"unknown job: {job_id}")
        return job

    def list_jobs(self) -> List[CrawlJob]:
        with self._lock:
            return list(self._jobs.values())

    def cancel(self, job_id: str) -> CrawlJob:
        """
        Request cancellation. In-flight pages finish; nothing further is dequeued.
        A pending job fails as cancelled as soon as it starts.
        """
        job = self.get_job(job_id)
        if job.is_terminal:
            raise JobStateError(f"job {job_id} already {job.status.value}")
        job.cancel_requested = True
        with self._lock:
            frontier = self._frontiers.get(job_id)
        if frontier is not None:
            frontier.close()
        logger.info(f"[JOB] cancellation requested for {job_id}")
        return job

    def wait(self, job_id: str, timeout: Optional[float] = None) -> CrawlJob:
        job = self.get_job(job_id)
        job.wait(timeout)
        return job

    # --- job thread ---

    def _emit(self, job: CrawlJob, event) -> None:
        self.dispatcher.dispatch(job.config.webhook, event)

    def _on_page(self, job: CrawlJob, analyzed: int, total: int, url: str) -> None:
        self._emit(job, progress_event(job.job_id, analyzed, total, url))

    def _run_job(self, job: CrawlJob) -> None:
        ctx = {'context': f"Job-{job.job_id[:8]}"}
        try:
            job.transition(JobStatus.RUNNING)
            logger.info(f"[JOB] running {job.config.root_url}", extra=ctx)

            for failure in self.pipeline.run_before_crawl(job):
                job.record_error(_plugin_error(failure))
            self._emit(job, started_event(job.job_id, job.config.root_url))

            frontier = Frontier(job.config.max_depth, job.config.max_pages)
            with self._lock:
                self._frontiers[job.job_id] = frontier
            if job.cancel_requested:
                frontier.close()
            frontier.enqueue(job.config.root_url, 0)

            runner = PageRunner(self.backend, self.pipeline, job.config.scope_policy(),
                                timeout=self.timeout, context=ctx['context'])
            workers = [
                CrawlerWorker(job, frontier, runner, self._on_page, name=f"{ctx['context']}-W{i}")
                for i in range(self.worker_count)
            ]
            for w in workers:
                w.start()
            for w in workers:
                w.join()

            for failure in self.pipeline.run_after_crawl(job):
                job.record_error(_plugin_error(failure))

            results = job.results
            summary, failures = self.pipeline.run_summarize(results)
            for failure in failures:
                job.record_error(_plugin_error(failure))
            job.summary = summary

            stats = frontier.get_stats()
            logger.info(
                f"[JOB] crawl finished: accepted={stats['accepted']} succeeded={len(results)} "
                f"failed={len(job.failed_pages)}",
                extra=ctx,
            )
            self._finish(job, results, summary, ctx)
        except Exception as e:
            logger.exception(f"[JOB] crashed: {e}", extra=ctx)
            job.record_error(JobError(ErrorKind.INTERNAL_ERROR, f"{type(e).__name__}: {e}"))
            self._fail(job, f"internal error: {e}", ctx)
        finally:
            with self._lock:
                self._frontiers.pop(job.job_id, None)

    def _finish(self, job: CrawlJob, results, summary, ctx) -> None:
        if job.cancel_requested:
            job.record_error(JobError(ErrorKind.CANCELLED, "job cancelled"))
            self._fail(job, "job cancelled", ctx)
            return

        if self.completion_policy(job):
            job.transition(JobStatus.COMPLETED)
            logger.info(f"[JOB] completed with {len(results)} page(s)", extra=ctx)
            self._emit(job, completed_event(job.job_id, [r.to_dict() for r in results], summary))
            return

        if not results:
            job.record_error(JobError(ErrorKind.NO_SUCCESSFUL_PAGES, "no page was analyzed successfully"))
            message = "no page was analyzed successfully"
        else:
            message = f"{len(job.failed_pages)} page(s) failed to load"
        self._fail(job, message, ctx)

    def _fail(self, job: CrawlJob, message: str, ctx) -> None:
        if job.is_terminal:
            return
        if job.status == JobStatus.PENDING:
            job.transition(JobStatus.RUNNING)
        job.transition(JobStatus.FAILED)
        logger.warning(f"[JOB] failed: {message}", extra=ctx)
        self._emit(job, failed_event(job.job_id, message, [e.to_dict() for e in job.errors]))

def _plugin_error(failure) -> JobError:
    return JobError(ErrorKind.PLUGIN_ERROR, f"{failure.hook}: {failure.message}", url=failure.url, plugin=failure.plugin)
