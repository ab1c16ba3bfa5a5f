import sys
import os
import json
import argparse

# Inject the site-auditor directory into sys.path
# so that the sub-packages (crawler, frontier, plugins, rendering, webhooks) are resolvable.
sys.path.append(os.path.join(os.path.dirname(__file__), "site-auditor"))

from tabulate import tabulate

from crawler.core import (
    API_HOST,
    API_PORT,
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_PAGES,
    RENDER_BACKEND,
    WORKER_COUNT,
    logger,
)
from crawler.engine import JobManager
from crawler.models import JobConfig
from plugins.builtin import default_plugins
from plugins.pipeline import PluginPipeline
from rendering import create_backend

def run_crawl(args):
    """
    FLOW: Builds JobConfig from CLI flags -> Starts a JobManager with the built-in plugins ->
    Submits one job and waits -> Prints per-page table and plugin summary -> Exit code reflects status.
    """
    body = {"maxDepth": args.max_depth, "maxPages": args.max_pages}
    if args.webhook:
        body["webhook"] = {"url": args.webhook}
    try:
        config = JobConfig.from_request(args.target, body)
    except ValueError as e:
        print(f"CONFIG_ERROR: {e}")
        return 2

    manager = JobManager(
        PluginPipeline(default_plugins()),
        create_backend(args.backend),
        worker_count=args.workers,
        completion_policy=args.policy,
    ).start()
    job_id = manager.submit(config)
    try:
        job = manager.wait(job_id)
    except KeyboardInterrupt:
        logger.warning("[CLI] interrupted, cancelling crawl...")
        manager.cancel(job_id)
        job = manager.wait(job_id)
    finally:
        manager.shutdown(timeout=30)

    data = job.to_dict(include_pages=True)
    if args.json:
        print(json.dumps(data, indent=2))
    else:
        print_report(data)
    return 0 if data["status"] == "completed" else 1

def print_report(data):
    print("\n==============================")
    print("CRAWL JOB SUMMARY")
    print("==============================")
    print(f"Job:              {data['jobId']}")
    print(f"Root:             {data['url']}")
    print(f"Status:           {data['status']}")
    print(f"Pages analyzed:   {data['pagesAnalyzed']} "
          f"(ok={data['pagesSucceeded']}, failed={data['pagesFailed']})")
    print("==============================\n")

    rows = [
        [p["depth"], p["url"], p["loadTime"], len(p["errors"])]
        for p in sorted(data.get("pages", []), key=lambda p: (p["depth"], p["url"]))
    ]
    if rows:
        print(tabulate(rows, headers=["Depth", "URL", "Load (ms)", "Plugin errors"], tablefmt="simple"))
        print()

    for plugin, summary in data.get("summary", {}).items():
        print(f"[{plugin}]")
        print(tabulate(sorted(summary.items()), tablefmt="simple"))
        print()

    if data["errors"]:
        errors = [[e["kind"], e.get("plugin", ""), e.get("url", ""), e["message"]] for e in data["errors"]]
        print(tabulate(errors, headers=["Kind", "Plugin", "URL", "Message"], tablefmt="simple"))

def run_server(args):
    from app import app, build_manager

    app.config["JOB_MANAGER"] = build_manager(args.backend)
    logger.info(f"[API] listening on {args.host}:{args.port}")
    try:
        app.run(host=args.host, port=args.port, threaded=True)
    finally:
        app.config["JOB_MANAGER"].shutdown(timeout=30)
    return 0

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Site Auditor CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    crawl = sub.add_parser("crawl", help="Crawl one site and print the audit")
    crawl.add_argument("target", help="Domain or root URL, e.g. example.com")
    crawl.add_argument("--max-depth", type=int, default=DEFAULT_MAX_DEPTH)
    crawl.add_argument("--max-pages", type=int, default=DEFAULT_MAX_PAGES)
    crawl.add_argument("--workers", type=int, default=WORKER_COUNT)
    crawl.add_argument("--backend", choices=["http", "playwright"], default=RENDER_BACKEND)
    crawl.add_argument("--policy", choices=["any_success", "all_success"], default=None,
                       help="Completion policy (defaults to COMPLETION_POLICY)")
    crawl.add_argument("--webhook", help="Receiver URL for job events")
    crawl.add_argument("--json", action="store_true", help="Print the job as JSON instead of tables")
    crawl.set_defaults(func=run_crawl)

    serve = sub.add_parser("serve", help="Run the HTTP trigger API")
    serve.add_argument("--host", default=API_HOST)
    serve.add_argument("--port", type=int, default=API_PORT)
    serve.add_argument("--backend", choices=["http", "playwright"], default=RENDER_BACKEND)
    serve.set_defaults(func=run_server)

    args = parser.parse_args()
    sys.exit(args.func(args))
