"""
Flask trigger API for the site auditor.
Starts crawl jobs, reports their status and cancels them.
"""

import threading

from flask import Flask, current_app, jsonify, request

from crawler.core import API_HOST, API_PORT, RENDER_BACKEND, logger
from crawler.engine import JobManager
from crawler.errors import JobNotFoundError, JobStateError
from crawler.models import JobConfig
from plugins.builtin import default_plugins
from plugins.pipeline import PluginPipeline
from rendering import create_backend

app = Flask(__name__)
_MANAGER_LOCK = threading.Lock()

def build_manager(backend_name=RENDER_BACKEND) -> JobManager:
    """Default service wiring: built-in plugins, configured renderer, one dispatcher."""
    pipeline = PluginPipeline(default_plugins())
    return JobManager(pipeline, create_backend(backend_name)).start()

def get_manager() -> JobManager:
    manager = current_app.config.get("JOB_MANAGER")
    if manager is None:
        with _MANAGER_LOCK:
            manager = current_app.config.get("JOB_MANAGER")
            if manager is None:
                manager = build_manager()
                current_app.config["JOB_MANAGER"] = manager
    return manager

# ============================================================
# CRAWL TRIGGER
# ============================================================

@app.route('/crawl/<path:domain>', methods=['POST'])
def trigger_crawl(domain):
    """Accepts {maxDepth?, maxPages?, webhook?, sameOrigin?, allowPatterns?, denyPatterns?}"""
    body = request.get_json(silent=True)
    if body is None and request.get_data():
        return jsonify({"error": "request body must be valid JSON"}), 400
    try:
        config = JobConfig.from_request(domain, body)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    job_id = get_manager().submit(config)
    logger.info(f"[API] accepted crawl {job_id} for {config.root_url}")
    return jsonify({"jobId": job_id, "status": "pending"}), 202

# ============================================================
# JOB STATUS / CANCEL
# ============================================================

@app.route('/jobs/<job_id>')
def job_status(job_id):
    include_pages = request.args.get('pages', '').lower() in ('1', 'true', 'yes')
    job = get_manager().get_job(job_id)
    return jsonify(job.to_dict(include_pages=include_pages))

@app.route('/jobs')
def list_jobs():
    return jsonify([job.to_dict() for job in get_manager().list_jobs()])

@app.route('/jobs/<job_id>/cancel', methods=['POST'])
def cancel_job(job_id):
    job = get_manager().cancel(job_id)
    return jsonify({"jobId": job.job_id, "status": job.status.value, "cancelRequested": True}), 202

@app.route('/health')
def health():
    return jsonify({"status": "ok"})

# ============================================================
# ERROR HANDLERS
# ============================================================

@app.errorhandler(JobNotFoundError)
def job_not_found(error):
    return jsonify({"error": str(error)}), 404

@app.errorhandler(JobStateError)
def job_state_conflict(error):
    return jsonify({"error": str(error)}), 409

@app.errorhandler(404)
def not_found(error):
    return jsonify({"error": "not found"}), 404

if __name__ == '__main__':
    app.run(host=API_HOST, port=API_PORT)
