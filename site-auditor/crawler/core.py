"""
FILE DESCRIPTION: Foundational module for global configuration and logging.
KEY FUNCTIONS/CLASSES: setup_logger, CompanyFormatter, configuration constants
"""

import logging
import sys
import os
from datetime import datetime
from pathlib import Path
from dotenv import load_dotenv

# === CONFIGURATION SECTION ===

# Load .env from the repository root
load_dotenv(Path(__file__).resolve().parents[2] / '.env')

# Crawl limits applied when a trigger request omits them
DEFAULT_MAX_DEPTH = int(os.getenv("CRAWL_MAX_DEPTH", 2))
DEFAULT_MAX_PAGES = int(os.getenv("CRAWL_MAX_PAGES", 50))

# Worker threads per crawl job
WORKER_COUNT = int(os.getenv("WORKER_COUNT", 5))

# Renderer settings (seconds)
NAVIGATION_TIMEOUT = int(os.getenv("NAVIGATION_TIMEOUT", 25))
RENDER_BACKEND = os.getenv("RENDER_BACKEND", "http").lower()
RENDER_THREADS = int(os.getenv("RENDER_THREADS", 2))
USER_AGENT = os.getenv(
    "USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36 SiteAuditor/1.0",
)

# Webhook delivery
WEBHOOK_MAX_RETRIES = int(os.getenv("WEBHOOK_MAX_RETRIES", 3))
WEBHOOK_BACKOFF_SECONDS = float(os.getenv("WEBHOOK_BACKOFF_SECONDS", 1.0))
WEBHOOK_TIMEOUT = int(os.getenv("WEBHOOK_TIMEOUT", 10))

# "any_success": job fails only if no page succeeded
# "all_success": any failed page fails the job
COMPLETION_POLICY = os.getenv("COMPLETION_POLICY", "any_success").lower()

# Trigger API
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", 5000))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("LOG_FILE") or None


# === LOGGING SECTION ===

class CompanyFormatter(logging.Formatter):
    """
    FLOW: Receives a log record -> Extracts timestamp -> Formats according to company standard
    (e.g., [ Tue Jan 06 05:32:41 AM UTC 2026 ]) -> Prepends level and context -> Returns final string.
    """
    def format(self, record):
        dt = datetime.fromtimestamp(record.created)
        timestamp = dt.strftime("%a %b %d %I:%M:%S %p UTC %Y")
        context = getattr(record, 'context', 'root')
        message = f"[ {timestamp} ] : {record.levelname} : {context} : {record.getMessage()}"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message

def setup_logger(name="crawler", log_file=None, level=logging.INFO):
    """
    FLOW: Initializes/Retrieves logger -> Checks for existing handlers to prevent duplicates ->
    Sets propagation for child loggers -> Attaches Console and optional File handlers with CompanyFormatter.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    if name != "crawler":
        logger.propagate = True
        setup_logger("crawler", log_file=log_file, level=level)
        return logger

    formatter = CompanyFormatter()

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # File handler (optional)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger

# Global logger instance
logger = setup_logger(log_file=LOG_FILE, level=getattr(logging, LOG_LEVEL, logging.INFO))
