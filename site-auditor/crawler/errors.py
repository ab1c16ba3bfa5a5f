class CrawlError(Exception):
    """Base exception for the crawl service."""
    pass

class JobNotFoundError(CrawlError):
    """Raised when a job identifier is unknown to the JobManager."""
    pass

class JobStateError(CrawlError):
    """Raised on an illegal job state transition (e.g. starting a job twice)."""
    pass

class DeliveryError(CrawlError):
    """Raised for a single failed webhook delivery attempt."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code
