from abc import ABC, abstractmethod

from rendering.models import RenderedPage

class RenderError(Exception):
    """Base rendering exception. Carries the URL that failed."""

    def __init__(self, url: str, message: str):
        super().__init__(message)
        self.url = url

class RenderTimeoutError(RenderError):
    """Raised when navigation exceeds the timeout."""
    pass

class RenderNavigationError(RenderError):
    """Raised when the page is unreachable, returns an error status or is not HTML."""

    def __init__(self, url: str, message: str, status_code: int = None):
        super().__init__(url, message)
        self.status_code = status_code

class RenderExecutionError(RenderError):
    """Raised on critical browser/script execution failures."""
    pass

class RenderingBackend(ABC):
    """
    Abstraction for whatever loads a page.
    Contractual Requirements for Implementers:
    - MUST enforce the navigation timeout passed to load().
    - MUST raise a RenderError subclass on failure, never return a partial page.
    - MUST be safe to call from several worker threads at once.
    """

    @abstractmethod
    def load(self, url: str, timeout: float) -> RenderedPage:
        """
        Load url and return the rendered page with its outbound links.
        Raises RenderTimeoutError, RenderNavigationError or RenderExecutionError.
        """
        pass

    def close(self) -> None:
        """Release backend resources. Optional."""
        pass
