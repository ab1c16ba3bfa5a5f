from rendering.models import RenderedPage
from rendering.engine import (
    RenderingBackend,
    RenderError,
    RenderTimeoutError,
    RenderNavigationError,
    RenderExecutionError
)
from rendering.http_backend import HttpRenderingBackend

def create_backend(name: str) -> RenderingBackend:
    """Backend factory keyed by the RENDER_BACKEND setting."""
    if name == "http":
        return HttpRenderingBackend()
    if name == "playwright":
        # Playwright is only loaded when selected
        from rendering.playwright_backend import PlaywrightRenderingBackend
        return PlaywrightRenderingBackend()
    raise ValueError(f"unknown render backend: {name!r} (expected 'http' or 'playwright')")
