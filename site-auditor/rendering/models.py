from dataclasses import dataclass, field
from functools import cached_property
from typing import List, Optional, Tuple

from bs4 import BeautifulSoup

@dataclass(frozen=True)
class RenderedPage:
    """
    Page handle handed to plugins.
    Invariant: html is the final serialized DOM; links are absolute, fragment-free
    outbound URLs as discovered by the backend (unfiltered).
    """
    url: str
    final_url: str
    status_code: int
    html: str
    links: Tuple[str, ...] = ()
    content_type: Optional[str] = "text/html"
    headers: dict = field(default_factory=dict, compare=False, repr=False)

    @cached_property
    def soup(self) -> BeautifulSoup:
        """DOM-queryable view, parsed once per page."""
        return BeautifulSoup(self.html or "", "lxml")

    def select(self, selector: str) -> List:
        return self.soup.select(selector)
