"""
FILE DESCRIPTION: URL canonicalization, crawl scope policy and link extraction.
KEY FUNCTIONS/CLASSES: LinkUtility, ScopePolicy, LinkExtractor
"""

import re
import tldextract
from bs4 import BeautifulSoup
from urllib.parse import urlparse, urlunparse, urljoin

# Bundled public-suffix snapshot only; never fetch the list over the network
_TLD_EXTRACT = tldextract.TLDExtract(suffix_list_urls=())

DEFAULT_PORTS = {"http": 80, "https": 443}

# === LINK UTILITY ===

class LinkUtility:

    @staticmethod
    def canonicalize(url: str, base: str | None = None) -> str:
        """
        Dedup identity for a URL.
        - scheme and host lower-cased, default port dropped
        - fragment stripped, query preserved
        - empty path -> "/", trailing slash removed from non-root paths
        Returns "" for anything that is not an absolute http(s) URL.
        """
        if not url:
            return ""

        url = url.strip()
        if base:
            url = urljoin(base, url)

        parsed = urlparse(url)
        if not parsed.scheme and not parsed.netloc and not url.startswith("/"):
            parsed = urlparse("https://" + url)

        scheme = parsed.scheme.lower()
        if scheme not in DEFAULT_PORTS:
            return ""

        host = parsed.hostname
        if not host:
            return ""
        try:
            port = parsed.port
        except ValueError:
            return ""

        netloc = f"[{host}]" if ":" in host else host
        if port and port != DEFAULT_PORTS[scheme]:
            netloc = f"{netloc}:{port}"

        path = parsed.path or "/"
        if path != "/":
            path = path.rstrip("/") or "/"

        return urlunparse((scheme, netloc, path, parsed.params, parsed.query, ""))

    @staticmethod
    def site_key(url: str) -> tuple[str, str]:
        """(registrable domain, subdomain without www) used for same-site checks."""
        ext = _TLD_EXTRACT(url)
        host = (urlparse(url).hostname or "").lower()
        if ext.suffix and ext.domain:
            domain = f"{ext.domain}.{ext.suffix}".lower()
            subdomain = ext.subdomain.lower()
        else:
            # IPs, localhost and unknown suffixes compare on the full host
            domain, subdomain = host, ""
        if subdomain == "www":
            subdomain = ""
        elif subdomain.startswith("www."):
            subdomain = subdomain[4:]
        return domain, subdomain


# === SCOPE POLICY ===

class ScopePolicy:
    """
    FLOW: Rejects non-HTTP and static-asset URLs -> Enforces the site boundary
    (registrable domain + subdomain, www-insensitive) -> Applies deny then allow
    regexes -> Classifies if a discovered link may enter the frontier.
    """
    STATIC_EXTENSIONS = (
        ".css", ".js", ".png", ".jpg", ".jpeg", ".webp",
        ".gif", ".svg", ".ico", ".woff", ".woff2",
        ".ttf", ".eot", ".pdf", ".zip", ".xlsx",
        ".xls", ".docx", ".doc", ".gz", ".tar",
        ".ppt", ".pptx", ".mp3", ".mp4", ".avi", ".mov",
    )

    def __init__(self, root_url, same_origin=True, allow_patterns=(), deny_patterns=()):
        self.root_url = root_url
        self.same_origin = same_origin
        self._root_key = LinkUtility.site_key(root_url)
        self._allow = [re.compile(p) for p in allow_patterns]
        self._deny = [re.compile(p) for p in deny_patterns]

    def eval(self, url: str):
        """Return (allowed: bool, reason: str)."""
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https"):
            return False, "blocked_non_http"
        if (parsed.path or "").lower().endswith(self.STATIC_EXTENSIONS):
            return False, "blocked_asset"
        if self.same_origin and LinkUtility.site_key(url) != self._root_key:
            return False, "blocked_scope"
        if any(p.search(url) for p in self._deny):
            return False, "blocked_pattern"
        if self._allow and not any(p.search(url) for p in self._allow):
            return False, "not_allowed_pattern"
        return True, "allowed"

    def allows(self, url: str) -> bool:
        allowed, _ = self.eval(url)
        return allowed


# === LINK EXTRACTOR ===

class LinkExtractor:
    """
    FLOW: Parses HTML using BeautifulSoup -> Resolves every anchor against the page URL
    (honouring <base href>) -> Drops fragments and non-navigational schemes -> Returns
    unique absolute URLs in document order.
    """
    SKIP_PREFIXES = ("#", "mailto:", "tel:", "javascript:", "data:")

    @staticmethod
    def extract_urls(html, base_url):
        soup = html if isinstance(html, BeautifulSoup) else BeautifulSoup(html or "", "lxml")

        base_tag = soup.find("base", href=True)
        if base_tag:
            base_url = urljoin(base_url, base_tag["href"].strip())

        seen, urls = set(), []
        for a in soup.find_all("a", href=True):
            href = a["href"].strip()
            if not href or href.lower().startswith(LinkExtractor.SKIP_PREFIXES):
                continue
            p = urlparse(urljoin(base_url, href))
            if p.scheme not in ("http", "https"):
                continue
            url = urlunparse((p.scheme, p.netloc, p.path, p.params, p.query, ""))
            if url not in seen:
                seen.add(url)
                urls.append(url)
        return urls
